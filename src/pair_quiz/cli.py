"""
Command-line interface for pair-quiz

Terminal client for answering the quiz and watching for the comparison.
"""

import argparse
import asyncio
import getpass
import json
import logging
import os
import sys
import textwrap
from typing import Awaitable, Callable, Optional

from .auth import sign_in
from .backends import Backend, get_backend
from .backends.memory import DEMO_EDITIONS, DEMO_HER_EMAIL, DEMO_PASSWORD
from .config import Config, config
from .editions import Edition, get_edition_for_email
from .engine import QuizEngine, QuizState, QuizStatus
from .models import AnswerKind, Route
from .results import ResultsAggregator, ResultsState, ResultsStatus

BOX_WIDTH = 64

Ask = Callable[[str], Awaitable[str]]


async def ask_stdin(prompt: str) -> str:
    """Read a line without blocking background saves."""
    return await asyncio.to_thread(input, prompt)


# =============================================================================
# FORMATTING
# =============================================================================

def _box_line(text: str = "") -> str:
    return f"│  {text:<{BOX_WIDTH - 4}}│"


def _wrapped(text: str, indent: str = "") -> list[str]:
    width = BOX_WIDTH - 4 - len(indent)
    return [_box_line(indent + line) for line in textwrap.wrap(text, width) or [""]]


def format_question(state: QuizState) -> str:
    """Render the current question, its options and progress."""
    question = state.current_question
    draft = state.current_draft
    progress = state.progress

    lines = [
        "",
        f"Question {progress.position} of {progress.total}   {progress.percent}%",
        "",
    ]
    if question.title:
        lines.append(f"{question.intensity_emoji} {question.title}".strip())
    lines.extend(textwrap.wrap(question.display_text, BOX_WIDTH))
    lines.append("")

    for i, option in enumerate(state.current_options, start=1):
        if option.is_other:
            selected = draft is not None and draft.kind == AnswerKind.FREE_TEXT
            text = "Other"
            if selected and draft.other_text:
                text += f": {draft.other_text}"
        else:
            selected = draft is not None and draft.selected_option_id == option.id
            text = option.display_text
        marker = "●" if selected else "○"
        lines.append(f"  {i}. {marker} {text}")

    lines.append("")
    if state.error:
        lines.append(f"! {state.error}")
    return "\n".join(lines)


def format_results_terminal(state: ResultsState) -> str:
    """
    Format the comparison for terminal display with box-drawing characters.
    """
    if not state.counterpart_complete:
        return "\n".join([
            "┌" + "─" * (BOX_WIDTH - 2) + "┐",
            _box_line(),
            _box_line("WAITING FOR THE OTHER PERSON..."),
            _box_line("This view will update automatically."),
            _box_line(),
            "└" + "─" * (BOX_WIDTH - 2) + "┘",
        ])

    cards = state.cards
    lines = [
        "┌" + "─" * (BOX_WIDTH - 2) + "┐",
        _box_line(),
        _box_line("RESULTS"),
        _box_line("═══════"),
        _box_line(),
    ]

    for card in cards:
        header = f"Q{card.order_num}"
        if card.question.title:
            header += f" · {card.question.title}"
        if card.is_match:
            header += "   ♥ MATCH"
        lines.append(_box_line(header))
        lines.extend(_wrapped(card.question.display_text, indent="  "))
        lines.extend(_wrapped(f"You:  {card.my_text}", indent="    "))
        lines.extend(_wrapped(f"Them: {card.their_text}", indent="    "))
        lines.append(_box_line())

    lines.extend([
        _box_line("─" * (BOX_WIDTH - 8)),
        _box_line(f"{state.match_count} of {len(cards)} answers matched"),
        _box_line(),
        "└" + "─" * (BOX_WIDTH - 2) + "┘",
    ])
    return "\n".join(lines)


# =============================================================================
# FLOWS
# =============================================================================

async def run_quiz(engine: QuizEngine, ask: Ask = ask_stdin) -> bool:
    """
    Interactive wizard over the engine's current state.

    Returns:
        True when the quiz was submitted, False if the user quit
    """
    state = engine.state
    help_text = "Pick a number, [n]ext, [b]ack, [s]ubmit, [q]uit"

    try:
        while state.status == QuizStatus.IN_PROGRESS:
            print(format_question(state))
            command = (await ask(f"{help_text}> ")).strip().lower()
            state.error = None

            if command.isdigit():
                options = state.current_options
                index = int(command) - 1
                if not 0 <= index < len(options):
                    state.error = f"Choose a number between 1 and {len(options)}."
                    continue
                option = options[index]
                question_id = state.current_question.id
                engine.select_option(question_id, option.id)
                if option.is_other:
                    text = await ask("Please specify... ")
                    engine.set_other_text(question_id, text)
            elif command in ("n", "next"):
                if state.is_last:
                    state.error = "This is the last question. Use [s]ubmit."
                elif not engine.go_next():
                    state.error = "Answer this question first."
            elif command in ("b", "back"):
                engine.go_back()
            elif command in ("s", "submit"):
                print("Submitting...")
                if await engine.submit():
                    return True
            elif command in ("q", "quit"):
                return False
            else:
                state.error = help_text
    finally:
        await engine.aclose()

    return state.status == QuizStatus.COMPLETE


async def show_results(
    backend: Backend,
    wait: bool = True,
    as_json: bool = False,
    poll_interval: Optional[float] = None,
) -> ResultsState:
    """Poll for the comparison and print it."""
    def on_change(state: ResultsState) -> None:
        if wait and not as_json and state.status == ResultsStatus.WAITING and state.polls == 1:
            print(format_results_terminal(state))

    async with ResultsAggregator(
        backend, poll_interval=poll_interval, on_change=on_change,
    ) as results:
        if wait:
            state = await results.wait()
        else:
            state = await results.refresh()

    if as_json:
        print(json.dumps(state.to_dict(), indent=2))
    elif state.status == ResultsStatus.REDIRECTED:
        if state.redirect == Route.QUIZ:
            print("Finish your own questions first: pair-quiz play")
        else:
            print("Not signed in.")
    elif state.status == ResultsStatus.REVEALED or not wait:
        print(format_results_terminal(state))
    return state


def _make_backend(args, cfg: Config = config) -> tuple[Backend, Optional[dict[str, Edition]]]:
    """
    Build the configured backend.

    --mock, or PAIR_QUIZ_BACKEND=memory, selects the seeded demo backend
    together with its edition map. Otherwise the Supabase settings are used
    and editions come from EDITION_MAP.
    """
    if args.mock or cfg.backend.name == "memory":
        return get_backend("demo"), DEMO_EDITIONS

    backend = get_backend(
        cfg.backend.name,
        url=cfg.supabase.url,
        anon_key=cfg.supabase.anon_key,
        timeout=cfg.supabase.timeout_seconds,
    )
    return backend, None


async def _sign_in(backend: Backend, args) -> bool:
    email = args.email or os.getenv("PAIR_QUIZ_EMAIL")
    password = args.password or os.getenv("PAIR_QUIZ_PASSWORD")

    if backend.name == "memory":
        email = email or DEMO_HER_EMAIL
        password = password or DEMO_PASSWORD
    if not email:
        email = await ask_stdin("Email: ")
    if not password:
        password = await asyncio.to_thread(getpass.getpass, "Password: ")

    result = await sign_in(backend, email, password)
    if not result.ok:
        print(f"Sign-in failed: {result.error}", file=sys.stderr)
    return result.ok


# =============================================================================
# ENTRY POINT
# =============================================================================

def _add_session_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--email", help="Login email (or PAIR_QUIZ_EMAIL)")
    parser.add_argument("--password", help="Login password (or PAIR_QUIZ_PASSWORD)")
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the in-memory demo backend (partner already finished)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging"
    )


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="pair-quiz",
        description="Two-person relationship quiz with a side-by-side reveal",
        epilog="Example: pair-quiz play --mock"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Edition command
    edition_parser = subparsers.add_parser("edition", help="Show the edition assigned to an email")
    edition_parser.add_argument("email", help="Participant email")

    # Play command
    play_parser = subparsers.add_parser("play", help="Answer your questions, then see results")
    _add_session_args(play_parser)

    # Results command
    results_parser = subparsers.add_parser("results", help="Show the comparison")
    _add_session_args(results_parser)
    results_parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Poll once instead of waiting for the other person"
    )
    results_parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "edition":
        edition = get_edition_for_email(args.email)
        if edition is None:
            print(f"No edition assigned to {args.email}", file=sys.stderr)
            sys.exit(1)
        print(edition.value)
        return

    backend, assignments = _make_backend(args)

    async def run_play() -> int:
        try:
            if not await _sign_in(backend, args):
                return 1

            engine = QuizEngine(backend, assignments=assignments)
            state = await engine.load()

            if state.status in (QuizStatus.CONFIG_ERROR, QuizStatus.LOAD_FAILED):
                print(state.error, file=sys.stderr)
                return 1
            if state.status == QuizStatus.IN_PROGRESS:
                if not await run_quiz(engine):
                    print("Progress saved. Run again to continue.")
                    return 0
            else:
                print("You have already finished your questions.")

            await show_results(backend)
            return 0
        finally:
            await backend.aclose()

    async def run_results() -> int:
        try:
            if not await _sign_in(backend, args):
                return 1
            state = await show_results(backend, wait=not args.no_wait, as_json=args.json)
            return 0 if state.status != ResultsStatus.REDIRECTED else 1
        finally:
            await backend.aclose()

    if args.command == "play":
        sys.exit(asyncio.run(run_play()))
    elif args.command == "results":
        sys.exit(asyncio.run(run_results()))


if __name__ == "__main__":
    main()
