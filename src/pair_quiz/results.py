"""
Results Aggregator

Polls the store until both participants have completed, then builds the
side-by-side comparison. Questions from the two editions are paired by
order number; each side's answer is looked up by its own question.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .auth import sign_out
from .backends.base import Backend, StoreError
from .config import config
from .models import AnswerKind, AnswerRow, Question, QuestionOption, Route, User
from .repository import QuizRepository

logger = logging.getLogger(__name__)

# Shown instead of a blank when a side has no answer
EMPTY_MARKER = "—"


class ResultsStatus(str, Enum):
    """Results view states."""
    LOADING = "loading"
    WAITING = "waiting"
    REVEALED = "revealed"
    REDIRECTED = "redirected"


# =============================================================================
# COMPARISON
# =============================================================================

def answer_text(
    answer: Optional[AnswerRow],
    options_by_id: dict[str, QuestionOption],
) -> Optional[str]:
    """
    Display text for an answer.

    Returns:
        "label: option text" for a resolvable option, "Other: text" (or
        "Other" when the text is blank) for free text, otherwise None
    """
    if answer is None:
        return None

    if answer.selected_option_id and answer.selected_option_id in options_by_id:
        return options_by_id[answer.selected_option_id].display_text

    if answer.kind == AnswerKind.FREE_TEXT:
        text = answer.other_text.strip()
        return f"Other: {text}" if text else "Other"

    return None


def answers_match(
    a: Optional[AnswerRow],
    b: Optional[AnswerRow],
    options_by_id: dict[str, QuestionOption],
) -> bool:
    """
    Whether two paired answers picked the same labelled option.

    Free text never matches and a missing side never matches. Paired
    questions from different editions have their own option rows, so
    options count as the same when their labels agree.
    """
    if a is None or b is None:
        return False
    if a.kind != AnswerKind.SELECTED_OPTION or b.kind != AnswerKind.SELECTED_OPTION:
        return False

    opt_a = options_by_id.get(a.selected_option_id)
    opt_b = options_by_id.get(b.selected_option_id)
    if (opt_a and opt_a.is_other) or (opt_b and opt_b.is_other):
        return False

    if a.selected_option_id == b.selected_option_id:
        return True
    if opt_a is None or opt_b is None:
        return False
    return opt_a.label.strip().lower() == opt_b.label.strip().lower()


@dataclass
class ComparisonCard:
    """One order number's worth of side-by-side answers."""
    order_num: int
    question: Question
    mine: Optional[AnswerRow] = None
    theirs: Optional[AnswerRow] = None
    my_text: str = EMPTY_MARKER
    their_text: str = EMPTY_MARKER
    is_match: bool = False

    def to_dict(self) -> dict:
        return {
            "order_num": self.order_num,
            "question_id": self.question.id,
            "title": self.question.title,
            "scenario": self.question.display_text,
            "intensity_emoji": self.question.intensity_emoji,
            "mine": self.my_text,
            "theirs": self.their_text,
            "match": self.is_match,
        }


def _answer_for(
    group: list[Question],
    answers: dict[str, AnswerRow],
) -> Optional[AnswerRow]:
    # A participant only ever answers their own edition's question at an order number
    for question in group:
        if question.id in answers:
            return answers[question.id]
    return None


def build_comparison(
    questions: list[Question],
    options_by_id: dict[str, QuestionOption],
    my_answers: dict[str, AnswerRow],
    their_answers: dict[str, AnswerRow],
) -> list[ComparisonCard]:
    """
    Pair both participants' answers by order number.

    Args:
        questions: Questions from both editions
        options_by_id: Every option, keyed by id
        my_answers: Current user's answers keyed by question id
        their_answers: Counterpart's answers keyed by question id

    Returns:
        Cards sorted by order number
    """
    groups: dict[int, list[Question]] = {}
    for question in sorted(questions, key=lambda q: (q.order_num, q.edition.value)):
        groups.setdefault(question.order_num, []).append(question)

    cards = []
    for order_num in sorted(groups):
        group = groups[order_num]
        mine = _answer_for(group, my_answers)
        theirs = _answer_for(group, their_answers)

        cards.append(ComparisonCard(
            order_num=order_num,
            question=group[0],
            mine=mine,
            theirs=theirs,
            my_text=answer_text(mine, options_by_id) or EMPTY_MARKER,
            their_text=answer_text(theirs, options_by_id) or EMPTY_MARKER,
            is_match=answers_match(mine, theirs, options_by_id),
        ))

    return cards


# =============================================================================
# POLLING
# =============================================================================

@dataclass
class ResultsState:
    """What the results view shows."""
    status: ResultsStatus = ResultsStatus.LOADING
    user: Optional[User] = None
    questions: list[Question] = field(default_factory=list)
    options_by_id: dict[str, QuestionOption] = field(default_factory=dict)
    my_answers: dict[str, AnswerRow] = field(default_factory=dict)
    their_answers: dict[str, AnswerRow] = field(default_factory=dict)
    counterpart_complete: bool = False
    redirect: Optional[Route] = None
    error: Optional[str] = None
    polls: int = 0

    @property
    def cards(self) -> list[ComparisonCard]:
        return build_comparison(
            self.questions, self.options_by_id, self.my_answers, self.their_answers,
        )

    @property
    def match_count(self) -> int:
        return sum(1 for c in self.cards if c.is_match)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "user_id": self.user.id if self.user else None,
            "counterpart_complete": self.counterpart_complete,
            "redirect": self.redirect.value if self.redirect else None,
            "error": self.error,
            "polls": self.polls,
            "cards": [c.to_dict() for c in self.cards] if self.counterpart_complete else [],
        }


TERMINAL_STATUSES = (ResultsStatus.REVEALED, ResultsStatus.REDIRECTED)


class ResultsAggregator:
    """
    Waits for the counterpart and reveals the comparison.

    Usage:
        async with ResultsAggregator(backend) as results:
            results.start()
            state = await results.wait()
    """

    def __init__(
        self,
        backend: Backend,
        *,
        poll_interval: Optional[float] = None,
        on_change: Optional[Callable[[ResultsState], None]] = None,
    ):
        """
        Initialize aggregator.

        Args:
            backend: Identity provider and data store for this session
            poll_interval: Seconds between polls (defaults to config)
            on_change: Called with the state after every applied poll
        """
        self.backend = backend
        self.repository = QuizRepository(backend)
        self.poll_interval = (
            poll_interval if poll_interval is not None else config.polling.interval_seconds
        )
        self.on_change = on_change
        self.state = ResultsState()

        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def cards(self) -> list[ComparisonCard]:
        return self.state.cards

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> ResultsState:
        """
        Poll the store once and apply what it says.

        Fetch failures leave the previous view in place with state.error set.
        """
        state = self.state
        if self._cancelled or state.status in TERMINAL_STATUSES:
            return state

        try:
            user = await self.backend.get_current_user()
            if user is None:
                return self._apply_redirect(Route.LOGIN)

            completions = await self.repository.list_completions()
            if not any(c.user_id == user.id for c in completions):
                # Results are only reachable after finishing the quiz
                return self._apply_redirect(Route.QUIZ)
            counterpart_complete = any(c.user_id != user.id for c in completions)

            questions = state.questions
            options_by_id = state.options_by_id
            if not questions:
                questions = await self.repository.list_questions()
                options_by_id = {o.id: o for o in await self.repository.list_options()}

            answers = await self.repository.list_answers()
        except StoreError as e:
            if self._cancelled:
                return state
            logger.warning(f"Results poll failed: {e}")
            state.error = str(e)
            state.polls += 1
            self._notify()
            return state

        if self._cancelled:
            return state

        state.user = user
        state.questions = questions
        state.options_by_id = options_by_id
        state.my_answers = {a.question_id: a for a in answers if a.user_id == user.id}
        state.their_answers = {a.question_id: a for a in answers if a.user_id != user.id}
        state.counterpart_complete = counterpart_complete
        state.status = ResultsStatus.REVEALED if counterpart_complete else ResultsStatus.WAITING
        state.error = None
        state.polls += 1

        if counterpart_complete:
            logger.debug(f"Counterpart complete after {state.polls} poll(s)")
        self._notify()
        return state

    def _apply_redirect(self, route: Route) -> ResultsState:
        if self._cancelled:
            return self.state
        self.state.status = ResultsStatus.REDIRECTED
        self.state.redirect = route
        self.state.polls += 1
        self._notify()
        return self.state

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)

    async def _poll_loop(self) -> ResultsState:
        while True:
            state = await self.refresh()
            if self._cancelled or state.status in TERMINAL_STATUSES:
                self._task = None
                return state
            await asyncio.sleep(self.poll_interval)

    def start(self) -> asyncio.Task:
        """
        Start polling: once now, then every poll_interval seconds until the
        comparison is revealed or the view redirects.
        """
        if self._cancelled:
            raise RuntimeError("Results aggregator has been stopped")
        if self._task is None:
            self._task = asyncio.create_task(self._poll_loop())
        return self._task

    async def wait(self, timeout: Optional[float] = None) -> ResultsState:
        """
        Wait for polling to reach a terminal state.

        Raises:
            asyncio.TimeoutError: If timeout elapses first (polling continues)
        """
        task = self.start()
        return await asyncio.wait_for(asyncio.shield(task), timeout)

    async def stop(self) -> None:
        """Cancel polling; results of in-flight fetches are discarded."""
        self._cancelled = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def sign_out(self) -> Route:
        await self.stop()
        route = await sign_out(self.backend)
        self.state.redirect = route
        return route

    async def __aenter__(self) -> "ResultsAggregator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
