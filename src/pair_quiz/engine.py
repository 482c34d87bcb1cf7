"""
Quiz Progression Engine

Walks one participant through their edition's questions:
1. Gate on identity, completion and edition assignment
2. Load questions, options and any answers saved earlier
3. Resume at the first unanswered question
4. Keep draft answers and save them as the participant moves
5. Record completion once every question is answered

Drafts are saved in the background while navigating; the final save and the
completion insert happen in order on submit.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .auth import sign_out
from .backends.base import Backend, StoreError
from .editions import Edition, get_edition_for_email
from .models import AnswerDraft, AnswerKind, Question, QuestionOption, Route, User
from .repository import QuizRepository

logger = logging.getLogger(__name__)


class QuizStatus(str, Enum):
    """Where a participant is in the quiz."""
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    ALREADY_COMPLETE = "already_complete"
    CONFIG_ERROR = "config_error"
    LOAD_FAILED = "load_failed"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass
class QuizProgress:
    """1-based position within the question list."""
    position: int
    total: int

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0
        return round(self.position / self.total * 100)


@dataclass
class QuizState:
    """Everything the quiz view needs to render."""
    status: QuizStatus = QuizStatus.LOADING
    user: Optional[User] = None
    edition: Optional[Edition] = None
    questions: list[Question] = field(default_factory=list)
    options_by_question: dict[str, list[QuestionOption]] = field(default_factory=dict)
    drafts: dict[str, AnswerDraft] = field(default_factory=dict)
    cursor: int = 0
    error: Optional[str] = None
    redirect: Optional[Route] = None
    submitting: bool = False

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.cursor < len(self.questions):
            return self.questions[self.cursor]
        return None

    @property
    def current_options(self) -> list[QuestionOption]:
        question = self.current_question
        if question is None:
            return []
        return self.options_by_question.get(question.id, [])

    @property
    def current_draft(self) -> Optional[AnswerDraft]:
        question = self.current_question
        return self.drafts.get(question.id) if question else None

    @property
    def is_first(self) -> bool:
        return self.cursor == 0

    @property
    def is_last(self) -> bool:
        return self.cursor == len(self.questions) - 1

    @property
    def progress(self) -> QuizProgress:
        return QuizProgress(position=self.cursor + 1, total=len(self.questions))

    @property
    def remaining(self) -> int:
        """Number of questions without an answered draft."""
        return sum(
            1 for q in self.questions
            if q.id not in self.drafts or not self.drafts[q.id].has_selection
        )

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "user_id": self.user.id if self.user else None,
            "edition": self.edition.value if self.edition else None,
            "cursor": self.cursor,
            "total": len(self.questions),
            "remaining": self.remaining,
            "error": self.error,
            "redirect": self.redirect.value if self.redirect else None,
        }


def resume_index(questions: list[Question], drafts: dict[str, AnswerDraft]) -> int:
    """
    Index of the first question without an answered draft.

    Returns the last index when every question is answered, so a partly
    finished quiz never restarts from the top.
    """
    for i, question in enumerate(questions):
        draft = drafts.get(question.id)
        if draft is None or not draft.has_selection:
            return i
    return max(len(questions) - 1, 0)


class QuizEngine:
    """
    Drives one participant's questionnaire.

    Usage:
        engine = QuizEngine(backend)
        state = await engine.load()
        engine.select_option(question.id, option.id)
        engine.go_next()
        ...
        await engine.submit()
    """

    def __init__(
        self,
        backend: Backend,
        *,
        assignments: Optional[dict[str, Edition]] = None,
    ):
        """
        Initialize engine.

        Args:
            backend: Identity provider and data store for this session
            assignments: Email to edition map (defaults to configured map)
        """
        self.backend = backend
        self.repository = QuizRepository(backend)
        self.assignments = assignments
        self.state = QuizState()

        self._pending: set[asyncio.Task] = set()
        # question_id -> most recently scheduled save for that question
        self._last_write: dict[str, asyncio.Task] = {}
        # question_id -> message for background saves that failed
        self._write_failures: dict[str, str] = {}
        # question ids whose failed save must be repeated on the next submit
        self._needs_retry: set[str] = set()

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    async def load(self) -> QuizState:
        """
        Run the entry checks and load the participant's questions.

        Returns:
            The new state; check status and redirect before rendering
        """
        state = QuizState()
        self.state = state

        try:
            user = await self.backend.get_current_user()
        except StoreError as e:
            return self._fail_load(str(e))

        if user is None:
            state.status = QuizStatus.UNAUTHENTICATED
            state.redirect = Route.LOGIN
            return state
        state.user = user

        try:
            completion = await self.repository.get_completion(user.id)
        except StoreError as e:
            return self._fail_load(str(e))

        if completion is not None:
            state.status = QuizStatus.ALREADY_COMPLETE
            state.redirect = Route.RESULTS
            return state

        edition = get_edition_for_email(user.email, self.assignments)
        if edition is None:
            state.status = QuizStatus.CONFIG_ERROR
            state.error = (
                f"No question edition is assigned to {user.email or 'this account'}. "
                "Please contact the quiz administrator."
            )
            return state
        state.edition = edition

        try:
            questions = await self.repository.list_questions(edition)
            question_ids = [q.id for q in questions]
            options = await self.repository.list_options(question_ids)
            answers = await self.repository.list_answers(user.id, question_ids)
        except StoreError as e:
            return self._fail_load(str(e))

        if not questions:
            state.status = QuizStatus.LOAD_FAILED
            state.error = "No questions found."
            return state

        state.questions = questions
        state.options_by_question = {q.id: [] for q in questions}
        for option in sorted(options, key=lambda o: o.order_num):
            state.options_by_question.setdefault(option.question_id, []).append(option)

        state.drafts = {a.question_id: a.to_draft() for a in answers}
        state.cursor = resume_index(questions, state.drafts)
        state.status = QuizStatus.IN_PROGRESS

        logger.debug(
            f"Loaded {len(questions)} {edition.value} questions for {user.id}, "
            f"resuming at {state.cursor + 1}"
        )
        return state

    def _fail_load(self, message: str) -> QuizState:
        logger.warning(f"Failed to load quiz: {message}")
        self.state.status = QuizStatus.LOAD_FAILED
        self.state.error = "Failed to load questions."
        return self.state

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    def _require_in_progress(self) -> None:
        if self.state.status != QuizStatus.IN_PROGRESS:
            raise RuntimeError(f"Quiz is not in progress (status: {self.state.status.value})")

    def _find_option(self, question_id: str, option_id: str) -> QuestionOption:
        if question_id not in self.state.options_by_question:
            raise ValueError(f"Unknown question: {question_id}")
        for option in self.state.options_by_question[question_id]:
            if option.id == option_id:
                return option
        raise ValueError(f"Option {option_id} does not belong to question {question_id}")

    def select_option(self, question_id: str, option_id: str) -> AnswerDraft:
        """
        Record a choice for a question.

        A labelled option is saved straight away without waiting for the write.
        The "other" option keeps any text already typed and is saved later,
        when the participant navigates or submits.

        Must be called from inside a running event loop.
        """
        self._require_in_progress()
        option = self._find_option(question_id, option_id)
        previous = self.state.drafts.get(question_id)

        if option.is_other:
            text = previous.other_text if previous and previous.other_text is not None else ""
            draft = AnswerDraft(question_id=question_id, other_text=text)
            self.state.drafts[question_id] = draft
        else:
            draft = AnswerDraft(question_id=question_id, selected_option_id=option.id)
            self.state.drafts[question_id] = draft
            self._schedule_save(draft)

        return draft

    def set_other_text(self, question_id: str, text: str) -> AnswerDraft:
        """Update the free text of an "other" answer. Not saved until navigation."""
        self._require_in_progress()
        if question_id not in self.state.options_by_question:
            raise ValueError(f"Unknown question: {question_id}")

        previous = self.state.drafts.get(question_id)
        if previous is not None and previous.kind == AnswerKind.SELECTED_OPTION:
            raise ValueError("Select the 'other' option before entering free text")

        draft = AnswerDraft(question_id=question_id, other_text=text)
        self.state.drafts[question_id] = draft
        return draft

    def has_selection(self, question_id: str) -> bool:
        draft = self.state.drafts.get(question_id)
        return draft is not None and draft.has_selection

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_next(self) -> bool:
        """
        Save the current answer and move forward.

        Returns:
            False (and does nothing) at the last question or when the
            current question has no answer yet
        """
        self._require_in_progress()
        state = self.state
        question = state.current_question

        if question is None or state.is_last or not self.has_selection(question.id):
            return False

        self._persist_current()
        state.cursor += 1
        return True

    def go_back(self) -> bool:
        """Save the current answer (if any) and move back. No-op at the first question."""
        self._require_in_progress()
        if self.state.is_first:
            return False

        self._persist_current()
        self.state.cursor -= 1
        return True

    def _persist_current(self) -> None:
        draft = self.state.current_draft
        if draft is not None and draft.has_selection:
            self._schedule_save(draft)

    # ------------------------------------------------------------------
    # Background saves
    # ------------------------------------------------------------------

    def _schedule_save(self, draft: AnswerDraft) -> None:
        # Writes for one question run one after another so the newest lands last
        question_id = draft.question_id
        previous = self._last_write.get(question_id)
        task = asyncio.create_task(
            self._save_in_background(self.state.user.id, draft, previous)
        )
        self._last_write[question_id] = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(lambda t: self._release_write(question_id, t))

    def _release_write(self, question_id: str, task: asyncio.Task) -> None:
        if self._last_write.get(question_id) is task:
            del self._last_write[question_id]

    async def _save_in_background(
        self,
        user_id: str,
        draft: AnswerDraft,
        previous: Optional[asyncio.Task] = None,
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await self.repository.upsert_answer(user_id, draft)
        except StoreError as e:
            logger.warning(f"Background save failed for question {draft.question_id}: {e}")
            # A newer draft supersedes this one and will be saved on its own
            if self.state.drafts.get(draft.question_id) is draft:
                self._write_failures[draft.question_id] = str(e)
        else:
            if self.state.drafts.get(draft.question_id) is draft:
                self._write_failures.pop(draft.question_id, None)
                self._needs_retry.discard(draft.question_id)

    async def _drain(self) -> None:
        """Wait for every background save issued so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> bool:
        """
        Save outstanding answers and record completion.

        Returns:
            True once completion is recorded; False with state.error set
            otherwise. Nothing is retried automatically.
        """
        state = self.state
        if state.status == QuizStatus.COMPLETE:
            return True
        self._require_in_progress()
        if state.submitting:
            return False

        state.submitting = True
        state.error = None
        try:
            remaining = state.remaining
            if remaining:
                state.error = f"Please answer all questions. {remaining} remaining."
                return False

            await self._drain()
            if self._write_failures:
                count = len(self._write_failures)
                self._needs_retry.update(self._write_failures)
                self._write_failures.clear()
                state.error = (
                    f"{count} earlier answer(s) could not be saved. Please try again."
                )
                return False

            if not await self._save_outstanding():
                state.error = "Failed to save your answers. Please try again."
                return False

            try:
                await self.repository.insert_completion(state.user.id)
            except StoreError as e:
                logger.warning(f"Failed to record completion for {state.user.id}: {e}")
                state.error = "Failed to record completion. Please try again."
                return False

            state.status = QuizStatus.COMPLETE
            state.redirect = Route.RESULTS
            logger.debug(f"Quiz complete for {state.user.id}")
            return True
        finally:
            state.submitting = False

    async def _save_outstanding(self) -> bool:
        """Save the current draft, then any draft whose earlier save failed."""
        state = self.state
        current = state.current_question
        order = [current.id] if current else []
        order += [q.id for q in state.questions if q.id in self._needs_retry and q.id not in order]

        for question_id in order:
            draft = state.drafts[question_id]
            try:
                await self.repository.upsert_answer(state.user.id, draft)
            except StoreError as e:
                logger.warning(f"Failed to save answer for question {question_id}: {e}")
                self._needs_retry.add(question_id)
                return False
            self._needs_retry.discard(question_id)

        return True

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def sign_out(self) -> Route:
        await self._drain()
        route = await sign_out(self.backend)
        self.state.redirect = route
        return route

    async def aclose(self) -> None:
        """Wait for outstanding background saves."""
        await self._drain()
