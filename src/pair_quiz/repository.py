"""
Typed access to the quiz tables.
"""

import logging
from typing import Iterable, Optional

from .backends.base import DataStore
from .editions import Edition
from .models import AnswerDraft, AnswerRow, CompletionStatus, Question, QuestionOption

logger = logging.getLogger(__name__)

QUESTIONS = "questions"
QUESTION_OPTIONS = "question_options"
ANSWERS = "answers"
COMPLETION_STATUS = "completion_status"

ANSWER_CONFLICT_KEY = ("user_id", "question_id")


class QuizRepository:
    def __init__(self, store: DataStore):
        self.store = store

    async def get_completion(self, user_id: str) -> Optional[CompletionStatus]:
        rows = await self.store.select(COMPLETION_STATUS, filters={"user_id": user_id})
        return CompletionStatus.from_row(rows[0]) if rows else None

    async def list_completions(self) -> list[CompletionStatus]:
        """Every completion row the current user may see."""
        rows = await self.store.select(COMPLETION_STATUS)
        return [CompletionStatus.from_row(r) for r in rows]

    async def list_questions(self, edition: Optional[Edition] = None) -> list[Question]:
        filters = {"edition": edition.value} if edition else None
        rows = await self.store.select(QUESTIONS, filters=filters, order="order_num")
        questions = [Question.from_row(r) for r in rows]
        # Stores are not trusted to honour order for every backend
        questions.sort(key=lambda q: q.order_num)
        return questions

    async def list_options(
        self,
        question_ids: Optional[Iterable[str]] = None,
    ) -> list[QuestionOption]:
        filters = {"question_id": list(question_ids)} if question_ids is not None else None
        rows = await self.store.select(QUESTION_OPTIONS, filters=filters, order="order_num")
        return [QuestionOption.from_row(r) for r in rows]

    async def list_answers(
        self,
        user_id: Optional[str] = None,
        question_ids: Optional[Iterable[str]] = None,
    ) -> list[AnswerRow]:
        filters = {}
        if user_id is not None:
            filters["user_id"] = user_id
        if question_ids is not None:
            filters["question_id"] = list(question_ids)

        rows = await self.store.select(ANSWERS, filters=filters or None)
        return [AnswerRow.from_row(r) for r in rows]

    async def upsert_answer(self, user_id: str, draft: AnswerDraft) -> None:
        """Write one answer; a later write for the same question replaces it."""
        await self.store.upsert(ANSWERS, draft.to_row(user_id), ANSWER_CONFLICT_KEY)
        logger.debug(f"Saved answer for question {draft.question_id} ({draft.kind.value})")

    async def insert_completion(self, user_id: str) -> None:
        await self.store.insert(COMPLETION_STATUS, [{"user_id": user_id}])
        logger.debug(f"Recorded completion for {user_id}")
