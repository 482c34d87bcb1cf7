"""
Quiz records and answer drafts

Row shapes for the four tables plus the in-memory draft answer the progression
engine works with.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .editions import Edition


class Route(str, Enum):
    """Navigation intents issued to whatever owns the router."""
    LOGIN = "/login"
    QUIZ = "/questions"
    RESULTS = "/results"


class AnswerKind(str, Enum):
    """What an answer holds."""
    SELECTED_OPTION = "selected_option"
    FREE_TEXT = "free_text"
    UNANSWERED = "unanswered"


def _answer_kind(selected_option_id: Optional[str], other_text: Optional[str]) -> AnswerKind:
    # An empty other_text still counts as an answer; only None means unset.
    if selected_option_id:
        return AnswerKind.SELECTED_OPTION
    if other_text is not None:
        return AnswerKind.FREE_TEXT
    return AnswerKind.UNANSWERED


@dataclass
class User:
    """An authenticated participant."""
    id: str
    email: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(id=data["id"], email=data.get("email"))


@dataclass
class Question:
    """A seeded question. Read-only to the application."""
    id: str
    edition: Edition
    order_num: int
    text: str = ""
    title: str = ""
    scenario: str = ""
    intensity: str = ""
    intensity_emoji: str = ""

    @property
    def display_text(self) -> str:
        return self.scenario or self.text or self.title

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "edition": self.edition.value,
            "order_num": self.order_num,
            "text": self.text,
            "title": self.title,
            "scenario": self.scenario,
            "intensity": self.intensity,
            "intensity_emoji": self.intensity_emoji,
        }

    @classmethod
    def from_row(cls, row: dict) -> "Question":
        return cls(
            id=str(row["id"]),
            edition=Edition(row["edition"]),
            order_num=int(row["order_num"]),
            text=row.get("text") or "",
            title=row.get("title") or "",
            scenario=row.get("scenario") or "",
            intensity=row.get("intensity") or "",
            intensity_emoji=row.get("intensity_emoji") or "",
        )


@dataclass
class QuestionOption:
    """A labelled choice for a question, or the free-text "other" slot."""
    id: str
    question_id: str
    label: str
    option_text: str
    is_other: bool = False
    order_num: int = 0

    @property
    def display_text(self) -> str:
        return f"{self.label}: {self.option_text}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "label": self.label,
            "option_text": self.option_text,
            "is_other": self.is_other,
            "order_num": self.order_num,
        }

    @classmethod
    def from_row(cls, row: dict) -> "QuestionOption":
        return cls(
            id=str(row["id"]),
            question_id=str(row["question_id"]),
            label=row.get("label") or "",
            option_text=row.get("option_text") or "",
            is_other=bool(row.get("is_other", False)),
            order_num=int(row.get("order_num") or 0),
        )


@dataclass
class AnswerDraft:
    """
    A participant's not-yet-confirmed response to one question.

    Exactly one of selected_option_id / other_text is meaningful at a time.
    other_text == "" is a real (blank) free-text answer, distinct from None.
    """
    question_id: str
    selected_option_id: Optional[str] = None
    other_text: Optional[str] = None

    @property
    def kind(self) -> AnswerKind:
        return _answer_kind(self.selected_option_id, self.other_text)

    @property
    def has_selection(self) -> bool:
        return self.kind != AnswerKind.UNANSWERED

    def to_row(self, user_id: str) -> dict:
        """Row for the answers table. Never populates both answer fields."""
        kind = self.kind
        return {
            "user_id": user_id,
            "question_id": self.question_id,
            "selected_option_id": (
                self.selected_option_id if kind == AnswerKind.SELECTED_OPTION else None
            ),
            "other_text": self.other_text if kind == AnswerKind.FREE_TEXT else None,
        }


@dataclass
class AnswerRow:
    """A persisted answer, keyed on (user_id, question_id)."""
    user_id: str
    question_id: str
    selected_option_id: Optional[str] = None
    other_text: Optional[str] = None

    @property
    def kind(self) -> AnswerKind:
        return _answer_kind(self.selected_option_id, self.other_text)

    def to_draft(self) -> AnswerDraft:
        return AnswerDraft(
            question_id=self.question_id,
            selected_option_id=self.selected_option_id,
            other_text=self.other_text,
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "question_id": self.question_id,
            "selected_option_id": self.selected_option_id,
            "other_text": self.other_text,
        }

    @classmethod
    def from_row(cls, row: dict) -> "AnswerRow":
        selected = row.get("selected_option_id")
        return cls(
            user_id=str(row["user_id"]),
            question_id=str(row["question_id"]),
            selected_option_id=str(selected) if selected else None,
            other_text=row.get("other_text"),
        )


@dataclass
class CompletionStatus:
    """Presence of this row means the user finished their question set."""
    user_id: str
    completed_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "CompletionStatus":
        return cls(user_id=str(row["user_id"]), completed_at=row.get("completed_at"))
