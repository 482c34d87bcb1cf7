"""
pair-quiz: two-person relationship quiz with a side-by-side reveal.

Each participant answers their own edition of the questions; once both have
finished, answers are compared by order number and matches are highlighted.
"""

__version__ = "0.1.0"

from .config import config
from .editions import Edition, get_edition_for_email
from .models import AnswerDraft, AnswerKind, AnswerRow, Question, QuestionOption, Route, User
from .engine import QuizEngine, QuizState, QuizStatus
from .results import (
    ResultsAggregator,
    ResultsState,
    ResultsStatus,
    ComparisonCard,
    build_comparison,
)

__all__ = [
    # Config
    "config",
    # Editions
    "Edition",
    "get_edition_for_email",
    # Records
    "AnswerDraft",
    "AnswerKind",
    "AnswerRow",
    "Question",
    "QuestionOption",
    "Route",
    "User",
    # Quiz
    "QuizEngine",
    "QuizState",
    "QuizStatus",
    # Results
    "ResultsAggregator",
    "ResultsState",
    "ResultsStatus",
    "ComparisonCard",
    "build_comparison",
]
