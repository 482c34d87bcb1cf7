"""
Tests for quiz records and answer drafts.
"""

from pair_quiz.editions import Edition
from pair_quiz.models import AnswerDraft, AnswerKind, AnswerRow, Question, QuestionOption


class TestAnswerDraft:
    """Tests for the draft answer variant."""

    def test_unanswered(self):
        """Test an empty draft has no selection."""
        draft = AnswerDraft(question_id="q1")

        assert draft.kind == AnswerKind.UNANSWERED
        assert draft.has_selection is False

    def test_selected_option(self):
        """Test a selected option."""
        draft = AnswerDraft(question_id="q1", selected_option_id="o1")

        assert draft.kind == AnswerKind.SELECTED_OPTION
        assert draft.has_selection is True

    def test_blank_free_text_is_answered(self):
        """Test empty-string free text counts as an answer."""
        draft = AnswerDraft(question_id="q1", other_text="")

        assert draft.kind == AnswerKind.FREE_TEXT
        assert draft.has_selection is True

    def test_to_row_never_populates_both(self):
        """Test rows carry exactly one answer field."""
        both = AnswerDraft(question_id="q1", selected_option_id="o1", other_text="stale")
        row = both.to_row("u1")

        assert row == {
            "user_id": "u1",
            "question_id": "q1",
            "selected_option_id": "o1",
            "other_text": None,
        }

    def test_free_text_row(self):
        """Test free text rows clear the option id."""
        row = AnswerDraft(question_id="q1", other_text="picnic").to_row("u1")

        assert row["selected_option_id"] is None
        assert row["other_text"] == "picnic"


class TestRows:
    """Tests for parsing store rows."""

    def test_question_from_row(self):
        """Test question parsing and display text."""
        q = Question.from_row({
            "id": 7, "edition": "his", "order_num": "3",
            "title": "Getaway", "scenario": "Pick a trip", "text": None,
        })

        assert q.id == "7"
        assert q.edition == Edition.HIS
        assert q.order_num == 3
        assert q.display_text == "Pick a trip"
        assert q.to_dict()["edition"] == "his"

    def test_option_display(self):
        """Test option formatting."""
        opt = QuestionOption.from_row({
            "id": "o1", "question_id": "q1", "label": "B", "option_text": "A city break",
        })

        assert opt.display_text == "B: A city break"
        assert opt.is_other is False

    def test_answer_row_to_draft(self):
        """Test rows become drafts with the same meaning."""
        row = AnswerRow.from_row({
            "user_id": "u1", "question_id": "q1", "selected_option_id": None, "other_text": "",
        })

        assert row.kind == AnswerKind.FREE_TEXT
        assert row.to_draft().has_selection is True

    def test_empty_answer_row(self):
        """Test a row with both fields empty is unanswered."""
        row = AnswerRow.from_row({"user_id": "u1", "question_id": "q1"})

        assert row.kind == AnswerKind.UNANSWERED
        assert row.to_draft().has_selection is False
