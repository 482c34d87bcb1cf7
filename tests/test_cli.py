"""
Tests for the terminal client.
"""

from argparse import Namespace

import pytest

from pair_quiz.backends.memory import DEMO_EDITIONS, DEMO_HER_EMAIL, create_demo_backend
from pair_quiz.backends.supabase import SupabaseBackend
from pair_quiz.cli import (
    _make_backend,
    _sign_in,
    format_question,
    format_results_terminal,
    run_quiz,
    show_results,
)
from pair_quiz.config import Config
from pair_quiz.engine import QuizEngine, QuizStatus
from pair_quiz.models import User
from pair_quiz.results import ResultsState, ResultsStatus


HER = User(id="user-her", email=DEMO_HER_EMAIL)


def scripted(*answers):
    """Ask function that replays fixed input lines."""
    lines = iter(answers)

    async def ask(prompt: str) -> str:
        return next(lines)

    return ask


@pytest.fixture
def backend():
    backend = create_demo_backend(partner_complete=True)
    backend.act_as(HER)
    return backend


class TestRunQuiz:
    """Tests for the interactive wizard."""

    @pytest.mark.asyncio
    async def test_full_run(self, backend, capsys):
        """Test answering every question and submitting."""
        engine = QuizEngine(backend, assignments=DEMO_EDITIONS)
        await engine.load()

        submitted = await run_quiz(engine, scripted("1", "n", "2", "n", "4", "a beach", "s"))

        assert submitted is True
        assert engine.state.status == QuizStatus.COMPLETE
        saved = {r["question_id"]: r for r in backend.tables["answers"] if r["user_id"] == HER.id}
        assert saved["her-3"]["other_text"] == "a beach"
        assert "Question 1 of 3" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_next_without_answer(self, backend, capsys):
        """Test Next on an unanswered question shows an error."""
        engine = QuizEngine(backend, assignments=DEMO_EDITIONS)
        await engine.load()

        assert await run_quiz(engine, scripted("n", "q")) is False
        assert "! Answer this question first." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_out_of_range(self, backend, capsys):
        """Test invalid option numbers are rejected."""
        engine = QuizEngine(backend, assignments=DEMO_EDITIONS)
        await engine.load()

        await run_quiz(engine, scripted("9", "q"))
        assert "! Choose a number between 1 and 4." in capsys.readouterr().out


class TestFormatting:
    """Tests for terminal formatting."""

    @pytest.mark.asyncio
    async def test_format_question(self, backend):
        """Test the question view marks the selection."""
        engine = QuizEngine(backend, assignments=DEMO_EDITIONS)
        state = await engine.load()
        engine.select_option("her-1", "her-1-b")
        await engine.aclose()

        output = format_question(state)
        assert "● B: A live music bar" in output
        assert "○ Other" in output

    def test_waiting(self):
        """Test the waiting box."""
        output = format_results_terminal(ResultsState(status=ResultsStatus.WAITING))

        assert "WAITING" in output

    @pytest.mark.asyncio
    async def test_show_results(self, backend, capsys):
        """Test results print once both have finished."""
        engine = QuizEngine(backend, assignments=DEMO_EDITIONS)
        await engine.load()
        await run_quiz(engine, scripted("1", "n", "1", "n", "1", "s"))
        capsys.readouterr()

        state = await show_results(backend, poll_interval=0.01)

        output = capsys.readouterr().out
        assert state.status == ResultsStatus.REVEALED
        assert "RESULTS" in output
        assert "MATCH" in output
        assert "2 of 3 answers matched" in output


class TestMakeBackend:
    """Tests for backend selection from flags and config."""

    def test_mock_flag(self):
        """Test --mock picks the demo backend and its editions."""
        backend, assignments = _make_backend(Namespace(mock=True), Config())

        assert backend.name == "memory"
        assert assignments == DEMO_EDITIONS

    @pytest.mark.asyncio
    async def test_memory_from_config(self):
        """Test PAIR_QUIZ_BACKEND=memory behaves like --mock, demo sign-in included."""
        cfg = Config()
        cfg.backend.name = "memory"
        backend, assignments = _make_backend(Namespace(mock=False), cfg)

        assert assignments == DEMO_EDITIONS
        args = Namespace(mock=False, email=None, password=None)
        assert await _sign_in(backend, args) is True
        assert (await backend.get_current_user()).id == HER.id

    def test_supabase_uses_config(self):
        """Test Supabase settings come from the config object."""
        cfg = Config()
        cfg.backend.name = "supabase"
        cfg.supabase.url = "https://demo.supabase.co/"
        cfg.supabase.anon_key = "anon-from-config"
        cfg.supabase.timeout_seconds = 3.0

        backend, assignments = _make_backend(Namespace(mock=False), cfg)

        assert isinstance(backend, SupabaseBackend)
        assert assignments is None
        assert backend._url == "https://demo.supabase.co"
        assert backend._anon_key == "anon-from-config"
        assert backend._timeout == 3.0

    def test_unknown_backend(self):
        """Test an unknown backend name is rejected."""
        cfg = Config()
        cfg.backend.name = "sqlite"

        with pytest.raises(ValueError, match="Unknown backend"):
            _make_backend(Namespace(mock=False), cfg)
