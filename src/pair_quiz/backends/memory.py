"""
In-memory backend for testing and demos

Keeps every table in a dict of lists and emulates the hosted project's
row-level policies, so the engine sees the same visibility rules offline.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from ..editions import Edition
from ..models import User
from .base import AuthenticationError, Backend, Filters, StoreError


TABLES = ("questions", "question_options", "answers", "completion_status")

# Tables whose rows belong to a user_id and are guarded by the policies below
OWNED_TABLES = ("answers", "completion_status")

PRIMARY_KEYS = {
    "questions": ("id",),
    "question_options": ("id",),
    "answers": ("user_id", "question_id"),
    "completion_status": ("user_id",),
}


@dataclass
class _Account:
    user: User
    password: str


def _matches(row: dict, filters: Optional[Filters]) -> bool:
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            if row.get(column) not in value:
                return False
        elif row.get(column) != value:
            return False
    return True


class InMemoryBackend(Backend):
    """
    Dict-backed identity provider and data store.

    Visibility mirrors the production policies:
    - questions and options are readable by anyone signed in
    - a user reads their own answers/completion rows
    - once a user's completion row exists they read everyone's rows
    - writes to owned tables must carry the writer's own user_id
    """

    def __init__(self, latency: float = 0.0):
        """
        Initialize an empty backend.

        Args:
            latency: Seconds to sleep inside every table call
        """
        self.tables: dict[str, list[dict]] = {t: [] for t in TABLES}
        self.latency = latency
        # (operation, table) pairs that raise StoreError, e.g. ("upsert", "answers")
        self.fail_on: set[tuple[str, str]] = set()
        # Every table call in order, as (operation, table)
        self.calls: list[tuple[str, str]] = []
        self._accounts: dict[str, _Account] = {}
        self._current: Optional[User] = None

    @property
    def name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def add_user(self, email: str, password: str, user_id: Optional[str] = None) -> User:
        """Register an account and return its user."""
        user = User(id=user_id or str(uuid.uuid4()), email=email)
        self._accounts[email.lower()] = _Account(user=user, password=password)
        return user

    def seed(self, table: str, rows: Sequence[dict]) -> None:
        """Insert rows directly, bypassing policies."""
        self.tables[table].extend(dict(r) for r in rows)

    def act_as(self, user: Optional[User]) -> None:
        """Switch the signed-in user without a password."""
        self._current = user

    def count_calls(self, operation: str, table: Optional[str] = None) -> int:
        return sum(
            1 for op, t in self.calls
            if op == operation and (table is None or t == table)
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def get_current_user(self) -> Optional[User]:
        return self._current

    async def sign_in(self, email: str, password: str) -> User:
        account = self._accounts.get(email.lower())
        if account is None or account.password != password:
            raise AuthenticationError("Invalid login credentials")
        self._current = account.user
        return account.user

    async def sign_out(self) -> None:
        self._current = None

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def _has_completed(self, user_id: str) -> bool:
        return any(r["user_id"] == user_id for r in self.tables["completion_status"])

    def _can_read(self, table: str, row: dict) -> bool:
        if self._current is None:
            return False
        if table not in OWNED_TABLES:
            return True
        if row.get("user_id") == self._current.id:
            return True
        return self._has_completed(self._current.id)

    def _check_write(self, table: str, row: dict) -> None:
        if table not in OWNED_TABLES:
            raise StoreError(f"permission denied for table {table}")
        if self._current is None or row.get("user_id") != self._current.id:
            raise StoreError(
                f'new row violates row-level security policy for table "{table}"'
            )

    async def _enter(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        if table not in self.tables:
            raise StoreError(f'relation "{table}" does not exist')
        if (operation, table) in self.fail_on:
            raise StoreError(f"Simulated {operation} failure on {table}")

    def _find(self, table: str, row: dict, key: Sequence[str]) -> Optional[dict]:
        for existing in self.tables[table]:
            if all(existing.get(c) == row.get(c) for c in key):
                return existing
        return None

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
    ) -> list[dict]:
        await self._enter("select", table)

        rows = [
            dict(r) for r in self.tables[table]
            if self._can_read(table, r) and _matches(r, filters)
        ]
        if order:
            rows.sort(key=lambda r: r.get(order))
        return rows

    async def insert(self, table: str, rows: Sequence[dict]) -> None:
        await self._enter("insert", table)

        key = PRIMARY_KEYS[table]
        for row in rows:
            self._check_write(table, row)
            if self._find(table, row, key) is not None:
                raise StoreError(
                    f'duplicate key value violates unique constraint "{table}_pkey"'
                )

        for row in rows:
            stored = dict(row)
            if table == "completion_status":
                stored.setdefault("completed_at", datetime.now(timezone.utc).isoformat())
            self.tables[table].append(stored)

    async def upsert(self, table: str, row: dict, on_conflict: Sequence[str]) -> None:
        await self._enter("upsert", table)
        self._check_write(table, row)

        existing = self._find(table, row, on_conflict)
        if existing is not None:
            existing.update(row)
        else:
            self.tables[table].append(dict(row))


# =============================================================================
# DEMO DATA
# =============================================================================

DEMO_PASSWORD = "demo"
DEMO_HER_EMAIL = "her@example.com"
DEMO_HIS_EMAIL = "his@example.com"

DEMO_EDITIONS = {
    DEMO_HER_EMAIL: Edition.HER,
    DEMO_HIS_EMAIL: Edition.HIS,
}

# (order_num, title, emoji, her scenario, his scenario, options a-c)
DEMO_QUESTIONS = [
    (
        1, "Date Night", "🕯️",
        "He plans a surprise night out. Where would you love to end up?",
        "You are planning a surprise night out for her. Where do you take her?",
        ["A candlelit dinner", "A live music bar", "A long walk by the water"],
    ),
    (
        2, "Lazy Sunday", "☕",
        "It's Sunday morning and nothing is planned. What does he do first?",
        "It's Sunday morning and nothing is planned. What do you do first?",
        ["Make breakfast in bed", "Drag you out for brunch", "Stay under the covers"],
    ),
    (
        3, "Getaway", "✈️",
        "You win a weekend away. Which trip would he pick?",
        "You win a weekend away. Which trip do you pick?",
        ["A cabin in the mountains", "A city break", "A beach resort"],
    ),
]


def demo_rows() -> tuple[list[dict], list[dict]]:
    """Question and option rows for both editions."""
    questions = []
    options = []

    for order_num, title, emoji, her_text, his_text, choices in DEMO_QUESTIONS:
        for edition, scenario in ((Edition.HER, her_text), (Edition.HIS, his_text)):
            question_id = f"{edition.value}-{order_num}"
            questions.append({
                "id": question_id,
                "edition": edition.value,
                "order_num": order_num,
                "title": title,
                "scenario": scenario,
                "intensity": "mild",
                "intensity_emoji": emoji,
            })
            for i, choice in enumerate(choices):
                label = "abcdefgh"[i].upper()
                options.append({
                    "id": f"{question_id}-{label.lower()}",
                    "question_id": question_id,
                    "label": label,
                    "option_text": choice,
                    "is_other": False,
                    "order_num": i + 1,
                })
            options.append({
                "id": f"{question_id}-other",
                "question_id": question_id,
                "label": "Other",
                "option_text": "Something else",
                "is_other": True,
                "order_num": len(choices) + 1,
            })

    return questions, options


def create_demo_backend(partner_complete: bool = True, **kwargs) -> InMemoryBackend:
    """
    Build a backend seeded with two accounts and both editions.

    Args:
        partner_complete: Pre-fill answers and completion for the "his" account
        **kwargs: Passed to InMemoryBackend

    Returns:
        Seeded InMemoryBackend (nobody signed in)
    """
    backend = InMemoryBackend(**kwargs)
    backend.add_user(DEMO_HER_EMAIL, DEMO_PASSWORD, user_id="user-her")
    partner = backend.add_user(DEMO_HIS_EMAIL, DEMO_PASSWORD, user_id="user-his")

    questions, options = demo_rows()
    backend.seed("questions", questions)
    backend.seed("question_options", options)

    if partner_complete:
        answers = []
        for order_num, *_ in DEMO_QUESTIONS:
            question_id = f"{Edition.HIS.value}-{order_num}"
            label = "a" if order_num % 2 else "b"
            answers.append({
                "user_id": partner.id,
                "question_id": question_id,
                "selected_option_id": f"{question_id}-{label}",
                "other_text": None,
            })
        backend.seed("answers", answers)
        backend.seed("completion_status", [{
            "user_id": partner.id,
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }])

    return backend
