"""
Edition assignment

Each participant answers one of two fixed question sets. Which one is decided
by their login email alone.
"""

from enum import Enum
from typing import Optional


class Edition(str, Enum):
    """The two question sets."""
    HER = "her"
    HIS = "his"


def parse_edition_map(raw: str) -> dict[str, Edition]:
    """
    Parse an edition map of the form ``"a@x.com=her,b@y.com=his"``.

    Args:
        raw: Comma separated ``email=edition`` pairs (blank entries ignored)

    Returns:
        Dict mapping lower-cased email to Edition

    Raises:
        ValueError: If an entry is malformed or names an unknown edition
    """
    assignments: dict[str, Edition] = {}

    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue

        email, sep, edition = entry.partition("=")
        if not sep or not email.strip():
            raise ValueError(f"Invalid edition assignment: {entry!r}")

        try:
            assignments[email.strip().lower()] = Edition(edition.strip().lower())
        except ValueError:
            valid = [e.value for e in Edition]
            raise ValueError(
                f"Unknown edition in {entry!r}. Valid options: {valid}"
            ) from None

    return assignments


def get_edition_for_email(
    email: Optional[str],
    assignments: Optional[dict[str, Edition]] = None,
) -> Optional[Edition]:
    """
    Resolve the edition assigned to an email.

    Args:
        email: The participant's login email (may be missing)
        assignments: Email to edition map (defaults to configured map)

    Returns:
        The assigned Edition, or None when the email is unassigned
    """
    if not email:
        return None

    if assignments is None:
        from .config import config
        assignments = config.editions.assignments

    return assignments.get(email.lower())
