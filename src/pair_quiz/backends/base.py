"""
Base protocol for identity and data backends

Defines the interface every backend must implement. Row-level visibility is
the backend's job; callers never filter rows for authorization themselves.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from ..models import User


class BackendError(Exception):
    """Base exception for backend errors. The message is shown to the user."""
    pass


class AuthenticationError(BackendError):
    """Sign-in failed or credentials are missing."""
    pass


class StoreError(BackendError):
    """A data store read or write failed."""
    pass


# Filter values: a scalar means equality, a list/tuple means membership.
Filters = dict[str, Any]


class IdentityProvider(ABC):
    """Authenticates a participant and reports who is signed in."""

    @abstractmethod
    async def get_current_user(self) -> Optional[User]:
        """Currently signed-in user, or None."""
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> User:
        """
        Sign in with email and password.

        Raises:
            AuthenticationError: With the provider's message on failure
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """Forget the current session."""
        pass


class DataStore(ABC):
    """Filtered reads and row writes against named tables."""

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
    ) -> list[dict]:
        """
        Read the rows of a table visible to the current user.

        Args:
            table: Table name
            filters: Column filters (scalar = equality, list = membership)
            order: Column to sort ascending by

        Raises:
            StoreError: On any read failure
        """
        pass

    @abstractmethod
    async def insert(self, table: str, rows: Sequence[dict]) -> None:
        """
        Insert rows.

        Raises:
            StoreError: On constraint, policy or transport failure
        """
        pass

    @abstractmethod
    async def upsert(self, table: str, row: dict, on_conflict: Sequence[str]) -> None:
        """
        Insert a row, or overwrite the existing row sharing the conflict key.

        Raises:
            StoreError: On policy or transport failure
        """
        pass


class Backend(IdentityProvider, DataStore):
    """Auth and tables behind one client, the way hosted backends ship them."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'supabase', 'memory')."""
        pass

    async def aclose(self) -> None:
        """Release network resources. Default is a no-op."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
