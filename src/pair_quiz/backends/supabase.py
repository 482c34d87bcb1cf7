"""
Supabase backend implementation

Talks to GoTrue (auth) and PostgREST (tables) over their REST APIs.
Row-level security policies on the project decide which rows a user sees.
"""

import logging
import os
from typing import Any, Optional, Sequence

import httpx

from ..models import User
from .base import AuthenticationError, Backend, Filters, StoreError

logger = logging.getLogger(__name__)


def _quote(value: Any) -> str:
    # PostgREST list items are double-quoted with backslash escapes
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _format_filter(value: Any) -> str:
    """PostgREST operator syntax for a filter value."""
    if isinstance(value, (list, tuple, set)):
        items = ",".join(_quote(v) for v in value)
        return f"in.({items})"
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"is.{str(value).lower()}"
    return f"eq.{value}"


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of a GoTrue/PostgREST error body."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.reason_phrase}"

    if isinstance(data, dict):
        for key in ("message", "msg", "error_description", "error"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {response.status_code}: {response.reason_phrase}"


class SupabaseBackend(Backend):
    """
    Supabase project client.

    Credentials are read from:
    1. Constructor arguments
    2. SUPABASE_URL / SUPABASE_ANON_KEY environment variables
    """

    def __init__(
        self,
        url: Optional[str] = None,
        anon_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Supabase backend.

        Args:
            url: Project URL (falls back to env var)
            anon_key: Public anon key (falls back to env var)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._url = (url or os.getenv("SUPABASE_URL") or "").rstrip("/")
        self._anon_key = anon_key or os.getenv("SUPABASE_ANON_KEY")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._access_token: Optional[str] = None
        self._user: Optional[User] = None

    @property
    def name(self) -> str:
        return "supabase"

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            if not self._url:
                raise AuthenticationError(
                    "No Supabase URL provided. Set SUPABASE_URL or pass url to constructor."
                )
            if not self._anon_key:
                raise AuthenticationError(
                    "No Supabase anon key provided. Set SUPABASE_ANON_KEY or pass anon_key to constructor."
                )
            self._client = httpx.AsyncClient(
                base_url=self._url,
                headers={
                    "apikey": self._anon_key,
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _auth_headers(self) -> dict:
        token = self._access_token or self._anon_key
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = self._get_client()
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        try:
            return await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"Connection error: {e}") from e

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def get_current_user(self) -> Optional[User]:
        if not self._access_token:
            return None

        response = await self._request("GET", "/auth/v1/user")
        if response.status_code in (401, 403):
            logger.debug("Session token rejected, treating as signed out")
            self._access_token = None
            self._user = None
            return None
        if response.is_error:
            raise StoreError(_error_message(response))

        self._user = User.from_dict(response.json())
        return self._user

    async def sign_in(self, email: str, password: str) -> User:
        try:
            response = await self._request(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except StoreError as e:
            raise AuthenticationError(str(e)) from e

        if response.is_error:
            raise AuthenticationError(_error_message(response))

        data = response.json()
        self._access_token = data.get("access_token")
        self._user = User.from_dict(data["user"])
        logger.debug(f"Signed in as {self._user.id}")
        return self._user

    async def sign_out(self) -> None:
        if self._access_token:
            try:
                response = await self._request("POST", "/auth/v1/logout")
                if response.is_error:
                    logger.warning(f"Sign-out request failed: {_error_message(response)}")
            finally:
                self._access_token = None
                self._user = None

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
        params = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = _format_filter(value)
        if order:
            params["order"] = f"{order}.asc"

        response = await self._request("GET", f"/rest/v1/{table}", params=params)
        if response.is_error:
            raise StoreError(_error_message(response))
        return response.json()

    async def insert(self, table: str, rows: Sequence[dict]) -> None:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=list(rows),
            headers={"Prefer": "return=minimal"},
        )
        if response.is_error:
            raise StoreError(_error_message(response))

    async def upsert(self, table: str, row: dict, on_conflict: Sequence[str]) -> None:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": ",".join(on_conflict)},
            json=[row],
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        if response.is_error:
            raise StoreError(_error_message(response))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
