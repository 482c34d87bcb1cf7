"""
Sign-in flow and route guarding

Decides where a request should be sent based on whether anyone is signed in.
"""

from dataclasses import dataclass
from typing import Optional

from .backends.base import AuthenticationError, IdentityProvider
from .models import Route, User


@dataclass
class SignInResult:
    """Outcome of a sign-in attempt."""
    user: Optional[User] = None
    error: Optional[str] = None
    redirect: Optional[Route] = None

    @property
    def ok(self) -> bool:
        return self.user is not None


def route_request(user: Optional[User], path: str) -> Optional[Route]:
    """
    Guard a request path.

    Args:
        user: Signed-in user, if any
        path: Requested path

    Returns:
        Route to redirect to, or None to let the request through
    """
    on_login = path.startswith(Route.LOGIN.value)

    if user is None and not on_login:
        return Route.LOGIN
    if user is not None and on_login:
        return Route.QUIZ
    return None


async def sign_in(identity: IdentityProvider, email: str, password: str) -> SignInResult:
    """Sign in and report the provider's message on failure."""
    try:
        user = await identity.sign_in(email, password)
    except AuthenticationError as e:
        return SignInResult(error=str(e))
    return SignInResult(user=user, redirect=Route.QUIZ)


async def sign_out(identity: IdentityProvider) -> Route:
    await identity.sign_out()
    return Route.LOGIN
