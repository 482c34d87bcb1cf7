"""
Tests for sign-in and route guarding.
"""

import pytest

from pair_quiz.auth import route_request, sign_in, sign_out
from pair_quiz.backends.memory import DEMO_HER_EMAIL, DEMO_PASSWORD, create_demo_backend
from pair_quiz.models import Route, User


USER = User(id="user-her", email=DEMO_HER_EMAIL)


class TestRouteRequest:
    """Tests for the request guard."""

    def test_anonymous_sent_to_login(self):
        """Test anonymous requests redirect to login."""
        assert route_request(None, "/questions") == Route.LOGIN
        assert route_request(None, "/results") == Route.LOGIN

    def test_anonymous_on_login(self):
        """Test the login page is reachable signed out."""
        assert route_request(None, "/login") is None

    def test_signed_in_on_login(self):
        """Test signed-in users skip the login page."""
        assert route_request(USER, "/login") == Route.QUIZ

    def test_signed_in_elsewhere(self):
        """Test signed-in requests pass through."""
        assert route_request(USER, "/results") is None


class TestSignIn:
    """Tests for the sign-in flow."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test success redirects to the quiz."""
        result = await sign_in(create_demo_backend(), DEMO_HER_EMAIL, DEMO_PASSWORD)

        assert result.ok is True
        assert result.user.id == "user-her"
        assert result.redirect == Route.QUIZ

    @pytest.mark.asyncio
    async def test_failure(self):
        """Test failures carry the provider's message."""
        result = await sign_in(create_demo_backend(), DEMO_HER_EMAIL, "nope")

        assert result.ok is False
        assert result.error == "Invalid login credentials"
        assert result.redirect is None

    @pytest.mark.asyncio
    async def test_sign_out(self):
        """Test sign-out redirects to login."""
        backend = create_demo_backend()
        await sign_in(backend, DEMO_HER_EMAIL, DEMO_PASSWORD)

        assert await sign_out(backend) == Route.LOGIN
        assert await backend.get_current_user() is None
