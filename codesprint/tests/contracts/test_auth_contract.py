"""Behavioral contract tests for AuthService.

Non-empty token/user_id → User, empty → None. Real implementations will
validate JWTs, session cookies, etc. — but this behavioral boundary must hold.

Run against registered implementations:
    python -m pytest codesprint/tests/contracts/test_auth_contract.py -v
"""

import pytest

from codesprint.schemas import User


class TestAuthContract:
    """Behavioral contract for AuthService implementations."""

    # -- Token validation --------------------------------------------------

    @pytest.mark.asyncio
    async def test_valid_token_returns_user(self, auth_service) -> None:
        """Non-empty token must return a User with all fields populated."""
        user = await auth_service.validate_token("any-valid-token")
        assert isinstance(user, User)
        assert user.id
        assert user.name
        assert user.role in ("member", "moderator", "admin")

    @pytest.mark.asyncio
    async def test_empty_token_returns_none(self, auth_service) -> None:
        assert await auth_service.validate_token("") is None

    # -- User lookup -------------------------------------------------------

    @pytest.mark.asyncio
    async def test_get_user_returns_matching_id(self, auth_service) -> None:
        user = await auth_service.get_user("user-42")
        assert isinstance(user, User)
        assert user.id == "user-42"

    @pytest.mark.asyncio
    async def test_get_user_empty_id_returns_none(self, auth_service) -> None:
        assert await auth_service.get_user("") is None
