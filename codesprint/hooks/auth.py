"""Fake auth service — development stub for AuthService.

Accepts any non-empty token and returns a configurable test user. Empty
tokens return None (simulates a missing/invalid Authorization header).

TEAM: Replace this with your real auth provider (OAuth, JWT, etc.).
Subclass AuthService from codesprint.hooks.interfaces and implement
validate_token and get_user.

Usage:
    from codesprint.hooks.auth import FakeAuthService

    auth = FakeAuthService()                        # default: member
    auth = FakeAuthService(default_role="admin")    # may synthesize tracks
"""

from codesprint.hooks.interfaces import AuthService
from codesprint.schemas import User

_ROLE_NAMES: dict[str, str] = {
    "member": "Test Member",
    "moderator": "Test Moderator",
    "admin": "Test Admin",
}


class FakeAuthService(AuthService):
    """STUB — returns a test user for any non-empty token.

    TEAM: Replace with your auth provider.
    """

    def __init__(self, default_role: str = "member", user_id: str = "fake-user-1") -> None:
        """Initialises the fake auth service.

        Args:
            default_role: Role of every returned user. Must be "member",
                "moderator" or "admin".
            user_id: ID returned by validate_token.
        """
        self._default_role = default_role
        self._user_id = user_id

    def _user(self, user_id: str) -> User:
        return User(
            id=user_id,
            role=self._default_role,  # type: ignore[arg-type]
            name=_ROLE_NAMES.get(self._default_role, "Test User"),
        )

    async def validate_token(self, token: str) -> User | None:
        if not token:
            return None
        return self._user(self._user_id)

    async def get_user(self, user_id: str) -> User | None:
        if not user_id:
            return None
        return self._user(user_id)
