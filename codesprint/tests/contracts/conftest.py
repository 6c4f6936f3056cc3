"""Fixtures for contract tests — one parameterized fixture per hook interface.

Each fixture yields a fresh implementation instance. The database fixture
runs every contract against both the in-memory stub ("stub") and SqlStore
on a throwaway SQLite file ("sql").

TEAM: To test your implementation against the contracts:
    1. Add your param string (e.g., "postgres") to the params list.
    2. Add an elif branch that yields your implementation instance.
    3. Run: python -m pytest codesprint/tests/contracts/ -v
    All tests should pass. If any fail, your implementation doesn't satisfy
    the contract — read the failing test's docstring for what's expected.

Uses @pytest_asyncio.fixture (not @pytest.fixture) for async fixture support
in strict mode.
"""

from datetime import date

import pytest
import pytest_asyncio

from codesprint.hooks.auth import FakeAuthService
from codesprint.hooks.database import InMemoryStore
from codesprint.hooks.sqlstore import SqlStore
from codesprint.schemas import LessonContent, SprintCard

CONTRACT_DAY = date(2026, 3, 10)


# ---------------------------------------------------------------------------
# Interface fixtures (parameterized)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(params=["stub"])
async def auth_service(request):
    """Yields an AuthService implementation."""
    if request.param == "stub":
        yield FakeAuthService()


@pytest_asyncio.fixture(params=["stub", "sql"])
async def database(request, tmp_path):
    """Yields a DatabaseAdapter implementation.

    The SQL variant uses a file rather than ``:memory:`` because every
    pooled connection to an in-memory SQLite database sees its own empty
    database.
    """
    if request.param == "stub":
        yield InMemoryStore()
    elif request.param == "sql":
        store = SqlStore(f"sqlite+aiosqlite:///{tmp_path}/contract.db")
        await store.create_all()
        yield store
        await store.dispose()


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_cards() -> list[SprintCard]:
    return [
        SprintCard(
            title="Tuples",
            content="Are tuples mutable?",
            type="quiz",
            options=["Yes", "No"],
            correct_answer=1,
        ),
        SprintCard(title="Walrus", content="Assignment expressions exist.", type="info"),
    ]


@pytest.fixture
def sample_lesson_content() -> LessonContent:
    return LessonContent(text="Names are bound to objects.", code="x = 1")
