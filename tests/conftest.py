"""Shared pytest fixtures.

Provides:
- Scripted terminal that feeds keys to the session controller
- In-memory stand-ins for the database gateway and SQL generator
- File-based SQLite database with sample tables
"""

import sqlite3
import sys
from pathlib import Path
from typing import List, Optional

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.database import ConnectionInfo, QueryResult  # noqa: E402
from core.errors import DatabaseError, GenerationError  # noqa: E402
from core.generator import Provider  # noqa: E402
from ui.keymap import KeyPress  # noqa: E402


# ============================================================================
# Key helpers
# ============================================================================


def press(key: str) -> KeyPress:
    """Single key; printable one-character keys carry their character."""
    if len(key) == 1:
        return KeyPress(key=key, char=key)
    return KeyPress(key=key)


def type_keys(text: str) -> List[KeyPress]:
    return [KeyPress(key=c, char=c) for c in text]


class ScriptedTerminal:
    """Terminal that replays a key script, then asks to quit."""

    def __init__(self, keys: List[KeyPress]):
        self.keys = list(keys)
        self.frames = 0
        self.sessions = []

    def draw(self, session) -> None:
        self.frames += 1
        self.sessions.append(session)

    async def poll(self, timeout: float) -> Optional[KeyPress]:
        if self.keys:
            return self.keys.pop(0)
        return KeyPress(key="ctrl+c")


# ============================================================================
# Gateway / generator stand-ins
# ============================================================================


class FakeDatabase:
    """Records calls; returns canned results or raises canned errors."""

    def __init__(
            self,
            url: str = "postgres://user@db.local:5432/shop",
            result: Optional[QueryResult] = None,
            error: Optional[str] = None,
            schema: str = "TABLE users (\n  id integer\n  name text\n)",
            plan: str = "Seq Scan on users",
    ):
        self.info = ConnectionInfo.parse(url)
        self.result = result or QueryResult(
            columns=["id", "name"], rows=[[1, "ada"], [2, None]], row_count=2, elapsed_ms=3,
        )
        self.error = error
        self._schema = schema
        self.plan = plan
        self.executed: List[str] = []
        self.explained: List[str] = []
        self.closed = False

    @property
    def database(self) -> str:
        return self.info.database

    @property
    def dialect_name(self) -> str:
        return self.info.dialect.value

    def execute(self, sql: str) -> QueryResult:
        self.executed.append(sql)
        if self.error:
            raise DatabaseError(self.error)
        return self.result

    def explain(self, sql: str) -> str:
        self.explained.append(sql)
        return self.plan

    def schema(self) -> str:
        return self._schema

    def close(self):
        self.closed = True


class FakeGenerator:
    """Returns queued SQL strings in order, or raises GenerationError."""

    def __init__(self, *responses: str, error: Optional[str] = None,
                 provider: Provider = Provider.CLAUDE, model: str = "test-model"):
        self.responses = list(responses)
        self.error = error
        self.provider = provider
        self.model = model
        self.requests: List[tuple] = []

    async def generate(self, prompt: str, schema: str) -> str:
        self.requests.append((prompt, schema))
        if self.error:
            raise GenerationError(self.error)
        return self.responses.pop(0)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def sqlite_file(tmp_path) -> Path:
    """SQLite file with two small tables."""
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, email TEXT);
        CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER, total REAL);
        INSERT INTO users (name, email) VALUES ('ada', 'ada@example.com');
        INSERT INTO users (name, email) VALUES ('linus', NULL);
        INSERT INTO orders (user_id, total) VALUES (1, 9.5);
        """
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def sqlite_url(sqlite_file) -> str:
    return f"sqlite://{sqlite_file}"
