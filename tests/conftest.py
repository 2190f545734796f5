from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Iterator
from typing import Any, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from batchwriter.columns import TableInfo
from batchwriter.models import ExecutionResult

# first bind slot of every VALUES tuple
_TUPLE_START = re.compile(r"\((?:\?|%s|:\d+|DEFAULT)")


class RecordingExecutor:
    """
    Stand-in execution collaborator: records statements instead of running them.

    Returned keys are consecutive integers starting at ``first_key``.
    """

    engine = None

    def __init__(self, first_key: int = 1) -> None:
        self.statements: list[tuple[str, tuple[Any, ...], bool]] = []
        self.next_key = first_key
        self.error: Exception | None = None

    def execute_insert(
        self,
        sql: str,
        parameters: Sequence[Any] = (),
        returning: bool = False,
    ) -> ExecutionResult:
        self.statements.append((sql, tuple(parameters), returning))
        if self.error is not None:
            raise self.error

        rows = len(_TUPLE_START.findall(sql.split(" VALUES ", 1)[1]))
        keys = None
        if returning:
            keys = tuple(range(self.next_key, self.next_key + rows))
            self.next_key += rows
        return ExecutionResult(affected_row_count=rows, returned_keys=keys)


class TickingClock:
    """Returns a new value on every call, so separate batches are distinguishable."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        return f"tick-{self.calls}"


@pytest.fixture
def executor_factory() -> Callable[[], RecordingExecutor]:
    return RecordingExecutor


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def books() -> TableInfo:
    """
    Metadata for a typical table:
    - auto-increment PK `id`
    - `pages` with a server-side default
    - creation/update timestamps
    """
    return TableInfo(
        name="books",
        columns=("id", "title", "author", "pages", "created_at", "updated_at"),
        primary_key_columns=("id",),
        server_defaults=frozenset({"id", "pages"}),
        timestamp_columns=frozenset({"created_at", "updated_at"}),
    )


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    """
    Per-test SQLite engine backed by a file, so every connection sees the same data.
    """
    eng = create_engine(f"sqlite:///{tmp_path / 'batchwriter.db'}")
    yield eng
    eng.dispose()


def _sanitize_table_name(name: str) -> str:
    name = re.sub(r"[^a-zA-Z0-9_]+", "_", name).strip("_").lower()
    if not name:
        name = "t"
    return name[:48]


@pytest.fixture
def table_factory(engine: Engine, request: pytest.FixtureRequest) -> Callable[[str], str]:
    """
    Factory fixture creating per-test tables.

    Usage:
        table = table_factory("id INTEGER PRIMARY KEY, value INT NOT NULL")
    """

    def _create(schema_sql: str) -> str:
        base = _sanitize_table_name(f"t_{request.node.name}")
        table = f"{base}_{uuid.uuid4().hex[:10]}"
        with engine.begin() as conn:
            conn.exec_driver_sql(f'CREATE TABLE "{table}" ({schema_sql})')
        return table

    return _create


@pytest.fixture
def books_table(table_factory: Callable[[str], str]) -> str:
    """
    A SQLite `books` table matching the ``books`` metadata fixture.
    """
    return table_factory(
        """
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL UNIQUE,
        author TEXT,
        pages INTEGER DEFAULT 0,
        created_at TEXT,
        updated_at TEXT
        """
    )
