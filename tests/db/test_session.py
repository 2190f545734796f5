from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError, ProgrammingError

from batchwriter.db.session import DbSession, EngineExecutor, _run_insert, translate_error
from batchwriter.errors import (
    ConnectionLostError,
    ConstraintViolationError,
    ExecutionError,
    SyntaxRejectedError,
)


def _count(engine, table: str) -> int:
    with DbSession(engine) as session:
        return session.fetch_all(f'SELECT COUNT(*) AS n FROM "{table}"')[0]["n"]


def test_transaction_commits_on_success(engine, books_table: str) -> None:
    with DbSession(engine) as session:
        result = session.execute_insert(
            f'INSERT INTO "{books_table}" ("title", "author") VALUES (?, ?), (?, ?)',
            ("Dune", "Herbert", "Emma", "Austen"),
        )
        assert result.affected_row_count == 2
        assert result.returned_keys is None

    assert _count(engine, books_table) == 2


def test_transaction_rolls_back_on_exception(engine, books_table: str) -> None:
    with pytest.raises(RuntimeError):
        with DbSession(engine) as session:
            session.execute_insert(f'INSERT INTO "{books_table}" ("title") VALUES (?)', ("Dune",))
            raise RuntimeError("boom")

    assert _count(engine, books_table) == 0


def test_connection_is_closed_after_exit(engine, books_table: str) -> None:
    with DbSession(engine) as session:
        conn = session._conn
        assert conn is not None

    assert conn.closed is True


def test_nested_usage_raises_runtime_error(engine) -> None:
    with DbSession(engine) as session:
        with pytest.raises(RuntimeError):
            with session:
                pass


def test_inactive_session_refuses_to_execute(engine, books_table: str) -> None:
    session = DbSession(engine)

    with pytest.raises(RuntimeError):
        session.execute_insert(f'INSERT INTO "{books_table}" ("title") VALUES (?)', ("Dune",))


def test_constraint_violation_is_translated(engine, books_table: str) -> None:
    with pytest.raises(ConstraintViolationError) as excinfo:
        with DbSession(engine) as session:
            session.execute_insert(
                f'INSERT INTO "{books_table}" ("title") VALUES (?), (?)', ("Dune", "Dune")
            )

    assert isinstance(excinfo.value.__cause__, IntegrityError)
    assert _count(engine, books_table) == 0


def test_syntax_error_is_translated(engine, books_table: str) -> None:
    with pytest.raises(SyntaxRejectedError):
        with DbSession(engine) as session:
            session.execute_insert(f'INSERTT INTO "{books_table}" ("title") VALUES (?)', ("Dune",))


def test_translate_error_taxonomy() -> None:
    orig = Exception("driver says no")

    assert isinstance(translate_error(IntegrityError("x", (), orig)), ConstraintViolationError)
    assert isinstance(translate_error(ProgrammingError("x", (), orig)), SyntaxRejectedError)
    assert isinstance(translate_error(OperationalError("x", (), orig)), ConnectionLostError)
    assert isinstance(
        translate_error(OperationalError("x", (), Exception('near "(": syntax error'))),
        SyntaxRejectedError,
    )
    assert isinstance(translate_error(DisconnectionError("gone")), ConnectionLostError)
    assert type(translate_error(RuntimeError("other"))) is ExecutionError


def test_engine_executor_commits_each_statement(engine, books_table: str) -> None:
    executor = EngineExecutor(engine)
    executor.execute_insert(f'INSERT INTO "{books_table}" ("title") VALUES (?)', ("Dune",))

    with pytest.raises(ConstraintViolationError):
        executor.execute_insert(
            f'INSERT INTO "{books_table}" ("title") VALUES (?), (?)', ("Emma", "Dune")
        )

    # the first statement committed on its own; the failing one rolled back whole
    assert _count(engine, books_table) == 1


def test_missing_rowcount_raises_execution_error() -> None:
    conn = MagicMock()
    conn.exec_driver_sql.return_value.rowcount = None

    with pytest.raises(ExecutionError):
        _run_insert(conn, 'INSERT INTO "books" ("title") VALUES (?)', ("Dune",), False)

    conn.exec_driver_sql.return_value.close.assert_called_once()
