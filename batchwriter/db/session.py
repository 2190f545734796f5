from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
)

from ..errors import (
    ConnectionLostError,
    ConstraintViolationError,
    ExecutionError,
    SyntaxRejectedError,
)
from ..models import ExecutionResult

logger = logging.getLogger(__name__)


class InsertExecutor(Protocol):
    """
    Protocol for the collaborator that runs generated INSERT statements.

    Implementations own connection and transaction handling; the worker only
    hands over SQL text and positional parameters.
    """

    engine: Engine

    def execute_insert(
        self,
        sql: str,
        parameters: Sequence[Any] = (),
        returning: bool = False,
    ) -> ExecutionResult:
        """Run one INSERT and report affected rows (and returned keys)."""
        ...


def translate_error(exc: Exception) -> ExecutionError:
    """
    Map a SQLAlchemy failure onto the execution error taxonomy.
    """
    message = str(getattr(exc, "orig", None) or exc)
    if isinstance(exc, IntegrityError):
        return ConstraintViolationError(message)
    if isinstance(exc, ProgrammingError):
        return SyntaxRejectedError(message)
    if isinstance(exc, OperationalError):
        # sqlite reports parse failures as OperationalError
        if "syntax error" in message.lower():
            return SyntaxRejectedError(message)
        return ConnectionLostError(message)
    if isinstance(exc, (InterfaceError, DisconnectionError)):
        return ConnectionLostError(message)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return ConnectionLostError(message)
    return ExecutionError(message)


def _run_insert(
    conn: Connection,
    sql: str,
    parameters: Sequence[Any],
    returning: bool,
) -> ExecutionResult:
    try:
        result = conn.exec_driver_sql(sql, tuple(parameters))
        try:
            if returning:
                keys = tuple(row[0] for row in result)
                return ExecutionResult(affected_row_count=len(keys), returned_keys=keys)
            if result.rowcount is None:
                raise ExecutionError(
                    "execute_insert() received None rowcount for statement. "
                    "The driver did not report affected rows."
                )
            return ExecutionResult(affected_row_count=int(result.rowcount))
        finally:
            result.close()
    except (DBAPIError, DisconnectionError) as exc:
        raise translate_error(exc) from exc


class DbSession:
    """
    Transactional wrapper around a SQLAlchemy Engine connection.

    Every flush executed through the session shares one transaction, which
    commits on clean exit and rolls back when an exception escapes.

    Use as:
        with DbSession(engine) as session:
            with open_worker(session, "books") as worker:
                worker.add(...)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx = None

    def __enter__(self) -> "DbSession":
        if self._conn is not None:
            raise RuntimeError("DbSession is already active; nested sessions are not allowed")
        self._conn = self.engine.connect()
        self._tx = self._conn.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._tx is not None:
                if exc_type:
                    self._tx.rollback()
                else:
                    self._tx.commit()
        finally:
            if self._conn is not None:
                self._conn.close()

            self._conn = None
            self._tx = None

        # propagate exceptions (if any)
        return False

    def _connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("DbSession is not active; use within a context manager")
        return self._conn

    def execute_insert(
        self,
        sql: str,
        parameters: Sequence[Any] = (),
        returning: bool = False,
    ) -> ExecutionResult:
        """
        Execute a generated INSERT inside the session transaction.

        Raises:
            ExecutionError: Translated driver failure (constraint, connection, syntax)
        """
        return _run_insert(self._connection(), sql, parameters, returning)

    def fetch_all(self, sql: str, parameters: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """
        Execute a SELECT written in the driver's paramstyle and return its rows.
        """
        result = self._connection().exec_driver_sql(sql, tuple(parameters))
        try:
            return [dict(row) for row in result.mappings()]
        finally:
            result.close()


class EngineExecutor:
    """
    Runs every INSERT in its own short transaction.

    Batches flushed before a failure stay committed; the failing batch is
    rolled back on its own.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def execute_insert(
        self,
        sql: str,
        parameters: Sequence[Any] = (),
        returning: bool = False,
    ) -> ExecutionResult:
        with DbSession(self.engine) as session:
            return session.execute_insert(sql, parameters, returning)
