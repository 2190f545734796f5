from __future__ import annotations

import dataclasses
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Sequence, Union

from .builder import InsertStatement, build_insert, validate_options
from .columns import DEFAULT_TIMESTAMP_COLUMNS, ColumnSet, TableInfo, resolve_column_set
from .config import WorkerConfig, validate_set_size
from .db.catalog import reflect_table
from .db.metrics import observe_flush
from .db.session import InsertExecutor
from .dialects import EXPLICIT_TARGET, Dialect, dialect_for
from .models import ExecutionResult
from .rows import Row, RowInput, is_default, normalize_row

logger = logging.getLogger(__name__)

Clock = Callable[[], Any]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkerState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


class Worker:
    """
    Accumulates rows and flushes them as multi-row INSERT statements.

    A flush happens when a row arrives while the buffer already holds
    ``set_size`` rows, when ``save()`` is called, and once more when the
    worker is used as a context manager and the block exits. Batches are
    flushed in the order rows were added; each flush shares one timestamp.

    The worker is single-owner: do not call ``add`` from several threads.

    Usage:
        with DbSession(engine) as session:
            with open_worker(session, "books", set_size=100) as worker:
                worker.add({"title": "Dune", "author": "Herbert"})
                worker.add(["Emma", "Austen"])
            print(worker.result_sets)
    """

    def __init__(
        self,
        executor: InsertExecutor,
        table: TableInfo,
        dialect: Dialect,
        config: Optional[WorkerConfig] = None,
        clock: Optional[Clock] = None,
        before_save: Optional[Callable[[List[Row]], None]] = None,
        after_save: Optional[Callable[[ExecutionResult], None]] = None,
    ) -> None:
        """
        Raises:
            ConfigurationError: If a column is unknown or the dialect cannot
                express the requested options. Nothing is buffered in that case.
        """
        self.executor = executor
        self.dialect = dialect
        self.config = config or WorkerConfig()
        self.column_set: ColumnSet = resolve_column_set(table, self.config.columns)
        self.options = self.config.insert_options()
        validate_options(self.column_set, dialect, self.options)

        update = self.options.update_on_duplicate
        if update and update is not True and dialect.capabilities.conflict_target != EXPLICIT_TARGET:
            logger.warning(
                "%s resolves conflicts from the table's unique keys; "
                "conflict columns %s are not used",
                dialect.name,
                list(update),
            )

        self._set_size = self.config.set_size
        self._clock: Clock = clock or utc_now
        self._before_save = before_save
        self._after_save = after_save
        self._rows: List[Row] = []
        self._result_sets: List[ExecutionResult] = []
        self._flush_failure: Optional[Exception] = None

    def __enter__(self) -> "Worker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # a failed flush keeps its batch; do not send it a second time
        if exc is None or exc is not self._flush_failure:
            self.force_save()
        return False

    @property
    def set_size(self) -> int:
        return self._set_size

    @set_size.setter
    def set_size(self, value: int) -> None:
        self._set_size = validate_set_size(value)

    @property
    def state(self) -> WorkerState:
        return WorkerState.ACCUMULATING if self._rows else WorkerState.IDLE

    @property
    def pending(self) -> bool:
        return bool(self._rows)

    @property
    def pending_count(self) -> int:
        return len(self._rows)

    @property
    def result_sets(self) -> List[ExecutionResult]:
        return list(self._result_sets)

    def add(self, row: RowInput) -> "Worker":
        """
        Buffer one row, flushing the current batch first if it is full.

        Raises:
            RowShapeError: If the row does not fit the column set
            ExecutionError: If the flush triggered by this row fails
        """
        normalized = normalize_row(self.column_set, row)
        if len(self._rows) >= self._set_size:
            self.force_save()
        self._rows.append(normalized)
        return self

    def add_all(self, rows: Iterable[RowInput]) -> "Worker":
        for row in rows:
            self.add(row)
        return self

    def compose_statement(self) -> Optional[InsertStatement]:
        """
        Build the statement the next flush would execute, without running it.

        The timestamp is read from the clock on every call.
        """
        if not self._rows:
            return None
        return build_insert(
            self.column_set, self.dialect, self._fill_timestamps(self._rows), self.options
        )

    def force_save(self) -> Optional[ExecutionResult]:
        """
        Flush the buffer. An empty buffer produces no statement and no result.

        On failure the batch stays buffered and the error propagates.
        """
        if not self._rows:
            return None

        table = self.column_set.table.name
        batch = list(self._rows)
        start_time = time.monotonic()
        status = "success"
        try:
            if self._before_save is not None:
                self._before_save(batch)
            statement = build_insert(
                self.column_set, self.dialect, self._fill_timestamps(batch), self.options
            )
            logger.debug("Flushing %d rows into %s", statement.row_count, table)
            result = self.executor.execute_insert(
                statement.sql, statement.parameters, returning=statement.returning
            )
        except Exception as exc:
            status = "error"
            self._flush_failure = exc
            logger.debug("Flush of %d rows into %s failed: %s", len(batch), table, exc)
            raise
        finally:
            observe_flush(table, status, len(batch), time.monotonic() - start_time)

        result = dataclasses.replace(result, row_count=len(batch))
        self._result_sets.append(result)
        self._rows.clear()
        self._flush_failure = None
        if self._after_save is not None:
            self._after_save(result)
        return result

    save = force_save

    def _fill_timestamps(self, rows: Sequence[Row]) -> List[Row]:
        positions = [
            i
            for i, column in enumerate(self.column_set.columns)
            if self.column_set.is_timestamp(column)
        ]
        if not positions or not any(is_default(row[i]) for row in rows for i in positions):
            return list(rows)

        now = self._clock()
        filled = []
        for row in rows:
            values = list(row)
            for i in positions:
                if is_default(values[i]):
                    values[i] = now
            filled.append(tuple(values))
        return filled


def open_worker(
    executor: InsertExecutor,
    table: str,
    *,
    columns: Optional[Sequence[str]] = None,
    set_size: int = 500,
    ignore: bool = False,
    update_duplicates: Union[bool, Sequence[str]] = False,
    update_columns: Optional[Sequence[str]] = None,
    return_primary_keys: bool = False,
    schema: Optional[str] = None,
    timestamp_columns: Iterable[str] = DEFAULT_TIMESTAMP_COLUMNS,
    clock: Optional[Clock] = None,
    before_save: Optional[Callable[[List[Row]], None]] = None,
    after_save: Optional[Callable[[ExecutionResult], None]] = None,
) -> Worker:
    """
    Reflect ``table`` through the executor's engine and return a Worker for it.

    The dialect is picked once, here, from the engine.
    """
    config = WorkerConfig(
        columns=columns,
        set_size=set_size,
        ignore=ignore,
        update_duplicates=update_duplicates,
        update_columns=update_columns,
        return_primary_keys=return_primary_keys,
    )
    engine = executor.engine
    info = reflect_table(engine, table, schema=schema, timestamp_columns=timestamp_columns)
    return Worker(
        executor,
        info,
        dialect_for(engine),
        config,
        clock=clock,
        before_save=before_save,
        after_save=after_save,
    )


def bulk_insert(
    executor: InsertExecutor,
    table: str,
    rows: Iterable[RowInput],
    **kwargs: Any,
) -> List[ExecutionResult]:
    """
    Insert all ``rows`` in batches and return the per-flush results.

    Accepts the same keyword arguments as ``open_worker``.
    """
    worker = open_worker(executor, table, **kwargs)
    with worker:
        worker.add_all(rows)
    return worker.result_sets
