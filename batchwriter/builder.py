from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from .columns import ColumnSet
from .dialects import EXPLICIT_TARGET, Dialect
from .errors import ConfigurationError, UnsupportedOptionError
from .models import InsertOptions
from .rows import Row, is_default

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsertStatement:
    """
    One executable multi-row INSERT.

    columns lists the columns actually present in the statement, which can be
    fewer than the column set when a whole batch leaves a column to its default.
    """
    sql: str
    parameters: Tuple[Any, ...]
    columns: Tuple[str, ...]
    row_count: int
    returning: bool = False


def validate_options(
    column_set: ColumnSet,
    dialect: Dialect,
    options: InsertOptions,
) -> None:
    """
    Check that the dialect can express the requested options for this table.

    Raises:
        UnsupportedOptionError: If the dialect lacks a requested capability
        ConfigurationError: If the options conflict or name unknown columns
    """
    caps = dialect.capabilities
    if options.ignore_duplicates and options.update_on_duplicate:
        raise ConfigurationError("ignore and update_duplicates are mutually exclusive")

    if options.ignore_duplicates and not caps.supports_ignore:
        raise UnsupportedOptionError(
            f"{dialect.name} dialect does not support ignoring duplicates"
        )

    if options.update_on_duplicate:
        if not caps.supports_update_on_duplicate:
            raise UnsupportedOptionError(
                f"{dialect.name} dialect does not support update on duplicate"
            )
        _conflict_target(column_set, dialect, options)
        _update_columns(column_set, options)

    if options.return_primary_keys:
        if not caps.supports_returning:
            raise UnsupportedOptionError(
                f"{dialect.name} dialect cannot return inserted primary keys"
            )
        if column_set.table.primary_key is None:
            raise ConfigurationError(
                f"Table {column_set.table.name!r} has no single-column primary key to return"
            )
        if options.ignore_duplicates:
            # skipped rows return no key, so keys could not be matched to rows
            raise ConfigurationError(
                "return_primary_keys cannot be combined with ignore"
            )


def _conflict_target(
    column_set: ColumnSet,
    dialect: Dialect,
    options: InsertOptions,
) -> Tuple[str, ...]:
    table = column_set.table
    target = options.update_on_duplicate
    if target is True:
        if dialect.capabilities.conflict_target != EXPLICIT_TARGET:
            return ()
        if not table.primary_key_columns:
            raise ConfigurationError(
                f"Table {table.name!r} has no primary key to use as conflict target; "
                "pass the unique key columns to update_duplicates"
            )
        return table.primary_key_columns

    known = set(table.columns)
    for column in target:
        if column not in known:
            raise ConfigurationError(
                f"Unknown conflict column {column!r} for table {table.name!r}"
            )
    return tuple(target)


def _update_columns(column_set: ColumnSet, options: InsertOptions) -> Tuple[str, ...]:
    if options.update_columns is None:
        return column_set.columns
    if not options.update_columns:
        raise ConfigurationError("update_columns cannot be empty")
    for column in options.update_columns:
        if column not in column_set.columns:
            raise ConfigurationError(
                f"Update column {column!r} is not one of the inserted columns"
            )
    return tuple(options.update_columns)


def _emitted_columns(column_set: ColumnSet, rows: Sequence[Row]) -> List[int]:
    """
    Positions of the columns that appear in the statement.

    A column is left out only when it has a server default and no row in the
    batch supplies a value for it.
    """
    positions = [
        i
        for i, column in enumerate(column_set.columns)
        if not (
            column_set.has_server_default(column)
            and all(is_default(row[i]) for row in rows)
        )
    ]
    return positions or list(range(len(column_set.columns)))


def build_insert(
    column_set: ColumnSet,
    dialect: Dialect,
    rows: Sequence[Row],
    options: InsertOptions | None = None,
) -> InsertStatement:
    """
    Build one multi-row INSERT for ``rows``.

    Caller values are always bound; only identifiers and schema-declared
    defaults are written into the SQL text.
    Timestamp slots must already be filled by the caller. A USE_DEFAULT left in
    a column with a server default becomes the DEFAULT keyword where the
    dialect allows it in a VALUES list, otherwise the column's declared default
    expression. Anything else left at USE_DEFAULT is bound as NULL.

    Raises:
        ValueError: If rows is empty
        UnsupportedOptionError: If the dialect cannot express an option
    """
    if not rows:
        raise ValueError("build_insert() requires at least one row")
    options = options or InsertOptions()
    validate_options(column_set, dialect, options)

    positions = _emitted_columns(column_set, rows)
    columns = tuple(column_set.columns[i] for i in positions)
    use_keyword = dialect.capabilities.supports_default_keyword

    params: List[Any] = []
    tuples: List[str] = []
    for row in rows:
        slots = []
        for i in positions:
            value = row[i]
            if is_default(value):
                column = column_set.columns[i]
                if column_set.has_server_default(column):
                    if use_keyword:
                        slots.append("DEFAULT")
                        continue
                    expression = column_set.default_expression(column)
                    if expression is not None:
                        slots.append(dialect.default_literal(expression))
                        continue
                value = None
            params.append(value)
            slots.append(dialect.placeholder(len(params)))
        tuples.append(f"({', '.join(slots)})")

    table = column_set.table
    parts = [
        dialect.insert_verb(options.ignore_duplicates),
        dialect.format_table(table.name, table.schema),
        f"({', '.join(map(dialect.quote_identifier, columns))})",
        "VALUES",
        ", ".join(tuples),
    ]
    if options.ignore_duplicates and dialect.ignore_clause():
        parts.append(dialect.ignore_clause())
    if options.update_on_duplicate:
        parts.append(
            dialect.upsert_clause(
                _conflict_target(column_set, dialect, options),
                _update_columns(column_set, options),
            )
        )
    if options.return_primary_keys:
        parts.append(dialect.returning_clause(table.primary_key))

    return InsertStatement(
        sql=" ".join(parts),
        parameters=tuple(params),
        columns=columns,
        row_count=len(rows),
        returning=options.return_primary_keys,
    )
