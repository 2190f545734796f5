from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional, Sequence, Tuple

from .errors import ConfigurationError

DEFAULT_TIMESTAMP_COLUMNS = ("created_at", "updated_at")


@dataclass(frozen=True)
class TableInfo:
    """
    Column metadata for one target table, as reported by the schema collaborator.

    server_defaults holds the columns the database fills on its own when the
    column is left out of an INSERT; default_expressions holds the SQL text of
    those defaults where the schema declares one.
    """
    name: str
    columns: Tuple[str, ...]
    primary_key_columns: Tuple[str, ...] = ()
    server_defaults: FrozenSet[str] = field(default_factory=frozenset)
    timestamp_columns: FrozenSet[str] = field(default_factory=frozenset)
    schema: Optional[str] = None
    default_expressions: Mapping[str, str] = field(default_factory=dict, compare=False)

    @property
    def primary_key(self) -> Optional[str]:
        """The single primary-key column, or None for composite/missing keys."""
        if len(self.primary_key_columns) == 1:
            return self.primary_key_columns[0]
        return None


@dataclass(frozen=True)
class ColumnSet:
    """
    Resolved, ordered target columns of a worker.
    """
    table: TableInfo
    columns: Tuple[str, ...]
    timestamp_columns: FrozenSet[str]
    server_defaults: FrozenSet[str]

    def __len__(self) -> int:
        return len(self.columns)

    def index(self, column: str) -> int:
        return self.columns.index(column)

    def has_server_default(self, column: str) -> bool:
        return column in self.server_defaults

    def is_timestamp(self, column: str) -> bool:
        return column in self.timestamp_columns

    def default_expression(self, column: str) -> Optional[str]:
        return self.table.default_expressions.get(column)


def resolve_column_set(
    table: TableInfo,
    columns: Optional[Sequence[str]] = None,
) -> ColumnSet:
    """
    Produce the column set a worker inserts into.

    Without an explicit list, every table column except the primary key is used.
    An explicit list is used verbatim, in the given order.

    Raises:
        ConfigurationError: If a column is unknown or named twice
    """
    if not columns:
        resolved = tuple(c for c in table.columns if c not in table.primary_key_columns)
    else:
        if isinstance(columns, str):
            raise ConfigurationError("columns must be a sequence of names, not a string")
        known = set(table.columns)
        seen: set[str] = set()
        for column in columns:
            if column not in known:
                raise ConfigurationError(
                    f"Unknown column {column!r} for table {table.name!r}"
                )
            if column in seen:
                raise ConfigurationError(
                    f"Column {column!r} listed more than once for table {table.name!r}"
                )
            seen.add(column)
        resolved = tuple(columns)

    if not resolved:
        raise ConfigurationError(f"No insertable columns for table {table.name!r}")

    return ColumnSet(
        table=table,
        columns=resolved,
        timestamp_columns=frozenset(c for c in resolved if c in table.timestamp_columns),
        server_defaults=frozenset(c for c in resolved if c in table.server_defaults),
    )
