from __future__ import annotations

from typing import Any, Mapping, Sequence, Tuple, Union

from .columns import ColumnSet
from .errors import RowShapeError


class _UseDefault:
    """Marks a value the caller left for the batch timestamp or the column default."""

    _instance = None

    def __new__(cls) -> "_UseDefault":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "USE_DEFAULT"

    def __reduce__(self):
        return (_UseDefault, ())


USE_DEFAULT = _UseDefault()

Row = Tuple[Any, ...]
RowInput = Union[Sequence[Any], Mapping[str, Any]]


def normalize_row(column_set: ColumnSet, row: RowInput) -> Row:
    """
    Align caller input to the column set.

    A mapping is matched by column name and missing keys become USE_DEFAULT.
    Any other non-string sequence is taken positionally and must have exactly
    one value per column.

    Raises:
        RowShapeError: If the row does not fit the column set
    """
    if isinstance(row, Mapping):
        return _from_mapping(column_set, row)
    if isinstance(row, (str, bytes, bytearray)) or not isinstance(row, Sequence):
        raise RowShapeError(
            f"Row must be a sequence or a mapping, got {type(row).__name__}"
        )
    return _from_sequence(column_set, row)


def _from_sequence(column_set: ColumnSet, row: Sequence[Any]) -> Row:
    if len(row) != len(column_set.columns):
        raise RowShapeError(
            f"Expected {len(column_set.columns)} values for columns "
            f"{list(column_set.columns)}, got {len(row)}"
        )
    return tuple(row)


def _from_mapping(column_set: ColumnSet, row: Mapping[str, Any]) -> Row:
    unknown = [key for key in row if key not in column_set.columns]
    if unknown:
        raise RowShapeError(
            f"Unknown columns {unknown!r} for table {column_set.table.name!r}"
        )
    return tuple(row.get(column, USE_DEFAULT) for column in column_set.columns)


def is_default(value: Any) -> bool:
    return value is USE_DEFAULT
