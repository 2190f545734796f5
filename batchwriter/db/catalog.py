from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError

from ..columns import DEFAULT_TIMESTAMP_COLUMNS, TableInfo
from ..errors import ConfigurationError


def reflect_table(
    engine: Engine,
    name: str,
    schema: Optional[str] = None,
    timestamp_columns: Iterable[str] = DEFAULT_TIMESTAMP_COLUMNS,
) -> TableInfo:
    """
    Describe a table from the live database schema.

    A column counts as having a server default when the database reports a
    default expression for it, or flags it as auto-incrementing. The reported
    expression text is kept so it can be inlined where a dialect has no
    DEFAULT keyword.

    Args:
        engine: SQLAlchemy Engine bound to the target database
        name: Table name (unquoted)
        schema: Optional schema name
        timestamp_columns: Column names filled with the batch timestamp when present

    Raises:
        ConfigurationError: If the table does not exist
    """
    inspector = inspect(engine)
    try:
        reflected = inspector.get_columns(name, schema=schema)
    except NoSuchTableError as exc:
        raise ConfigurationError(f"Table {name!r} does not exist") from exc

    pk = inspector.get_pk_constraint(name, schema=schema) or {}
    columns = tuple(col["name"] for col in reflected)
    default_expressions = {
        col["name"]: str(col["default"])
        for col in reflected
        if col.get("default") is not None
    }
    server_defaults = frozenset(
        col["name"]
        for col in reflected
        if col.get("default") is not None or col.get("autoincrement") is True
    )
    wanted = set(timestamp_columns)

    return TableInfo(
        name=name,
        columns=columns,
        primary_key_columns=tuple(pk.get("constrained_columns") or ()),
        server_defaults=server_defaults,
        timestamp_columns=frozenset(c for c in columns if c in wanted),
        schema=schema,
        default_expressions=default_expressions,
    )
