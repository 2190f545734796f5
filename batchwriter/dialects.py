from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy.engine import Engine

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

POSITIONAL_PARAMSTYLES = ("qmark", "format", "pyformat", "numeric")
IMPLICIT_TARGET = "implicit"
EXPLICIT_TARGET = "explicit"


@dataclass(frozen=True)
class DialectCapabilities:
    """
    Feature flags describing what a backend can express in a multi-row INSERT.

    conflict_target says how an upsert names its conflict: "implicit" engines
    resolve it from any unique key, "explicit" engines need a column list.
    """
    supports_ignore: bool = False
    supports_update_on_duplicate: bool = False
    conflict_target: str = IMPLICIT_TARGET
    supports_returning: bool = False
    supports_default_keyword: bool = False


class Dialect:
    """
    Generic ANSI dialect: plain multi-row INSERT and nothing else.

    Subclasses override the clause templates for the features they support.
    Callers only look at ``capabilities``, never at ``name``.
    """

    name = "generic"
    quote_char = '"'
    capabilities = DialectCapabilities()

    def __init__(self, paramstyle: str = "qmark") -> None:
        if paramstyle not in POSITIONAL_PARAMSTYLES:
            raise ConfigurationError(f"Unsupported DB-API paramstyle {paramstyle!r}")
        self.paramstyle = paramstyle

    def __repr__(self) -> str:
        return f"{type(self).__name__}(paramstyle={self.paramstyle!r})"

    def quote_identifier(self, name: str) -> str:
        q = self.quote_char
        quoted = f"{q}{name.replace(q, q + q)}{q}"
        if self.paramstyle in ("format", "pyformat"):
            # the driver runs %-interpolation over the whole statement
            quoted = quoted.replace("%", "%%")
        return quoted

    def default_literal(self, expression: str) -> str:
        """Inline a column default declared in the schema into a VALUES slot."""
        literal = f"({expression})"
        if self.paramstyle in ("format", "pyformat"):
            literal = literal.replace("%", "%%")
        return literal

    def format_table(self, name: str, schema: str | None = None) -> str:
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(name)}"
        return self.quote_identifier(name)

    def placeholder(self, position: int) -> str:
        """Bind marker for the 1-based parameter ``position``."""
        if self.paramstyle == "qmark":
            return "?"
        if self.paramstyle == "numeric":
            return f":{position}"
        return "%s"

    def insert_verb(self, ignore: bool = False) -> str:
        return "INSERT INTO"

    def ignore_clause(self) -> str:
        return ""

    def upsert_clause(
        self,
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        raise NotImplementedError(f"{self.name} cannot express update-on-duplicate")

    def returning_clause(self, column: str) -> str:
        raise NotImplementedError(f"{self.name} cannot return inserted keys")


class MySQLDialect(Dialect):
    name = "mysql"
    quote_char = "`"
    capabilities = DialectCapabilities(
        supports_ignore=True,
        supports_update_on_duplicate=True,
        conflict_target=IMPLICIT_TARGET,
        supports_returning=False,
        supports_default_keyword=True,
    )

    def __init__(self, paramstyle: str = "format") -> None:
        super().__init__(paramstyle)

    def insert_verb(self, ignore: bool = False) -> str:
        return "INSERT IGNORE INTO" if ignore else "INSERT INTO"

    def upsert_clause(
        self,
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        # MySQL picks the conflicting key itself; conflict_columns is unused
        assignments = ", ".join(
            f"{q} = VALUES({q})" for q in map(self.quote_identifier, update_columns)
        )
        return f"ON DUPLICATE KEY UPDATE {assignments}"


class _OnConflictDialect(Dialect):
    """Engines using the ``ON CONFLICT (...)`` family of clauses."""

    def upsert_clause(
        self,
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        target = ", ".join(map(self.quote_identifier, conflict_columns))
        assignments = ", ".join(
            f"{q} = excluded.{q}" for q in map(self.quote_identifier, update_columns)
        )
        return f"ON CONFLICT ({target}) DO UPDATE SET {assignments}"

    def returning_clause(self, column: str) -> str:
        return f"RETURNING {self.quote_identifier(column)}"


class PostgreSQLDialect(_OnConflictDialect):
    name = "postgresql"
    capabilities = DialectCapabilities(
        supports_ignore=True,
        supports_update_on_duplicate=True,
        conflict_target=EXPLICIT_TARGET,
        supports_returning=True,
        supports_default_keyword=True,
    )

    def __init__(self, paramstyle: str = "format") -> None:
        super().__init__(paramstyle)

    def ignore_clause(self) -> str:
        return "ON CONFLICT DO NOTHING"


class SQLiteDialect(_OnConflictDialect):
    name = "sqlite"
    capabilities = DialectCapabilities(
        supports_ignore=True,
        supports_update_on_duplicate=True,
        conflict_target=EXPLICIT_TARGET,
        supports_returning=True,
        # VALUES lists cannot contain DEFAULT in SQLite
        supports_default_keyword=False,
    )

    def insert_verb(self, ignore: bool = False) -> str:
        return "INSERT OR IGNORE INTO" if ignore else "INSERT INTO"


_DIALECTS = {
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
    "postgresql": PostgreSQLDialect,
    "sqlite": SQLiteDialect,
}


def dialect_for(engine: Engine) -> Dialect:
    """
    Select the dialect adapter for an engine.

    The bind marker follows the driver's DB-API paramstyle, since statements
    are handed to the driver unchanged.
    """
    name = engine.dialect.name
    paramstyle = engine.dialect.paramstyle
    if paramstyle not in POSITIONAL_PARAMSTYLES:
        raise ConfigurationError(
            f"Driver {engine.dialect.driver!r} uses the {paramstyle!r} paramstyle; "
            "only positional paramstyles are supported"
        )
    dialect_cls = _DIALECTS.get(name)
    if dialect_cls is None:
        logger.warning(
            "No dialect adapter for %s; falling back to generic INSERT syntax", name
        )
        dialect_cls = Dialect
    return dialect_cls(paramstyle)
