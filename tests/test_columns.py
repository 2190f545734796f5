from __future__ import annotations

import pytest

from batchwriter.columns import TableInfo, resolve_column_set
from batchwriter.errors import ConfigurationError


def test_defaults_to_all_columns_except_primary_key(books: TableInfo) -> None:
    column_set = resolve_column_set(books)

    assert column_set.columns == ("title", "author", "pages", "created_at", "updated_at")
    assert column_set.timestamp_columns == {"created_at", "updated_at"}
    assert column_set.server_defaults == {"pages"}


def test_empty_list_behaves_like_omitted(books: TableInfo) -> None:
    assert resolve_column_set(books, []).columns == resolve_column_set(books).columns


def test_explicit_columns_are_kept_verbatim_and_in_order(books: TableInfo) -> None:
    column_set = resolve_column_set(books, ["author", "id", "title"])

    assert column_set.columns == ("author", "id", "title")
    # only resolved columns carry timestamp/default flags
    assert column_set.timestamp_columns == frozenset()
    assert column_set.server_defaults == {"id"}


def test_unknown_column_raises(books: TableInfo) -> None:
    with pytest.raises(ConfigurationError, match="isbn"):
        resolve_column_set(books, ["title", "isbn"])


def test_duplicate_column_raises(books: TableInfo) -> None:
    with pytest.raises(ConfigurationError):
        resolve_column_set(books, ["title", "title"])


def test_table_with_only_a_primary_key_has_nothing_to_insert() -> None:
    table = TableInfo(name="ids", columns=("id",), primary_key_columns=("id",))

    with pytest.raises(ConfigurationError):
        resolve_column_set(table)


def test_composite_primary_key_has_no_single_key(books: TableInfo) -> None:
    table = TableInfo(name="links", columns=("a", "b", "note"), primary_key_columns=("a", "b"))

    assert table.primary_key is None
    assert books.primary_key == "id"
    assert resolve_column_set(table).columns == ("note",)
