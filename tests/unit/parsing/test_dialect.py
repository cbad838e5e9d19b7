from __future__ import annotations

import dataclasses

import pytest

from csv_pipeline.parsing.dialect import DEFAULT_DIALECT, Dialect, DuplicateHeaderMode, HeaderMode, row_range


def test_defaults() -> None:
    d = DEFAULT_DIALECT
    assert d.delimiter == ","
    assert d.quote_char == '"'
    assert d.header_mode is HeaderMode.none
    assert d.duplicate_header_mode is DuplicateHeaderMode.allow_all
    assert d.ignore_empty_lines is True
    assert d.strict_column_count is False
    assert d.accepts_row(1)


def test_dialect_is_immutable() -> None:
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_DIALECT.delimiter = ";"  # type: ignore[misc]


def test_enum_fields_accept_plain_values() -> None:
    d = Dialect(header_mode="derive", duplicate_header_mode="disallow")  # type: ignore[arg-type]
    assert d.header_mode is HeaderMode.derive
    assert d.duplicate_header_mode is DuplicateHeaderMode.disallow


def test_explicit_mode_needs_names() -> None:
    with pytest.raises(ValueError):
        Dialect(header_mode=HeaderMode.explicit)

    d = Dialect(header_mode=HeaderMode.explicit, header_names=["a", "b"])  # type: ignore[arg-type]
    assert d.header_names == ("a", "b")


def test_names_without_explicit_mode_rejected() -> None:
    with pytest.raises(ValueError):
        Dialect(header_names=("a",))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"delimiter": ""},
        {"delimiter": ";;"},
        {"delimiter": '"'},
        {"comment_marker": ","},
        {"comment_marker": '"'},
        {"escape_char": "ab"},
        {"max_rows": -1},
        {"row_filter": 5},
    ],
)
def test_invalid_dialects(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        Dialect(**kwargs)


def test_row_range() -> None:
    accept = row_range(2, 4)
    assert [n for n in range(1, 7) if accept(n)] == [2, 3, 4]

    open_ended = row_range(3)
    assert not open_ended(2)
    assert open_ended(10_000)


def test_row_range_validation() -> None:
    with pytest.raises(ValueError):
        row_range(0)
    with pytest.raises(ValueError):
        row_range(5, 4)
