from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

# Row filters get the 1-based record number about to be assigned.
RowFilter = Callable[[int], bool]


class HeaderMode(str, Enum):
    """Where column names come from."""
    none = "none"
    explicit = "explicit"       # `Dialect.header_names`
    derive = "derive"           # first record of the input


class DuplicateHeaderMode(str, Enum):
    """What to do when two header columns share a name."""
    disallow = "disallow"
    allow_all = "allow_all"     # first occurrence wins
    allow_empty = "allow_empty" # only blank names may repeat


def _check_char(name: str, value: str | None, *, optional: bool = True) -> None:
    if value is None and optional:
        return
    if not isinstance(value, str) or len(value) != 1:
        raise ValueError(f"{name} must be a single character, got {value!r}")


@dataclass(frozen=True, slots=True)
class Dialect:
    """
    Immutable parsing rules for one session.

    The lexical options (`delimiter`, `quote_char`, `escape_char`, `double_quote`,
    `comment_marker`) are only consumed by the token source. Everything else
    drives record assembly and header resolution.

    Records are terminated by `\\n`, `\\r\\n` or `\\r`, this is not configurable.
    """
    delimiter: str = ","
    quote_char: str | None = '"'
    escape_char: str | None = None
    double_quote: bool = True
    comment_marker: str | None = None

    header_mode: HeaderMode = HeaderMode.none
    header_names: tuple[str, ...] = ()
    skip_header_record: bool = False
    duplicate_header_mode: DuplicateHeaderMode = DuplicateHeaderMode.allow_all
    ignore_header_case: bool = False

    ignore_empty_lines: bool = True
    strict_column_count: bool = False
    trim: bool = False
    null_marker: str | None = None
    surface_comments: bool = False     # comment lines become zero-field records
    row_filter: RowFilter | None = None
    max_rows: int = 0                  # highest record number read, 0 is unlimited

    def __post_init__(self) -> None:
        _check_char("delimiter", self.delimiter, optional=False)
        _check_char("quote_char", self.quote_char)
        _check_char("escape_char", self.escape_char)
        _check_char("comment_marker", self.comment_marker)

        if self.delimiter in (self.quote_char, self.comment_marker, self.escape_char):
            raise ValueError(f"delimiter {self.delimiter!r} collides with another dialect character")
        if self.comment_marker is not None and self.comment_marker == self.quote_char:
            raise ValueError(f"comment_marker {self.comment_marker!r} collides with quote_char")

        # config may hand over plain strings and lists
        object.__setattr__(self, "header_mode", HeaderMode(self.header_mode))
        object.__setattr__(self, "duplicate_header_mode", DuplicateHeaderMode(self.duplicate_header_mode))
        object.__setattr__(self, "header_names", tuple(self.header_names))

        if self.header_mode is HeaderMode.explicit and not self.header_names:
            raise ValueError("header_mode 'explicit' needs header_names")
        if self.header_mode is not HeaderMode.explicit and self.header_names:
            raise ValueError(f"header_names given but header_mode is {self.header_mode.value!r}")
        if not all(isinstance(n, str) for n in self.header_names):
            raise ValueError(f"header_names must all be str: {self.header_names!r}")

        if self.max_rows < 0:
            raise ValueError(f"max_rows must be >= 0, got {self.max_rows}")
        if self.row_filter is not None and not callable(self.row_filter):
            raise ValueError(f"row_filter must be callable, got {type(self.row_filter).__name__}")

    @property
    def has_header(self) -> bool:
        return self.header_mode is not HeaderMode.none

    def accepts_row(self, record_number: int) -> bool:
        """Apply the row filter to the record number about to be assigned."""
        return self.row_filter is None or bool(self.row_filter(record_number))


DEFAULT_DIALECT = Dialect()


def row_range(first: int, last: int | None = None) -> RowFilter:
    """
    Row filter accepting record numbers in `[first, last]`.
    `last=None` leaves the range open ended.
    """
    if first < 1:
        raise ValueError(f"first must be >= 1, got {first}")
    if last is not None and last < first:
        raise ValueError(f"last ({last}) must not be before first ({first})")

    def accept(record_number: int) -> bool:
        return record_number >= first and (last is None or record_number <= last)

    return accept
