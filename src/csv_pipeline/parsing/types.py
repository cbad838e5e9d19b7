from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    from .headers import HeaderMap


class TokenKind(str, Enum):
    """Token classifications produced by a token source."""
    field = "field"
    comment = "comment"
    end_of_record = "end_of_record"
    end_of_stream = "end_of_stream"


@dataclass(frozen=True, slots=True)
class Token:
    """
    One classified unit of input.

    `content` is only set for `field` and `comment` tokens. The offsets are
    cumulative positions where the token ended, sources may leave them `None`
    on `field` tokens.
    """
    kind: TokenKind
    content: str | None = None
    character_offset: int | None = None
    byte_offset: int | None = None


@dataclass(frozen=True, slots=True)
class Position:
    """Offsets into the raw input. `byte_offset` is `None` when bytes are not tracked."""
    character_offset: int
    byte_offset: int | None = None


@dataclass(frozen=True, slots=True)
class Record:
    """One assembled row."""
    values: tuple[str | None, ...]
    record_number: int                  # 1-based unless the session was resumed
    position: Position                  # where the record starts
    comment: str | None = None          # only set on surfaced comment lines
    is_header: bool = False
    header: HeaderMap | None = field(default=None, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[str | None]:
        return iter(self.values)

    def __getitem__(self, key: int | str) -> str | None:
        """Positional access by `int`, named access by `str` (needs a header)."""
        if isinstance(key, str):
            if self.header is None:
                raise KeyError(f"no header mapping available for {key!r}")
            index = self.header[key]
            if index >= len(self.values):
                raise KeyError(f"{key!r} maps to column {index}, record has {len(self.values)} values")
            return self.values[index]
        return self.values[key]

    def get(self, key: int | str, default: Any = None) -> Any:
        try:
            return self[key]
        except (KeyError, IndexError):
            return default

    @property
    def is_comment(self) -> bool:
        return self.comment is not None

    def to_mapping(self) -> dict[str, str | None]:
        """
        Values keyed by column name. Columns the record is too short for are left out,
        so are duplicate names past their first occurrence.
        """
        if self.header is None:
            return {}
        return {name: self.values[i] for name, i in self.header.items() if i < len(self.values)}
