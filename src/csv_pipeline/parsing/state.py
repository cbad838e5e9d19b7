from __future__ import annotations

from dataclasses import dataclass

from .headers import HeaderMap
from .types import Position


@dataclass(slots=True)
class ParserState:
    """
    Position tracker owned by exactly one session.

    `record_number` is the next number to assign. Before any record it holds the
    configured start, after record k it holds k + 1, which is also what a resumed
    session must start from. Offsets only move forward.
    """
    record_number: int = 1
    character_offset: int = 0
    byte_offset: int = 0
    track_bytes: bool = False
    closed: bool = False
    header_map: HeaderMap | None = None

    def __post_init__(self) -> None:
        if self.record_number < 1:
            raise ValueError(f"record_number must be >= 1, got {self.record_number}")
        if self.character_offset < 0 or self.byte_offset < 0:
            raise ValueError(
                f"offsets must be >= 0, got character_offset={self.character_offset} byte_offset={self.byte_offset}"
            )

    @property
    def position(self) -> Position:
        return Position(self.character_offset, self.byte_offset if self.track_bytes else None)

    def take_record_number(self) -> int:
        """Hand out the current number and move the counter on by one."""
        n = self.record_number
        self.record_number += 1
        return n

    def advance(self, character_offset: int | None, byte_offset: int | None = None) -> None:
        """Move to a token's reported end position. Missing or smaller offsets are ignored."""
        if character_offset is not None and character_offset > self.character_offset:
            self.character_offset = character_offset
        if self.track_bytes and byte_offset is not None and byte_offset > self.byte_offset:
            self.byte_offset = byte_offset
