from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Checkpoint:
    """
    Where a session stands: the next record number, the offsets of the next unread
    character/byte and, for a strict session, the width every record must have.
    """
    record_number: int
    character_offset: int
    byte_offset: int | None = None      # `None` when the session did not track bytes
    expected_width: int | None = None   # `None` unless the column count is enforced and known

    def resume_options(self) -> dict[str, Any]:
        """
        Keyword arguments for `open_session`/`start_session` that continue numbering and
        offsets from here. The caller positions the new stream at `character_offset`.
        """
        options: dict[str, Any] = {
            "record_number": self.record_number,
            "character_offset": self.character_offset,
        }
        if self.byte_offset is not None:
            options["byte_offset"] = self.byte_offset
            options["track_bytes"] = True
        if self.expected_width is not None:
            options["expected_width"] = self.expected_width
        return options

    def render_one_line(self) -> str:
        """How a checkpoint is printed in logs or the terminal."""
        line = f"next_record={self.record_number} character_offset={self.character_offset}"
        if self.byte_offset is not None:
            line += f" byte_offset={self.byte_offset}"
        if self.expected_width is not None:
            line += f" expected_width={self.expected_width}"
        return line
