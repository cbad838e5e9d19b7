from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from .dialect import Dialect
from .errors import MalformedRecordError, TokenSourceError
from .headers import HeaderMap
from .state import ParserState
from .types import Record, Token, TokenKind

logger = logging.getLogger(__name__)


class TokenSource(Protocol):
    """Anything that hands out classified tokens, one per call, ending with `end_of_stream`."""
    def next_token(self) -> Token: ...
    def close(self) -> None: ...


class AssemblerStatus(str, Enum):
    awaiting_first_field = "awaiting_first_field"
    accumulating_fields = "accumulating_fields"
    record_complete = "record_complete"
    stream_exhausted = "stream_exhausted"


class RecordAssembler:
    """
    Folds tokens into records.

    `next_record()` returns the next record the caller should see, or `None` once
    the stream is exhausted (and forever after, without touching the source).

    Rules, in order of application:
    - empty records are dropped without a record number when `ignore_empty_lines`,
    - every other closed record takes the next record number,
    - the row filter sees that number; rejected records are not returned,
    - with `strict_column_count` a width mismatch raises `MalformedRecordError`
      for that record only,
    - with `max_rows`, no record numbered above it is read.

    `expected_width` may be seeded by the caller when resuming a strict session.
    """

    def __init__(self, tokens: TokenSource, dialect: Dialect, state: ParserState) -> None:
        self._tokens = tokens
        self._dialect = dialect
        self._state = state
        self.status = AssemblerStatus.awaiting_first_field
        self.header: HeaderMap | None = None
        self.expected_width: int | None = None     # header width, else first accepted record
        self.header_comment: str | None = None
        self.trailer_comment: str | None = None
        self._pending_comments: list[str] = []
        self._replay: Record | None = None
        self._eos_seen = False

    @property
    def exhausted(self) -> bool:
        return self.status is AssemblerStatus.stream_exhausted

    def replay(self, record: Record) -> None:
        """Queue an already closed record (the derived header) to be returned next."""
        self._replay = record

    def read_header_record(self) -> Record | None:
        """
        Read the first record as a header: no row filter, no width check, comments
        before it are captured as `header_comment` even when comments are surfaced.
        """
        record = self._assemble(header=True)
        if self._pending_comments:
            self.header_comment = "\n".join(self._pending_comments)
            self._pending_comments.clear()
        return record

    def next_record(self) -> Record | None:
        if self._replay is not None:
            record, self._replay = self._replay, None
            return record

        while True:
            if self._dialect.max_rows and self._state.record_number > self._dialect.max_rows:
                logger.debug("max_rows=%s reached", self._dialect.max_rows)
                self.status = AssemblerStatus.stream_exhausted
                return None

            record = self._assemble()
            if record is None:
                return None

            if not self._dialect.accepts_row(record.record_number):
                logger.debug("Row filter rejected record #%s", record.record_number)
                continue

            if not record.is_comment:
                self._check_width(record)
            return record

    def _check_width(self, record: Record) -> None:
        if not self._dialect.strict_column_count:
            return
        if self.expected_width is None:
            self.expected_width = len(record)
            return
        if len(record) != self.expected_width:
            logger.warning(
                "Malformed record #%s: expected %s values, got %s",
                record.record_number, self.expected_width, len(record),
            )
            raise MalformedRecordError(record.record_number, self.expected_width, len(record), record)

    def _clean(self, text: str | None) -> str | None:
        if text is None:
            return None
        if self._dialect.trim:
            text = text.strip()
        if self._dialect.null_marker is not None and text == self._dialect.null_marker:
            return None
        return text

    def _close(self, fields: list[str | None], token: Token, *, comment: str | None = None, header: bool = False) -> Record:
        record = Record(
            values=tuple(fields),
            record_number=self._state.take_record_number(),
            position=self._state.position,
            comment=comment,
            is_header=header,
            header=self.header,
        )
        self._state.advance(token.character_offset, token.byte_offset)
        self.status = AssemblerStatus.record_complete
        return record

    def _close_data(self, fields: list[str | None], token: Token, *, header: bool) -> Record:
        # comments in front of a data record are dropped, the header keeps them
        if not header:
            self._pending_comments.clear()
        return self._close(fields, token, header=header)

    def _assemble(self, *, header: bool = False) -> Record | None:
        """Close the next record from the token stream. No filtering happens here."""
        if self.status is AssemblerStatus.stream_exhausted:
            return None
        if self._eos_seen:
            # the previous record was closed by end_of_stream
            self._finish()
            return None

        fields: list[str | None] = []
        self.status = AssemblerStatus.awaiting_first_field
        while True:
            token = self._tokens.next_token()

            if token.kind is TokenKind.field:
                fields.append(self._clean(token.content))
                self.status = AssemblerStatus.accumulating_fields

            elif token.kind is TokenKind.comment:
                if self._dialect.surface_comments and not header:
                    if fields:
                        raise TokenSourceError(
                            f"comment token inside record #{self._state.record_number}"
                        )
                    return self._close([], token, comment=token.content or "")
                self._pending_comments.append(token.content or "")
                self._state.advance(token.character_offset, token.byte_offset)

            elif token.kind is TokenKind.end_of_record:
                if not fields and self._dialect.ignore_empty_lines:
                    logger.debug("Ignored empty line at offset %s", self._state.character_offset)
                    self._state.advance(token.character_offset, token.byte_offset)
                    continue
                return self._close_data(fields, token, header=header)

            else:   # end_of_stream
                if fields:
                    self._eos_seen = True
                    return self._close_data(fields, token, header=header)
                self._state.advance(token.character_offset, token.byte_offset)
                self._finish()
                return None

    def _finish(self) -> None:
        if self._pending_comments:
            self.trailer_comment = "\n".join(self._pending_comments)
            self._pending_comments.clear()
        self.status = AssemblerStatus.stream_exhausted
