from __future__ import annotations

import logging
from types import TracebackType
from typing import Iterator, TextIO

from csv_pipeline.ingest.checkpoint import Checkpoint
from csv_pipeline.ingest.tokens import CsvTokenSource
from csv_pipeline.parsing.assembler import RecordAssembler, TokenSource
from csv_pipeline.parsing.dialect import DEFAULT_DIALECT, Dialect
from csv_pipeline.parsing.errors import SessionClosedError
from csv_pipeline.parsing.headers import HeaderMap, resolve_header
from csv_pipeline.parsing.state import ParserState
from csv_pipeline.parsing.types import Record

logger = logging.getLogger(__name__)


class ParseSession:
    """
    One forward-only parse over one token source.

    Pull records with `next_record()` (returns `None` once exhausted) or iterate;
    each `iter(session)` continues from the current position. `records()` drains
    whatever is left into a list.

    A `MalformedRecordError` only concerns the record it names: the session keeps
    going with the next call, though a running `for` loop over the session ends
    with the exception. Any other error leaves the session unusable.

    Not safe for concurrent use, one session belongs to one thread of control.
    Build sessions with `open_session` or `start_session`.
    """

    def __init__(self, tokens: TokenSource, dialect: Dialect, state: ParserState) -> None:
        self._tokens = tokens
        self._dialect = dialect
        self._state = state
        self._assembler = RecordAssembler(tokens, dialect, state)
        self._header = HeaderMap.empty()

    def _resolve_header(self) -> None:
        self._header = resolve_header(self._dialect, self._assembler)
        self._state.header_map = self._header

    ## -- context management

    def __enter__(self) -> ParseSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the token source. Safe to call more than once."""
        if self._state.closed:
            return
        self._tokens.close()
        self._state.closed = True
        logger.debug(
            "Closed parse session at record_number=%s character_offset=%s",
            self._state.record_number, self._state.character_offset,
        )

    def _ensure_open(self) -> None:
        if self._state.closed:
            raise SessionClosedError()

    ## -- records

    def next_record(self) -> Record | None:
        """Next record, or `None` at end of stream."""
        self._ensure_open()
        return self._assembler.next_record()

    def __iter__(self) -> Iterator[Record]:
        self._ensure_open()
        return self._iter_records()

    def _iter_records(self) -> Iterator[Record]:
        while True:
            record = self.next_record()
            if record is None:
                return
            yield record

    def records(self) -> list[Record]:
        """Every remaining record, starting at the current position."""
        return list(self)

    ## -- read only state

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def closed(self) -> bool:
        return self._state.closed

    @property
    def exhausted(self) -> bool:
        return self._assembler.exhausted

    @property
    def header_map(self) -> HeaderMap:
        return self._header

    @property
    def header_names(self) -> tuple[str, ...]:
        return self._header.names

    @property
    def header_comment(self) -> str | None:
        return self._assembler.header_comment

    @property
    def trailer_comment(self) -> str | None:
        """Comments after the last record. Known once the stream is exhausted."""
        return self._assembler.trailer_comment

    @property
    def record_number(self) -> int:
        """
        Number the next record will get, not the number of the last record returned.

        Together with `character_offset` this is where a resumed session starts.
        """
        return self._state.record_number

    @property
    def character_offset(self) -> int:
        return self._state.character_offset

    @property
    def byte_offset(self) -> int | None:
        return self._state.byte_offset if self._state.track_bytes else None

    def checkpoint(self) -> Checkpoint:
        width = self._assembler.expected_width if self._dialect.strict_column_count else None
        return Checkpoint(self.record_number, self.character_offset, self.byte_offset, width)


def start_session(
    tokens: TokenSource,
    dialect: Dialect | None = None,
    *,
    record_number: int = 1,
    character_offset: int = 0,
    byte_offset: int = 0,
    track_bytes: bool = False,
    expected_width: int | None = None,
) -> ParseSession:
    """
    Build a ready session over any token source and resolve its header.

    Raises `ValueError` on bad resume parameters and whatever header resolution
    raises (e.g. `DuplicateHeaderError`); the token source is closed first in both cases.

    `expected_width` carries a strict session's record width over to a resumed one;
    a header, when there is one, sets the width instead.
    """
    dialect = dialect or DEFAULT_DIALECT
    try:
        if expected_width is not None and expected_width < 0:
            raise ValueError(f"expected_width must be >= 0, got {expected_width}")
        state = ParserState(
            record_number=record_number,
            character_offset=character_offset,
            byte_offset=byte_offset,
            track_bytes=track_bytes,
        )
        session = ParseSession(tokens, dialect, state)
        session._resolve_header()
        if session._assembler.expected_width is None:
            session._assembler.expected_width = expected_width
    except Exception:
        tokens.close()
        raise

    logger.debug(
        "Started parse session: header_mode=%s record_number=%s character_offset=%s",
        dialect.header_mode.value, record_number, character_offset,
    )
    return session


def open_session(
    reader: TextIO,
    dialect: Dialect | None = None,
    *,
    record_number: int = 1,
    character_offset: int = 0,
    byte_offset: int = 0,
    track_bytes: bool = False,
    expected_width: int | None = None,
    encoding: str = "utf-8",
) -> ParseSession:
    """
    Parse a text stream with `dialect` (default: comma separated, no header).

    To resume, open `reader` at a record boundary the previous session reported
    and pass its `Checkpoint.resume_options()`. `encoding` is only used to count
    bytes when `track_bytes` is on.
    """
    dialect = dialect or DEFAULT_DIALECT
    tokens = CsvTokenSource(
        reader,
        dialect,
        character_offset=character_offset,
        byte_offset=byte_offset,
        track_bytes=track_bytes,
        encoding=encoding,
    )
    return start_session(
        tokens,
        dialect,
        record_number=record_number,
        character_offset=character_offset,
        byte_offset=byte_offset,
        track_bytes=track_bytes,
        expected_width=expected_width,
    )
