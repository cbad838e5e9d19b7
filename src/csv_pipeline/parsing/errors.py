from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import Record


class ErrorCode(str, Enum):
    """Typed error classifications."""
    duplicate_header = "duplicate_header"
    malformed_record = "malformed_record"
    token_source = "token_source"
    unterminated_quote = "unterminated_quote"
    session_closed = "session_closed"


class CsvPipelineError(Exception):
    """Base for every error raised while parsing, carries a `code` and the human readable `detail`."""
    code: ErrorCode     # set by every subclass

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class DuplicateHeaderError(CsvPipelineError):
    """A header name repeats where the duplicate policy forbids it. Fatal to session start."""
    code = ErrorCode.duplicate_header

    def __init__(self, name: str, positions: tuple[int, ...]) -> None:
        super().__init__(f"duplicate header name {name!r} at columns {list(positions)}")
        self.name = name
        self.positions = positions


class MalformedRecordError(CsvPipelineError):
    """
    A record's width differs from the expected width.

    Raised per record: the record is consumed, the session stays usable and the
    next call continues with the following record.
    """
    code = ErrorCode.malformed_record

    def __init__(self, record_number: int, expected: int, actual: int, record: Record | None = None) -> None:
        super().__init__(f"record #{record_number}: expected {expected} values, got {actual}")
        self.record_number = record_number
        self.expected = expected
        self.actual = actual
        self.record = record


class TokenSourceError(CsvPipelineError):
    """Tokenizer or underlying read failure. Never retried here."""
    code = ErrorCode.token_source


class UnterminatedQuoteError(TokenSourceError):
    """Input ended inside a quoted field."""
    code = ErrorCode.unterminated_quote


class SessionClosedError(CsvPipelineError):
    """The session was closed before this call."""
    code = ErrorCode.session_closed

    def __init__(self, detail: str = "parse session is closed") -> None:
        super().__init__(detail)
