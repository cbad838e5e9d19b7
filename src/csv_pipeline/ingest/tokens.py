from __future__ import annotations

import csv
import logging
from collections import deque
from typing import Iterator, TextIO

from csv_pipeline.parsing.dialect import Dialect
from csv_pipeline.parsing.errors import TokenSourceError, UnterminatedQuoteError
from csv_pipeline.parsing.types import Token, TokenKind

logger = logging.getLogger(__name__)


class CsvTokenSource:
    """
    Token source over a text stream, with the `csv` module doing the lexing.

    Lines are pulled with `readline()` (open files with `newline=""` so `\\r\\n`
    survives and offsets match the raw text). `csv.reader` only asks for another
    line while a record is still open, so after each row the consumed character
    and byte counts sit exactly on the record boundary.

    A line that starts with the comment marker at a record boundary becomes a
    `comment` token. A final line without terminator ends in `end_of_stream`
    directly instead of `end_of_record`.
    """

    def __init__(
        self,
        reader: TextIO,
        dialect: Dialect,
        *,
        character_offset: int = 0,
        byte_offset: int = 0,
        track_bytes: bool = False,
        encoding: str = "utf-8",
    ) -> None:
        self._reader = reader
        self._dialect = dialect
        self._character_offset = character_offset
        self._byte_offset = byte_offset
        self._track_bytes = track_bytes
        self._encoding = encoding

        self._pending: deque[Token] = deque()
        self._peeked: str | None = None
        self._last_line = ""
        self._drained = False
        self._closed = False
        self._rows = csv.reader(self._feed(), **self._csv_options(dialect))

    @staticmethod
    def _csv_options(dialect: Dialect) -> dict[str, object]:
        options: dict[str, object] = {
            "delimiter": dialect.delimiter,
            "doublequote": dialect.double_quote,
            "escapechar": dialect.escape_char,
            "strict": True,
        }
        if dialect.quote_char is None:
            options["quoting"] = csv.QUOTE_NONE
        else:
            options["quotechar"] = dialect.quote_char
        return options

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the underlying reader, once."""
        if self._closed:
            return
        self._reader.close()
        self._closed = True
        logger.debug("Closed token source at offset %s", self._character_offset)

    def next_token(self) -> Token:
        if self._closed:
            raise TokenSourceError("token source is closed")
        if not self._pending:
            self._fill()
        return self._pending.popleft()

    ## -- line handling

    def _read_line(self) -> str | None:
        if self._drained:
            return None
        try:
            line = self._reader.readline()
        except (OSError, UnicodeDecodeError) as e:
            raise TokenSourceError(f"read failed at offset {self._character_offset}: {e}") from e
        if line == "":
            self._drained = True
            return None
        return line

    def _peek_line(self) -> str | None:
        if self._peeked is None:
            self._peeked = self._read_line()
        return self._peeked

    def _take_line(self) -> str | None:
        line = self._peek_line()
        self._peeked = None
        if line is not None:
            self._last_line = line
            self._character_offset += len(line)
            if self._track_bytes:
                self._byte_offset += len(line.encode(self._encoding))
        return line

    def _feed(self) -> Iterator[str]:
        """Lines for `csv.reader`, counted as they are consumed."""
        while True:
            line = self._take_line()
            if line is None:
                return
            yield line

    ## -- tokens

    def _token(self, kind: TokenKind, content: str | None = None) -> Token:
        return Token(
            kind,
            content,
            character_offset=self._character_offset,
            byte_offset=self._byte_offset if self._track_bytes else None,
        )

    def _fill(self) -> None:
        line = self._peek_line()
        if line is None:
            self._pending.append(self._token(TokenKind.end_of_stream))
            return

        marker = self._dialect.comment_marker
        if marker is not None and line.startswith(marker):
            self._take_line()
            text = line[len(marker):].rstrip("\r\n").strip()
            self._pending.append(self._token(TokenKind.comment, text))
            return

        try:
            row = next(self._rows)
        except StopIteration:
            self._pending.append(self._token(TokenKind.end_of_stream))
            return
        except csv.Error as e:
            if self._drained:
                raise UnterminatedQuoteError(
                    f"input ended inside a quoted field (offset {self._character_offset}): {e}"
                ) from e
            raise TokenSourceError(f"malformed input before offset {self._character_offset}: {e}") from e

        for value in row:
            self._pending.append(Token(TokenKind.field, value))
        if self._last_line.endswith(("\n", "\r")):
            self._pending.append(self._token(TokenKind.end_of_record))
        else:
            self._pending.append(self._token(TokenKind.end_of_stream))
