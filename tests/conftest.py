from __future__ import annotations

from io import StringIO
from typing import Any, Callable, Iterable, Sequence

import pytest

from csv_pipeline.ingest.session import ParseSession, open_session
from csv_pipeline.parsing.dialect import Dialect
from csv_pipeline.parsing.types import Token, TokenKind


class ListTokenSource:
    """Token source replaying a fixed token list. Counts how often it is read and closed."""

    def __init__(self, tokens: Iterable[Token]) -> None:
        self.tokens = list(tokens)
        self.reads = 0
        self.close_calls = 0

    def next_token(self) -> Token:
        self.reads += 1
        if self.reads > len(self.tokens):
            raise AssertionError("read past end_of_stream")
        return self.tokens[self.reads - 1]

    def close(self) -> None:
        self.close_calls += 1


def rows_to_tokens(rows: Sequence[Sequence[str]], *, terminated: bool = True) -> list[Token]:
    """
    Tokens for `rows`, each line 10 characters long in offset terms.
    `terminated=False` leaves the last row without end_of_record.
    """
    out: list[Token] = []
    offset = 0
    for i, row in enumerate(rows):
        out.extend(Token(TokenKind.field, v) for v in row)
        offset += 10
        last = i == len(rows) - 1
        if last and not terminated:
            out.append(Token(TokenKind.end_of_stream, character_offset=offset))
            return out
        out.append(Token(TokenKind.end_of_record, character_offset=offset))
    out.append(Token(TokenKind.end_of_stream, character_offset=offset))
    return out


@pytest.fixture()
def make_tokens() -> Callable[..., ListTokenSource]:
    """Factory: `make_tokens(rows)` or `make_tokens(tokens=[...])`."""
    def _make(rows: Sequence[Sequence[str]] | None = None, *, tokens: Iterable[Token] | None = None,
              terminated: bool = True) -> ListTokenSource:
        if tokens is None:
            tokens = rows_to_tokens(rows or [], terminated=terminated)
        return ListTokenSource(tokens)
    return _make


@pytest.fixture()
def open_text() -> Callable[..., ParseSession]:
    """Factory: a session over an in-memory text, opened the way files should be (`newline=""`)."""
    def _open(text: str, dialect: Dialect | None = None, **kwargs: Any) -> ParseSession:
        return open_session(StringIO(text, newline=""), dialect, **kwargs)
    return _open
