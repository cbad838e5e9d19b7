from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Iterator, Mapping, Sequence

from .dialect import Dialect, DuplicateHeaderMode, HeaderMode
from .errors import DuplicateHeaderError

if TYPE_CHECKING:
    from .assembler import RecordAssembler

logger = logging.getLogger(__name__)


class HeaderMap(Mapping[str, int]):
    """
    Read-only column name -> zero-based index mapping.

    `names` keeps every column in order, duplicates included. The mapping itself
    holds one entry per distinct name, pointing at its first occurrence. With
    `ignore_case` lookups are casefolded.
    """
    __slots__ = ("_names", "_index", "_ignore_case")

    def __init__(self, names: Sequence[str], index: Mapping[str, int], *, ignore_case: bool = False) -> None:
        self._names = tuple(names)
        self._index = dict(index)
        self._ignore_case = ignore_case

    @classmethod
    def empty(cls) -> HeaderMap:
        return cls((), {})

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def ignore_case(self) -> bool:
        return self._ignore_case

    def _key(self, name: str) -> str:
        return name.casefold() if self._ignore_case else name

    def __getitem__(self, name: str) -> int:
        if not isinstance(name, str):
            raise KeyError(name)
        return self._index[self._key(name)]

    def __iter__(self) -> Iterator[str]:
        # the spelling of the first occurrence, in column order
        for i in self._index.values():
            yield self._names[i]

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"HeaderMap({dict(self.items())!r})"


def build_header_map(
    names: Sequence[str | None],
    *,
    duplicate_mode: DuplicateHeaderMode = DuplicateHeaderMode.allow_all,
    trim: bool = False,
    ignore_case: bool = False,
) -> HeaderMap:
    """
    Build a `HeaderMap` from ordered column names, enforcing the duplicate policy.

    Pure: the same input always gives an equal map. `None` names (a null marker
    hit in the header row) become `""`. Trimming happens before names are
    compared or stored.

    Raises `DuplicateHeaderError` on the first forbidden duplicate, in column order:
    - `disallow`: any repeat, blank names included.
    - `allow_empty`: repeats of non-blank names.
    """
    cleaned = [(n or "").strip() if trim else (n or "") for n in names]

    positions: dict[str, list[int]] = {}
    for i, name in enumerate(cleaned):
        key = name.casefold() if ignore_case else name
        positions.setdefault(key, []).append(i)

    for key, idxs in positions.items():
        if len(idxs) < 2:
            continue
        blank = cleaned[idxs[0]].strip() == ""
        if duplicate_mode is DuplicateHeaderMode.disallow or (
            duplicate_mode is DuplicateHeaderMode.allow_empty and not blank
        ):
            raise DuplicateHeaderError(cleaned[idxs[0]], tuple(idxs))

    return HeaderMap(cleaned, {key: idxs[0] for key, idxs in positions.items()}, ignore_case=ignore_case)


def _build_for(dialect: Dialect, names: Sequence[str | None]) -> HeaderMap:
    return build_header_map(
        names,
        duplicate_mode=dialect.duplicate_header_mode,
        trim=dialect.trim,
        ignore_case=dialect.ignore_header_case,
    )


def resolve_header(dialect: Dialect, assembler: RecordAssembler) -> HeaderMap:
    """
    Resolve the session's header once, at session start.

    - `none`: empty map, nothing is read.
    - `explicit`: names come from the dialect. With `skip_header_record` the input's
      own header line is read and thrown away.
    - `derive`: the first record supplies the names. Unless `skip_header_record`, it
      is queued so the caller still receives it, flagged `is_header`.

    The header record bypasses the row filter but consumes a record number.
    """
    if dialect.header_mode is HeaderMode.none:
        return HeaderMap.empty()

    if dialect.header_mode is HeaderMode.explicit:
        header = _build_for(dialect, dialect.header_names)
        if dialect.skip_header_record:
            skipped = assembler.read_header_record()
            logger.debug("Skipped input header record: %s", skipped)
    else:
        record = assembler.read_header_record()
        if record is None:
            logger.debug("Empty input, no header to derive")
            return HeaderMap.empty()
        header = _build_for(dialect, record.values)
        if not dialect.skip_header_record:
            assembler.replay(replace(record, header=header))

    assembler.header = header
    assembler.expected_width = len(header.names)
    logger.debug("Resolved header (%s): %s", dialect.header_mode.value, header.names)
    return header
