from __future__ import annotations

from io import StringIO

import pytest

from csv_pipeline.ingest.checkpoint import Checkpoint
from csv_pipeline.ingest.session import open_session
from csv_pipeline.parsing.dialect import Dialect, HeaderMode, row_range
from csv_pipeline.parsing.errors import MalformedRecordError

# quoted line break, empty line, comment, CRLF, non-ascii, no final terminator
TEXT = 'a,b\n"multi\nline",é\n\n# note\n3,4\r\n5,"6"'
# widths 3, 2, 3, 1, 3
RAGGED = "1,2,3\n4,5\n\n# note\n6,7,8\n9\n10,11,12"
TEXTS = {"mixed": TEXT, "ragged": RAGGED}

DIALECTS = {
    "plain": Dialect(comment_marker="#"),
    "explicit_header": Dialect(comment_marker="#", header_mode=HeaderMode.explicit, header_names=("l", "r")),
    "filtered": Dialect(comment_marker="#", row_filter=row_range(2, 3)),
    "strict": Dialect(comment_marker="#", strict_column_count=True),
    "strict_filtered": Dialect(comment_marker="#", strict_column_count=True, row_filter=row_range(2)),
    "limited": Dialect(comment_marker="#", max_rows=3),
    "strict_limited": Dialect(comment_marker="#", strict_column_count=True, max_rows=4),
}


def _open(text: str, dialect: Dialect, **kwargs):
    return open_session(StringIO(text, newline=""), dialect, **kwargs)


def _step(session):
    """One call's outcome: a record, a `("malformed", n)` marker, or `None` at the end."""
    try:
        return session.next_record()
    except MalformedRecordError as e:
        return ("malformed", e.record_number)


def _outcomes(session) -> list:
    outcomes = []
    while True:
        outcome = _step(session)
        if outcome is None:
            return outcomes
        outcomes.append(outcome)


@pytest.mark.parametrize("text_name", sorted(TEXTS))
@pytest.mark.parametrize("name", sorted(DIALECTS))
@pytest.mark.parametrize("track_bytes", [False, True])
def test_resumed_session_yields_identical_remainder(text_name: str, name: str, track_bytes: bool) -> None:
    """Stop after every possible call, resume from the checkpoint, compare with the uninterrupted run."""
    text, dialect = TEXTS[text_name], DIALECTS[name]
    full = _outcomes(_open(text, dialect, track_bytes=track_bytes))

    for k in range(len(full) + 1):
        original = _open(text, dialect, track_bytes=track_bytes)
        for _ in range(k):
            _step(original)
        checkpoint = original.checkpoint()
        expected = _outcomes(original)

        resumed = _open(text[checkpoint.character_offset:], dialect, **checkpoint.resume_options())
        assert _outcomes(resumed) == expected, (name, k, checkpoint.render_one_line())
        assert expected == full[k:]


def test_strict_width_survives_resume() -> None:
    dialect = Dialect(strict_column_count=True)
    original = _open("1,2,3\n4,5\n6,7,8\n", dialect)
    original.next_record()
    checkpoint = original.checkpoint()
    assert checkpoint.expected_width == 3

    resumed = _open("4,5\n6,7,8\n", dialect, **checkpoint.resume_options())
    with pytest.raises(MalformedRecordError) as e:
        resumed.next_record()
    assert (e.value.record_number, e.value.expected, e.value.actual) == (2, 3, 2)
    assert resumed.next_record().values == ("6", "7", "8")


def test_max_rows_survives_resume() -> None:
    dialect = Dialect(max_rows=3)
    original = _open("a\nb\nc\nd\ne\n", dialect)
    original.next_record()
    checkpoint = original.checkpoint()

    resumed = _open("b\nc\nd\ne\n", dialect, **checkpoint.resume_options())
    assert [(r.record_number, r.values) for r in resumed.records()] == [(2, ("b",)), (3, ("c",))]


def test_record_positions_point_at_record_starts() -> None:
    records = _open(TEXT, DIALECTS["plain"], track_bytes=True).records()

    assert [r.record_number for r in records] == [1, 2, 3, 4]
    assert [r.values for r in records] == [("a", "b"), ("multi\nline", "é"), ("3", "4"), ("5", "6")]
    assert [r.position.character_offset for r in records] == [0, 4, 27, 32]
    assert TEXT[records[2].position.character_offset:].startswith("3,4")
    # `é` is two bytes in utf-8
    assert records[2].position.byte_offset == records[2].position.character_offset + 1


def test_resume_numbering_continues() -> None:
    session = _open("x\ny\n", Dialect(), record_number=10, character_offset=500)
    first, second = session.records()

    assert (first.record_number, second.record_number) == (10, 11)
    assert first.position.character_offset == 500
    assert session.checkpoint() == Checkpoint(12, 504)


def test_checkpoint_resume_options() -> None:
    assert Checkpoint(3, 40).resume_options() == {"record_number": 3, "character_offset": 40}
    assert Checkpoint(3, 40, 44).resume_options() == {
        "record_number": 3,
        "character_offset": 40,
        "byte_offset": 44,
        "track_bytes": True,
    }


def test_checkpoint_render_one_line() -> None:
    assert Checkpoint(3, 40).render_one_line() == "next_record=3 character_offset=40"
    assert Checkpoint(3, 40, 44).render_one_line() == "next_record=3 character_offset=40 byte_offset=44"
    assert Checkpoint(3, 40, expected_width=2).render_one_line() == "next_record=3 character_offset=40 expected_width=2"


def test_checkpoint_carries_width_only_when_strict() -> None:
    assert Checkpoint(3, 40, expected_width=2).resume_options() == {
        "record_number": 3,
        "character_offset": 40,
        "expected_width": 2,
    }
    lenient = _open("1,2\n3\n", Dialect())
    lenient.records()
    assert lenient.checkpoint().expected_width is None


def test_header_width_wins_over_carried_width() -> None:
    dialect = Dialect(header_mode=HeaderMode.explicit, header_names=("l", "r"), strict_column_count=True)
    session = _open("1,2\n", dialect, expected_width=5)
    assert session.next_record().values == ("1", "2")
    assert session.checkpoint().expected_width == 2


def test_negative_expected_width_rejected() -> None:
    reader = StringIO("a\n", newline="")
    with pytest.raises(ValueError):
        open_session(reader, expected_width=-1)
    assert reader.closed
