import pytest

from app.errors import InvalidInput
from app.utils import dedupe_by, extract_year, parse_item_id, truncate_text


@pytest.mark.parametrize(("raw", "expected"), [(42, 42), ("42", 42), (" 7 ", 7), (3.0, 3)])
def test_parse_item_id_accepts_positive_integers(raw, expected):
    assert parse_item_id(raw) == expected


@pytest.mark.parametrize(
    "raw", [None, True, False, 0, -4, 2.5, "abc", "12a", "", [1], 2**63, "1" + "0" * 20]
)
def test_parse_item_id_rejects_malformed_values(raw):
    with pytest.raises(InvalidInput):
        parse_item_id(raw)


def test_dedupe_by_keeps_first_occurrence_order():
    rows = [(9, "a"), (205, "b"), (9, "c"), (301, "d")]

    assert dedupe_by(rows, key=lambda row: row[0]) == [(9, "a"), (205, "b"), (301, "d")]


def test_truncate_text_collapses_whitespace():
    assert truncate_text("  A   long\nstory  ", 50) == "A long story"
    assert truncate_text("abcdefghij", 8) == "abcde..."


def test_extract_year():
    assert extract_year("1999-03-31") == 1999
    assert extract_year("") is None
    assert extract_year(None) is None
