import pytest

from freight_intake.services.sanitizer import clean, is_formula_error, looks_like_date, parse_date


def test_clean_strips_tags_and_invisible_characters() -> None:
    assert clean("<b>고관영</b>\u200b ") == "고관영"
    assert clean("\ufeffLee\u00a0Hanna") == "Lee Hanna"
    assert clean("Tom &amp; Jerry") == "Tom & Jerry"


def test_clean_handles_none_and_numbers() -> None:
    assert clean(None) == ""
    assert clean(12) == "12"


@pytest.mark.parametrize("token", ["#N/A", "#REF!", "#value!", " #DIV/0! ", "#NAME?"])
def test_clean_blanks_formula_errors(token: str) -> None:
    assert is_formula_error(token)
    assert clean(token) == ""


def test_formula_error_must_be_the_whole_cell() -> None:
    assert not is_formula_error("see #N/A above")
    assert clean("see #N/A above") == "see #N/A above"


def test_parse_date_converts_spreadsheet_serial() -> None:
    assert parse_date("45658") == "2025-01-01"
    assert parse_date("1") == "1"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2025.1.5", "2025-01-05"),
        ("2025/01/05", "2025-01-05"),
        ("2025-1-05", "2025-01-05"),
        ("2025. 1. 5.", "2025-01-05"),
    ],
)
def test_parse_date_normalizes_separators(text: str, expected: str) -> None:
    assert parse_date(text) == expected


def test_parse_date_returns_unrecognised_text_unchanged() -> None:
    assert parse_date(" next week ") == "next week"
    assert parse_date("2025-13-40") == "2025-13-40"
    assert parse_date(None) == ""


def test_looks_like_date() -> None:
    assert looks_like_date("2025.03.01")
    assert not looks_like_date("Lee Hanna")
