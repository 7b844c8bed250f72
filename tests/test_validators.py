from datetime import date

import pytest

from errors import InvalidDateFormat
from utils.validators import DateValidator, TextValidator


def test_date_validation():
    # Valid dd-mm-yyyy dates
    assert DateValidator.is_valid_date("18-10-2026")
    assert DateValidator.is_valid_date("29-02-2024")
    assert DateValidator.is_valid_date(" 01-01-2025 ")

    # Invalid dates
    assert not DateValidator.is_valid_date("2026-10-18")  # ISO order
    assert not DateValidator.is_valid_date("1-10-2026")  # missing zero padding
    assert not DateValidator.is_valid_date("29-02-2026")  # not a leap year
    assert not DateValidator.is_valid_date("18/10/2026")
    assert not DateValidator.is_valid_date("")
    assert not DateValidator.is_valid_date(None)

def test_validate_raises_typed_error():
    assert DateValidator.validate(" 05-11-2026") == "05-11-2026"
    with pytest.raises(InvalidDateFormat) as exc:
        DateValidator.validate("5 Nov 2026")
    assert exc.value.identifier == "5 Nov 2026"
    assert isinstance(exc.value, ValueError)

def test_parse_and_format():
    assert DateValidator.parse("18-10-2026") == date(2026, 10, 18)
    assert DateValidator.format(date(2026, 1, 2)) == "02-01-2026"

def test_text_validation():
    assert TextValidator.validate_name("George Orwell")
    assert not TextValidator.validate_name("   ")
    assert not TextValidator.validate_name(None)
    assert TextValidator.validate_title("1984")

    assert TextValidator.validate_email("alice@example.com")
    assert TextValidator.validate_email("")  # e-mail is optional
    assert not TextValidator.validate_email("alice@")
    assert not TextValidator.validate_email("not an email")

def test_sanitize_text():
    assert TextValidator.sanitize_text(" The\nHobbit ") == "The Hobbit"
    assert TextValidator.sanitize_text(None) == ""
