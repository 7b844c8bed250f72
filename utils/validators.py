import re
from datetime import date, datetime
from typing import Optional

from errors import InvalidDateFormat

DATE_PATTERN = re.compile(r"^\d{2}-\d{2}-\d{4}$")
DATE_FORMAT = "%d-%m-%Y"


class DateValidator:
    """Validation for the dd-mm-yyyy dates stored on borrow records."""

    @staticmethod
    def is_valid_date(value: Optional[str]) -> bool:
        if value is None:
            return False
        s = value.strip()
        if not DATE_PATTERN.match(s):
            return False
        # 31-02-2024 has the right shape but is not a calendar date
        try:
            datetime.strptime(s, DATE_FORMAT)
        except ValueError:
            return False
        return True

    @staticmethod
    def validate(value: Optional[str]) -> str:
        """Return the stripped date or raise ``InvalidDateFormat``."""
        if not DateValidator.is_valid_date(value):
            raise InvalidDateFormat(value)
        return value.strip()

    @staticmethod
    def parse(value: str) -> date:
        return datetime.strptime(DateValidator.validate(value), DATE_FORMAT).date()

    @staticmethod
    def format(day: date) -> str:
        return day.strftime(DATE_FORMAT)


class TextValidator:
    """Basic checks for names, titles and e-mail addresses."""

    EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @staticmethod
    def validate_name(text: Optional[str]) -> bool:
        if not isinstance(text, str):
            return False
        return bool(text.strip())

    @staticmethod
    def validate_title(title: Optional[str]) -> bool:
        return TextValidator.validate_name(title)

    @staticmethod
    def validate_email(email: Optional[str]) -> bool:
        # e-mail is optional for borrowers
        if email is None or not email.strip():
            return True
        return bool(TextValidator.EMAIL_PATTERN.match(email.strip()))

    @staticmethod
    def sanitize_text(text: Optional[str]) -> str:
        if text is None:
            return ""
        # newlines would break the line-based import/export files
        cleaned = re.sub(r"[\r\n]+", " ", text)
        return cleaned.strip()
