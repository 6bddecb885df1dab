import re

from core.config import settings

_NON_DIGITS = re.compile(r"\D+")


def only_digits(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def normalize_phone(raw: str | None, default_country: str | None = None) -> str:
    """Turn a free-form phone string into a dialable international digit string.

    Local numbers (8 to 11 digits, with or without area code) get the country
    code prepended; numbers that already start with it, or longer ones that are
    presumed fully qualified, are returned untouched. Never raises.
    """
    country = default_country or settings.DEFAULT_COUNTRY_CODE
    digits = only_digits(raw).lstrip("0")
    if not digits:
        return ""
    if digits.startswith(country):
        return digits
    if 8 <= len(digits) <= 11:
        return country + digits
    return digits
