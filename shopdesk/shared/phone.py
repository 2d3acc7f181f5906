import re

INVALID_PHONE_MESSAGE = "Invalid phone number. Use the format (XX) 9XXXX-XXXX"


def extract_digits(value: str) -> str:
    return re.sub(r"\D", "", value)


def format_brazilian_cell_phone(value: str | None) -> str | None:
    """Return ``(XX) XXXXX-XXXX`` for an 11-digit number, otherwise None."""
    if not value:
        return None

    digits = extract_digits(value)
    if len(digits) != 11:
        return None

    return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
