"""Validators."""

import re
from typing import List

PHONE_PATTERN = re.compile(r"^[\d\s\-\+\(\)]{10,15}$")


def validate_phone(phone: str) -> bool:
    """Validate phone number."""
    return bool(PHONE_PATTERN.match(phone or ""))


def validate_password_strength(password: str) -> tuple[bool, List[str]]:
    """Validate password strength."""
    errors = []

    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")

    return len(errors) == 0, errors


def validate_file_extension(filename: str, allowed_extensions: List[str]) -> bool:
    """Validate file extension."""
    if not filename or "." not in filename:
        return False

    extension = filename.rsplit(".", 1)[-1].lower()
    return extension in [ext.lower() for ext in allowed_extensions]
