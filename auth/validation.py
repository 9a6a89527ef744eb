"""
auth/validation.py -- Registration field validation.

Rules run in a fixed order and the first failure wins, so the client always
gets one actionable message rather than a list.

Layer rule: no imports from api/ or ledger/.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date

from auth.errors import ValidationError
from auth.models import GENDERS, Registration

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 72  # bcrypt ignores bytes past 72
MAX_NAME_LENGTH = 50

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_REQUIRED = ("first_name", "last_name", "email", "password", "date_of_birth", "gender")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _parse_birth_date(value: str) -> date:
    try:
        born = date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError("Date of birth must be a valid date (YYYY-MM-DD)") from exc
    if born >= date.today():
        raise ValidationError("Date of birth must be in the past")
    return born


def validate_registration(fields: Mapping[str, object]) -> Registration:
    """Return a normalized Registration or raise ValidationError.

    String values are stripped (except the password). Missing keys, None and
    blank strings all count as missing.
    """
    values: dict[str, str] = {}
    for name in _REQUIRED:
        raw = fields.get(name)
        if raw is None:
            raise ValidationError("Please provide all required fields")
        text = str(raw) if name == "password" else str(raw).strip()
        if not text:
            raise ValidationError("Please provide all required fields")
        values[name] = text

    for name in ("first_name", "last_name"):
        if len(values[name]) > MAX_NAME_LENGTH:
            label = name.replace("_", " ").capitalize()
            raise ValidationError(f"{label} cannot exceed {MAX_NAME_LENGTH} characters")

    email = normalize_email(values["email"])
    if len(email) > 255 or not EMAIL_PATTERN.match(email):
        raise ValidationError("Please provide a valid email address")

    password = values["password"]
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password.encode("utf-8")) > MAX_PASSWORD_LENGTH:
        raise ValidationError(f"Password cannot exceed {MAX_PASSWORD_LENGTH} bytes")

    born = _parse_birth_date(values["date_of_birth"])

    gender = values["gender"].lower()
    if gender not in GENDERS:
        raise ValidationError(f"Gender must be one of: {', '.join(GENDERS)}")

    return Registration(
        email=email,
        password=password,
        first_name=values["first_name"],
        last_name=values["last_name"],
        date_of_birth=born.isoformat(),
        gender=gender,
    )
