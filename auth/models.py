"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in ledger/models.py -- dataclasses own domain shape; stores and the flow
controller do the work.

Layer rule: no imports from api/ or ledger/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

GENDERS = ("male", "female", "other", "prefer_not_to_say")
ROLES = ("user", "admin")


@dataclass
class User:
    """A registered account.

    email is always stored lowercased; the UNIQUE constraint on that column is
    what makes email uniqueness case-insensitive.

    hashed_password is None unless the store was asked for it explicitly
    (with_password=True). Routes and response models never see it.
    """

    email: str
    first_name: str
    last_name: str
    date_of_birth: str  # ISO date, YYYY-MM-DD
    gender: str  # one of GENDERS
    role: str = "user"  # "user" | "admin"
    id: int | None = None
    hashed_password: str | None = field(default=None, repr=False)
    is_active: bool = True
    created_at: str | None = None
    last_login: str | None = None


@dataclass
class Registration:
    """Validated registration input, produced by auth.validation."""

    email: str
    password: str = field(repr=False)
    first_name: str
    last_name: str
    date_of_birth: str
    gender: str
