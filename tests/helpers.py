"""
tests/helpers.py -- Plain constants and builders shared by test modules.

Kept out of conftest.py so test modules can import them directly.
"""

from __future__ import annotations

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"


def register_payload(**overrides) -> dict:
    payload = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "password": "secret1",
        "date_of_birth": "1990-12-10",
        "gender": "female",
    }
    payload.update(overrides)
    return payload


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
