"""
auth/errors.py -- Error taxonomy for the authentication service.

Every expected failure is one of four classes. Each carries the HTTP status
and the machine-readable code the API layer puts in the error envelope, so
api/main.py needs a single exception handler for the whole family.

  ValidationError      400  malformed or missing input
  ConflictError        400  duplicate email at registration
  AuthenticationError  401  bad credentials, deactivated account, bad token
  InternalError        500  storage or unexpected failure (generic message only)

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(AuthServiceError):
    status_code = 400
    code = "validation_error"


class ConflictError(AuthServiceError):
    status_code = 400
    code = "conflict"


class AuthenticationError(AuthServiceError):
    status_code = 401
    code = "unauthorized"


class InternalError(AuthServiceError):
    """Raised after the real cause has been logged. The message is client-safe."""

    status_code = 500
    code = "internal_error"
