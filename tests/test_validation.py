"""Unit tests for auth/validation.py -- registration field rules.

Covers:
- normalization (email lowercased/stripped, names stripped, gender lowercased)
- missing and blank fields share one message
- first failing rule wins
- email shape, password length, birth date, gender
"""

from datetime import date, timedelta

import pytest

from auth.errors import ValidationError
from auth.validation import MIN_PASSWORD_LENGTH, validate_registration
from tests.helpers import register_payload


def test_valid_payload_is_normalized():
    reg = validate_registration(
        register_payload(email="  Ada@Example.COM ", first_name="  Ada ", gender="Female")
    )
    assert reg.email == "ada@example.com"
    assert reg.first_name == "Ada"
    assert reg.gender == "female"
    assert reg.date_of_birth == "1990-12-10"


def test_password_is_not_stripped():
    reg = validate_registration(register_payload(password=" secret1 "))
    assert reg.password == " secret1 "


@pytest.mark.parametrize("field", ["first_name", "last_name", "email", "password", "date_of_birth", "gender"])
def test_each_required_field_missing(field):
    payload = register_payload()
    del payload[field]
    with pytest.raises(ValidationError, match="Please provide all required fields"):
        validate_registration(payload)


def test_blank_and_none_count_as_missing():
    with pytest.raises(ValidationError, match="required fields"):
        validate_registration(register_payload(last_name="   "))
    with pytest.raises(ValidationError, match="required fields"):
        validate_registration(register_payload(gender=None))


def test_missing_fields_reported_before_malformed_ones():
    """A bad email and a missing gender: the missing-field message wins."""
    payload = register_payload(email="not-an-email")
    del payload["gender"]
    with pytest.raises(ValidationError, match="required fields"):
        validate_registration(payload)


@pytest.mark.parametrize("email", ["plainaddress", "a@b", "a b@x.com", "@x.com", "a@@x.com"])
def test_invalid_email_shapes(email):
    with pytest.raises(ValidationError, match="valid email"):
        validate_registration(register_payload(email=email))


def test_short_password_rejected():
    with pytest.raises(ValidationError, match=f"at least {MIN_PASSWORD_LENGTH}"):
        validate_registration(register_payload(password="x" * (MIN_PASSWORD_LENGTH - 1)))


def test_minimum_length_password_accepted():
    reg = validate_registration(register_payload(password="x" * MIN_PASSWORD_LENGTH))
    assert len(reg.password) == MIN_PASSWORD_LENGTH


def test_overlong_password_rejected():
    with pytest.raises(ValidationError, match="cannot exceed"):
        validate_registration(register_payload(password="x" * 73))


def test_unparseable_birth_date():
    with pytest.raises(ValidationError, match="Date of birth must be a valid date"):
        validate_registration(register_payload(date_of_birth="10/12/1990"))


def test_future_birth_date():
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    with pytest.raises(ValidationError, match="in the past"):
        validate_registration(register_payload(date_of_birth=tomorrow))


def test_unknown_gender():
    with pytest.raises(ValidationError, match="Gender must be one of"):
        validate_registration(register_payload(gender="robot"))


def test_overlong_name():
    with pytest.raises(ValidationError, match="First name cannot exceed"):
        validate_registration(register_payload(first_name="A" * 51))
