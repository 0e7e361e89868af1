"""
Tests for token verification and admin checks.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from support_gate.services import AuthService, Principal, extract_bearer_token

TEST_SECRET = "test-secret-key-for-jwt"
ADMIN_EMAIL = "admin@example.com"


@pytest.mark.unit
def test_round_trip_principal(auth_service):
    token = auth_service.create_token("user-1", email="user1@example.com", name="User One")

    principal = auth_service.verify_token(token)

    assert principal == Principal(user_id="user-1", email="user1@example.com", name="User One")


@pytest.mark.unit
def test_rejects_wrong_signature(auth_service):
    forged = AuthService(secret_key="another-secret-key", admin_emails=[]).create_token("user-1")

    assert auth_service.verify_token(forged) is None


@pytest.mark.unit
def test_rejects_expired_token(auth_service):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"sub": "user-1", "iat": past, "exp": past + timedelta(hours=1)},
        TEST_SECRET,
        algorithm="HS256"
    )

    assert auth_service.verify_token(token) is None


@pytest.mark.unit
def test_rejects_token_without_subject(auth_service):
    token = jwt.encode({"email": "x@example.com"}, TEST_SECRET, algorithm="HS256")

    assert auth_service.verify_token(token) is None


@pytest.mark.unit
def test_rejects_garbage(auth_service):
    assert auth_service.verify_token("not-a-jwt") is None


@pytest.mark.unit
def test_admin_by_claim(auth_service):
    token = auth_service.create_token("ops-1", email="ops@example.com", admin=True)
    principal = auth_service.verify_token(token)

    assert principal.admin_claim is True
    assert auth_service.is_admin(principal) is True


@pytest.mark.unit
def test_admin_by_email_allow_list_is_case_insensitive(auth_service):
    principal = Principal(user_id="admin-1", email=ADMIN_EMAIL.upper())

    assert auth_service.is_admin(principal) is True


@pytest.mark.unit
def test_regular_user_is_not_admin(auth_service, user_principal):
    assert auth_service.is_admin(user_principal) is False
    assert auth_service.is_admin(Principal(user_id="anon")) is False


@pytest.mark.unit
def test_admin_claim_must_be_true(auth_service):
    token = auth_service.create_token("user-1", metadata={"admin": "yes"})

    assert auth_service.verify_token(token).admin_claim is False


@pytest.mark.unit
@pytest.mark.parametrize("header,expected", [
    ("Bearer abc.def.ghi", "abc.def.ghi"),
    ("Bearer   abc ", "abc"),
    ("Bearer ", None),
    ("Basic dXNlcjpwYXNz", None),
    (None, None),
])
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected
