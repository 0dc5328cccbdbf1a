"""Tests for API token validation."""
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from booking_app.api_tokens import (
    ApiTokenValidator,
    TokenRejected,
    TokenValid,
    generate_api_token,
    has_scope,
    hash_api_token,
    mask_token,
    parse_scopes,
    serialize_scopes,
)
from booking_app.errors import ErrorCode
from booking_app.models import ApiToken, utcnow


class ExplodingSession:
    """Any storage access fails the test"""

    def __getattr__(self, name):
        raise AssertionError(f"storage was accessed ({name})")


class BrokenSession:
    def query(self, *args, **kwargs):
        raise OperationalError("SELECT api_tokens", {}, Exception("database is down"))


@pytest.mark.parametrize("token", [None, "", "abc123", "Bearer bk_abc", "BK_" + "0" * 64, "xbk_123"])
def test_bad_prefix_is_rejected_without_storage_access(token):
    result = ApiTokenValidator(ExplodingSession()).validate(token)
    assert result == TokenRejected(ErrorCode.INVALID_TOKEN_FORMAT)


def test_unknown_token(db):
    result = ApiTokenValidator(db).validate(generate_api_token())
    assert isinstance(result, TokenRejected)
    assert result.error == ErrorCode.INVALID_TOKEN


def test_disabled_token(db, admin, make_token):
    raw = make_token(admin, is_active=False)
    result = ApiTokenValidator(db).validate(raw)
    assert result == TokenRejected(ErrorCode.TOKEN_DISABLED)


def test_expired_token_even_when_active(db, admin, make_token):
    raw = make_token(admin, expires_in=timedelta(minutes=-1))
    result = ApiTokenValidator(db).validate(raw)
    assert result == TokenRejected(ErrorCode.TOKEN_EXPIRED)


def test_expiry_uses_injected_clock(db, admin, make_token):
    raw = make_token(admin, expires_in=timedelta(days=1))
    later = utcnow() + timedelta(days=2)
    result = ApiTokenValidator(db, clock=lambda: later).validate(raw)
    assert result == TokenRejected(ErrorCode.TOKEN_EXPIRED)


def test_valid_token_returns_owner_and_scopes(db, admin, make_token):
    raw = make_token(admin, scopes=("read", "write"), expires_in=timedelta(days=30))
    before = utcnow()

    result = ApiTokenValidator(db).validate(raw)

    assert isinstance(result, TokenValid)
    assert result.user.id == admin.id
    assert result.scopes == frozenset({"read", "write"})

    stored = db.query(ApiToken).filter(ApiToken.id == result.token_id).one()
    db.refresh(stored)
    assert stored.last_used_at is not None
    assert stored.last_used_at >= before.replace(microsecond=0)


def test_comma_separated_scopes_are_accepted(db, admin):
    raw = generate_api_token()
    db.add(ApiToken(user_id=admin.id, token=hash_api_token(raw), name="legacy", scopes="read, write"))
    db.commit()

    result = ApiTokenValidator(db).validate(raw)

    assert result.scopes == frozenset({"read", "write"})


def test_raw_value_is_never_stored(db, admin, make_token):
    raw = make_token(admin)
    assert db.query(ApiToken).filter(ApiToken.token == raw).first() is None
    assert db.query(ApiToken).filter(ApiToken.token == hash_api_token(raw)).first() is not None


def test_storage_failure_maps_to_generic_error():
    result = ApiTokenValidator(BrokenSession()).validate(generate_api_token())
    assert result == TokenRejected(ErrorCode.AUTHENTICATION_FAILED)


def test_last_used_update_failure_does_not_fail_validation(db, admin, make_token, monkeypatch):
    raw = make_token(admin)

    def failing_commit():
        raise OperationalError("UPDATE api_tokens", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)
    result = ApiTokenValidator(db).validate(raw)

    assert isinstance(result, TokenValid)
    assert result.scopes == frozenset({"read", "write"})


def test_generated_tokens_are_unique_and_prefixed():
    first, second = generate_api_token(), generate_api_token()
    assert first != second
    assert first.startswith("bk_") and len(first) == 3 + 64


def test_parse_scopes_variants():
    assert parse_scopes('["read","write"]') == {"read", "write"}
    assert parse_scopes("read,admin") == {"read", "admin"}
    assert parse_scopes('["read", "write"') == {"read", "write"}
    assert parse_scopes("") == frozenset()
    assert parse_scopes(None) == frozenset()


def test_serialize_scopes_is_sorted_json():
    assert serialize_scopes(["write", "read", "read"]) == '["read", "write"]'


def test_admin_scope_grants_everything():
    assert has_scope({"admin"}, "write")
    assert has_scope({"read"}, "read")
    assert not has_scope({"read"}, "write")


def test_mask_token():
    assert mask_token("0123456789abcdef") == "01234567..."
