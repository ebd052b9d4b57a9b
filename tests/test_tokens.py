"""Tests for token type detection."""

import base64
import json

import pytest

from authbridge.app.core.tokens import (
    TokenType,
    analyze_token,
    get_user_id_from_token,
    is_legacy_jwt,
    is_session_token,
)


def make_jwt(payload: dict) -> str:
    def encode(data: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()

    return f"{encode({'alg': 'HS256', 'typ': 'JWT'})}.{encode(payload)}.c2lnbmF0dXJl"


class TestAnalyzeToken:
    """Tests for analyze_token."""

    def test_legacy_jwt(self):
        result = analyze_token(make_jwt({"id": "user-1", "iat": 1}))
        assert result.type == TokenType.LEGACY_JWT
        assert result.payload["id"] == "user-1"

    def test_better_auth_jwt(self):
        result = analyze_token(make_jwt({"sub": "user-2", "id": "ignored"}))
        assert result.type == TokenType.BETTER_AUTH_JWT

    def test_jwt_without_known_claims(self):
        assert analyze_token(make_jwt({"foo": "bar"})).type == TokenType.UNKNOWN

    def test_session_token(self):
        assert analyze_token("abcDEF123sessionToken").type == TokenType.SESSION_TOKEN

    def test_three_parts_that_are_not_json(self):
        assert analyze_token("not.a.jwt").type == TokenType.SESSION_TOKEN

    @pytest.mark.parametrize("token", [None, "", 42])
    def test_empty_or_invalid(self, token):
        assert analyze_token(token).type == TokenType.UNKNOWN


class TestTokenHelpers:
    """Tests for the boolean helpers and user ID extraction."""

    def test_get_user_id(self):
        assert get_user_id_from_token(make_jwt({"id": "legacy-user"})) == "legacy-user"
        assert get_user_id_from_token(make_jwt({"sub": "ba-user"})) == "ba-user"
        assert get_user_id_from_token(make_jwt({"sub": 42})) == "42"
        assert get_user_id_from_token("sessiontoken") is None
        assert get_user_id_from_token(None) is None

    def test_predicates(self):
        legacy = make_jwt({"id": "u"})
        session = "plainSessionToken"

        assert is_legacy_jwt(legacy) is True
        assert is_session_token(legacy) is False
        assert is_legacy_jwt(session) is False
        assert is_legacy_jwt(make_jwt({"sub": "u"})) is False
        assert is_session_token(session) is True
