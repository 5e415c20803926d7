"""
Tests for AuthService - JWT issuance and resolving the member behind a token.
"""

import pytest
from datetime import datetime, timedelta, UTC
import uuid

import jwt

from backend.config import get_settings
from backend.services.auth_service import AuthService, AuthError


@pytest.fixture
async def test_member(member_factory):
    return await member_factory(f"auth_test_{uuid.uuid4().hex[:8]}")


class TestAccessTokens:
    """Test access token round trips."""

    @pytest.mark.asyncio
    async def test_token_resolves_to_member(self, db_session, test_member):
        """A freshly issued token loads the member it was issued for."""
        auth_service = AuthService(db_session)

        token, expires_in = auth_service.create_access_token(test_member)
        member = await auth_service.get_member_from_token(token)

        assert member.member_id == test_member.member_id
        assert expires_in == get_settings().access_token_exp_minutes * 60

    @pytest.mark.asyncio
    async def test_payload_contains_subject_and_username(self, db_session, test_member):
        auth_service = AuthService(db_session)
        token, _ = auth_service.create_access_token(test_member)

        payload = auth_service.decode_access_token(token)

        assert payload["sub"] == str(test_member.member_id)
        assert payload["username"] == test_member.username


class TestRejectedTokens:
    """Test tokens that must not authenticate."""

    @pytest.mark.asyncio
    async def test_expired_token(self, db_session, test_member):
        settings = get_settings()
        expired = jwt.encode(
            {"sub": str(test_member.member_id), "exp": int((datetime.now(UTC) - timedelta(minutes=1)).timestamp())},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthError, match="token_expired"):
            await AuthService(db_session).get_member_from_token(expired)

    @pytest.mark.asyncio
    async def test_wrong_signature(self, db_session, test_member):
        forged = jwt.encode(
            {"sub": str(test_member.member_id), "exp": int((datetime.now(UTC) + timedelta(minutes=5)).timestamp())},
            "some-other-secret-key-that-is-long-enough",
            algorithm="HS256",
        )

        with pytest.raises(AuthError, match="invalid_token"):
            await AuthService(db_session).get_member_from_token(forged)

    @pytest.mark.asyncio
    async def test_unknown_member(self, db_session):
        settings = get_settings()
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "exp": int((datetime.now(UTC) + timedelta(minutes=5)).timestamp())},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthError, match="invalid_token"):
            await AuthService(db_session).get_member_from_token(token)

    @pytest.mark.asyncio
    async def test_missing_subject(self, db_session):
        settings = get_settings()
        token = jwt.encode(
            {"exp": int((datetime.now(UTC) + timedelta(minutes=5)).timestamp())},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthError, match="invalid_token"):
            await AuthService(db_session).get_member_from_token(token)
