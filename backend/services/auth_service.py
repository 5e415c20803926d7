"""Authentication helpers: issuing and reading member access tokens."""
from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.models.member import Member
from backend.services.member_service import MemberService

logger = logging.getLogger(__name__)


class AuthError(RuntimeError):
    """Raised when authentication fails."""


class AuthService:
    """Service responsible for JWT issuance and the member behind a token."""

    def __init__(self, db: AsyncSession, *, member_service: MemberService | None = None):
        self.db = db
        self.settings = get_settings()
        self.member_service = member_service or MemberService(db)

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------
    def _access_token_payload(self, member: Member) -> dict[str, str | int]:
        expire = datetime.now(UTC) + timedelta(minutes=self.settings.access_token_exp_minutes)
        return {
            "sub": str(member.member_id),
            "username": member.username,
            "exp": int(expire.timestamp()),
        }

    def create_access_token(self, member: Member) -> tuple[str, int]:
        payload = self._access_token_payload(member)
        token = jwt.encode(payload, self.settings.secret_key, algorithm=self.settings.jwt_algorithm)
        expires_in = self.settings.access_token_exp_minutes * 60
        return token, expires_in

    def decode_access_token(self, token: str) -> dict[str, str]:
        try:
            return jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token_expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError("invalid_token") from exc

    async def get_member_from_token(self, token: str) -> Member:
        """Decode a bearer token and load its member.

        Raises:
            AuthError: If the token is expired, malformed, or names an unknown member
        """
        payload = self.decode_access_token(token)
        member_id_str = payload.get("sub")
        if not member_id_str:
            raise AuthError("invalid_token")
        try:
            member_id = UUID(str(member_id_str))
        except ValueError as exc:
            raise AuthError("invalid_token") from exc

        member = await self.member_service.get_member(member_id)
        if not member:
            logger.warning(f"Token presented for unknown member {member_id}")
            raise AuthError("invalid_token")
        return member
