"""FastAPI dependencies."""
import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.services.auth_service import AuthService, AuthError
from backend.models.member import Member

logger = logging.getLogger(__name__)


def _mask_identifier(identifier: str) -> str:
    """Mask a sensitive identifier for logging (e.g., a token)."""
    if not identifier:
        return "<missing>"
    if len(identifier) <= 8:
        return f"{identifier[:2]}...{identifier[-2:]}"
    return f"{identifier[:4]}...{identifier[-4:]}"


async def get_current_member(
        authorization: str | None = Header(default=None, alias="Authorization"),
        db: AsyncSession = Depends(get_db),
) -> Member:
    """Resolve the current member from a bearer access token."""
    if not authorization:
        raise HTTPException(status_code=401, detail="missing_credentials")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="invalid_authorization_header")

    auth_service = AuthService(db)
    try:
        return await auth_service.get_member_from_token(token)
    except AuthError as exc:
        logger.info(f"Rejected token {_mask_identifier(token)}: {exc}")
        detail = "token_expired" if str(exc) == "token_expired" else "invalid_token"
        raise HTTPException(status_code=401, detail=detail) from exc
