"""Member API router."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from backend.database import get_db
from backend.dependencies import get_current_member
from backend.models.member import Member
from backend.schemas.member import (
    CreateMemberRequest,
    CreateMemberResponse,
    MemberResponse,
    LeaderboardResponse,
    LeaderboardEntry,
)
from backend.services.auth_service import AuthService
from backend.services.member_service import MemberService
from backend.utils.exceptions import PartyWagerError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=CreateMemberResponse, status_code=201)
async def create_member(
    request: CreateMemberRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register a member and return an access token for it."""
    try:
        member_service = MemberService(db)
        member = await member_service.create_member(request.username)

        access_token, expires_in = AuthService(db, member_service=member_service).create_access_token(member)

        return CreateMemberResponse(
            member_id=member.member_id,
            username=member.username,
            lifetime_wins=member.lifetime_wins,
            created_at=member.created_at,
            access_token=access_token,
            expires_in=expires_in,
        )

    except PartyWagerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.error_code)
    except Exception as e:
        logger.error(f"Error creating member: {type(e).__name__}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create member")


@router.get("/me", response_model=MemberResponse)
async def get_me(member: Member = Depends(get_current_member)):
    """The authenticated member, including their lifetime wins."""
    return MemberResponse.model_validate(member)


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Members ranked by lifetime wins."""
    try:
        entries = await MemberService(db).get_leaderboard(limit)
        return LeaderboardResponse(entries=[LeaderboardEntry(**entry) for entry in entries])

    except PartyWagerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.error_code)
    except Exception as e:
        logger.error(f"Error loading leaderboard: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load leaderboard")
