"""Member Pydantic schemas."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List
from uuid import UUID

from backend.schemas.base import BaseSchema


class CreateMemberRequest(BaseModel):
    """Request to register a member."""
    username: str = Field(..., min_length=3, max_length=80)


class MemberResponse(BaseSchema):
    """Member information."""
    member_id: UUID
    username: str
    lifetime_wins: int
    created_at: datetime


class CreateMemberResponse(MemberResponse):
    """Created member plus an access token for later requests."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LeaderboardEntry(BaseSchema):
    rank: int
    member_id: UUID
    username: str
    lifetime_wins: int


class LeaderboardResponse(BaseSchema):
    """Members ranked by lifetime wins."""
    entries: List[LeaderboardEntry]
