"""Party Pydantic schemas."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from backend.models.base import BetType, PrivacyOption
from backend.schemas.base import BaseSchema


# Request schemas
class CreatePartyRequest(BaseModel):
    """Request to create a new party."""
    party_name: str = Field(..., min_length=1, max_length=100, description="Display name")
    bet_prompt: str = Field(..., min_length=1, max_length=500, description="What the party bets on")
    candidate_outcomes: List[str] = Field(default_factory=list, description="Options members choose from")
    max_selections: int = Field(default=1, ge=1, description="How many options a member may pick")
    max_members: Optional[int] = Field(default=None, ge=2, description="Capacity, leader included")
    bet_type: BetType = Field(default=BetType.NORMAL, description="normal, timed or contest")
    privacy_option: PrivacyOption = Field(default=PrivacyOption.PRIVATE)
    terms: Optional[str] = Field(default=None, max_length=500, description="Stakes agreed by the party")


class JoinPartyRequest(BaseModel):
    """Request to join an existing party by code."""
    party_code: str = Field(..., min_length=8, max_length=8, description="8-character party code")


class SubmitSelectionRequest(BaseModel):
    """Request to create or replace the caller's selection."""
    chosen_outcomes: List[str] = Field(..., description="Picked candidate outcomes")


class ConfirmOutcomeRequest(BaseModel):
    """Request to confirm the winning outcomes of a normal bet."""
    winning_outcomes: List[str] = Field(..., description="Outcomes that actually happened")


class DeclareWinnersRequest(BaseModel):
    """Request to name the winners of a timed or contest bet."""
    winner_ids: List[UUID] = Field(default_factory=list)


class TransferLeadershipRequest(BaseModel):
    """Request to hand leadership to another member."""
    new_leader_id: UUID


class InviteMemberRequest(BaseModel):
    """Request to invite a member to a party."""
    invitee_id: UUID


class RespondToInviteRequest(BaseModel):
    """Request to accept or decline an invite."""
    accept: bool


# Response schemas
class PartyResponse(BaseSchema):
    """Party information."""
    party_id: int
    party_code: str
    party_name: str
    leader_id: UUID
    max_members: int
    bet_type: str
    privacy_option: str
    bet_prompt: str
    terms: Optional[str]
    candidate_outcomes: List[str]
    max_selections: int
    status: str
    winning_outcomes: Optional[List[str]]
    declared_winner_ids: Optional[List[UUID]]
    created_at: datetime
    started_at: Optional[datetime]
    ended_at: Optional[datetime]


class PartyListResponse(BaseSchema):
    """Parties the caller leads or belongs to."""
    parties: List[PartyResponse]
    total_count: int


class PartyMemberResponse(BaseSchema):
    """Member information within a party."""
    member_id: UUID
    username: str
    lifetime_wins: int
    is_leader: bool
    has_selected: bool
    joined_at: Optional[datetime]


class PartyMembersResponse(BaseSchema):
    party_id: int
    members: List[PartyMemberResponse]
    member_count: int


class RemoveMemberResponse(BaseSchema):
    """Result of a kick or leave."""
    party_id: int
    member_id: UUID
    party_deleted: bool


class PendingSelectionsResponse(BaseSchema):
    """Members who have not picked yet, shown to the leader before starting."""
    party_id: int
    member_ids: List[UUID]
    pending_count: int


class SelectionResponse(BaseSchema):
    """A member's selection."""
    party_id: int
    member_id: UUID
    chosen_outcomes: List[str]
    is_winner: Optional[bool]
    match_count: Optional[int]
    submitted_at: datetime
    updated_at: datetime


class PartySelectionItem(BaseSchema):
    member_id: UUID
    username: str
    chosen_outcomes: List[str]
    is_winner: Optional[bool]
    match_count: Optional[int]
    submitted_at: datetime
    updated_at: datetime


class PartySelectionsResponse(BaseSchema):
    """All selections for a party."""
    party_id: int
    selections: List[PartySelectionItem]


class PartyStateResponse(BaseSchema):
    """Lifecycle snapshot for polling clients."""
    party_id: int
    party_code: str
    status: str
    bet_type: str
    leader_id: UUID
    member_count: int
    max_members: int
    selection_count: int
    winning_outcomes: Optional[List[str]]
    declared_winner_ids: Optional[List[UUID]]
    wins_credited: bool
    created_at: datetime
    started_at: Optional[datetime]
    ended_at: Optional[datetime]


class MemberResultResponse(BaseSchema):
    """One member's result in a resolved party."""
    member_id: UUID
    username: str
    chosen_outcomes: List[str]
    match_count: int
    is_winner: bool


class PartyResolutionResponse(BaseSchema):
    """Winners and per-member results of an ended party."""
    party_id: int
    bet_type: str
    winning_outcomes: List[str]
    max_match: int
    winner_ids: List[UUID]
    results: List[MemberResultResponse]


class ResolveResponse(PartyResolutionResponse):
    """Resolution plus the members this call credited with a lifetime win."""
    credited_member_ids: List[UUID]


class PartyInviteResponse(BaseSchema):
    """Invite information."""
    invite_id: UUID
    party_id: int
    inviter_id: UUID
    invitee_id: UUID
    status: str
    created_at: datetime
    responded_at: Optional[datetime]


class PendingInviteItem(BaseSchema):
    invite_id: UUID
    party_id: int
    party_name: str
    party_code: str
    inviter_id: UUID
    inviter_username: str
    created_at: datetime


class PendingInvitesResponse(BaseSchema):
    """Invites waiting for the caller's answer."""
    invites: List[PendingInviteItem]
