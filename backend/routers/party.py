"""Party API router."""
from fastapi import APIRouter, Depends, HTTPException, status as http_status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
import logging

from backend.database import get_db
from backend.dependencies import get_current_member
from backend.models.member import Member
from backend.models.party import Party
from backend.schemas.party import (
    CreatePartyRequest,
    JoinPartyRequest,
    SubmitSelectionRequest,
    ConfirmOutcomeRequest,
    DeclareWinnersRequest,
    TransferLeadershipRequest,
    InviteMemberRequest,
    RespondToInviteRequest,
    PartyResponse,
    PartyListResponse,
    PartyMemberResponse,
    PartyMembersResponse,
    RemoveMemberResponse,
    PendingSelectionsResponse,
    SelectionResponse,
    PartySelectionItem,
    PartySelectionsResponse,
    PartyStateResponse,
    MemberResultResponse,
    PartyResolutionResponse,
    ResolveResponse,
    PartyInviteResponse,
    PendingInviteItem,
    PendingInvitesResponse,
)
from backend.services.party_roster_service import PartyRosterService
from backend.services.selection_service import SelectionService
from backend.services.party_state_service import PartyStateService
from backend.services.party_resolution_service import PartyResolutionService, PartyResolution
from backend.utils.exceptions import PartyWagerError, UnauthorizedError

logger = logging.getLogger(__name__)
router = APIRouter()


def _http_error(exc: PartyWagerError) -> HTTPException:
    """Map a domain error to its HTTP status and stable error code."""
    return HTTPException(status_code=exc.status_code, detail=exc.error_code)


def _party_response(party: Party) -> PartyResponse:
    return PartyResponse.model_validate(party)


async def _require_party_member(roster: PartyRosterService, party_id: int, member: Member) -> Party:
    party = await roster.require_party(party_id)
    if not await roster.is_member(party, member.member_id):
        raise UnauthorizedError("Only party members can view this party")
    return party


async def _resolution_fields(roster: PartyRosterService, resolution: PartyResolution) -> dict:
    members = await roster.list_members(resolution.party_id)
    usernames = {entry['member_id']: entry['username'] for entry in members}

    return {
        'party_id': resolution.party_id,
        'bet_type': resolution.bet_type.value,
        'winning_outcomes': list(resolution.winning_outcomes),
        'max_match': resolution.score.max_match,
        'winner_ids': list(resolution.winner_ids),
        'results': [
            MemberResultResponse(
                member_id=result.member_id,
                username=usernames.get(str(result.member_id), "Unknown"),
                chosen_outcomes=list(result.chosen_outcomes),
                match_count=result.match_count,
                is_winner=result.is_winner,
            )
            for result in resolution.score.results
        ],
    }


# ----------------------------------------------------------------------
# Parties
# ----------------------------------------------------------------------
@router.post("", response_model=PartyResponse, status_code=http_status.HTTP_201_CREATED)
async def create_party(
    request: CreatePartyRequest,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Create a party led by the caller.

    Returns:
        PartyResponse: Created party with its join code
    """
    try:
        roster = PartyRosterService(db)

        logger.info(
            f"Creating party for member {member.member_id}: type={request.bet_type.value}, "
            f"candidates={len(request.candidate_outcomes)}, max_selections={request.max_selections}"
        )

        party = await roster.create_party(
            leader_id=member.member_id,
            party_name=request.party_name,
            bet_prompt=request.bet_prompt,
            candidate_outcomes=request.candidate_outcomes,
            max_selections=request.max_selections,
            max_members=request.max_members,
            bet_type=request.bet_type,
            privacy_option=request.privacy_option,
            terms=request.terms,
        )
        return _party_response(party)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error creating party: {type(e).__name__}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create party")


@router.get("/mine", response_model=PartyListResponse)
async def list_my_parties(
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Parties the caller leads or belongs to, newest first."""
    try:
        parties = await PartyRosterService(db).list_parties_for_member(member.member_id)
        return PartyListResponse(
            parties=[_party_response(party) for party in parties],
            total_count=len(parties),
        )

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error listing parties: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list parties")


@router.post("/join", response_model=PartyResponse)
async def join_party(
    request: JoinPartyRequest,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Join a party by its code. Joining again is a no-op.

    Raises:
        404: Party not found
        409: Party already started, or full
    """
    try:
        party = await PartyRosterService(db).join_party(request.party_code, member.member_id)
        return _party_response(party)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error joining party: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to join party")


# ----------------------------------------------------------------------
# Invites
# ----------------------------------------------------------------------
@router.get("/invites/pending", response_model=PendingInvitesResponse)
async def list_pending_invites(
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Invites waiting for the caller's answer."""
    try:
        invites = await PartyRosterService(db).list_pending_invites(member.member_id)
        return PendingInvitesResponse(invites=[PendingInviteItem(**invite) for invite in invites])

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error listing invites: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list invites")


@router.post("/invites/{invite_id}/respond", response_model=PartyInviteResponse)
async def respond_to_invite(
    invite_id: UUID,
    request: RespondToInviteRequest,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Accept or decline an invite. Accepting joins the party."""
    try:
        invite = await PartyRosterService(db).respond_to_invite(
            invite_id, member.member_id, request.accept
        )
        return PartyInviteResponse.model_validate(invite)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error responding to invite: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to respond to invite")


@router.post("/{party_id}/invites", response_model=PartyInviteResponse, status_code=http_status.HTTP_201_CREATED)
async def invite_member(
    party_id: int,
    request: InviteMemberRequest,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Invite another member to the party."""
    try:
        invite = await PartyRosterService(db).invite_member(
            party_id, member.member_id, request.invitee_id
        )
        return PartyInviteResponse.model_validate(invite)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error inviting to party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to send invite")


# ----------------------------------------------------------------------
# Single party
# ----------------------------------------------------------------------
@router.get("/{party_id}", response_model=PartyResponse)
async def get_party(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    try:
        party = await _require_party_member(PartyRosterService(db), party_id, member)
        return _party_response(party)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error loading party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load party")


@router.delete("/{party_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_party(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Delete the party and everything in it (leader only)."""
    try:
        await PartyRosterService(db).delete_party(party_id, member.member_id)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error deleting party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete party")


@router.get("/{party_id}/members", response_model=PartyMembersResponse)
async def list_members(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    try:
        roster = PartyRosterService(db)
        await _require_party_member(roster, party_id, member)
        members = await roster.list_members(party_id)
        return PartyMembersResponse(
            party_id=party_id,
            members=[PartyMemberResponse(**entry) for entry in members],
            member_count=len(members),
        )

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error listing members of party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list members")


@router.delete("/{party_id}/members/{member_id}", response_model=RemoveMemberResponse)
async def remove_member(
    party_id: int,
    member_id: UUID,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Kick a member (leader) or leave the party (anyone, with their own id)."""
    try:
        party_deleted = await PartyRosterService(db).remove_member(
            party_id, member.member_id, member_id
        )
        return RemoveMemberResponse(party_id=party_id, member_id=member_id, party_deleted=party_deleted)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error removing {member_id} from party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to remove member")


@router.post("/{party_id}/leader", response_model=PartyResponse)
async def transfer_leadership(
    party_id: int,
    request: TransferLeadershipRequest,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Hand leadership to another member (leader only)."""
    try:
        party = await PartyRosterService(db).transfer_leadership(
            party_id, member.member_id, request.new_leader_id
        )
        return _party_response(party)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error transferring leadership of party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to transfer leadership")


@router.get("/{party_id}/pending-selections", response_model=PendingSelectionsResponse)
async def pending_selections(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Members who have not picked yet. Shown to the leader before starting."""
    try:
        roster = PartyRosterService(db)
        await _require_party_member(roster, party_id, member)
        member_ids = await roster.pending_selection_gap(party_id)
        return PendingSelectionsResponse(
            party_id=party_id,
            member_ids=member_ids,
            pending_count=len(member_ids),
        )

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error loading pending selections for party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load pending selections")


# ----------------------------------------------------------------------
# Selections
# ----------------------------------------------------------------------
@router.put("/{party_id}/selection", response_model=SelectionResponse)
async def submit_selection(
    party_id: int,
    request: SubmitSelectionRequest,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the caller's selection while the party is waiting.

    Raises:
        403: Caller is not a member
        409: Party already started
        422: Too many or unknown outcomes
    """
    try:
        selection = await SelectionService(db).submit(
            party_id, member.member_id, request.chosen_outcomes
        )
        return SelectionResponse.model_validate(selection)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error submitting selection for party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit selection")


@router.get("/{party_id}/selections", response_model=PartySelectionsResponse)
async def list_selections(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Everyone's picks once the party has started; only the caller's own before that."""
    try:
        await _require_party_member(PartyRosterService(db), party_id, member)
        selections = await SelectionService(db).list_for_party(party_id, viewer_id=member.member_id)
        return PartySelectionsResponse(
            party_id=party_id,
            selections=[PartySelectionItem(**selection) for selection in selections],
        )

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error listing selections for party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list selections")


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------
@router.post("/{party_id}/start", response_model=PartyResponse)
async def start_party(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Close selections and start the party (leader only)."""
    try:
        party = await PartyStateService(db).start(party_id, member.member_id)
        return _party_response(party)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error starting party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to start party")


@router.post("/{party_id}/outcome", response_model=PartyResponse)
async def confirm_outcome(
    party_id: int,
    request: ConfirmOutcomeRequest,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Confirm the winning outcomes and end a normal bet (leader only)."""
    try:
        party = await PartyStateService(db).confirm_outcome(
            party_id, member.member_id, request.winning_outcomes
        )
        return _party_response(party)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error confirming outcome for party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to confirm outcome")


@router.post("/{party_id}/winners", response_model=PartyResponse)
async def declare_winners(
    party_id: int,
    request: DeclareWinnersRequest,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Name the winners and end a timed or contest bet (leader only)."""
    try:
        party = await PartyStateService(db).declare_winners(
            party_id, member.member_id, request.winner_ids
        )
        return _party_response(party)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error declaring winners for party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to declare winners")


@router.get("/{party_id}/state", response_model=PartyStateResponse)
async def get_state(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Lifecycle snapshot. Clients poll this while waiting for the leader."""
    try:
        await _require_party_member(PartyRosterService(db), party_id, member)
        state = await PartyStateService(db).get_state(party_id)
        return PartyStateResponse(**state)

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error loading state of party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load party state")


# ----------------------------------------------------------------------
# Resolution
# ----------------------------------------------------------------------
@router.post("/{party_id}/resolve", response_model=ResolveResponse)
async def resolve_party(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Score an ended party and credit lifetime wins. Safe to retry."""
    try:
        roster = PartyRosterService(db)
        await _require_party_member(roster, party_id, member)

        report = await PartyResolutionService(db).resolve(party_id)
        fields = await _resolution_fields(roster, report.resolution)
        return ResolveResponse(**fields, credited_member_ids=list(report.credited_member_ids))

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error resolving party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to resolve party")


@router.get("/{party_id}/resolution", response_model=PartyResolutionResponse)
async def get_resolution(
    party_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Winners and per-member results, recomputed from stored state."""
    try:
        roster = PartyRosterService(db)
        await _require_party_member(roster, party_id, member)

        resolution = await PartyResolutionService(db).get_resolution(party_id)
        return PartyResolutionResponse(**await _resolution_fields(roster, resolution))

    except PartyWagerError as exc:
        raise _http_error(exc)
    except Exception as e:
        logger.error(f"Error loading resolution of party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load resolution")
