"""Party roster service: party creation, membership, leadership, and invitations."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, and_, or_
from sqlalchemy.exc import IntegrityError
from datetime import datetime, UTC
from typing import Optional, List, Dict, Sequence
from uuid import UUID
import uuid
import logging
import random
import string

from backend.config import get_settings
from backend.models.base import PartyStatus, BetType, PrivacyOption, InviteStatus
from backend.models.member import Member
from backend.models.party import Party
from backend.models.party_membership import PartyMembership
from backend.models.party_selection import PartySelection
from backend.models.party_invite import PartyInvite
from backend.services.party_scoring_service import normalize_outcome
from backend.utils.exceptions import (
    PartyWagerError,
    UnauthorizedError,
    InvalidTransitionError,
    NotOpenError,
    InvalidCardinalityError,
    InvalidOutcomeError,
    PartyFullError,
    AlreadyMemberError,
    NotFoundError,
    translate_store_errors,
)

logger = logging.getLogger(__name__)

# Exclude ambiguous characters: O, I, L, 0, 1
CODE_LETTERS = string.ascii_uppercase.replace('O', '').replace('I', '').replace('L', '')
CODE_DIGITS = string.digits.replace('0', '').replace('1', '')


async def claim_waiting_party(db: AsyncSession, party_id: int) -> bool:
    """Touch the party row if it is still waiting.

    Used as the first write of a unit of work that must only happen before
    the party starts. The conditional update takes the row's write lock, so a
    concurrent start either runs entirely before (and this returns False) or
    waits until the caller commits.
    """
    result = await db.execute(
        update(Party)
        .where(Party.party_id == party_id)
        .where(Party.status == PartyStatus.WAITING.value)
        .values(updated_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def claim_open_party(db: AsyncSession, party_id: int) -> bool:
    """Touch the party row unless it has ended.

    Same row-lock guard as ``claim_waiting_party`` for roster changes that are
    allowed while the party runs but must never land after it ends.
    """
    result = await db.execute(
        update(Party)
        .where(Party.party_id == party_id)
        .where(Party.status != PartyStatus.ENDED.value)
        .values(updated_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


class PartyRosterService:
    """Service for party membership and leadership."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    @translate_store_errors
    async def create_party(
        self,
        leader_id: UUID,
        party_name: str,
        bet_prompt: str,
        candidate_outcomes: Sequence[str],
        max_selections: int = 1,
        max_members: Optional[int] = None,
        bet_type: BetType | str = BetType.NORMAL,
        privacy_option: PrivacyOption | str = PrivacyOption.PRIVATE,
        terms: Optional[str] = None,
    ) -> Party:
        """Create a new party with a unique join code.

        The leader is added as the first member.

        Args:
            leader_id: Member creating the party
            party_name: Display name
            bet_prompt: What the party is betting on
            candidate_outcomes: Ordered options members choose from
            max_selections: How many options a member may pick
            max_members: Capacity, leader included
            bet_type: normal (scored), timed or contest (declared winners)
            privacy_option: public or private
            terms: Optional stakes agreed by the party

        Returns:
            Party: Created party

        Raises:
            NotFoundError: If the leader does not exist
            InvalidOutcomeError: If the candidate list is empty or has duplicates
            InvalidCardinalityError: If max_selections or max_members is out of range
        """
        bet_type = BetType(bet_type)
        privacy_option = PrivacyOption(privacy_option)
        max_members = max_members or self.settings.party_default_max_members

        leader = await self.db.get(Member, leader_id)
        if not leader:
            raise NotFoundError(f"Member {leader_id} not found")

        candidates = self._clean_candidates(candidate_outcomes, required=bet_type.is_scored)

        if candidates and not 1 <= max_selections <= len(candidates):
            raise InvalidCardinalityError(
                f"max_selections must be between 1 and {len(candidates)}"
            )
        if not candidates:
            max_selections = 1

        if not 2 <= max_members <= self.settings.party_max_members_limit:
            raise InvalidCardinalityError(
                f"max_members must be between 2 and {self.settings.party_max_members_limit}"
            )

        party_code = await self._generate_unique_party_code()
        now = datetime.now(UTC)

        party = Party(
            party_code=party_code,
            party_name=party_name.strip(),
            leader_id=leader_id,
            max_members=max_members,
            bet_type=bet_type.value,
            privacy_option=privacy_option.value,
            bet_prompt=bet_prompt.strip(),
            terms=terms.strip() if terms else None,
            candidate_outcomes=candidates,
            max_selections=max_selections,
            status=PartyStatus.WAITING.value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(party)
        await self.db.flush()

        self.db.add(PartyMembership(
            membership_id=uuid.uuid4(),
            party_id=party.party_id,
            member_id=leader_id,
            joined_at=now,
        ))
        await self.db.commit()
        await self.db.refresh(party)

        logger.info(f"Created party {party.party_id} with code {party_code} led by {leader_id}")
        return party

    def _clean_candidates(self, candidate_outcomes: Sequence[str], required: bool) -> List[str]:
        candidates = [value.strip() for value in candidate_outcomes if value and value.strip()]
        if required and not candidates:
            raise InvalidOutcomeError("A scored bet needs at least one candidate outcome")
        if len(candidates) > self.settings.party_max_candidate_outcomes:
            raise InvalidOutcomeError(
                f"At most {self.settings.party_max_candidate_outcomes} candidate outcomes are allowed"
            )

        seen = set()
        for candidate in candidates:
            key = normalize_outcome(candidate)
            if not key or key in seen:
                raise InvalidOutcomeError(f"Duplicate or blank candidate outcome: {candidate!r}")
            seen.add(key)
        return candidates

    async def _generate_unique_party_code(self) -> str:
        """Generate a unique party code.

        Format: ABCD2345 (4 letters + 4 digits, excluding ambiguous chars)

        Raises:
            PartyWagerError: If unable to generate a unique code
        """
        for attempt in range(self.settings.party_code_max_attempts):
            party_code = (
                ''.join(random.choices(CODE_LETTERS, k=4))
                + ''.join(random.choices(CODE_DIGITS, k=4))
            )

            result = await self.db.execute(
                select(Party.party_id).where(Party.party_code == party_code)
            )
            if result.scalar_one_or_none() is None:
                return party_code

            logger.debug(f"Party code collision on attempt {attempt + 1}: {party_code}")

        raise PartyWagerError("Failed to generate unique party code after maximum attempts")

    @translate_store_errors
    async def get_party(self, party_id: int) -> Optional[Party]:
        result = await self.db.execute(
            select(Party).where(Party.party_id == party_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def require_party(self, party_id: int) -> Party:
        """Get a party or raise NotFoundError."""
        party = await self.get_party(party_id)
        if not party:
            raise NotFoundError(f"Party {party_id} not found")
        return party

    @translate_store_errors
    async def get_party_by_code(self, party_code: str) -> Optional[Party]:
        """Look up a party by join code, ignoring case and surrounding whitespace."""
        result = await self.db.execute(
            select(Party).where(Party.party_code == party_code.strip().upper())
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _member_ids(self, party: Party) -> List[UUID]:
        """Member ids in join order. The leader is always included."""
        result = await self.db.execute(
            select(PartyMembership.member_id)
            .where(PartyMembership.party_id == party.party_id)
            .order_by(PartyMembership.joined_at, PartyMembership.membership_id)
        )
        member_ids = list(result.scalars().all())
        if party.leader_id not in member_ids:
            member_ids.insert(0, party.leader_id)
        return member_ids

    @translate_store_errors
    async def list_member_ids(self, party_id: int) -> List[UUID]:
        party = await self.require_party(party_id)
        return await self._member_ids(party)

    async def is_member(self, party: Party, member_id: UUID) -> bool:
        if party.leader_id == member_id:
            return True
        result = await self.db.execute(
            select(PartyMembership.membership_id)
            .where(PartyMembership.party_id == party.party_id)
            .where(PartyMembership.member_id == member_id)
        )
        return result.scalar_one_or_none() is not None

    @translate_store_errors
    async def list_members(self, party_id: int) -> List[Dict]:
        """Members with usernames, leader flag, and whether they have picked yet."""
        party = await self.require_party(party_id)
        member_ids = await self._member_ids(party)

        result = await self.db.execute(
            select(Member.member_id, Member.username, Member.lifetime_wins)
            .where(Member.member_id.in_(member_ids))
        )
        members = {row.member_id: row for row in result.all()}

        result = await self.db.execute(
            select(PartyMembership.member_id, PartyMembership.joined_at)
            .where(PartyMembership.party_id == party_id)
        )
        joined = {row.member_id: row.joined_at for row in result.all()}

        result = await self.db.execute(
            select(PartySelection.member_id).where(PartySelection.party_id == party_id)
        )
        selected = set(result.scalars().all())

        return [
            {
                'member_id': str(member_id),
                'username': members[member_id].username if member_id in members else "Unknown",
                'lifetime_wins': members[member_id].lifetime_wins if member_id in members else 0,
                'is_leader': member_id == party.leader_id,
                'has_selected': member_id in selected,
                'joined_at': joined.get(member_id, party.created_at),
            }
            for member_id in member_ids
        ]

    @translate_store_errors
    async def list_parties_for_member(self, member_id: UUID) -> List[Party]:
        """Parties the member leads or belongs to, newest first."""
        result = await self.db.execute(
            select(Party)
            .outerjoin(
                PartyMembership,
                and_(
                    PartyMembership.party_id == Party.party_id,
                    PartyMembership.member_id == member_id,
                ),
            )
            .where(or_(Party.leader_id == member_id, PartyMembership.membership_id.is_not(None)))
            .order_by(Party.created_at.desc(), Party.party_id.desc())
        )
        return list(result.scalars().unique().all())

    async def _add_membership(self, party: Party, member_id: UUID) -> PartyMembership:
        """Check capacity and stage a membership row. Caller commits."""
        if not await claim_waiting_party(self.db, party.party_id):
            raise NotOpenError("Party is no longer accepting members")

        member_ids = await self._member_ids(party)
        if member_id in member_ids:
            raise AlreadyMemberError("Member already belongs to this party")

        if len(member_ids) >= party.max_members:
            raise PartyFullError(f"Party is full (max {party.max_members} members)")

        membership = PartyMembership(
            membership_id=uuid.uuid4(),
            party_id=party.party_id,
            member_id=member_id,
            joined_at=datetime.now(UTC),
        )
        self.db.add(membership)
        return membership

    @translate_store_errors
    async def add_member(self, party_id: int, member_id: UUID) -> PartyMembership:
        """Add a member to a waiting party.

        Raises:
            NotFoundError: If party or member doesn't exist
            NotOpenError: If the party has already started
            AlreadyMemberError: If the member already belongs to the party
            PartyFullError: If the party is at capacity
        """
        party = await self.require_party(party_id)
        if not await self.db.get(Member, member_id):
            raise NotFoundError(f"Member {member_id} not found")

        try:
            membership = await self._add_membership(party, member_id)
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise AlreadyMemberError("Member already belongs to this party") from exc
        except PartyWagerError:
            await self.db.rollback()
            raise

        logger.info(f"Member {member_id} joined party {party_id}")
        return membership

    @translate_store_errors
    async def join_party(self, party_code: str, member_id: UUID) -> Party:
        """Join a party by code. Joining a party you already belong to is a no-op."""
        party = await self.get_party_by_code(party_code)
        if not party:
            raise NotFoundError(f"No party with code {party_code!r}")

        if await self.is_member(party, member_id):
            return party

        try:
            await self.add_member(party.party_id, member_id)
        except AlreadyMemberError:
            logger.debug(f"Member {member_id} joined party {party.party_id} concurrently")
        return party

    @translate_store_errors
    async def remove_member(self, party_id: int, caller_id: UUID, member_id: UUID) -> bool:
        """Remove a member from the party (kick or leave).

        The leader may remove anyone; everyone else may only remove themself.
        The member's selection goes with them. If the leader leaves, the
        earliest-joined remaining member takes over; if nobody remains the
        party is deleted.

        Returns:
            bool: True if the party was deleted

        Raises:
            NotFoundError: If party doesn't exist or member isn't in it
            UnauthorizedError: If a non-leader tries to remove someone else
            InvalidTransitionError: If the party has already ended
        """
        party = await self.require_party(party_id)

        if caller_id != party.leader_id and caller_id != member_id:
            raise UnauthorizedError("Only the leader can remove other members")

        if party.status == PartyStatus.ENDED.value:
            raise InvalidTransitionError("Members cannot leave a party that has ended")

        if not await self.is_member(party, member_id):
            raise NotFoundError(f"Member {member_id} is not in party {party_id}")

        # Serializes against confirm_outcome/declare_winners on the party row
        if not await claim_open_party(self.db, party_id):
            await self.db.rollback()
            raise InvalidTransitionError("Members cannot leave a party that has ended")

        await self.db.execute(
            delete(PartyMembership)
            .where(PartyMembership.party_id == party_id)
            .where(PartyMembership.member_id == member_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(PartySelection)
            .where(PartySelection.party_id == party_id)
            .where(PartySelection.member_id == member_id)
            .execution_options(synchronize_session=False)
        )

        party_deleted = False
        if member_id == party.leader_id:
            result = await self.db.execute(
                select(PartyMembership.member_id)
                .where(PartyMembership.party_id == party_id)
                .order_by(PartyMembership.joined_at, PartyMembership.membership_id)
                .limit(1)
            )
            new_leader_id = result.scalar_one_or_none()
            if new_leader_id is None:
                await self.db.delete(party)
                party_deleted = True
            else:
                party.leader_id = new_leader_id
                logger.info(f"Reassigned leader of party {party_id} to member {new_leader_id}")

        await self.db.commit()

        if party_deleted:
            logger.info(f"Deleted party {party_id} after its last member left")
        elif caller_id == member_id:
            logger.info(f"Member {member_id} left party {party_id}")
        else:
            logger.info(f"Leader {caller_id} removed member {member_id} from party {party_id}")
        return party_deleted

    @translate_store_errors
    async def transfer_leadership(self, party_id: int, caller_id: UUID, new_leader_id: UUID) -> Party:
        """Hand leadership to another member (leader only).

        Raises:
            UnauthorizedError: If the caller is not the current leader
            NotFoundError: If the party doesn't exist or the new leader isn't a member
        """
        party = await self.require_party(party_id)
        if party.leader_id != caller_id:
            raise UnauthorizedError("Only the leader can transfer leadership")

        if new_leader_id == caller_id:
            return party

        if not await self.is_member(party, new_leader_id):
            raise NotFoundError(f"Member {new_leader_id} is not in party {party_id}")

        # The outgoing leader stays a member
        result = await self.db.execute(
            select(PartyMembership.membership_id)
            .where(PartyMembership.party_id == party_id)
            .where(PartyMembership.member_id == caller_id)
        )
        if result.scalar_one_or_none() is None:
            self.db.add(PartyMembership(
                membership_id=uuid.uuid4(),
                party_id=party_id,
                member_id=caller_id,
                joined_at=party.created_at,
            ))

        result = await self.db.execute(
            update(Party)
            .where(Party.party_id == party_id)
            .where(Party.leader_id == caller_id)
            .values(leader_id=new_leader_id, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise UnauthorizedError("Leadership changed while the transfer was in progress")

        await self.db.commit()
        await self.db.refresh(party)

        logger.info(f"Transferred leadership of party {party_id} from {caller_id} to {new_leader_id}")
        return party

    @translate_store_errors
    async def delete_party(self, party_id: int, caller_id: UUID) -> None:
        """Delete a party and everything attached to it (leader only)."""
        party = await self.require_party(party_id)
        if party.leader_id != caller_id:
            raise UnauthorizedError("Only the leader can delete the party")

        await self.db.delete(party)
        await self.db.commit()
        logger.info(f"Leader {caller_id} deleted party {party_id}")

    @translate_store_errors
    async def pending_selection_gap(self, party_id: int) -> List[UUID]:
        """Members who have not submitted a selection yet, in join order."""
        party = await self.require_party(party_id)
        member_ids = await self._member_ids(party)

        result = await self.db.execute(
            select(PartySelection.member_id).where(PartySelection.party_id == party_id)
        )
        selected = set(result.scalars().all())
        return [member_id for member_id in member_ids if member_id not in selected]

    @translate_store_errors
    async def invite_member(self, party_id: int, inviter_id: UUID, invitee_id: UUID) -> PartyInvite:
        """Invite a member to a waiting party.

        Re-inviting someone with a pending invite returns the existing invite.

        Raises:
            NotFoundError: If party or invitee doesn't exist
            UnauthorizedError: If the inviter is not a member
            NotOpenError: If the party has started
            AlreadyMemberError: If the invitee already belongs to the party
        """
        party = await self.require_party(party_id)
        if not await self.is_member(party, inviter_id):
            raise UnauthorizedError("Only party members can send invites")

        if party.status != PartyStatus.WAITING.value:
            raise NotOpenError("Party is no longer accepting members")

        if not await self.db.get(Member, invitee_id):
            raise NotFoundError(f"Member {invitee_id} not found")

        if await self.is_member(party, invitee_id):
            raise AlreadyMemberError("Member already belongs to this party")

        result = await self.db.execute(
            select(PartyInvite)
            .where(PartyInvite.party_id == party_id)
            .where(PartyInvite.invitee_id == invitee_id)
        )
        invite = result.scalar_one_or_none()
        if invite and invite.status == InviteStatus.PENDING.value:
            return invite

        now = datetime.now(UTC)
        if invite:
            invite.inviter_id = inviter_id
            invite.status = InviteStatus.PENDING.value
            invite.created_at = now
            invite.responded_at = None
        else:
            invite = PartyInvite(
                invite_id=uuid.uuid4(),
                party_id=party_id,
                inviter_id=inviter_id,
                invitee_id=invitee_id,
                status=InviteStatus.PENDING.value,
                created_at=now,
            )
            self.db.add(invite)

        await self.db.commit()
        await self.db.refresh(invite)

        logger.info(f"Member {inviter_id} invited {invitee_id} to party {party_id}")
        return invite

    @translate_store_errors
    async def respond_to_invite(self, invite_id: UUID, member_id: UUID, accept: bool) -> PartyInvite:
        """Accept or decline an invite. Accepting joins the party.

        Raises:
            NotFoundError: If the invite doesn't exist
            UnauthorizedError: If the caller is not the invitee
            InvalidTransitionError: If the invite was already answered
            NotOpenError, PartyFullError: If accepting cannot join the party
        """
        invite = await self.db.get(PartyInvite, invite_id)
        if not invite:
            raise NotFoundError(f"Invite {invite_id} not found")

        if invite.invitee_id != member_id:
            raise UnauthorizedError("Only the invited member can respond to this invite")

        if invite.status != InviteStatus.PENDING.value:
            raise InvalidTransitionError(f"Invite was already {invite.status}")

        if accept:
            party = await self.require_party(invite.party_id)
            try:
                if not await self.is_member(party, member_id):
                    await self._add_membership(party, member_id)
            except PartyWagerError:
                await self.db.rollback()
                raise

        invite.status = InviteStatus.ACCEPTED.value if accept else InviteStatus.DECLINED.value
        invite.responded_at = datetime.now(UTC)

        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise AlreadyMemberError("Member already belongs to this party") from exc
        await self.db.refresh(invite)

        logger.info(f"Member {member_id} {invite.status} invite {invite_id} to party {invite.party_id}")
        return invite

    @translate_store_errors
    async def list_pending_invites(self, member_id: UUID) -> List[Dict]:
        """Pending invites addressed to a member, newest first."""
        result = await self.db.execute(
            select(PartyInvite, Party, Member.username)
            .join(Party, PartyInvite.party_id == Party.party_id)
            .join(Member, PartyInvite.inviter_id == Member.member_id)
            .where(PartyInvite.invitee_id == member_id)
            .where(PartyInvite.status == InviteStatus.PENDING.value)
            .order_by(PartyInvite.created_at.desc())
        )

        return [
            {
                'invite_id': str(invite.invite_id),
                'party_id': party.party_id,
                'party_name': party.party_name,
                'party_code': party.party_code,
                'inviter_id': str(invite.inviter_id),
                'inviter_username': inviter_username,
                'created_at': invite.created_at,
            }
            for invite, party, inviter_username in result.all()
        ]
