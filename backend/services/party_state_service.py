"""Party state machine: waiting -> started -> ended.

Every transition is a conditional update on the party row, so two racing
callers can never both move the same party forward.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from datetime import datetime, UTC
from typing import Dict, Iterable, List
from uuid import UUID
import logging

from backend.models.base import PartyStatus
from backend.models.party import Party
from backend.models.party_selection import PartySelection
from backend.services.party_roster_service import PartyRosterService
from backend.services.party_scoring_service import canonicalize_outcomes
from backend.utils.exceptions import (
    UnauthorizedError,
    InvalidTransitionError,
    AlreadyResolvedError,
    InvalidOutcomeError,
    translate_store_errors,
)

logger = logging.getLogger(__name__)


class PartyStateService:
    """Service for moving a party through its lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.roster = PartyRosterService(db)

    async def _require_leader(self, party_id: int, caller_id: UUID) -> Party:
        party = await self.roster.require_party(party_id)
        if party.leader_id != caller_id:
            raise UnauthorizedError("Only the party leader can do that")
        return party

    async def _transition(self, party_id: int, expected: PartyStatus, **values) -> bool:
        """Apply ``values`` only if the party is still in ``expected`` state."""
        result = await self.db.execute(
            update(Party)
            .where(Party.party_id == party_id)
            .where(Party.status == expected.value)
            .values(updated_at=datetime.now(UTC), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _current_status(self, party_id: int) -> str:
        result = await self.db.execute(
            select(Party.status).where(Party.party_id == party_id)
        )
        return result.scalar_one()

    @translate_store_errors
    async def start(self, party_id: int, caller_id: UUID) -> Party:
        """Close selections and start the party (leader only).

        Members who have not picked yet stay in the party and score zero.

        Raises:
            NotFoundError: If the party doesn't exist
            UnauthorizedError: If the caller is not the leader
            InvalidTransitionError: If the party is not waiting
        """
        party = await self._require_leader(party_id, caller_id)
        if party.status != PartyStatus.WAITING.value:
            raise InvalidTransitionError(f"Cannot start a party that is {party.status}")

        now = datetime.now(UTC)
        if not await self._transition(
            party_id,
            PartyStatus.WAITING,
            status=PartyStatus.STARTED.value,
            started_at=now,
        ):
            await self.db.rollback()
            raise InvalidTransitionError("Party was started concurrently")

        await self.db.commit()
        await self.db.refresh(party)

        logger.info(f"Leader {caller_id} started party {party_id}")
        return party

    def _check_ending(self, party: Party) -> None:
        if party.status == PartyStatus.ENDED.value:
            raise AlreadyResolvedError("Party outcome was already confirmed")
        if party.status != PartyStatus.STARTED.value:
            raise InvalidTransitionError(f"Cannot end a party that is {party.status}")

    async def _end(self, party: Party, **values) -> Party:
        """Move a started party to ended, writing the resolution inputs once."""
        if not await self._transition(
            party.party_id,
            PartyStatus.STARTED,
            status=PartyStatus.ENDED.value,
            ended_at=datetime.now(UTC),
            **values,
        ):
            status = await self._current_status(party.party_id)
            await self.db.rollback()
            if status == PartyStatus.ENDED.value:
                raise AlreadyResolvedError("Party outcome was already confirmed")
            raise InvalidTransitionError(f"Cannot end a party that is {status}")

        await self.db.commit()
        await self.db.refresh(party)
        return party

    @translate_store_errors
    async def confirm_outcome(self, party_id: int, caller_id: UUID, winning_outcomes: Iterable[str]) -> Party:
        """Record the winning outcomes and end the party (leader only).

        Args:
            party_id: Party to end
            caller_id: Must be the leader
            winning_outcomes: Non-empty subset of the candidate outcomes

        Returns:
            Party: The ended party

        Raises:
            NotFoundError: If the party doesn't exist
            UnauthorizedError: If the caller is not the leader
            InvalidOutcomeError: If the outcomes are empty or not candidates,
                or if the party's bet type is resolved by declared winners
            AlreadyResolvedError: If the party has already ended
            InvalidTransitionError: If the party has not started
        """
        party = await self._require_leader(party_id, caller_id)

        if not party.bet_type_enum.is_scored:
            raise InvalidOutcomeError(
                f"{party.bet_type} bets are resolved by declaring winners, not outcomes"
            )

        winning_outcomes = list(winning_outcomes)
        if not winning_outcomes:
            raise InvalidOutcomeError("At least one winning outcome is required")

        # Blank values match no candidate and come back as unknown
        canonical, unknown = canonicalize_outcomes(winning_outcomes, party.candidate_outcomes or [])
        if unknown:
            raise InvalidOutcomeError(f"Not a candidate outcome: {', '.join(map(repr, unknown))}")

        self._check_ending(party)
        party = await self._end(party, winning_outcomes=canonical)

        logger.info(f"Leader {caller_id} confirmed outcome {canonical} for party {party_id}")
        return party

    @translate_store_errors
    async def declare_winners(self, party_id: int, caller_id: UUID, winner_ids: Iterable[UUID]) -> Party:
        """End a timed or contest party by naming its winners (leader only).

        An empty list ends the party with nobody winning.

        Raises:
            NotFoundError: If the party doesn't exist
            UnauthorizedError: If the caller is not the leader
            InvalidOutcomeError: If the party is a scored bet or a winner isn't a member
            AlreadyResolvedError: If the party has already ended
            InvalidTransitionError: If the party has not started
        """
        party = await self._require_leader(party_id, caller_id)

        if party.bet_type_enum.is_scored:
            raise InvalidOutcomeError("Normal bets are resolved by confirming the winning outcomes")

        member_ids = set(await self.roster.list_member_ids(party_id))
        declared = sorted({UUID(str(winner_id)) for winner_id in winner_ids}, key=str)
        outsiders = [winner_id for winner_id in declared if winner_id not in member_ids]
        if outsiders:
            raise InvalidOutcomeError(
                f"Winners must be party members: {', '.join(str(winner_id) for winner_id in outsiders)}"
            )

        self._check_ending(party)
        party = await self._end(party, declared_winner_ids=[str(winner_id) for winner_id in declared])

        logger.info(f"Leader {caller_id} declared {len(declared)} winner(s) for party {party_id}")
        return party

    @translate_store_errors
    async def get_state(self, party_id: int) -> Dict:
        """Snapshot of a party's lifecycle for polling clients."""
        party = await self.roster.require_party(party_id)
        member_ids: List[UUID] = await self.roster.list_member_ids(party_id)

        result = await self.db.execute(
            select(func.count(PartySelection.selection_id))
            .where(PartySelection.party_id == party_id)
        )
        selection_count = result.scalar_one()

        return {
            'party_id': party.party_id,
            'party_code': party.party_code,
            'status': party.status,
            'bet_type': party.bet_type,
            'leader_id': str(party.leader_id),
            'member_count': len(member_ids),
            'max_members': party.max_members,
            'selection_count': selection_count,
            'winning_outcomes': party.winning_outcomes,
            'declared_winner_ids': party.declared_winner_ids,
            'wins_credited': party.wins_credited_at is not None,
            'created_at': party.created_at,
            'started_at': party.started_at,
            'ended_at': party.ended_at,
        }
