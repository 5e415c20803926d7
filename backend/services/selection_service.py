"""Selection service: members' picks for a party's candidate outcomes."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from datetime import datetime, UTC
from typing import Optional, List, Iterable
from uuid import UUID
import uuid
import logging

from backend.models.member import Member
from backend.models.party import Party
from backend.models.party_selection import PartySelection
from backend.models.base import PartyStatus
from backend.services.party_roster_service import PartyRosterService, claim_waiting_party
from backend.services.party_scoring_service import normalize_outcome, canonicalize_outcomes
from backend.utils.exceptions import (
    PartyWagerError,
    UnauthorizedError,
    NotOpenError,
    InvalidCardinalityError,
    InvalidOutcomeError,
    translate_store_errors,
)

logger = logging.getLogger(__name__)


class SelectionService:
    """Service for storing and reading member selections."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.roster = PartyRosterService(db)

    def _validate(self, party: Party, chosen: Iterable[str]) -> List[str]:
        """Check cardinality then domain, return the canonical candidate strings."""
        chosen = list(chosen)
        # Blank values count toward the limit
        distinct = {normalize_outcome(value) for value in chosen}
        if not distinct:
            raise InvalidCardinalityError("Pick at least one outcome")
        if len(distinct) > party.max_selections:
            raise InvalidCardinalityError(
                f"Pick at most {party.max_selections} outcome(s), got {len(distinct)}"
            )

        canonical, unknown = canonicalize_outcomes(chosen, party.candidate_outcomes or [])
        if unknown:
            raise InvalidOutcomeError(f"Not a candidate outcome: {', '.join(map(repr, unknown))}")
        return canonical

    @translate_store_errors
    async def submit(self, party_id: int, member_id: UUID, chosen: Iterable[str]) -> PartySelection:
        """Create or replace a member's selection while the party is waiting.

        Args:
            party_id: Party to submit for
            member_id: Submitting member
            chosen: Outcomes picked, matched against the party's candidates
                ignoring case and surrounding whitespace

        Returns:
            PartySelection: The stored selection

        Raises:
            NotFoundError: If the party doesn't exist
            UnauthorizedError: If the member doesn't belong to the party
            NotOpenError: If the party has started
            InvalidCardinalityError: If nothing or too much was picked
            InvalidOutcomeError: If a value isn't a candidate outcome
        """
        party = await self.roster.require_party(party_id)
        if not await self.roster.is_member(party, member_id):
            raise UnauthorizedError("Only party members can submit a selection")

        if party.status != PartyStatus.WAITING.value:
            raise NotOpenError("Selections are closed for this party")

        canonical = self._validate(party, chosen)

        try:
            selection = await self._upsert(party_id, member_id, canonical)
        except PartyWagerError:
            await self.db.rollback()
            raise

        logger.info(f"Member {member_id} submitted {canonical} for party {party_id}")
        return selection

    async def _upsert(
        self, party_id: int, member_id: UUID, canonical: List[str], retry: bool = True
    ) -> PartySelection:
        # Serializes against start(): whichever commits first wins the party row
        if not await claim_waiting_party(self.db, party_id):
            raise NotOpenError("Selections are closed for this party")

        now = datetime.now(UTC)
        result = await self.db.execute(
            update(PartySelection)
            .where(PartySelection.party_id == party_id)
            .where(PartySelection.member_id == member_id)
            .values(chosen_outcomes=canonical, updated_at=now)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            self.db.add(PartySelection(
                selection_id=uuid.uuid4(),
                party_id=party_id,
                member_id=member_id,
                chosen_outcomes=canonical,
                submitted_at=now,
                updated_at=now,
            ))
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                if not retry:
                    raise
                # Lost the first-insert race to a concurrent submit; replace its value
                logger.debug(f"Concurrent first selection for member {member_id} in party {party_id}")
                return await self._upsert(party_id, member_id, canonical, retry=False)
        else:
            await self.db.commit()

        selection = await self._load(party_id, member_id)
        await self.db.refresh(selection)
        return selection

    async def _load(self, party_id: int, member_id: UUID) -> Optional[PartySelection]:
        result = await self.db.execute(
            select(PartySelection)
            .where(PartySelection.party_id == party_id)
            .where(PartySelection.member_id == member_id)
        )
        return result.scalar_one_or_none()

    @translate_store_errors
    async def get_selection(self, party_id: int, member_id: UUID) -> Optional[PartySelection]:
        await self.roster.require_party(party_id)
        return await self._load(party_id, member_id)

    @translate_store_errors
    async def list_for_party(self, party_id: int, viewer_id: Optional[UUID] = None) -> List[dict]:
        """Selections for a party, each tagged with its owner.

        With a ``viewer_id``, a party that is still waiting only shows the
        viewer's own pick. Everyone's picks are visible once it starts.
        """
        party = await self.roster.require_party(party_id)
        query = (
            select(PartySelection, Member.username)
            .join(Member, PartySelection.member_id == Member.member_id)
            .where(PartySelection.party_id == party_id)
            .order_by(PartySelection.submitted_at, PartySelection.selection_id)
        )
        if viewer_id is not None and party.status == PartyStatus.WAITING.value:
            query = query.where(PartySelection.member_id == viewer_id)
        result = await self.db.execute(query)

        return [
            {
                'member_id': str(selection.member_id),
                'username': username,
                'chosen_outcomes': list(selection.chosen_outcomes or []),
                'is_winner': selection.is_winner,
                'match_count': selection.match_count,
                'submitted_at': selection.submitted_at,
                'updated_at': selection.updated_at,
            }
            for selection, username in result.all()
        ]
