"""Party resolution: score an ended party and credit lifetime wins exactly once."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Dict, List, Optional, Tuple
from uuid import UUID
import logging

from backend.models.base import PartyStatus, BetType
from backend.models.party import Party
from backend.models.party_selection import PartySelection
from backend.services.member_service import MemberService
from backend.services.party_roster_service import PartyRosterService
from backend.services.party_scoring_service import (
    PartyScore,
    score_selections,
    declare_outcome_winners,
)
from backend.utils.exceptions import InvalidTransitionError, translate_store_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartyResolution:
    """Outcome of an ended party, derived entirely from stored state."""
    party_id: int
    bet_type: BetType
    winning_outcomes: Tuple[str, ...]
    declared_winner_ids: Tuple[UUID, ...]
    score: PartyScore

    @property
    def winner_ids(self) -> Tuple[UUID, ...]:
        return self.score.winner_ids


@dataclass(frozen=True)
class ResolutionReport:
    """What a resolve call did.

    ``credited_member_ids`` is empty when an earlier call already issued the
    lifetime-win credit for this party.
    """
    resolution: PartyResolution
    credited_member_ids: Tuple[UUID, ...]

    @property
    def newly_credited(self) -> bool:
        return bool(self.credited_member_ids)


class PartyResolutionService:
    """Service that turns an ended party into winners and lifetime wins."""

    def __init__(self, db: AsyncSession, *, member_service: MemberService | None = None):
        self.db = db
        self.roster = PartyRosterService(db)
        self.member_service = member_service or MemberService(db)

    async def _require_ended(self, party_id: int) -> Party:
        party = await self.roster.require_party(party_id)
        if party.status != PartyStatus.ENDED.value:
            raise InvalidTransitionError(f"Party {party_id} has not ended yet")
        return party

    async def _selections(self, party: Party) -> Dict[UUID, List[str]]:
        """Chosen outcomes per current member; members who never picked map to []."""
        member_ids = await self.roster.list_member_ids(party.party_id)
        result = await self.db.execute(
            select(PartySelection.member_id, PartySelection.chosen_outcomes)
            .where(PartySelection.party_id == party.party_id)
        )
        chosen = {row.member_id: list(row.chosen_outcomes or []) for row in result.all()}
        return {member_id: chosen.get(member_id, []) for member_id in member_ids}

    async def _compute(self, party: Party) -> PartyResolution:
        selections = await self._selections(party)
        bet_type = party.bet_type_enum
        declared = tuple(UUID(str(member_id)) for member_id in (party.declared_winner_ids or []))

        if bet_type.is_scored:
            score = score_selections(party.winning_outcomes or [], selections)
        else:
            score = declare_outcome_winners(declared, selections)

        return PartyResolution(
            party_id=party.party_id,
            bet_type=bet_type,
            winning_outcomes=tuple(party.winning_outcomes or []),
            declared_winner_ids=declared,
            score=score,
        )

    async def _claim_credit(self, party_id: int) -> bool:
        """Set the per-party credit marker if nobody has yet."""
        result = await self.db.execute(
            update(Party)
            .where(Party.party_id == party_id)
            .where(Party.wins_credited_at.is_(None))
            .values(wins_credited_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @translate_store_errors
    async def resolve(self, party_id: int) -> ResolutionReport:
        """Score an ended party, persist per-member results, and credit winners.

        Safe to call any number of times. Every call rewrites ``is_winner``
        and ``match_count`` on the selection rows; only the call that claims
        the party's credit marker increments lifetime wins. All writes share
        one transaction, so a failure leaves neither flags nor credits behind.

        Raises:
            NotFoundError: If the party doesn't exist
            InvalidTransitionError: If the party has not ended
        """
        party = await self._require_ended(party_id)

        try:
            # First write; concurrent resolves queue behind this row lock
            claimed = await self._claim_credit(party_id)

            resolution = await self._compute(party)

            for result in resolution.score.results:
                await self.db.execute(
                    update(PartySelection)
                    .where(PartySelection.party_id == party_id)
                    .where(PartySelection.member_id == result.member_id)
                    .values(is_winner=result.is_winner, match_count=result.match_count)
                    .execution_options(synchronize_session=False)
                )

            credited: Tuple[UUID, ...] = ()
            if claimed:
                for member_id in resolution.winner_ids:
                    await self.member_service.add_lifetime_win(member_id)
                credited = resolution.winner_ids

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if claimed:
            logger.info(
                f"Resolved party {party_id}: credited {len(credited)} winner(s) "
                f"{[str(member_id) for member_id in credited]}"
            )
        else:
            logger.info(f"Re-resolved party {party_id}; lifetime wins were already credited")

        return ResolutionReport(resolution=resolution, credited_member_ids=credited)

    @translate_store_errors
    async def get_resolution(self, party_id: int) -> PartyResolution:
        """Recompute the resolution from stored state without writing anything.

        Returns the same value before and after ``resolve``.

        Raises:
            NotFoundError: If the party doesn't exist
            InvalidTransitionError: If the party has not ended
        """
        party = await self._require_ended(party_id)
        return await self._compute(party)

    @translate_store_errors
    async def credited_at(self, party_id: int) -> Optional[datetime]:
        """When lifetime wins were credited for the party, or None."""
        result = await self.db.execute(
            select(Party.wins_credited_at).where(Party.party_id == party_id)
        )
        return result.scalar_one_or_none()
