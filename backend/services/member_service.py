"""Member service: accounts, lifetime wins, and the leaderboard."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from typing import Optional, List, Dict
from uuid import UUID
import uuid
import logging

from backend.config import get_settings
from backend.models.member import Member
from backend.utils.exceptions import (
    PartyWagerError,
    NotFoundError,
    translate_store_errors,
)

logger = logging.getLogger(__name__)


class UsernameTakenError(PartyWagerError):
    """Raised when a username is already in use."""
    error_code = "username_taken"
    status_code = 409


class MemberService:
    """Service for member accounts and the lifetime win counter."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    @translate_store_errors
    async def create_member(self, username: str) -> Member:
        """Create a member with a unique username.

        Raises:
            UsernameTakenError: If the username already exists
        """
        username = username.strip()
        member = Member(member_id=uuid.uuid4(), username=username, lifetime_wins=0)
        self.db.add(member)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise UsernameTakenError(f"Username {username!r} is already taken") from exc
        await self.db.refresh(member)

        logger.info(f"Created member {member.member_id} ({username})")
        return member

    @translate_store_errors
    async def get_member(self, member_id: UUID) -> Optional[Member]:
        result = await self.db.execute(
            select(Member).where(Member.member_id == member_id)
        )
        return result.scalar_one_or_none()

    async def require_member(self, member_id: UUID) -> Member:
        """Get a member or raise NotFoundError."""
        member = await self.get_member(member_id)
        if not member:
            raise NotFoundError(f"Member {member_id} not found")
        return member

    async def add_lifetime_win(self, member_id: UUID) -> None:
        """Queue an atomic +1 on the member's lifetime wins in the current transaction.

        Does not commit; callers own the transaction so the increment lands
        together with whatever else the unit of work writes.
        """
        await self.db.execute(
            update(Member)
            .where(Member.member_id == member_id)
            .values(lifetime_wins=Member.lifetime_wins + 1)
            .execution_options(synchronize_session=False)
        )

    @translate_store_errors
    async def increment_lifetime_wins(self, member_id: UUID) -> None:
        """Atomically credit one lifetime win and commit."""
        await self.add_lifetime_win(member_id)
        await self.db.commit()
        logger.info(f"Credited lifetime win to member {member_id}")

    @translate_store_errors
    async def get_leaderboard(self, limit: Optional[int] = None) -> List[Dict]:
        """Members ranked by lifetime wins.

        Ties share a rank (1, 2, 2, 4).
        """
        limit = limit or self.settings.leaderboard_default_limit
        result = await self.db.execute(
            select(Member.member_id, Member.username, Member.lifetime_wins)
            .order_by(Member.lifetime_wins.desc(), Member.username)
            .limit(limit)
        )

        entries = []
        previous_wins = None
        rank = 0
        for position, row in enumerate(result.all(), start=1):
            if row.lifetime_wins != previous_wins:
                rank = position
                previous_wins = row.lifetime_wins
            entries.append({
                'rank': rank,
                'member_id': str(row.member_id),
                'username': row.username,
                'lifetime_wins': row.lifetime_wins,
            })
        return entries
