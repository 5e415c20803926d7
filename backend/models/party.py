"""Party model."""
from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
)
from sqlalchemy.orm import relationship
from datetime import datetime, UTC

from backend.database import Base
from backend.models.base import get_uuid_column, PartyStatus, BetType, PrivacyOption


class Party(Base):
    """A group wager.

    Tracks the lifecycle state, the candidate outcomes members choose from,
    and, once ended, the confirmed winning outcomes.
    """
    __tablename__ = "parties"

    # Primary key
    party_id = Column(Integer, primary_key=True, autoincrement=True)

    # Join code, stored upper-case
    party_code = Column(String(8), unique=True, nullable=False)

    party_name = Column(String(100), nullable=False)

    # Leader reference
    leader_id = get_uuid_column(
        ForeignKey("members.member_id", ondelete="CASCADE"),
        nullable=False
    )

    # Configuration
    max_members = Column(Integer, nullable=False, default=8)
    bet_type = Column(String(20), nullable=False, default=BetType.NORMAL.value)
    privacy_option = Column(String(20), nullable=False, default=PrivacyOption.PRIVATE.value)
    bet_prompt = Column(Text, nullable=False)
    terms = Column(Text, nullable=True)
    candidate_outcomes = Column(JSON, nullable=False, default=list)
    max_selections = Column(Integer, nullable=False, default=1)

    # Lifecycle
    status = Column(String(20), nullable=False, default=PartyStatus.WAITING.value)
    # Possible values: 'waiting', 'started', 'ended'

    # Write-once once status is 'ended'
    winning_outcomes = Column(JSON(none_as_null=True), nullable=True)
    declared_winner_ids = Column(JSON(none_as_null=True), nullable=True)

    # Set exactly once, by the first resolve that credits lifetime wins
    wins_credited_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    leader = relationship("Member", foreign_keys=[leader_id])
    memberships = relationship(
        "PartyMembership",
        back_populates="party",
        cascade="all, delete-orphan",
    )
    selections = relationship(
        "PartySelection",
        back_populates="party",
        cascade="all, delete-orphan",
    )
    invites = relationship(
        "PartyInvite",
        back_populates="party",
        cascade="all, delete-orphan",
    )

    @property
    def bet_type_enum(self) -> BetType:
        return BetType(self.bet_type)

    def __repr__(self):
        return f"<Party(id={self.party_id}, code={self.party_code}, status={self.status})>"
