"""Party selection model."""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from backend.database import Base
from backend.models.base import get_uuid_column


class PartySelection(Base):
    """The outcomes a member picked for a party.

    One row per (party, member). Edits replace ``chosen_outcomes`` in place.
    ``is_winner`` and ``match_count`` stay NULL until the party is resolved.
    """
    __tablename__ = "party_selections"

    selection_id = get_uuid_column(primary_key=True, default=uuid.uuid4)

    party_id = Column(
        Integer,
        ForeignKey("parties.party_id", ondelete="CASCADE"),
        nullable=False,
    )
    member_id = get_uuid_column(
        ForeignKey("members.member_id", ondelete="CASCADE"),
        nullable=False
    )

    # Sorted list of canonical candidate strings
    chosen_outcomes = Column(JSON, nullable=False, default=list)

    # Resolution results
    is_winner = Column(Boolean, nullable=True)
    match_count = Column(Integer, nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        UniqueConstraint("party_id", "member_id", name="uq_party_selections_party_member"),
    )

    # Relationships
    party = relationship("Party", back_populates="selections")
    member = relationship("Member", back_populates="selections")

    def __repr__(self):
        return (
            f"<PartySelection(party_id={self.party_id}, member_id={self.member_id}, "
            f"chosen={self.chosen_outcomes}, is_winner={self.is_winner})>"
        )
