"""Party membership model."""
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from backend.database import Base
from backend.models.base import get_uuid_column


class PartyMembership(Base):
    """A member's seat in a party.

    The leader always counts as a member, with or without a row here.
    """
    __tablename__ = "party_memberships"

    # Primary key
    membership_id = get_uuid_column(primary_key=True, default=uuid.uuid4)

    # Foreign keys
    party_id = Column(
        Integer,
        ForeignKey("parties.party_id", ondelete="CASCADE"),
        nullable=False,
    )
    member_id = get_uuid_column(
        ForeignKey("members.member_id", ondelete="CASCADE"),
        nullable=False
    )

    joined_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("party_id", "member_id", name="uq_party_memberships_party_member"),
    )

    # Relationships
    party = relationship("Party", back_populates="memberships")
    member = relationship("Member", back_populates="memberships")

    def __repr__(self):
        return f"<PartyMembership(party_id={self.party_id}, member_id={self.member_id})>"
