"""Party invitation model."""
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
import uuid

from backend.database import Base
from backend.models.base import get_uuid_column, InviteStatus


class PartyInvite(Base):
    """An invitation for a member to join a party."""
    __tablename__ = "party_invites"

    invite_id = get_uuid_column(primary_key=True, default=uuid.uuid4)

    party_id = Column(
        Integer,
        ForeignKey("parties.party_id", ondelete="CASCADE"),
        nullable=False,
    )
    inviter_id = get_uuid_column(
        ForeignKey("members.member_id", ondelete="CASCADE"),
        nullable=False
    )
    invitee_id = get_uuid_column(
        ForeignKey("members.member_id", ondelete="CASCADE"),
        nullable=False
    )

    status = Column(String(20), nullable=False, default=InviteStatus.PENDING.value)
    # Possible values: 'pending', 'accepted', 'declined'

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    responded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("party_id", "invitee_id", name="uq_party_invites_party_invitee"),
    )

    # Relationships
    party = relationship("Party", back_populates="invites")

    def __repr__(self):
        return f"<PartyInvite(id={self.invite_id}, party_id={self.party_id}, status={self.status})>"
