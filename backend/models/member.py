"""Member model."""
import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.base import get_uuid_column


class Member(Base):
    """A person who can lead or join parties.

    Identity and credentials live outside this service; the row only carries
    what the party engine needs, including the lifetime win counter.
    """

    __tablename__ = "members"

    member_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    username = Column(String(80), unique=True, nullable=False)

    # Only ever changed through a single-statement increment
    lifetime_wins = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    # Relationships
    memberships = relationship(
        "PartyMembership",
        back_populates="member",
        cascade="all, delete-orphan",
    )
    selections = relationship(
        "PartySelection",
        back_populates="member",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Member(id={self.member_id}, username={self.username}, wins={self.lifetime_wins})>"
