"""Base utilities for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.sql import sqltypes


class PartyStatus(str, Enum):
    """Party lifecycle states. Transitions only move forward."""
    WAITING = "waiting"
    STARTED = "started"
    ENDED = "ended"


class BetType(str, Enum):
    """Bet type enumeration.

    NORMAL bets are scored by matching selections against the confirmed
    outcomes. TIMED and CONTEST bets are resolved by the leader declaring
    the winners directly.
    """
    NORMAL = "normal"
    TIMED = "timed"
    CONTEST = "contest"

    @property
    def is_scored(self) -> bool:
        return self is BetType.NORMAL


class PrivacyOption(str, Enum):
    """Party visibility."""
    PUBLIC = "public"
    PRIVATE = "private"


class InviteStatus(str, Enum):
    """Party invitation status."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class AdaptiveUUID(sqltypes.TypeDecorator):
    """UUID type that is native on PostgreSQL and hex text everywhere else."""

    impl = sqltypes.String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    @staticmethod
    def _coerce_uuid(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce_uuid(value)
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return value.hex

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self._coerce_uuid(value)


def get_uuid_column(*args, **kwargs):
    """Get a UUID column that adapts to the database dialect.

    Args:
        *args: Positional arguments to pass to Column (e.g., ForeignKey)
        **kwargs: Keyword arguments to pass to Column (e.g., primary_key=True)

    Returns:
        Column: Configured SQLAlchemy Column for UUID storage

    Example:
        member_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
        leader_id = get_uuid_column(ForeignKey("members.member_id"), nullable=False)
    """
    return Column(AdaptiveUUID(), *args, **kwargs)
