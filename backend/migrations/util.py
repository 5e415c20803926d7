"""Helpers shared by Alembic revisions."""
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from alembic import op


def get_uuid_type():
    """UUID column type for the dialect Alembic is running against.

    Native UUID on PostgreSQL, hex String(36) everywhere else. Matches
    ``AdaptiveUUID`` in ``backend.models.base``.
    """
    if op.get_bind().dialect.name == 'postgresql':
        return UUID(as_uuid=True)
    return sa.String(length=36)


def get_timestamp_default():
    """Server default for created_at style columns.

    PostgreSQL: NOW(); SQLite: CURRENT_TIMESTAMP.
    """
    if op.get_bind().dialect.name == 'postgresql':
        return sa.text('NOW()')
    return sa.text('CURRENT_TIMESTAMP')
