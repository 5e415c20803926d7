"""Create member and party tables

Revision ID: 0001_initial_party_tables
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

from backend.migrations.util import get_uuid_type, get_timestamp_default

# revision identifiers, used by Alembic.
revision = '0001_initial_party_tables'
down_revision = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    uuid = get_uuid_type()
    now = get_timestamp_default()

    op.create_table(
        'members',
        sa.Column('member_id', uuid, nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('lifetime_wins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.PrimaryKeyConstraint('member_id'),
        sa.UniqueConstraint('username', name='uq_members_username'),
    )
    op.create_index('ix_members_lifetime_wins', 'members', ['lifetime_wins'])

    op.create_table(
        'parties',
        sa.Column('party_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('party_code', sa.String(length=8), nullable=False),
        sa.Column('party_name', sa.String(length=100), nullable=False),
        sa.Column('leader_id', uuid, nullable=False),
        sa.Column('max_members', sa.Integer(), nullable=False, server_default='8'),
        sa.Column('bet_type', sa.String(length=20), nullable=False, server_default='normal'),
        sa.Column('privacy_option', sa.String(length=20), nullable=False, server_default='private'),
        sa.Column('bet_prompt', sa.Text(), nullable=False),
        sa.Column('terms', sa.Text(), nullable=True),
        sa.Column('candidate_outcomes', sa.JSON(), nullable=False),
        sa.Column('max_selections', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='waiting'),
        sa.Column('winning_outcomes', sa.JSON(), nullable=True),
        sa.Column('declared_winner_ids', sa.JSON(), nullable=True),
        sa.Column('wins_credited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['leader_id'], ['members.member_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('party_id'),
        sa.UniqueConstraint('party_code', name='uq_parties_party_code'),
    )
    op.create_index('ix_parties_leader_id', 'parties', ['leader_id'])
    op.create_index('ix_parties_status', 'parties', ['status'])

    op.create_table(
        'party_memberships',
        sa.Column('membership_id', uuid, nullable=False),
        sa.Column('party_id', sa.Integer(), nullable=False),
        sa.Column('member_id', uuid, nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['party_id'], ['parties.party_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.member_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('membership_id'),
        sa.UniqueConstraint('party_id', 'member_id', name='uq_party_memberships_party_member'),
    )
    op.create_index('ix_party_memberships_member_id', 'party_memberships', ['member_id'])

    op.create_table(
        'party_selections',
        sa.Column('selection_id', uuid, nullable=False),
        sa.Column('party_id', sa.Integer(), nullable=False),
        sa.Column('member_id', uuid, nullable=False),
        sa.Column('chosen_outcomes', sa.JSON(), nullable=False),
        sa.Column('is_winner', sa.Boolean(), nullable=True),
        sa.Column('match_count', sa.Integer(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['party_id'], ['parties.party_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.member_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('selection_id'),
        sa.UniqueConstraint('party_id', 'member_id', name='uq_party_selections_party_member'),
    )

    op.create_table(
        'party_invites',
        sa.Column('invite_id', uuid, nullable=False),
        sa.Column('party_id', sa.Integer(), nullable=False),
        sa.Column('inviter_id', uuid, nullable=False),
        sa.Column('invitee_id', uuid, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['party_id'], ['parties.party_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['inviter_id'], ['members.member_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['invitee_id'], ['members.member_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('invite_id'),
        sa.UniqueConstraint('party_id', 'invitee_id', name='uq_party_invites_party_invitee'),
    )
    op.create_index('ix_party_invites_invitee_status', 'party_invites', ['invitee_id', 'status'])


def downgrade() -> None:
    op.drop_index('ix_party_invites_invitee_status', table_name='party_invites')
    op.drop_table('party_invites')
    op.drop_table('party_selections')
    op.drop_index('ix_party_memberships_member_id', table_name='party_memberships')
    op.drop_table('party_memberships')
    op.drop_index('ix_parties_status', table_name='parties')
    op.drop_index('ix_parties_leader_id', table_name='parties')
    op.drop_table('parties')
    op.drop_index('ix_members_lifetime_wins', table_name='members')
    op.drop_table('members')
