"""Tests for party invitations."""
import uuid

import pytest

from backend.models.base import InviteStatus
from backend.services.party_roster_service import PartyRosterService
from backend.services.party_state_service import PartyStateService
from backend.utils.exceptions import (
    UnauthorizedError,
    InvalidTransitionError,
    NotOpenError,
    PartyFullError,
    AlreadyMemberError,
    NotFoundError,
)


@pytest.mark.asyncio
async def test_invite_and_accept_joins_party(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, leader, _ = await party_factory()
    invitee = await member_factory()

    invite = await roster.invite_member(party.party_id, leader.member_id, invitee.member_id)
    assert invite.status == InviteStatus.PENDING.value

    pending = await roster.list_pending_invites(invitee.member_id)
    assert [entry['invite_id'] for entry in pending] == [str(invite.invite_id)]
    assert pending[0]['inviter_username'] == leader.username

    accepted = await roster.respond_to_invite(invite.invite_id, invitee.member_id, accept=True)

    assert accepted.status == InviteStatus.ACCEPTED.value
    assert accepted.responded_at is not None
    assert invitee.member_id in await roster.list_member_ids(party.party_id)
    assert await roster.list_pending_invites(invitee.member_id) == []


@pytest.mark.asyncio
async def test_decline_keeps_member_out(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, leader, _ = await party_factory()
    invitee = await member_factory()
    invite = await roster.invite_member(party.party_id, leader.member_id, invitee.member_id)

    declined = await roster.respond_to_invite(invite.invite_id, invitee.member_id, accept=False)

    assert declined.status == InviteStatus.DECLINED.value
    assert invitee.member_id not in await roster.list_member_ids(party.party_id)

    with pytest.raises(InvalidTransitionError):
        await roster.respond_to_invite(invite.invite_id, invitee.member_id, accept=True)

    reinvited = await roster.invite_member(party.party_id, leader.member_id, invitee.member_id)
    assert reinvited.invite_id == invite.invite_id
    assert reinvited.status == InviteStatus.PENDING.value


@pytest.mark.asyncio
async def test_repeat_invite_returns_pending_invite(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, leader, (member,) = await party_factory(members=1)
    invitee = await member_factory()

    first = await roster.invite_member(party.party_id, leader.member_id, invitee.member_id)
    second = await roster.invite_member(party.party_id, member.member_id, invitee.member_id)

    assert first.invite_id == second.invite_id


@pytest.mark.asyncio
async def test_invite_rules(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, leader, (member,) = await party_factory(members=1)
    outsider = await member_factory()
    invitee = await member_factory()

    with pytest.raises(UnauthorizedError):
        await roster.invite_member(party.party_id, outsider.member_id, invitee.member_id)
    with pytest.raises(AlreadyMemberError):
        await roster.invite_member(party.party_id, leader.member_id, member.member_id)
    with pytest.raises(NotFoundError):
        await roster.invite_member(party.party_id, leader.member_id, uuid.uuid4())

    invite = await roster.invite_member(party.party_id, leader.member_id, invitee.member_id)
    with pytest.raises(UnauthorizedError):
        await roster.respond_to_invite(invite.invite_id, outsider.member_id, accept=True)
    with pytest.raises(NotFoundError):
        await roster.respond_to_invite(uuid.uuid4(), invitee.member_id, accept=True)


@pytest.mark.asyncio
async def test_accept_fails_when_party_full_or_started(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, leader, _ = await party_factory(max_members=2)
    first = await member_factory()
    second = await member_factory()
    invite_first = await roster.invite_member(party.party_id, leader.member_id, first.member_id)
    invite_second = await roster.invite_member(party.party_id, leader.member_id, second.member_id)

    await roster.respond_to_invite(invite_first.invite_id, first.member_id, accept=True)
    with pytest.raises(PartyFullError):
        await roster.respond_to_invite(invite_second.invite_id, second.member_id, accept=True)

    started_party, started_leader, _ = await party_factory()
    late = await member_factory()
    late_invite = await roster.invite_member(started_party.party_id, started_leader.member_id, late.member_id)
    await PartyStateService(db_session).start(started_party.party_id, started_leader.member_id)

    with pytest.raises(NotOpenError):
        await roster.respond_to_invite(late_invite.invite_id, late.member_id, accept=True)
    with pytest.raises(NotOpenError):
        await roster.invite_member(started_party.party_id, started_leader.member_id, second.member_id)
