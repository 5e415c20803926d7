"""Tests for party creation, membership, and leadership."""
import asyncio
import uuid

import pytest
from sqlalchemy import select

from backend.models.base import PartyStatus, BetType
from backend.models.party_selection import PartySelection
from backend.services.party_roster_service import PartyRosterService, CODE_LETTERS, CODE_DIGITS
from backend.services.party_resolution_service import PartyResolutionService
from backend.services.party_state_service import PartyStateService
from backend.services.selection_service import SelectionService
from backend.utils.exceptions import (
    UnauthorizedError,
    InvalidTransitionError,
    NotOpenError,
    InvalidCardinalityError,
    InvalidOutcomeError,
    PartyFullError,
    AlreadyMemberError,
    NotFoundError,
)


@pytest.mark.asyncio
async def test_create_party_generates_code_and_adds_leader(db_session, member_factory):
    roster = PartyRosterService(db_session)
    leader = await member_factory()

    party = await roster.create_party(
        leader_id=leader.member_id,
        party_name=" Derby ",
        bet_prompt="Who scores first?",
        candidate_outcomes=[" Home ", "Away", ""],
        max_selections=2,
    )

    assert party.status == PartyStatus.WAITING.value
    assert party.party_name == "Derby"
    assert party.candidate_outcomes == ["Home", "Away"]
    assert len(party.party_code) == 8
    assert all(ch in CODE_LETTERS for ch in party.party_code[:4])
    assert all(ch in CODE_DIGITS for ch in party.party_code[4:])
    assert await roster.list_member_ids(party.party_id) == [leader.member_id]


@pytest.mark.asyncio
async def test_create_party_validation(db_session, member_factory):
    roster = PartyRosterService(db_session)
    leader = await member_factory()

    with pytest.raises(InvalidOutcomeError):
        await roster.create_party(leader.member_id, "p", "q", candidate_outcomes=[])
    with pytest.raises(InvalidOutcomeError):
        await roster.create_party(leader.member_id, "p", "q", candidate_outcomes=["Yes", " yes"])
    with pytest.raises(InvalidCardinalityError):
        await roster.create_party(leader.member_id, "p", "q", candidate_outcomes=["A", "B"], max_selections=3)
    with pytest.raises(InvalidCardinalityError):
        await roster.create_party(leader.member_id, "p", "q", candidate_outcomes=["A"], max_members=1)
    with pytest.raises(NotFoundError):
        await roster.create_party(uuid.uuid4(), "p", "q", candidate_outcomes=["A"])


@pytest.mark.asyncio
async def test_contest_party_needs_no_candidates(db_session, member_factory):
    leader = await member_factory()

    party = await PartyRosterService(db_session).create_party(
        leader.member_id, "Bake off", "Best cake", candidate_outcomes=[], bet_type=BetType.CONTEST,
    )

    assert party.bet_type == "contest"
    assert party.max_selections == 1


@pytest.mark.asyncio
async def test_add_member_rules(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, leader, (member,) = await party_factory(members=1, max_members=3)

    with pytest.raises(AlreadyMemberError):
        await roster.add_member(party.party_id, member.member_id)
    with pytest.raises(AlreadyMemberError):
        await roster.add_member(party.party_id, leader.member_id)

    third = await member_factory()
    await roster.add_member(party.party_id, third.member_id)

    fourth = await member_factory()
    with pytest.raises(PartyFullError):
        await roster.add_member(party.party_id, fourth.member_id)

    with pytest.raises(NotFoundError):
        await roster.add_member(999999, fourth.member_id)


@pytest.mark.asyncio
async def test_cannot_join_started_party(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, leader, _ = await party_factory()
    await PartyStateService(db_session).start(party.party_id, leader.member_id)

    late = await member_factory()
    with pytest.raises(NotOpenError):
        await roster.add_member(party.party_id, late.member_id)


@pytest.mark.asyncio
async def test_join_by_code_is_case_insensitive_and_idempotent(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, _, _ = await party_factory()
    member = await member_factory()

    joined = await roster.join_party(f" {party.party_code.lower()} ", member.member_id)
    again = await roster.join_party(party.party_code, member.member_id)

    assert joined.party_id == again.party_id == party.party_id
    assert (await roster.list_member_ids(party.party_id)).count(member.member_id) == 1

    with pytest.raises(NotFoundError):
        await roster.join_party("ZZZZ0000", member.member_id)


@pytest.mark.asyncio
async def test_kick_removes_member_and_selection(db_session, party_factory):
    roster = PartyRosterService(db_session)
    party, leader, (member,) = await party_factory(members=1)
    await SelectionService(db_session).submit(party.party_id, member.member_id, ["A"])

    deleted = await roster.remove_member(party.party_id, leader.member_id, member.member_id)

    assert deleted is False
    assert member.member_id not in await roster.list_member_ids(party.party_id)
    result = await db_session.execute(
        select(PartySelection).where(PartySelection.party_id == party.party_id)
    )
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_non_leader_cannot_kick_others(db_session, party_factory):
    roster = PartyRosterService(db_session)
    party, leader, (first, second) = await party_factory(members=2)

    with pytest.raises(UnauthorizedError):
        await roster.remove_member(party.party_id, first.member_id, second.member_id)
    with pytest.raises(UnauthorizedError):
        await roster.remove_member(party.party_id, first.member_id, leader.member_id)

    await roster.remove_member(party.party_id, first.member_id, first.member_id)
    assert first.member_id not in await roster.list_member_ids(party.party_id)


@pytest.mark.asyncio
async def test_leader_leaving_hands_over_to_earliest_member(db_session, party_factory):
    roster = PartyRosterService(db_session)
    party, leader, (first, second) = await party_factory(members=2)

    await roster.remove_member(party.party_id, leader.member_id, leader.member_id)

    refreshed = await roster.get_party(party.party_id)
    await db_session.refresh(refreshed)
    assert refreshed.leader_id == first.member_id
    assert await roster.list_member_ids(party.party_id) == [first.member_id, second.member_id]


@pytest.mark.asyncio
async def test_last_member_leaving_deletes_party(db_session, party_factory):
    roster = PartyRosterService(db_session)
    party, leader, _ = await party_factory()

    deleted = await roster.remove_member(party.party_id, leader.member_id, leader.member_id)

    assert deleted is True
    assert await roster.get_party(party.party_id) is None


@pytest.mark.asyncio
async def test_cannot_leave_ended_party(db_session, party_factory):
    roster = PartyRosterService(db_session)
    state = PartyStateService(db_session)
    party, leader, (member,) = await party_factory(members=1)
    await state.start(party.party_id, leader.member_id)
    await state.confirm_outcome(party.party_id, leader.member_id, ["A"])

    with pytest.raises(InvalidTransitionError):
        await roster.remove_member(party.party_id, member.member_id, member.member_id)


@pytest.mark.asyncio
async def test_transfer_leadership(db_session, party_factory, member_factory):
    roster = PartyRosterService(db_session)
    party, leader, (member,) = await party_factory(members=1)
    outsider = await member_factory()

    with pytest.raises(UnauthorizedError):
        await roster.transfer_leadership(party.party_id, member.member_id, member.member_id)
    with pytest.raises(NotFoundError):
        await roster.transfer_leadership(party.party_id, leader.member_id, outsider.member_id)

    updated = await roster.transfer_leadership(party.party_id, leader.member_id, member.member_id)

    assert updated.leader_id == member.member_id
    assert leader.member_id in await roster.list_member_ids(party.party_id)
    with pytest.raises(UnauthorizedError):
        await roster.transfer_leadership(party.party_id, leader.member_id, member.member_id)


@pytest.mark.asyncio
async def test_pending_selection_gap(db_session, party_factory):
    roster = PartyRosterService(db_session)
    party, leader, (first, second) = await party_factory(members=2)
    await SelectionService(db_session).submit(party.party_id, first.member_id, ["B"])

    pending = await roster.pending_selection_gap(party.party_id)

    assert pending == [leader.member_id, second.member_id]


@pytest.mark.asyncio
async def test_list_members_and_my_parties(db_session, party_factory):
    roster = PartyRosterService(db_session)
    party, leader, (member,) = await party_factory(members=1)
    other_party, _, _ = await party_factory()
    await SelectionService(db_session).submit(party.party_id, member.member_id, ["A"])

    members = await roster.list_members(party.party_id)
    assert [entry['member_id'] for entry in members] == [str(leader.member_id), str(member.member_id)]
    assert members[0]['is_leader'] is True
    assert members[1]['has_selected'] is True

    mine = await roster.list_parties_for_member(member.member_id)
    assert [p.party_id for p in mine] == [party.party_id]
    assert other_party.party_id not in [p.party_id for p in await roster.list_parties_for_member(leader.member_id)]


@pytest.mark.asyncio
async def test_delete_party_leader_only(db_session, party_factory):
    roster = PartyRosterService(db_session)
    party, leader, (member,) = await party_factory(members=1)
    await SelectionService(db_session).submit(party.party_id, member.member_id, ["A"])

    with pytest.raises(UnauthorizedError):
        await roster.delete_party(party.party_id, member.member_id)

    await roster.delete_party(party.party_id, leader.member_id)

    assert await roster.get_party(party.party_id) is None
    result = await db_session.execute(
        select(PartySelection).where(PartySelection.party_id == party.party_id)
    )
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_leave_racing_confirm_never_touches_ended_party(session_factory, party_factory):
    party, leader, (member, _) = await party_factory(members=2)
    async with session_factory() as session:
        await SelectionService(session).submit(party.party_id, member.member_id, ["A"])
        await PartyStateService(session).start(party.party_id, leader.member_id)

    async def leave():
        async with session_factory() as session:
            return await PartyRosterService(session).remove_member(
                party.party_id, member.member_id, member.member_id
            )

    async def confirm():
        async with session_factory() as session:
            return await PartyStateService(session).confirm_outcome(party.party_id, leader.member_id, ["A"])

    leave_result, confirm_result = await asyncio.gather(leave(), confirm(), return_exceptions=True)

    assert not isinstance(confirm_result, Exception)
    async with session_factory() as session:
        member_ids = await PartyRosterService(session).list_member_ids(party.party_id)
        result = await session.execute(
            select(PartySelection.member_id).where(PartySelection.party_id == party.party_id)
        )
        selected = set(result.scalars().all())
        resolution = await PartyResolutionService(session).get_resolution(party.party_id)

    if isinstance(leave_result, Exception):
        assert isinstance(leave_result, InvalidTransitionError)
        assert member.member_id in member_ids
        assert member.member_id in selected
        assert resolution.winner_ids == (member.member_id,)
    else:
        assert member.member_id not in member_ids
        assert member.member_id not in selected
        assert resolution.winner_ids == ()
    assert {score.member_id for score in resolution.score.results} == set(member_ids)
