"""Tests for the party lifecycle."""
import asyncio

import pytest

from backend.models.base import PartyStatus, BetType
from backend.services.party_roster_service import PartyRosterService
from backend.services.party_state_service import PartyStateService
from backend.services.selection_service import SelectionService
from backend.utils.exceptions import (
    UnauthorizedError,
    InvalidTransitionError,
    AlreadyResolvedError,
    InvalidOutcomeError,
    NotFoundError,
)


@pytest.mark.asyncio
async def test_start_twice_fails(db_session, party_factory):
    state = PartyStateService(db_session)
    party, leader, _ = await party_factory()

    started = await state.start(party.party_id, leader.member_id)
    assert started.status == PartyStatus.STARTED.value
    assert started.started_at is not None

    with pytest.raises(InvalidTransitionError):
        await state.start(party.party_id, leader.member_id)


@pytest.mark.asyncio
async def test_only_leader_can_start(db_session, party_factory):
    party, _, (member,) = await party_factory(members=1)

    with pytest.raises(UnauthorizedError):
        await PartyStateService(db_session).start(party.party_id, member.member_id)
    with pytest.raises(NotFoundError):
        await PartyStateService(db_session).start(424242, member.member_id)


@pytest.mark.asyncio
async def test_concurrent_starts_yield_one_success(session_factory, party_factory):
    party, leader, _ = await party_factory()

    async def start():
        async with session_factory() as session:
            return await PartyStateService(session).start(party.party_id, leader.member_id)

    results = await asyncio.gather(start(), start(), return_exceptions=True)

    failures = [result for result in results if isinstance(result, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidTransitionError)


@pytest.mark.asyncio
async def test_confirm_outcome_twice_already_resolved(db_session, party_factory):
    state = PartyStateService(db_session)
    party, leader, _ = await party_factory()
    await state.start(party.party_id, leader.member_id)

    ended = await state.confirm_outcome(party.party_id, leader.member_id, [" a "])

    assert ended.status == PartyStatus.ENDED.value
    assert ended.winning_outcomes == ["A"]
    assert ended.ended_at is not None

    with pytest.raises(AlreadyResolvedError):
        await state.confirm_outcome(party.party_id, leader.member_id, ["B"])


@pytest.mark.asyncio
async def test_confirm_before_start_invalid_transition(db_session, party_factory):
    party, leader, _ = await party_factory()

    with pytest.raises(InvalidTransitionError):
        await PartyStateService(db_session).confirm_outcome(party.party_id, leader.member_id, ["A"])


@pytest.mark.asyncio
async def test_non_leader_confirm_leaves_state_unchanged(db_session, party_factory):
    state = PartyStateService(db_session)
    party, leader, (member,) = await party_factory(members=1)
    await state.start(party.party_id, leader.member_id)

    with pytest.raises(UnauthorizedError):
        await state.confirm_outcome(party.party_id, member.member_id, ["A"])

    snapshot = await state.get_state(party.party_id)
    assert snapshot['status'] == PartyStatus.STARTED.value
    assert snapshot['winning_outcomes'] is None


@pytest.mark.asyncio
async def test_confirm_outcome_validates_values(db_session, party_factory):
    state = PartyStateService(db_session)
    party, leader, _ = await party_factory()
    await state.start(party.party_id, leader.member_id)

    with pytest.raises(InvalidOutcomeError):
        await state.confirm_outcome(party.party_id, leader.member_id, [])
    with pytest.raises(InvalidOutcomeError):
        await state.confirm_outcome(party.party_id, leader.member_id, ["A", "Q"])
    with pytest.raises(InvalidOutcomeError):
        await state.confirm_outcome(party.party_id, leader.member_id, ["A", "   "])

    snapshot = await state.get_state(party.party_id)
    assert snapshot['status'] == PartyStatus.STARTED.value


@pytest.mark.asyncio
async def test_declare_winners_for_contest(db_session, party_factory, member_factory):
    state = PartyStateService(db_session)
    party, leader, (first, second) = await party_factory(
        members=2, candidate_outcomes=(), max_selections=1, bet_type=BetType.CONTEST,
    )
    outsider = await member_factory()
    await state.start(party.party_id, leader.member_id)

    with pytest.raises(InvalidOutcomeError):
        await state.confirm_outcome(party.party_id, leader.member_id, ["A"])
    with pytest.raises(InvalidOutcomeError):
        await state.declare_winners(party.party_id, leader.member_id, [outsider.member_id])

    ended = await state.declare_winners(party.party_id, leader.member_id, [second.member_id])

    assert ended.status == PartyStatus.ENDED.value
    assert ended.declared_winner_ids == [str(second.member_id)]

    with pytest.raises(AlreadyResolvedError):
        await state.declare_winners(party.party_id, leader.member_id, [first.member_id])


@pytest.mark.asyncio
async def test_declare_winners_rejected_for_normal_bet(db_session, party_factory):
    state = PartyStateService(db_session)
    party, leader, _ = await party_factory()
    await state.start(party.party_id, leader.member_id)

    with pytest.raises(InvalidOutcomeError):
        await state.declare_winners(party.party_id, leader.member_id, [leader.member_id])


@pytest.mark.asyncio
async def test_get_state_counts(db_session, party_factory):
    party, leader, (member,) = await party_factory(members=1)
    await SelectionService(db_session).submit(party.party_id, member.member_id, ["A"])

    snapshot = await PartyStateService(db_session).get_state(party.party_id)

    assert snapshot['status'] == PartyStatus.WAITING.value
    assert snapshot['member_count'] == 2
    assert snapshot['selection_count'] == 1
    assert snapshot['wins_credited'] is False
    assert snapshot['leader_id'] == str(leader.member_id)


@pytest.mark.asyncio
async def test_members_stay_after_start(db_session, party_factory):
    party, leader, (member,) = await party_factory(members=1)
    await PartyStateService(db_session).start(party.party_id, leader.member_id)

    assert await PartyRosterService(db_session).list_member_ids(party.party_id) == [
        leader.member_id,
        member.member_id,
    ]
