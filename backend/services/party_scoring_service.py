"""Party scoring: match selections against the confirmed outcome.

Everything here is pure. No database access, no clock, no randomness, so a
resolution can be recomputed at any time and always comes out the same.
"""
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Tuple
from uuid import UUID

# Noise that free-text outcome generation leaves around option strings
_STRAY_CHARACTERS = str.maketrans("", "", '"[]')


def normalize_outcome(value: str) -> str:
    """Canonical comparison form of an outcome string.

    Strips whitespace and stray quote/bracket characters, then case-folds.
    """
    return value.strip().translate(_STRAY_CHARACTERS).strip().casefold()


def normalize_outcomes(values: Iterable[str]) -> frozenset[str]:
    """Normalize a collection of outcomes, dropping values that end up empty."""
    normalized = (normalize_outcome(value) for value in values)
    return frozenset(value for value in normalized if value)


def canonicalize_outcomes(values: Iterable[str], candidates: Iterable[str]) -> Tuple[list[str], list[str]]:
    """Map submitted values onto the party's candidate strings.

    Returns:
        (canonical, unknown): the matching candidate texts, sorted and
        de-duplicated, and the submitted values that match no candidate.
    """
    lookup = {}
    for candidate in candidates:
        lookup.setdefault(normalize_outcome(candidate), candidate)

    canonical = set()
    unknown = []
    for value in values:
        key = normalize_outcome(value)
        if key in lookup:
            canonical.add(lookup[key])
        else:
            unknown.append(value)
    return sorted(canonical), unknown


@dataclass(frozen=True)
class MemberScore:
    """One member's result."""
    member_id: UUID
    chosen_outcomes: Tuple[str, ...]
    match_count: int
    is_winner: bool


@dataclass(frozen=True)
class PartyScore:
    """Scores for every member of a party."""
    results: Tuple[MemberScore, ...]
    max_match: int

    @property
    def winner_ids(self) -> Tuple[UUID, ...]:
        return tuple(result.member_id for result in self.results if result.is_winner)

    @property
    def loser_ids(self) -> Tuple[UUID, ...]:
        return tuple(result.member_id for result in self.results if not result.is_winner)

    def for_member(self, member_id: UUID) -> Optional[MemberScore]:
        return next((result for result in self.results if result.member_id == member_id), None)


def _ordered(results: Iterable[MemberScore]) -> Tuple[MemberScore, ...]:
    return tuple(sorted(results, key=lambda result: (-result.match_count, str(result.member_id))))


def score_selections(
    winning_outcomes: Iterable[str],
    selections: Mapping[UUID, Iterable[str]],
) -> PartyScore:
    """Score every member's selection against the winning outcomes.

    Args:
        winning_outcomes: Confirmed winning outcomes (non-empty)
        selections: Chosen outcomes per member. Members who never submitted
            should be present with an empty collection.

    Returns:
        PartyScore: Winners are the members whose match count equals the
        highest match count, provided that count is above zero. When nobody
        matched anything there are no winners.
    """
    winning = normalize_outcomes(winning_outcomes)

    counts = {}
    for member_id, chosen in selections.items():
        chosen = tuple(chosen)
        counts[member_id] = (chosen, len(normalize_outcomes(chosen) & winning))

    max_match = max((count for _, count in counts.values()), default=0)

    results = [
        MemberScore(
            member_id=member_id,
            chosen_outcomes=tuple(sorted(chosen)),
            match_count=count,
            is_winner=max_match > 0 and count == max_match,
        )
        for member_id, (chosen, count) in counts.items()
    ]
    return PartyScore(results=_ordered(results), max_match=max_match)


def declare_outcome_winners(
    declared_winner_ids: Iterable[UUID],
    selections: Mapping[UUID, Iterable[str]],
) -> PartyScore:
    """Build a PartyScore from winners the leader named directly.

    Used for timed and contest bets, which have no matching formula.
    Declared winners get a match count of 1, everyone else 0.
    """
    declared = {UUID(str(member_id)) for member_id in declared_winner_ids}
    results = [
        MemberScore(
            member_id=member_id,
            chosen_outcomes=tuple(sorted(chosen)),
            match_count=1 if member_id in declared else 0,
            is_winner=member_id in declared,
        )
        for member_id, chosen in selections.items()
    ]
    return PartyScore(results=_ordered(results), max_match=1 if declared & set(selections) else 0)
