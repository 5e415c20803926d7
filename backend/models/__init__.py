"""Database models."""
from backend.models.member import Member
from backend.models.party import Party
from backend.models.party_membership import PartyMembership
from backend.models.party_selection import PartySelection
from backend.models.party_invite import PartyInvite

__all__ = [
    "Member",
    "Party",
    "PartyMembership",
    "PartySelection",
    "PartyInvite",
]
