from backend.services.auth_service import AuthService, AuthError
from backend.services.member_service import MemberService, UsernameTakenError
from backend.services.party_roster_service import PartyRosterService, claim_waiting_party, claim_open_party
from backend.services.selection_service import SelectionService
from backend.services.party_state_service import PartyStateService
from backend.services.party_resolution_service import (
    PartyResolutionService,
    PartyResolution,
    ResolutionReport,
)
from backend.services.party_scoring_service import (
    MemberScore,
    PartyScore,
    normalize_outcome,
    normalize_outcomes,
    score_selections,
    declare_outcome_winners,
)

__all__ = [
    # Core services
    'AuthService',
    'AuthError',
    'MemberService',
    'UsernameTakenError',

    # Party services
    'PartyRosterService',
    'claim_waiting_party',
    'claim_open_party',
    'SelectionService',
    'PartyStateService',
    'PartyResolutionService',
    'PartyResolution',
    'ResolutionReport',

    # Scoring
    'MemberScore',
    'PartyScore',
    'normalize_outcome',
    'normalize_outcomes',
    'score_selections',
    'declare_outcome_winners',
]
