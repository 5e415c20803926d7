"""Custom exceptions for the party engine."""
import functools
import logging

from sqlalchemy.exc import InterfaceError, OperationalError

logger = logging.getLogger(__name__)


class PartyWagerError(Exception):
    """Base exception for party engine errors.

    ``error_code`` is the stable identifier returned to API clients and
    ``status_code`` the HTTP status it maps to.
    """
    error_code = "party_error"
    status_code = 400


class UnauthorizedError(PartyWagerError):
    """Raised when the caller lacks the role an operation requires."""
    error_code = "not_authorized"
    status_code = 403


class InvalidTransitionError(PartyWagerError):
    """Raised when a party is not in the state an operation requires."""
    error_code = "invalid_transition"
    status_code = 409


class AlreadyResolvedError(PartyWagerError):
    """Raised when winning outcomes are confirmed a second time."""
    error_code = "already_resolved"
    status_code = 409


class NotOpenError(PartyWagerError):
    """Raised when a party no longer accepts selections or members."""
    error_code = "party_not_open"
    status_code = 409


class InvalidCardinalityError(PartyWagerError):
    """Raised when a selection has too few or too many outcomes."""
    error_code = "invalid_cardinality"
    status_code = 422


class InvalidOutcomeError(PartyWagerError):
    """Raised when a value is outside the party's candidate outcomes."""
    error_code = "invalid_outcome"
    status_code = 422


class PartyFullError(PartyWagerError):
    """Raised when joining a party at capacity."""
    error_code = "party_full"
    status_code = 409


class AlreadyMemberError(PartyWagerError):
    """Raised when a member is added to a party they already belong to."""
    error_code = "already_member"
    status_code = 409


class NotFoundError(PartyWagerError):
    """Raised when a party, member, or invitation does not exist."""
    error_code = "not_found"
    status_code = 404


class StoreUnavailableError(PartyWagerError):
    """Raised when the database cannot be reached. Safe to retry."""
    error_code = "store_unavailable"
    status_code = 503


def translate_store_errors(func):
    """Turn connectivity failures inside a service coroutine into StoreUnavailableError.

    The wrapped method must belong to a service holding its session on ``self.db``.
    The session is rolled back so nothing from the failed unit of work is kept.
    """

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            logger.error(f"Store unavailable during {func.__qualname__}: {exc}")
            try:
                await self.db.rollback()
            except (OperationalError, InterfaceError):
                logger.warning(f"Rollback failed after store error in {func.__qualname__}")
            raise StoreUnavailableError("The data store is temporarily unavailable") from exc

    return wrapper
