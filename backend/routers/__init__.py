"""API routers."""
from backend.routers import health, members, party

__all__ = [
    "health",
    "members",
    "party",
]
