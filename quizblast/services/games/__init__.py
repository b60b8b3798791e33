"""Game domain services: content, scoring, progression, stores and timers.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""
from .errors import (  # noqa: F401
    CollaboratorError,
    DuplicateSubmission,
    GameError,
    PermissionDenied,
    SessionNotFound,
    StaleStateError,
    ValidationError,
)
from .service import GameService, SubmissionOutcome  # noqa: F401
from .store import InMemoryStore, SessionStore  # noqa: F401
