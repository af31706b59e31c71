"""Exception types shared across the flow, provider and store."""

from enum import Enum


class GenerationErrorKind(str, Enum):
    INVALID_ENDPOINT = "invalid_endpoint"
    TRANSPORT_FAILURE = "transport_failure"
    MALFORMED_RESPONSE = "malformed_response"


class GenerationError(Exception):
    """A single generation request failed. Never aborts sibling requests."""

    def __init__(self, kind: GenerationErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


class FlowError(ValueError):
    """An action was rejected by the flow controller. State is unchanged."""


class InvalidTransition(FlowError):
    pass


class CommitRejected(FlowError):
    pass


class PersistenceError(OSError):
    """Saving the artifact list failed. The in-memory list is already updated."""
