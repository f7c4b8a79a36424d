"""Transfer state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from finance_gateway.gateway.types import TransferStatus


class TransferState(str, Enum):
    """Recorded lifecycle state of a transfer."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    PENDING = "pending"
    REJECTED = "rejected"
    FAILED = "failed"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: str, to_state: str, reason: str | None = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        msg = f"Invalid transition from '{from_state}' to '{to_state}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class TransferStateMachine:
    """State machine for transfer status transitions.

    Allowed transitions:
    - draft → submitted
    - submitted → confirmed | pending | rejected | failed
    - failed → submitted (resubmission with the same token)

    There is no cancellation once a transfer is submitted.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TransferState.DRAFT: [TransferState.SUBMITTED],
        TransferState.SUBMITTED: [
            TransferState.CONFIRMED,
            TransferState.PENDING,
            TransferState.REJECTED,
            TransferState.FAILED,
        ],
        TransferState.FAILED: [TransferState.SUBMITTED],
        TransferState.CONFIRMED: [],
        TransferState.PENDING: [],
        TransferState.REJECTED: [],
    }

    # States whose provider outcome is final and replayed to later callers
    OUTCOME_RECORDED = {
        TransferState.CONFIRMED,
        TransferState.PENDING,
        TransferState.REJECTED,
    }

    # States a same-token submission may pick up again
    RESUBMITTABLE = {
        TransferState.DRAFT,
        TransferState.SUBMITTED,
        TransferState.FAILED,
    }

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """Check if a transition is valid."""
        return to_state in cls.VALID_TRANSITIONS.get(from_state, [])

    @classmethod
    def validate_transition(cls, from_state: str, to_state: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_state, to_state):
            raise InvalidTransitionError(from_state, to_state)

    @classmethod
    def has_outcome(cls, state: str) -> bool:
        return state in cls.OUTCOME_RECORDED

    @classmethod
    def can_resubmit(cls, state: str) -> bool:
        return state in cls.RESUBMITTABLE

    @classmethod
    def get_next_states(cls, current_state: str) -> list[str]:
        """Get list of valid next states from current state."""
        return cls.VALID_TRANSITIONS.get(current_state, [])

    @staticmethod
    def from_status(status: TransferStatus) -> TransferState:
        """Map a provider-reported status onto the recorded state."""
        return TransferState(TransferStatus(status).value)
