"""
Submission State Machine

Defines the states a single contact form submission moves through and
the transitions allowed between them. The pipeline is straight-line:
no state is ever revisited and nothing is retried.
"""

from enum import Enum
from typing import Final

import structlog

from contact_form.exceptions import InvalidStateTransitionError

log = structlog.get_logger()


class SubmissionState(str, Enum):
    """
    Submission state enum.

    States are mutually exclusive and represent the current stage
    of one invocation of the submission pipeline.
    """

    DECODING = "DECODING"
    """Request body is being decoded into form fields."""

    BUILDING = "BUILDING"
    """Form decoded and honeypot passed, MIME message being written."""

    SENDING = "SENDING"
    """Message complete, handed to the mail sender."""

    SUCCEEDED = "SUCCEEDED"
    """Mail sender accepted the message."""

    FAILED = "FAILED"
    """Any step failed; the user is sent to the failure page."""

    @property
    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no outgoing transitions)."""
        return self in TERMINAL_STATES


TERMINAL_STATES: Final[frozenset[SubmissionState]] = frozenset({
    SubmissionState.SUCCEEDED,
    SubmissionState.FAILED,
})

# Key: current state, Value: set of allowed next states
VALID_TRANSITIONS: Final[dict[SubmissionState, frozenset[SubmissionState]]] = {
    SubmissionState.DECODING: frozenset({
        SubmissionState.BUILDING,
        SubmissionState.FAILED,
    }),
    SubmissionState.BUILDING: frozenset({
        SubmissionState.SENDING,
        SubmissionState.FAILED,
    }),
    SubmissionState.SENDING: frozenset({
        SubmissionState.SUCCEEDED,
        SubmissionState.FAILED,
    }),
    SubmissionState.SUCCEEDED: frozenset(),  # Terminal
    SubmissionState.FAILED: frozenset(),     # Terminal
}


def validate_transition(
    current_state: SubmissionState,
    new_state: SubmissionState,
) -> SubmissionState:
    """
    Validate that a state transition is allowed.

    Returns:
        The new state, so callers can write ``state = validate_transition(state, ...)``

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    allowed = VALID_TRANSITIONS.get(current_state, frozenset())

    if new_state not in allowed:
        log.warning(
            "invalid_state_transition",
            current_state=current_state.value,
            new_state=new_state.value,
            allowed_transitions=sorted(s.value for s in allowed),
        )
        raise InvalidStateTransitionError(
            current_state=current_state.value,
            new_state=new_state.value,
            allowed_transitions=sorted(s.value for s in allowed),
        )

    return new_state
