"""Call lifecycle states and the allowed transitions between them."""
from enum import Enum
from typing import Dict, FrozenSet


class CallStatus(str, Enum):
    """Lifecycle of one inbound call."""

    RINGING = "ringing"  # team phones are being dialed
    IN_PROGRESS = "in-progress"  # a leg reported answered
    COMPLETED = "completed"  # answered and hung up
    MISSED = "missed"  # nobody picked up; caller sent to voicemail
    VOICEMAIL = "voicemail"  # caller left a recording

    def __str__(self) -> str:
        """Return the string value of the status."""
        return self.value


TERMINAL_STATUSES: FrozenSet[CallStatus] = frozenset({CallStatus.COMPLETED, CallStatus.VOICEMAIL})

# target -> statuses a call may be in for the transition to apply.
# Terminal statuses only ever appear as sources of themselves (idempotent retries).
ALLOWED_SOURCES: Dict[CallStatus, FrozenSet[CallStatus]] = {
    CallStatus.IN_PROGRESS: frozenset({CallStatus.RINGING, CallStatus.IN_PROGRESS}),
    CallStatus.COMPLETED: frozenset(
        {CallStatus.RINGING, CallStatus.IN_PROGRESS, CallStatus.COMPLETED}
    ),
    CallStatus.MISSED: frozenset({CallStatus.RINGING, CallStatus.IN_PROGRESS, CallStatus.MISSED}),
    CallStatus.VOICEMAIL: frozenset({CallStatus.RINGING, CallStatus.MISSED, CallStatus.VOICEMAIL}),
}


def is_terminal(status: str) -> bool:
    """Completed and voicemail calls never change status again."""
    return status in {s.value for s in TERMINAL_STATUSES}
