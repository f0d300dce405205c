"""Execution call state enumeration."""

from enum import StrEnum, auto


class CallState(StrEnum):
    """Represents the progress of one execute or iterate call.

    Attributes:
        QUEUED: Waiting for a concurrency permit
        PERMIT_ACQUIRED: Holding a permit
        CONVERSATION_RESOLVED: Conversation created or resumed
        PROCESS_RUNNING: Assistant process is running
        COMPLETED: Process exited on its own (any exit code)
        TIMED_OUT: Process was killed for exceeding its budget
        FAILED: Spawn, store or conversation lookup failed
    """

    QUEUED = auto()
    PERMIT_ACQUIRED = auto()
    CONVERSATION_RESOLVED = auto()
    PROCESS_RUNNING = auto()
    COMPLETED = auto()
    TIMED_OUT = auto()
    FAILED = auto()

    def is_terminal(self) -> bool:
        """Check if this state ends the call.

        Returns:
            True if state is COMPLETED, TIMED_OUT, or FAILED
        """
        return self in (CallState.COMPLETED, CallState.TIMED_OUT, CallState.FAILED)
