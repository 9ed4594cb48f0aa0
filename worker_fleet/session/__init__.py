"""
Orchestration socket session: message schemas, state machine and driver.
"""

from .messages import (
    JobAssignment,
    MessageType,
    SessionIdentity,
    worker_identity,
)
from .state import SessionEvent, SessionSnapshot, SessionState, transition
from .worker_session import WorkerSession

__all__ = [
    "JobAssignment",
    "MessageType",
    "SessionIdentity",
    "worker_identity",
    "SessionEvent",
    "SessionSnapshot",
    "SessionState",
    "transition",
    "WorkerSession",
]
