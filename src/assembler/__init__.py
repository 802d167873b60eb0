"""Feed assembly and feed sessions."""

from src.assembler.assembler import FeedAssembler, entry_key
from src.assembler.errors import FeedEngineError, SessionClosedError, SessionNotOpenError
from src.assembler.metrics import FeedMetrics
from src.assembler.models import (
    EmptyState,
    FeedSequence,
    LoadError,
    LoadOperation,
    SideContentPool,
)
from src.assembler.session import FeedSession
from src.assembler.state_machine import (
    SessionState,
    SessionStateMachine,
    SessionStateTransitionError,
)


__all__ = [
    "EmptyState",
    "FeedAssembler",
    "FeedEngineError",
    "FeedMetrics",
    "FeedSequence",
    "FeedSession",
    "LoadError",
    "LoadOperation",
    "SessionClosedError",
    "SessionNotOpenError",
    "SessionState",
    "SessionStateMachine",
    "SessionStateTransitionError",
    "SideContentPool",
    "entry_key",
]
