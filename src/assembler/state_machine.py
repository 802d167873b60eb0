"""State machine for feed session lifecycle."""

from enum import Enum

import structlog

from src.assembler.errors import FeedEngineError


logger = structlog.get_logger()


class SessionState(str, Enum):
    """State of a feed session.

    - UNLOADED: Session created, nothing fetched
    - LOADING: Topic or first page of a stream is being fetched
    - READY: Feed is displayable and accepts further pages
    - LOADING_MORE: A follow-up page is in flight
    - FAILED: The last fetch failed; rendered pages are kept
    - CLOSED: Session torn down; late results are discarded
    """

    UNLOADED = "UNLOADED"
    LOADING = "LOADING"
    READY = "READY"
    LOADING_MORE = "LOADING_MORE"
    FAILED = "FAILED"
    CLOSED = "CLOSED"


# Valid state transitions
_VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.UNLOADED: {SessionState.LOADING, SessionState.CLOSED},
    SessionState.LOADING: {SessionState.READY, SessionState.FAILED, SessionState.CLOSED},
    SessionState.READY: {SessionState.LOADING, SessionState.LOADING_MORE, SessionState.CLOSED},
    SessionState.LOADING_MORE: {
        SessionState.READY,
        SessionState.LOADING,
        SessionState.FAILED,
        SessionState.CLOSED,
    },
    SessionState.FAILED: {
        SessionState.LOADING,
        SessionState.LOADING_MORE,
        SessionState.READY,
        SessionState.CLOSED,
    },
    SessionState.CLOSED: set(),  # Terminal state
}


class SessionStateTransitionError(FeedEngineError):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        session_id: str,
        from_state: SessionState,
        to_state: SessionState,
    ) -> None:
        """Initialize the transition error.

        Args:
            session_id: Identifier of the session.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.session_id = session_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal session state transition for session '{session_id}': "
            f"{from_state.value} -> {to_state.value}"
        )


class SessionStateMachine:
    """Manages state transitions for a feed session.

    Enforces valid transitions and logs all state changes.
    """

    def __init__(
        self,
        session_id: str,
        initial_state: SessionState = SessionState.UNLOADED,
    ) -> None:
        """Initialize the state machine.

        Args:
            session_id: Identifier for the session.
            initial_state: Starting state.
        """
        self._session_id = session_id
        self._state = initial_state
        self._log = logger.bind(component="session", session_id=session_id)

    @property
    def session_id(self) -> str:
        """Get the session identifier."""
        return self._session_id

    @property
    def state(self) -> SessionState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state == SessionState.CLOSED

    def can_transition_to(self, target: SessionState) -> bool:
        """Check if a transition to the target state is valid.

        Args:
            target: The target state.

        Returns:
            True if the transition is valid.
        """
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: SessionState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            SessionStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            error = SessionStateTransitionError(
                session_id=self._session_id,
                from_state=self._state,
                to_state=target,
            )
            self._log.error(
                "illegal_session_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise error

        old_state = self._state
        self._state = target

        self._log.info(
            "session_state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_loading(self) -> None:
        """Transition to LOADING state."""
        self.transition_to(SessionState.LOADING)

    def to_ready(self) -> None:
        """Transition to READY state."""
        self.transition_to(SessionState.READY)

    def to_loading_more(self) -> None:
        """Transition to LOADING_MORE state."""
        self.transition_to(SessionState.LOADING_MORE)

    def to_failed(self) -> None:
        """Transition to FAILED state."""
        self.transition_to(SessionState.FAILED)

    def to_closed(self) -> None:
        """Transition to CLOSED state."""
        self.transition_to(SessionState.CLOSED)
