"""Domain exceptions for the feed assembler.

Transient fetch failures are not raised to callers: they become a
retryable ``LoadError`` state on the session. The exceptions here signal
misuse of a session.
"""


class FeedEngineError(Exception):
    """Base exception for all feed engine errors."""


class SessionNotOpenError(FeedEngineError):
    """Raised when an operation needs a topic that has not been loaded."""

    def __init__(self, session_id: str, operation: str) -> None:
        """Initialize the error.

        Args:
            session_id: Identifier of the session.
            operation: Operation that was attempted.
        """
        self.session_id = session_id
        self.operation = operation
        super().__init__(
            f"Feed session '{session_id}' has no topic loaded; cannot {operation}"
        )


class SessionClosedError(FeedEngineError):
    """Raised when a closed session is reopened."""

    def __init__(self, session_id: str) -> None:
        """Initialize the error.

        Args:
            session_id: Identifier of the closed session.
        """
        self.session_id = session_id
        super().__init__(f"Feed session '{session_id}' is closed")
