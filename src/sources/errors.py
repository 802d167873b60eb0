"""Error types for upstream content sources."""

from enum import Enum


class SourceErrorClass(str, Enum):
    """Classification of upstream source errors.

    - NETWORK_TIMEOUT: Request timed out
    - CONNECTION_ERROR: Could not establish connection
    - HTTP_4XX: Non-retryable client error (except 429)
    - HTTP_5XX: Server error
    - RATE_LIMITED: 429 Too Many Requests
    - PARSE: Response body did not match the expected shape
    - UNKNOWN: Unclassified error
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    RATE_LIMITED = "RATE_LIMITED"
    PARSE = "PARSE"
    UNKNOWN = "UNKNOWN"


_TRANSIENT_CLASSES = frozenset(
    {
        SourceErrorClass.NETWORK_TIMEOUT,
        SourceErrorClass.CONNECTION_ERROR,
        SourceErrorClass.HTTP_5XX,
        SourceErrorClass.RATE_LIMITED,
        SourceErrorClass.UNKNOWN,
    }
)


class SourceError(Exception):
    """Typed failure from an upstream source call.

    Provides structured information for logging and the retry affordance.
    """

    def __init__(
        self,
        error_class: SourceErrorClass,
        message: str,
        status_code: int | None = None,
        operation: str | None = None,
    ) -> None:
        """Initialize the source error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            status_code: HTTP status code if available.
            operation: Source operation that failed.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.status_code = status_code
        self.operation = operation

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same request may succeed."""
        return self.error_class in _TRANSIENT_CLASSES

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "status_code": self.status_code,
            "operation": self.operation,
        }
