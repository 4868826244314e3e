"""Domain errors raised by the stores and mapped to HTTP responses in main."""


class NotesbuzzError(Exception):
    """Base class for all errors surfaced to API callers.

    ``message`` is safe to show to clients; driver or internal error text
    must never be passed in here.
    """

    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        self.message = message
        super().__init__(message)


class InvalidInput(NotesbuzzError):
    """Malformed or missing request fields."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid input",
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        """Initialize InvalidInput.

        Args:
            message: Summary message for the client.
            errors: Optional per-field errors as ``{"field", "message"}`` dicts.
        """
        self.errors = errors or []
        super().__init__(message)


class RejectedType(InvalidInput):
    """Upload content type is not an accepted category."""

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(f"Unsupported file type: {content_type or 'unknown'}")


class Conflict(NotesbuzzError):
    """Username or email already taken."""

    status_code = 400


class Unauthorized(NotesbuzzError):
    """Credentials did not match."""

    status_code = 401


class NotFound(NotesbuzzError):
    """Requested record does not exist."""

    status_code = 404


class StorageError(NotesbuzzError):
    """Underlying database failed during a store operation."""

    status_code = 500
