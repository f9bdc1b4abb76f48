"""Exceptions that cross module boundaries."""


class InvalidRequestError(Exception):
    """Raised when a request lacks the identifiers or structure it needs.

    Surfaced to callers as a client error; no network call has been made.
    """

    def __init__(self, message: str, state: str | None = None):
        super().__init__(message)
        self.state = state


class MatchTimeoutError(Exception):
    """Raised when a match request exceeds its deadline."""

    def __init__(self, deadline_seconds: float):
        super().__init__(f"Match request exceeded its deadline of {deadline_seconds:.1f}s")
        self.deadline_seconds = deadline_seconds


class UpstreamWriteError(Exception):
    """Raised when a collaborator rejects a write (registry, discovery, environment)."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
