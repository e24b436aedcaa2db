"""Error taxonomy for the turn pipeline."""


class SiteBrainError(Exception):
    """Base class for sitebrain errors."""


class InferenceError(SiteBrainError):
    """Raised when the model call fails (timeout, provider error, bad response).

    The turn orchestrator recovers from it by persisting a fallback reply.
    """

    def __init__(self, message: str, *, model: str | None = None) -> None:
        self.model = model
        super().__init__(message)


class PersistenceError(SiteBrainError):
    """Raised when a store read or write fails.

    Never recovered inside the core: dropping state would break the
    append-only chat and decision logs.
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")
