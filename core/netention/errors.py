"""
Engine error taxonomy.

Every error raised inside an attempt derives from NetentionError so the
retry controller can turn it into a memory entry instead of letting it
escape to the scheduler.
"""


class NetentionError(Exception):
    """Base class for all engine errors."""


class NotFoundError(NetentionError, LookupError):
    """A Note or capability does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind.capitalize()} {key} not found")


class ValidationError(NetentionError, ValueError):
    """Input does not match the declared shape."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message)


class ExecutionError(NetentionError):
    """A capability raised (or returned garbage) while being called."""

    def __init__(self, capability: str, message: str):
        self.capability = capability
        super().__init__(f"{capability}: {message}")


class RetryExhaustedError(NetentionError):
    """All attempts for a Note failed."""

    def __init__(self, note_id: str, attempts: int, last_error: BaseException | None = None):
        self.note_id = note_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Note {note_id} failed after {attempts} attempts: {last_error}")
