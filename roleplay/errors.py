"""
Error taxonomy for the chat session.

None of these are fatal. The session controller turns each one into an
inline notice (transcript or status bar) and keeps running.
"""


class RoleplayError(Exception):
    """Base class for recoverable session errors."""


class UsageError(RoleplayError):
    """A slash command was malformed (unknown token, wrong arity)."""

    def __init__(self, message: str, usage: str | None = None):
        self.usage = usage
        if usage:
            message = f"{message}\nUsage: {usage}"
        super().__init__(message)


class CharacterNotFoundError(RoleplayError):
    """No character matched an id or query."""

    def __init__(self, query: str, hint: str = "Use /list to see available characters"):
        self.query = query
        self.hint = hint
        super().__init__(f"No character found matching '{query}'. {hint}")


class AmbiguousMatchError(RoleplayError):
    """A query matched more than one character."""

    def __init__(self, query: str, candidates: list[str]):
        self.query = query
        self.candidates = candidates
        super().__init__(
            f"Multiple characters match '{query}': {', '.join(candidates)}. "
            "Please be more specific."
        )


class BackendError(RoleplayError):
    """The agent or LLM backend failed to produce a response."""


class StorageError(RoleplayError):
    """Character or session storage could not be read or written."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
