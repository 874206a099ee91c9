"""
Input history with a browse cursor.

The cursor sits in [0, len(entries)]. A cursor equal to len(entries)
means the user is not browsing and the input shows their live draft.
"""


class CommandHistory:
    """Previously submitted lines, navigated with Up/Down."""

    def __init__(self, entries: list[str] | None = None, max_size: int = 100):
        self.max_size = max_size
        self._entries: list[str] = list(entries or [])[-max_size:]
        self._cursor = len(self._entries)
        self._draft = ""

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def browsing(self) -> bool:
        return self._cursor < len(self._entries)

    def append(self, text: str) -> None:
        """Record a submitted line and stop browsing."""
        if text and (not self._entries or self._entries[-1] != text):
            self._entries.append(text)
            if len(self._entries) > self.max_size:
                self._entries = self._entries[-self.max_size:]
        self._cursor = len(self._entries)
        self._draft = ""

    def previous(self, draft: str = "") -> str | None:
        """
        Step back to an older entry.

        `draft` is what the user has typed so far; it is kept when browsing
        starts so `next()` can hand it back. Returns None at the oldest entry.
        """
        if self._cursor == 0:
            return None
        if self._cursor == len(self._entries):
            self._draft = draft
        self._cursor -= 1
        return self._entries[self._cursor]

    def next(self) -> str | None:
        """
        Step forward to a newer entry.

        Stepping past the newest entry returns the saved draft. Returns None
        when not browsing.
        """
        if self._cursor >= len(self._entries):
            return None
        self._cursor += 1
        if self._cursor == len(self._entries):
            return self._draft
        return self._entries[self._cursor]

    def reset(self) -> None:
        """Stop browsing without changing entries."""
        self._cursor = len(self._entries)
        self._draft = ""
