"""
Slash command registry.

Single source of truth for the chat's slash commands: names, aliases,
arity and help text. Parsing a line yields a ParsedCommand; running it is
the session controller's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import UsageError


class CommandKind(str, Enum):
    """Closed set of command outcomes."""
    QUIT = "quit"
    HELP = "help"
    CLEAR = "clear"
    LIST = "list"
    STATS = "stats"
    MOOD = "mood"
    PERSONALITY = "personality"
    SESSION = "session"
    SWITCH = "switch"
    INFO = "info"
    ERROR = "error"


class CommandCategory(str, Enum):
    """Command categories for organized display."""
    CHAT = "Chat"
    CHARACTER = "Character"
    INFO = "Info"


# -----------------------------------------------------------------------------
# Command Definition
# -----------------------------------------------------------------------------

@dataclass
class Command:
    """
    A single command definition with all metadata.

    Attributes:
        name: The command name including slash (e.g., "/switch")
        kind: What the controller does with it
        description: Short description for help
        category: Category for grouping in help
        aliases: Alternative names for the command
        args: Argument placeholders; the command takes exactly this many
        hint: Extra line shown after a usage error
        hidden: If True, don't show in help
    """
    name: str
    kind: CommandKind
    description: str
    category: CommandCategory
    aliases: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)
    hint: str = ""
    hidden: bool = False

    @property
    def usage(self) -> str:
        return " ".join([self.name] + [f"<{a}>" for a in self.args])

    def check_arity(self, args: list[str]) -> None:
        if len(args) != len(self.args):
            message = f"{self.name} takes {len(self.args)} argument(s), got {len(args)}"
            if self.hint:
                message += f". {self.hint}"
            raise UsageError(message, usage=self.usage)


@dataclass
class ParsedCommand:
    """A line after parsing: a known command with its args, or an error."""
    kind: CommandKind
    name: str = ""
    args: list[str] = field(default_factory=list)
    error: str = ""

    @property
    def arg(self) -> str:
        return self.args[0] if self.args else ""


# -----------------------------------------------------------------------------
# Fuzzy Matching
# -----------------------------------------------------------------------------

def fuzzy_match(pattern: str, text: str) -> tuple[bool, int]:
    """
    Check if pattern fuzzy-matches text.
    Returns (matches, score) where score is higher for better matches.
    """
    pattern = pattern.lower()
    text = text.lower()

    # Exact prefix match gets highest score
    if text.startswith(pattern):
        return True, 1000 - len(text)

    # All pattern chars must appear in order
    pattern_idx = 0
    score = 0
    consecutive = 0

    for i, char in enumerate(text):
        if pattern_idx < len(pattern) and char == pattern[pattern_idx]:
            pattern_idx += 1
            consecutive += 1
            score += consecutive * 10
            if i == 0:
                score += 50
        else:
            consecutive = 0

    if pattern_idx == len(pattern):
        return True, score
    return False, 0


# -----------------------------------------------------------------------------
# Command Registry
# -----------------------------------------------------------------------------

class CommandRegistry:
    """Central registry for all slash commands."""

    def __init__(self):
        self._commands: dict[str, Command] = {}

    def register(self, command: Command) -> None:
        """Register a command under its name and every alias."""
        self._commands[command.name] = command
        for alias in command.aliases:
            self._commands[alias] = command

    def get(self, name: str) -> Command | None:
        """Get a command by name or alias, case-insensitive."""
        return self._commands.get(name.lower())

    def all_commands(self) -> list[Command]:
        """Get all unique commands (excludes aliases)."""
        seen = set()
        result = []
        for cmd in self._commands.values():
            if cmd.name not in seen:
                seen.add(cmd.name)
                result.append(cmd)
        return result

    def suggest(self, token: str) -> str | None:
        """Closest registered spelling for a mistyped command, if any is close."""
        pattern = token.lstrip("/").lower()
        if not pattern:
            return None

        best, best_score = None, 0
        for name, cmd in self._commands.items():
            if cmd.hidden:
                continue
            is_match, score = fuzzy_match(pattern, name.lstrip("/"))
            if is_match and score > best_score:
                best, best_score = cmd.name, score
        return best

    def parse(self, line: str) -> ParsedCommand:
        """
        Parse a slash command line.

        Never raises: unknown commands and arity mistakes come back as
        ParsedCommand(kind=ERROR) carrying the message to show.
        """
        parts = line.split()
        if not parts:
            return ParsedCommand(kind=CommandKind.ERROR, error="Invalid command")

        token, args = parts[0].lower(), parts[1:]
        cmd = self.get(token)
        if cmd is None:
            message = f"Unknown command: {token}\nType /help for available commands"
            suggestion = self.suggest(token)
            if suggestion:
                message += f" (did you mean {suggestion}?)"
            return ParsedCommand(kind=CommandKind.ERROR, name=token, args=args, error=message)

        try:
            cmd.check_arity(args)
        except UsageError as e:
            return ParsedCommand(kind=CommandKind.ERROR, name=cmd.name, args=args, error=str(e))

        return ParsedCommand(kind=cmd.kind, name=cmd.name, args=args)

    def help_text(self) -> str:
        """Help listing, grouped by category."""
        lines = ["Available slash commands:"]
        for category in CommandCategory:
            commands = [c for c in self.all_commands() if c.category == category and not c.hidden]
            if not commands:
                continue
            lines.append("")
            lines.append(f"{category.value}:")
            for cmd in commands:
                spelled = ", ".join([cmd.usage] + cmd.aliases)
                lines.append(f"  {spelled:<22} - {cmd.description}")
        return "\n".join(lines)


# -----------------------------------------------------------------------------
# Default commands
# -----------------------------------------------------------------------------

def create_default_registry() -> CommandRegistry:
    """Registry with the chat's built-in commands."""
    registry = CommandRegistry()

    registry.register(Command(
        name="/help",
        kind=CommandKind.HELP,
        description="Show this help message",
        category=CommandCategory.CHAT,
        aliases=["/h"],
    ))
    registry.register(Command(
        name="/exit",
        kind=CommandKind.QUIT,
        description="Exit the chat",
        category=CommandCategory.CHAT,
        aliases=["/quit", "/q"],
    ))
    registry.register(Command(
        name="/clear",
        kind=CommandKind.CLEAR,
        description="Clear chat history",
        category=CommandCategory.CHAT,
        aliases=["/c"],
    ))
    registry.register(Command(
        name="/list",
        kind=CommandKind.LIST,
        description="List all available characters",
        category=CommandCategory.CHARACTER,
    ))
    registry.register(Command(
        name="/switch",
        kind=CommandKind.SWITCH,
        description="Switch to a different character",
        category=CommandCategory.CHARACTER,
        args=["character"],
        hint="Use /list to see available characters",
    ))
    registry.register(Command(
        name="/mood",
        kind=CommandKind.MOOD,
        description="Show character's current mood",
        category=CommandCategory.CHARACTER,
    ))
    registry.register(Command(
        name="/personality",
        kind=CommandKind.PERSONALITY,
        description="Show character's personality traits",
        category=CommandCategory.CHARACTER,
    ))
    registry.register(Command(
        name="/stats",
        kind=CommandKind.STATS,
        description="Show cache statistics",
        category=CommandCategory.INFO,
    ))
    registry.register(Command(
        name="/session",
        kind=CommandKind.SESSION,
        description="Show session information",
        category=CommandCategory.INFO,
    ))

    return registry


_registry: CommandRegistry | None = None


def get_registry() -> CommandRegistry:
    """Get the global command registry."""
    global _registry
    if _registry is None:
        _registry = create_default_registry()
    return _registry
