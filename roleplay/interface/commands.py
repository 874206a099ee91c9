"""
Slash command results.

Read-only commands are plain functions of session state. /list and
/switch touch the character store, so they are jobs that run off the UI
thread and report back a CommandResult.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from ..errors import RoleplayError, StorageError
from ..state.schema import Character
from ..state.store import CharacterStore
from .command_registry import CommandKind
from .display import (
    format_hit_rate,
    mood_label,
    short_session_id,
    summarize_backstory,
)
from .resolver import resolve

if TYPE_CHECKING:
    from ..agent import CharacterAgent

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a slash command. `character` is set only for SWITCH."""
    kind: CommandKind
    content: str = ""
    character: Character | None = None


# -----------------------------------------------------------------------------
# Read-only payloads
# -----------------------------------------------------------------------------

def stats_payload(total_requests: int, cache_hits: int, tokens_saved: int) -> str:
    return "\n".join([
        "Cache Statistics:",
        f"• Total requests: {total_requests}",
        f"• Cache hits: {cache_hits}",
        f"• Cache misses: {total_requests - cache_hits}",
        f"• Hit rate: {format_hit_rate(total_requests, cache_hits)}",
        f"• Tokens saved: {tokens_saved}",
    ])


def mood_payload(character: Character | None) -> CommandResult:
    if character is None:
        return CommandResult(CommandKind.ERROR, "Character not loaded")

    mood = character.current_mood
    lines = [f"{mood.icon} Current Mood: {mood.dominant}", "", "Emotional State:"]
    lines += [f"• {name}: {value:.0%}" for name, value in mood.as_dict().items()]
    return CommandResult(CommandKind.MOOD, "\n".join(lines))


def personality_payload(character: Character | None) -> CommandResult:
    if character is None:
        return CommandResult(CommandKind.ERROR, "Character not loaded")

    p = character.personality
    return CommandResult(CommandKind.PERSONALITY, "\n".join([
        f"{character.name}'s Personality (OCEAN Model):",
        "",
        f"• Openness: {p.openness:.0%}  (creativity, openness to experience)",
        f"• Conscientiousness: {p.conscientiousness:.0%}  (organization, self-discipline)",
        f"• Extraversion: {p.extraversion:.0%}  (sociability, assertiveness)",
        f"• Agreeableness: {p.agreeableness:.0%}  (compassion, cooperation)",
        f"• Neuroticism: {p.neuroticism:.0%}  (emotional instability, anxiety)",
    ]))


def session_payload(
    session_id: str,
    character_id: str,
    character: Character | None,
    user_id: str,
    message_count: int,
    start_time: datetime,
) -> str:
    name = character.name if character else character_id
    return "\n".join([
        "Session Information:",
        f"• Session ID: {short_session_id(session_id)}",
        f"• Character: {name} ({character_id})",
        f"• User: {user_id}",
        f"• Messages: {message_count}",
        f"• Started: {start_time.strftime('%b %d, %Y %H:%M')}",
    ])


# -----------------------------------------------------------------------------
# Store-backed jobs (run in a worker)
# -----------------------------------------------------------------------------

def list_characters(
    agent: "CharacterAgent",
    store: CharacterStore,
    current_id: str,
) -> CommandResult:
    """Catalog listing with mood and a one-line description per character."""
    try:
        character_ids = store.list_characters()
    except StorageError as e:
        return CommandResult(CommandKind.ERROR, f"Error listing characters: {e}")

    if not character_ids:
        return CommandResult(
            CommandKind.INFO,
            "No characters available. Add character files to the data directory.",
        )

    lines = ["Available Characters:"]
    for character_id in character_ids:
        try:
            character = agent.load_character(character_id)
        except RoleplayError as e:
            logger.warning("Skipping character %s in /list: %s", character_id, e)
            continue

        indicator = "→ " if character_id == current_id else "  "
        lines.append("")
        lines.append(f"{indicator}{character.name} ({character_id}) {mood_label(character)}")
        lines.append(f"   {summarize_backstory(character.backstory)}")

    return CommandResult(CommandKind.LIST, "\n".join(lines))


def switch_character(
    agent: "CharacterAgent",
    store: CharacterStore,
    query: str,
    current_id: str,
) -> CommandResult:
    """Resolve `query` and load the target into the agent's working set."""
    try:
        info = resolve(query, store.get_character_info())
        if info.id == current_id:
            return CommandResult(CommandKind.INFO, f"Already chatting with {info.label}")
        character = agent.load_character(info.id)
    except StorageError as e:
        return CommandResult(CommandKind.ERROR, f"Error accessing characters: {e}")
    except RoleplayError as e:
        return CommandResult(CommandKind.ERROR, str(e))

    return CommandResult(CommandKind.SWITCH, character=character)
