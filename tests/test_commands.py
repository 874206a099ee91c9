"""
Tests for slash command payloads and the store-backed /list and /switch jobs.
"""

from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from roleplay.errors import StorageError
from roleplay.interface.command_registry import CommandKind
from roleplay.interface.commands import (
    list_characters,
    mood_payload,
    personality_payload,
    session_payload,
    stats_payload,
    switch_character,
)
from roleplay.interface.display import (
    format_hit_rate,
    mood_label,
    short_session_id,
    summarize_backstory,
)
from roleplay.state import EmotionalState, MemoryCharacterStore


class TestDisplay:

    def test_hit_rate_with_no_requests(self):
        assert format_hit_rate(0, 0) == "0%"

    def test_hit_rate_rounds(self):
        assert format_hit_rate(3, 1) == "33%"
        assert format_hit_rate(3, 2) == "67%"

    def test_short_session_id(self):
        assert short_session_id("session-20240101") == "session-..."
        assert short_session_id("abc") == "abc"

    def test_summarize_first_sentence(self):
        assert summarize_backstory("Short one. Then more.") == "Short one."

    def test_summarize_truncates_long_text(self):
        summary = summarize_backstory("x" * 150)
        assert len(summary) == 100
        assert summary.endswith("...")

    def test_mood_label(self, rick):
        assert mood_label(rick) == "😠 Anger"
        assert mood_label(None) == "🤔 Unknown"


class TestPayloads:

    def test_stats(self):
        text = stats_payload(4, 3, 512)
        assert "• Cache misses: 1" in text
        assert "• Hit rate: 75%" in text
        assert "• Tokens saved: 512" in text

    def test_mood_neutral_below_threshold(self, morty):
        morty.current_mood = EmotionalState(joy=0.1)
        result = mood_payload(morty)
        assert result.kind == CommandKind.MOOD
        assert result.content.startswith("😐 Current Mood: Neutral")
        assert "• Joy: 10%" in result.content

    def test_mood_without_character(self):
        result = mood_payload(None)
        assert result.kind == CommandKind.ERROR
        assert result.content == "Character not loaded"

    def test_personality(self, rick):
        result = personality_payload(rick)
        assert "• Agreeableness: 20%" in result.content
        assert "• Neuroticism: 70%" in result.content

    def test_personality_without_character(self):
        assert personality_payload(None).kind == CommandKind.ERROR

    def test_session_falls_back_to_id(self):
        text = session_payload(
            "session-20240101-120000-abcdef", "rick-c137", None, "morty", 6,
            datetime(2024, 1, 1, 12, 0),
        )
        assert "• Character: rick-c137 (rick-c137)" in text
        assert "• Started: Jan 01, 2024 12:00" in text


class TestListCharacters:

    def test_marks_current(self, agent, character_store):
        result = list_characters(agent, character_store, "morty-c137")
        assert result.kind == CommandKind.LIST
        assert "→ Morty Smith (morty-c137)" in result.content
        assert "  Rick Sanchez (rick-c137)" in result.content

    def test_shows_evolved_mood(self, agent, character_store, rick):
        """Characters already in the working set are listed with their live mood."""
        agent.create_character(rick.model_copy(update={"current_mood": EmotionalState(joy=0.9)}))
        result = list_characters(agent, character_store, "morty-c137")
        assert "Rick Sanchez (rick-c137) 😊 Joy" in result.content

    def test_empty_catalog(self, agent):
        result = list_characters(agent, MemoryCharacterStore(), "rick-c137")
        assert result.kind == CommandKind.INFO
        assert "No characters available" in result.content

    def test_storage_failure(self, agent):
        store = MagicMock()
        store.list_characters.side_effect = StorageError("Cannot read /nowhere")
        result = list_characters(agent, store, "rick-c137")
        assert result.kind == CommandKind.ERROR
        assert "Error listing characters" in result.content


class TestSwitchCharacter:

    def test_switch_by_name_prefix(self, agent, character_store):
        result = switch_character(agent, character_store, "Mor", "rick-c137")
        assert result.kind == CommandKind.SWITCH
        assert result.character.id == "morty-c137"

    def test_switch_loads_into_working_set(self, agent, character_store):
        switch_character(agent, character_store, "morty-c137", "rick-c137")
        assert agent.get_character("morty-c137").name == "Morty Smith"

    def test_already_active(self, agent, character_store):
        result = switch_character(agent, character_store, "rick", "rick-c137")
        assert result.kind == CommandKind.INFO
        assert result.content == "Already chatting with Rick Sanchez (rick-c137)"
        assert result.character is None

    def test_not_found(self, agent, character_store):
        result = switch_character(agent, character_store, "birdperson", "rick-c137")
        assert result.kind == CommandKind.ERROR
        assert "No character found matching 'birdperson'" in result.content
        assert "/list" in result.content

    def test_ambiguous(self, agent, character_store):
        result = switch_character(agent, character_store, "c137", "rick-c137")
        assert result.kind == CommandKind.ERROR
        assert "Multiple characters match 'c137'" in result.content

    def test_storage_failure(self, agent):
        store = MagicMock()
        store.get_character_info.side_effect = StorageError("Cannot read /nowhere")
        result = switch_character(agent, store, "rick", "morty-c137")
        assert result.kind == CommandKind.ERROR
        assert result.content.startswith("Error accessing characters")
