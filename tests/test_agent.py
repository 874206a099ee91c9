"""
Tests for the character agent: prompt building, cache metrics and mood drift.
"""

import pytest
from pathlib import Path
from unittest.mock import MagicMock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from roleplay.agent import SHORT_TERM_LIMIT, CharacterAgent, analyze_emotions
from roleplay.errors import BackendError, CharacterNotFoundError, StorageError
from roleplay.llm import MockLLMClient
from roleplay.state import (
    ConversationContext,
    ConversationRequest,
    Memory,
    MemoryType,
    Message,
)


def make_request(message="Hey Rick", character_id="rick-c137", recent=None):
    return ConversationRequest(
        character_id=character_id,
        user_id="morty",
        message=message,
        context=ConversationContext(session_id="s1", recent_messages=recent or []),
    )


class TestWorkingSet:

    def test_load_from_store(self, agent):
        character = agent.load_character("morty-c137")
        assert character.name == "Morty Smith"
        assert agent.get_character("morty-c137").name == "Morty Smith"

    def test_get_unloaded_raises(self, agent):
        with pytest.raises(CharacterNotFoundError):
            agent.get_character("rick-c137")

    def test_load_unknown_raises(self, agent):
        with pytest.raises(CharacterNotFoundError):
            agent.load_character("jerry")

    def test_load_without_store(self, mock_client):
        with pytest.raises(CharacterNotFoundError):
            CharacterAgent(mock_client).load_character("rick-c137")

    def test_create_is_idempotent(self, agent, rick):
        agent.create_character(rick)
        changed = rick.model_copy(update={"name": "Doofus Rick"})
        assert agent.create_character(changed).name == "Rick Sanchez"

    def test_get_returns_copy(self, agent, rick):
        agent.create_character(rick)
        agent.get_character(rick.id).quirks.append("new quirk")
        assert agent.get_character(rick.id).quirks == ["Burps mid-sentence"]


class TestSystemPrompt:

    def test_sections(self, agent, rick):
        prompt = agent.build_system_prompt(rick)
        assert prompt.startswith("You are Rick Sanchez.")
        for section in ("[BACKSTORY]", "[PERSONALITY]", "[SPEECH STYLE]", "[QUIRKS]", "[EMOTIONAL STATE]"):
            assert section in prompt
        assert "- Openness: 1.00" in prompt
        assert "- Anger: 0.40" in prompt
        assert "- Burps mid-sentence" in prompt

    def test_learned_patterns_from_medium_term(self, agent, morty):
        morty.memories.append(Memory(type=MemoryType.MEDIUM_TERM, content="Hates adventures"))
        prompt = agent.build_system_prompt(morty)
        assert "[LEARNED PATTERNS]" in prompt
        assert "Hates adventures" in prompt
        assert "[QUIRKS]" not in prompt


class TestProcessRequest:

    def test_reply_and_history(self, agent, mock_client):
        agent.load_character("rick-c137")
        recent = [
            Message(role="user", content="hi"),
            Message(role="character", content="*burp*"),
        ]

        response = agent.process_request(make_request(recent=recent))

        assert response.content == "Wubba lubba dub dub!"
        sent = mock_client.calls[0]["messages"]
        assert [m.role for m in sent] == ["user", "assistant", "user"]
        assert sent[-1].content == "Hey Rick"
        assert sent[1].content == "*burp*"
        assert "Rick Sanchez" in mock_client.calls[0]["system"]

    def test_context_window_limits_history(self, mock_client, character_store):
        agent = CharacterAgent(mock_client, character_store, context_window=2)
        agent.load_character("rick-c137")
        recent = [Message(role="user", content=str(i)) for i in range(6)]

        agent.process_request(make_request(recent=recent))

        assert [m.content for m in mock_client.calls[0]["messages"]] == ["4", "5", "Hey Rick"]

    def test_cache_metrics(self, agent):
        agent.load_character("rick-c137")

        miss = agent.process_request(make_request())
        hit = agent.process_request(make_request())

        assert miss.cache_metrics.hit is False
        assert miss.cache_metrics.saved_tokens == 0
        assert hit.cache_metrics.hit is True
        assert hit.cache_metrics.saved_tokens == 120

    def test_no_client(self, character_store):
        agent = CharacterAgent(None, character_store)
        agent.load_character("rick-c137")
        with pytest.raises(BackendError, match="No LLM backend"):
            agent.process_request(make_request())

    def test_client_failure_wrapped(self, character_store):
        client = MagicMock()
        client.chat.side_effect = ConnectionError("Cannot connect to OpenRouter")
        agent = CharacterAgent(client, character_store)
        agent.load_character("rick-c137")

        with pytest.raises(BackendError, match="Cannot connect"):
            agent.process_request(make_request())

    def test_unloaded_character_loaded_from_store(self, agent):
        """A request can arrive before the startup load has finished."""
        response = agent.process_request(make_request())
        assert response.content == "Wubba lubba dub dub!"
        assert agent.get_character("rick-c137").name == "Rick Sanchez"

    def test_unknown_character(self, agent):
        with pytest.raises(CharacterNotFoundError):
            agent.process_request(make_request(character_id="jerry"))


class TestEvolution:

    def test_reply_becomes_memory(self, agent):
        agent.load_character("rick-c137")
        response = agent.process_request(make_request())

        memories = response.character.memories
        assert memories[-1].type == MemoryType.SHORT_TERM
        assert memories[-1].content == "Wubba lubba dub dub!"

    def test_mood_drifts_toward_reply(self, character_store):
        client = MockLLMClient(responses=["I'm so happy! This is wonderful, I love it!"])
        agent = CharacterAgent(client, character_store)
        agent.load_character("morty-c137")

        response = agent.process_request(make_request(character_id="morty-c137"))

        mood = response.character.current_mood
        assert mood.joy > 0
        assert mood.fear == pytest.approx(0.6 * 0.7)

    def test_short_term_memory_capped(self, agent):
        agent.load_character("rick-c137")
        for _ in range(SHORT_TERM_LIMIT + 5):
            agent.process_request(make_request())

        short_term = [
            m for m in agent.get_character("rick-c137").memories
            if m.type == MemoryType.SHORT_TERM
        ]
        assert len(short_term) == SHORT_TERM_LIMIT

    def test_evolved_character_saved(self, agent, character_store):
        agent.load_character("rick-c137")
        agent.process_request(make_request())
        assert len(character_store.load_character("rick-c137").memories) == 1

    def test_save_failure_does_not_fail_reply(self, mock_client, rick):
        store = MagicMock()
        store.save_character.side_effect = StorageError("Cannot write character rick-c137")
        agent = CharacterAgent(mock_client, store)
        agent.create_character(rick)

        response = agent.process_request(make_request())
        assert response.content == "Wubba lubba dub dub!"


class TestAnalyzeEmotions:

    def test_neutral_text(self):
        assert analyze_emotions("The portal gun is in the garage.").dominant == "Neutral"

    @pytest.mark.parametrize("text,mood", [
        ("Haha, I'm so glad and happy!", "Joy"),
        ("I hate this, you idiot. I'm furious.", "Anger"),
        ("I'm scared and worried, this is danger!", "Fear"),
        ("Ugh, gross. Disgusting.", "Disgust"),
    ])
    def test_dominant_cue(self, text, mood):
        assert analyze_emotions(text).dominant == mood

    def test_scores_capped(self):
        text = "happy happy glad love great wonderful yay haha delight"
        assert analyze_emotions(text).joy == 1.0
