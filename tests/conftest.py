"""
Pytest fixtures for roleplay tests.

Provides in-memory stores, mock LLM clients and a ready session controller.
"""

import pytest
from pathlib import Path

# Add repo root to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from roleplay.agent import CharacterAgent
from roleplay.interface.controller import Resize, SessionController
from roleplay.llm import MockLLMClient
from roleplay.state import (
    Character,
    EmotionalState,
    MemoryCharacterStore,
    MemorySessionStore,
    PersonalityTraits,
)


class RecordingPersister:
    """Stands in for SessionPersister; keeps every snapshot it is handed."""

    def __init__(self):
        self.records = []

    def persist(self, record):
        self.records.append(record.model_copy(deep=True))

    def shutdown(self, wait: bool = True):
        pass


@pytest.fixture
def rick():
    return Character(
        id="rick-c137",
        name="Rick Sanchez",
        backstory="The smartest man in the universe. Inventor of portal travel.",
        personality=PersonalityTraits(openness=1.0, agreeableness=0.2, neuroticism=0.7),
        current_mood=EmotionalState(anger=0.4, disgust=0.3),
        quirks=["Burps mid-sentence"],
        speech_style="Rambling, sarcastic",
    )


@pytest.fixture
def morty():
    return Character(
        id="morty-c137",
        name="Morty Smith",
        backstory="Rick's anxious grandson",
        current_mood=EmotionalState(fear=0.6),
    )


@pytest.fixture
def character_store(rick, morty):
    """In-memory catalog with two characters."""
    return MemoryCharacterStore([rick, morty])


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def mock_client():
    return MockLLMClient(responses=["Wubba lubba dub dub!"], cached_tokens=[0, 120])


@pytest.fixture
def agent(mock_client, character_store):
    return CharacterAgent(mock_client, character_store)


@pytest.fixture
def persister():
    return RecordingPersister()


@pytest.fixture
def controller(agent, character_store, persister, rick):
    """Controller for rick-c137 with the character loaded and layout ready."""
    ctrl = SessionController(agent, character_store, rick.id, "morty", persister=persister)
    run_task(ctrl, ctrl.start())
    ctrl.handle(Resize(120, 40))
    return ctrl


def run_task(controller, task):
    """Run a background task inline and feed its completion back."""
    assert task is not None
    return controller.handle(task.run())
