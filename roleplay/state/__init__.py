"""Character and session state."""

from .schema import (
    CacheMetrics,
    Character,
    CharacterInfo,
    ConversationContext,
    ConversationRequest,
    ConversationResponse,
    EmotionalState,
    Memory,
    MemoryType,
    Message,
    PersonalityTraits,
    SessionMetrics,
    SessionRecord,
    mood_icon,
)
from .store import (
    CharacterStore,
    JsonCharacterStore,
    JsonSessionStore,
    MemoryCharacterStore,
    MemorySessionStore,
    SessionStore,
    read_character_file,
)
from .persistence import SessionPersister

__all__ = [
    "CacheMetrics",
    "Character",
    "CharacterInfo",
    "ConversationContext",
    "ConversationRequest",
    "ConversationResponse",
    "EmotionalState",
    "Memory",
    "MemoryType",
    "Message",
    "PersonalityTraits",
    "SessionMetrics",
    "SessionRecord",
    "mood_icon",
    "CharacterStore",
    "JsonCharacterStore",
    "JsonSessionStore",
    "MemoryCharacterStore",
    "MemorySessionStore",
    "SessionStore",
    "read_character_file",
    "SessionPersister",
]
