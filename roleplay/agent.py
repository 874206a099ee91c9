"""
Character agent.

Holds the working set of loaded characters and turns a conversation
request into an LLM call:

1. Build a system prompt from the character profile and mood
2. Send the recent conversation plus the new user message
3. Drift the character's mood toward the tone of the reply
4. Report prompt-cache usage back to the caller
"""

import logging
import re
import threading
from datetime import datetime

from .errors import BackendError, CharacterNotFoundError, StorageError
from .llm.base import LLMClient, Message
from .state.schema import (
    CacheMetrics,
    Character,
    ConversationRequest,
    ConversationResponse,
    EmotionalState,
    Memory,
    MemoryType,
)
from .state.store import CharacterStore

logger = logging.getLogger(__name__)

CONTEXT_WINDOW = 10
MOOD_BLEND_RATE = 0.3
SHORT_TERM_LIMIT = 20

# Crude tone cues for mood drift. Each hit adds to that emotion's score.
EMOTION_CUES: dict[str, tuple[str, ...]] = {
    "joy": ("haha", "glad", "happy", "love", "great", "wonderful", "yay", "delight"),
    "surprise": ("wow", "whoa", "really?", "what?!", "unexpected", "amazing", "incredible"),
    "anger": ("damn", "furious", "angry", "hate", "stupid", "idiot", "shut up"),
    "fear": ("afraid", "scared", "terrified", "danger", "worried", "nervous"),
    "sadness": ("sad", "sorry", "miss", "lonely", "cry", "grief", "alone"),
    "disgust": ("gross", "disgusting", "ugh", "eww", "revolting", "nasty"),
}


def analyze_emotions(text: str) -> EmotionalState:
    """Estimate the emotional tone of a reply from keyword cues."""
    lowered = text.lower()
    tokens = re.findall(r"[a-z']+[?!]*", lowered)
    words = set(tokens) | {t.rstrip("?!") for t in tokens}
    scores = {}
    for emotion, cues in EMOTION_CUES.items():
        hits = sum(1 for cue in cues if cue in words or (" " in cue and cue in lowered))
        scores[emotion] = min(1.0, hits * 0.35)
    return EmotionalState(**scores)


class CharacterAgent:
    """
    Backend collaborator for the chat session.

    The working set is shared between the UI thread and worker threads,
    so every access goes through a lock.
    """

    def __init__(
        self,
        client: LLMClient | None,
        store: CharacterStore | None = None,
        context_window: int = CONTEXT_WINDOW,
    ):
        self.client = client
        self.store = store
        self.context_window = context_window
        self._characters: dict[str, Character] = {}
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self.client.model_name if self.client else "none"

    # -------------------------------------------------------------------------
    # Working set
    # -------------------------------------------------------------------------

    def get_character(self, character_id: str) -> Character:
        """Return a copy of a loaded character."""
        with self._lock:
            character = self._characters.get(character_id)
            if character is None:
                raise CharacterNotFoundError(character_id)
            return character.model_copy(deep=True)

    def create_character(self, character: Character) -> Character:
        """
        Register a character in the working set.

        Registering an id that is already loaded is a no-op and returns
        the loaded copy, so an evolved mood is never reset by a reload.
        """
        with self._lock:
            existing = self._characters.get(character.id)
            if existing is None:
                self._characters[character.id] = character.model_copy(deep=True)
                logger.debug("Registered character %s", character.id)
                existing = self._characters[character.id]
            return existing.model_copy(deep=True)

    def load_character(self, character_id: str) -> Character:
        """Get a character from the working set, loading it from the store if needed."""
        try:
            return self.get_character(character_id)
        except CharacterNotFoundError:
            if self.store is None:
                raise
        return self.create_character(self.store.load_character(character_id))

    # -------------------------------------------------------------------------
    # Conversation
    # -------------------------------------------------------------------------

    def build_system_prompt(self, character: Character) -> str:
        """Character profile as the system prompt."""
        p = character.personality
        mood = character.current_mood
        lines = [
            f"You are {character.name}. Stay in character at all times.",
            "",
            "[BACKSTORY]",
            character.backstory or "(none)",
            "",
            "[PERSONALITY]",
            f"- Openness: {p.openness:.2f}",
            f"- Conscientiousness: {p.conscientiousness:.2f}",
            f"- Extraversion: {p.extraversion:.2f}",
            f"- Agreeableness: {p.agreeableness:.2f}",
            f"- Neuroticism: {p.neuroticism:.2f}",
        ]
        if character.speech_style:
            lines += ["", "[SPEECH STYLE]", character.speech_style]
        if character.quirks:
            lines += ["", "[QUIRKS]"] + [f"- {q}" for q in character.quirks]

        patterns = [m.content for m in character.memories if m.type == MemoryType.MEDIUM_TERM]
        if patterns:
            lines += ["", "[LEARNED PATTERNS]"] + patterns

        lines += ["", "[EMOTIONAL STATE]"]
        lines += [f"- {name}: {value:.2f}" for name, value in mood.as_dict().items()]
        return "\n".join(lines)

    def _build_messages(self, request: ConversationRequest) -> list[Message]:
        recent = request.context.recent_messages[-self.context_window:]
        messages = [
            Message(role="user" if m.role == "user" else "assistant", content=m.content)
            for m in recent
        ]
        messages.append(Message(role="user", content=request.message))
        return messages

    def process_request(self, request: ConversationRequest) -> ConversationResponse:
        """
        Generate the character's reply.

        Raises:
            CharacterNotFoundError: character is neither loaded nor in the store
            BackendError: no client configured, or the LLM call failed
        """
        if self.client is None:
            raise BackendError("No LLM backend configured")

        character = self.load_character(request.character_id)
        system = self.build_system_prompt(character)

        try:
            response = self.client.chat(self._build_messages(request), system=system)
        except Exception as e:
            logger.error("LLM request failed for %s: %s", request.character_id, e)
            raise BackendError(f"Request failed: {e}") from e

        updated = self._evolve(request.character_id, response.content)
        logger.debug(
            "Reply for %s: %d tokens (%d cached)",
            request.character_id,
            response.usage.total_tokens,
            response.usage.cached_prompt_tokens,
        )

        return ConversationResponse(
            content=response.content,
            cache_metrics=CacheMetrics(
                hit=response.cache_hit,
                saved_tokens=response.usage.cached_prompt_tokens,
            ),
            character=updated,
        )

    def _evolve(self, character_id: str, reply: str) -> Character:
        """Blend mood toward the reply's tone and remember it."""
        emotions = analyze_emotions(reply)
        with self._lock:
            character = self._characters[character_id]
            character.current_mood = character.current_mood.blend(emotions, MOOD_BLEND_RATE)
            character.memories.append(Memory(
                type=MemoryType.SHORT_TERM,
                content=reply,
                emotional_weight=sum(emotions.as_dict().values()) / 6.0,
            ))
            short_term = [m for m in character.memories if m.type == MemoryType.SHORT_TERM]
            if len(short_term) > SHORT_TERM_LIMIT:
                oldest = short_term[0]
                character.memories.remove(oldest)
            character.last_modified = datetime.now()
            snapshot = character.model_copy(deep=True)

        if self.store is not None:
            try:
                self.store.save_character(snapshot)
            except StorageError as e:
                logger.warning("Could not save character %s: %s", character_id, e)
        return snapshot
