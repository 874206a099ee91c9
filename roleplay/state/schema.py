"""
Pydantic models for characters and chat sessions.

Designed to serialize to JSON in the same shape as the on-disk character
and session files.
"""

from datetime import datetime
from enum import Enum
from typing import Literal
from pydantic import BaseModel, Field, field_validator


# -----------------------------------------------------------------------------
# Character
# -----------------------------------------------------------------------------

MOOD_THRESHOLD = 0.2

MOOD_ICONS = {
    "Joy": "😊",
    "Surprise": "😲",
    "Anger": "😠",
    "Fear": "😨",
    "Sadness": "😢",
    "Disgust": "🤢",
    "Neutral": "😐",
}


def mood_icon(mood: str) -> str:
    return MOOD_ICONS.get(mood, "🤔")


class PersonalityTraits(BaseModel):
    """OCEAN traits, each in [0, 1]."""
    openness: float = 0.5
    conscientiousness: float = 0.5
    extraversion: float = 0.5
    agreeableness: float = 0.5
    neuroticism: float = 0.5

    @field_validator("*")
    @classmethod
    def clamp(cls, v: float) -> float:
        return max(0.0, min(1.0, v))


class EmotionalState(BaseModel):
    """Six mood intensities. Never negative."""
    joy: float = Field(default=0.0, ge=0.0)
    surprise: float = Field(default=0.0, ge=0.0)
    anger: float = Field(default=0.0, ge=0.0)
    fear: float = Field(default=0.0, ge=0.0)
    sadness: float = Field(default=0.0, ge=0.0)
    disgust: float = Field(default=0.0, ge=0.0)

    def as_dict(self) -> dict[str, float]:
        """Capitalized mood name -> intensity, in display order."""
        return {
            "Joy": self.joy,
            "Surprise": self.surprise,
            "Anger": self.anger,
            "Fear": self.fear,
            "Sadness": self.sadness,
            "Disgust": self.disgust,
        }

    @property
    def dominant(self) -> str:
        """
        Strongest mood, or "Neutral" when nothing reaches the threshold.

        Ties go to the earlier mood in display order.
        """
        name, value = "Neutral", 0.0
        for mood, intensity in self.as_dict().items():
            if intensity > value:
                name, value = mood, intensity
        if value < MOOD_THRESHOLD:
            return "Neutral"
        return name

    @property
    def icon(self) -> str:
        return mood_icon(self.dominant)

    def blend(self, other: "EmotionalState", rate: float) -> "EmotionalState":
        """Move toward another state by `rate` (0 keeps self, 1 becomes other)."""
        return EmotionalState(**{
            k: getattr(self, k) * (1 - rate) + getattr(other, k) * rate
            for k in EmotionalState.model_fields
        })


class MemoryType(str, Enum):
    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"


class Memory(BaseModel):
    type: MemoryType = MemoryType.SHORT_TERM
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    emotional_weight: float = 0.0


class Character(BaseModel):
    """A complete character profile."""
    id: str
    name: str
    backstory: str = ""
    personality: PersonalityTraits = Field(default_factory=PersonalityTraits)
    current_mood: EmotionalState = Field(default_factory=EmotionalState)
    quirks: list[str] = Field(default_factory=list)
    speech_style: str = ""
    memories: list[Memory] = Field(default_factory=list)
    last_modified: datetime = Field(default_factory=datetime.now)

    @property
    def label(self) -> str:
        return f"{self.name} ({self.id})"

    def info(self) -> "CharacterInfo":
        return CharacterInfo(
            id=self.id,
            name=self.name,
            description=self.backstory,
            tags=list(self.quirks),
            speech_style=self.speech_style,
        )


class CharacterInfo(BaseModel):
    """Catalog entry. Only id and name take part in resolution."""
    id: str
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    speech_style: str = ""

    @property
    def label(self) -> str:
        return f"{self.name} ({self.id})"


# -----------------------------------------------------------------------------
# Conversation
# -----------------------------------------------------------------------------

Role = Literal["user", "character"]


class Message(BaseModel):
    """One turn in a conversation."""
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)


class ConversationContext(BaseModel):
    session_id: str
    start_time: datetime = Field(default_factory=datetime.now)
    recent_messages: list[Message] = Field(default_factory=list)


class CacheMetrics(BaseModel):
    """Per-response cache outcome."""
    hit: bool = False
    saved_tokens: int = 0


class ConversationRequest(BaseModel):
    character_id: str
    user_id: str
    message: str
    scenario_id: str | None = None
    context: ConversationContext


class ConversationResponse(BaseModel):
    content: str
    cache_metrics: CacheMetrics = Field(default_factory=CacheMetrics)
    # Character after the reply (mood may have moved)
    character: Character | None = None


# -----------------------------------------------------------------------------
# Session persistence
# -----------------------------------------------------------------------------

class SessionMetrics(BaseModel):
    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    tokens_saved: int = 0
    hit_rate: float = 0.0


class SessionRecord(BaseModel):
    """A session as written to disk."""
    id: str
    character_id: str
    user_id: str
    start_time: datetime = Field(default_factory=datetime.now)
    last_activity: datetime = Field(default_factory=datetime.now)
    messages: list[Message] = Field(default_factory=list)
    cache_metrics: SessionMetrics = Field(default_factory=SessionMetrics)
