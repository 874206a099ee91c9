"""Small text derivations shared by the controller, commands and widgets."""

from ..state.schema import Character

SPINNER_FRAMES = ("⣾", "⣽", "⣻", "⢿", "⡿", "⣟", "⣯", "⣷")


def hit_rate(total_requests: int, cache_hits: int) -> float:
    """Cache hit percentage; 0.0 when nothing has been sent yet."""
    if total_requests <= 0:
        return 0.0
    return cache_hits / total_requests * 100


def format_hit_rate(total_requests: int, cache_hits: int) -> str:
    return f"{hit_rate(total_requests, cache_hits):.0f}%"


def short_session_id(session_id: str) -> str:
    if len(session_id) > 8:
        return session_id[:8] + "..."
    return session_id


def summarize_backstory(backstory: str) -> str:
    """First sentence if it is short, else the first 97 characters."""
    idx = backstory.find(".")
    if idx != -1 and idx < 100:
        return backstory[:idx + 1]
    if len(backstory) > 100:
        return backstory[:97] + "..."
    return backstory


def mood_label(character: Character | None) -> str:
    """Icon and dominant mood, e.g. "😊 Joy"."""
    if character is None:
        return "🤔 Unknown"
    mood = character.current_mood
    return f"{mood.icon} {mood.dominant}"


def personality_summary(character: Character) -> str:
    """Compact OCEAN line for the header."""
    p = character.personality
    return (
        f"O:{p.openness:.1f} C:{p.conscientiousness:.1f} E:{p.extraversion:.1f} "
        f"A:{p.agreeableness:.1f} N:{p.neuroticism:.1f}"
    )
