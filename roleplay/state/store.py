"""
Character and session storage.

Separates persistence from the session controller for testability.
"""

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

import yaml
from pydantic import ValidationError

from ..errors import CharacterNotFoundError, StorageError
from .schema import Character, CharacterInfo, SessionRecord

logger = logging.getLogger(__name__)

CHARACTER_SUFFIXES = (".json", ".yaml", ".yml")


def _ensure_dir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(f"Cannot create directory {path}", e) from e
    return path


def read_character_file(path: Path | str) -> Character:
    """Parse a character from a JSON or YAML file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Cannot read character file {path}", e) from e

    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
        return Character.model_validate(data)
    except (json.JSONDecodeError, yaml.YAMLError, ValidationError) as e:
        raise StorageError(f"Invalid character file {path.name}", e) from e


# -----------------------------------------------------------------------------
# Characters
# -----------------------------------------------------------------------------

@runtime_checkable
class CharacterStore(Protocol):
    """
    Character catalog.

    Implementations:
    - JsonCharacterStore: one file per character (production)
    - MemoryCharacterStore: in-memory storage (testing)
    """

    def save_character(self, character: Character) -> None:
        """Persist a character."""
        ...

    def load_character(self, character_id: str) -> Character:
        """Load a character. Raises CharacterNotFoundError if missing."""
        ...

    def list_characters(self) -> list[str]:
        """All known character ids."""
        ...

    def get_character_info(self) -> list[CharacterInfo]:
        """Catalog entries for every readable character."""
        ...


class JsonCharacterStore:
    """
    File-based character storage.

    Characters are written as JSON. Hand-authored YAML files
    (`<id>.yaml` / `<id>.yml`) in the same directory are read too.
    """

    def __init__(self, characters_dir: Path | str):
        self.characters_dir = Path(characters_dir)

    def _files(self) -> list[Path]:
        if not self.characters_dir.exists():
            return []
        try:
            return sorted(
                f for f in self.characters_dir.iterdir()
                if f.suffix in CHARACTER_SUFFIXES and not f.name.startswith(".")
            )
        except OSError as e:
            raise StorageError(f"Cannot read {self.characters_dir}", e) from e

    def _path_for(self, character_id: str) -> Path | None:
        for suffix in CHARACTER_SUFFIXES:
            candidate = self.characters_dir / f"{character_id}{suffix}"
            if candidate.exists():
                return candidate
        return None

    def save_character(self, character: Character) -> None:
        _ensure_dir(self.characters_dir)
        path = self.characters_dir / f"{character.id}.json"
        try:
            path.write_text(character.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write character {character.id}", e) from e

    def load_character(self, character_id: str) -> Character:
        path = self._path_for(character_id)
        if path is None:
            raise CharacterNotFoundError(character_id)
        return read_character_file(path)

    def list_characters(self) -> list[str]:
        seen: list[str] = []
        for f in self._files():
            if f.stem not in seen:
                seen.append(f.stem)
        return seen

    def get_character_info(self) -> list[CharacterInfo]:
        infos = []
        for character_id in self.list_characters():
            try:
                infos.append(self.load_character(character_id).info())
            except StorageError as e:
                # One broken file shouldn't hide the rest of the catalog
                logger.warning("Skipping character %s: %s", character_id, e)
        return infos

    def import_file(self, path: Path | str) -> Character:
        """Copy a character definition file into the store."""
        character = read_character_file(path)
        self.save_character(character)
        logger.info("Imported character %s from %s", character.id, path)
        return character


class MemoryCharacterStore:
    """In-memory character storage for testing."""

    def __init__(self, characters: list[Character] | None = None):
        self.characters: dict[str, Character] = {}
        for character in characters or []:
            self.save_character(character)

    def save_character(self, character: Character) -> None:
        self.characters[character.id] = character

    def load_character(self, character_id: str) -> Character:
        if character_id not in self.characters:
            raise CharacterNotFoundError(character_id)
        return self.characters[character_id].model_copy(deep=True)

    def list_characters(self) -> list[str]:
        return list(self.characters)

    def get_character_info(self) -> list[CharacterInfo]:
        return [c.info() for c in self.characters.values()]


# -----------------------------------------------------------------------------
# Sessions
# -----------------------------------------------------------------------------

@runtime_checkable
class SessionStore(Protocol):
    """
    Session persistence.

    Implementations:
    - JsonSessionStore: sessions/<character_id>/<session_id>.json
    - MemorySessionStore: in-memory storage (testing)
    """

    def save(self, record: SessionRecord) -> None:
        ...

    def load(self, character_id: str, session_id: str) -> SessionRecord | None:
        ...

    def list_sessions(self, character_id: str) -> list[SessionRecord]:
        """Sessions for a character, most recent activity first."""
        ...

    def latest(self, character_id: str) -> SessionRecord | None:
        ...


class JsonSessionStore:
    """File-based session storage, one directory per character."""

    def __init__(self, sessions_dir: Path | str):
        self.sessions_dir = Path(sessions_dir)

    def _session_file(self, character_id: str, session_id: str) -> Path:
        return self.sessions_dir / character_id / f"{session_id}.json"

    def save(self, record: SessionRecord) -> None:
        character_dir = _ensure_dir(self.sessions_dir / record.character_id)
        session_file = character_dir / f"{record.id}.json"
        try:
            session_file.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write session {record.id}", e) from e

    def load(self, character_id: str, session_id: str) -> SessionRecord | None:
        session_file = self._session_file(character_id, session_id)
        if not session_file.exists():
            return None
        try:
            return SessionRecord.model_validate_json(session_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            raise StorageError(f"Cannot read session {session_id}", e) from e

    def list_sessions(self, character_id: str) -> list[SessionRecord]:
        character_dir = self.sessions_dir / character_id
        if not character_dir.exists():
            return []

        records = []
        for f in character_dir.glob("*.json"):
            try:
                records.append(SessionRecord.model_validate_json(f.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError, ValidationError) as e:
                logger.warning("Skipping unreadable session file %s: %s", f, e)
                continue

        records.sort(key=lambda r: r.last_activity, reverse=True)
        return records

    def latest(self, character_id: str) -> SessionRecord | None:
        records = self.list_sessions(character_id)
        return records[0] if records else None


class MemorySessionStore:
    """In-memory session storage for testing."""

    def __init__(self):
        self.sessions: dict[tuple[str, str], SessionRecord] = {}

    def save(self, record: SessionRecord) -> None:
        self.sessions[(record.character_id, record.id)] = record

    def load(self, character_id: str, session_id: str) -> SessionRecord | None:
        return self.sessions.get((character_id, session_id))

    def list_sessions(self, character_id: str) -> list[SessionRecord]:
        records = [r for (cid, _), r in self.sessions.items() if cid == character_id]
        records.sort(key=lambda r: r.last_activity, reverse=True)
        return records

    def latest(self, character_id: str) -> SessionRecord | None:
        records = self.list_sessions(character_id)
        return records[0] if records else None

    def clear(self) -> None:
        """Clear all sessions (test utility)."""
        self.sessions.clear()
