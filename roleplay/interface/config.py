"""
Chat client settings.

One JSON file, ~/.config/roleplay/config.json, holds the preferred LLM
backend and model, where character and session files live, the default
user name and a couple of UI knobs. It always sits in the default
directory, since the data directory is itself one of its settings.
"""

import json
import logging
from pathlib import Path
from typing import TypedDict

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".config" / "roleplay"


class Config(TypedDict, total=False):
    """Saved chat preferences. Missing keys fall back to DEFAULT_CONFIG."""
    backend: str  # claude | openrouter | mock | auto
    model: str | None  # None = the backend's own default
    data_dir: str  # Holds characters/, sessions/ and roleplay.log
    default_user: str | None  # Used when --user is omitted
    history_max: int  # Submitted lines kept for Up/Down
    log_level: str


DEFAULT_CONFIG: Config = {
    "backend": "auto",
    "model": None,
    "data_dir": str(DEFAULT_DATA_DIR),
    "default_user": None,
    "history_max": 100,
    "log_level": "INFO",
}


def get_config_path(config_dir: Path | str = DEFAULT_DATA_DIR) -> Path:
    return Path(config_dir) / "config.json"


def load_config(config_dir: Path | str = DEFAULT_DATA_DIR) -> Config:
    """Saved settings layered over DEFAULT_CONFIG. A bad file means defaults."""
    path = get_config_path(config_dir)
    config = DEFAULT_CONFIG.copy()
    if not path.exists():
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return config

    if not isinstance(saved, dict):
        logger.warning("Ignoring config %s: expected an object", path)
        return config

    config.update({k: v for k, v in saved.items() if k in DEFAULT_CONFIG})
    return config


def resolve_data_dir(config: Config, override: str | None = None) -> Path:
    """Data directory from --data-dir, else the config, with ~ expanded."""
    return Path(override or config["data_dir"]).expanduser()


def save_config(config: Config, config_dir: Path | str = DEFAULT_DATA_DIR) -> bool:
    """Write settings. Returns False (and logs) if the file can't be written."""
    path = get_config_path(config_dir)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        logger.warning("Could not save config %s: %s", path, e)
        return False


def set_backend(backend: str, config_dir: Path | str = DEFAULT_DATA_DIR) -> None:
    """Remember the backend chosen with --backend --remember."""
    config = load_config(config_dir)
    config["backend"] = backend
    save_config(config, config_dir)


def set_model(model: str | None, config_dir: Path | str = DEFAULT_DATA_DIR) -> None:
    """Remember the model chosen with --model --remember."""
    config = load_config(config_dir)
    config["model"] = model
    save_config(config, config_dir)
