"""
Roleplay Textual TUI.

Header with the active character, scrolling transcript, input box and a
status bar. All chat logic lives in SessionController; this module only
turns Textual events into controller events and draws the state it
returns.
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.events import Key
from textual.widgets import Input, RichLog, Static

from ..agent import CharacterAgent
from ..errors import StorageError
from ..llm import BACKENDS, create_llm_client
from ..state.persistence import SessionPersister
from ..state.store import CHARACTER_SUFFIXES, JsonCharacterStore, JsonSessionStore
from .config import DEFAULT_DATA_DIR, load_config, resolve_data_dir, set_backend, set_model
from .controller import (
    BackgroundTask,
    DraftChanged,
    Event,
    Focus,
    KeyPress,
    Resize,
    SessionController,
    SessionState,
    Tick,
    TranscriptEntry,
)
from .display import format_hit_rate, mood_label, personality_summary, short_session_id
from .history import CommandHistory

logger = logging.getLogger(__name__)


class Theme:
    """Color theme constants."""
    BG = "#000000"
    BORDER = "#b3b3b3"
    TEXT = "#e5e5e5"
    ACCENT = "#5f8787"          # Muted cyan
    WARNING = "#af8700"         # Muted amber
    DANGER = "#870000"          # Rusted red
    DIM = "#5f5f87"             # Grey-blue
    FRIENDLY = "#5f875f"


ENTRY_STYLES = {
    "user": f"bold {Theme.ACCENT}",
    "character": f"bold {Theme.WARNING}",
    "system": f"italic {Theme.FRIENDLY}",
    "info": Theme.TEXT,
    "help": Theme.DIM,
    "list": Theme.TEXT,
    "stats": Theme.ACCENT,
    "error": f"bold {Theme.DANGER}",
}


def render_entry(entry: TranscriptEntry) -> Text:
    """One transcript entry as styled text."""
    style = ENTRY_STYLES.get(entry.kind, Theme.TEXT)
    text = Text()
    if entry.kind in ("user", "character"):
        text.append(entry.timestamp.strftime("%H:%M "), style=Theme.DIM)
        text.append(f"{entry.speaker}: ", style=style)
        text.append(entry.content, style=Theme.TEXT)
    elif entry.kind == "error":
        text.append("✗ ", style=style)
        text.append(entry.content, style=Theme.WARNING)
    else:
        text.append(entry.content, style=style)
    return text


# =============================================================================
# Widgets
# =============================================================================

class CommandInput(Input):
    """Input that hands history keys to the session controller."""

    def _on_key(self, event: Key) -> None:
        """Intercept keys before Input processes them."""
        if event.key in ("up", "down"):
            event.prevent_default()
            event.stop()
            self.app.feed(KeyPress(event.key))
            return
        super()._on_key(event)


class HeaderBar(Static):
    """Top header: character name, id, mood and OCEAN summary."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.state: SessionState | None = None

    def update_state(self, state: SessionState):
        self.state = state
        self.refresh_display()

    def refresh_display(self):
        header = Text()
        header.append("◈ ", style=f"bold {Theme.ACCENT}")
        header.append("ROLEPLAY", style=f"bold {Theme.ACCENT}")

        if self.state:
            character = self.state.character
            header.append("  •  ", style=Theme.DIM)
            header.append(self.state.character_name, style=f"bold {Theme.TEXT}")
            header.append(f" ({self.state.character_id})", style=Theme.DIM)
            if character:
                header.append("  •  ", style=Theme.DIM)
                header.append(mood_label(character), style=Theme.TEXT)
                header.append("\n")
                header.append(personality_summary(character), style=Theme.DIM)

        self.update(header)


class StatusBar(Static):
    """Session, model and cache metrics; backend errors replace the metrics."""

    def __init__(self, model_name: str = "", **kwargs):
        super().__init__(**kwargs)
        self.model_name = model_name
        self.state: SessionState | None = None

    def update_state(self, state: SessionState):
        self.state = state
        self.refresh_display()

    def refresh_display(self):
        state = self.state
        if state is None:
            return

        bar = Text()
        if state.busy:
            bar.append(f"{state.spinner} ", style=f"bold {Theme.ACCENT}")
            bar.append("Thinking...  ", style=Theme.ACCENT)

        if state.status_error:
            bar.append(f"Error: {state.status_error}", style=f"bold {Theme.DANGER}")
            self.update(bar)
            return

        m = state.metrics
        bar.append(f"Session {short_session_id(state.session_id)}", style=Theme.DIM)
        bar.append("  •  ", style=Theme.DIM)
        bar.append(self.model_name, style=Theme.TEXT)
        bar.append("  •  ", style=Theme.DIM)
        bar.append(f"Requests {m.total_requests}", style=Theme.TEXT)
        bar.append("  •  ", style=Theme.DIM)
        bar.append(f"Cache {format_hit_rate(m.total_requests, m.cache_hits)}", style=Theme.FRIENDLY)
        bar.append("  •  ", style=Theme.DIM)
        bar.append(f"Saved {m.last_tokens_saved} tok", style=Theme.TEXT)
        self.update(bar)


HELP_LINE = "Enter send  •  Tab switch focus  •  ↑/↓ history  •  /help commands  •  Ctrl+C quit"


# =============================================================================
# App
# =============================================================================

class RoleplayTUI(App):
    """Chat window for one character session."""

    CSS = f"""
    Screen {{
        background: {Theme.BG};
    }}

    #header {{
        height: 3;
        padding: 0 1;
        background: {Theme.BG};
        border-bottom: solid {Theme.DIM};
    }}

    #messages {{
        height: 1fr;
        background: {Theme.BG};
        border: round {Theme.DIM};
        padding: 0 1;
    }}

    #messages:focus {{
        border: round {Theme.ACCENT};
    }}

    #chat-input {{
        height: 3;
        background: {Theme.BG};
        border: round {Theme.BORDER};
    }}

    #chat-input:focus {{
        border: round {Theme.ACCENT};
    }}

    #status {{
        height: 1;
        padding: 0 1;
        background: {Theme.BG};
    }}

    #help-line {{
        height: 1;
        padding: 0 1;
        color: {Theme.DIM};
    }}
    """

    BINDINGS = [
        Binding("ctrl+c", "quit_session", "Quit", show=False, priority=True),
        Binding("ctrl+q", "quit_session", "Quit", show=False, priority=True),
        Binding("tab", "toggle_focus", "Focus", show=False, priority=True),
    ]

    TICK_INTERVAL = 0.1

    def __init__(self, controller: SessionController, model_name: str = ""):
        super().__init__()
        self.controller = controller
        self.model_name = model_name
        self._rendered = 0
        self._first_entry: TranscriptEntry | None = None

    def compose(self) -> ComposeResult:
        """Create the UI layout."""
        yield HeaderBar(id="header")
        yield RichLog(id="messages", wrap=True, markup=False)
        yield CommandInput(placeholder="Type a message or /help", id="chat-input")
        yield StatusBar(model_name=self.model_name, id="status")
        yield Static(HELP_LINE, id="help-line")

    def on_mount(self):
        """Load the character and start the spinner clock."""
        self.set_interval(self.TICK_INTERVAL, self._tick)
        self._run_task(self.controller.start())
        self.query_one("#chat-input", CommandInput).focus()
        self.feed(Resize(self.size.width, self.size.height))

    # -------------------------------------------------------------------------
    # Textual -> controller
    # -------------------------------------------------------------------------

    def on_resize(self, event) -> None:
        self.feed(Resize(event.size.width, event.size.height))

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.value != self.controller.state.draft:
            self.feed(DraftChanged(event.value))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.feed(DraftChanged(event.value))
        self.feed(KeyPress("enter"))

    def action_toggle_focus(self) -> None:
        self.feed(KeyPress("tab"))

    def action_quit_session(self) -> None:
        self.feed(KeyPress("ctrl+c"))

    def _tick(self) -> None:
        if self.controller.state.busy:
            self.feed(Tick())

    def feed(self, event: Event) -> None:
        """Feed one event to the controller, redraw, and start any task."""
        state, task = self.controller.handle(event)
        self.refresh_view(state)
        if task is not None:
            self._run_task(task)
        if state.should_quit:
            self.exit()

    @work(thread=True)
    def _run_task(self, task: BackgroundTask) -> None:
        """Run controller work off the UI thread and post the result back."""
        logger.debug("Running %s task for %s", task.name, task.session_id)
        completion = task.run()
        self.call_from_thread(self.feed, completion)

    # -------------------------------------------------------------------------
    # Controller -> Textual
    # -------------------------------------------------------------------------

    def refresh_view(self, state: SessionState) -> None:
        self.query_one("#header", HeaderBar).update_state(state)
        self.query_one("#status", StatusBar).update_state(state)
        self._sync_transcript(state)
        self._sync_input(state)

    def _sync_transcript(self, state: SessionState) -> None:
        log = self.query_one("#messages", RichLog)
        transcript = state.transcript
        first = transcript[0] if transcript else None

        # Cleared or replaced (clear, switch): redraw from scratch
        if first is not self._first_entry or len(transcript) < self._rendered:
            log.clear()
            self._rendered = 0
            self._first_entry = first

        for entry in transcript[self._rendered:]:
            log.write(render_entry(entry))
        self._rendered = len(transcript)

    def _sync_input(self, state: SessionState) -> None:
        cmd_input = self.query_one("#chat-input", CommandInput)
        if cmd_input.value != state.draft:
            cmd_input.value = state.draft
            cmd_input.cursor_position = len(state.draft)

        log = self.query_one("#messages", RichLog)
        if state.focus == Focus.MESSAGES and not log.has_focus:
            log.focus()
        elif state.focus == Focus.INPUT and not cmd_input.has_focus:
            cmd_input.focus()


# =============================================================================
# Entry point
# =============================================================================

def setup_logging(data_dir: Path, level: str) -> None:
    """Log to a file; the terminal belongs to the TUI."""
    data_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=data_dir / "roleplay.log",
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """Entry point for the roleplay TUI."""
    parser = argparse.ArgumentParser(description="Interactive chat with an AI character")
    parser.add_argument("--character", "-c", required=True,
                        help="Character ID, or a .json/.yaml character file to import")
    parser.add_argument("--user", "-u", help="User ID for the conversation")
    parser.add_argument("--session", "-s", help="Session ID to resume or create")
    parser.add_argument("--new-session", action="store_true",
                        help="Start a new session instead of resuming the latest")
    parser.add_argument("--data-dir", help="Directory holding characters/ and sessions/")
    parser.add_argument("--backend", choices=BACKENDS + ("auto",), help="LLM backend")
    parser.add_argument("--model", help="Model name for the backend")
    parser.add_argument("--remember", action="store_true",
                        help=f"Save --backend/--model as defaults in {DEFAULT_DATA_DIR}/config.json")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    config_dir = DEFAULT_DATA_DIR
    config = load_config(config_dir)
    data_dir = resolve_data_dir(config, args.data_dir)
    setup_logging(data_dir, "DEBUG" if args.debug else config["log_level"])

    user_id = args.user or config.get("default_user")
    if not user_id:
        parser.error("--user is required (or set default_user in config.json)")

    if args.remember:
        if args.backend:
            set_backend(args.backend, config_dir)
        if args.model:
            set_model(args.model, config_dir)

    character_store = JsonCharacterStore(data_dir / "characters")
    session_store = JsonSessionStore(data_dir / "sessions")

    character_id = args.character
    character_path = Path(args.character)
    if character_path.suffix in CHARACTER_SUFFIXES and character_path.exists():
        try:
            character_id = character_store.import_file(character_path).id
        except StorageError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    backend, client = create_llm_client(args.backend or config["backend"], args.model or config["model"])
    if client is None:
        print(f"Warning: {backend} backend unavailable; messages will fail", file=sys.stderr)
    agent = CharacterAgent(client, character_store)

    resume = None
    try:
        if args.session:
            resume = session_store.load(character_id, args.session)
        elif not args.new_session:
            resume = session_store.latest(character_id)
    except StorageError as e:
        logger.warning("Not resuming: %s", e)

    persister = SessionPersister(session_store)
    controller = SessionController(
        agent,
        character_store,
        character_id,
        user_id,
        persister=persister,
        history=CommandHistory(max_size=config["history_max"]),
        resume=resume,
        session_id=args.session,
    )

    app = RoleplayTUI(controller, model_name=agent.model_name)
    try:
        app.run()
    finally:
        persister.shutdown(wait=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
