"""
Session controller.

Owns every piece of mutable chat state and is the only thing that changes
it. The UI feeds it events (resize, keys, ticks, finished background
work); each call to handle() updates the state and may hand back one
BackgroundTask for the UI to run off-thread. A task's result comes back
as another event.

Phases:
    UNINITIALIZED --first resize--> READY
    READY --chat message--> AWAITING_RESPONSE --ResponseReceived--> READY
    READY --/list, /switch--> AWAITING_COMMAND --CommandCompleted--> READY

Input is ignored outside READY, so at most one backend call is in flight.
Every task is tagged with the session id it was started for; completions
for any other session are dropped.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, TYPE_CHECKING, Union

from ..errors import RoleplayError
from ..state.schema import (
    Character,
    ConversationContext,
    ConversationRequest,
    ConversationResponse,
    Message,
    SessionMetrics,
    SessionRecord,
)
from ..state.store import CharacterStore
from .command_registry import CommandKind, CommandRegistry, ParsedCommand, get_registry
from .commands import (
    CommandResult,
    list_characters,
    mood_payload,
    personality_payload,
    session_payload,
    stats_payload,
    switch_character,
)
from .display import SPINNER_FRAMES, hit_rate
from .history import CommandHistory

if TYPE_CHECKING:
    from ..agent import CharacterAgent
    from ..state.persistence import SessionPersister

logger = logging.getLogger(__name__)

CONTEXT_WINDOW = 10

# Rows taken by everything except the message pane
HEADER_HEIGHT = 3
STATUS_HEIGHT = 1
HELP_HEIGHT = 1
INPUT_HEIGHT = 3
BORDER_HEIGHT = 2
MIN_MESSAGES_HEIGHT = 5


def new_session_id() -> str:
    return f"session-{datetime.now():%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}"


# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

class Phase(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    AWAITING_RESPONSE = "awaiting_response"
    AWAITING_COMMAND = "awaiting_command"


class Focus(str, Enum):
    INPUT = "input"
    MESSAGES = "messages"


@dataclass
class Layout:
    width: int
    height: int
    messages_height: int

    @classmethod
    def for_size(cls, width: int, height: int) -> "Layout":
        margins = HEADER_HEIGHT + STATUS_HEIGHT + HELP_HEIGHT + INPUT_HEIGHT + BORDER_HEIGHT
        return cls(width, height, max(MIN_MESSAGES_HEIGHT, height - margins))


@dataclass
class TranscriptEntry:
    """A line in the visible chat. Only user/character entries are conversation turns."""
    kind: str  # user | character | system | info | error | help | list | stats
    content: str
    speaker: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class Metrics:
    total_requests: int = 0
    cache_hits: int = 0
    last_tokens_saved: int = 0

    @property
    def cache_misses(self) -> int:
        return self.total_requests - self.cache_hits

    @property
    def hit_rate(self) -> float:
        return hit_rate(self.total_requests, self.cache_hits)


@dataclass
class SessionState:
    """The session aggregate. Mutated only by SessionController.handle()."""
    character_id: str
    user_id: str
    session_id: str
    context: ConversationContext
    character: Character | None = None
    messages: list[Message] = field(default_factory=list)
    transcript: list[TranscriptEntry] = field(default_factory=list)
    metrics: Metrics = field(default_factory=Metrics)
    phase: Phase = Phase.UNINITIALIZED
    focus: Focus = Focus.INPUT
    processing: bool = False
    draft: str = ""
    pending_message: str = ""
    status_error: str = ""
    layout: Layout | None = None
    spinner_frame: int = 0
    should_quit: bool = False

    @property
    def character_name(self) -> str:
        return self.character.name if self.character else self.character_id

    @property
    def busy(self) -> bool:
        return self.phase in (Phase.AWAITING_RESPONSE, Phase.AWAITING_COMMAND)

    @property
    def spinner(self) -> str:
        return SPINNER_FRAMES[self.spinner_frame % len(SPINNER_FRAMES)]


# -----------------------------------------------------------------------------
# Events
# -----------------------------------------------------------------------------

@dataclass
class Resize:
    width: int
    height: int


@dataclass
class KeyPress:
    key: str


@dataclass
class DraftChanged:
    text: str


@dataclass
class Tick:
    pass


@dataclass
class CharacterLoaded:
    session_id: str
    character: Character | None = None
    error: str = ""


@dataclass
class ResponseReceived:
    session_id: str
    response: ConversationResponse | None = None
    error: str = ""


@dataclass
class CommandCompleted:
    session_id: str
    result: CommandResult


Event = Union[
    Resize, KeyPress, DraftChanged, Tick, CharacterLoaded, ResponseReceived, CommandCompleted
]


@dataclass
class BackgroundTask:
    """
    Work for the UI to run off-thread.

    run() never raises: failures come back inside the completion event.
    """
    name: str
    session_id: str
    run: Callable[[], Event]


QUIT_KEYS = ("ctrl+c", "ctrl+q")


# -----------------------------------------------------------------------------
# Controller
# -----------------------------------------------------------------------------

class SessionController:
    """Event loop core for one chat window."""

    def __init__(
        self,
        agent: "CharacterAgent",
        store: CharacterStore,
        character_id: str,
        user_id: str,
        persister: "SessionPersister | None" = None,
        registry: CommandRegistry | None = None,
        history: CommandHistory | None = None,
        resume: SessionRecord | None = None,
        session_id: str | None = None,
        scenario_id: str | None = None,
    ):
        self.agent = agent
        self.store = store
        self.persister = persister
        self.registry = registry or get_registry()
        self.history = history or CommandHistory()
        self.scenario_id = scenario_id

        if resume is not None:
            self.state = self._state_from_record(resume, user_id)
        else:
            session_id = session_id or new_session_id()
            self.state = SessionState(
                character_id=character_id,
                user_id=user_id,
                session_id=session_id,
                context=ConversationContext(session_id=session_id),
            )

    def _state_from_record(self, record: SessionRecord, user_id: str) -> SessionState:
        metrics = Metrics(
            total_requests=record.cache_metrics.total_requests,
            cache_hits=record.cache_metrics.cache_hits,
            last_tokens_saved=record.cache_metrics.tokens_saved,
        )
        state = SessionState(
            character_id=record.character_id,
            user_id=user_id or record.user_id,
            session_id=record.id,
            context=ConversationContext(
                session_id=record.id,
                start_time=record.start_time,
                recent_messages=list(record.messages[-CONTEXT_WINDOW:]),
            ),
            messages=list(record.messages),
            metrics=metrics,
        )
        for msg in record.messages:
            speaker = state.user_id if msg.role == "user" else record.character_id
            state.transcript.append(TranscriptEntry(msg.role, msg.content, speaker, msg.timestamp))
        logger.info("Resuming session %s (%d messages)", record.id, len(record.messages))
        return state

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def start(self) -> BackgroundTask:
        """Initial task: load the active character."""
        return self._load_character_task(self.state.character_id)

    def handle(self, event: Event) -> tuple[SessionState, BackgroundTask | None]:
        """Apply one event. Returns the state and at most one task to run."""
        if isinstance(event, Resize):
            task = self._on_resize(event)
        elif isinstance(event, KeyPress):
            task = self._on_key(event.key)
        elif isinstance(event, DraftChanged):
            self.state.draft = event.text
            task = None
        elif isinstance(event, Tick):
            task = self._on_tick()
        elif isinstance(event, CharacterLoaded):
            task = self._on_character_loaded(event)
        elif isinstance(event, ResponseReceived):
            task = self._on_response(event)
        elif isinstance(event, CommandCompleted):
            task = self._on_command_completed(event)
        else:
            logger.warning("Ignoring unknown event %r", event)
            task = None
        return self.state, task

    # -------------------------------------------------------------------------
    # UI events
    # -------------------------------------------------------------------------

    def _on_resize(self, event: Resize) -> None:
        self.state.layout = Layout.for_size(event.width, event.height)
        if self.state.phase == Phase.UNINITIALIZED:
            self.state.phase = Phase.READY
            self.state.focus = Focus.INPUT
        return None

    def _on_tick(self) -> None:
        if self.state.busy:
            self.state.spinner_frame = (self.state.spinner_frame + 1) % len(SPINNER_FRAMES)
        return None

    def _on_key(self, key: str) -> BackgroundTask | None:
        state = self.state

        if key in QUIT_KEYS:
            self._quit()
            return None

        if key == "tab":
            state.focus = Focus.MESSAGES if state.focus == Focus.INPUT else Focus.INPUT
            return None

        # History and submission only apply to the input box, and never mid-request
        if state.focus != Focus.INPUT or state.processing:
            return None

        if key == "up":
            entry = self.history.previous(state.draft)
            if entry is not None:
                state.draft = entry
            return None

        if key == "down":
            entry = self.history.next()
            if entry is not None:
                state.draft = entry
            return None

        if key == "enter":
            return self._submit()

        return None

    def _submit(self) -> BackgroundTask | None:
        state = self.state
        if state.phase != Phase.READY:
            return None

        text = state.draft.strip()
        if not text:
            return None

        self.history.append(text)
        state.draft = ""

        if text.startswith("/"):
            return self._run_command(self.registry.parse(text))
        return self._send_message(text)

    # -------------------------------------------------------------------------
    # Chat messages
    # -------------------------------------------------------------------------

    def _send_message(self, text: str) -> BackgroundTask:
        state = self.state
        state.transcript.append(TranscriptEntry("user", text, state.user_id))
        state.pending_message = text
        state.processing = True
        state.status_error = ""
        state.metrics.total_requests += 1
        state.phase = Phase.AWAITING_RESPONSE

        request = ConversationRequest(
            character_id=state.character_id,
            user_id=state.user_id,
            message=text,
            scenario_id=self.scenario_id,
            context=state.context.model_copy(deep=True),
        )
        session_id = state.session_id
        agent = self.agent

        def run() -> ResponseReceived:
            try:
                return ResponseReceived(session_id, response=agent.process_request(request))
            except RoleplayError as e:
                return ResponseReceived(session_id, error=str(e))
            except Exception as e:
                logger.exception("Response task failed")
                return ResponseReceived(session_id, error=f"Unexpected error: {e}")

        return BackgroundTask("response", session_id, run)

    def _on_response(self, event: ResponseReceived) -> None:
        state = self.state
        if self._is_stale(event.session_id, "response"):
            return None
        if state.phase != Phase.AWAITING_RESPONSE:
            logger.debug("Dropping response with no request pending")
            return None

        state.processing = False
        state.phase = Phase.READY

        if event.response is None:
            state.pending_message = ""
            state.status_error = event.error or "Request failed"
            logger.warning("Backend error: %s", state.status_error)
            return None

        response = event.response
        state.transcript.append(
            TranscriptEntry("character", response.content, state.character_name)
        )
        if response.cache_metrics.hit:
            state.metrics.cache_hits += 1
        state.metrics.last_tokens_saved = response.cache_metrics.saved_tokens
        if response.character is not None:
            state.character = response.character

        self._record_turn(Message(role="user", content=state.pending_message))
        self._record_turn(Message(role="character", content=response.content))

        self._persist()
        return None

    def _record_turn(self, message: Message) -> None:
        state = self.state
        state.messages.append(message)
        recent = state.context.recent_messages + [message]
        state.context.recent_messages = recent[-CONTEXT_WINDOW:]

    # -------------------------------------------------------------------------
    # Slash commands
    # -------------------------------------------------------------------------

    def _run_command(self, parsed: ParsedCommand) -> BackgroundTask | None:
        state = self.state
        kind = parsed.kind

        if kind == CommandKind.QUIT:
            self._quit()
            return None
        if kind == CommandKind.ERROR:
            self._notice("error", parsed.error)
            return None
        if kind == CommandKind.HELP:
            self._notice("help", self.registry.help_text())
            return None
        if kind == CommandKind.CLEAR:
            self._clear()
            return None
        if kind == CommandKind.STATS:
            m = state.metrics
            self._notice("stats", stats_payload(m.total_requests, m.cache_hits, m.last_tokens_saved))
            return None
        if kind == CommandKind.MOOD:
            self._show(mood_payload(state.character))
            return None
        if kind == CommandKind.PERSONALITY:
            self._show(personality_payload(state.character))
            return None
        if kind == CommandKind.SESSION:
            self._notice("info", session_payload(
                state.session_id,
                state.character_id,
                state.character,
                state.user_id,
                len(state.messages),
                state.context.start_time,
            ))
            return None
        if kind == CommandKind.LIST:
            return self._command_task(
                "list", lambda agent, store, current: list_characters(agent, store, current)
            )
        if kind == CommandKind.SWITCH:
            query = parsed.arg
            return self._command_task(
                "switch",
                lambda agent, store, current: switch_character(agent, store, query, current),
            )

        logger.warning("Unhandled command kind %s", kind)
        self._notice("error", f"Unknown command: {parsed.name}\nType /help for available commands")
        return None

    def _command_task(
        self,
        name: str,
        job: Callable[["CharacterAgent", CharacterStore, str], CommandResult],
    ) -> BackgroundTask:
        state = self.state
        state.phase = Phase.AWAITING_COMMAND
        session_id = state.session_id
        current_id = state.character_id
        agent, store = self.agent, self.store

        def run() -> CommandCompleted:
            try:
                result = job(agent, store, current_id)
            except RoleplayError as e:
                result = CommandResult(CommandKind.ERROR, str(e))
            except Exception as e:
                logger.exception("Command task %s failed", name)
                result = CommandResult(CommandKind.ERROR, f"Unexpected error: {e}")
            return CommandCompleted(session_id, result)

        return BackgroundTask(name, session_id, run)

    def _on_command_completed(self, event: CommandCompleted) -> None:
        state = self.state
        if self._is_stale(event.session_id, "command result"):
            return None
        if state.phase != Phase.AWAITING_COMMAND:
            logger.debug("Dropping command result with no command pending")
            return None

        state.phase = Phase.READY
        result = event.result

        if result.kind == CommandKind.SWITCH and result.character is not None:
            self._switch_to(result.character)
        elif result.kind == CommandKind.LIST:
            self._notice("list", result.content)
        elif result.kind == CommandKind.ERROR:
            self._notice("error", result.content)
        else:
            self._show(result)
        return None

    def _show(self, result: CommandResult) -> None:
        kind = "error" if result.kind == CommandKind.ERROR else "info"
        self._notice(kind, result.content)

    def _clear(self) -> None:
        state = self.state
        state.transcript.clear()
        state.messages.clear()
        state.context.recent_messages = []
        self._notice("system", "Chat history cleared")
        self._persist()

    def _switch_to(self, character: Character) -> None:
        state = self.state
        if character.id == state.character_id:
            self._notice("info", f"Already chatting with {character.name} ({character.id})")
            return

        # Old session goes to disk before anything is reset
        self._persist()

        old_session = state.session_id
        session_id = new_session_id()
        while session_id == old_session:
            session_id = new_session_id()

        state.character_id = character.id
        state.character = character
        state.session_id = session_id
        state.context = ConversationContext(session_id=session_id)
        state.messages = []
        state.metrics = Metrics()
        state.status_error = ""
        state.transcript.clear()
        self._notice("system", f"Switched to {character.name} ({character.id})")
        logger.info("Switched to %s, session %s -> %s", character.id, old_session, session_id)

    def _quit(self) -> None:
        self._persist()
        self.state.should_quit = True

    # -------------------------------------------------------------------------
    # Character loading
    # -------------------------------------------------------------------------

    def _load_character_task(self, character_id: str) -> BackgroundTask:
        session_id = self.state.session_id
        agent = self.agent

        def run() -> CharacterLoaded:
            try:
                return CharacterLoaded(session_id, character=agent.load_character(character_id))
            except RoleplayError as e:
                return CharacterLoaded(session_id, error=str(e))
            except Exception as e:
                logger.exception("Loading character %s failed", character_id)
                return CharacterLoaded(session_id, error=f"Unexpected error: {e}")

        return BackgroundTask("load-character", session_id, run)

    def _on_character_loaded(self, event: CharacterLoaded) -> None:
        if self._is_stale(event.session_id, "character"):
            return None
        if event.character is None:
            self.state.status_error = event.error
            self._notice("error", event.error)
            return None
        self.state.character = event.character
        return None

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _is_stale(self, session_id: str, what: str) -> bool:
        if session_id != self.state.session_id:
            logger.debug(
                "Discarding %s for old session %s (current %s)",
                what, session_id, self.state.session_id,
            )
            return True
        return False

    def _notice(self, kind: str, content: str) -> None:
        self.state.transcript.append(TranscriptEntry(kind, content))

    def build_record(self) -> SessionRecord:
        """Snapshot of the session for disk."""
        state = self.state
        m = state.metrics
        return SessionRecord(
            id=state.session_id,
            character_id=state.character_id,
            user_id=state.user_id,
            start_time=state.context.start_time,
            last_activity=datetime.now(),
            messages=[msg.model_copy() for msg in state.messages],
            cache_metrics=SessionMetrics(
                total_requests=m.total_requests,
                cache_hits=m.cache_hits,
                cache_misses=m.cache_misses,
                tokens_saved=m.last_tokens_saved,
                hit_rate=m.hit_rate / 100,
            ),
        )

    def _persist(self) -> None:
        """Fire-and-forget save of the current session."""
        if self.persister is None:
            return
        self.persister.persist(self.build_record())
