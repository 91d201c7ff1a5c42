from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from bihua.core.engine import (
    AnimationCompleted,
    EngineConfig,
    EngineEvent,
    LoadFailed,
    LoadSucceeded,
    MistakeOccurred,
    Mode,
    QuizCompleted,
    StrokeCorrect,
    StrokeEngine,
)
from bihua.core.vocabulary import CharacterEntry, VocabularyIndex

logger = logging.getLogger(__name__)

SEED_CHARACTER = "你"
SEED_LEVEL = 1

# Inclusive codepoint ranges accepted as learnable characters.
SUPPORTED_RANGES = (
    (0x4E00, 0x9FFF),  # CJK Unified Ideographs
    (0x3400, 0x4DBF),  # CJK Extension A
)

PLAY_LABEL = "Play Animation"
PLAYING_LABEL = "Playing..."
SHOW_HINT_LABEL = "Show Hint"
HIDE_HINT_LABEL = "Hide Hint"

CUSTOM_CHARACTER_MEANING = "(Custom character)"
DRAW_PROMPT = "Draw the character stroke by stroke"
INVALID_INPUT_MESSAGE = "Please enter a valid Chinese character"
LOAD_FAILED_MESSAGE = "Character stroke data not available"
ENGINE_ERROR_MESSAGE = "Error loading character"
OUTLINE_SHOWN_MESSAGE = "Outline shown - trace the character!"
OUTLINE_HIDDEN_MESSAGE = "Outline hidden"


class InvalidInputError(ValueError):
    """Raised when search text is empty or not in a supported script."""


class Severity(enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Feedback:
    message: str
    severity: Severity = Severity.INFO


@dataclass
class ControlState:
    """Enabled/label state of the animate and hint buttons."""

    animate_enabled: bool = True
    animate_label: str = PLAY_LABEL
    hint_enabled: bool = False
    hint_label: str = SHOW_HINT_LABEL


@dataclass
class SessionState:
    current_character: str = SEED_CHARACTER
    current_level: int = SEED_LEVEL
    mode: Mode = Mode.VIEW
    stroke_count: int = 0
    mistake_count: int = 0
    hint_visible: bool = False


@dataclass(frozen=True)
class QuizResult:
    """Outcome of one completed practice attempt."""

    character: str
    stroke_count: int
    mistakes: int
    accuracy: int


class SessionView(Protocol):
    """Presentation surface the controller drives; also the feedback sink."""

    def show_level(self, level: int, entries: List[CharacterEntry], current_character: str) -> None:
        ...

    def show_character(self, character: str, pronunciation: str, meaning: str) -> None:
        ...

    def show_stroke_count(self, count: Optional[int]) -> None:
        ...

    def show_feedback(self, feedback: Optional[Feedback]) -> None:
        ...

    def show_controls(self, controls: ControlState, mode: Mode) -> None:
        ...

    def clear_search(self) -> None:
        ...


def is_supported_character(character: str) -> bool:
    """Return True if *character* is one codepoint inside a supported range."""
    if len(character) != 1:
        return False
    code = ord(character)
    return any(low <= code <= high for low, high in SUPPORTED_RANGES)


def compute_accuracy(stroke_count: int, mistake_count: int) -> int:
    """Accuracy percentage: strokes / (strokes + mistakes), rounded half up.

    The numerator is the character's total stroke count, not the number of
    attempts, so the same mistakes cost less on characters with more strokes.
    """
    total = stroke_count + mistake_count
    if total <= 0:
        return 0
    return int(math.floor(100.0 * stroke_count / total + 0.5))


def remaining_strokes_message(remaining: int) -> Optional[str]:
    if remaining <= 0:
        return None
    plural = "s" if remaining > 1 else ""
    return f"Correct! {remaining} stroke{plural} remaining"


class SessionController:
    """State machine for character selection, view/practice modes and quiz progress.

    All work happens on the caller's thread. Engine events come back through
    :meth:`handle_event` tagged with the token of the instance that produced
    them; events from a superseded instance are discarded.
    """

    def __init__(
        self,
        vocabulary: VocabularyIndex,
        engine: StrokeEngine,
        view: SessionView,
        config: Optional[EngineConfig] = None,
        seed_character: str = SEED_CHARACTER,
        seed_level: int = SEED_LEVEL,
    ) -> None:
        self._vocabulary = vocabulary
        self._engine = engine
        self._view = view
        self._config = config or EngineConfig()
        self._state = SessionState(current_character=seed_character, current_level=seed_level)
        self._controls = ControlState()
        self._feedback: Optional[Feedback] = None
        self._history: List[QuizResult] = []

        self._handle: Any = None
        self._token = 0
        self._loaded = False
        self._quiz_armed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def controls(self) -> ControlState:
        return self._controls

    @property
    def feedback(self) -> Optional[Feedback]:
        return self._feedback

    @property
    def history(self) -> List[QuizResult]:
        return list(self._history)

    @property
    def active_token(self) -> int:
        """Token of the engine instance whose events are currently accepted."""
        return self._token

    def start(self) -> None:
        """Show the seed level and load the seed character."""
        self._push_controls()
        self.select_level(self._state.current_level)
        self._load_character()

    # ------------------------------------------------------------------
    # User intents
    # ------------------------------------------------------------------

    def select_level(self, level: int) -> None:
        entries = self._vocabulary.entries_for_level(level)
        if not entries:
            logger.debug("Ignoring unknown level %s", level)
            return
        self._state.current_level = level
        self._view.show_level(level, entries, self._state.current_character)

    def search(self, text: str) -> bool:
        """Select the first character of *text*; report bad input as error feedback."""
        try:
            self.select_character(text)
        except InvalidInputError:
            self._emit(Feedback(INVALID_INPUT_MESSAGE, Severity.ERROR))
            return False
        self._view.clear_search()
        return True

    def select_character(self, character: str) -> None:
        text = (character or "").strip()
        if not text:
            raise InvalidInputError("empty character input")
        first = text[0]
        if not is_supported_character(first):
            raise InvalidInputError(f"unsupported character {first!r}")
        logger.info("Selected character %s", first)
        self._state.current_character = first
        self._load_character()

    def set_mode(self, mode: Mode) -> None:
        if mode is self._state.mode:
            return
        logger.info("Switching to %s mode", mode.value)
        self._state.mode = mode
        self._state.hint_visible = False
        practice = mode is Mode.PRACTICE
        self._controls = ControlState(
            animate_enabled=False,
            animate_label=PLAY_LABEL,
            hint_enabled=practice,
            hint_label=SHOW_HINT_LABEL,
        )
        self._push_controls()
        self._emit(None)
        self._load_character()
        if practice:
            self._emit(Feedback(DRAW_PROMPT, Severity.INFO))

    def request_animation(self) -> None:
        if self._state.mode is not Mode.VIEW or not self._engine_ready():
            return
        if not self._controls.animate_enabled:
            return
        self._controls.animate_enabled = False
        self._controls.animate_label = PLAYING_LABEL
        self._push_controls()
        self._engine.animate(self._handle)

    def request_hint(self) -> None:
        if self._state.mode is not Mode.PRACTICE or not self._engine_ready():
            return
        if self._state.hint_visible:
            self._engine.hide_outline(self._handle)
            self._state.hint_visible = False
            self._controls.hint_label = SHOW_HINT_LABEL
            self._push_controls()
            self._emit(Feedback(OUTLINE_HIDDEN_MESSAGE, Severity.INFO))
        else:
            self._engine.show_outline(self._handle)
            self._state.hint_visible = True
            self._controls.hint_label = HIDE_HINT_LABEL
            self._push_controls()
            self._emit(Feedback(OUTLINE_SHOWN_MESSAGE, Severity.INFO))

    def reset(self) -> None:
        self._state.mistake_count = 0
        self._state.hint_visible = False
        self._controls.hint_label = SHOW_HINT_LABEL
        self._push_controls()
        self._emit(None)
        self._load_character()
        if self._state.mode is Mode.PRACTICE:
            self._emit(Feedback(DRAW_PROMPT, Severity.INFO))

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    def handle_event(self, token: int, event: EngineEvent) -> None:
        """Single dispatch point for engine events."""
        if token != self._token:
            logger.debug("Discarding stale %s (token %s, active %s)", type(event).__name__, token, self._token)
            return
        if isinstance(event, LoadSucceeded):
            self._on_load_success(event.stroke_count)
        elif isinstance(event, LoadFailed):
            self._on_load_failure(event.reason)
        elif isinstance(event, MistakeOccurred):
            self._on_mistake(event.stroke_index)
        elif isinstance(event, StrokeCorrect):
            self._on_correct_stroke(event.stroke_index)
        elif isinstance(event, QuizCompleted):
            self._on_quiz_complete()
        elif isinstance(event, AnimationCompleted):
            self._on_animation_complete()
        else:
            logger.warning("Unknown engine event %r", event)

    def _on_load_success(self, stroke_count: int) -> None:
        self._loaded = True
        self._state.stroke_count = stroke_count
        self._view.show_stroke_count(stroke_count)
        if self._state.mode is Mode.VIEW:
            self._controls.animate_enabled = True
            self._push_controls()
        self._maybe_start_quiz()

    def _on_load_failure(self, reason: str) -> None:
        logger.warning("No stroke data for %s: %s", self._state.current_character, reason or "unknown")
        self._loaded = False
        self._quiz_armed = False
        self._state.stroke_count = 0
        self._view.show_stroke_count(None)
        self._emit(Feedback(LOAD_FAILED_MESSAGE, Severity.ERROR))

    def _on_mistake(self, stroke_index: int) -> None:
        self._state.mistake_count += 1
        self._emit(
            Feedback(f"Try again! Stroke {stroke_index + 1}/{self._state.stroke_count}", Severity.ERROR)
        )

    def _on_correct_stroke(self, stroke_index: int) -> None:
        message = remaining_strokes_message(self._state.stroke_count - stroke_index - 1)
        if message is not None:
            self._emit(Feedback(message, Severity.SUCCESS))

    def _on_quiz_complete(self) -> None:
        state = self._state
        accuracy = compute_accuracy(state.stroke_count, state.mistake_count)
        self._history.append(
            QuizResult(
                character=state.current_character,
                stroke_count=state.stroke_count,
                mistakes=state.mistake_count,
                accuracy=accuracy,
            )
        )
        logger.info("Completed %s with %d%% accuracy", state.current_character, accuracy)
        self._emit(Feedback(f"Excellent! Completed with {accuracy}% accuracy", Severity.SUCCESS))

    def _on_animation_complete(self) -> None:
        if self._state.mode is not Mode.VIEW:
            return
        self._controls.animate_enabled = True
        self._controls.animate_label = PLAY_LABEL
        self._push_controls()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_character(self) -> None:
        state = self._state
        state.mistake_count = 0
        state.hint_visible = False
        state.stroke_count = 0
        self._emit(None)

        entry = self._vocabulary.lookup(state.current_character)
        if entry is not None:
            self._view.show_character(state.current_character, entry.pronunciation, entry.meaning)
        else:
            self._view.show_character(state.current_character, "", CUSTOM_CHARACTER_MEANING)
        self._view.show_stroke_count(None)

        # Animate stays disabled until the engine confirms the load.
        if state.mode is Mode.VIEW:
            self._controls.animate_enabled = False
            self._controls.animate_label = PLAY_LABEL
        self._controls.hint_label = SHOW_HINT_LABEL
        self._push_controls()

        self._rebuild_engine()

    def _rebuild_engine(self) -> None:
        if self._handle is not None:
            self._engine.discard(self._handle)
            self._handle = None
        self._token += 1
        self._loaded = False
        self._quiz_armed = self._state.mode is Mode.PRACTICE

        token = self._token
        character = self._state.current_character
        config = self._config.for_mode(self._state.mode)
        try:
            self._handle = self._engine.create_instance(
                character, config, lambda event: self.handle_event(token, event)
            )
        except Exception:
            logger.exception("Could not create stroke engine instance for %s", character)
            self._quiz_armed = False
            self._emit(Feedback(ENGINE_ERROR_MESSAGE, Severity.ERROR))
            return
        # The engine may have reported a load synchronously before the handle existed.
        self._maybe_start_quiz()

    def _maybe_start_quiz(self) -> None:
        if not (self._quiz_armed and self._engine_ready()):
            return
        if self._state.mode is not Mode.PRACTICE:
            return
        self._quiz_armed = False
        self._engine.start_quiz(self._handle)

    def _engine_ready(self) -> bool:
        return self._handle is not None and self._loaded

    def _emit(self, feedback: Optional[Feedback]) -> None:
        self._feedback = feedback
        self._view.show_feedback(feedback)

    def _push_controls(self) -> None:
        self._view.show_controls(self._controls, self._state.mode)
