"""Contract between the session controller and a stroke rendering/recognition engine.

The engine is driven through :class:`StrokeEngine` and answers asynchronously
with the typed events below. Each instance gets its own sink, so the controller
can tag every event with the instance it came from and drop stale ones.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Callable, Protocol, Union


class Mode(enum.Enum):
    VIEW = "view"
    PRACTICE = "practice"


@dataclass(frozen=True)
class EngineConfig:
    """Every option the engine recognizes.

    * ``width`` / ``height`` / ``padding`` – drawing area geometry in pixels.
    * ``show_outline`` – draw the faint outline of the whole character.
    * ``show_character`` – draw the finished character in full.
    * ``stroke_animation_speed`` – multiplier on the base per-stroke duration.
    * ``delay_between_strokes_ms`` – pause between animated strokes.
    * ``stroke_color`` / ``outline_color`` / ``drawing_color`` – pen colours
      for accepted strokes, the outline and the learner's live input.
    * ``drawing_width`` – learner pen width in pixels.
    * ``show_hint_after_misses`` – consecutive mistakes on one stroke before
      the engine flashes that stroke as an automatic hint.
    * ``highlight_on_complete`` / ``highlight_color`` – flash the character
      when a quiz finishes.
    """

    width: int = 280
    height: int = 280
    padding: int = 10
    show_outline: bool = True
    show_character: bool = True
    stroke_animation_speed: float = 1.0
    delay_between_strokes_ms: int = 200
    stroke_color: str = "#333333"
    outline_color: str = "#DDDDDD"
    drawing_color: str = "#667EEA"
    drawing_width: int = 6
    show_hint_after_misses: int = 3
    highlight_on_complete: bool = True
    highlight_color: str = "#4CAF50"

    def for_mode(self, mode: Mode) -> "EngineConfig":
        """Outline and character are pre-shown only when viewing."""
        visible = mode is Mode.VIEW
        return replace(self, show_outline=visible, show_character=visible)


@dataclass(frozen=True)
class LoadSucceeded:
    stroke_count: int


@dataclass(frozen=True)
class LoadFailed:
    reason: str = ""


@dataclass(frozen=True)
class MistakeOccurred:
    stroke_index: int


@dataclass(frozen=True)
class StrokeCorrect:
    stroke_index: int


@dataclass(frozen=True)
class QuizCompleted:
    pass


@dataclass(frozen=True)
class AnimationCompleted:
    pass


EngineEvent = Union[
    LoadSucceeded,
    LoadFailed,
    MistakeOccurred,
    StrokeCorrect,
    QuizCompleted,
    AnimationCompleted,
]

EventSink = Callable[[EngineEvent], None]


class StrokeEngine(Protocol):
    """Capability surface the session requires from a stroke engine.

    ``create_instance`` reports exactly one of ``LoadSucceeded`` or
    ``LoadFailed`` through *sink*. ``animate`` reports one
    ``AnimationCompleted`` and is ignored while already animating.
    ``start_quiz`` reports ``MistakeOccurred`` / ``StrokeCorrect`` per stroke
    attempt and one ``QuizCompleted`` after the final stroke.
    ``show_outline`` / ``hide_outline`` are idempotent.
    """

    def create_instance(self, character: str, config: EngineConfig, sink: EventSink) -> Any:
        ...

    def discard(self, handle: Any) -> None:
        ...

    def animate(self, handle: Any) -> None:
        ...

    def start_quiz(self, handle: Any) -> None:
        ...

    def show_outline(self, handle: Any) -> None:
        ...

    def hide_outline(self, handle: Any) -> None:
        ...
