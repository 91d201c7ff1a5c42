"""Per-character quiz progression, independent of any drawing surface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from bihua.core.engine import EngineEvent, MistakeOccurred, QuizCompleted, StrokeCorrect
from bihua.core.strokes import Point, is_stroke_match

Matcher = Callable[[Sequence[Point], Sequence[Point]], bool]


@dataclass(frozen=True)
class StrokeOutcome:
    """What one drawn stroke caused.

    ``hint_stroke`` is the stroke to flash as a hint, if the miss threshold
    was just reached or is still exceeded.
    """

    events: List[EngineEvent]
    revealed: int
    hint_stroke: Optional[int] = None

    @property
    def completed(self) -> bool:
        return any(isinstance(e, QuizCompleted) for e in self.events)


class QuizTracker:
    """Checks drawn strokes against the medians in order.

    Misses are counted per stroke and reset when that stroke is drawn
    correctly. Once the last stroke is matched the tracker stops accepting
    input, so completion is reported once.
    """

    def __init__(
        self,
        medians: Sequence[Sequence[Point]],
        hint_after_misses: int = 3,
        matcher: Matcher = is_stroke_match,
    ) -> None:
        self._medians = list(medians)
        self._hint_after_misses = hint_after_misses
        self._matcher = matcher
        self._next_stroke = 0
        self._misses_on_stroke = 0
        self._active = bool(self._medians)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def next_stroke(self) -> int:
        return self._next_stroke

    @property
    def misses_on_stroke(self) -> int:
        return self._misses_on_stroke

    def submit(self, points: Sequence[Point]) -> Optional[StrokeOutcome]:
        """Judge one drawn stroke; returns None once the quiz is over."""
        if not self._active:
            return None
        index = self._next_stroke
        if self._matcher(points, self._medians[index]):
            self._next_stroke += 1
            self._misses_on_stroke = 0
            events: List[EngineEvent] = [StrokeCorrect(index)]
            if self._next_stroke >= len(self._medians):
                self._active = False
                events.append(QuizCompleted())
            return StrokeOutcome(events=events, revealed=self._next_stroke)

        self._misses_on_stroke += 1
        hint = index if self._misses_on_stroke >= self._hint_after_misses else None
        return StrokeOutcome(events=[MistakeOccurred(index)], revealed=self._next_stroke, hint_stroke=hint)

    def stop(self) -> None:
        self._active = False
