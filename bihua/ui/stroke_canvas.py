"""Stroke drawing surface and the Qt-backed stroke engine."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Sequence

from PySide6.QtCore import QObject, QPointF, Qt, QTimer, Signal
from PySide6.QtGui import QColor, QMouseEvent, QPainter, QPainterPath, QPen
from PySide6.QtWidgets import QWidget

from bihua.core.engine import AnimationCompleted, EngineConfig, EventSink, LoadFailed, LoadSucceeded
from bihua.core.quiz import QuizTracker
from bihua.core.stroke_source import StrokeDataSource
from bihua.core.strokes import BOX_SIZE, Point, StrokeData, StrokeDataError
from bihua.ui.colors import Palette

logger = logging.getLogger(__name__)

# Rendered stroke thickness in character units.
STROKE_WIDTH_UNITS = 80.0
BASE_STROKE_MS = 500
FLASH_MS = 800


class StrokeCanvas(QWidget):
    """Square drawing area for one character.

    Strokes are drawn along their medians. The canvas knows nothing about
    quiz rules; it paints what it is told and hands finished pen strokes
    (in character units) to ``on_stroke_drawn``.
    """

    def __init__(self, config: EngineConfig, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._config = config
        self._medians: List[Sequence[Point]] = []
        self._outline_visible = config.show_outline
        self._character_visible = config.show_character
        self._revealed: Optional[int] = None
        self._highlight = False
        self._hint_stroke: Optional[int] = None
        self._input_enabled = False
        self._pen_points: List[QPointF] = []
        self.on_stroke_drawn: Optional[Callable[[List[Point]], None]] = None

        self._flash_timer = QTimer(self)
        self._flash_timer.setSingleShot(True)
        self._flash_timer.timeout.connect(self._clear_flash)

        self.setFixedSize(config.width, config.height)
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        self.setStyleSheet("background: white; border-radius: 12px;")

    @property
    def revealed(self) -> Optional[int]:
        return self._revealed

    @property
    def hint_stroke(self) -> Optional[int]:
        return self._hint_stroke

    @property
    def outline_visible(self) -> bool:
        return self._outline_visible

    @property
    def input_enabled(self) -> bool:
        return self._input_enabled

    def set_medians(self, medians: Sequence[Sequence[Point]]) -> None:
        self._medians = list(medians)
        self.update()

    def set_outline_visible(self, visible: bool) -> None:
        self._outline_visible = visible
        self.update()

    def set_revealed(self, count: Optional[int]) -> None:
        """Show only the first *count* strokes; ``None`` follows show_character."""
        self._revealed = count
        self.update()

    def set_input_enabled(self, enabled: bool) -> None:
        self._input_enabled = enabled
        self._pen_points = []
        self.setCursor(Qt.CrossCursor if enabled else Qt.ArrowCursor)

    def flash_hint(self, stroke_index: int) -> None:
        self._hint_stroke = stroke_index
        self._flash_timer.start(FLASH_MS)
        self.update()

    def flash_highlight(self) -> None:
        self._highlight = True
        self._flash_timer.start(FLASH_MS)
        self.update()

    def _clear_flash(self) -> None:
        self._hint_stroke = None
        self._highlight = False
        self.update()

    # -- coordinates ----------------------------------------------------

    def _scale(self) -> float:
        side = min(self.width(), self.height()) - 2 * self._config.padding
        return max(side, 1) / BOX_SIZE

    def _to_widget(self, point: Point) -> QPointF:
        s = self._scale()
        return QPointF(self._config.padding + point[0] * s, self._config.padding + point[1] * s)

    def _to_character(self, point: QPointF) -> Point:
        s = self._scale()
        return ((point.x() - self._config.padding) / s, (point.y() - self._config.padding) / s)

    # -- painting -------------------------------------------------------

    def _stroke_path(self, median: Sequence[Point]) -> QPainterPath:
        path = QPainterPath(self._to_widget(median[0]))
        for point in median[1:]:
            path.lineTo(self._to_widget(point))
        return path

    def _draw_strokes(self, painter: QPainter, medians: Sequence[Sequence[Point]], color) -> None:
        pen = QPen(QColor(color), STROKE_WIDTH_UNITS * self._scale())
        pen.setCapStyle(Qt.RoundCap)
        pen.setJoinStyle(Qt.RoundJoin)
        painter.setPen(pen)
        for median in medians:
            painter.drawPath(self._stroke_path(median))

    def paintEvent(self, event) -> None:
        super().paintEvent(event)
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, True)

        w, h = self.width(), self.height()
        grid = QPen(QColor(Palette.GRID_LINE), 1, Qt.DashLine)
        painter.setPen(grid)
        painter.drawLine(0, h // 2, w, h // 2)
        painter.drawLine(w // 2, 0, w // 2, h)
        painter.drawLine(0, 0, w, h)
        painter.drawLine(w, 0, 0, h)

        if not self._medians:
            return

        if self._outline_visible:
            self._draw_strokes(painter, self._medians, self._config.outline_color)

        if self._revealed is not None:
            shown = self._medians[: self._revealed]
        elif self._character_visible:
            shown = self._medians
        else:
            shown = []
        color = self._config.highlight_color if self._highlight else self._config.stroke_color
        self._draw_strokes(painter, shown, color)

        if self._hint_stroke is not None and self._hint_stroke < len(self._medians):
            hint = QColor(self._config.highlight_color)
            hint.setAlpha(140)
            self._draw_strokes(painter, [self._medians[self._hint_stroke]], hint)

        if len(self._pen_points) > 1:
            pen = QPen(QColor(self._config.drawing_color), self._config.drawing_width)
            pen.setCapStyle(Qt.RoundCap)
            pen.setJoinStyle(Qt.RoundJoin)
            painter.setPen(pen)
            path = QPainterPath(self._pen_points[0])
            for p in self._pen_points[1:]:
                path.lineTo(p)
            painter.drawPath(path)

    # -- pen input ------------------------------------------------------

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if self._input_enabled and event.button() == Qt.LeftButton:
            self._pen_points = [event.position()]
            self.update()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        if self._input_enabled and self._pen_points:
            self._pen_points.append(event.position())
            self.update()
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if self._input_enabled and self._pen_points:
            points = [self._to_character(p) for p in self._pen_points]
            self._pen_points = []
            self.update()
            if self.on_stroke_drawn is not None:
                self.on_stroke_drawn(points)
        super().mouseReleaseEvent(event)


class _Instance:
    """One engine instance: a canvas bound to a single character."""

    def __init__(self, character: str, config: EngineConfig, sink: EventSink, canvas: StrokeCanvas) -> None:
        self.character = character
        self.config = config
        self.sink = sink
        self.canvas = canvas
        self.data: Optional[StrokeData] = None
        self.discarded = False
        self.animating = False
        self.quiz: Optional[QuizTracker] = None
        self.animation_timer: Optional[QTimer] = None


class _FetchBridge(QObject):
    """Carries download results from the worker thread back to the GUI thread."""

    finished = Signal(object, object)


class QtStrokeEngine:
    """Stroke engine that loads hanzi-writer medians and runs on the Qt event loop.

    Canvases are added to *host*'s layout; only the newest instance is shown.
    Characters with no local stroke file are downloaded on a worker thread.
    """

    def __init__(self, host: QWidget, source: StrokeDataSource) -> None:
        self._host = host
        self._source = source
        self._bridge = _FetchBridge()
        self._bridge.finished.connect(self._on_fetched, Qt.QueuedConnection)

    def create_instance(self, character: str, config: EngineConfig, sink: EventSink) -> _Instance:
        canvas = StrokeCanvas(config)
        instance = _Instance(character, config, sink, canvas)
        canvas.on_stroke_drawn = lambda points: self._on_stroke_drawn(instance, points)
        self._host.layout().addWidget(canvas, 0, Qt.AlignCenter)
        QTimer.singleShot(0, lambda: self._load(instance))
        return instance

    def discard(self, instance: _Instance) -> None:
        instance.discarded = True
        if instance.quiz is not None:
            instance.quiz.stop()
        if instance.animation_timer is not None:
            instance.animation_timer.stop()
        self._host.layout().removeWidget(instance.canvas)
        instance.canvas.hide()
        instance.canvas.deleteLater()

    def animate(self, instance: _Instance) -> None:
        if instance.animating or instance.data is None or instance.discarded:
            return
        instance.animating = True
        speed = max(instance.config.stroke_animation_speed, 0.1)
        interval = int(BASE_STROKE_MS / speed) + instance.config.delay_between_strokes_ms

        timer = QTimer(instance.canvas)
        timer.setInterval(interval)
        instance.animation_timer = timer
        instance.canvas.set_revealed(0)
        shown = 0

        def advance() -> None:
            nonlocal shown
            shown += 1
            instance.canvas.set_revealed(shown)
            if shown >= instance.data.stroke_count:
                timer.stop()
                instance.animating = False
                instance.canvas.set_revealed(None)
                instance.sink(AnimationCompleted())

        timer.timeout.connect(advance)
        timer.start()

    def start_quiz(self, instance: _Instance) -> None:
        if instance.data is None or instance.discarded:
            return
        instance.quiz = QuizTracker(instance.data.medians, instance.config.show_hint_after_misses)
        instance.canvas.set_revealed(0)
        instance.canvas.set_input_enabled(True)

    def show_outline(self, instance: _Instance) -> None:
        instance.canvas.set_outline_visible(True)

    def hide_outline(self, instance: _Instance) -> None:
        instance.canvas.set_outline_visible(False)

    def _load(self, instance: _Instance) -> None:
        if instance.discarded:
            return
        try:
            data = self._source.load_local(instance.character)
        except StrokeDataError as e:
            self._fail(instance, e)
            return
        if data is not None:
            self._loaded(instance, data)
            return
        if self._source.remote_url(instance.character) is None:
            self._fail(instance, StrokeDataError(f"no stroke file for {instance.character!r}"))
            return
        logger.debug("Fetching stroke data for %s", instance.character)
        threading.Thread(target=self._fetch_worker, args=(instance,), daemon=True).start()

    def _fetch_worker(self, instance: _Instance) -> None:
        try:
            result = self._source.fetch(instance.character)
        except StrokeDataError as e:
            result = e
        self._bridge.finished.emit(instance, result)

    def _on_fetched(self, instance: _Instance, result) -> None:
        if instance.discarded:
            return
        if isinstance(result, StrokeDataError):
            self._fail(instance, result)
        else:
            self._loaded(instance, result)

    def _fail(self, instance: _Instance, error: StrokeDataError) -> None:
        logger.debug("Stroke data unavailable for %s: %s", instance.character, error)
        instance.sink(LoadFailed(str(error)))

    def _loaded(self, instance: _Instance, data: StrokeData) -> None:
        instance.data = data
        logger.debug("Loaded %d strokes for %s", data.stroke_count, instance.character)
        instance.canvas.set_medians(data.medians)
        instance.sink(LoadSucceeded(data.stroke_count))

    def _on_stroke_drawn(self, instance: _Instance, points: List[Point]) -> None:
        if instance.quiz is None or instance.discarded:
            return
        outcome = instance.quiz.submit(points)
        if outcome is None:
            return
        instance.canvas.set_revealed(outcome.revealed)
        if outcome.hint_stroke is not None:
            instance.canvas.flash_hint(outcome.hint_stroke)
        if outcome.completed:
            instance.canvas.set_input_enabled(False)
            if instance.config.highlight_on_complete:
                instance.canvas.flash_highlight()
        for event in outcome.events:
            instance.sink(event)
