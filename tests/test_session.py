"""Tests for bihua.core.session – the view/practice session state machine."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import pytest
import yaml

from bihua.core.engine import (
    AnimationCompleted,
    LoadFailed,
    LoadSucceeded,
    MistakeOccurred,
    Mode,
    QuizCompleted,
    StrokeCorrect,
)
from bihua.core.session import (
    CUSTOM_CHARACTER_MEANING,
    DRAW_PROMPT,
    ENGINE_ERROR_MESSAGE,
    HIDE_HINT_LABEL,
    INVALID_INPUT_MESSAGE,
    LOAD_FAILED_MESSAGE,
    OUTLINE_HIDDEN_MESSAGE,
    OUTLINE_SHOWN_MESSAGE,
    PLAY_LABEL,
    PLAYING_LABEL,
    SHOW_HINT_LABEL,
    ControlState,
    Feedback,
    InvalidInputError,
    QuizResult,
    SessionController,
    Severity,
    compute_accuracy,
    is_supported_character,
    remaining_strokes_message,
)
from bihua.core.vocabulary import VocabularyIndex


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeHandle:
    def __init__(self, character, config, sink) -> None:
        self.character = character
        self.config = config
        self.sink = sink
        self.discarded = False

    def emit(self, event) -> None:
        self.sink(event)


class FakeEngine:
    """Records every call; events are injected through the returned handles."""

    def __init__(self) -> None:
        self.instances: List[FakeHandle] = []
        self.calls: list = []
        self.fail_for: set = set()
        self.load_synchronously = False

    @property
    def latest(self) -> FakeHandle:
        return self.instances[-1]

    def create_instance(self, character, config, sink):
        if character in self.fail_for:
            raise RuntimeError("engine exploded")
        handle = FakeHandle(character, config, sink)
        self.instances.append(handle)
        if self.load_synchronously:
            sink(LoadSucceeded(4))
        return handle

    def discard(self, handle) -> None:
        handle.discarded = True
        self.calls.append(("discard", handle))

    def animate(self, handle) -> None:
        self.calls.append(("animate", handle))

    def start_quiz(self, handle) -> None:
        self.calls.append(("start_quiz", handle))

    def show_outline(self, handle) -> None:
        self.calls.append(("show_outline", handle))

    def hide_outline(self, handle) -> None:
        self.calls.append(("hide_outline", handle))

    def called(self, name: str) -> list:
        return [handle for call, handle in self.calls if call == name]


class FakeView:
    def __init__(self) -> None:
        self.levels: list = []
        self.characters: list = []
        self.stroke_counts: list = []
        self.feedback: list = []
        self.controls: List[ControlState] = []
        self.modes: List[Mode] = []
        self.search_cleared = 0

    def show_level(self, level, entries, current_character) -> None:
        self.levels.append((level, [e.character for e in entries], current_character))

    def show_character(self, character, pronunciation, meaning) -> None:
        self.characters.append((character, pronunciation, meaning))

    def show_stroke_count(self, count) -> None:
        self.stroke_counts.append(count)

    def show_feedback(self, feedback: Optional[Feedback]) -> None:
        self.feedback.append(feedback)

    def show_controls(self, controls, mode) -> None:
        self.controls.append(replace(controls))
        self.modes.append(mode)

    def clear_search(self) -> None:
        self.search_cleared += 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def vocabulary(tmp_path: Path) -> VocabularyIndex:
    levels = {
        "level1.yaml": {
            "title": "HSK 1",
            "characters": [
                {"char": "你", "pinyin": "nǐ", "meaning": "you"},
                {"char": "好", "pinyin": "hǎo", "meaning": "good"},
                {"char": "人", "pinyin": "rén", "meaning": "person"},
            ],
        },
        "level2.yaml": {
            "title": "HSK 2",
            "characters": [
                {"char": "大", "pinyin": "dà", "meaning": "big"},
                {"char": "口", "pinyin": "kǒu", "meaning": "mouth"},
            ],
        },
    }
    for name, data in levels.items():
        (tmp_path / name).write_text(yaml.dump(data, allow_unicode=True), encoding="utf-8")
    return VocabularyIndex(tmp_path)


@pytest.fixture()
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def view() -> FakeView:
    return FakeView()


@pytest.fixture()
def controller(vocabulary: VocabularyIndex, engine: FakeEngine, view: FakeView) -> SessionController:
    c = SessionController(vocabulary, engine, view)
    c.start()
    return c


def _load(controller: SessionController, engine: FakeEngine, strokes: int = 5) -> None:
    engine.latest.emit(LoadSucceeded(strokes))


def _practice(controller: SessionController, engine: FakeEngine, strokes: int = 5) -> None:
    controller.set_mode(Mode.PRACTICE)
    _load(controller, engine, strokes)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

class TestComputeAccuracy:
    def test_no_mistakes(self):
        assert compute_accuracy(5, 0) == 100

    def test_equal_mistakes(self):
        assert compute_accuracy(5, 5) == 50

    def test_rounds(self):
        assert compute_accuracy(3, 1) == 75

    def test_rounds_half_up(self):
        # 100 * 1 / 8 = 12.5
        assert compute_accuracy(1, 7) == 13

    def test_more_strokes_score_higher_for_same_mistakes(self):
        assert compute_accuracy(10, 2) > compute_accuracy(4, 2)

    def test_zero_strokes(self):
        assert compute_accuracy(0, 0) == 0


class TestRemainingStrokesMessage:
    def test_singular(self):
        assert "1 stroke remaining" in remaining_strokes_message(1)

    def test_plural(self):
        assert "2 strokes remaining" in remaining_strokes_message(2)

    def test_none_when_finished(self):
        assert remaining_strokes_message(0) is None


class TestIsSupportedCharacter:
    @pytest.mark.parametrize("ch", ["你", "一", "\u9fff", "\u3400"])
    def test_supported(self, ch):
        assert is_supported_character(ch)

    @pytest.mark.parametrize("ch", ["", "a", "h", "あ", "你好", "\u4dff"])
    def test_unsupported(self, ch):
        assert not is_supported_character(ch)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

class TestStartup:
    def test_seed_state(self, controller: SessionController):
        state = controller.state
        assert state.current_character == "你"
        assert state.current_level == 1
        assert state.mode is Mode.VIEW
        assert state.stroke_count == 0
        assert state.mistake_count == 0
        assert state.hint_visible is False

    def test_shows_seed_level(self, controller: SessionController, view: FakeView):
        assert view.levels[-1] == (1, ["你", "好", "人"], "你")

    def test_shows_seed_character(self, controller: SessionController, view: FakeView):
        assert view.characters[-1] == ("你", "nǐ", "you")

    def test_view_mode_engine_config(self, controller: SessionController, engine: FakeEngine):
        assert engine.latest.character == "你"
        assert engine.latest.config.show_outline is True
        assert engine.latest.config.show_character is True

    def test_animate_disabled_until_loaded(self, controller: SessionController, view: FakeView):
        assert controller.controls.animate_enabled is False
        assert view.controls[-1].animate_enabled is False
        assert view.controls[-1].hint_enabled is False

    def test_initial_controls_after_load(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        _load(controller, engine)
        assert controller.controls == ControlState()
        assert view.controls[-1].animate_enabled is True
        assert view.controls[-1].hint_enabled is False


# ---------------------------------------------------------------------------
# Level selection
# ---------------------------------------------------------------------------

class TestSelectLevel:
    def test_known_level(self, controller: SessionController, view: FakeView):
        controller.select_level(2)
        assert controller.state.current_level == 2
        assert view.levels[-1] == (2, ["大", "口"], "你")

    def test_does_not_change_character(self, controller: SessionController, engine: FakeEngine):
        count = len(engine.instances)
        controller.select_level(2)
        assert controller.state.current_character == "你"
        assert len(engine.instances) == count

    def test_unknown_level_is_noop(self, controller: SessionController, view: FakeView):
        shown = len(view.levels)
        controller.select_level(9)
        assert controller.state.current_level == 1
        assert len(view.levels) == shown


# ---------------------------------------------------------------------------
# Character selection and search
# ---------------------------------------------------------------------------

class TestSelectCharacter:
    def test_known_character(self, controller: SessionController, view: FakeView, engine: FakeEngine):
        controller.select_character("大")
        assert controller.state.current_character == "大"
        assert view.characters[-1] == ("大", "dà", "big")
        assert engine.latest.character == "大"

    def test_custom_character(self, controller: SessionController, view: FakeView):
        controller.select_character("龍")
        assert view.characters[-1] == ("龍", "", CUSTOM_CHARACTER_MEANING)

    def test_multi_character_input_keeps_first(self, controller: SessionController):
        controller.select_character("大口")
        assert controller.state.current_character == "大"

    @pytest.mark.parametrize("text", ["", "   ", "hello", "a你"])
    def test_rejects_invalid(self, controller: SessionController, text):
        with pytest.raises(InvalidInputError):
            controller.select_character(text)
        assert controller.state.current_character == "你"

    def test_invalid_input_is_value_error(self):
        assert issubclass(InvalidInputError, ValueError)

    def test_resets_mistakes_and_hint(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        controller.request_hint()
        engine.latest.emit(MistakeOccurred(0))
        assert controller.state.mistake_count == 1
        assert controller.state.hint_visible is True

        controller.select_character("好")
        assert controller.state.mistake_count == 0
        assert controller.state.hint_visible is False
        assert controller.controls.hint_label == SHOW_HINT_LABEL

    def test_clears_feedback(self, controller: SessionController, view: FakeView):
        controller.search("hello")
        controller.select_character("好")
        assert controller.feedback is None
        assert view.feedback[-1] is None

    def test_clears_stale_stroke_count(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        _load(controller, engine, 7)
        controller.select_character("好")
        assert controller.state.stroke_count == 0
        assert view.stroke_counts[-1] is None

    def test_discards_previous_instance(self, controller: SessionController, engine: FakeEngine):
        first = engine.latest
        controller.select_character("好")
        assert first.discarded is True
        assert engine.latest is not first


class TestSearch:
    def test_rejects_latin_text(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        count = len(engine.instances)
        assert controller.search("hello") is False
        assert controller.feedback == Feedback(INVALID_INPUT_MESSAGE, Severity.ERROR)
        assert controller.state.current_character == "你"
        assert len(engine.instances) == count
        assert view.search_cleared == 0

    def test_rejects_empty(self, controller: SessionController):
        assert controller.search("") is False
        assert controller.feedback.severity is Severity.ERROR

    def test_takes_first_character(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        controller.select_character("人")
        assert controller.search("你好") is True
        assert controller.state.current_character == "你"
        assert engine.latest.character == "你"
        assert view.search_cleared == 1

    def test_strips_whitespace(self, controller: SessionController):
        assert controller.search("  好 ") is True
        assert controller.state.current_character == "好"


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------

class TestSetMode:
    def test_same_mode_is_noop(self, controller: SessionController, engine: FakeEngine):
        count = len(engine.instances)
        controller.set_mode(Mode.VIEW)
        assert len(engine.instances) == count

    def test_enter_practice(self, controller: SessionController, engine: FakeEngine):
        controller.set_mode(Mode.PRACTICE)
        assert controller.state.mode is Mode.PRACTICE
        assert controller.controls.animate_enabled is False
        assert controller.controls.hint_enabled is True
        assert controller.controls.hint_label == SHOW_HINT_LABEL
        assert controller.feedback == Feedback(DRAW_PROMPT, Severity.INFO)

    def test_practice_hides_outline_and_character(self, controller: SessionController, engine: FakeEngine):
        controller.set_mode(Mode.PRACTICE)
        assert engine.latest.config.show_outline is False
        assert engine.latest.config.show_character is False

    def test_quiz_starts_after_load(self, controller: SessionController, engine: FakeEngine):
        controller.set_mode(Mode.PRACTICE)
        assert engine.called("start_quiz") == []
        _load(controller, engine)
        assert engine.called("start_quiz") == [engine.latest]

    def test_quiz_starts_when_engine_loads_synchronously(self, controller: SessionController, engine: FakeEngine):
        engine.load_synchronously = True
        controller.set_mode(Mode.PRACTICE)
        assert engine.called("start_quiz") == [engine.latest]

    def test_quiz_started_once_per_load(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        engine.latest.emit(LoadSucceeded(5))
        assert len(engine.called("start_quiz")) == 1

    def test_practice_then_view_restores_startup_controls(self, controller: SessionController, engine: FakeEngine):
        _load(controller, engine)
        startup = replace(controller.controls)
        controller.set_mode(Mode.PRACTICE)
        controller.set_mode(Mode.VIEW)
        _load(controller, engine)
        assert controller.controls == startup == ControlState()

    def test_view_discards_quiz_instance(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        quiz_instance = engine.latest
        controller.set_mode(Mode.VIEW)
        assert quiz_instance.discarded is True
        assert controller.state.hint_visible is False
        assert controller.feedback is None
        assert engine.called("start_quiz") == [quiz_instance]

    def test_mode_switch_resets_mistakes(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        engine.latest.emit(MistakeOccurred(0))
        controller.set_mode(Mode.VIEW)
        assert controller.state.mistake_count == 0


# ---------------------------------------------------------------------------
# Animation
# ---------------------------------------------------------------------------

class TestRequestAnimation:
    def test_plays_and_disables_control(self, controller: SessionController, engine: FakeEngine):
        _load(controller, engine)
        controller.request_animation()
        assert engine.called("animate") == [engine.latest]
        assert controller.controls.animate_enabled is False
        assert controller.controls.animate_label == PLAYING_LABEL

    def test_duplicate_request_ignored(self, controller: SessionController, engine: FakeEngine):
        _load(controller, engine)
        controller.request_animation()
        controller.request_animation()
        assert len(engine.called("animate")) == 1

    def test_completion_reenables(self, controller: SessionController, engine: FakeEngine):
        _load(controller, engine)
        controller.request_animation()
        engine.latest.emit(AnimationCompleted())
        assert controller.controls.animate_enabled is True
        assert controller.controls.animate_label == PLAY_LABEL

    def test_noop_while_loading(self, controller: SessionController, engine: FakeEngine):
        controller.request_animation()
        assert engine.called("animate") == []
        assert controller.controls.animate_enabled is False

    def test_noop_in_practice(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        controller.request_animation()
        assert engine.called("animate") == []

    def test_enabled_once_loaded(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        _load(controller, engine)
        assert controller.controls.animate_enabled is True
        assert view.controls[-1].animate_enabled is True

    def test_stays_disabled_after_load_failure(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        engine.latest.emit(LoadFailed("missing"))
        assert controller.controls.animate_enabled is False
        assert view.controls[-1].animate_enabled is False
        controller.request_animation()
        assert engine.called("animate") == []

    def test_stays_disabled_after_construction_error(self, controller: SessionController, engine: FakeEngine):
        engine.fail_for.add("好")
        controller.select_character("好")
        assert controller.controls.animate_enabled is False

    def test_reload_reenables_after_load(self, controller: SessionController, engine: FakeEngine):
        _load(controller, engine)
        controller.request_animation()
        old = engine.latest
        controller.select_character("好")
        old.emit(AnimationCompleted())
        assert controller.controls.animate_enabled is False
        assert controller.controls.animate_label == PLAY_LABEL
        _load(controller, engine, 6)
        assert controller.controls.animate_enabled is True
        assert controller.controls.animate_label == PLAY_LABEL

    def test_practice_load_keeps_animate_disabled(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        assert controller.controls.animate_enabled is False


# ---------------------------------------------------------------------------
# Hints
# ---------------------------------------------------------------------------

class TestRequestHint:
    def test_show(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        controller.request_hint()
        assert controller.state.hint_visible is True
        assert controller.controls.hint_label == HIDE_HINT_LABEL
        assert engine.called("show_outline") == [engine.latest]
        assert controller.feedback == Feedback(OUTLINE_SHOWN_MESSAGE, Severity.INFO)

    def test_toggle_twice_restores(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        controller.request_hint()
        controller.request_hint()
        assert controller.state.hint_visible is False
        assert controller.controls.hint_label == SHOW_HINT_LABEL
        assert engine.called("hide_outline") == [engine.latest]
        assert controller.feedback == Feedback(OUTLINE_HIDDEN_MESSAGE, Severity.INFO)

    def test_noop_in_view(self, controller: SessionController, engine: FakeEngine):
        _load(controller, engine)
        controller.request_hint()
        assert controller.state.hint_visible is False
        assert engine.called("show_outline") == []

    def test_noop_while_loading(self, controller: SessionController, engine: FakeEngine):
        controller.set_mode(Mode.PRACTICE)
        controller.request_hint()
        assert controller.state.hint_visible is False


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------

class TestReset:
    def test_practice_reset(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        controller.request_hint()
        engine.latest.emit(MistakeOccurred(1))
        before = engine.latest

        controller.reset()
        assert controller.state.mistake_count == 0
        assert controller.state.hint_visible is False
        assert controller.controls.hint_label == SHOW_HINT_LABEL
        assert before.discarded is True
        assert engine.latest.character == "你"
        assert controller.feedback == Feedback(DRAW_PROMPT, Severity.INFO)

    def test_view_reset_clears_feedback(self, controller: SessionController, engine: FakeEngine):
        controller.search("hello")
        controller.reset()
        assert controller.feedback is None
        assert controller.state.mode is Mode.VIEW


# ---------------------------------------------------------------------------
# Engine events
# ---------------------------------------------------------------------------

class TestLoadEvents:
    def test_success_sets_stroke_count(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        _load(controller, engine, 7)
        assert controller.state.stroke_count == 7
        assert view.stroke_counts[-1] == 7

    def test_failure(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        engine.latest.emit(LoadFailed("missing"))
        assert controller.state.stroke_count == 0
        assert view.stroke_counts[-1] is None
        assert controller.feedback == Feedback(LOAD_FAILED_MESSAGE, Severity.ERROR)

    def test_failure_keeps_metadata(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        controller.select_character("大")
        engine.latest.emit(LoadFailed())
        assert view.characters[-1] == ("大", "dà", "big")

    def test_failure_in_practice_does_not_start_quiz(self, controller: SessionController, engine: FakeEngine):
        controller.set_mode(Mode.PRACTICE)
        engine.latest.emit(LoadFailed())
        assert engine.called("start_quiz") == []

    def test_stale_success_ignored(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        old = engine.latest
        controller.select_character("好")
        _load(controller, engine, 6)
        old.emit(LoadSucceeded(99))
        assert controller.state.stroke_count == 6
        assert view.stroke_counts[-1] == 6

    def test_stale_failure_ignored(self, controller: SessionController, engine: FakeEngine):
        old = engine.latest
        controller.select_character("好")
        old.emit(LoadFailed())
        assert controller.feedback is None

    def test_handle_event_checks_token(self, controller: SessionController):
        controller.handle_event(controller.active_token - 1, LoadSucceeded(3))
        assert controller.state.stroke_count == 0
        controller.handle_event(controller.active_token, LoadSucceeded(3))
        assert controller.state.stroke_count == 3


class TestEngineConstructionError:
    def test_reports_error(self, controller: SessionController, engine: FakeEngine):
        engine.fail_for.add("好")
        controller.select_character("好")
        assert controller.state.current_character == "好"
        assert controller.feedback == Feedback(ENGINE_ERROR_MESSAGE, Severity.ERROR)

    def test_interactions_are_noops(self, controller: SessionController, engine: FakeEngine):
        engine.fail_for.add("好")
        controller.select_character("好")
        controller.request_animation()
        assert engine.called("animate") == []

    def test_session_recovers(self, controller: SessionController, engine: FakeEngine):
        engine.fail_for.add("好")
        controller.select_character("好")
        controller.select_character("人")
        _load(controller, engine, 2)
        assert controller.state.stroke_count == 2
        assert controller.feedback is None


class TestQuizEvents:
    def test_mistake(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine, 5)
        engine.latest.emit(MistakeOccurred(1))
        assert controller.state.mistake_count == 1
        assert controller.feedback == Feedback("Try again! Stroke 2/5", Severity.ERROR)

    def test_correct_stroke_plural(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine, 5)
        engine.latest.emit(StrokeCorrect(2))
        assert controller.feedback == Feedback("Correct! 2 strokes remaining", Severity.SUCCESS)

    def test_correct_stroke_singular(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine, 5)
        engine.latest.emit(StrokeCorrect(3))
        assert controller.feedback == Feedback("Correct! 1 stroke remaining", Severity.SUCCESS)

    def test_last_stroke_emits_nothing(self, controller: SessionController, engine: FakeEngine, view: FakeView):
        _practice(controller, engine, 5)
        shown = len(view.feedback)
        engine.latest.emit(StrokeCorrect(4))
        assert len(view.feedback) == shown

    def test_completion(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine, 3)
        engine.latest.emit(MistakeOccurred(0))
        for i in range(3):
            engine.latest.emit(StrokeCorrect(i))
        engine.latest.emit(QuizCompleted())
        assert controller.feedback == Feedback("Excellent! Completed with 75% accuracy", Severity.SUCCESS)
        assert controller.history == [QuizResult(character="你", stroke_count=3, mistakes=1, accuracy=75)]

    def test_stale_mistake_ignored(self, controller: SessionController, engine: FakeEngine):
        _practice(controller, engine)
        old = engine.latest
        controller.reset()
        old.emit(MistakeOccurred(0))
        assert controller.state.mistake_count == 0
