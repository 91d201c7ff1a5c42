from __future__ import annotations

from typing import Dict, List, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QButtonGroup,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from bihua.core.engine import EngineConfig, Mode
from bihua.core.session import ControlState, Feedback, SessionController
from bihua.core.stroke_source import StrokeDataSource
from bihua.core.vocabulary import CharacterEntry, VocabularyIndex
from bihua.ui.colors import Palette, blend_hex, severity_background, severity_color
from bihua.ui.stroke_canvas import QtStrokeEngine

GRID_COLUMNS = 6


class MainWindow(QMainWindow):
    """Main window: level tabs and character grid on the left, the writer on the right.

    Implements the view the session controller drives. User input is forwarded
    to the controller unchanged; all state lives there.
    """

    def __init__(self, vocabulary: VocabularyIndex, stroke_source: StrokeDataSource, config: EngineConfig) -> None:
        super().__init__()
        self._vocabulary = vocabulary
        self._config = config

        self._search_input: Optional[QLineEdit] = None
        self._search_button: Optional[QPushButton] = None
        self._level_buttons: Dict[int, QPushButton] = {}
        self._grid_layout: Optional[QGridLayout] = None
        self._char_buttons: Dict[str, QPushButton] = {}
        self._char_label: Optional[QLabel] = None
        self._pinyin_label: Optional[QLabel] = None
        self._meaning_label: Optional[QLabel] = None
        self._writer_host: Optional[QWidget] = None
        self._view_mode_button: Optional[QPushButton] = None
        self._practice_mode_button: Optional[QPushButton] = None
        self._animate_button: Optional[QPushButton] = None
        self._hint_button: Optional[QPushButton] = None
        self._reset_button: Optional[QPushButton] = None
        self._feedback_label: Optional[QLabel] = None
        self._stroke_count_label: Optional[QLabel] = None

        self._build_ui()

        engine = QtStrokeEngine(self._writer_host, stroke_source)
        self._controller = SessionController(vocabulary, engine, self, config)
        self._connect_signals()
        self._controller.start()

    @property
    def controller(self) -> SessionController:
        return self._controller

    def _button_style(self, *, checked_color: str = Palette.PRIMARY) -> str:
        hover = blend_hex(checked_color, "#FFFFFF", 0.8)
        return f"""
            QPushButton {{
                background: white;
                color: {Palette.TEXT_PRIMARY};
                border: 1px solid {Palette.CARD_BORDER};
                border-radius: 8px;
                padding: 8px 14px;
                font-size: 14px;
            }}
            QPushButton:hover {{ background: {hover}; }}
            QPushButton:checked {{
                background: {checked_color};
                color: white;
                border-color: {checked_color};
            }}
            QPushButton:disabled {{
                color: {Palette.TEXT_MUTED};
                background: #f1f1f4;
            }}
        """

    def _card(self) -> QFrame:
        card = QFrame()
        card.setStyleSheet(
            f"""
            QFrame {{
                background: {Palette.CARD_BG};
                border: 1px solid {Palette.CARD_BORDER};
                border-radius: 16px;
            }}
            QLabel {{ border: none; background: transparent; }}
            """
        )
        return card

    def _build_ui(self) -> None:
        """Construct the widget tree: browser card, writer card and controls."""
        self.setWindowTitle("笔画 - Chinese Stroke Order")
        self.setMinimumSize(960, 640)
        self.setStyleSheet(
            f"""
            QMainWindow {{
                background: qlineargradient(x1:0, y1:0, x2:0, y2:1,
                    stop:0 {Palette.BG_TOP}, stop:1 {Palette.BG_BOTTOM});
            }}
            """
        )

        root = QWidget()
        root_layout = QHBoxLayout(root)
        root_layout.setContentsMargins(16, 16, 16, 16)
        root_layout.setSpacing(16)
        self.setCentralWidget(root)

        # Left: search, level tabs, character grid
        browser = self._card()
        browser_layout = QVBoxLayout(browser)
        browser_layout.setContentsMargins(16, 16, 16, 16)
        browser_layout.setSpacing(12)

        search_row = QHBoxLayout()
        self._search_input = QLineEdit()
        self._search_input.setPlaceholderText("Enter a Chinese character")
        self._search_input.setStyleSheet("padding: 8px; font-size: 15px; border-radius: 8px;")
        self._search_button = QPushButton("Search")
        self._search_button.setStyleSheet(self._button_style())
        search_row.addWidget(self._search_input, 1)
        search_row.addWidget(self._search_button)
        browser_layout.addLayout(search_row)

        tabs_row = QHBoxLayout()
        level_group = QButtonGroup(self)
        level_group.setExclusive(True)
        for level in self._vocabulary.all():
            btn = QPushButton(level.title)
            btn.setCheckable(True)
            btn.setStyleSheet(self._button_style())
            btn.clicked.connect(lambda _checked=False, n=level.number: self._controller.select_level(n))
            level_group.addButton(btn)
            tabs_row.addWidget(btn)
            self._level_buttons[level.number] = btn
        tabs_row.addStretch(1)
        browser_layout.addLayout(tabs_row)

        grid_container = QWidget()
        self._grid_layout = QGridLayout(grid_container)
        self._grid_layout.setSpacing(8)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setFrameShape(QFrame.NoFrame)
        scroll.setWidget(grid_container)
        browser_layout.addWidget(scroll, 1)

        root_layout.addWidget(browser, 1)

        # Right: current character, writer, modes, controls, feedback
        writer_card = self._card()
        writer_layout = QVBoxLayout(writer_card)
        writer_layout.setContentsMargins(20, 20, 20, 20)
        writer_layout.setSpacing(10)

        info_row = QHBoxLayout()
        self._char_label = QLabel("")
        self._char_label.setStyleSheet(f"font-size: 48px; font-weight: 700; color: {Palette.PRIMARY_DARK};")
        info_text = QVBoxLayout()
        self._pinyin_label = QLabel("")
        self._pinyin_label.setStyleSheet(f"font-size: 20px; color: {Palette.TEXT_PRIMARY};")
        self._meaning_label = QLabel("")
        self._meaning_label.setStyleSheet(f"font-size: 15px; color: {Palette.TEXT_SECONDARY};")
        info_text.addWidget(self._pinyin_label)
        info_text.addWidget(self._meaning_label)
        info_row.addWidget(self._char_label)
        info_row.addLayout(info_text, 1)
        writer_layout.addLayout(info_row)

        self._writer_host = QWidget()
        host_layout = QVBoxLayout(self._writer_host)
        host_layout.setContentsMargins(0, 0, 0, 0)
        self._writer_host.setFixedSize(self._config.width + 8, self._config.height + 8)
        writer_layout.addWidget(self._writer_host, 0, Qt.AlignHCenter)

        self._stroke_count_label = QLabel("")
        self._stroke_count_label.setAlignment(Qt.AlignCenter)
        self._stroke_count_label.setStyleSheet(f"color: {Palette.TEXT_MUTED}; font-size: 13px;")
        writer_layout.addWidget(self._stroke_count_label)

        mode_row = QHBoxLayout()
        mode_group = QButtonGroup(self)
        mode_group.setExclusive(True)
        self._view_mode_button = QPushButton("View")
        self._practice_mode_button = QPushButton("Practice")
        for btn in (self._view_mode_button, self._practice_mode_button):
            btn.setCheckable(True)
            btn.setStyleSheet(self._button_style())
            mode_group.addButton(btn)
            mode_row.addWidget(btn)
        writer_layout.addLayout(mode_row)

        controls_row = QHBoxLayout()
        self._animate_button = QPushButton("")
        self._hint_button = QPushButton("")
        self._reset_button = QPushButton("Reset")
        for btn in (self._animate_button, self._hint_button, self._reset_button):
            btn.setStyleSheet(self._button_style())
            controls_row.addWidget(btn)
        writer_layout.addLayout(controls_row)

        self._feedback_label = QLabel("")
        self._feedback_label.setAlignment(Qt.AlignCenter)
        self._feedback_label.setWordWrap(True)
        self._feedback_label.setMinimumHeight(40)
        writer_layout.addWidget(self._feedback_label)
        writer_layout.addStretch(1)

        root_layout.addWidget(writer_card, 0)

    def _connect_signals(self) -> None:
        controller = self._controller
        self._search_button.clicked.connect(lambda: controller.search(self._search_input.text()))
        self._search_input.returnPressed.connect(lambda: controller.search(self._search_input.text()))
        self._view_mode_button.clicked.connect(lambda: controller.set_mode(Mode.VIEW))
        self._practice_mode_button.clicked.connect(lambda: controller.set_mode(Mode.PRACTICE))
        self._animate_button.clicked.connect(controller.request_animation)
        self._hint_button.clicked.connect(controller.request_hint)
        self._reset_button.clicked.connect(controller.reset)

    # ------------------------------------------------------------------
    # SessionView
    # ------------------------------------------------------------------

    def show_level(self, level: int, entries: List[CharacterEntry], current_character: str) -> None:
        for number, btn in self._level_buttons.items():
            btn.setChecked(number == level)

        while self._grid_layout.count():
            item = self._grid_layout.takeAt(0)
            widget = item.widget()
            if widget is not None:
                widget.deleteLater()
        self._char_buttons = {}

        for i, entry in enumerate(entries):
            btn = QPushButton(entry.character)
            btn.setCheckable(True)
            btn.setFixedSize(56, 56)
            btn.setToolTip(f"{entry.pronunciation} - {entry.meaning}")
            btn.setStyleSheet(self._button_style() + "QPushButton { font-size: 24px; padding: 0; }")
            btn.setChecked(entry.character == current_character)
            btn.clicked.connect(lambda _checked=False, c=entry.character: self._controller.select_character(c))
            self._grid_layout.addWidget(btn, i // GRID_COLUMNS, i % GRID_COLUMNS)
            self._char_buttons[entry.character] = btn

    def show_character(self, character: str, pronunciation: str, meaning: str) -> None:
        self._char_label.setText(character)
        self._pinyin_label.setText(pronunciation)
        self._meaning_label.setText(meaning)
        for char, btn in self._char_buttons.items():
            btn.setChecked(char == character)

    def show_stroke_count(self, count: Optional[int]) -> None:
        self._stroke_count_label.setText("" if count is None else f"Total strokes: {count}")

    def show_feedback(self, feedback: Optional[Feedback]) -> None:
        if feedback is None:
            self._feedback_label.setText("")
            self._feedback_label.setStyleSheet("")
            return
        self._feedback_label.setText(feedback.message)
        self._feedback_label.setStyleSheet(
            f"""
            QLabel {{
                color: {severity_color(feedback.severity)};
                background: {severity_background(feedback.severity)};
                border-radius: 8px;
                padding: 8px;
                font-size: 14px;
                font-weight: 600;
            }}
            """
        )

    def show_controls(self, controls: ControlState, mode: Mode) -> None:
        self._view_mode_button.setChecked(mode is Mode.VIEW)
        self._practice_mode_button.setChecked(mode is Mode.PRACTICE)
        self._animate_button.setEnabled(controls.animate_enabled)
        self._animate_button.setText(controls.animate_label)
        self._hint_button.setEnabled(controls.hint_enabled)
        self._hint_button.setText(controls.hint_label)

    def clear_search(self) -> None:
        self._search_input.clear()
