"""Application entry point and setup for the Bihua stroke-order trainer."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from PySide6.QtGui import QFont, QGuiApplication
from PySide6.QtWidgets import QApplication

from bihua.core.engine import EngineConfig
from bihua.core.stroke_source import DEFAULT_CACHE_DIR, DEFAULT_CDN_URL, StrokeDataSource
from bihua.core.strokes import DEFAULT_STROKES_DIR
from bihua.core.vocabulary import DEFAULT_LEVELS_DIR, VocabularyIndex
from bihua.ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _env_path(name: str, default: Path) -> Path:
    value = os.environ.get(name)
    return Path(value).expanduser() if value else default


def hint_after_misses(value: Optional[str], default: int = 3) -> int:
    """Parse BIHUA_HINT_AFTER_MISSES; bad values fall back to *default*."""
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning("Ignoring BIHUA_HINT_AFTER_MISSES=%r: not an integer", value)
        return default
    if parsed < 1:
        logger.warning("Ignoring BIHUA_HINT_AFTER_MISSES=%r: must be at least 1", value)
        return default
    return parsed


def load_engine_config() -> EngineConfig:
    return EngineConfig(show_hint_after_misses=hint_after_misses(os.environ.get("BIHUA_HINT_AFTER_MISSES")))


def load_stroke_source() -> StrokeDataSource:
    """Build the stroke data source from BIHUA_STROKE_DATA, BIHUA_STROKE_CACHE and BIHUA_STROKE_CDN.

    An empty BIHUA_STROKE_CDN disables downloads.
    """
    data_dirs = [DEFAULT_STROKES_DIR]
    if os.environ.get("BIHUA_STROKE_DATA"):
        data_dirs.insert(0, _env_path("BIHUA_STROKE_DATA", DEFAULT_STROKES_DIR))
    cdn_url = os.environ.get("BIHUA_STROKE_CDN", DEFAULT_CDN_URL)
    if cdn_url and "{character}" not in cdn_url:
        logger.warning("Ignoring BIHUA_STROKE_CDN=%r: missing {character} placeholder", cdn_url)
        cdn_url = DEFAULT_CDN_URL
    return StrokeDataSource(
        data_dirs=data_dirs,
        cache_dir=_env_path("BIHUA_STROKE_CACHE", DEFAULT_CACHE_DIR),
        cdn_url=cdn_url,
    )


def run() -> None:
    """Load vocabulary, build the main window and start the event loop."""
    configure_logging()
    app = QApplication(sys.argv)
    app.setApplicationName("Bihua")
    app.setApplicationDisplayName("Bihua")

    font = QFont()
    font.setFamilies(["Noto Sans CJK SC", "PingFang SC", "Microsoft YaHei", "sans-serif"])
    font.setPointSize(11)
    app.setFont(font)

    vocabulary = VocabularyIndex(_env_path("BIHUA_LEVELS_DIR", DEFAULT_LEVELS_DIR))
    stroke_source = load_stroke_source()
    logger.info("Loaded %d levels; stroke data from %s", len(vocabulary.list_levels()), stroke_source.search_dirs)

    window = MainWindow(vocabulary=vocabulary, stroke_source=stroke_source, config=load_engine_config())
    screen = QGuiApplication.primaryScreen()
    if screen is not None:
        available = screen.availableGeometry()
        window.resize(min(1100, available.width()), min(720, available.height()))
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    run()
