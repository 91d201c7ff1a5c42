"""Where stroke data comes from: bundled files, a local cache, then the CDN.

Characters without a bundled file are downloaded once from the
hanzi-writer-data CDN and kept in the cache directory, so later loads work
offline.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import quote

import requests

from bihua.core.strokes import DEFAULT_STROKES_DIR, StrokeData, StrokeDataError, load_stroke_data, parse_stroke_data

logger = logging.getLogger(__name__)

DEFAULT_CDN_URL = "https://cdn.jsdelivr.net/npm/hanzi-writer-data@2.0/{character}.json"
DEFAULT_CACHE_DIR = Path.home() / ".bihua" / "strokes"
FETCH_TIMEOUT_S = 10


class StrokeDataSource:
    """Resolves a character to StrokeData.

    ``load_local`` only looks at disk and is cheap enough for the UI thread.
    ``fetch`` does network I/O and belongs on a worker thread.
    """

    def __init__(
        self,
        data_dirs: Sequence[Path] = (DEFAULT_STROKES_DIR,),
        cache_dir: Optional[Path] = DEFAULT_CACHE_DIR,
        cdn_url: Optional[str] = DEFAULT_CDN_URL,
    ) -> None:
        self._data_dirs = [Path(d) for d in data_dirs]
        self._cache_dir = Path(cache_dir) if cache_dir is not None else None
        self._cdn_url = cdn_url or None

    @property
    def search_dirs(self) -> List[Path]:
        dirs = list(self._data_dirs)
        if self._cache_dir is not None:
            dirs.append(self._cache_dir)
        return dirs

    def load_local(self, character: str) -> Optional[StrokeData]:
        """Return bundled or cached data, or None when no file exists.

        A file that exists but is malformed raises StrokeDataError.
        """
        for directory in self.search_dirs:
            if (directory / f"{character}.json").exists():
                return load_stroke_data(directory, character)
        return None

    def remote_url(self, character: str) -> Optional[str]:
        if self._cdn_url is None:
            return None
        return self._cdn_url.format(character=quote(character))

    def fetch(self, character: str) -> StrokeData:
        """Download *character* from the CDN and cache it."""
        url = self.remote_url(character)
        if url is None:
            raise StrokeDataError(f"no stroke file for {character!r} and downloads are disabled")
        try:
            resp = requests.get(url, timeout=FETCH_TIMEOUT_S)
        except requests.RequestException as e:
            raise StrokeDataError(f"could not download {character!r}: {e}") from e
        if resp.status_code != 200:
            raise StrokeDataError(f"could not download {character!r}: HTTP {resp.status_code}")

        data = parse_stroke_data(resp.text, character, url)
        self._save(character, resp.text)
        logger.info("Downloaded stroke data for %s", character)
        return data

    def _save(self, character: str, text: str) -> None:
        if self._cache_dir is None:
            return
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            (self._cache_dir / f"{character}.json").write_text(text, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not cache stroke data for %s: %s", character, e)
