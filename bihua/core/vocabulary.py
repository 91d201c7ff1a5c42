from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml


DEFAULT_LEVELS_DIR = Path(__file__).resolve().parent.parent / "data" / "levels"


@dataclass(frozen=True)
class CharacterEntry:
    character: str
    pronunciation: str
    meaning: str
    level: int


@dataclass(frozen=True)
class Level:
    number: int
    title: str
    entries: Tuple[CharacterEntry, ...]


class VocabularyIndex:
    """Read-only lookup of character metadata grouped by proficiency level."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else DEFAULT_LEVELS_DIR
        self._levels = self._load_levels()

    def all(self) -> List[Level]:
        return list(self._levels.values())

    def get(self, level: int) -> Level:
        return self._levels[level]

    def list_levels(self) -> List[int]:
        return list(self._levels.keys())

    def entries_for_level(self, level: int) -> List[CharacterEntry]:
        found = self._levels.get(level)
        if found is None:
            return []
        return list(found.entries)

    def lookup(self, character: str) -> Optional[CharacterEntry]:
        """Return the first entry for *character*, scanning levels in order."""
        for level in self._levels.values():
            for entry in level.entries:
                if entry.character == character:
                    return entry
        return None

    def _load_levels(self) -> Dict[int, Level]:
        base_dir = self._base_dir
        if not base_dir.exists():
            raise FileNotFoundError(f"Levels directory not found: {base_dir}")

        levels: Dict[int, Level] = {}
        numbered: List[Tuple[int, Path]] = []
        for level_path in base_dir.glob("level*.yaml"):
            m = re.match(r"^level(\d+)$", level_path.stem)
            if m and int(m.group(1)) > 0:
                numbered.append((int(m.group(1)), level_path))

        for number, level_path in sorted(numbered):
            raw = yaml.safe_load(level_path.read_text(encoding="utf-8"))
            if not raw or not isinstance(raw, dict):
                raise ValueError(f"{level_path.name}: expected YAML with 'title' and 'characters'")
            title = raw.get("title")
            characters = raw.get("characters")
            if not title or not isinstance(title, str):
                raise ValueError(f"{level_path.name}: missing or invalid 'title'")
            if characters is None:
                raise ValueError(f"{level_path.name}: missing 'characters'")
            if not isinstance(characters, list) or not characters:
                raise ValueError(f"{level_path.name}: 'characters' has no entries")

            entries: List[CharacterEntry] = []
            for item in characters:
                if not isinstance(item, dict):
                    raise ValueError(f"{level_path.name}: each character must be a mapping")
                char = str(item.get("char") or "").strip()
                if len(char) != 1:
                    raise ValueError(f"{level_path.name}: invalid 'char' {char!r}")
                entries.append(
                    CharacterEntry(
                        character=char,
                        pronunciation=str(item.get("pinyin") or "").strip(),
                        meaning=str(item.get("meaning") or "").strip(),
                        level=number,
                    )
                )
            levels[number] = Level(number=number, title=title.strip(), entries=tuple(entries))

        if not levels:
            raise ValueError(f"No level files (level*.yaml) found in {base_dir}")
        return levels
