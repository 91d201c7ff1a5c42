"""Stroke data loading and stroke matching.

Stroke data uses the hanzi-writer-data JSON layout: ``medians`` holds one
polyline per stroke in a 1024-unit box with y pointing up and the baseline at
900. Loaded medians are converted to display coordinates (y down).
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]

BOX_SIZE = 1024.0
BASELINE = 900.0

DEFAULT_STROKES_DIR = Path(__file__).resolve().parent.parent / "data" / "strokes"


class StrokeDataError(Exception):
    """Stroke data is missing, unreadable or malformed."""


@dataclass(frozen=True)
class StrokeData:
    character: str
    medians: Tuple[Tuple[Point, ...], ...]

    @property
    def stroke_count(self) -> int:
        return len(self.medians)


def to_display(point: Sequence[float]) -> Point:
    return (float(point[0]), BASELINE - float(point[1]))


def parse_stroke_data(text: str, character: str, source: str = "") -> StrokeData:
    """Parse a hanzi-writer-data JSON document; *source* names it in errors."""
    source = source or f"{character}.json"
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise StrokeDataError(f"could not read {source}: {e}") from e

    raw_medians = payload.get("medians") if isinstance(payload, dict) else None
    if not isinstance(raw_medians, list) or not raw_medians:
        raise StrokeDataError(f"{source}: missing 'medians'")

    medians: List[Tuple[Point, ...]] = []
    for index, raw in enumerate(raw_medians):
        try:
            median = tuple(to_display(p) for p in raw)
        except (TypeError, ValueError, IndexError) as e:
            raise StrokeDataError(f"{source}: bad median {index}: {e}") from e
        if len(median) < 2:
            raise StrokeDataError(f"{source}: median {index} needs at least two points")
        medians.append(median)
    return StrokeData(character=character, medians=tuple(medians))


def load_stroke_data(data_dir: Path, character: str) -> StrokeData:
    path = Path(data_dir) / f"{character}.json"
    if not path.exists():
        raise StrokeDataError(f"no stroke file for {character!r} in {data_dir}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StrokeDataError(f"could not read {path.name}: {e}") from e
    return parse_stroke_data(text, character, path.name)


# ===============================
# Geometry
# ===============================

def dist(a: Point, b: Point) -> float:
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))


def polyline_length(pts: Sequence[Point]) -> float:
    if len(pts) < 2:
        return 0.0
    arr = np.asarray(pts, dtype=float)
    return float(np.linalg.norm(np.diff(arr, axis=0), axis=1).sum())


def resample_polyline(pts: Sequence[Point], n: int = 24) -> List[Point]:
    """Resample a polyline to exactly *n* points spaced by arc length."""
    if not pts:
        return [(0.0, 0.0)] * n
    first = (float(pts[0][0]), float(pts[0][1]))
    if len(pts) == 1 or n == 1:
        return [first] * n

    arr = np.asarray(pts, dtype=float)
    cumulative = np.concatenate(([0.0], np.cumsum(np.linalg.norm(np.diff(arr, axis=0), axis=1))))
    if cumulative[-1] < 1e-6:
        return [first] * n

    targets = np.linspace(0.0, cumulative[-1], n)
    xs = np.interp(targets, cumulative, arr[:, 0])
    ys = np.interp(targets, cumulative, arr[:, 1])
    return [(float(x), float(y)) for x, y in zip(xs, ys)]


def stroke_angle(pts: Sequence[Point]) -> float:
    """Direction from first to last point in degrees, 0-360."""
    if len(pts) < 2:
        return 0.0
    delta = np.asarray(pts[-1], dtype=float) - np.asarray(pts[0], dtype=float)
    angle = float(np.degrees(np.arctan2(delta[1], delta[0])))
    return angle + 360.0 if angle < 0 else angle


def stroke_match_score(user_pts: Sequence[Point], template_pts: Sequence[Point], resample_n: int = 24) -> float:
    """Score a drawn stroke against a template median; 0 is perfect, higher is worse.

    Both polylines are in the same 1024-unit display box. The score is the
    mean distance between corresponding resampled points as a fraction of the
    box, plus a penalty for drawing in a different direction.
    """
    if len(user_pts) < 2 or polyline_length(user_pts) < 1e-6:
        return math.inf
    user = np.array(resample_polyline(user_pts, resample_n))
    template = np.array(resample_polyline(template_pts, resample_n))
    mean_offset = float(np.mean(np.linalg.norm(user - template, axis=1))) / BOX_SIZE

    angle_diff = abs(stroke_angle(user_pts) - stroke_angle(template_pts))
    if angle_diff > 180.0:
        angle_diff = 360.0 - angle_diff
    return mean_offset + angle_diff / 180.0 * 0.3


def is_stroke_match(user_pts: Sequence[Point], template_pts: Sequence[Point], threshold: float = 0.2) -> bool:
    return stroke_match_score(user_pts, template_pts) <= threshold
