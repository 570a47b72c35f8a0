"""
templates.py
Reference glyph tables for the level and points badges.

Loaded once per process and shared read-only by every classification call.
The fixed set ships in data/templates/levels/{1..7}.png and
data/templates/points/{0..9}.png: 12x16 grayscale masks, 0 or 255, each
glyph inside a 1px empty margin. Every template is already closed under a
3x3 closing, so a badge glyph whose stroke is one pixel bolder erodes back
to exactly the template.
"""

from dataclasses import dataclass
from functools import lru_cache

import cv2
import numpy as np

from config import TEMPLATE_DIR, LEVEL_LABELS, POINTS_LABELS


@dataclass(frozen=True, eq=False)
class GlyphTemplate:
    """A (label, reference grayscale image) pair."""
    label: int
    image: np.ndarray


def _load_table(subdir, labels, template_dir):
    directory = template_dir / subdir
    if not directory.is_dir():
        raise FileNotFoundError(f"Template directory not found: {directory}")

    table = []
    for label in labels:
        path = directory / f"{label}.png"
        img = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if img is None:
            raise FileNotFoundError(f"Missing template: {path}")
        table.append(GlyphTemplate(label, img))
    return tuple(table)


@lru_cache(maxsize=None)
def load_level_templates(template_dir=TEMPLATE_DIR):
    """Level badge templates, labels 1-7."""
    return _load_table("levels", LEVEL_LABELS, template_dir)


@lru_cache(maxsize=None)
def load_digit_templates(template_dir=TEMPLATE_DIR):
    """Points digit templates, labels 0-9."""
    return _load_table("points", POINTS_LABELS, template_dir)
