"""
color_mask.py
Binary foreground masks from HSV colour predicates.

Every stage that needs to separate "interesting" pixels from the rest goes
through here: the slot locator (card vs. screen background), and the badge
classifiers (level glyphs, points digits).

A predicate is a union of HSV boxes, optionally inverted. Pixels outside
every box simply map to 0; there is no failure path.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from config import (
    SLOT_BACKGROUND_RANGES, LEVEL_GLYPH_RANGES, POINTS_GLYPH_RANGES,
    EROSION_RADIUS,
)

ON = 255
OFF = 0


@dataclass(frozen=True)
class HsvRange:
    """Inclusive HSV box in OpenCV units (H 0-179, S/V 0-255)."""
    lower: tuple
    upper: tuple


@dataclass(frozen=True)
class ColorPredicate:
    """Union of HSV ranges; `invert` flips the result."""
    ranges: tuple
    invert: bool = False

    @classmethod
    def from_config(cls, ranges, invert=False):
        return cls(tuple(HsvRange(tuple(lo), tuple(hi)) for lo, hi in ranges), invert)


SLOT_MASK = ColorPredicate.from_config(SLOT_BACKGROUND_RANGES, invert=True)
LEVEL_MASK = ColorPredicate.from_config(LEVEL_GLYPH_RANGES)
POINTS_MASK = ColorPredicate.from_config(POINTS_GLYPH_RANGES)


def build_mask(img_bgr, predicate):
    """
    Convert a BGR image into a single-channel mask (255 = on, 0 = off).

    Args:
        img_bgr: numpy array (OpenCV BGR format)
        predicate: ColorPredicate

    Returns:
        uint8 array with the same height and width as the input.
    """
    hsv = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2HSV)
    mask = np.zeros(hsv.shape[:2], dtype=np.uint8)
    for r in predicate.ranges:
        lower = np.array(r.lower, dtype=np.uint8)
        upper = np.array(r.upper, dtype=np.uint8)
        mask |= cv2.inRange(hsv, lower, upper)
    if predicate.invert:
        mask = cv2.bitwise_not(mask)
    return mask


def erode(mask, radius=EROSION_RADIUS):
    """Morphological erosion with a square kernel of the given radius."""
    if radius <= 0:
        return mask.copy()
    size = 2 * radius + 1
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (size, size))
    return cv2.erode(mask, kernel, iterations=1)
