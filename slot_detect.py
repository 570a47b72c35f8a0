"""
slot_detect.py — Locate item slots in a collection-screen screenshot.

Takes a raw screenshot, finds the rectangular cards laid out in the
collection grid, and returns each one resampled to the canonical card size
used by the badge and identity classifiers.

Pipeline:
    1. Slot mask: every pixel that is not screen background is "on"
    2. Row pass: estimate the slot width from the most frequent run length,
       then mark the rows that belong to a band of cards
    3. Column pass: same routine on the transposed mask, with the row-pass
       slot width as the run-length floor
    4. Row bands x column bands -> candidate rectangles, filtered by area
       and aspect ratio
    5. Crop + resample each candidate to CARD_WIDTH x CARD_HEIGHT

Design notes:
    - The slot width is estimated per screenshot, so captures taken at
      different resolutions need no calibration.
    - Inside a band, a row stays "in band" while its long streak (runs
      joined across gaps no wider than the slot width) still spans as many
      slots as the band started with. Art, badges and UI chrome punch holes
      in individual runs; they do not break the band.
    - Band bookkeeping is split into pure steps: run-length histogram,
      per-row classification, and grouping of row flags into bands.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from color_mask import SLOT_MASK, build_mask
from config import (
    CARD_WIDTH, CARD_HEIGHT, CARD_RATIO, CARD_RATIO_TOLERANCE, MIN_SLOT_AREA,
    ROW_MIN_RUN, STREAK_RATIO, MIN_BAND_LENGTH, MAX_MERGE_GAP, DEBUG_DIR,
)

logger = logging.getLogger("slot_detect")


# ─────────────────────────────────────────────────────────────
# GEOMETRY
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Band:
    """Half-open interval [start, end) along one scan axis."""
    start: int
    end: int

    @property
    def length(self):
        return self.end - self.start


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle; right and bottom are exclusive."""
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self):
        return self.right - self.left

    @property
    def height(self):
        return self.bottom - self.top

    @property
    def area(self):
        return self.width * self.height

    @property
    def ratio(self):
        return self.width / self.height if self.height else 0.0

    def intersect(self, other) -> Optional["Rect"]:
        left = max(self.left, other.left)
        top = max(self.top, other.top)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return None
        return Rect(left, top, right, bottom)


def crop_region(card, region):
    """Crop (x, y, width, height) from a normalized card."""
    x, y, w, h = region
    return card[y:y + h, x:x + w]


# ─────────────────────────────────────────────────────────────
# STREAK SEGMENTATION
# ─────────────────────────────────────────────────────────────

def _row_runs(row):
    """Start and end (exclusive) indices of every run of True in a 1-D array."""
    padded = np.concatenate(([False], row, [False]))
    edges = np.flatnonzero(padded[1:] != padded[:-1])
    return edges[0::2], edges[1::2]


def _streak_length(slot_width, count=1):
    return int(count * slot_width * STREAK_RATIO + 1e-9)


def estimate_slot_width(mask, min_width):
    """
    Most frequent horizontal run length (>= min_width) over all rows.

    Ties go to the longer run. Returns 0 when no row has a qualifying run.
    """
    histogram = Counter()
    for row in mask > 0:
        starts, ends = _row_runs(row)
        lengths = ends - starts
        histogram.update(int(n) for n in lengths[lengths >= max(min_width, 1)])
    if not histogram:
        return 0
    width, _ = max(histogram.items(), key=lambda kv: (kv[1], kv[0]))
    return width


def classify_row(starts, ends, slot_width, band_streaks=None):
    """
    Decide whether one row belongs to a band of slots.

    Args:
        starts, ends: run boundaries from _row_runs()
        slot_width: estimated slot width
        band_streaks: number of slots counted when the current band began,
            or None when the previous row was not in a band

    Returns:
        (is_in_band, streak_count). streak_count is only meaningful when a
        band starts on this row.
    """
    lengths = ends - starts
    if band_streaks is None:
        streaks = int(np.count_nonzero(lengths >= _streak_length(slot_width)))
        return streaks > 0, streaks

    if len(starts) == 0:
        return False, band_streaks

    # join runs separated by gaps no wider than the slot (+1, the gap pixel
    # that triggers the reset is itself counted)
    gaps = starts[1:] - ends[:-1]
    breaks = np.flatnonzero(gaps > slot_width + 1)
    cluster_starts = np.concatenate(([starts[0]], starts[breaks + 1]))
    cluster_ends = np.concatenate((ends[breaks], [ends[-1]]))
    longest = int((cluster_ends - cluster_starts).max())
    return longest >= _streak_length(slot_width, band_streaks), band_streaks


def group_bands(flags, min_length=MIN_BAND_LENGTH, max_gap=MAX_MERGE_GAP):
    """
    Group per-row flags into bands.

    Contiguous flagged rows form a raw band; raw bands shorter than
    min_length are dropped; a band starting within max_gap rows of the
    previous band's end is merged into it.
    """
    flags = np.asarray(flags, dtype=bool)
    starts, ends = _row_runs(flags)
    bands = []
    for start, end in zip(starts.tolist(), ends.tolist()):
        if end - start < min_length:
            continue
        if bands and start - bands[-1].end <= max_gap:
            bands[-1] = Band(bands[-1].start, end)
        else:
            bands.append(Band(start, end))
    return bands


def find_bands(mask, slot_width):
    """Row bands of a mask for a given slot width."""
    if slot_width <= 0:
        return []

    flags = []
    band_streaks = None
    for row in mask > 0:
        starts, ends = _row_runs(row)
        in_band, streaks = classify_row(starts, ends, slot_width, band_streaks)
        flags.append(in_band)
        if not in_band:
            band_streaks = None
        elif band_streaks is None:
            band_streaks = streaks
    return group_bands(flags)


def segment(mask, min_width):
    """
    Run both passes of the streak segmenter along the rows of `mask`.

    Returns (bands, slot_width).
    """
    slot_width = estimate_slot_width(mask, min_width)
    bands = find_bands(mask, slot_width)
    logger.debug("Segmented %d bands, slot width %d (floor %d)",
                 len(bands), slot_width, min_width)
    return bands, slot_width


# ─────────────────────────────────────────────────────────────
# AREA LOCATOR
# ─────────────────────────────────────────────────────────────

def locate_slots(row_bands, column_bands, width, height):
    """
    Intersect every row band with every column band.

    Keeps intersections larger than MIN_SLOT_AREA whose aspect ratio is
    within CARD_RATIO_TOLERANCE of the canonical card. Output is row-major,
    i.e. approximately left-to-right, top-to-bottom.
    """
    slots = []
    for r in row_bands:
        row_rect = Rect(0, r.start, width, r.end)
        for c in column_bands:
            area = row_rect.intersect(Rect(c.start, 0, c.end, height))
            if area is None or area.area <= MIN_SLOT_AREA:
                continue
            if abs(area.ratio - CARD_RATIO) >= CARD_RATIO_TOLERANCE:
                continue
            slots.append(area)
    return slots


def find_slot_areas(img_bgr, tag="0"):
    """
    Find candidate card rectangles in a screenshot.

    Args:
        img_bgr: BGR screenshot (numpy array from cv2.imread)
        tag: label for debug output

    Returns list of Rect in approximate reading order.
    """
    if img_bgr.size == 0:
        return []

    mask = build_mask(img_bgr, SLOT_MASK)
    save_debug_image(f"slot_mask_{tag}.png", mask)

    height, width = mask.shape
    rows, slot_width = segment(mask, ROW_MIN_RUN)
    columns, _ = segment(mask.T, slot_width)

    slots = locate_slots(rows, columns, width, height)
    logger.info(
        "Screenshot %s: %dx%d, slot width %d, %d row bands, "
        "%d column bands, %d slots",
        tag, width, height, slot_width, len(rows), len(columns), len(slots)
    )
    return slots


# ─────────────────────────────────────────────────────────────
# NORMALIZER
# ─────────────────────────────────────────────────────────────

def normalize_slot(img_bgr, rect):
    """
    Crop a slot and resample it to the canonical card size.

    Downscaling is preceded by a Gaussian blur proportional to the scale
    factor (anti-aliasing); a slot already at canonical size is copied.
    """
    crop = img_bgr[rect.top:rect.bottom, rect.left:rect.right]
    h, w = crop.shape[:2]
    if (w, h) == (CARD_WIDTH, CARD_HEIGHT):
        return crop.copy()

    scale = max(w / CARD_WIDTH, h / CARD_HEIGHT)
    if scale > 1:
        sigma = (scale - 1) / 2
        if sigma > 0:
            crop = cv2.GaussianBlur(crop, (0, 0), sigma)
        interpolation = cv2.INTER_AREA
    else:
        interpolation = cv2.INTER_CUBIC
    return cv2.resize(crop, (CARD_WIDTH, CARD_HEIGHT), interpolation=interpolation)


def combine_screenshots(screenshots):
    """
    Stack screenshots vertically into one tall image.

    Every screenshot is resized to the widest width (height unchanged) so
    overlapping captures of one scrolling list form a continuous grid.
    """
    if not screenshots:
        return np.zeros((0, 0, 3), dtype=np.uint8)
    max_w = max(s.shape[1] for s in screenshots)
    parts = []
    for s in screenshots:
        if s.shape[1] != max_w:
            s = cv2.resize(s, (max_w, s.shape[0]), interpolation=cv2.INTER_CUBIC)
        parts.append(s)
    combined = np.vstack(parts)
    save_debug_image("combined.png", combined)
    return combined


def save_debug_image(name, img):
    """Write an intermediate image to DEBUG_DIR when debugging is enabled."""
    if DEBUG_DIR is None:
        return
    DEBUG_DIR.mkdir(parents=True, exist_ok=True)
    cv2.imwrite(str(DEBUG_DIR / name), img)
