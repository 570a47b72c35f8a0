"""
badges.py
Level and points badge reading via template matching.

Both badges sit at fixed positions on the normalized card:
  - Level: a single digit 1-7, bottom-right corner
  - Points: up to four decimal digits right-aligned under the level badge,
    the ones digit at POINTS_ANCHOR and each more significant digit one
    POINTS_PITCH further left

Each crop is binarized with the badge colour predicate, eroded once to drop
single-pixel noise, then scored against every template with normalized
sum-of-squared-differences (lower is better). A glyph is accepted only if
its best score is under the threshold.
"""

import logging

import cv2

from color_mask import LEVEL_MASK, POINTS_MASK, build_mask, erode
from config import (
    LEVEL_REGION, LEVEL_THRESHOLD,
    POINTS_ANCHOR, POINTS_PITCH, POINTS_DIGIT_COUNT, POINTS_THRESHOLD,
    POINTS_CONTRIBUTION_LIMIT,
)
from slot_detect import crop_region
from templates import load_level_templates, load_digit_templates

logger = logging.getLogger("badges")

# Score reported when a template cannot be placed at all (larger than crop)
NO_MATCH_SCORE = 1.0


def template_score(image, template):
    """Minimum normalized SSD over every alignment of template in image."""
    ih, iw = image.shape[:2]
    th, tw = template.shape[:2]
    if th > ih or tw > iw:
        return NO_MATCH_SCORE
    result = cv2.matchTemplate(image, template, cv2.TM_SQDIFF_NORMED)
    return float(result.min())


def best_template(image, templates, threshold):
    """
    Pick the lowest-scoring template below `threshold`.

    Ties keep the first template in iteration order.

    Returns (label, score); label is None when nothing scores under the
    threshold, and score is then the best score seen.
    """
    best_label = None
    best_score = threshold
    lowest = NO_MATCH_SCORE
    for t in templates:
        score = template_score(image, t.image)
        lowest = min(lowest, score)
        if score < best_score:
            best_label, best_score = t.label, score
    if best_label is None:
        return None, lowest
    return best_label, best_score


def badge_mask(card, region, predicate):
    """Binarized, eroded crop of one badge region."""
    return erode(build_mask(crop_region(card, region), predicate))


def read_level(card, templates=None, threshold=LEVEL_THRESHOLD):
    """
    Read the level badge of a normalized card.

    Returns the level (1-7) or None when no template is close enough.
    """
    if templates is None:
        templates = load_level_templates()
    mask = badge_mask(card, LEVEL_REGION, LEVEL_MASK)
    level, score = best_template(mask, templates, threshold)
    logger.debug("level=%s score=%.3f", level, score)
    return level


def points_region(position):
    """Crop rectangle for a decimal position (0 = ones)."""
    x, y, w, h = POINTS_ANCHOR
    return (x - position * POINTS_PITCH, y, w, h)


def read_points_digits(card, templates=None, threshold=POINTS_THRESHOLD):
    """Per-position digits, ones first; None where no glyph matched."""
    if templates is None:
        templates = load_digit_templates()
    digits = []
    for position in range(POINTS_DIGIT_COUNT):
        mask = badge_mask(card, points_region(position), POINTS_MASK)
        digit, score = best_template(mask, templates, threshold)
        logger.debug("points[%d]=%s score=%.3f", position, digit, score)
        digits.append(digit)
    return digits


def compose_points(digits, limit=POINTS_CONTRIBUTION_LIMIT):
    """
    Combine per-position digits (ones first) into a points value.

    A position contributes digit * 10**position only when that
    contribution is under `limit`. Returns None when nothing contributed.
    """
    points = None
    for position, digit in enumerate(digits):
        if digit is None:
            continue
        contribution = digit * 10 ** position
        if contribution < limit:
            points = (points or 0) + contribution
    return points


def read_points(card, templates=None, threshold=POINTS_THRESHOLD,
                limit=POINTS_CONTRIBUTION_LIMIT):
    """Read the points badge of a normalized card; None if unreadable."""
    return compose_points(read_points_digits(card, templates, threshold), limit)
