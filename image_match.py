"""
image_match.py
Perceptual hashing for art-based item identification.

A card's identity hash is a composite of seven per-channel hashes computed
over the art region (HASH_REGION) of the normalized card:

  - red, green, blue channels
  - hue proximity to 0, 120 and 240 degrees:
        255 * (1 - min(hue distance, 90) / 90)
    with undefined hue (zero saturation) treated as 180 degrees away
  - inverse saturation: 255 * (1 - saturation)

Each channel is hashed with a DCT-preprocessed double-gradient hash
(horizontal and vertical neighbour comparisons over the low-frequency DCT
block, 2 * HASH_SIZE**2 bits) and the hex codes are joined with "|".

Distance between two composite hashes:
  - component counts differ (or a component is malformed) -> HASH_DISTANCE_MAX
  - otherwise the PRODUCT of the per-component Hamming distances, where any
    distance <= HASH_COLLAPSE_DISTANCE counts as 1

A product keeps one well-matching channel from masking several poor ones,
while identical images still come out at exactly 1.

Distance scale (7 components, 128 bits each):
  - 1:        identical
  - < 4000:   same item (HASH_THRESHOLD)
  - 10^6+:    different item
"""

import logging
import sys

import cv2
import imagehash
import numpy as np
from PIL import Image

from config import (
    HASH_REGION, HASH_SIZE, HASH_BASE_HUES, HASH_COLLAPSE_DISTANCE,
    HASH_THRESHOLD, EMPTY_BLUE_FLOOR, EMPTY_BLUE_MAX_RATIO,
)
from slot_detect import crop_region

logger = logging.getLogger("image_match")

HASH_SEPARATOR = "|"
HASH_COMPONENTS = 3 + len(HASH_BASE_HUES) + 1
HASH_DISTANCE_MAX = sys.maxsize

UNDEFINED_HUE_DISTANCE = 180.0
MAX_HUE_DISTANCE = 90.0


# ============================================
# Channel images
# ============================================

def hue_proximity(hue, saturation, base_hue):
    """
    Per-pixel closeness of hue to base_hue, as a uint8 image.

    Args:
        hue: float array in degrees [0, 360)
        saturation: float array in [0, 1]
        base_hue: reference hue in degrees
    """
    distance = np.abs(hue - base_hue) % 360.0
    distance = np.minimum(distance, 360.0 - distance)
    distance = np.where(saturation > 0, distance, UNDEFINED_HUE_DISTANCE)
    closeness = 1.0 - np.minimum(distance, MAX_HUE_DISTANCE) / MAX_HUE_DISTANCE
    return np.round(255.0 * closeness).astype(np.uint8)


def channel_images(img_bgr):
    """The seven single-channel images hashed for identity, in hash order."""
    blue, green, red = cv2.split(img_bgr)
    hsv = cv2.cvtColor(img_bgr.astype(np.float32) / 255.0, cv2.COLOR_BGR2HSV)
    hue, saturation = hsv[..., 0], hsv[..., 1]

    channels = [red, green, blue]
    for base_hue in HASH_BASE_HUES:
        channels.append(hue_proximity(hue, saturation, base_hue))
    channels.append(np.round(255.0 * (1.0 - saturation)).astype(np.uint8))
    return channels


# ============================================
# Hashing
# ============================================

def gradient_hash(channel, hash_size=HASH_SIZE):
    """
    DCT-preprocessed double-gradient hash of a single-channel image.

    The image is shrunk to 4 * hash_size square, transformed with a 2-D DCT,
    and the (hash_size + 1)^2 lowest frequencies are compared with their
    right and lower neighbours.
    """
    side = 4 * hash_size
    img = Image.fromarray(channel).resize((side, side), Image.Resampling.LANCZOS)
    pixels = np.asarray(img, dtype=np.float32)
    low = cv2.dct(pixels)[:hash_size + 1, :hash_size + 1]

    horizontal = low[:hash_size, 1:] > low[:hash_size, :-1]
    vertical = low[1:, :hash_size] > low[:-1, :hash_size]
    return imagehash.ImageHash(np.concatenate([horizontal, vertical]))


def compute_card_hash(card_bgr):
    """Composite identity hash string of a normalized card."""
    art = crop_region(card_bgr, HASH_REGION)
    return HASH_SEPARATOR.join(str(gradient_hash(c)) for c in channel_images(art))


def _parse_component(component):
    return imagehash.hex_to_flathash(component, HASH_SIZE)


def hash_distance(hash_1, hash_2, collapse=HASH_COLLAPSE_DISTANCE):
    """
    Aggregate distance between two composite hashes.

    Returns HASH_DISTANCE_MAX for hashes that cannot be compared.
    """
    parts_1 = hash_1.split(HASH_SEPARATOR)
    parts_2 = hash_2.split(HASH_SEPARATOR)
    if len(parts_1) != len(parts_2):
        return HASH_DISTANCE_MAX

    product = 1
    for a, b in zip(parts_1, parts_2):
        try:
            d = _parse_component(a) - _parse_component(b)
        except (ValueError, TypeError):
            return HASH_DISTANCE_MAX
        product *= 1 if d <= collapse else int(d)
    return product


# ============================================
# Matching
# ============================================

def find_match(card_hash, entries, threshold=HASH_THRESHOLD):
    """
    Find the closest catalog hash.

    Args:
        card_hash: composite hash of the query card
        entries: iterable of (item_id, hash) pairs
        threshold: acceptance bound (exclusive)

    Returns (item_id, distance). item_id is None when the closest entry is
    not under the threshold; distance is the closest distance seen.
    """
    best_id = None
    best = HASH_DISTANCE_MAX
    for item_id, h in entries:
        d = hash_distance(card_hash, h)
        if d < best:
            best_id, best = item_id, d

    if best_id is not None and best < threshold:
        logger.debug("hash match %s dist=%d", best_id, best)
        return best_id, best
    if best_id is not None:
        logger.debug("no hash match (closest %s dist=%d)", best_id, best)
    return None, best


def is_plausible_item(card_bgr):
    """False when the card is mostly bright blue, i.e. empty background."""
    blue = card_bgr[..., 0]
    ratio = np.count_nonzero(blue > EMPTY_BLUE_FLOOR) / blue.size
    return ratio < EMPTY_BLUE_MAX_RATIO
