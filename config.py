"""
config.py
Central configuration for the inventory screenshot scanner.
Overrides loaded from .env file (not committed to git).
"""

import os
from pathlib import Path

# ============================================
# Paths
# ============================================
BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
CATALOG_FILE = DATA_DIR / "catalog.json"
HASH_DB_FILE = DATA_DIR / "hash_database.json"
TEMPLATE_DIR = DATA_DIR / "templates"

# ============================================
# .env loader (no external dependency)
# ============================================
_env_path = BASE_DIR / ".env"
if _env_path.exists():
    with open(_env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                os.environ.setdefault(key.strip(), value.strip())

# ============================================
# Canonical card geometry
# ============================================
# Every detected slot is resampled to this size; all crop offsets below
# are in canonical card pixels.
CARD_WIDTH = 160
CARD_HEIGHT = 200
CARD_RATIO = CARD_WIDTH / CARD_HEIGHT   # 0.8
CARD_RATIO_TOLERANCE = 0.1
MIN_SLOT_AREA = 2500                     # px, rejects sliver intersections

# ============================================
# Streak segmentation
# ============================================
ROW_MIN_RUN = 50          # run-length floor for the row pass
STREAK_RATIO = 0.9        # a streak must cover 90% of the slot width
MIN_BAND_LENGTH = 4       # shorter bands are noise
MAX_MERGE_GAP = 3         # bands this close are one band

# ============================================
# Colour predicates (OpenCV HSV: H 0-179, S 0-255, V 0-255)
# Each entry is (lower, upper); a predicate matches the union of its ranges.
# ============================================
# Screen background behind the card grid (blue), plus near-black chrome.
# The slot mask is the inverse: everything that is not background.
SLOT_BACKGROUND_RANGES = [
    ((85, 80, 130), (130, 255, 255)),
    ((0, 0, 0), (179, 255, 10)),
]

# Level badge glyphs are yellow-green.
LEVEL_GLYPH_RANGES = [
    ((25, 100, 160), (50, 255, 255)),
]

# Points digits are orange, or plain white on some badges.
POINTS_GLYPH_RANGES = [
    ((0, 120, 180), (28, 255, 255)),
    ((0, 0, 150), (179, 40, 255)),
]

EROSION_RADIUS = 1

# ============================================
# Level badge
# ============================================
LEVEL_REGION = (125, 125, 32, 35)   # x, y, width, height
LEVEL_LABELS = tuple(range(1, 8))
LEVEL_THRESHOLD = 0.6

# ============================================
# Points badge
# ============================================
POINTS_ANCHOR = (125, 155, 32, 35)  # ones digit: x, y, width, height
POINTS_PITCH = 22                   # leftward shift per decimal position
POINTS_DIGIT_COUNT = 4
POINTS_LABELS = tuple(range(10))
POINTS_THRESHOLD = 0.6
# A position whose contribution reaches this is treated as a false glyph
# in an empty slot of the badge.
POINTS_CONTRIBUTION_LIMIT = 2000

# ============================================
# Identity hashing
# ============================================
HASH_REGION = (20, 30, 120, 100)    # x, y, width, height
HASH_SIZE = 8
HASH_BASE_HUES = (0, 120, 240)      # degrees: red, green, blue proximity
HASH_COLLAPSE_DISTANCE = 2          # component distances at or below -> 1
HASH_THRESHOLD = int(os.environ.get("SCANNER_HASH_THRESHOLD", "4000"))

# Bootstrap: one visual row of the collection grid
BOOTSTRAP_CHUNK_SIZE = 4

# ============================================
# Item plausibility
# A slot that is mostly bright blue is empty background, not an item.
# ============================================
EMPTY_BLUE_FLOOR = 200
EMPTY_BLUE_MAX_RATIO = 0.9

# ============================================
# Debug
# ============================================
# Save masks and normalized cards to this directory; None to disable.
_debug_dir = os.environ.get("SCANNER_DEBUG_DIR", "")
DEBUG_DIR = Path(_debug_dir) if _debug_dir else None
