"""Pytest configuration and shared fixtures for the collection-screen scanner.

Synthetic screenshots are built from the same geometry the scanner expects:
160x200 cards on the blue screen background, 20px apart, with seeded
block-noise art, a level glyph and right-aligned points digits. Glyphs are
painted as the 3x3 dilation of the shipped templates, one pixel bolder than
the template, which the badge readers erode back to the template itself.
"""
import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from catalog import Catalog, CatalogItem
from config import CARD_WIDTH, CARD_HEIGHT, LEVEL_REGION, POINTS_ANCHOR, POINTS_PITCH
from templates import load_digit_templates, load_level_templates


BACKGROUND_BGR = (230, 140, 50)
CARD_BODY_BGR = (70, 70, 70)
LEVEL_GLYPH_BGR = (40, 220, 160)
POINTS_GLYPH_BGR = (30, 160, 250)
SLOT_GAP = 20
ROW_SLOTS = 4

GLYPH_KERNEL = np.ones((3, 3), dtype=np.uint8)

DRIVERS = ["mario", "luigi", "peach", "daisy", "yoshi"]
KARTS = ["pipe_frame", "mach_8", "badwagon"]


def paint_glyph(card, template, left, top, color):
    """Paint the dilated template mask onto `card` with its top-left at (left, top)."""
    mask = cv2.dilate(template.image, GLYPH_KERNEL) > 0
    h, w = mask.shape
    card[top:top + h, left:left + w][mask] = color


def render_card(seed, level=None, points=None):
    """A canonical-size card with seeded art and optional badges."""
    card = np.full((CARD_HEIGHT, CARD_WIDTH, 3), CARD_BODY_BGR, dtype=np.uint8)

    # Block-noise art, never blue-hued (blue <= min(green, red))
    rng = np.random.RandomState(seed)
    blocks = rng.randint(40, 256, size=(9, 10, 3)).astype(np.uint8)
    blocks[..., 0] = np.minimum(blocks[..., 0], np.minimum(blocks[..., 1], blocks[..., 2]))
    card[30:120, 20:120] = cv2.resize(blocks, (100, 90), interpolation=cv2.INTER_NEAREST)

    if level is not None:
        x, y, w, h = LEVEL_REGION
        template = dict((t.label, t) for t in load_level_templates())[level]
        gh, gw = template.image.shape
        paint_glyph(card, template, x + (w - gw) // 2, y + (h - gh) // 2, LEVEL_GLYPH_BGR)

    if points is not None:
        x, y, _, h = POINTS_ANCHOR
        digits = load_digit_templates()
        for position, digit in enumerate(reversed(str(points))):
            template = digits[int(digit)]
            gh, gw = template.image.shape
            left = x - position * POINTS_PITCH + 30 - gw
            paint_glyph(card, template, left, y + (h - gh) // 2, POINTS_GLYPH_BGR)
    return card


def compose_screenshot(cards, row_slots=ROW_SLOTS, rows=None):
    """Lay cards out in reading order on the blue screen background."""
    if rows is None:
        rows = max(1, -(-len(cards) // row_slots))
    width = SLOT_GAP + row_slots * (CARD_WIDTH + SLOT_GAP)
    height = SLOT_GAP + rows * (CARD_HEIGHT + SLOT_GAP)
    screen = np.full((height, width, 3), BACKGROUND_BGR, dtype=np.uint8)
    for i, card in enumerate(cards):
        row, col = divmod(i, row_slots)
        top = SLOT_GAP + row * (CARD_HEIGHT + SLOT_GAP)
        left = SLOT_GAP + col * (CARD_WIDTH + SLOT_GAP)
        screen[top:top + CARD_HEIGHT, left:left + CARD_WIDTH] = card
    return screen


@pytest.fixture(scope="session")
def catalog():
    """Five drivers and three karts; listed out of sort order on purpose."""
    items = [
        CatalogItem("daisy", "driver", "Daisy", 4),
        CatalogItem("mario", "driver", "Mario", 1),
        CatalogItem("yoshi", "driver", "Yoshi", 5),
        CatalogItem("peach", "driver", "Peach", 3),
        CatalogItem("luigi", "driver", "Luigi", 2),
        CatalogItem("mach_8", "kart", "Mach 8", 2),
        CatalogItem("pipe_frame", "kart", "Pipe Frame", None),
        CatalogItem("badwagon", "kart", "Badwagon", 7),
    ]
    return Catalog(items)


ITEM_SEEDS = {item_id: seed for seed, item_id in enumerate(DRIVERS + KARTS)}


@pytest.fixture(scope="session")
def item_cards():
    """{item_id: card image} with distinct art per item, no badges."""
    return {item_id: render_card(seed) for item_id, seed in ITEM_SEEDS.items()}


@pytest.fixture
def make_card():
    return render_card


@pytest.fixture
def make_item_card():
    """Card for a catalog item: the item's art plus the given badges."""
    def _make(item_id, level=None, points=None):
        return render_card(ITEM_SEEDS[item_id], level, points)
    return _make


@pytest.fixture
def make_screenshot():
    return compose_screenshot
