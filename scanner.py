"""
scanner.py — Collection-screen scanner — main entry point.

Turns screenshots of the in-game collection screen into inventory records.

Flow per screenshot:
  1. find_slot_areas() → candidate card rectangles
  2. normalize_slot() → 160x200 card
  3. compute_card_hash() + find_match() → identity (or unresolved)
  4. read_level() / read_points() → badge values (or unresolved)
Then, over all screenshots of the batch in capture order:
  5. deduce_missing() → identities recovered from catalog order
  6. build_inventory() → {kind: {identity: InventoryRecord}}

Unresolved attributes are None. A card becomes an inventory record only
when identity, level and points are all resolved. Cards identified by
deduction (step 5) keep their crop and are reported as new hash
observations, to be merged into the hash database.

Usage:
    python3 scanner.py shot1.png shot2.png           # print inventory
    python3 scanner.py shots/*.png --save-hashes     # also store new hashes
    python3 scanner.py shot.png --verbose            # per-slot debug output
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from badges import read_level, read_points
from catalog import HashCatalog, load_catalog, load_hash_database, save_hash_database
from config import CATALOG_FILE, HASH_DB_FILE, HASH_THRESHOLD
from image_match import compute_card_hash, find_match, is_plausible_item
from sequence import deduce_missing
from slot_detect import find_slot_areas, normalize_slot, save_debug_image

logger = logging.getLogger("scanner")


# ─────────────────────────────────────────────────────────────
# RESULT TYPES
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class InventoryRecord:
    identity: str
    level: int
    points: int


@dataclass(frozen=True)
class RecognizedCard:
    """
    Per-slot recognition result.

    `image` is kept only while the identity is unresolved (or was filled in
    by deduction), so the crop stays available for hash bootstrapping.
    """
    identity: Optional[str]
    kind: Optional[str]
    level: Optional[int]
    points: Optional[int]
    hash: str
    image: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    @property
    def is_complete(self):
        return None not in (self.identity, self.level, self.points)

    def to_record(self):
        if not self.is_complete:
            raise ValueError(
                f"Incomplete card: identity={self.identity} "
                f"level={self.level} points={self.points}"
            )
        return InventoryRecord(self.identity, self.level, self.points)


# ─────────────────────────────────────────────────────────────
# RECOGNITION
# ─────────────────────────────────────────────────────────────

def recognize_card(card, hash_catalog=None, catalog=None, threshold=HASH_THRESHOLD):
    """
    Classify one normalized card.

    Returns a RecognizedCard, or None when the card is unidentified and
    looks like empty screen background.
    """
    card_hash = compute_card_hash(card)
    identity, distance = None, None
    if hash_catalog is not None:
        identity, distance = find_match(card_hash, hash_catalog.entries(), threshold)

    if identity is None and not is_plausible_item(card):
        logger.debug("dropping empty slot")
        return None

    level = read_level(card)
    points = read_points(card)
    kind = catalog.kind_of(identity) if catalog is not None and identity else None
    logger.debug("card id=%s dist=%s level=%s points=%s", identity, distance, level, points)
    return RecognizedCard(
        identity=identity,
        kind=kind,
        level=level,
        points=points,
        hash=card_hash,
        image=card if identity is None else None,
    )


def screenshot_to_cards(img_bgr, hash_catalog=None, catalog=None,
                        threshold=HASH_THRESHOLD, tag="0"):
    """All recognized cards of one screenshot, in slot order."""
    cards = []
    for i, rect in enumerate(find_slot_areas(img_bgr, tag)):
        card = normalize_slot(img_bgr, rect)
        save_debug_image(f"card_{tag}_{i:02d}.png", card)
        result = recognize_card(card, hash_catalog, catalog, threshold)
        if result is not None:
            cards.append(result)
    return cards


def screenshots_to_cards(screenshots, hash_catalog=None, catalog=None,
                         threshold=HASH_THRESHOLD):
    """
    Recognize a batch of screenshots in capture order.

    With a catalog, unresolved identities are deduced from catalog order
    across the whole batch.
    """
    cards = []
    for n, img in enumerate(screenshots):
        cards.extend(screenshot_to_cards(img, hash_catalog, catalog, threshold, tag=str(n)))
    if catalog is not None:
        cards = deduce_missing(cards, catalog)
    return cards


# ─────────────────────────────────────────────────────────────
# INVENTORY
# ─────────────────────────────────────────────────────────────

def build_inventory(cards, catalog):
    """
    Group complete cards into {kind: {identity: InventoryRecord}}.

    Later observations of the same identity replace earlier ones.
    """
    inventory = {}
    for card in cards:
        if not card.is_complete:
            continue
        if card.identity not in catalog:
            logger.warning("Skipping %s: not in catalog", card.identity)
            continue
        kind = card.kind or catalog.kind_of(card.identity)
        inventory.setdefault(kind, {})[card.identity] = card.to_record()
    return inventory


def new_hash_observations(cards):
    """Hashes of cards whose identity was recovered by deduction."""
    return HashCatalog.from_pairs(
        (card.identity, card.hash)
        for card in cards
        if card.identity is not None and card.image is not None
    )


def screenshots_to_inventory(screenshots, hash_catalog, catalog, threshold=HASH_THRESHOLD):
    """
    Full pipeline.

    Returns (inventory, new_hashes); the given hash catalog is not modified.
    """
    cards = screenshots_to_cards(screenshots, hash_catalog, catalog, threshold)
    return build_inventory(cards, catalog), new_hash_observations(cards)


# ─────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────

def load_screenshots(paths):
    """Read screenshots with cv2; unreadable files are reported and skipped."""
    screenshots = []
    for path in paths:
        img = cv2.imread(str(path))
        if img is None:
            print(f"  Could not read {path} — skipped")
            continue
        screenshots.append(img)
    return screenshots


def print_inventory_table(inventory, catalog):
    """Print the inventory as a table, one row per item."""
    from prettytable import PrettyTable

    table = PrettyTable()
    table.field_names = ["Kind", "Item", "Name", "Level", "Points"]
    table.align["Item"] = "l"
    table.align["Name"] = "l"
    table.align["Level"] = "r"
    table.align["Points"] = "r"

    for kind in sorted(inventory):
        for identity, record in inventory[kind].items():
            table.add_row([kind, identity, catalog.name_of(identity),
                           record.level, record.points])
    print(table)


def main():
    parser = argparse.ArgumentParser(description="Collection Screen Scanner")
    parser.add_argument("images", nargs="+", type=Path,
                        help="Screenshots, in capture order")
    parser.add_argument("--catalog", type=Path, default=CATALOG_FILE,
                        help="Item catalog JSON")
    parser.add_argument("--hashes", type=Path, default=HASH_DB_FILE,
                        help="Hash database JSON")
    parser.add_argument("--threshold", type=int, default=HASH_THRESHOLD,
                        help="Identity acceptance distance")
    parser.add_argument("--save-hashes", action="store_true",
                        help="Merge newly observed hashes into the hash database")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show per-slot debug output")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    print("=" * 60)
    print("Collection Screen Scanner")
    print("=" * 60)

    start = time.time()
    catalog = load_catalog(args.catalog)
    hash_catalog = load_hash_database(args.hashes)
    print(f"  {len(catalog)} catalog items, {len(hash_catalog)} hashed items")

    screenshots = load_screenshots(args.images)
    if not screenshots:
        print("\nNo readable screenshots")
        sys.exit(1)

    cards = screenshots_to_cards(screenshots, hash_catalog, catalog, args.threshold)
    inventory = build_inventory(cards, catalog)
    new_hashes = new_hash_observations(cards)

    print(f"\n{'=' * 60}")
    print("INVENTORY")
    print(f"{'=' * 60}\n")
    print_inventory_table(inventory, catalog)

    recorded = sum(len(items) for items in inventory.values())
    print(f"\n{'─' * 50}")
    print(f"  Screenshots:      {len(screenshots)}")
    print(f"  Cards found:      {len(cards)}")
    print(f"  Identified:       {sum(1 for c in cards if c.identity)}")
    print(f"  Recorded:         {recorded}")
    print(f"  New hashes:       {new_hashes.hash_count}")
    print(f"  Total time:       {time.time() - start:.1f}s")
    print(f"{'─' * 50}")

    if args.save_hashes and len(new_hashes):
        save_hash_database(hash_catalog.merge(new_hashes), args.hashes)
        print(f"  Saved {new_hashes.hash_count} new hashes to {args.hashes}")


if __name__ == "__main__":
    main()
