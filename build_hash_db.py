"""
build_hash_db.py
Bootstrap the hash database from a full scan of one item kind.

Input is a set of screenshots that together show EVERY item of one kind,
in catalog order, top to bottom (scrolling captures may overlap). The
screenshots are stacked into one tall image and scanned without a hash
catalog. Rows repeated at a scroll boundary are dropped, the remaining
slot count must equal the catalog size, and identities are assigned by
pinning the first and last slot to the first and last catalog item and
deducing everything in between.

Either every slot gets an identity or nothing is written.

Usage:
    python3 build_hash_db.py --kind driver shots/driver_*.png
    python3 build_hash_db.py --kind kart shots/kart_*.png --output data/karts.json
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

from catalog import load_catalog, load_hash_database, save_hash_database, HashCatalog
from config import CATALOG_FILE, HASH_DB_FILE, HASH_THRESHOLD, BOOTSTRAP_CHUNK_SIZE
from image_match import hash_distance
from scanner import screenshot_to_cards, load_screenshots
from sequence import deduce_missing
from slot_detect import combine_screenshots

logger = logging.getLogger("build_hash_db")


class BootstrapError(Exception):
    """Bootstrap could not produce a complete hash catalog."""


class WrongLength(BootstrapError):
    def __init__(self, observed, expected):
        self.observed = observed
        self.expected = expected
        super().__init__(f"There were {observed} items, but {expected} were expected.")


class MissingId(BootstrapError):
    def __init__(self, missing_slots):
        self.missing_slots = list(missing_slots)
        super().__init__(
            f"Could not deduce the identity of slot(s) "
            f"{', '.join(str(s) for s in self.missing_slots)}."
        )


def dedupe_rows(cards, chunk_size=BOOTSTRAP_CHUNK_SIZE, threshold=HASH_THRESHOLD):
    """
    Drop chunks of `chunk_size` cards whose every hash is already within
    `threshold` of a hash in an earlier kept chunk.
    """
    kept = []
    seen = []
    for start in range(0, len(cards), chunk_size):
        chunk = cards[start:start + chunk_size]
        if all(any(hash_distance(card.hash, h) < threshold for h in seen) for card in chunk):
            logger.info("Dropping duplicate row of %d at slot %d", len(chunk), start)
            continue
        seen.extend(card.hash for card in chunk)
        kept.extend(chunk)
    return kept


def bootstrap_hashes(screenshots, kind, catalog, threshold=HASH_THRESHOLD):
    """
    Build the hash catalog of one item kind.

    Returns a HashCatalog with one hash per item.
    Raises WrongLength or MissingId.
    """
    order = catalog.order(kind)
    ids = list(order[:-1]) if order else []

    combined = combine_screenshots(screenshots)
    cards = dedupe_rows(screenshot_to_cards(combined, tag="bootstrap"),
                        threshold=threshold)

    # an unknown kind or an empty scan has nothing to anchor the first and last ids
    if not ids or len(cards) != len(ids):
        logger.warning("Bootstrap %s: %d slots, %d catalog items", kind, len(cards), len(ids))
        raise WrongLength(len(cards), len(ids))

    cards = [replace(card, kind=kind) for card in cards]
    cards[0] = replace(cards[0], identity=ids[0])
    cards[-1] = replace(cards[-1], identity=ids[-1])
    cards = deduce_missing(cards, catalog)

    missing = [i for i, card in enumerate(cards) if card.identity is None]
    if missing:
        logger.warning("Bootstrap %s: %d slots unresolved", kind, len(missing))
        raise MissingId(missing)

    return HashCatalog.from_pairs((card.identity, card.hash) for card in cards)


def main():
    parser = argparse.ArgumentParser(
        description="Bootstrap the hash database from a full catalog scan"
    )
    parser.add_argument("images", nargs="+", type=Path,
                        help="Screenshots of the full list, top to bottom")
    parser.add_argument("--kind", required=True,
                        help="Item kind shown in the screenshots")
    parser.add_argument("--catalog", type=Path, default=CATALOG_FILE,
                        help="Item catalog JSON")
    parser.add_argument("--output", type=Path, default=HASH_DB_FILE,
                        help="Hash database to merge into")
    parser.add_argument("--threshold", type=int, default=HASH_THRESHOLD,
                        help="Duplicate-row distance")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show per-slot debug output")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    print("=" * 60)
    print("Hash Database Bootstrap")
    print("=" * 60)
    print()

    start = time.time()
    catalog = load_catalog(args.catalog)
    if catalog.order(args.kind) is None:
        print(f"Error: no catalog items of kind '{args.kind}'")
        print(f"  Known kinds: {', '.join(catalog.kinds())}")
        sys.exit(1)

    screenshots = load_screenshots(args.images)
    if not screenshots:
        print("No readable screenshots")
        sys.exit(1)

    try:
        new_hashes = bootstrap_hashes(screenshots, args.kind, catalog, args.threshold)
    except BootstrapError as e:
        print(f"\nBootstrap failed: {e}")
        sys.exit(1)

    existing = load_hash_database(args.output)
    known = sum(1 for item_id in new_hashes.hashes if item_id in existing)
    merged = existing.merge(new_hashes)
    save_hash_database(merged, args.output)

    print(f"\n{'=' * 60}")
    print("HASH DATABASE BOOTSTRAP COMPLETE")
    print(f"{'=' * 60}")
    print(f"  Kind:        {args.kind}")
    print(f"  Screenshots: {len(screenshots)}")
    print(f"  Hashed:      {len(new_hashes)} items")
    print(f"  Extended:    {known} already in database")
    print(f"  Total:       {len(merged)} items in database")
    print(f"  Time:        {time.time() - start:.1f}s")
    print(f"  Saved to:    {args.output}")


if __name__ == "__main__":
    main()
