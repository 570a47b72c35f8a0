"""
catalog.py — Item catalog and hash catalog.

Item catalog: data/catalog.json
    {"items": [{"id": "mario", "kind": "driver", "name": "Mario", "sort": 1}, ...]}

Hash catalog: data/hash_database.json
    {"version": 1, "built_at": "...", "item_count": N,
     "hashes": {"mario": ["<hash>", "<hash>"], ...}}

An identity may carry several hashes (one per observed capture); matching
treats each of them as an independent entry.
"""

import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Optional

from config import CATALOG_FILE, HASH_DB_FILE

logger = logging.getLogger("catalog")

# Terminal entry appended to every catalog order
END_OF_LIST = "<the_end>"

HASH_DB_VERSION = 1


# ─────────────────────────────────────────────────────────────
# ITEM CATALOG
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CatalogItem:
    id: str
    kind: str
    name: str = ""
    sort: Optional[int] = None


class Catalog:
    """Known items of every kind, with their declared sort positions."""

    def __init__(self, items=()):
        self.items = list(items)
        self._by_id = {item.id: item for item in self.items}

    def __len__(self):
        return len(self.items)

    def __contains__(self, item_id):
        return item_id in self._by_id

    def get(self, item_id):
        return self._by_id.get(item_id)

    def kind_of(self, item_id):
        """Kind of a known item, or None."""
        item = self.get(item_id)
        return item.kind if item else None

    def name_of(self, item_id):
        item = self.get(item_id)
        return item.name if item and item.name else item_id

    def kinds(self):
        return sorted({item.kind for item in self.items})

    def items_of(self, kind):
        """Items of one kind by sort key; unsorted items come first."""
        members = [item for item in self.items if item.kind == kind]
        return sorted(members, key=lambda item: -1 if item.sort is None else item.sort)

    def order(self, kind):
        """
        Catalog order for one kind: item ids in sort order, followed by
        END_OF_LIST. Returns None for a kind with no items.
        """
        members = self.items_of(kind)
        if not members:
            return None
        return tuple(item.id for item in members) + (END_OF_LIST,)

    @classmethod
    def from_dict(cls, data):
        items = []
        for entry in data.get("items", []):
            sort = entry.get("sort")
            items.append(CatalogItem(
                id=entry["id"],
                kind=entry["kind"],
                name=entry.get("name", ""),
                sort=int(sort) if sort is not None else None,
            ))
        return cls(items)


def load_catalog(path=CATALOG_FILE):
    """
    Load the item catalog.
    Exits if the catalog file is missing.
    """
    if not path.exists():
        print(f"Error: Catalog not found at {path}")
        sys.exit(1)

    with open(path, "r") as f:
        catalog = Catalog.from_dict(json.load(f))
    logger.info("Loaded %d catalog items from %s", len(catalog), path)
    return catalog


# ─────────────────────────────────────────────────────────────
# HASH CATALOG
# ─────────────────────────────────────────────────────────────

class HashCatalog:
    """Identity -> list of composite hash strings."""

    def __init__(self, hashes=None):
        self.hashes = {item_id: list(values) for item_id, values in (hashes or {}).items()}

    def __len__(self):
        return len(self.hashes)

    def __contains__(self, item_id):
        return item_id in self.hashes

    def __eq__(self, other):
        if not isinstance(other, HashCatalog):
            return NotImplemented
        return self.hashes == other.hashes

    def __repr__(self):
        return f"HashCatalog({len(self)} items, {self.hash_count} hashes)"

    @property
    def hash_count(self):
        return sum(len(v) for v in self.hashes.values())

    def get(self, item_id):
        return list(self.hashes.get(item_id, []))

    def entries(self):
        """Yield (item_id, hash) for every stored hash."""
        for item_id, values in self.hashes.items():
            for h in values:
                yield item_id, h

    def add(self, item_id, card_hash):
        self.hashes.setdefault(item_id, []).append(card_hash)

    def merge(self, other):
        """New catalog holding this catalog's hashes plus other's, appended per id."""
        merged = HashCatalog(self.hashes)
        for item_id, card_hash in other.entries():
            merged.add(item_id, card_hash)
        return merged

    @classmethod
    def from_pairs(cls, pairs):
        catalog = cls()
        for item_id, card_hash in pairs:
            catalog.add(item_id, card_hash)
        return catalog

    def to_dict(self):
        return {
            "version": HASH_DB_VERSION,
            "built_at": time.strftime("%Y-%m-%d %H:%M:%S"),
            "item_count": len(self.hashes),
            "hashes": self.hashes,
        }


def load_hash_database(path=HASH_DB_FILE):
    """
    Load the hash catalog from disk.
    Returns an empty HashCatalog when the file does not exist.
    """
    if not path.exists():
        logger.info("No hash database at %s", path)
        return HashCatalog()

    with open(path, "r") as f:
        data = json.load(f)
    hashes = HashCatalog(data.get("hashes", {}))
    logger.info("Loaded %d hashes for %d items from %s",
                hashes.hash_count, len(hashes), path)
    return hashes


def save_hash_database(hashes, path=HASH_DB_FILE):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(hashes.to_dict(), f, indent=1)
    logger.info("Saved %d items to %s", len(hashes), path)
