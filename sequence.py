"""
sequence.py
Fill in unidentified slots from catalog position continuity.

The collection screen lists items in catalog order, so two confidently
identified slots i < j whose catalog positions differ by exactly j - i pin
down every slot between them. The sequence is followed by a synthetic
END_OF_LIST slot, which lets a trailing run of unknown slots be resolved
against the end of the catalog.

States:
    seeking_type  no catalog order loaded for the current kind
    tracking      order loaded; optional anchor, pending unknown slots

The deducer cannot recover from a misidentification that straddles a kind
change, or from an anchor pair whose offsets disagree. Those runs simply
stay unresolved.
"""

import logging
from dataclasses import dataclass, replace

from catalog import END_OF_LIST

logger = logging.getLogger("sequence")

SEEKING_TYPE = "seeking_type"
TRACKING = "tracking"


@dataclass(frozen=True)
class Anchor:
    slot: int
    position: int


class SequenceDeducer:
    """
    Single-pass state machine over slot identities.

    feed() takes the slot identities in order (None for unresolved);
    finish() feeds the END_OF_LIST sentinel. Deduced identities collect in
    `deduced` as {slot_index: identity}.
    """

    def __init__(self, catalog):
        self.catalog = catalog
        self.kind = None
        self.order = None
        self.anchor = None
        self.pending = []
        self.deduced = {}
        self.index = 0

    @property
    def state(self):
        return SEEKING_TYPE if self.order is None else TRACKING

    def _kind_of(self, identity):
        if identity == END_OF_LIST:
            return self.kind
        return self.catalog.kind_of(identity)

    def _switch_kind(self, kind):
        self.kind = kind
        self.order = self.catalog.order(kind) if kind is not None else None
        self.anchor = None
        self.pending = []

    def _backfill(self, slot, identity):
        """Fill pending slots when the anchor and `slot` agree on the offset."""
        expected = self.anchor.position + (slot - self.anchor.slot)
        if expected >= len(self.order) or self.order[expected] != identity:
            logger.debug("slot %d (%s) breaks the run from slot %d, %d pending dropped",
                         slot, identity, self.anchor.slot, len(self.pending))
            return []

        filled = []
        for t in self.pending:
            item_id = self.order[self.anchor.position + (t - self.anchor.slot)]
            self.deduced[t] = item_id
            filled.append((t, item_id))
        logger.debug("slots %s deduced between %d and %d",
                     [t for t, _ in filled], self.anchor.slot, slot)
        return filled

    def feed(self, identity):
        """Process the next slot. Returns the [(slot, identity)] filled in."""
        slot = self.index
        self.index += 1

        if identity is None:
            self.pending.append(slot)
            return []

        kind = self._kind_of(identity)
        filled = []
        if kind is None:
            self._switch_kind(None)
            return filled

        if kind != self.kind or self.order is None:
            self._switch_kind(kind)
        elif self.anchor is not None and self.pending:
            filled = self._backfill(slot, identity)
        self.pending = []

        if self.order is not None and identity in self.order:
            self.anchor = Anchor(slot, self.order.index(identity))
        else:
            self.anchor = None
        return filled

    def finish(self):
        return self.feed(END_OF_LIST)


def deduce_missing(cards, catalog):
    """
    Return a copy of `cards` with identities filled in from catalog order.

    Deduced cards also get their kind set; every other card is passed
    through unchanged.
    """
    deducer = SequenceDeducer(catalog)
    for card in cards:
        deducer.feed(card.identity)
    deducer.finish()

    result = []
    for i, card in enumerate(cards):
        identity = deducer.deduced.get(i)
        if identity is None:
            result.append(card)
        else:
            result.append(replace(card, identity=identity, kind=catalog.kind_of(identity)))
    if deducer.deduced:
        logger.info("Deduced %d of %d slots from catalog order",
                    len(deducer.deduced), len(cards))
    return result
