"""Tests for the composite perceptual hash and identity matching."""

import itertools

import imagehash
import numpy as np
import pytest

from config import HASH_THRESHOLD
from image_match import (
    HASH_COMPONENTS, HASH_DISTANCE_MAX, HASH_SEPARATOR, channel_images,
    compute_card_hash, find_match, gradient_hash, hash_distance, hue_proximity,
    is_plausible_item,
)


def _hash_of(bits):
    """Composite hash with every component built from the same bit list."""
    component = str(imagehash.ImageHash(np.array(bits, dtype=bool).reshape(16, 8)))
    return HASH_SEPARATOR.join([component] * HASH_COMPONENTS)


class TestChannels:

    def test_seven_channels(self, make_card):
        channels = channel_images(make_card(0))
        assert len(channels) == HASH_COMPONENTS == 7
        for c in channels:
            assert c.shape == (200, 160)
            assert c.dtype == np.uint8

    def test_hue_proximity(self):
        hue = np.array([0.0, 120.0, 350.0, 45.0, 200.0])
        sat = np.array([1.0, 1.0, 1.0, 1.0, 1.0])
        out = hue_proximity(hue, sat, 0)
        assert out.tolist() == [255, 0, 227, 128, 0]

    def test_undefined_hue_is_far(self):
        out = hue_proximity(np.array([0.0]), np.array([0.0]), 0)
        assert out.tolist() == [0]

    def test_grey_has_full_inverse_saturation(self):
        grey = np.full((4, 4, 3), 90, dtype=np.uint8)
        channels = channel_images(grey)
        assert (channels[-1] == 255).all()
        for c in channels[3:6]:
            assert not c.any()


class TestHashing:

    def test_hash_format(self, make_card):
        h = compute_card_hash(make_card(0))
        parts = h.split(HASH_SEPARATOR)
        assert len(parts) == 7
        for p in parts:
            assert len(p) == 32
            int(p, 16)

    def test_gradient_hash_bits(self):
        channel = np.tile(np.arange(0, 256, 2, dtype=np.uint8), (128, 1))
        h = gradient_hash(channel)
        assert h.hash.shape == (16, 8)

    def test_deterministic(self, make_card):
        assert compute_card_hash(make_card(4)) == compute_card_hash(make_card(4))

    def test_badges_do_not_change_identity(self, make_card):
        bare = compute_card_hash(make_card(4))
        badged = compute_card_hash(make_card(4, level=6, points=1234))
        assert hash_distance(bare, badged) < HASH_THRESHOLD


class TestHashDistance:

    def test_self_distance(self, item_cards):
        for card in item_cards.values():
            h = compute_card_hash(card)
            assert hash_distance(h, h) == 1
            assert hash_distance(h, h) < HASH_THRESHOLD

    def test_separation(self, item_cards):
        hashes = {item_id: compute_card_hash(card) for item_id, card in item_cards.items()}
        for a, b in itertools.combinations(hashes, 2):
            assert hash_distance(hashes[a], hashes[b]) > 1.5 * HASH_THRESHOLD, (a, b)

    def test_product_of_components(self):
        zeros = [False] * 128
        three = [True] * 3 + [False] * 125
        # 3 bits differ in each of 7 components
        assert hash_distance(_hash_of(zeros), _hash_of(three)) == 3 ** 7

    def test_small_distances_collapse(self):
        zeros = [False] * 128
        two = [True] * 2 + [False] * 126
        assert hash_distance(_hash_of(zeros), _hash_of(two)) == 1
        assert hash_distance(_hash_of(zeros), _hash_of(two), collapse=1) == 2 ** 7

    def test_component_count_mismatch(self, make_card):
        h = compute_card_hash(make_card(0))
        short = HASH_SEPARATOR.join(h.split(HASH_SEPARATOR)[:6])
        assert hash_distance(h, short) == HASH_DISTANCE_MAX

    @pytest.mark.parametrize("bad", ["", "zz", "|||", "not a hash"])
    def test_malformed(self, make_card, bad):
        h = compute_card_hash(make_card(0))
        assert hash_distance(h, bad) == HASH_DISTANCE_MAX
        assert hash_distance(bad, bad) == HASH_DISTANCE_MAX

    def test_malformed_component(self, make_card):
        h = compute_card_hash(make_card(0))
        parts = h.split(HASH_SEPARATOR)
        parts[2] = parts[2][:-1]
        assert hash_distance(h, HASH_SEPARATOR.join(parts)) == HASH_DISTANCE_MAX


class TestFindMatch:

    def test_match(self, item_cards):
        entries = [(item_id, compute_card_hash(card)) for item_id, card in item_cards.items()]
        item_id, distance = find_match(compute_card_hash(item_cards["peach"]), entries)
        assert item_id == "peach"
        assert distance == 1

    def test_no_match(self, item_cards, make_card):
        entries = [(item_id, compute_card_hash(card)) for item_id, card in item_cards.items()]
        item_id, distance = find_match(compute_card_hash(make_card(99)), entries)
        assert item_id is None
        assert distance >= HASH_THRESHOLD

    def test_empty_catalog(self, make_card):
        assert find_match(compute_card_hash(make_card(0)), []) == (None, HASH_DISTANCE_MAX)

    def test_threshold_is_exclusive(self, item_cards):
        h = compute_card_hash(item_cards["mario"])
        assert find_match(h, [("mario", h)], threshold=1) == (None, 1)
        assert find_match(h, [("mario", h)], threshold=2) == ("mario", 1)

    def test_first_minimum_wins(self, item_cards):
        h = compute_card_hash(item_cards["mario"])
        assert find_match(h, [("first", h), ("second", h)])[0] == "first"


class TestPlausibility:

    def test_card_is_plausible(self, make_card):
        assert is_plausible_item(make_card(0))

    def test_background_is_not(self):
        empty = np.full((200, 160, 3), (230, 140, 50), dtype=np.uint8)
        assert not is_plausible_item(empty)
