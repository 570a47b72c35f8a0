"""Tests for HSV colour predicates and mask erosion."""

import numpy as np

from color_mask import (
    ON, OFF, ColorPredicate, SLOT_MASK, LEVEL_MASK, POINTS_MASK, build_mask, erode,
)


def _solid(bgr, size=(10, 10)):
    return np.full(size + (3,), bgr, dtype=np.uint8)


class TestBuildMask:

    def test_output_shape_and_values(self):
        img = np.random.RandomState(3).randint(0, 256, (17, 23, 3)).astype(np.uint8)
        mask = build_mask(img, SLOT_MASK)
        assert mask.shape == (17, 23)
        assert mask.dtype == np.uint8
        assert set(np.unique(mask)) <= {ON, OFF}

    def test_screen_background_is_off(self):
        assert not build_mask(_solid((230, 140, 50)), SLOT_MASK).any()

    def test_near_black_is_off(self):
        assert not build_mask(_solid((3, 3, 3)), SLOT_MASK).any()

    def test_card_body_is_on(self):
        assert (build_mask(_solid((70, 70, 70)), SLOT_MASK) == ON).all()

    def test_level_glyph_colour(self):
        glyph = _solid((40, 220, 160))
        assert (build_mask(glyph, LEVEL_MASK) == ON).all()
        assert not build_mask(glyph, POINTS_MASK).any()

    def test_points_glyph_colours(self):
        orange = _solid((30, 160, 250))
        white = _solid((245, 245, 245))
        assert (build_mask(orange, POINTS_MASK) == ON).all()
        assert (build_mask(white, POINTS_MASK) == ON).all()
        assert not build_mask(orange, LEVEL_MASK).any()

    def test_union_of_ranges(self):
        predicate = ColorPredicate.from_config([
            ((0, 0, 0), (179, 255, 10)),
            ((0, 0, 245), (179, 10, 255)),
        ])
        img = np.zeros((2, 2, 3), dtype=np.uint8)
        img[0, 0] = (255, 255, 255)
        img[1, 1] = (128, 128, 128)
        mask = build_mask(img, predicate)
        assert mask[0, 0] == ON and mask[0, 1] == ON
        assert mask[1, 1] == OFF

    def test_invert(self):
        ranges = [((0, 0, 0), (179, 255, 10))]
        img = _solid((0, 0, 0))
        assert (build_mask(img, ColorPredicate.from_config(ranges)) == ON).all()
        assert not build_mask(img, ColorPredicate.from_config(ranges, invert=True)).any()


class TestErode:

    def test_single_pixel_removed(self):
        mask = np.zeros((9, 9), dtype=np.uint8)
        mask[4, 4] = ON
        assert not erode(mask).any()

    def test_block_shrinks_by_radius(self):
        mask = np.zeros((12, 12), dtype=np.uint8)
        mask[2:9, 3:10] = ON
        eroded = erode(mask)
        assert np.count_nonzero(eroded) == 5 * 5
        assert (eroded[3:8, 4:9] == ON).all()

    def test_zero_radius_is_copy(self):
        mask = np.full((4, 4), ON, dtype=np.uint8)
        out = erode(mask, radius=0)
        assert (out == mask).all()
        assert out is not mask
