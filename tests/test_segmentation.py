"""Tests for region segmentation and the region helpers."""

import json

import numpy as np
import pytest

from core.segmentation import (
    MAX_REGIONS, Region, color_distance, rgb_to_hue, rgb_to_saturation,
    segment_image, assign_regions, brightness_map, edge_map,
    group_regions_by_color, region_palette, region_overlay, velocity_multiplier,
)


def _segment(img, threshold=30, seed=0):
    h, w = img.shape[:2]
    return segment_image(img, w, h, threshold, rng=np.random.default_rng(seed))


def _checkerboard(tiles_x=12, tiles_y=10, tile_w=10, tile_h=6):
    img = np.zeros((tiles_y * tile_h, tiles_x * tile_w, 4), dtype=np.uint8)
    img[..., 3] = 255
    for ty in range(tiles_y):
        for tx in range(tiles_x):
            if (tx + ty) % 2:
                img[ty * tile_h:(ty + 1) * tile_h, tx * tile_w:(tx + 1) * tile_w, :3] = 255
    return img


class TestColourHelpers:
    def test_distance(self):
        assert color_distance((0, 0, 0), (3, 4, 0)) == 5.0
        assert color_distance((10, 20, 30), (10, 20, 30)) == 0.0

    @pytest.mark.parametrize("rgb,hue", [
        ((255, 0, 0), 0.0), ((0, 255, 0), 120.0), ((0, 0, 255), 240.0),
        ((255, 255, 0), 60.0), ((128, 128, 128), 0.0),
    ])
    def test_hue(self, rgb, hue):
        assert rgb_to_hue(rgb) == pytest.approx(hue)

    def test_saturation(self):
        assert rgb_to_saturation((0, 0, 0)) == 0.0
        assert rgb_to_saturation((200, 200, 200)) == 0.0
        assert rgb_to_saturation((255, 0, 0)) == 1.0

    def test_velocity_multiplier_range(self):
        rng = np.random.default_rng(0)
        for b in (0.0, 0.3, 0.9, 1.0):
            v = velocity_multiplier(b, 500, rng)
            assert 0.0 <= v <= 1.0
        assert velocity_multiplier(1.0, 500, rng) == 0.0


class TestSegmentImage:
    def test_uniform_image_is_one_region(self, uniform_image):
        regions = _segment(uniform_image)
        assert len(regions) == 1
        assert regions[0].size == 64
        assert np.array_equal(regions[0].pixels, np.arange(64))

    def test_small_black_image(self):
        img = np.zeros((4, 4, 4), dtype=np.uint8)
        img[..., 3] = 255
        regions = segment_image(img, 4, 4, 30)
        assert len(regions) == 1
        r = regions[0]
        assert r.size == 16
        assert r.brightness == 0.0
        assert r.bounds == (0, 3, 0, 3)
        assert r.center == (1.5, 1.5)
        assert r.mean_color == (0, 0, 0)

    def test_block_image_regions(self, block_image):
        regions = _segment(block_image)
        assert len(regions) == 4
        assert [r.size for r in regions] == [100, 100, 100, 100]
        # equal sizes keep row-major discovery order
        assert [r.mean_color for r in regions] == [
            (0, 0, 0), (255, 255, 255), (255, 0, 0), (0, 0, 255),
        ]
        assert [r.id for r in regions] == [0, 1, 2, 3]
        assert regions[1].brightness == pytest.approx(1.0)
        assert regions[1].velocity_multiplier == pytest.approx(0.0, abs=1e-6)

    def test_no_shared_pixels(self):
        rng = np.random.default_rng(4)
        img = rng.integers(0, 256, (30, 40, 4), dtype=np.uint8)
        img[..., :3] //= 64    # few distinct colours -> some big regions
        img[..., :3] *= 20
        regions = _segment(img, threshold=25)
        all_pixels = np.concatenate([r.pixels for r in regions]) if regions else np.zeros(0)
        assert len(all_pixels) == len(np.unique(all_pixels))
        assert sum(r.size for r in regions) <= 30 * 40
        assert len(regions) <= MAX_REGIONS

    def test_sorted_by_size(self):
        img = np.zeros((20, 30, 4), dtype=np.uint8)
        img[..., 3] = 255
        img[:, 20:, :3] = 255
        regions = _segment(img)
        assert [r.size for r in regions] == [400, 200]

    def test_small_regions_dropped(self, gradient_image):
        # every pixel has its own colour at threshold 0
        assert _segment(gradient_image, threshold=0) == []

    def test_region_cap(self):
        img = _checkerboard()
        regions = _segment(img)
        assert len(regions) == MAX_REGIONS
        assert all(r.size == 60 for r in regions)

    def test_degenerate_dimensions(self):
        assert segment_image(np.zeros(0, dtype=np.uint8), 0, 5, 30) == []

    def test_flat_buffer_accepted(self, block_image):
        regions = segment_image(block_image.reshape(-1), 20, 20, 30, rng=np.random.default_rng(0))
        assert len(regions) == 4

    def test_seeded_multipliers_repeat(self, block_image):
        a = _segment(block_image, seed=9)
        b = _segment(block_image, seed=9)
        assert [r.velocity_multiplier for r in a] == [r.velocity_multiplier for r in b]

    def test_mass(self, uniform_image):
        region = _segment(uniform_image)[0]
        assert region.mass == pytest.approx(np.log(65) / 10)

    def test_to_dict_is_json(self, block_image):
        data = [r.to_dict() for r in _segment(block_image)]
        text = json.dumps(data)
        assert "pixels" not in text
        assert data[0]["bounds"] == {"min_x": 0, "max_x": 9, "min_y": 0, "max_y": 9}


class TestRegionMaps:
    def test_assign_regions(self, block_image):
        regions = _segment(block_image)
        ids = assign_regions(regions, 20, 20)
        assert ids.shape == (400,)
        assert ids[0] == 0
        assert ids[19] == 1
        assert ids[399] == 3

    def test_assign_regions_unassigned(self):
        region = Region(id=0, pixels=np.array([0, 1]), mean_color=(0, 0, 0), brightness=0.0,
                        bounds=(0, 1, 0, 0), center=(0.5, 0.0), size=2)
        ids = assign_regions([region], 3, 1)
        assert ids.tolist() == [0, 0, -1]

    def test_brightness_map(self, block_image):
        b = brightness_map(block_image)
        assert b.shape == (20, 20)
        assert b[0, 0] == 0.0
        assert b[0, 19] == pytest.approx(1.0)
        assert b[19, 0] == pytest.approx(0.299)

    def test_edge_map_uniform_is_zero(self, uniform_image):
        assert np.all(edge_map(uniform_image) == 0)

    def test_edge_map_finds_boundaries(self, block_image):
        edges = edge_map(block_image)
        assert edges.shape == (20, 20)
        assert edges[5, 9] > 0 and edges[5, 10] > 0
        assert edges[5, 3] == 0
        assert np.all(edges[0, :] == 0) and np.all(edges[:, -1] == 0)


class TestGroupingAndOverlay:
    def test_group_by_colour(self):
        def region(i, color):
            return Region(id=i, pixels=np.array([i]), mean_color=color, brightness=0.0,
                          bounds=(0, 0, 0, 0), center=(0.0, 0.0), size=1)
        regions = [region(0, (0, 0, 0)), region(1, (200, 200, 200)), region(2, (10, 10, 10))]
        groups = group_regions_by_color(regions)
        assert [[r.id for r in g] for g in groups] == [[0, 2], [1]]

    def test_palette(self):
        palette = region_palette(5)
        assert palette.shape == (5, 3)
        assert palette.dtype == np.uint8
        assert len({tuple(c) for c in palette}) == 5
        assert region_palette(0).shape == (0, 3)

    def test_overlay(self, block_image):
        regions = _segment(block_image)
        out = region_overlay(block_image, regions)
        assert out.shape == block_image.shape
        assert out.dtype == np.uint8
        assert not np.array_equal(out, block_image)
        assert np.all(out[..., 3] == 255)
        # input untouched
        assert block_image[0, 0, 0] == 0
