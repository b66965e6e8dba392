"""
Tests for mask rasterization
"""

import io
import os
import time

import pytest
from PIL import Image

from gpt_image_mcp.masks import (
    CircleShape,
    PolygonShape,
    RectangleShape,
    cleanup_temp_masks,
    parse_shapes,
    rasterize_mask,
    read_image_size,
    render_mask,
    write_temp_mask,
)


def open_mask(png: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(png))
    image.load()
    return image


class TestParseShapes:
    """Test shape validation"""

    def test_valid_shapes(self):
        shapes = parse_shapes([
            {"type": "rectangle", "x": 0, "y": 0, "width": 0.5, "height": 0.5},
            {"type": "circle", "cx": 0.5, "cy": 0.5, "radius": 0.1},
            {"type": "polygon", "points": [[0, 0], [1, 0], [0, 1]]},
        ])
        assert [type(s) for s in shapes] == [RectangleShape, CircleShape, PolygonShape]

    def test_polygon_point_objects(self):
        shapes = parse_shapes([
            {"type": "polygon", "points": [{"x": 0, "y": 0}, {"x": 1, "y": 0}, {"x": 0.5, "y": 1}]},
        ])
        assert shapes[0].points[2] == (0.5, 1.0)

    @pytest.mark.parametrize("raw", [
        {"type": "hexagon", "x": 0, "y": 0},
        {"x": 0, "y": 0, "width": 1, "height": 1},
        {"type": "rectangle", "x": "0", "y": 0, "width": 1, "height": 1},
        {"type": "rectangle", "x": True, "y": 0, "width": 1, "height": 1},
        {"type": "rectangle", "x": 0, "y": 0, "width": 1.5, "height": 1},
        {"type": "circle", "cx": 0.5, "cy": 0.5},
        {"type": "circle", "cx": -0.1, "cy": 0.5, "radius": 0.2},
        {"type": "polygon", "points": [[0, 0], [1, 1]]},
        {"type": "polygon", "points": [[0, 0], [1, 1], [2, 0]]},
        "rectangle",
        None,
    ])
    def test_invalid_shapes_skipped(self, raw):
        assert parse_shapes([raw]) == []

    def test_invalid_shape_does_not_drop_others(self):
        shapes = parse_shapes([
            {"type": "rectangle", "x": "bad"},
            {"type": "circle", "cx": 0.5, "cy": 0.5, "radius": 0.1},
        ])
        assert len(shapes) == 1
        assert isinstance(shapes[0], CircleShape)


class TestRasterizeMask:
    """Test mask rendering"""

    def test_no_shapes_is_all_black(self):
        mask = open_mask(rasterize_mask([], 40, 30))
        assert mask.size == (40, 30)
        assert mask.mode == "L"
        assert mask.getextrema() == (0, 0)

    def test_full_rectangle_is_all_white(self):
        png = rasterize_mask([{"type": "rectangle", "x": 0, "y": 0, "width": 1, "height": 1}], 40, 30)
        assert open_mask(png).getextrema() == (255, 255)

    def test_malformed_shapes_equal_no_shapes(self):
        malformed = [{"type": "triangle"}, {"type": "circle", "cx": "x", "cy": 0, "radius": 1}]
        left = open_mask(rasterize_mask(malformed, 20, 20))
        right = open_mask(rasterize_mask([], 20, 20))
        assert list(left.getdata()) == list(right.getdata())

    def test_rectangle_scales_with_image(self):
        mask = open_mask(rasterize_mask(
            [{"type": "rectangle", "x": 0, "y": 0, "width": 0.5, "height": 1}], 100, 50
        ))
        assert mask.getpixel((10, 25)) == 255
        assert mask.getpixel((90, 25)) == 0

    def test_rectangle_excludes_far_edge(self):
        mask = open_mask(rasterize_mask(
            [{"type": "rectangle", "x": 0, "y": 0, "width": 0.5, "height": 0.5}], 4, 4
        ))
        assert [mask.getpixel((x, 0)) for x in range(4)] == [255, 255, 0, 0]
        assert [mask.getpixel((0, y)) for y in range(4)] == [255, 255, 0, 0]

    def test_circle_radius_uses_short_side(self):
        mask = open_mask(rasterize_mask(
            [{"type": "circle", "cx": 0.5, "cy": 0.5, "radius": 0.25}], 200, 100
        ))
        # radius is 25px on a 200x100 image
        assert mask.getpixel((100, 50)) == 255
        assert mask.getpixel((120, 50)) == 255
        assert mask.getpixel((130, 50)) == 0
        assert mask.getpixel((0, 0)) == 0

    def test_polygon(self):
        mask = open_mask(rasterize_mask(
            [{"type": "polygon", "points": [[0, 0], [1, 0], [0, 1]]}], 100, 100
        ))
        assert mask.getpixel((10, 10)) == 255
        assert mask.getpixel((90, 90)) == 0

    def test_shapes_accumulate(self):
        mask = open_mask(rasterize_mask([
            {"type": "rectangle", "x": 0, "y": 0, "width": 0.2, "height": 0.2},
            {"type": "rectangle", "x": 0.8, "y": 0.8, "width": 0.2, "height": 0.2},
        ], 100, 100))
        assert mask.getpixel((5, 5)) == 255
        assert mask.getpixel((95, 95)) == 255
        assert mask.getpixel((50, 50)) == 0

    def test_invalid_dimensions(self):
        with pytest.raises(ValueError):
            render_mask([], 0, 10)


class TestMaskFiles:
    """Test image probing and temp mask files"""

    def test_read_image_size(self, input_image):
        assert read_image_size(input_image) == (64, 48)

    def test_write_temp_mask(self, tmp_path):
        path = write_temp_mask(b"png-bytes", tmp_path / "masks")
        assert path.parent == tmp_path / "masks"
        assert path.name.startswith("mask_")
        assert path.read_bytes() == b"png-bytes"

    def test_cleanup_removes_only_stale_masks(self, tmp_path):
        stale = write_temp_mask(b"old", tmp_path)
        fresh = write_temp_mask(b"new", tmp_path)
        old = time.time() - 7200
        os.utime(stale, (old, old))

        assert cleanup_temp_masks(tmp_path) == 1
        assert not stale.exists()
        assert fresh.exists()

    def test_cleanup_missing_dir(self, tmp_path):
        assert cleanup_temp_masks(tmp_path / "missing") == 0
