"""Tests for the date stamp overlay."""

from datetime import datetime

import numpy as np
from PIL import Image

from momentreel.overlays import (
    STAMP_MARGIN_FRAC,
    apply_date_stamp,
    compute_stamp_position,
    format_stamp_date,
    render_stamp_patch,
)


WHEN = datetime(2024, 1, 15, 9, 30)


class TestFormatStampDate:
    def test_long_date(self):
        assert format_stamp_date(WHEN) == "January 15, 2024"

    def test_single_digit_day_not_padded(self):
        assert format_stamp_date(datetime(2023, 7, 4, 23, 0)) == "July 4, 2023"


class TestComputeStampPosition:
    def test_bottom_right(self):
        x, y = compute_stamp_position("bottom-right", 100, 30, 1920, 1080)
        assert x == 1920 - int(1920 * STAMP_MARGIN_FRAC) - 100
        assert y == 1080 - int(1080 * STAMP_MARGIN_FRAC) - 30

    def test_top_left(self):
        x, y = compute_stamp_position("top-left", 100, 30, 1920, 1080)
        assert (x, y) == (int(1920 * STAMP_MARGIN_FRAC), int(1080 * STAMP_MARGIN_FRAC))


class TestRenderStampPatch:
    def test_rgba_with_transparent_edges(self):
        patch = render_stamp_patch("January 15, 2024", 24)
        assert patch.ndim == 3 and patch.shape[2] == 4
        assert patch.dtype == np.uint8
        assert patch[0, 0, 3] < 40
        assert patch[:, :, 3].max() > 100

    def test_longer_text_is_wider(self):
        short = render_stamp_patch("May 1, 2024", 24)
        long = render_stamp_patch("September 30, 2024", 24)
        assert long.shape[1] > short.shape[1]


class TestApplyDateStamp:
    def test_stamp_in_bottom_right_only(self):
        frame = Image.new("RGB", (640, 360), (200, 200, 200))
        out = np.array(apply_date_stamp(frame, WHEN))
        original = np.array(frame)

        assert out.shape == original.shape
        changed = np.any(out != original, axis=2)
        ys, xs = np.nonzero(changed)
        assert len(xs) > 0
        assert xs.min() > 320
        assert ys.min() > 180

    def test_input_not_modified(self):
        frame = Image.new("RGB", (640, 360), (200, 200, 200))
        apply_date_stamp(frame, WHEN)
        assert frame.getpixel((600, 340)) == (200, 200, 200)

    def test_tiny_frame_left_unchanged(self):
        frame = Image.new("RGB", (20, 20), (50, 60, 70))
        out = apply_date_stamp(frame, WHEN)
        assert np.array_equal(np.array(out), np.array(frame))
