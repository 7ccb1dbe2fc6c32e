"""Tests for momentreel.models."""

from datetime import datetime
from pathlib import Path

import pytest

from momentreel.models import (
    ContentKind,
    CornerMode,
    ExportProgress,
    MediaItem,
    Memory,
    OverlayCorner,
    parse_corner,
    resolve_media_path,
)


class TestResolveMediaPath:
    def test_photos_path_drops_user_segment(self):
        result = resolve_media_path("Photos/u123/2024-01/img.jpg", "/tmp/x")
        assert result == Path("/tmp/x/Photos/2024-01/img.jpg")

    def test_simple_path_unchanged(self):
        assert resolve_media_path("simple.jpg", "/tmp/x") == Path("/tmp/x/simple.jpg")

    def test_leading_slash_stripped(self):
        result = resolve_media_path("/Photos/u1/2024-03/a.webp", "/base")
        assert result == Path("/base/Photos/2024-03/a.webp")

    def test_short_photos_path_unchanged(self):
        result = resolve_media_path("Photos/2024-01/a.jpg", "/base")
        assert result == Path("/base/Photos/2024-01/a.jpg")

    def test_non_photos_prefix_unchanged(self):
        result = resolve_media_path("Other/u1/2024-01/a.jpg", "/base")
        assert result == Path("/base/Other/u1/2024-01/a.jpg")


class TestMediaItem:
    def test_video_by_kind(self):
        assert MediaItem("b", 1, 1, "a.mp4", ContentKind.VIDEO).is_video

    def test_video_by_mime_type(self):
        assert MediaItem("b", 1, 1, "a.mp4", mime_type="video/mp4").is_video

    def test_image(self):
        assert not MediaItem("b", 1, 1, "a.jpg", mime_type="image/jpeg").is_video

    def test_filename(self):
        assert MediaItem("b", 1, 1, "Photos/u/2024-01/a.webp").filename == "a.webp"


class TestMemoryPlaceholders:
    def _memory(self, back_kind, placeholder=True):
        return Memory(
            front_image=MediaItem("b", 1, 1, "front.jpg"),
            back_image=MediaItem("b", 1, 1, "back.mp4", back_kind),
            taken_time=datetime(2024, 1, 1),
            secondary_placeholder=MediaItem("b", 1, 1, "back_still.jpg") if placeholder else None,
        )

    def test_video_back_uses_placeholder(self):
        memory = self._memory(ContentKind.VIDEO)
        assert memory.back_for_export.path == "back_still.jpg"
        assert memory.has_both_images
        assert memory.has_video

    def test_video_back_without_placeholder_is_not_image_pair(self):
        memory = self._memory(ContentKind.VIDEO, placeholder=False)
        assert not memory.has_both_images

    def test_image_back_ignores_placeholder(self):
        memory = self._memory(ContentKind.IMAGE)
        assert memory.back_for_export.path == "back.mp4"
        assert not memory.has_video


class TestExportProgress:
    def test_percentage(self):
        assert ExportProgress(1, 4).percentage == 0.25

    def test_zero_total(self):
        assert ExportProgress(0, 0).percentage == 0.0


class TestParseCorner:
    @pytest.mark.parametrize("text,expected", [
        ("auto", CornerMode.AUTO),
        ("ALL", CornerMode.ALL),
        ("top-left", OverlayCorner.TOP_LEFT),
        ("bottom_right", OverlayCorner.BOTTOM_RIGHT),
        ("Top Right", OverlayCorner.TOP_RIGHT),
    ])
    def test_valid(self, text, expected):
        assert parse_corner(text) == expected

    def test_invalid_raises(self):
        with pytest.raises(ValueError, match="Unknown corner"):
            parse_corner("middle")
