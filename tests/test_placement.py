"""Tests for overlay placement."""

import numpy as np
import pytest
from PIL import Image

from momentreel import placement
from momentreel.analysis import NormalizedRect, NullAnalyzer, ScoreGrid
from momentreel.models import CornerMode, OverlayCorner
from momentreel.placement import (
    choose_corner,
    overlay_geometry,
    penalty_scores,
    resolve_corner,
)


INSET = (90, 120)


class RecordingAnalyzer:
    """Analyzer returning fixed signals and logging every call."""

    def __init__(self, attention=None, objectness=None, faces=(), bodies=(), texts=()):
        self.calls = []
        self._attention = attention
        self._objectness = objectness
        self._faces = list(faces)
        self._bodies = list(bodies)
        self._texts = list(texts)

    def attention_saliency(self, image):
        self.calls.append("attention")
        return self._attention

    def objectness_saliency(self, image):
        self.calls.append("objectness")
        return self._objectness

    def detect_faces(self, image):
        self.calls.append("faces")
        return self._faces

    def detect_bodies(self, image):
        self.calls.append("bodies")
        return self._bodies

    def detect_text(self, image):
        self.calls.append("text")
        return self._texts


class BrokenAnalyzer(NullAnalyzer):
    def attention_saliency(self, image):
        raise RuntimeError("model not loaded")

    def detect_faces(self, image):
        raise RuntimeError("model not loaded")


def _noisy_with_flat(flat_box, size=(300, 300), seed=0):
    rng = np.random.default_rng(seed)
    arr = rng.integers(0, 256, (size[1], size[0], 3), dtype=np.uint8)
    x0, y0, x1, y1 = flat_box
    arr[y0:y1, x0:x1] = 128
    return Image.fromarray(arr, "RGB")


def _grid(quadrants):
    """2x2 saliency grid: [[TL, TR], [BL, BR]]."""
    return ScoreGrid(np.array(quadrants, dtype=np.float64))


class TestOverlayGeometry:
    def test_dimensions(self):
        g = overlay_geometry((300, 400), INSET)
        assert g.overlay_w == 100
        assert g.overlay_h == 133
        assert g.padding == 10
        assert g.corner_radius == 8

    def test_corner_rects(self):
        g = overlay_geometry((300, 400), INSET)
        assert g.rect(OverlayCorner.TOP_LEFT) == (10, 10, 100, 133)
        assert g.rect(OverlayCorner.TOP_RIGHT) == (190, 10, 100, 133)
        assert g.rect(OverlayCorner.BOTTOM_LEFT) == (10, 257, 100, 133)
        assert g.rect(OverlayCorner.BOTTOM_RIGHT) == (190, 257, 100, 133)

    def test_zero_size_inset_rejected(self):
        with pytest.raises(ValueError, match="no area"):
            overlay_geometry((300, 400), (0, 10))


class TestPenaltyScores:
    def test_face_flag_needs_fifteen_percent_overlap(self):
        g = overlay_geometry((300, 300), INSET)
        # Top-left inset spans x 10..110 -> [0.033, 0.367].
        barely = NormalizedRect(0.35, 0.1, 0.2, 0.2)   # ~8% covered
        mostly = NormalizedRect(0.1, 0.1, 0.2, 0.2)    # fully covered
        assert penalty_scores(g, [barely], [], [])[OverlayCorner.TOP_LEFT] == 0.0
        assert penalty_scores(g, [mostly], [], [])[OverlayCorner.TOP_LEFT] == 10.0

    def test_body_and_text_weighted_by_area(self):
        g = overlay_geometry((300, 300), INSET)
        region = g.normalized_rect(OverlayCorner.BOTTOM_RIGHT)
        scores = penalty_scores(g, [], [region], [region])
        assert scores[OverlayCorner.BOTTOM_RIGHT] == pytest.approx(8.0 * region.area)
        assert scores[OverlayCorner.TOP_LEFT] == 0.0


class TestChooseCorner:
    def test_saliency_picks_quietest_corner(self):
        analyzer = RecordingAnalyzer(attention=_grid([[0.9, 0.8], [0.1, 0.7]]))
        image = Image.new("RGB", (300, 300))
        assert choose_corner(image, INSET, analyzer) == OverlayCorner.BOTTOM_LEFT

    def test_both_maps_averaged(self):
        analyzer = RecordingAnalyzer(
            attention=_grid([[0.0, 0.5], [0.5, 0.5]]),
            objectness=_grid([[1.0, 0.4], [0.5, 0.5]]),
        )
        image = Image.new("RGB", (300, 300))
        assert choose_corner(image, INSET, analyzer) == OverlayCorner.TOP_RIGHT

    def test_face_pushes_inset_away(self):
        face = NormalizedRect(0.05, 0.05, 0.2, 0.2)
        analyzer = RecordingAnalyzer(attention=_grid([[0.5, 0.5], [0.5, 0.5]]), faces=[face])
        image = Image.new("RGB", (300, 300))
        assert choose_corner(image, INSET, analyzer) == OverlayCorner.TOP_RIGHT

    def test_ties_resolve_to_top_left(self):
        analyzer = RecordingAnalyzer(attention=_grid([[0.5, 0.5], [0.5, 0.5]]))
        image = Image.new("RGB", (300, 300))
        assert choose_corner(image, INSET, analyzer) == OverlayCorner.TOP_LEFT

    def test_luminance_fallback_prefers_flat_region(self):
        image = _noisy_with_flat((180, 150, 300, 300))
        assert choose_corner(image, INSET, NullAnalyzer()) == OverlayCorner.BOTTOM_RIGHT

    def test_fallback_still_applies_penalties(self):
        # Everything flat, but text sits in the top-left corner.
        image = Image.new("RGB", (300, 300), (128, 128, 128))
        text = NormalizedRect(0.0, 0.0, 0.4, 0.4)
        analyzer = RecordingAnalyzer(texts=[text])
        assert choose_corner(image, INSET, analyzer) == OverlayCorner.TOP_RIGHT

    def test_defaults_to_top_left_when_luminance_fails(self, monkeypatch):
        monkeypatch.setattr(placement, "luminance_scores", lambda image, geometry: None)
        image = _noisy_with_flat((180, 150, 300, 300))
        assert choose_corner(image, INSET) == OverlayCorner.TOP_LEFT

    def test_deterministic(self):
        image = _noisy_with_flat((0, 150, 120, 300), seed=3)
        first = choose_corner(image, INSET)
        assert all(choose_corner(image, INSET) == first for _ in range(3))
        assert first == OverlayCorner.BOTTOM_LEFT

    def test_analyzer_errors_fall_back(self):
        image = _noisy_with_flat((180, 0, 300, 150))
        assert choose_corner(image, INSET, BrokenAnalyzer()) == OverlayCorner.TOP_RIGHT


class TestResolveCorner:
    def test_explicit_corner_skips_analysis(self):
        analyzer = RecordingAnalyzer()
        image = Image.new("RGB", (300, 300))
        result = resolve_corner(OverlayCorner.BOTTOM_RIGHT, image, INSET, analyzer)
        assert result == OverlayCorner.BOTTOM_RIGHT
        assert analyzer.calls == []

    def test_auto_runs_analysis(self):
        analyzer = RecordingAnalyzer(attention=_grid([[0.9, 0.9], [0.9, 0.1]]))
        image = Image.new("RGB", (300, 300))
        assert resolve_corner(CornerMode.AUTO, image, INSET, analyzer) == OverlayCorner.BOTTOM_RIGHT
        assert "attention" in analyzer.calls

    def test_all_has_no_single_corner(self):
        with pytest.raises(ValueError):
            resolve_corner(CornerMode.ALL, Image.new("RGB", (10, 10)), INSET)


class TestNullAnalyzer:
    def test_reports_no_signals(self):
        analyzer = NullAnalyzer()
        image = Image.new("RGB", (30, 40))
        assert analyzer.attention_saliency(image) is None
        assert analyzer.objectness_saliency(image) is None
        assert analyzer.detect_faces(image) == []
        assert analyzer.detect_bodies(image) == []
        assert analyzer.detect_text(image) == []
