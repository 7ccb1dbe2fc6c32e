"""Visual analysis capability used by overlay placement.

Placement only needs a handful of signals: where attention goes (saliency
maps) and where faces, bodies/animals and text sit. They are gathered
behind a small protocol so any computer-vision backend can provide them.
A backend that has nothing to offer returns None / empty lists, which
makes placement fall back to luminance variance.
"""

from dataclasses import dataclass
from typing import Protocol

import numpy as np
from PIL import Image


@dataclass(frozen=True)
class NormalizedRect:
    """Rectangle in [0, 1] image coordinates, origin top-left, y down."""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def intersection_area(self, other: "NormalizedRect") -> float:
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.x + self.width, other.x + other.width)
        bottom = min(self.y + self.height, other.y + other.height)
        if right <= left or bottom <= top:
            return 0.0
        return (right - left) * (bottom - top)

    @classmethod
    def from_pixels(
        cls, x: float, y: float, w: float, h: float, image_w: int, image_h: int,
    ) -> "NormalizedRect":
        return cls(x / image_w, y / image_h, w / image_w, h / image_h)


@dataclass(frozen=True)
class ScoreGrid:
    """A saliency map: (rows, cols) float scores, nominally in [0, 1]."""

    values: np.ndarray

    @property
    def width(self) -> int:
        return self.values.shape[1]

    @property
    def height(self) -> int:
        return self.values.shape[0]

    def region_mean(
        self,
        x: float, y: float, w: float, h: float,
        image_w: int, image_h: int,
    ) -> float:
        """Mean score inside a pixel-space rectangle of an image_w x image_h image.

        The rectangle is mapped into grid coordinates by the ratio of grid
        size to image size. An empty mapped region scores 0.
        """
        sx = self.width / image_w
        sy = self.height / image_h
        x0 = max(0, int(np.floor(x * sx)))
        y0 = max(0, int(np.floor(y * sy)))
        x1 = min(self.width, int(np.ceil((x + w) * sx)))
        y1 = min(self.height, int(np.ceil((y + h) * sy)))
        if x1 <= x0 or y1 <= y0:
            return 0.0
        return float(self.values[y0:y1, x0:x1].mean())


class VisualAnalyzer(Protocol):
    def attention_saliency(self, image: Image.Image) -> ScoreGrid | None: ...

    def objectness_saliency(self, image: Image.Image) -> ScoreGrid | None: ...

    def detect_faces(self, image: Image.Image) -> list[NormalizedRect]: ...

    def detect_bodies(self, image: Image.Image) -> list[NormalizedRect]: ...

    def detect_text(self, image: Image.Image) -> list[NormalizedRect]: ...


class NullAnalyzer:
    """Analyzer with no signals; placement always uses the luminance fallback."""

    def attention_saliency(self, image: Image.Image) -> ScoreGrid | None:
        return None

    def objectness_saliency(self, image: Image.Image) -> ScoreGrid | None:
        return None

    def detect_faces(self, image: Image.Image) -> list[NormalizedRect]:
        return []

    def detect_bodies(self, image: Image.Image) -> list[NormalizedRect]:
        return []

    def detect_text(self, image: Image.Image) -> list[NormalizedRect]:
        return []
