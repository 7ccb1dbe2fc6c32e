"""OpenCV-backed visual analyzer for overlay placement.

Requires the optional dependency: pip install momentreel[vision]
Import-guarded so the rest of momentreel works without OpenCV; without it
placement falls back to luminance variance.

Signals:
  - attention saliency: spectral residual of the grayscale thumbnail.
  - objectness saliency: local density of Canny edges.
  - faces: frontal-face Haar cascade.
  - bodies/animals: HOG people detector plus the cat-face Haar cascade.
  - text: dense, wide connected blobs of the morphological gradient.
"""

import numpy as np
from PIL import Image

from .analysis import NormalizedRect, ScoreGrid

# Import-guarded heavy dependency.
try:
    import cv2
    _CV2_AVAILABLE = True
except ImportError:
    cv2 = None
    _CV2_AVAILABLE = False


SALIENCY_WIDTH = 64              # spectral residual works on a tiny thumbnail
OBJECTNESS_WIDTH = 160
DETECTION_MAX_WIDTH = 640


def opencv_available() -> bool:
    return _CV2_AVAILABLE


def _gray(image: Image.Image, width: int) -> np.ndarray:
    w, h = image.size
    if w > width:
        image = image.resize((width, max(1, round(h * width / w))), Image.Resampling.BILINEAR)
    return np.asarray(image.convert("L"))


def _normalize(values: np.ndarray) -> np.ndarray:
    lo, hi = float(values.min()), float(values.max())
    if hi - lo < 1e-12:
        return np.zeros_like(values, dtype=np.float64)
    return (values - lo) / (hi - lo)


def _rects(raw, image_w: int, image_h: int) -> list[NormalizedRect]:
    return [
        NormalizedRect.from_pixels(float(x), float(y), float(w), float(h), image_w, image_h)
        for (x, y, w, h) in raw
    ]


class OpenCVAnalyzer:
    def __init__(self):
        if not _CV2_AVAILABLE:
            raise RuntimeError(
                "OpenCV is not installed. Install with: pip install momentreel[vision]"
            )
        haar = cv2.data.haarcascades
        self._faces = cv2.CascadeClassifier(haar + "haarcascade_frontalface_default.xml")
        self._cat_faces = cv2.CascadeClassifier(haar + "haarcascade_frontalcatface.xml")
        self._people = cv2.HOGDescriptor()
        self._people.setSVMDetector(cv2.HOGDescriptor_getDefaultPeopleDetector())

    # ── Saliency maps ────────────────────────────────────────────

    def attention_saliency(self, image: Image.Image) -> ScoreGrid | None:
        gray = _gray(image, SALIENCY_WIDTH).astype(np.float64)
        if gray.size == 0:
            return None
        spectrum = np.fft.fft2(gray)
        log_amplitude = np.log(np.abs(spectrum) + 1e-9)
        phase = np.angle(spectrum)
        residual = log_amplitude - cv2.blur(log_amplitude, (3, 3))
        saliency = np.abs(np.fft.ifft2(np.exp(residual + 1j * phase))) ** 2
        saliency = cv2.GaussianBlur(saliency, (0, 0), 2.5)
        return ScoreGrid(_normalize(saliency))

    def objectness_saliency(self, image: Image.Image) -> ScoreGrid | None:
        gray = _gray(image, OBJECTNESS_WIDTH)
        if gray.size == 0:
            return None
        edges = cv2.Canny(gray, 100, 200).astype(np.float64) / 255.0
        k = max(3, gray.shape[1] // 10)
        density = cv2.blur(edges, (k, k))
        return ScoreGrid(_normalize(density))

    # ── Detectors ────────────────────────────────────────────────

    def detect_faces(self, image: Image.Image) -> list[NormalizedRect]:
        gray = _gray(image, DETECTION_MAX_WIDTH)
        h, w = gray.shape
        found = self._faces.detectMultiScale(
            gray, scaleFactor=1.1, minNeighbors=5, minSize=(24, 24),
        )
        return _rects(found, w, h)

    def detect_bodies(self, image: Image.Image) -> list[NormalizedRect]:
        gray = _gray(image, DETECTION_MAX_WIDTH)
        h, w = gray.shape
        rects = []
        if w >= 64 and h >= 128:
            people, _weights = self._people.detectMultiScale(
                gray, winStride=(8, 8), padding=(8, 8), scale=1.05,
            )
            rects.extend(_rects(people, w, h))
        cats = self._cat_faces.detectMultiScale(
            gray, scaleFactor=1.1, minNeighbors=5, minSize=(24, 24),
        )
        rects.extend(_rects(cats, w, h))
        return rects

    def detect_text(self, image: Image.Image) -> list[NormalizedRect]:
        gray = _gray(image, DETECTION_MAX_WIDTH)
        h, w = gray.shape
        gradient = cv2.morphologyEx(
            gray, cv2.MORPH_GRADIENT,
            cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (3, 3)),
        )
        _, binary = cv2.threshold(gradient, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
        joined = cv2.morphologyEx(
            binary, cv2.MORPH_CLOSE,
            cv2.getStructuringElement(cv2.MORPH_RECT, (9, 1)),
        )
        contours, _ = cv2.findContours(joined, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        found = []
        for contour in contours:
            x, y, cw, ch = cv2.boundingRect(contour)
            if cw < 8 or ch < 8 or cw < 1.5 * ch or ch > 0.2 * h:
                continue
            fill = cv2.countNonZero(binary[y:y + ch, x:x + cw]) / float(cw * ch)
            if fill > 0.45:
                found.append((x, y, cw, ch))
        return _rects(found, w, h)
