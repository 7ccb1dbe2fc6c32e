"""Streaming mp4 writer with flow control.

Frames are handed to a dedicated thread through a bounded queue; the
thread pipes them into ffmpeg via moviepy's FFMPEG_VideoWriter. A full
queue means the encoder is behind, and `is_ready_for_more` reports False
until it catches up, so producers can wait without blocking the event loop.

Encoder failures are captured on the writer thread and raised from the
next `append` or from `finish`, so a run learns about a broken pipe even
when every individual append had already succeeded.
"""

import logging
import queue
import threading
from pathlib import Path

import imageio_ffmpeg
import numpy as np
from moviepy.video.io.ffmpeg_writer import FFMPEG_VideoWriter

from .errors import WriterFailed, WriterStartFailed
from .frames import FrameTime

logger = logging.getLogger(__name__)


VIDEO_CODEC = "libx264"
FFMPEG_PARAMS = ["-crf", "20", "-pix_fmt", "yuv420p"]
QUEUE_DEPTH = 4
_POLL_SECONDS = 0.05
_END = object()


class FrameWriter:
    def __init__(
        self,
        path: str | Path,
        size: tuple[int, int],
        fps: float,
        queue_depth: int = QUEUE_DEPTH,
    ):
        self.path = Path(path)
        self.size = size
        self.fps = fps
        self.frames_written = 0
        self._queue = queue.Queue(maxsize=queue_depth)
        self._stop = threading.Event()
        self._error: Exception | None = None
        self._encoder = None
        self._thread = None

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> None:
        """Spawn ffmpeg and the feeding thread.

        Raises:
            WriterStartFailed: ffmpeg could not be started or the output
                location is unusable.
        """
        w, h = self.size
        if w % 2 or h % 2:
            raise WriterStartFailed(f"frame size {w}x{h} must be even")
        try:
            ffmpeg = imageio_ffmpeg.get_ffmpeg_exe()
        except RuntimeError as exc:
            raise WriterStartFailed(str(exc)) from exc
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                self.path.unlink()
            self._encoder = FFMPEG_VideoWriter(
                str(self.path),
                self.size,
                self.fps,
                codec=VIDEO_CODEC,
                ffmpeg_params=FFMPEG_PARAMS,
            )
        except OSError as exc:
            raise WriterStartFailed(str(exc)) from exc

        self._thread = threading.Thread(
            target=self._feed, name="momentreel-writer", daemon=True,
        )
        self._thread.start()
        logger.debug(
            "Writer started: %s %dx%d @ %s fps (%s)", self.path, w, h, self.fps, ffmpeg,
        )

    @property
    def is_ready_for_more(self) -> bool:
        # A failed writer is "ready" so the next append surfaces the error.
        return self._error is not None or not self._queue.full()

    def append(self, frame: np.ndarray, when: FrameTime) -> None:
        """Queue one (h, w, 3) uint8 frame.

        ffmpeg receives a constant-rate stream, so `when` must be the next
        tick of the writer's 1/fps clock.
        """
        if self._error is not None:
            raise WriterFailed(str(self._error))
        if when.value != self.frames_written or when.timescale != self.fps:
            raise ValueError(
                f"Frame at {when.value}/{when.timescale} out of order "
                f"(expected {self.frames_written}/{self.fps})"
            )
        h, w = frame.shape[:2]
        if (w, h) != tuple(self.size):
            raise ValueError(f"Frame is {w}x{h}, writer expects {self.size[0]}x{self.size[1]}")
        self._queue.put_nowait(frame)
        self.frames_written += 1

    def finish(self) -> Path:
        """Flush queued frames, close ffmpeg and report any deferred error."""
        self._put(_END)
        if self._thread is not None:
            self._thread.join()
        self._close_encoder()
        if self._error is not None:
            raise WriterFailed(str(self._error))
        if not self.path.exists() or self.path.stat().st_size == 0:
            raise WriterFailed(f"ffmpeg produced no output at {self.path}")
        return self.path

    def abort(self) -> None:
        """Stop feeding, close ffmpeg and leave whatever was written."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
        self._close_encoder()

    # ── Internals ────────────────────────────────────────────────

    def _put(self, item) -> None:
        while self._thread is not None and self._thread.is_alive():
            try:
                self._queue.put(item, timeout=_POLL_SECONDS)
                return
            except queue.Full:
                continue

    def _feed(self) -> None:
        while not self._stop.is_set():
            try:
                item = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
            if item is _END:
                return
            try:
                self._encoder.write_frame(item)
            except Exception as exc:
                # Re-raised from append()/finish() on the producer side.
                self._error = exc
                return

    def _close_encoder(self) -> None:
        if self._encoder is None:
            return
        try:
            self._encoder.close()
        except OSError as exc:
            if self._error is None:
                self._error = exc
        self._encoder = None
