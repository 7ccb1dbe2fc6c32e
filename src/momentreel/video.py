"""Time-lapse assembly — stream rendered frames into an mp4.

The assembler walks a fixed, pre-filtered frame list:

  NOT_STARTED → WRITING(i) → FINALIZING → COMPLETED | FAILED | CANCELLED

The first frame is rendered up front to learn the output size, rounded up
to even dimensions. Rendering runs in a worker thread and is awaited, one
frame at a time. Before each append the assembler polls the writer until
it has room, checking for cancellation on every poll. Errors the encoder
deferred surface while finalizing.
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Callable

from .analysis import VisualAnalyzer
from .cancellation import CancellationToken
from .errors import ExportCancelled, NoFrames
from .frames import (
    FrameItem,
    FrameTime,
    even_size,
    render_frame,
    to_pixel_buffer,
)
from .models import ExportProgress, FrameSpec
from .overlays import format_stamp_date
from .writer import FrameWriter

logger = logging.getLogger(__name__)


POLL_INTERVAL = 0.01             # seconds between writer readiness polls


class AssemblerState(str, Enum):
    NOT_STARTED = "not_started"
    WRITING = "writing"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class VideoAssembler:
    """Render and encode one time-lapse.

    Args:
        frames: Filtered, time-ordered frames.
        spec: Content mode, corner, target size, fps and date stamp flag.
        output_path: Destination mp4; an existing file is replaced.
        analyzer: Visual analyzer for auto placement.
        token: Cancellation token shared with the caller.
        on_progress: Called after every appended frame.
        writer_factory: Builds the writer from (path, size, fps).
    """

    def __init__(
        self,
        frames: tuple[FrameItem, ...],
        spec: FrameSpec,
        output_path: str | Path,
        analyzer: VisualAnalyzer | None = None,
        token: CancellationToken | None = None,
        on_progress: Callable[[ExportProgress], None] | None = None,
        writer_factory: Callable = FrameWriter,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.frames = tuple(frames)
        self.spec = spec
        self.output_path = Path(output_path)
        self.analyzer = analyzer
        self.token = token or CancellationToken()
        self.on_progress = on_progress
        self.writer_factory = writer_factory
        self.poll_interval = poll_interval
        self.state = AssemblerState.NOT_STARTED
        self.frame_index = 0
        self.video_size: tuple[int, int] | None = None

    def _render(self, frame: FrameItem):
        return render_frame(frame, self.spec, self.analyzer)

    async def _wait_until_ready(self, writer) -> None:
        while not writer.is_ready_for_more:
            self.token.raise_if_cancelled()
            await asyncio.sleep(self.poll_interval)

    async def run(self) -> Path:
        """Write the video and return its path.

        Raises:
            NoFrames: The frame list is empty (no writer is created).
            WriterStartFailed: ffmpeg could not be started.
            PixelBufferFailed: A frame could not be converted for encoding.
            WriterFailed: The encoder failed, possibly only at finalize.
            ExportCancelled: The token was cancelled.
        """
        if not self.frames:
            self.state = AssemblerState.FAILED
            raise NoFrames()

        writer = None
        try:
            await self.token.checkpoint()
            first = await asyncio.to_thread(self._render, self.frames[0])
            self.video_size = even_size(first.width, first.height)

            writer = self.writer_factory(
                self.output_path, self.video_size, self.spec.frames_per_second,
            )
            writer.start()
            logger.info(
                "Writing %d frame(s) at %sx%s, %s fps to %s",
                len(self.frames), *self.video_size,
                self.spec.frames_per_second, self.output_path,
            )

            total = len(self.frames)
            for index, frame in enumerate(self.frames):
                await self.token.checkpoint()
                self.state = AssemblerState.WRITING
                self.frame_index = index

                rendered = first if index == 0 else await asyncio.to_thread(self._render, frame)
                buffer = await asyncio.to_thread(to_pixel_buffer, rendered, *self.video_size)
                await self._wait_until_ready(writer)
                writer.append(buffer, FrameTime(index, self.spec.frames_per_second))

                self.token.completed = index + 1
                if self.on_progress is not None:
                    self.on_progress(ExportProgress(
                        current=index + 1,
                        total=total,
                        current_label=format_stamp_date(frame.timestamp),
                    ))

            self.state = AssemblerState.FINALIZING
            await asyncio.to_thread(writer.finish)
            writer = None
        except ExportCancelled:
            self.state = AssemblerState.CANCELLED
            raise
        except Exception:
            self.state = AssemblerState.FAILED
            raise
        finally:
            if writer is not None:
                await asyncio.to_thread(writer.abort)

        self.state = AssemblerState.COMPLETED
        return self.output_path
