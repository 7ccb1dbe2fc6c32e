"""Pipeline orchestrator — run an image or video export end to end.

A run is one asyncio task. It fixes the unit total up front, then works
through the units strictly in order, handing decode/composite/copy work to
a worker thread and awaiting it before the next unit starts. After every
unit it emits an ExportProgress. Before every unit it yields and checks
the cancellation token.

Image export units, in order:
  1. capture pairs (composited / re-encoded JPEGs)
  2. video moments (raw back/front files copied)
  3. behind-the-scenes files (copied)
  4. conversation photos (copied into Conversations/<conversation>/)
Comments are written last, one comments.txt per output folder.

Nothing is rolled back: a cancelled or failed run leaves its files.
"""

import asyncio
import logging
import shutil
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable

from .analysis import VisualAnalyzer
from .cancellation import CancellationToken
from .common import ensure_directory, output_directory, output_stem
from .compositor import composite_capture
from .errors import ExportCancelled, ExportError, WriteFailed
from .frames import collect_frames, filter_frames
from .merger import comment_key, merge_records
from .models import (
    Cancelled,
    Completed,
    CompositeSpec,
    ExportData,
    ExportProgress,
    ExportResult,
    Failed,
    FolderLayout,
    FrameSpec,
)
from .video import VideoAssembler

logger = logging.getLogger(__name__)


CONVERSATIONS_FOLDER = "Conversations"
COMMENTS_FILENAME = "comments.txt"

ProgressCallback = Callable[[ExportProgress], None]


@dataclass(frozen=True)
class ImageExportOptions:
    composite: CompositeSpec = field(default_factory=CompositeSpec)
    include_conversations: bool = True
    include_comments: bool = True


class ProgressCounter:
    """Single-writer progress state for one run."""

    def __init__(self, total: int, token: CancellationToken, on_progress: ProgressCallback | None):
        self.total = total
        self.current = 0
        self.token = token
        self.on_progress = on_progress

    def advance(self, label: str) -> ExportProgress:
        self.current += 1
        self.token.completed = self.current
        progress = ExportProgress(self.current, self.total, label)
        if self.on_progress is not None:
            self.on_progress(progress)
        return progress


# ── Unit workers (run in a thread) ───────────────────────────────


def _copy_file(source: Path, target: Path, overwrite: bool = True) -> Path:
    if target.exists() and not overwrite:
        return target
    try:
        shutil.copy2(source, target)
    except OSError as exc:
        raise WriteFailed(target, str(exc)) from exc
    return target


def _copy_video_moment(moment, out_dir: Path, stem: str) -> list[Path]:
    return [
        _copy_file(moment.back_path, out_dir / f"{stem}_back{moment.back_path.suffix}"),
        _copy_file(moment.front_path, out_dir / f"{stem}_front{moment.front_path.suffix}"),
    ]


def write_comments(folder_comments: dict[Path, list[tuple[str, str]]]) -> list[Path]:
    """Write one comments.txt per folder, entries sorted by filename."""
    written = []
    for folder, entries in folder_comments.items():
        lines = [f"{name}: {text}" for name, text in sorted(entries)]
        path = folder / COMMENTS_FILENAME
        try:
            path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as exc:
            raise WriteFailed(path, str(exc)) from exc
        written.append(path)
    return written


def _relative_label(path: Path, destination: Path) -> str:
    try:
        return str(path.relative_to(destination))
    except ValueError:
        return path.name


# ── Image export ─────────────────────────────────────────────────


async def export_images(
    export: ExportData,
    destination: str | Path,
    options: ImageExportOptions = ImageExportOptions(),
    analyzer: VisualAnalyzer | None = None,
    token: CancellationToken | None = None,
    on_progress: ProgressCallback | None = None,
) -> int:
    """Export every eligible unit of an export into `destination`.

    Returns:
        Number of units completed.

    Raises:
        ExportCancelled: Cancellation was requested; carries the count.
        ExportError: Any compositing, copy or directory failure.
    """
    token = token or CancellationToken()
    destination = ensure_directory(destination)
    layout = options.composite.folder_layout

    merged = merge_records(export.posts, export.memories, export.base_dir)
    conversations = export.conversation_images if options.include_conversations else ()
    counter = ProgressCounter(merged.unit_count + len(conversations), token, on_progress)
    logger.info(
        "Exporting %d unit(s) to %s (%s, corner %s)",
        counter.total, destination,
        options.composite.style.value, options.composite.corner.value,
    )

    comments_by_post = defaultdict(list)
    if options.include_comments:
        for comment in export.comments:
            comments_by_post[comment.post_id].append(comment.content)
    folder_comments = defaultdict(list)

    for capture in merged.captures:
        await token.checkpoint()
        out_dir = ensure_directory(output_directory(destination, capture.timestamp, layout))
        stem = output_stem(capture.source.value, capture.timestamp)
        written = await asyncio.to_thread(
            composite_capture, capture, options.composite, out_dir, stem, analyzer,
        )
        for text in comments_by_post.get(comment_key(capture.back_media.path), ()):
            folder_comments[out_dir].append((stem, text))
        label = _relative_label(written[0], destination) if written else stem
        counter.advance(label)

    for moment in merged.videos:
        await token.checkpoint()
        out_dir = ensure_directory(output_directory(destination, moment.timestamp, layout))
        stem = output_stem(moment.source.value, moment.timestamp)
        written = await asyncio.to_thread(_copy_video_moment, moment, out_dir, stem)
        counter.advance(_relative_label(written[0], destination))

    for item in merged.bts:
        await token.checkpoint()
        out_dir = ensure_directory(output_directory(destination, item.timestamp, layout))
        target = out_dir / f"{output_stem(item.source.value, item.timestamp)}_bts{item.path.suffix}"
        await asyncio.to_thread(_copy_file, item.path, target)
        counter.advance(_relative_label(target, destination))

    for image in conversations:
        await token.checkpoint()
        folder = ensure_directory(destination / CONVERSATIONS_FOLDER / image.conversation_id)
        target = folder / image.filename
        await asyncio.to_thread(_copy_file, image.path, target, False)
        counter.advance(_relative_label(target, destination))

    if folder_comments:
        await asyncio.to_thread(write_comments, folder_comments)

    logger.info("Export complete: %d unit(s)", counter.current)
    return counter.current


# ── Video export ─────────────────────────────────────────────────


async def export_video(
    export: ExportData,
    output_path: str | Path,
    spec: FrameSpec = FrameSpec(),
    analyzer: VisualAnalyzer | None = None,
    token: CancellationToken | None = None,
    on_progress: ProgressCallback | None = None,
) -> int:
    """Render the time-lapse for `export` into `output_path`.

    Returns:
        Number of frames written.
    """
    frames = filter_frames(collect_frames(export), spec.start_date, spec.end_date)
    assembler = VideoAssembler(
        frames, spec, output_path,
        analyzer=analyzer, token=token, on_progress=on_progress,
    )
    await assembler.run()
    logger.info("Video complete: %d frame(s) in %s", len(frames), output_path)
    return len(frames)


# ── Session (UI-facing) ──────────────────────────────────────────


class ExportSession:
    """One export run with start / cancel / wait and observable progress.

    Progress callbacks run on the thread driving the export; a UI should
    marshal them onto its own thread.
    """

    def __init__(
        self,
        job: Callable[[CancellationToken, ProgressCallback], Awaitable[int]],
        on_progress: ProgressCallback | None = None,
    ):
        self._job = job
        self._on_progress = on_progress
        self.token = CancellationToken()
        self.progress: ExportProgress | None = None
        self.result: ExportResult | None = None
        self._thread: threading.Thread | None = None
        self._done = threading.Event()

    @classmethod
    def for_images(
        cls,
        export: ExportData,
        destination: str | Path,
        options: ImageExportOptions = ImageExportOptions(),
        analyzer: VisualAnalyzer | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> "ExportSession":
        def job(token, emit):
            return export_images(export, destination, options, analyzer, token, emit)
        return cls(job, on_progress)

    @classmethod
    def for_video(
        cls,
        export: ExportData,
        output_path: str | Path,
        spec: FrameSpec = FrameSpec(),
        analyzer: VisualAnalyzer | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> "ExportSession":
        def job(token, emit):
            return export_video(export, output_path, spec, analyzer, token, emit)
        return cls(job, on_progress)

    def _emit(self, progress: ExportProgress) -> None:
        self.progress = progress
        if self._on_progress is not None:
            self._on_progress(progress)

    async def run(self) -> ExportResult:
        """Drive the job to a terminal result on the current event loop."""
        try:
            completed = await self._job(self.token, self._emit)
        except ExportCancelled as exc:
            self.result = Cancelled(exc.completed)
        except ExportError as exc:
            self.result = self._failure(exc)
        except Exception as exc:
            # Bugs and third-party errors are reported as Failed too.
            logger.exception("Unexpected error during export")
            self.result = self._failure(exc)
        else:
            self.result = Completed(completed)
        self._done.set()
        return self.result

    def _failure(self, exc: Exception) -> ExportResult:
        if self.token.cancelled:
            return Cancelled(self.token.completed)
        logger.error("Export failed: %s", exc)
        return Failed(str(exc), self.token.completed, exc)

    def _drive(self) -> None:
        try:
            asyncio.run(self.run())
        except Exception as exc:
            self.result = self._failure(exc)
        finally:
            self._done.set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> None:
        """Run the export on a background thread with its own event loop."""
        if self._thread is not None:
            raise RuntimeError("Export session already started")
        self._thread = threading.Thread(
            target=self._drive, name="momentreel-export", daemon=True,
        )
        self._thread.start()

    def cancel(self) -> None:
        self.token.cancel()

    def wait(self, timeout: float | None = None) -> ExportResult | None:
        """Block until the run ends; None if `timeout` elapsed first."""
        if not self._done.wait(timeout):
            return None
        if self._thread is not None:
            self._thread.join()
        return self.result


def run_session(session: ExportSession) -> ExportResult:
    """Run a session to completion on a fresh event loop."""
    return asyncio.run(session.run())
