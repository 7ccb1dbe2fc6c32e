"""Data model for an imported export and for the requests made against it.

Everything here is an immutable view over the imported export. Request-time
options (CompositeSpec, FrameSpec) live next to the records they act on so
that every pipeline stage shares one vocabulary.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path


# ── Media references ─────────────────────────────────────────────


class ContentKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


def resolve_media_path(path: str, base_dir: str | Path) -> Path:
    """Map an export-relative media path to a local file path.

    Exports reference photos as ``Photos/<user>/<year-month>/<file>`` while
    the files on disk live at ``Photos/<year-month>/<file>``, so the user
    segment is dropped. Anything else is appended unchanged.
    """
    clean = path[1:] if path.startswith("/") else path
    parts = clean.split("/")
    if len(parts) >= 4 and parts[0] == "Photos":
        return Path(base_dir) / "Photos" / parts[2] / parts[3]
    return Path(base_dir) / clean


@dataclass(frozen=True)
class MediaItem:
    bucket: str
    width: int
    height: int
    path: str
    content_kind: ContentKind = ContentKind.IMAGE
    mime_type: str | None = None

    @property
    def is_video(self) -> bool:
        if self.content_kind == ContentKind.VIDEO:
            return True
        return self.mime_type is not None and "video" in self.mime_type

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def local_path(self, base_dir: str | Path) -> Path:
        return resolve_media_path(self.path, base_dir)


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


# ── Raw export records ───────────────────────────────────────────


@dataclass(frozen=True)
class UserProfile:
    username: str
    fullname: str = ""


@dataclass(frozen=True)
class Post:
    primary: MediaItem
    secondary: MediaItem
    taken_at: datetime
    bts_media: MediaItem | None = None
    caption: str | None = None
    location: GeoPoint | None = None

    @property
    def has_both_images(self) -> bool:
        return not self.primary.is_video and not self.secondary.is_video

    @property
    def has_video(self) -> bool:
        return self.primary.is_video or self.secondary.is_video


@dataclass(frozen=True)
class Memory:
    front_image: MediaItem
    back_image: MediaItem
    taken_time: datetime
    memory_day: date | None = None
    bts_media: MediaItem | None = None
    primary_placeholder: MediaItem | None = None
    secondary_placeholder: MediaItem | None = None
    caption: str | None = None
    location: GeoPoint | None = None

    @property
    def front_for_export(self) -> MediaItem:
        """Front image, or its still placeholder when the capture was a video."""
        if self.front_image.is_video and self.primary_placeholder is not None:
            return self.primary_placeholder
        return self.front_image

    @property
    def back_for_export(self) -> MediaItem:
        if self.back_image.is_video and self.secondary_placeholder is not None:
            return self.secondary_placeholder
        return self.back_image

    @property
    def has_both_images(self) -> bool:
        return not self.front_for_export.is_video and not self.back_for_export.is_video

    @property
    def has_video(self) -> bool:
        return self.front_image.is_video or self.back_image.is_video


@dataclass(frozen=True)
class ConversationImage:
    conversation_id: str
    filename: str
    path: Path
    date: datetime | None = None


@dataclass(frozen=True)
class Comment:
    post_id: str
    content: str


@dataclass(frozen=True)
class ExportData:
    """A validated, in-memory export ready for the pipeline."""

    user: UserProfile
    posts: tuple[Post, ...]
    memories: tuple[Memory, ...]
    base_dir: Path
    conversation_images: tuple[ConversationImage, ...] = ()
    comments: tuple[Comment, ...] = ()

    @property
    def image_pair_count(self) -> int:
        return (
            sum(1 for p in self.posts if p.has_both_images)
            + sum(1 for m in self.memories if m.has_both_images)
        )

    @property
    def date_range(self) -> tuple[datetime, datetime] | None:
        dates = [p.taken_at for p in self.posts] + [m.taken_time for m in self.memories]
        if not dates:
            return None
        return min(dates), max(dates)


# ── Merged work items ────────────────────────────────────────────


class RecordSource(str, Enum):
    POST = "post"
    MEMORY = "memory"


@dataclass(frozen=True)
class CapturePair:
    """One moment: simultaneous back and front camera images."""

    identity_key: str
    timestamp: datetime
    back_media: MediaItem
    front_media: MediaItem
    back_path: Path
    front_path: Path
    source: RecordSource = RecordSource.POST
    location: GeoPoint | None = None
    caption: str | None = None


@dataclass(frozen=True)
class VideoMoment:
    """A moment whose back or front capture is a video, copied verbatim."""

    identity_key: str
    timestamp: datetime
    back_path: Path
    front_path: Path
    source: RecordSource = RecordSource.POST


@dataclass(frozen=True)
class BtsItem:
    """A behind-the-scenes file captured alongside a moment."""

    identity_key: str
    timestamp: datetime
    path: Path
    source: RecordSource = RecordSource.POST


# ── Request options ──────────────────────────────────────────────


class OverlayCorner(str, Enum):
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"


class CornerMode(str, Enum):
    """Request-time modifiers; never a resolved placement."""

    AUTO = "auto"
    ALL = "all"


CornerRequest = OverlayCorner | CornerMode

CORNER_ORDER = (
    OverlayCorner.TOP_LEFT,
    OverlayCorner.TOP_RIGHT,
    OverlayCorner.BOTTOM_LEFT,
    OverlayCorner.BOTTOM_RIGHT,
)


def parse_corner(value: str) -> CornerRequest:
    """Parse 'auto', 'all' or a corner name like 'top-left' / 'top_left'."""
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    for mode in CornerMode:
        if key == mode.value:
            return mode
    for corner in OverlayCorner:
        if key == corner.value:
            return corner
    raise ValueError(
        f"Unknown corner: '{value}'. "
        f"Valid: {sorted([m.value for m in CornerMode] + [c.value for c in OverlayCorner])}"
    )


class ImageStyle(str, Enum):
    COMBINED_ONLY = "combined"
    SEPARATE_ONLY = "separate"
    BOTH = "both"


class FolderLayout(str, Enum):
    BY_DATE = "by_date"
    FLAT = "flat"


@dataclass(frozen=True)
class CompositeSpec:
    style: ImageStyle = ImageStyle.BOTH
    corner: CornerRequest = CornerMode.AUTO
    folder_layout: FolderLayout = FolderLayout.BY_DATE


class ContentMode(str, Enum):
    BACK_ONLY = "back_only"
    FRONT_ONLY = "front_only"
    COMBINED_BACK_MAIN = "combined_back_main"
    COMBINED_FRONT_MAIN = "combined_front_main"


RESOLUTION_PRESETS = {
    "original": None,
    "1080p": (1920, 1080),
    "720p": (1280, 720),
}


@dataclass(frozen=True)
class FrameSpec:
    content_mode: ContentMode = ContentMode.COMBINED_BACK_MAIN
    corner: CornerRequest = OverlayCorner.TOP_LEFT
    target_size: tuple[int, int] | None = None
    frames_per_second: float = 8
    date_overlay: bool = False
    start_date: date | None = None
    end_date: date | None = None


# ── Progress and results ─────────────────────────────────────────


@dataclass(frozen=True)
class ExportProgress:
    current: int
    total: int
    current_label: str = ""

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.current / self.total


@dataclass(frozen=True)
class Completed:
    items_completed: int = 0

    def describe(self) -> str:
        return f"Export finished: {self.items_completed} item(s)."


@dataclass(frozen=True)
class Cancelled:
    items_completed: int = 0

    def describe(self) -> str:
        return f"Export was cancelled after {self.items_completed} item(s)."


@dataclass(frozen=True)
class Failed:
    error_description: str
    items_completed: int = 0
    error: Exception | None = field(default=None, compare=False, repr=False)

    def describe(self) -> str:
        return f"Export failed: {self.error_description}"


ExportResult = Completed | Cancelled | Failed
