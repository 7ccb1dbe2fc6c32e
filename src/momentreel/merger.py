"""Record merger — one ordered work list from posts and memories.

Posts and memories overlap: the same moment can show up in both
collections. Each record is keyed by its back-camera media path and fed
through a single insertion-ordered dict, so the first record seen for a
key wins (posts are fed first) and later duplicates are dropped rather
than merged.

Three independent sequences come out:
  - captures: image pairs eligible for compositing.
  - videos: moments with a video capture, copied verbatim.
  - bts: behind-the-scenes files, copied verbatim, keyed by their own path.

Records whose files are missing on disk are excluded without error so a
partial or damaged export still produces everything it can.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .models import (
    BtsItem,
    CapturePair,
    Memory,
    Post,
    RecordSource,
    VideoMoment,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergedRecords:
    captures: tuple[CapturePair, ...]
    videos: tuple[VideoMoment, ...]
    bts: tuple[BtsItem, ...]

    @property
    def unit_count(self) -> int:
        return len(self.captures) + len(self.videos) + len(self.bts)


def comment_key(path: str | Path) -> str:
    """Comment ``post_id`` for a capture: back filename without '.webp'."""
    name = Path(path).name
    if name.endswith(".webp"):
        return name[: -len(".webp")]
    return name


def _by_time(items: Iterable) -> tuple:
    # sorted() is stable, so equal timestamps keep insertion order.
    return tuple(sorted(items, key=lambda item: item.timestamp))


def _both_exist(exists, *paths) -> bool:
    return all(exists(p) for p in paths)


def merge_captures(
    posts: Iterable[Post],
    memories: Iterable[Memory],
    base_dir: str | Path,
    exists: Callable[[Path], bool] = Path.exists,
) -> tuple[CapturePair, ...]:
    """Deduplicate image-pair moments and order them by capture time."""
    merged: dict[str, CapturePair] = {}

    for post in posts:
        if not post.has_both_images:
            continue
        key = post.primary.path
        back = post.primary.local_path(base_dir)
        front = post.secondary.local_path(base_dir)
        if not _both_exist(exists, back, front):
            logger.debug("Skipping post %s: media missing on disk", key)
            continue
        if key in merged:
            continue
        merged[key] = CapturePair(
            identity_key=key,
            timestamp=post.taken_at,
            back_media=post.primary,
            front_media=post.secondary,
            back_path=back,
            front_path=front,
            source=RecordSource.POST,
            location=post.location,
            caption=post.caption,
        )

    for memory in memories:
        if not memory.has_both_images:
            continue
        back_item = memory.back_for_export
        front_item = memory.front_for_export
        key = back_item.path
        if key in merged:
            continue
        back = back_item.local_path(base_dir)
        front = front_item.local_path(base_dir)
        if not _both_exist(exists, back, front):
            logger.debug("Skipping memory %s: media missing on disk", key)
            continue
        merged[key] = CapturePair(
            identity_key=key,
            timestamp=memory.taken_time,
            back_media=back_item,
            front_media=front_item,
            back_path=back,
            front_path=front,
            source=RecordSource.MEMORY,
            location=memory.location,
            caption=memory.caption,
        )

    return _by_time(merged.values())


def merge_videos(
    posts: Iterable[Post],
    memories: Iterable[Memory],
    base_dir: str | Path,
    exists: Callable[[Path], bool] = Path.exists,
) -> tuple[VideoMoment, ...]:
    """Moments whose live back or front capture is a video."""
    merged: dict[str, VideoMoment] = {}

    records = [
        (post.primary, post.secondary, post.taken_at, RecordSource.POST)
        for post in posts if post.has_video
    ] + [
        (memory.back_image, memory.front_image, memory.taken_time, RecordSource.MEMORY)
        for memory in memories if memory.has_video
    ]

    for back_item, front_item, taken, source in records:
        key = back_item.path
        if key in merged:
            continue
        back = back_item.local_path(base_dir)
        front = front_item.local_path(base_dir)
        if not _both_exist(exists, back, front):
            logger.debug("Skipping video moment %s: media missing on disk", key)
            continue
        merged[key] = VideoMoment(
            identity_key=key,
            timestamp=taken,
            back_path=back,
            front_path=front,
            source=source,
        )

    return _by_time(merged.values())


def merge_bts(
    posts: Iterable[Post],
    memories: Iterable[Memory],
    base_dir: str | Path,
    exists: Callable[[Path], bool] = Path.exists,
) -> tuple[BtsItem, ...]:
    """Behind-the-scenes files, deduplicated by their own media path."""
    merged: dict[str, BtsItem] = {}

    records = [
        (post.bts_media, post.taken_at, RecordSource.POST) for post in posts
    ] + [
        (memory.bts_media, memory.taken_time, RecordSource.MEMORY) for memory in memories
    ]

    for media, taken, source in records:
        if media is None or media.path in merged:
            continue
        local = media.local_path(base_dir)
        if not exists(local):
            logger.debug("Skipping BTS media %s: missing on disk", media.path)
            continue
        merged[media.path] = BtsItem(
            identity_key=media.path,
            timestamp=taken,
            path=local,
            source=source,
        )

    return _by_time(merged.values())


def merge_records(
    posts: Iterable[Post],
    memories: Iterable[Memory],
    base_dir: str | Path,
    exists: Callable[[Path], bool] = Path.exists,
) -> MergedRecords:
    """Build all three ordered work lists for one export.

    Args:
        posts: Posts in export order. Posts take priority on duplicates.
        memories: Memories in export order.
        base_dir: Export data folder that relative media paths resolve against.
        exists: File existence check, injectable for tests.

    Returns:
        MergedRecords with captures, videos and bts sorted by timestamp.
    """
    posts = list(posts)
    memories = list(memories)
    result = MergedRecords(
        captures=merge_captures(posts, memories, base_dir, exists),
        videos=merge_videos(posts, memories, base_dir, exists),
        bts=merge_bts(posts, memories, base_dir, exists),
    )
    logger.debug(
        "Merged %d capture(s), %d video moment(s), %d BTS file(s)",
        len(result.captures), len(result.videos), len(result.bts),
    )
    return result
