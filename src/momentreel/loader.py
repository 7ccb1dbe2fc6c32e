"""Export loader — read an export folder or zip into ExportData.

Expected layout (the folder holding user.json may be nested anywhere):

  user.json, posts.json, memories.json   required
  comments.json                           optional, [{postId, content}]
  Photos/                                 required
  conversations/<id>/*.{webp,jpg,...}     optional chat photos
"""

import json
import logging
import tempfile
import zipfile
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator

from .errors import (
    DataFolderNotFound,
    ExportParseError,
    InvalidExportPath,
    MissingExportFile,
)
from .models import (
    Comment,
    ContentKind,
    ConversationImage,
    ExportData,
    GeoPoint,
    MediaItem,
    Memory,
    Post,
    UserProfile,
)

logger = logging.getLogger(__name__)


CONVERSATION_IMAGE_EXTENSIONS = {".webp", ".jpg", ".jpeg", ".png", ".heic"}


# ── Field parsing ────────────────────────────────────────────────


def parse_timestamp(value: str) -> datetime:
    """ISO-8601 timestamp; a trailing 'Z' means UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _parse_day(value: str | None) -> date | None:
    if not value:
        return None
    if "T" in value:
        return parse_timestamp(value).date()
    return date.fromisoformat(value)


def _media(raw: dict | None) -> MediaItem | None:
    if raw is None:
        return None
    kind = ContentKind.VIDEO if raw.get("mediaType") == "video" else ContentKind.IMAGE
    return MediaItem(
        bucket=raw.get("bucket", ""),
        width=int(raw.get("width", 0)),
        height=int(raw.get("height", 0)),
        path=raw["path"],
        content_kind=kind,
        mime_type=raw.get("mimeType"),
    )


def _location(raw: dict | None) -> GeoPoint | None:
    if not raw or "latitude" not in raw or "longitude" not in raw:
        return None
    return GeoPoint(float(raw["latitude"]), float(raw["longitude"]))


def parse_post(raw: dict) -> Post:
    return Post(
        primary=_media(raw["primary"]),
        secondary=_media(raw["secondary"]),
        taken_at=parse_timestamp(raw["takenAt"]),
        bts_media=_media(raw.get("btsMedia")),
        caption=raw.get("caption"),
        location=_location(raw.get("location")),
    )


def parse_memory(raw: dict) -> Memory:
    return Memory(
        front_image=_media(raw["frontImage"]),
        back_image=_media(raw["backImage"]),
        taken_time=parse_timestamp(raw["takenTime"]),
        memory_day=_parse_day(raw.get("date")),
        bts_media=_media(raw.get("btsMedia")),
        primary_placeholder=_media(raw.get("primaryPlaceholder")),
        secondary_placeholder=_media(raw.get("secondaryPlaceholder")),
        caption=raw.get("caption"),
        location=_location(raw.get("location")),
    )


def _read_json(path: Path, parse):
    try:
        with open(path, encoding="utf-8") as f:
            return parse(json.load(f))
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise ExportParseError(f"{path.name} - {exc}") from exc


# ── Discovery ────────────────────────────────────────────────────


def find_data_folder(directory: str | Path) -> Path:
    """Locate the folder holding user.json, searching subfolders first."""
    directory = Path(directory)
    for item in sorted(directory.iterdir()):
        if item.name.startswith(".") or not item.is_dir():
            continue
        if (item / "user.json").exists():
            return item
        try:
            return find_data_folder(item)
        except DataFolderNotFound:
            continue
    if (directory / "user.json").exists():
        return directory
    raise DataFolderNotFound(directory)


def find_conversation_images(folder: Path) -> tuple[ConversationImage, ...]:
    conversations = folder / "conversations"
    if not conversations.is_dir():
        return ()
    images = []
    for convo in sorted(conversations.iterdir()):
        if not convo.is_dir() or convo.name.startswith("."):
            continue
        for file in sorted(convo.iterdir()):
            if file.suffix.lower() in CONVERSATION_IMAGE_EXTENSIONS:
                images.append(ConversationImage(
                    conversation_id=convo.name,
                    filename=file.name,
                    path=file,
                ))
    return tuple(images)


# ── Loading ──────────────────────────────────────────────────────


def load_data_folder(folder: str | Path) -> ExportData:
    """Parse a data folder (the one containing user.json).

    Raises:
        MissingExportFile: A required file or the Photos folder is absent.
        ExportParseError: A JSON file could not be decoded.
    """
    folder = Path(folder)
    for name in ("user.json", "posts.json", "memories.json"):
        if not (folder / name).exists():
            raise MissingExportFile(name)
    if not (folder / "Photos").is_dir():
        raise MissingExportFile("Photos")

    user = _read_json(
        folder / "user.json",
        lambda raw: UserProfile(raw["username"], raw.get("fullname", "")),
    )
    posts = _read_json(folder / "posts.json", lambda raw: tuple(parse_post(p) for p in raw))
    memories = _read_json(folder / "memories.json", lambda raw: tuple(parse_memory(m) for m in raw))

    comments = ()
    if (folder / "comments.json").exists():
        comments = _read_json(
            folder / "comments.json",
            lambda raw: tuple(Comment(str(c["postId"]), c["content"]) for c in raw),
        )

    export = ExportData(
        user=user,
        posts=posts,
        memories=memories,
        base_dir=folder,
        conversation_images=find_conversation_images(folder),
        comments=comments,
    )
    logger.info(
        "Loaded export for %s: %d posts, %d memories, %d chat photos",
        user.username, len(posts), len(memories), len(export.conversation_images),
    )
    return export


@contextmanager
def open_export(path: str | Path) -> Iterator[ExportData]:
    """Load an export folder or zip archive.

    Zip archives are extracted into a temporary directory that is removed
    when the context exits.

    Raises:
        InvalidExportPath: Neither a directory nor a .zip file.
        DataFolderNotFound: No user.json anywhere inside.
    """
    path = Path(path)
    if path.is_dir():
        yield load_data_folder(find_data_folder(path))
    elif path.suffix.lower() == ".zip" and path.is_file():
        with tempfile.TemporaryDirectory(prefix="momentreel-") as tmp:
            try:
                with zipfile.ZipFile(path) as archive:
                    archive.extractall(tmp)
            except zipfile.BadZipFile as exc:
                raise ExportParseError(f"Failed to extract ZIP file: {exc}") from exc
            yield load_data_folder(find_data_folder(tmp))
    else:
        raise InvalidExportPath(path)
