"""Shared test fixtures for momentreel tests.

`export_dir` builds a small but complete export on disk:

  posts:     post1 (2024-01-15, caption + location, one comment)
             post2 (2024-01-01, with a BTS clip)
             post3 (2024-01-20, back camera is a video)
  memories:  a duplicate of post1 (dropped), mem3 (2024-02-01),
             mem4 (front file missing, dropped)
  chat:      conversations/c1/chat1.jpg
"""

import json
from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from momentreel.models import CapturePair, MediaItem, RecordSource


BACK_SIZE = (120, 160)
FRONT_SIZE = (90, 120)


def write_image(path: Path, size=BACK_SIZE, color=(200, 30, 30)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format="JPEG", quality=95)
    return path


def media(path: str, kind: str = "image", width: int = 1500, height: int = 2000) -> dict:
    raw = {"bucket": "storage", "width": width, "height": height, "path": path}
    if kind == "video":
        raw["mediaType"] = "video"
        raw["mimeType"] = "video/mp4"
    return raw


def make_capture(back: Path, front: Path, timestamp: datetime, **kwargs) -> CapturePair:
    return CapturePair(
        identity_key=str(back),
        timestamp=timestamp,
        back_media=MediaItem("b", *BACK_SIZE, path=str(back)),
        front_media=MediaItem("b", *FRONT_SIZE, path=str(front)),
        back_path=back,
        front_path=front,
        source=kwargs.pop("source", RecordSource.POST),
        **kwargs,
    )


@pytest.fixture
def pair_files(tmp_path):
    """A red back image and a blue front image."""
    back = write_image(tmp_path / "src" / "back.jpg", BACK_SIZE, (220, 20, 20))
    front = write_image(tmp_path / "src" / "front.jpg", FRONT_SIZE, (20, 20, 220))
    return back, front


@pytest.fixture
def export_dir(tmp_path):
    root = tmp_path / "export" / "data"
    photos = root / "Photos" / "2024-01"
    photos_feb = root / "Photos" / "2024-02"

    write_image(photos / "post1_back.jpg", color=(220, 20, 20))
    write_image(photos / "post1_front.jpg", FRONT_SIZE, (20, 20, 220))
    write_image(photos / "post2_back.jpg", color=(20, 160, 20))
    write_image(photos / "post2_front.jpg", FRONT_SIZE, (240, 240, 240))
    (photos / "post3_back.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42 fake video")
    write_image(photos / "post3_front.jpg", FRONT_SIZE)
    (photos / "bts2.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42 fake bts")
    write_image(photos_feb / "mem3_back.jpg", color=(30, 30, 30))
    write_image(photos_feb / "mem3_front.jpg", FRONT_SIZE, (250, 250, 0))
    write_image(photos_feb / "mem4_back.jpg")
    write_image(root / "conversations" / "c1" / "chat1.jpg", (64, 64))
    (root / "conversations" / "c1" / "notes.txt").write_text("not an image")

    posts = [
        {
            "primary": media("Photos/u1/2024-01/post1_back.jpg"),
            "secondary": media("Photos/u1/2024-01/post1_front.jpg"),
            "caption": "Nice day",
            "location": {"latitude": 48.8566, "longitude": 2.3522},
            "takenAt": "2024-01-15T09:30:00",
        },
        {
            "primary": media("Photos/u1/2024-01/post2_back.jpg"),
            "secondary": media("Photos/u1/2024-01/post2_front.jpg"),
            "btsMedia": media("Photos/u1/2024-01/bts2.mp4", kind="video"),
            "takenAt": "2024-01-01T08:00:00",
        },
        {
            "primary": media("Photos/u1/2024-01/post3_back.mp4", kind="video"),
            "secondary": media("Photos/u1/2024-01/post3_front.jpg"),
            "takenAt": "2024-01-20T18:45:10",
        },
    ]
    memories = [
        {
            "frontImage": media("Photos/u1/2024-01/post1_front.jpg"),
            "backImage": media("Photos/u1/2024-01/post1_back.jpg"),
            "caption": "memory copy",
            "date": "2024-01-15",
            "takenTime": "2024-01-15T09:31:00",
        },
        {
            "frontImage": media("Photos/u1/2024-02/mem3_front.jpg"),
            "backImage": media("Photos/u1/2024-02/mem3_back.jpg"),
            "date": "2024-02-01",
            "takenTime": "2024-02-01T12:00:00",
        },
        {
            "frontImage": media("Photos/u1/2024-02/mem4_front.jpg"),
            "backImage": media("Photos/u1/2024-02/mem4_back.jpg"),
            "date": "2024-02-02",
            "takenTime": "2024-02-02T12:00:00",
        },
    ]

    (root / "user.json").write_text(json.dumps({"username": "alex", "fullname": "Alex Doe"}))
    (root / "posts.json").write_text(json.dumps(posts))
    (root / "memories.json").write_text(json.dumps(memories))
    (root / "comments.json").write_text(json.dumps([
        {"postId": "post1_back.jpg", "content": "Great shot"},
        {"postId": "post1_back.jpg", "content": "Love it"},
        {"postId": "unknown", "content": "orphan"},
    ]))
    return root


@pytest.fixture
def export(export_dir):
    from momentreel.loader import load_data_folder
    return load_data_folder(export_dir)
