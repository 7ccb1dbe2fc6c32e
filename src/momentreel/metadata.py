"""EXIF metadata written into every exported JPEG.

  - capture time → DateTimeOriginal, DateTimeDigitized and 0th DateTime
  - caption      → UserComment and ImageDescription (only when non-empty)
  - location     → GPS latitude/longitude as degree/minute/second
                   rationals plus N/S and E/W reference letters
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import piexif
import piexif.helper

from .common import local_wall_clock
from .models import GeoPoint


EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"
JPEG_QUALITY = 90                # 0.9 lossy compression quality
SECONDS_DENOMINATOR = 10000


@dataclass(frozen=True)
class ExportMetadata:
    timestamp: datetime
    location: GeoPoint | None = None
    caption: str | None = None


def format_exif_date(value: datetime) -> str:
    return local_wall_clock(value).strftime(EXIF_DATE_FORMAT)


def to_dms_rational(value: float) -> tuple[tuple[int, int], ...]:
    """Absolute decimal degrees → ((deg, 1), (min, 1), (sec, denominator))."""
    value = abs(value)
    degrees = int(value)
    minutes = int((value - degrees) * 60)
    seconds = (value - degrees - minutes / 60) * 3600
    return (
        (degrees, 1),
        (minutes, 1),
        (round(seconds * SECONDS_DENOMINATOR), SECONDS_DENOMINATOR),
    )


def from_dms_rational(dms) -> float:
    (d_num, d_den), (m_num, m_den), (s_num, s_den) = dms
    return d_num / d_den + (m_num / m_den) / 60 + (s_num / s_den) / 3600


def build_exif(metadata: ExportMetadata) -> dict:
    """Build a piexif dict for the given metadata."""
    stamp = format_exif_date(metadata.timestamp)
    zeroth = {piexif.ImageIFD.DateTime: stamp}
    exif = {
        piexif.ExifIFD.DateTimeOriginal: stamp,
        piexif.ExifIFD.DateTimeDigitized: stamp,
    }
    gps = {}

    if metadata.caption:
        exif[piexif.ExifIFD.UserComment] = piexif.helper.UserComment.dump(
            metadata.caption, encoding="unicode",
        )
        zeroth[piexif.ImageIFD.ImageDescription] = metadata.caption.encode("utf-8")

    if metadata.location is not None:
        lat = metadata.location.latitude
        lon = metadata.location.longitude
        gps = {
            piexif.GPSIFD.GPSLatitudeRef: "N" if lat >= 0 else "S",
            piexif.GPSIFD.GPSLatitude: to_dms_rational(lat),
            piexif.GPSIFD.GPSLongitudeRef: "E" if lon >= 0 else "W",
            piexif.GPSIFD.GPSLongitude: to_dms_rational(lon),
        }

    return {"0th": zeroth, "Exif": exif, "GPS": gps, "1st": {}, "thumbnail": None}


def exif_bytes(metadata: ExportMetadata) -> bytes:
    return piexif.dump(build_exif(metadata))


def _text(value) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def read_metadata(path: str | Path) -> dict:
    """Read back the fields written by build_exif from a JPEG file.

    Returns a dict with date_original, date_digitized, date_time, caption,
    description, and (when GPS is present) latitude, latitude_ref,
    longitude, longitude_ref. Missing fields are None.
    """
    raw = piexif.load(str(path))
    zeroth, exif, gps = raw.get("0th", {}), raw.get("Exif", {}), raw.get("GPS", {})

    comment = exif.get(piexif.ExifIFD.UserComment)
    description = zeroth.get(piexif.ImageIFD.ImageDescription)
    result = {
        "date_original": _text(exif.get(piexif.ExifIFD.DateTimeOriginal)),
        "date_digitized": _text(exif.get(piexif.ExifIFD.DateTimeDigitized)),
        "date_time": _text(zeroth.get(piexif.ImageIFD.DateTime)),
        "caption": piexif.helper.UserComment.load(comment) if comment else None,
        "description": _text(description) if description else None,
        "latitude": None,
        "latitude_ref": None,
        "longitude": None,
        "longitude_ref": None,
    }
    if piexif.GPSIFD.GPSLatitude in gps:
        result["latitude"] = from_dms_rational(gps[piexif.GPSIFD.GPSLatitude])
        result["latitude_ref"] = _text(gps[piexif.GPSIFD.GPSLatitudeRef])
        result["longitude"] = from_dms_rational(gps[piexif.GPSIFD.GPSLongitude])
        result["longitude_ref"] = _text(gps[piexif.GPSIFD.GPSLongitudeRef])
    return result
