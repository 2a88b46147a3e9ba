"""
GPS extraction from image EXIF metadata.

Coordinates are stored in EXIF as degree/minute/second rational triples
plus a hemisphere reference character. They are converted here to signed
decimal degrees: ``dd = deg + min/60 + sec/3600``, negated for S and W.
"""

import io
import logging
from typing import Any, Mapping, Optional, Sequence

from PIL import Image, UnidentifiedImageError

from farmer_assistant.models.classification import GPSCoordinates

logger = logging.getLogger(__name__)

# EXIF pointer to the GPS IFD and the GPS tag ids inside it
GPS_INFO_TAG = 0x8825
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4

NEGATIVE_REFS = ("S", "W")


def convert_dms_to_dd(dms: Sequence[Any], ref: str) -> float:
    """
    Convert a degree/minute/second triple to signed decimal degrees.

    Args:
        dms: (degrees, minutes, seconds); rationals and floats both accepted
        ref: Hemisphere reference, one of N, S, E, W

    Returns:
        Decimal degrees, negative when ref is S or W

    Example:
        >>> round(convert_dms_to_dd((17, 7, 58.2), "N"), 4)
        17.1328
    """
    degrees, minutes, seconds = (float(part) for part in dms)
    dd = degrees + minutes / 60 + seconds / 3600
    if _normalize_ref(ref) in NEGATIVE_REFS:
        dd = -dd
    return dd


def _normalize_ref(ref: Any) -> str:
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    return str(ref).strip("\x00 ").upper()


def gps_from_exif(gps_ifd: Mapping[int, Any]) -> Optional[GPSCoordinates]:
    """
    Build coordinates from a GPS IFD mapping.

    Returns:
        GPSCoordinates, or None when any of the four tags is missing or malformed
    """
    lat = gps_ifd.get(GPS_LATITUDE)
    lon = gps_ifd.get(GPS_LONGITUDE)
    lat_ref = gps_ifd.get(GPS_LATITUDE_REF)
    lon_ref = gps_ifd.get(GPS_LONGITUDE_REF)

    if not (lat and lon and lat_ref and lon_ref):
        return None

    try:
        return GPSCoordinates(
            latitude=convert_dms_to_dd(lat, lat_ref),
            longitude=convert_dms_to_dd(lon, lon_ref),
        )
    except (TypeError, ValueError, ZeroDivisionError) as e:
        logger.warning(f"Malformed GPS tags ignored: {e}")
        return None


def extract_gps(image_bytes: bytes) -> Optional[GPSCoordinates]:
    """
    Read GPS coordinates embedded in an image file.

    Classification proceeds without a location when this returns None, so
    unreadable images and missing tags are not errors here.

    Args:
        image_bytes: Raw file content (JPEG, TIFF, ...)

    Returns:
        GPSCoordinates or None
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            gps_ifd = img.getexif().get_ifd(GPS_INFO_TAG)
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.warning(f"Could not read EXIF data: {e}")
        return None

    if not gps_ifd:
        return None
    return gps_from_exif(gps_ifd)
