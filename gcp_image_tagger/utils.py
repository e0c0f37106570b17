"""Utility classes for the GCP image tagger."""

import logging
from pathlib import Path


class LoggingSetup:
    """Configures the root logger for command line runs."""

    @staticmethod
    def setup_logging(level: int = logging.INFO) -> logging.Logger:
        """Install the console log format and return the package logger."""
        logging.basicConfig(
            level=level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        return logging.getLogger("gcp_image_tagger")


class PathNormalizer:
    """Path helpers shared by the store, the session and the exporters."""

    @staticmethod
    def normalize_path(path: str) -> str:
        """Absolute path with symlinks and ``..`` resolved."""
        if not path:
            return path
        return str(Path(path).resolve())

    @staticmethod
    def get_file_url(image_path: str) -> str:
        """``file://`` URL used as an image preview reference."""
        # Forward slashes only, always rooted
        url_path = image_path.replace('\\', '/')
        if not url_path.startswith('/'):
            url_path = '/' + url_path
        return f"file://{url_path}"

    @staticmethod
    def image_name(path: str | Path) -> str:
        """File name used to identify an image inside a project."""
        return Path(str(path).replace('\\', '/')).name


class ImageMetadata:
    """
    Read-only view over the GPS tags of an ``exif.Image``.

    Missing or unreadable tags come back as None (or the hemisphere default)
    instead of raising, so GPS extraction can treat every photo the same way.
    """

    def __init__(self, exif_image):
        self._exif_image = exif_image

    def _get(self, tag: str, default=None):
        try:
            if hasattr(self._exif_image, tag):
                return getattr(self._exif_image, tag)
        except (AttributeError, KeyError, ValueError):
            pass
        return default

    def get_gps_latitude(self) -> tuple | None:
        """Latitude as (degrees, minutes, seconds)."""
        return self._get('gps_latitude')

    def get_gps_latitude_ref(self) -> str:
        """'N' or 'S'; 'N' when the tag is missing."""
        return self._get('gps_latitude_ref', "N")

    def get_gps_longitude(self) -> tuple | None:
        """Longitude as (degrees, minutes, seconds)."""
        return self._get('gps_longitude')

    def get_gps_longitude_ref(self) -> str:
        """'E' or 'W'; 'E' when the tag is missing."""
        return self._get('gps_longitude_ref', "E")

    def get_gps_altitude(self) -> float | None:
        """Altitude in meters, negative below sea level."""
        altitude = self._get('gps_altitude')
        if altitude is None:
            return None
        try:
            altitude = float(altitude)
        except (ValueError, TypeError):
            return None
        # Reference 1 means below sea level
        ref = self._get('gps_altitude_ref', 0)
        if getattr(ref, 'value', ref) == 1:
            altitude = -altitude
        return altitude
