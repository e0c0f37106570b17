"""GPS position extraction from image EXIF metadata."""

import asyncio
import logging
from pathlib import Path

try:
    from exif import Image
except ImportError:
    Image = None

from .constants import Constants
from .types import GPSCoords
from .utils import ImageMetadata


class GPSExtractor:
    """Reads the GPS position embedded in a photo's EXIF tags."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

        if not Image:
            raise ImportError("exif library is required for GPS processing. Install with: pip install exif")

    def extract_coords(self, image_path: str) -> GPSCoords | None:
        """
        Read the GPS position of one photo.

        Args:
            image_path: Path of the photo on disk

        Returns:
            GPSCoords, or None when the photo is not a JPEG, has no GPS tags or
            cannot be read
        """
        if not self._is_jpeg_file(image_path):
            return None

        image_name = Path(image_path).name

        try:
            with open(image_path, "rb") as photo:
                exif_image = self._load_and_validate_image(photo, image_name)
                if not exif_image:
                    return None

                lat, lng = self._get_decimal_coords(exif_image)
                if lat is None or lng is None:
                    return None

                return GPSCoords(lat=lat, lng=lng, alt=ImageMetadata(exif_image).get_gps_altitude())

        except (OSError, IOError, PermissionError) as e:
            self.logger.warning(f"Cannot read GPS position of {image_path}: {e}")
            return None

    async def lookup(self, image_path: str | None) -> GPSCoords | None:
        """Read the GPS position of ``image_path`` without blocking the event loop."""
        if not image_path:
            return None
        return await asyncio.to_thread(self.extract_coords, image_path)

    def _is_jpeg_file(self, image_path: str) -> bool:
        """Only JPEG photos carry the EXIF GPS tags we read."""
        return Path(image_path).suffix.lower() in Constants.JPEG_EXTENSIONS

    def _load_and_validate_image(self, photo, image_name: str):
        """Parse the EXIF block of an open photo; None when there is none."""
        try:
            exif_image = Image(photo)
        except (OSError, IOError, MemoryError) as e:
            self.logger.info(f"Cannot parse {image_name}, corrupt file? {e}")
            return None
        except ValueError as e:
            self.logger.info(f"Unsupported image data in {image_name}: {e}")
            return None

        if not exif_image.has_exif:
            self.logger.debug(f"No EXIF data in {image_name}")
            return None
        return exif_image

    def _get_decimal_coords(self, exif_image) -> tuple[float | None, float | None]:
        """
        Signed decimal latitude and longitude of a photo.

        South latitudes and West longitudes are negative. Either value is None
        when its tag is missing or incomplete.
        """
        metadata = ImageMetadata(exif_image)

        lat = self._convert_dhms_to_decimal(metadata.get_gps_latitude())
        if lat is None:
            self.logger.debug("Photo has no GPS latitude")
        elif metadata.get_gps_latitude_ref() == "S":
            lat = -lat

        lng = self._convert_dhms_to_decimal(metadata.get_gps_longitude())
        if lng is None:
            self.logger.debug("Photo has no GPS longitude")
        elif metadata.get_gps_longitude_ref() == "W":
            lng = -lng

        return lat, lng

    def _convert_dhms_to_decimal(self, dhms) -> float | None:
        """Degrees, minutes and seconds to decimal degrees; None unless all three are present."""
        if not dhms or len(dhms) < 3:
            return None

        degrees, minutes, seconds = (float(value) for value in dhms[:3])
        return degrees + minutes / 60 + seconds / 3600
