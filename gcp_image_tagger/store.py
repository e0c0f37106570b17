"""Shared project store: GCPs, projection, images and image/GCP associations."""

import json
import logging
import re
from dataclasses import asdict
from pathlib import Path
from typing import Awaitable

from .exceptions import FileOperationError
from .gps import GPSExtractor
from .types import GCP, GPSCoords, ImageGcpTag, ProjectImage, Projection
from .utils import PathNormalizer


# ODM shorthand such as "WGS84 UTM 32N"
_UTM_HEADER = re.compile(r"^WGS84\s+UTM\s+(\d{1,2})\s*([NS])$", re.IGNORECASE)


def projection_from_header(header: str) -> Projection:
    """
    Projection of a gcp_list.txt header line.

    The ``WGS84 UTM <zone><N|S>`` shorthand becomes the matching EPSG code and
    keeps the header as its name. PROJ strings, EPSG codes and WKT are used as
    written.
    """
    match = _UTM_HEADER.match(header)
    if match and 1 <= int(match.group(1)) <= 60:
        base = 32600 if match.group(2).upper() == "N" else 32700
        return Projection(eq=f"EPSG:{base + int(match.group(1))}", name=header)
    return Projection(eq=header)


class ProjectStore:
    """
    In-memory project state shared by the tagging views.

    Holds the GCP list, the projection definition, the images known to the
    project and every image/GCP pixel association. Only the associations
    committed by a tagging session are written here.
    """

    def __init__(self, logger: logging.Logger, gps_extractor: GPSExtractor | None = None):
        self.logger = logger
        self.path_normalizer = PathNormalizer()
        self.gps_extractor = gps_extractor
        self.gcps: list[GCP] = []
        self.projection: Projection | None = None
        self.images: list[ProjectImage] = []
        self.image_gcps: list[ImageGcpTag] = []

    def get_gcp(self, name: str) -> GCP | None:
        return next((gcp for gcp in self.gcps if gcp.name == name), None)

    def get_image(self, name: str) -> ProjectImage | None:
        return next((img for img in self.images if img.name == name), None)

    def get_image_url(self, name: str) -> str | None:
        """Preview URL of an image, or None when its file cannot be read."""
        image = self.get_image(name)
        if image is None or not image.path:
            return None
        path = Path(image.path)
        if not path.is_file():
            return None
        return self.path_normalizer.get_file_url(self.path_normalizer.normalize_path(str(path)))

    def save_image(self, path: str | Path) -> ProjectImage:
        """Register an image file, replacing the path of an image with the same name."""
        name = self.path_normalizer.image_name(path)
        image = self.get_image(name)
        if image is None:
            image = ProjectImage(name=name, path=str(path))
            self.images.append(image)
            self.logger.debug(f"Added image {name}")
        else:
            image.path = str(path)
            self.logger.debug(f"Updated image {name}")
        return image

    def remove_image(self, name: str) -> None:
        """Forget an image and every association that refers to it."""
        self.images = [img for img in self.images if img.name != name]
        self.image_gcps = [tag for tag in self.image_gcps if tag.img_name != name]
        self.logger.info(f"Removed image {name}")

    def gps_lookup(self, name: str) -> Awaitable[GPSCoords | None]:
        """Start reading the GPS position of an image."""
        if self.gps_extractor is None:
            self.gps_extractor = GPSExtractor(self.logger)
        image = self.get_image(name)
        return self.gps_extractor.lookup(image.path if image else None)

    def load_json(self, project_file: str | Path) -> None:
        """
        Load a project saved by ``save_json``.

        Raises:
            FileOperationError: If the file cannot be read or has an invalid format.
        """
        project_path = Path(project_file)
        try:
            with open(project_path, "r", encoding="utf-8") as f:
                data = json.load(f)

            projection = data.get("projection")
            self.projection = Projection(**projection) if projection else None
            self.gcps = [GCP(**gcp) for gcp in data.get("gcps", [])]
            self.images = [ProjectImage(**img) for img in data.get("images", [])]
            self.image_gcps = [ImageGcpTag(**tag) for tag in data.get("image_gcps", [])]

        except (OSError, IOError) as e:
            raise FileOperationError(f"Could not read project file {project_path}: {e}") from e
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            raise FileOperationError(f"Invalid project file {project_path}: {e}") from e

        self.logger.info(
            f"Loaded project {project_path}: {len(self.gcps)} GCPs, {len(self.images)} images, "
            f"{len(self.image_gcps)} associations"
        )

    def save_json(self, project_file: str | Path) -> None:
        """Write the project to a JSON file."""
        project_path = Path(project_file)
        data = {
            "projection": asdict(self.projection) if self.projection else None,
            "gcps": [asdict(gcp) for gcp in self.gcps],
            "images": [asdict(img) for img in self.images],
            "image_gcps": [asdict(tag) for tag in self.image_gcps],
        }
        try:
            with open(project_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except (OSError, IOError) as e:
            raise FileOperationError(f"Could not write project file {project_path}: {e}") from e

        self.logger.info(f"Saved project to {project_path}")

    def load_gcp_list(self, gcp_list_file: str | Path) -> None:
        """
        Load GCPs, images and associations from a gcp_list.txt file.

        The first non-comment line holds the projection. Every following line is
        ``geo_x geo_y geo_z im_x im_y image_name gcp_name [extras...]``. Image
        files are looked up next to the list file.

        Raises:
            FileOperationError: If the file cannot be read or has no projection line.
        """
        list_path = Path(gcp_list_file)
        try:
            with open(list_path, "r", encoding="utf-8") as f:
                lines = [line.strip() for line in f]
        except (OSError, IOError) as e:
            raise FileOperationError(f"Could not read GCP list {list_path}: {e}") from e

        lines = [line for line in lines if line and not line.startswith("#")]
        if not lines:
            raise FileOperationError(f"GCP list {list_path} has no projection line")

        self.projection = projection_from_header(lines[0])
        gcps: dict[str, GCP] = {}
        images: dict[str, ProjectImage] = {}
        tags: list[ImageGcpTag] = []

        for line_number, line in enumerate(lines[1:], 2):
            parts = line.split()
            if len(parts) < 7:
                self.logger.warning(f"Skipping line {line_number} of {list_path}: expected 7 columns")
                continue
            try:
                geo_x, geo_y, geo_z, im_x, im_y = (float(value) for value in parts[:5])
            except ValueError:
                self.logger.warning(f"Skipping line {line_number} of {list_path}: invalid number")
                continue
            img_name, gcp_name = parts[5], parts[6]

            gcps.setdefault(gcp_name, GCP(name=gcp_name, easting=geo_x, northing=geo_y, elevation=geo_z))
            if img_name not in images:
                candidate = list_path.parent / img_name
                images[img_name] = ProjectImage(
                    name=img_name, path=str(candidate) if candidate.is_file() else None
                )
            tags.append(ImageGcpTag(
                gcp_name=gcp_name,
                geo_x=geo_x,
                geo_y=geo_y,
                geo_z=geo_z,
                im_x=im_x,
                im_y=im_y,
                img_name=img_name,
                extras=parts[7:],
            ))

        self.gcps = list(gcps.values())
        self.images = list(images.values())
        self.image_gcps = tags
        self.logger.info(
            f"Loaded GCP list {list_path}: {len(self.gcps)} GCPs, {len(self.images)} images"
        )
