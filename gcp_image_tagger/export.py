"""Export of tagged GCPs to gcp_list.txt and KML."""

import csv
import logging
from pathlib import Path
from typing import List

try:
    from fastkml.kml import KML
    from fastkml.containers import Document, Folder
    from fastkml.views import LookAt
    from fastkml.features import Placemark
    from pygeoif.geometry import Point
    KML_AVAILABLE = True
except ImportError:
    KML_AVAILABLE = False
    KML = None
    Document = None
    Folder = None
    LookAt = None
    Placemark = None
    Point = None

from .constants import Constants
from .exceptions import FileOperationError
from .geo import to_human_distance
from .types import GCP, GeoCoords, ImageDescriptor, ImageGcpTag, Projection


class ExportManager:
    """Logger shared by the gcp_list.txt and KML exporters."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


class GCPListExporter(ExportManager):
    """Writes associations in the gcp_list.txt format used by photogrammetry tools."""

    def build_rows(self, image_gcps: List[ImageGcpTag]) -> list[list[str]]:
        """One row per tagged association; untagged (0, 0) pixels are left out."""
        return [
            [
                _format_number(tag.geo_x),
                _format_number(tag.geo_y),
                _format_number(tag.geo_z),
                _format_number(tag.im_x),
                _format_number(tag.im_y),
                tag.img_name,
                tag.gcp_name,
                *tag.extras,
            ]
            for tag in image_gcps
            if tag.is_tagged
        ]

    def export_gcp_list(
        self, projection: Projection, image_gcps: List[ImageGcpTag], output_path: str | Path
    ) -> int:
        """
        Write the projection line followed by every tagged association.

        Returns:
            Number of associations written

        Raises:
            FileOperationError: If the file cannot be written.
        """
        rows = self.build_rows(image_gcps)
        output_path = Path(output_path)
        try:
            with open(output_path, "w", newline="", encoding="utf-8") as f:
                f.write(projection.eq + "\n")
                writer = csv.writer(f, delimiter="\t", lineterminator="\n")
                writer.writerows(rows)
        except (OSError, IOError) as e:
            self.logger.error(f"Error writing GCP list: {e}")
            raise FileOperationError(f"Could not write GCP list {output_path}: {e}") from e

        self.logger.info(f"Exported {len(rows)} GCP associations to {output_path}")
        return len(rows)


class KMLExporter(ExportManager):
    """Handles KML export of a GCP and the images around it."""

    def __init__(self, logger: logging.Logger):
        super().__init__(logger)
        if not KML_AVAILABLE:
            self.logger.warning("KML export not available. Install 'fastkml' and 'pygeoif' packages.")

    def build_kml(
        self, gcp: GCP, gcp_coords: GeoCoords, images: List[ImageDescriptor]
    ) -> str:
        """
        Build KML content with the GCP and every image whose GPS position is known.

        Args:
            gcp: The GCP being tagged
            gcp_coords: WGS84 position of the GCP
            images: Image descriptors of the tagging session

        Returns:
            The KML document, pretty printed
        """
        if not KML_AVAILABLE:
            raise ImportError("KML export not available. Install 'fastkml' and 'pygeoif' packages.")

        k = KML()
        doc = Document(
            id="gcp_image_tagger",
            name=f"GCP {gcp.name}",
            description=f"Images around GCP {gcp.name}",
        )
        k.append(doc)

        images_folder = Folder(name="Images", description=f"{len(images)} images")
        doc.append(images_folder)

        gcp_placemark = Placemark(
            name=gcp.name,
            description=f"{gcp.easting}, {gcp.northing}, {gcp.elevation}",
            geometry=Point(gcp_coords.lng, gcp_coords.lat, gcp_coords.elev),
            view=LookAt(
                range=Constants.KML_GCP_VIEW_RANGE, latitude=gcp_coords.lat, longitude=gcp_coords.lng
            ),
        )
        doc.append(gcp_placemark)

        for item in images:
            coords = item.coords.value
            if coords is None:
                continue

            description = "Tagged" if item.is_tagged else "Not tagged"
            if item.distance is not None:
                description += f", {to_human_distance(item.distance)} from {gcp.name}"

            images_folder.append(Placemark(
                name=item.name,
                description=description,
                geometry=Point(coords.lng, coords.lat, coords.alt or 0),
                view=LookAt(
                    range=Constants.KML_IMAGE_VIEW_RANGE, latitude=coords.lat, longitude=coords.lng
                ),
            ))

        return k.to_string(prettyprint=True)

    def export_kml(
        self, gcp: GCP, gcp_coords: GeoCoords, images: List[ImageDescriptor], output_path: str | Path
    ) -> None:
        """Write ``build_kml`` output to a file."""
        kml_content = self.build_kml(gcp, gcp_coords, images)
        try:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(kml_content)
        except (OSError, IOError) as e:
            raise FileOperationError(f"Could not write KML file {output_path}: {e}") from e
        self.logger.info(f"KML file created: {output_path}")
