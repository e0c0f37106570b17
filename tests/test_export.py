"""Tests for the export module.

These tests verify gcp_list.txt and KML output.
"""

import asyncio
from unittest.mock import Mock, patch
import pytest

from gcp_image_tagger.exceptions import FileOperationError
from gcp_image_tagger.export import GCPListExporter, KMLExporter
from gcp_image_tagger.store import ProjectStore
from gcp_image_tagger.types import CoordsXY, GeoCoords, ImageGcpTag, Projection


class TestGCPListExporter:
    """Test suite for GCPListExporter class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.mock_logger = Mock()
        self.exporter = GCPListExporter(self.mock_logger)

    @pytest.mark.unit
    def test_exporters_only_hold_logger(self):
        """Test the exporters keep no state besides their logger."""
        assert vars(self.exporter) == {"logger": self.mock_logger}
        with patch('gcp_image_tagger.export.KML_AVAILABLE', True):
            assert vars(KMLExporter(self.mock_logger)) == {"logger": self.mock_logger}

    @pytest.mark.unit
    def test_build_rows_skips_untagged(self, sample_gcp):
        """
        Test only tagged associations become rows.

        A zero pixel coordinate marks an association that was never tagged.
        """
        tags = [
            ImageGcpTag.for_gcp(sample_gcp, "a.jpg", 1200, 800.5),
            ImageGcpTag.for_gcp(sample_gcp, "b.jpg"),
            ImageGcpTag.for_gcp(sample_gcp, "c.jpg", 0, 512),
        ]
        tags[0].extras = ["ref", "note"]

        rows = self.exporter.build_rows(tags)

        assert rows == [["11", "46", "200", "1200", "800.5", "a.jpg", "gcp01", "ref", "note"]]

    @pytest.mark.unit
    def test_export_gcp_list(self, sample_store, temp_dir):
        """
        Test writing a gcp_list.txt file.

        This test documents the output: the projection line followed by one
        tab separated row per tagged association.
        """
        output = temp_dir / "gcp_list.txt"

        count = self.exporter.export_gcp_list(sample_store.projection, sample_store.image_gcps, output)

        assert count == 2
        lines = output.read_text(encoding="utf-8").splitlines()
        assert lines[0] == sample_store.projection.eq
        assert lines[1].split("\t") == ["11", "46", "200", "1200", "800", "near.jpg", "gcp01"]
        assert lines[2].split("\t")[5:] == ["mid.jpg", "gcp02"]

    @pytest.mark.unit
    def test_exported_list_loads_back(self, sample_store, mock_logger, temp_dir):
        """Test an exported list is readable by the project store."""
        output = temp_dir / "gcp_list.txt"
        self.exporter.export_gcp_list(sample_store.projection, sample_store.image_gcps, output)

        reloaded = ProjectStore(mock_logger)
        reloaded.load_gcp_list(output)

        assert reloaded.image_gcps == sample_store.image_gcps

    @pytest.mark.unit
    def test_export_write_error(self, temp_dir):
        """Test write failures raise FileOperationError."""
        with pytest.raises(FileOperationError):
            self.exporter.export_gcp_list(Projection(eq="EPSG:4326"), [], temp_dir / "missing" / "out.txt")
        self.mock_logger.error.assert_called_once()


class TestKMLExporter:
    """Test suite for KMLExporter class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.mock_logger = Mock()

    @pytest.mark.unit
    def test_kml_without_fastkml(self, sample_gcp):
        """Test KML export requires fastkml and pygeoif."""
        with patch('gcp_image_tagger.export.KML_AVAILABLE', False):
            exporter = KMLExporter(self.mock_logger)
            self.mock_logger.warning.assert_called_once()
            with pytest.raises(ImportError):
                exporter.build_kml(sample_gcp, GeoCoords(lat=46.0, lng=11.0), [])

    @pytest.mark.integration
    def test_build_kml(self, sample_session):
        """
        Test the KML document of a tagging session.

        The GCP and every image with a known GPS position become placemarks.
        """
        pytest.importorskip("fastkml")
        asyncio.run(sample_session.enter("gcp01"))
        sample_session.pin(CoordsXY(5, 5), sample_session.find("mid.jpg"))

        content = KMLExporter(self.mock_logger).build_kml(
            sample_session.gcp, sample_session.gcp_coords, sample_session.raw_images
        )

        assert "GCP gcp01" in content
        assert "near.jpg" in content
        assert "far.jpg" in content
        assert "nogps.jpg" not in content
        assert "Tagged, 8 m from gcp01" in content
        assert "Not tagged, 15 m from gcp01" in content

    @pytest.mark.integration
    def test_export_kml(self, sample_session, temp_dir):
        """Test the KML document is written to a file."""
        pytest.importorskip("fastkml")
        asyncio.run(sample_session.enter("gcp01"))
        output = temp_dir / "gcp01.kml"

        KMLExporter(self.mock_logger).export_kml(
            sample_session.gcp, sample_session.gcp_coords, sample_session.raw_images, output
        )

        assert output.exists()
        assert "<kml" in output.read_text(encoding="utf-8")
