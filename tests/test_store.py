"""Tests for the store module.

These tests verify the shared project store: images, associations, JSON
project files and gcp_list.txt loading.
"""

import asyncio
import json
from unittest.mock import Mock, patch
import pytest

from conftest import LONGLAT_PROJECTION, StubGPSExtractor
from gcp_image_tagger.exceptions import FileOperationError
from gcp_image_tagger.session import ImageTaggerSession
from gcp_image_tagger.store import ProjectStore, projection_from_header
from gcp_image_tagger.types import GCP, GPSCoords, ImageGcpTag, Projection


class TestProjectImages:
    """Test suite for image bookkeeping."""

    @pytest.mark.unit
    def test_lookups(self, sample_store, sample_gcp):
        """Test GCPs and images are found by name."""
        assert sample_store.get_gcp("gcp01") == sample_gcp
        assert sample_store.get_gcp("nope") is None
        assert sample_store.get_image("far.jpg").path == "/photos/far.jpg"
        assert sample_store.get_image("nope.jpg") is None

    @pytest.mark.unit
    def test_save_image_adds_and_updates(self, mock_logger):
        """
        Test saving an image file.

        Images are identified by file name: saving a second file with the
        same name replaces the path instead of adding an image.
        """
        store = ProjectStore(mock_logger)

        store.save_image("/a/photo.jpg")
        store.save_image("/b/photo.jpg")
        store.save_image("/a/other.jpg")

        assert [img.name for img in store.images] == ["photo.jpg", "other.jpg"]
        assert store.get_image("photo.jpg").path == "/b/photo.jpg"

    @pytest.mark.unit
    def test_remove_image_drops_associations(self, sample_store):
        """Test removing an image forgets every association referring to it."""
        sample_store.remove_image("near.jpg")

        assert sample_store.get_image("near.jpg") is None
        assert [tag.img_name for tag in sample_store.image_gcps] == ["mid.jpg"]

    @pytest.mark.unit
    def test_image_url(self, mock_logger, temp_dir, test_utils):
        """Test previews are file URLs of readable images only."""
        image_file = temp_dir / "photo.jpg"
        test_utils.create_sample_image_file(image_file)
        store = ProjectStore(mock_logger)
        store.save_image(image_file)
        store.save_image("/does/not/exist.jpg")

        url = store.get_image_url("photo.jpg")
        assert url.startswith("file:///")
        assert url.endswith("/photo.jpg")
        assert store.get_image_url("exist.jpg") is None
        assert store.get_image_url("unknown.jpg") is None

    @pytest.mark.unit
    def test_gps_lookup_uses_image_path(self, mock_logger):
        """Test lookups read the file registered for the image name."""
        extractor = StubGPSExtractor({"/a/photo.jpg": GPSCoords(lat=1.0, lng=2.0)})
        store = ProjectStore(mock_logger, gps_extractor=extractor)
        store.save_image("/a/photo.jpg")

        assert asyncio.run(store.gps_lookup("photo.jpg")) == GPSCoords(lat=1.0, lng=2.0)
        assert asyncio.run(store.gps_lookup("unknown.jpg")) is None
        assert extractor.calls == ["/a/photo.jpg", None]

    @pytest.mark.unit
    def test_gps_lookup_creates_extractor(self, mock_logger):
        """Test a GPS extractor is created on first use."""
        store = ProjectStore(mock_logger)

        with patch('gcp_image_tagger.store.GPSExtractor') as mock_extractor_class:
            mock_extractor_class.return_value.lookup = Mock(return_value="coroutine")
            assert store.gps_lookup("a.jpg") == "coroutine"
            store.gps_lookup("b.jpg")

        mock_extractor_class.assert_called_once_with(mock_logger)


class TestProjectFile:
    """Test suite for JSON project files."""

    @pytest.mark.unit
    def test_save_and_load(self, sample_store, mock_logger, temp_dir):
        """
        Test a saved project loads back identically.

        This test documents the JSON project file used by the command line.
        """
        sample_store.image_gcps[0].extras = ["extra1"]
        project_file = temp_dir / "project.json"
        sample_store.save_json(project_file)

        loaded = ProjectStore(mock_logger)
        loaded.load_json(project_file)

        assert loaded.projection == sample_store.projection
        assert loaded.gcps == sample_store.gcps
        assert loaded.images == sample_store.images
        assert loaded.image_gcps == sample_store.image_gcps

        data = json.loads(project_file.read_text(encoding="utf-8"))
        assert set(data) == {"projection", "gcps", "images", "image_gcps"}
        assert data["image_gcps"][0]["extras"] == ["extra1"]

    @pytest.mark.unit
    def test_load_missing_file(self, mock_logger, temp_dir):
        """Test a missing project file raises FileOperationError."""
        with pytest.raises(FileOperationError):
            ProjectStore(mock_logger).load_json(temp_dir / "missing.json")

    @pytest.mark.unit
    @pytest.mark.parametrize("content", ["{not json", '{"gcps": [{"unknown": 1}]}', "[]"])
    def test_load_invalid_file(self, mock_logger, temp_dir, content):
        """Test malformed project files raise FileOperationError."""
        project_file = temp_dir / "project.json"
        project_file.write_text(content, encoding="utf-8")

        with pytest.raises(FileOperationError):
            ProjectStore(mock_logger).load_json(project_file)

    @pytest.mark.unit
    def test_save_to_missing_directory(self, sample_store, temp_dir):
        """Test write failures raise FileOperationError."""
        with pytest.raises(FileOperationError):
            sample_store.save_json(temp_dir / "missing" / "project.json")

    @pytest.mark.unit
    def test_empty_project(self, mock_logger, temp_dir):
        """Test a project without projection round-trips."""
        project_file = temp_dir / "project.json"
        ProjectStore(mock_logger).save_json(project_file)

        loaded = ProjectStore(mock_logger)
        loaded.load_json(project_file)

        assert loaded.projection is None
        assert loaded.gcps == []


class TestGCPList:
    """Test suite for gcp_list.txt loading."""

    @pytest.mark.unit
    def test_load_gcp_list(self, mock_logger, temp_dir, test_utils):
        """
        Test loading a gcp_list.txt file.

        This test documents the format: a projection line, then one line per
        association with optional trailing extras. Images found next to the
        list get their path; other images are listed without one.
        """
        test_utils.create_sample_image_file(temp_dir / "DJI_0001.JPG")
        gcp_list = temp_dir / "gcp_list.txt"
        gcp_list.write_text(
            "# exported from survey\n"
            f"{LONGLAT_PROJECTION}\n"
            "11.0 46.0 200.5 1200 800 DJI_0001.JPG gcp01 ref\n"
            "11.0 46.0 200.5 0 0 DJI_0002.JPG gcp01\n"
            "11.01 46.01 210 300 450 DJI_0001.JPG gcp02\n",
            encoding="utf-8",
        )

        store = ProjectStore(mock_logger)
        store.load_gcp_list(gcp_list)

        assert store.projection == Projection(eq=LONGLAT_PROJECTION)
        assert store.gcps == [
            GCP(name="gcp01", easting=11.0, northing=46.0, elevation=200.5),
            GCP(name="gcp02", easting=11.01, northing=46.01, elevation=210.0),
        ]
        assert [img.name for img in store.images] == ["DJI_0001.JPG", "DJI_0002.JPG"]
        assert store.get_image("DJI_0001.JPG").path == str(temp_dir / "DJI_0001.JPG")
        assert store.get_image("DJI_0002.JPG").path is None

        assert store.image_gcps[0] == ImageGcpTag(
            gcp_name="gcp01", geo_x=11.0, geo_y=46.0, geo_z=200.5,
            im_x=1200.0, im_y=800.0, img_name="DJI_0001.JPG", extras=["ref"],
        )
        assert not store.image_gcps[1].is_tagged

    @pytest.mark.unit
    def test_malformed_lines_are_skipped(self, mock_logger, temp_dir):
        """Test short lines and bad numbers are skipped with a warning."""
        gcp_list = temp_dir / "gcp_list.txt"
        gcp_list.write_text(
            "EPSG:32632\n"
            "500000 0 0 10 10 a.jpg\n"
            "500000 north 0 10 10 b.jpg gcp01\n"
            "500000 0 0 10 10 c.jpg gcp01\n",
            encoding="utf-8",
        )

        store = ProjectStore(mock_logger)
        store.load_gcp_list(gcp_list)

        assert [tag.img_name for tag in store.image_gcps] == ["c.jpg"]
        assert mock_logger.warning.call_count == 2

    @pytest.mark.unit
    def test_utm_shorthand_header(self, mock_logger, temp_dir):
        """
        Test the ``WGS84 UTM <zone><N|S>`` header written by OpenDroneMap.

        This test documents that the shorthand becomes an EPSG code the
        tagging view can project with.
        """
        gcp_list = temp_dir / "gcp_list.txt"
        gcp_list.write_text("WGS84 UTM 32N\n500000 5000000 100 10 20 a.jpg gcp01\n", encoding="utf-8")

        store = ProjectStore(mock_logger, gps_extractor=StubGPSExtractor())
        store.load_gcp_list(gcp_list)

        assert store.projection == Projection(eq="EPSG:32632", name="WGS84 UTM 32N")

        session = ImageTaggerSession(store, mock_logger, navigator=Mock(), filter_distance=0)
        assert asyncio.run(session.enter("gcp01")) is True
        assert session.gcp_coords.lng == pytest.approx(9.0, abs=1e-6)
        assert session.gcp_coords.lat == pytest.approx(45.15, abs=0.01)
        assert session.find("a.jpg").is_tagged

    @pytest.mark.unit
    @pytest.mark.parametrize("header, expected", [
        ("WGS84 UTM 33S", "EPSG:32733"),
        ("wgs84 utm 5n", "EPSG:32605"),
        ("EPSG:32632", "EPSG:32632"),
        ("+proj=utm +zone=32 +datum=WGS84 +units=m +no_defs", "+proj=utm +zone=32 +datum=WGS84 +units=m +no_defs"),
        ("WGS84 UTM 61N", "WGS84 UTM 61N"),
    ])
    def test_projection_from_header(self, header, expected):
        """Test only the UTM shorthand is rewritten; other definitions are kept."""
        assert projection_from_header(header).eq == expected

    @pytest.mark.unit
    def test_empty_gcp_list(self, mock_logger, temp_dir):
        """Test a list without projection line is rejected."""
        gcp_list = temp_dir / "gcp_list.txt"
        gcp_list.write_text("# nothing here\n\n", encoding="utf-8")

        with pytest.raises(FileOperationError):
            ProjectStore(mock_logger).load_gcp_list(gcp_list)

    @pytest.mark.unit
    def test_missing_gcp_list(self, mock_logger, temp_dir):
        """Test a missing list raises FileOperationError."""
        with pytest.raises(FileOperationError):
            ProjectStore(mock_logger).load_gcp_list(temp_dir / "gcp_list.txt")
