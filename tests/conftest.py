"""Pytest configuration and shared fixtures for gcp_image_tagger tests."""

import tempfile
from pathlib import Path
from unittest.mock import Mock
import pytest

from gcp_image_tagger.constants import Constants
from gcp_image_tagger.session import ImageTaggerSession
from gcp_image_tagger.store import ProjectStore
from gcp_image_tagger.types import (
    GCP, GPSCoords, CoordsLookup, ImageDescriptor, ImageGcpTag, ProjectImage, Projection
)


# =============================================================================
# Test Configuration
# =============================================================================

# Geographic projection: eastings are longitudes and northings latitudes,
# which keeps expected distances easy to compute.
LONGLAT_PROJECTION = "+proj=longlat +datum=WGS84 +no_defs"

# One meter of latitude is roughly 1 / 111195 degrees on the haversine sphere.
METERS_PER_DEGREE = 111194.93


@pytest.fixture
def temp_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


# =============================================================================
# Stubs
# =============================================================================

class StubGPSExtractor:
    """GPS extractor returning canned positions keyed by image path."""

    def __init__(self, coords_by_path: dict | None = None, failing: set | None = None):
        self.coords_by_path = coords_by_path or {}
        self.failing = failing or set()
        self.calls: list = []

    async def lookup(self, image_path):
        self.calls.append(image_path)
        if image_path in self.failing:
            raise OSError(f"cannot read {image_path}")
        return self.coords_by_path.get(image_path)


def north_of(gcp: GCP, meters: float) -> GPSCoords:
    """GPS position ``meters`` north of a GCP in the longlat projection."""
    return GPSCoords(lat=gcp.northing + meters / METERS_PER_DEGREE, lng=gcp.easting)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def mock_logger():
    """Mock logger for testing."""
    logger = Mock()
    logger.info = Mock()
    logger.warning = Mock()
    logger.error = Mock()
    logger.debug = Mock()
    return logger


@pytest.fixture
def sample_gcp():
    """GCP used by most session tests."""
    return GCP(name="gcp01", easting=11.0, northing=46.0, elevation=200.0)


@pytest.fixture
def other_gcp():
    """Second GCP of the sample project."""
    return GCP(name="gcp02", easting=11.01, northing=46.01, elevation=210.0)


@pytest.fixture
def sample_store(mock_logger, sample_gcp, other_gcp):
    """
    Project store with two GCPs and four images.

    - near.jpg: 5 m from gcp01, tagged for gcp01
    - mid.jpg: 8 m from gcp01, tagged for gcp02
    - far.jpg: 15 m from gcp01
    - nogps.jpg: no GPS position
    """
    extractor = StubGPSExtractor({
        "/photos/near.jpg": north_of(sample_gcp, 5),
        "/photos/mid.jpg": north_of(sample_gcp, 8),
        "/photos/far.jpg": north_of(sample_gcp, 15),
    })
    store = ProjectStore(mock_logger, gps_extractor=extractor)
    store.projection = Projection(eq=LONGLAT_PROJECTION, name="WGS84")
    store.gcps = [sample_gcp, other_gcp]
    store.images = [
        ProjectImage(name="near.jpg", path="/photos/near.jpg"),
        ProjectImage(name="mid.jpg", path="/photos/mid.jpg"),
        ProjectImage(name="far.jpg", path="/photos/far.jpg"),
        ProjectImage(name="nogps.jpg", path="/photos/nogps.jpg"),
    ]
    store.image_gcps = [
        ImageGcpTag.for_gcp(sample_gcp, "near.jpg", 1200, 800),
        ImageGcpTag.for_gcp(other_gcp, "mid.jpg", 300, 450),
    ]
    return store


@pytest.fixture
def sample_session(sample_store, mock_logger):
    """Session over the sample store with a 10 m filter."""
    return ImageTaggerSession(
        sample_store,
        mock_logger,
        navigator=Mock(),
        filter_distance=Constants.DEFAULT_FILTER_DISTANCE,
    )


@pytest.fixture
def make_descriptor(sample_gcp):
    """Factory for descriptors whose GPS lookup is already settled."""

    def _make(name, distance=None, other_gcps=(), preview_url="file:///photos/x.jpg"):
        return ImageDescriptor(
            image=ImageGcpTag.for_gcp(sample_gcp, name),
            coords=CoordsLookup.resolved(None),
            preview_url=preview_url,
            other_gcps=list(other_gcps),
            distance=distance,
        )

    return _make


@pytest.fixture
def loaded_session(sample_store, mock_logger, sample_gcp, make_descriptor):
    """Session with five descriptors, as if entered for gcp01 without filtering."""
    session = ImageTaggerSession(sample_store, mock_logger, navigator=Mock(), filter_distance=0)
    session.gcp = sample_gcp
    session.raw_images = [make_descriptor(f"img{i}.jpg", distance=float(i)) for i in range(1, 6)]
    session.filter_images()
    return session


class TestUtils:
    """Utility functions for tests."""

    @staticmethod
    def create_sample_image_file(file_path: Path):
        """Create a minimal JPEG-like file for file system tests."""
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'wb') as f:
            f.write(b'\xff\xd8\xff\xe0')
            f.write(b'\x00\x10JFIF\x00\x01')
            f.write(b'\x01\x01\x00\x00\x01\x00\x01\x00\x00')
            f.write(b'\xff\xd9')


@pytest.fixture
def test_utils():
    """Test utilities fixture."""
    return TestUtils
