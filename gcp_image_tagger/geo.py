"""Coordinate projection and distance calculations."""

import functools
import logging
import math

try:
    from pyproj import CRS, Transformer
    from pyproj.exceptions import CRSError, ProjError
except ImportError:
    CRS = None
    Transformer = None
    CRSError = Exception
    ProjError = Exception

try:
    from geopy.distance import geodesic
except ImportError:
    geodesic = None

from .constants import Constants
from .exceptions import ConfigurationError, GPSDataError, ProjectionError
from .types import GCP, GeoCoords, GPSCoords, Projection


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two points using the haversine formula.

    Args:
        lat1, lng1: First point (decimal degrees)
        lat2, lng2: Second point (decimal degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    a = math.sin(delta_lat / 2) ** 2 + \
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return Constants.EARTH_RADIUS_M * c


def to_human_distance(meters: float) -> str:
    """Format a distance for display: meters below 1 km, kilometers above."""
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.2f} km"


class DistanceCalculator:
    """Computes distances between a GCP and image GPS positions."""

    def __init__(self, model: str = Constants.DEFAULT_DISTANCE_MODEL):
        if model not in Constants.DISTANCE_MODELS:
            raise ConfigurationError(
                f"Unknown distance model '{model}'. Use one of: {', '.join(Constants.DISTANCE_MODELS)}"
            )
        if model == "geodesic" and not geodesic:
            raise ImportError("geopy library is required for geodesic distances. Install with: pip install geopy")
        self.model = model

    def distance(self, lat1: float, lng1: float, lat2: float, lng2: float) -> float:
        """
        Distance in meters between two latitude/longitude pairs.

        Raises:
            GPSDataError: If a latitude is outside [-90, 90].
        """
        for lat in (lat1, lat2):
            if not -90 <= lat <= 90:
                raise GPSDataError(f"Invalid latitude: {lat} (must be -90 to 90)")

        if self.model == "geodesic":
            return geodesic((lat1, lng1), (lat2, lng2)).meters
        return haversine_distance(lat1, lng1, lat2, lng2)

    def distance_to(self, origin: GeoCoords, coords: GPSCoords) -> float:
        """Distance in meters from a projected GCP to an image position."""
        return self.distance(origin.lat, origin.lng, coords.lat, coords.lng)


@functools.lru_cache(maxsize=32)
def _wgs84_transformer(definition: str):
    # Failed definitions raise and are not cached
    source_crs = CRS.from_user_input(definition)
    return Transformer.from_crs(source_crs, CRS.from_epsg(4326), always_xy=True)


class CoordinateProjector:
    """Converts points of the project's coordinate system to WGS84."""

    def __init__(self, projection: Projection, logger: logging.Logger):
        self.projection = projection
        self.logger = logger

        if not Transformer:
            raise ImportError("pyproj library is required for projections. Install with: pip install pyproj")

        try:
            self._transformer = _wgs84_transformer(projection.eq)
        except (CRSError, ProjError) as e:
            raise ProjectionError(f"Invalid projection '{projection.eq}': {e}") from e

        self.logger.debug(f"Using projection: {projection.eq}")

    def project_to_wgs84(self, gcp: GCP) -> GeoCoords:
        """Express ``gcp`` as WGS84 latitude/longitude/elevation."""
        lng, lat, elev = self._transformer.transform(gcp.easting, gcp.northing, gcp.elevation)
        coords = GeoCoords(lat=lat, lng=lng, elev=elev)
        self.logger.debug(f"GCP {gcp.name} coords: {coords}")
        return coords
