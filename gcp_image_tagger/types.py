"""Type definitions for the GCP image tagger."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable


@dataclass(frozen=True)
class GCP:
    """A ground control point in the project's projected coordinate system."""
    name: str
    easting: float
    northing: float
    elevation: float = 0.0


@dataclass(frozen=True)
class Projection:
    """Coordinate reference system definition (PROJ string, WKT or EPSG code)."""
    eq: str
    name: str | None = None


@dataclass(frozen=True)
class CoordsXY:
    """Pixel location inside an image."""
    x: float
    y: float


@dataclass(frozen=True)
class GeoCoords:
    """WGS84 position of a projected point."""
    lat: float
    lng: float
    elev: float = 0.0


@dataclass(frozen=True)
class GPSCoords:
    """GPS position embedded in an image's EXIF data."""
    lat: float
    lng: float
    alt: float | None = None


@dataclass
class ImageGcpTag:
    """
    Association between one image and one GCP.

    Pixel coordinates (0, 0) mean the GCP has not been tagged on the image.
    """
    gcp_name: str
    geo_x: float
    geo_y: float
    geo_z: float
    im_x: float
    im_y: float
    img_name: str
    extras: list[str] = field(default_factory=list)

    @classmethod
    def for_gcp(cls, gcp: GCP, img_name: str, im_x: float = 0, im_y: float = 0) -> "ImageGcpTag":
        """Build a tag carrying the geo coordinates of ``gcp``."""
        return cls(
            gcp_name=gcp.name,
            geo_x=gcp.easting,
            geo_y=gcp.northing,
            geo_z=gcp.elevation,
            im_x=im_x,
            im_y=im_y,
            img_name=img_name,
        )

    @property
    def is_tagged(self) -> bool:
        # gcp_list convention: a zero pixel coordinate means never tagged
        return self.im_x != 0 and self.im_y != 0


@dataclass
class ProjectImage:
    """An image file known to the project store."""
    name: str
    path: str | None = None


class LookupState(Enum):
    """Settlement state of an asynchronous GPS lookup."""
    PENDING = "pending"
    RESOLVED = "resolved"
    RESOLVED_NONE = "resolved_none"


class CoordsLookup:
    """
    One-shot asynchronous GPS lookup bound to an image descriptor.

    The lookup is started once and memoised. A lookup that fails settles as
    RESOLVED_NONE and keeps the error for the caller to report.
    """

    def __init__(self, task: asyncio.Future | None = None):
        self._task = task
        self._state = LookupState.PENDING
        self._value: GPSCoords | None = None
        self.error: BaseException | None = None
        if task is None:
            self._state = LookupState.RESOLVED_NONE

    @classmethod
    def start(cls, awaitable: Awaitable[GPSCoords | None]) -> "CoordsLookup":
        """Schedule ``awaitable`` on the running event loop."""
        return cls(asyncio.ensure_future(awaitable))

    @classmethod
    def resolved(cls, value: GPSCoords | None) -> "CoordsLookup":
        """Build an already settled lookup."""
        lookup = cls()
        if value is not None:
            lookup._value = value
            lookup._state = LookupState.RESOLVED
        return lookup

    @property
    def state(self) -> LookupState:
        if self._state is LookupState.PENDING and self._task is not None and self._task.done():
            self._settle()
        return self._state

    @property
    def value(self) -> GPSCoords | None:
        return self._value

    async def wait(self) -> GPSCoords | None:
        """Wait for the lookup to settle and return its value (or None)."""
        if self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        self._settle()
        return self._value

    def _settle(self) -> None:
        if self._state is not LookupState.PENDING or self._task is None:
            return
        if self._task.cancelled():
            self._state = LookupState.RESOLVED_NONE
            return
        error = self._task.exception()
        if error is not None:
            self.error = error
            self._state = LookupState.RESOLVED_NONE
            return
        self._value = self._task.result()
        self._state = LookupState.RESOLVED if self._value is not None else LookupState.RESOLVED_NONE


@dataclass(eq=False)
class ImageDescriptor:
    """In-memory view of one image while tagging a single GCP."""
    image: ImageGcpTag
    coords: CoordsLookup
    pin_location: CoordsXY | None = None
    preview_url: str | None = None
    other_gcps: list[str] = field(default_factory=list)
    distance: float | None = None

    @property
    def name(self) -> str:
        return self.image.img_name

    @property
    def is_tagged(self) -> bool:
        """True once a pin with non-zero pixel coordinates has been placed."""
        if self.pin_location is None:
            return False
        return self.pin_location.x != 0 and self.pin_location.y != 0


class TagStatus(Enum):
    """Display status of an image in the tagging list."""
    TAGGED = "tagged"
    OTHER_GCPS = "other_gcps"
    UNTAGGED = "untagged"
    NO_PREVIEW = "no_preview"


class DetectionState(Enum):
    """States of the auto-detection driver."""
    IDLE = "idle"
    RUNNING = "running"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"


@dataclass
class ProgressState:
    """Progress reported to listeners while loading or detecting."""
    message: str | None = None
    progress: float = 0.0
    is_loading: bool = False
    allow_close: bool = False


@dataclass
class ProjectConfig:
    """Project configuration parameters."""
    project_file: str | None = None
    gcp_list_file: str | None = None
    gcp_name: str | None = None


@dataclass
class ImagesConfig:
    """Images added to the project before tagging."""
    paths: list[str] = field(default_factory=list)


@dataclass
class FilterConfig:
    """Distance filter configuration parameters."""
    distance: float | None = 10.0
    distance_model: str = "haversine"


@dataclass
class DetectionConfig:
    """Auto-detection configuration parameters."""
    auto_detect: bool = False
    detector: str | None = None


@dataclass
class TaggingConfig:
    """Manual tagging operations applied from the command line."""
    pins: list[tuple[str, float, float]] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)
    assume_yes: bool = False


@dataclass
class OutputConfig:
    """Output configuration parameters."""
    project_output: str | None = None
    gcp_list_output: str | None = None
    export_kml: str | None = None
    list_only: bool = False
    verbose: bool = False


@dataclass
class ApplicationConfig:
    """All configuration sections for one run."""
    project: ProjectConfig
    images: ImagesConfig
    filter: FilterConfig
    detection: DetectionConfig
    tagging: TaggingConfig
    output: OutputConfig
