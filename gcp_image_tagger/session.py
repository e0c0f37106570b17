"""Per-GCP image tagging session."""

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from .constants import Constants
from .exceptions import GCPTaggerError, GPSDataError
from .geo import CoordinateProjector, DistanceCalculator, to_human_distance
from .store import ProjectStore
from .types import (
    GCP,
    CoordsLookup,
    CoordsXY,
    GeoCoords,
    ImageDescriptor,
    ImageGcpTag,
    ProgressState,
    ProjectImage,
    TagStatus,
)
from .utils import PathNormalizer

Navigator = Callable[[str], None]
ConfirmPrompt = Callable[[str, str], Awaitable[bool]]
LayoutListener = Callable[[], None]
ProgressListener = Callable[[ProgressState], None]


class ImageTaggerSession:
    """
    Manages the list of images while tagging the pixel location of one GCP.

    The session is entered for a GCP of the project store, builds one
    ImageDescriptor per project image, computes each image's distance from
    the GCP once its GPS position is known and keeps a filtered, sorted view
    of the images. Tags are only written back to the store by ``commit()``.
    """

    def __init__(
        self,
        store: ProjectStore,
        logger: logging.Logger,
        navigator: Navigator | None = None,
        confirm: ConfirmPrompt | None = None,
        distance_calculator: DistanceCalculator | None = None,
        filter_distance: float | None = Constants.DEFAULT_FILTER_DISTANCE,
    ):
        self.store = store
        self.logger = logger
        self.navigator = navigator
        self.confirm = confirm
        self.distance_calculator = distance_calculator or DistanceCalculator()
        self.filter_distance = filter_distance
        self.path_normalizer = PathNormalizer()

        self.gcp: GCP | None = None
        self.gcp_coords: GeoCoords | None = None
        self.images: list[ImageDescriptor] = []
        self.raw_images: list[ImageDescriptor] = []
        self.progress = ProgressState()
        self.route: str | None = None

        self._layout_listeners: list[LayoutListener] = []
        self._progress_listeners: list[ProgressListener] = []

    # Navigation

    def navigate(self, route: str) -> None:
        self.route = route
        self.logger.debug(f"Navigating to {route}")
        if self.navigator:
            self.navigator(route)

    def back(self) -> None:
        """Leave the tagging view without committing."""
        self.navigate(Constants.GCPS_MAP_ROUTE)

    async def enter(self, gcp_name: str | None) -> bool:
        """
        Enter the tagging view for ``gcp_name``.

        Returns False and navigates to the home route when the project has no
        GCPs or projection, or when the GCP cannot be found.

        Raises:
            ProjectionError: If the project's projection cannot be used.
        """
        if not self.store.gcps or self.store.projection is None:
            self.logger.warning("Project has no GCPs or no projection")
            self.navigate(Constants.HOME_ROUTE)
            return False

        if not gcp_name:
            self.logger.warning("No GCP selected")
            self.navigate(Constants.HOME_ROUTE)
            return False

        gcp = self.store.get_gcp(gcp_name)
        if gcp is None:
            self.logger.warning(f"Cannot find matching GCP: {gcp_name}")
            self.navigate(Constants.HOME_ROUTE)
            return False

        self.gcp = gcp
        projector = CoordinateProjector(self.store.projection, self.logger)
        self.gcp_coords = projector.project_to_wgs84(gcp)
        self.logger.info(f"Tagging GCP {gcp.name} at {self.gcp_coords.lat:.6f}, {self.gcp_coords.lng:.6f}")

        self.images = []
        self.raw_images = []
        if not self.store.images:
            return True

        self.set_progress(Constants.Messages.LOADING_IMAGES, 0)
        self.raw_images = [self._descriptor_for(img) for img in self.store.images]

        self.set_progress(Constants.Messages.CALCULATING_DISTANCES, 0.5)
        await self._apply_distances()
        self.filter_images()

        self.set_progress(Constants.Messages.DONE, 1, close=True)
        return True

    # Image list

    def filter_images(self, threshold: float | None = None) -> list[ImageDescriptor]:
        """
        Keep images closer than the threshold, nearest first.

        Images whose distance is still unknown are always kept and sorted
        before the others. A falsy threshold disables filtering.
        """
        if threshold is not None:
            self.filter_distance = threshold

        if not self.filter_distance:
            self.images = list(self.raw_images)
        else:
            self.images = sorted(
                (img for img in self.raw_images
                 if img.distance is None or img.distance < self.filter_distance),
                key=_distance_sort_key,
            )
        return self.images

    async def add_images(self, files: Iterable[str | Path]) -> list[ImageDescriptor]:
        """
        Add image files to the session and the project store.

        Files whose name is already listed only get their preview refreshed.
        Returns the descriptors created for new images.
        """
        gcp = self._require_gcp()
        files = list(files)
        if not files:
            return []

        self.set_progress(Constants.Messages.LOADING_IMAGES)
        new_images: list[ImageDescriptor] = []

        for count, file in enumerate(files):
            name = self.path_normalizer.image_name(file)
            self.set_progress(f"Reading image {name}", count / len(files) * 0.75)

            self.store.save_image(file)
            preview_url = self.store.get_image_url(name)
            if preview_url is None:
                self.logger.info(f"Cannot preview {file}")

            existing = self.find(name) or next((d for d in new_images if d.name == name), None)
            if existing is None:
                new_images.append(ImageDescriptor(
                    image=ImageGcpTag.for_gcp(gcp, name),
                    coords=CoordsLookup.start(self.store.gps_lookup(name)),
                    preview_url=preview_url,
                ))
            else:
                existing.preview_url = preview_url

        self.raw_images.extend(new_images)

        self.set_progress(Constants.Messages.READING_COORDINATES, 0.75)
        await self._apply_distances()
        self.filter_images()
        self._notify_layout_changed()

        self.set_progress(Constants.Messages.DONE, 1, close=True)
        return new_images

    def find(self, name: str) -> ImageDescriptor | None:
        return next((item for item in self.raw_images if item.name == name), None)

    def contains(self, descriptor: ImageDescriptor) -> bool:
        return any(item is descriptor for item in self.raw_images)

    def pin(self, location: CoordsXY, descriptor: ImageDescriptor) -> None:
        """Place the GCP pin of ``descriptor`` at ``location``."""
        descriptor.pin_location = location
        descriptor.image.im_x = location.x
        descriptor.image.im_y = location.y
        self.logger.debug(f"Pinned {descriptor.name} at {location.x}, {location.y}")

    async def remove(self, descriptor: ImageDescriptor) -> bool:
        """
        Remove an image from the session and the project store.

        Images associated with other GCPs are only removed after the
        confirmation prompt answers yes. Returns True if the image was removed.
        """
        if descriptor.other_gcps:
            if self.confirm is None:
                self.logger.warning(f"Not removing {descriptor.name}: no confirmation prompt available")
                return False
            confirmed = await self.confirm(Constants.Messages.REMOVE_TITLE, Constants.Messages.REMOVE_TEXT)
            if not confirmed:
                self.logger.info(f"Kept {descriptor.name}")
                return False

        self.images = [item for item in self.images if item.name != descriptor.name]
        self.raw_images = [item for item in self.raw_images if item.name != descriptor.name]
        self.store.remove_image(descriptor.name)
        self._notify_layout_changed()
        return True

    def commit(self) -> None:
        """Replace the store's associations for this GCP with the tagged images, then go back."""
        gcp = self._require_gcp()

        tags = [tag for tag in self.store.image_gcps if tag.gcp_name != gcp.name]
        tagged = [
            dataclasses.replace(item.image, extras=list(item.image.extras))
            for item in self.raw_images if item.is_tagged
        ]
        tags.extend(tagged)
        self.store.image_gcps = tags

        self.logger.info(f"Committed {len(tagged)} tagged images for GCP {gcp.name}")
        self.back()

    # Display helpers

    def display_name(self, descriptor: ImageDescriptor) -> str:
        name = descriptor.name
        if descriptor.other_gcps:
            name = f"{name} ({', '.join(descriptor.other_gcps)})"
        if descriptor.distance:
            name = f"{name} ({to_human_distance(descriptor.distance)})"
        return name

    def tag_status(self, descriptor: ImageDescriptor) -> TagStatus:
        if descriptor.preview_url is None:
            return TagStatus.NO_PREVIEW
        if descriptor.is_tagged:
            return TagStatus.TAGGED
        if descriptor.other_gcps:
            return TagStatus.OTHER_GCPS
        return TagStatus.UNTAGGED

    # Observers

    def add_layout_listener(self, listener: LayoutListener) -> None:
        self._layout_listeners.append(listener)

    def remove_layout_listener(self, listener: LayoutListener) -> None:
        self._layout_listeners.remove(listener)

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.remove(listener)

    def set_progress(
        self, text: str, progress: float = 0, close: bool = False, allow_close: bool = False
    ) -> None:
        """
        Report progress to listeners.

        ``close`` ends the loading state; the final message stays readable.
        ``allow_close`` tells listeners the operation can be interrupted.
        """
        self.progress = ProgressState(
            message=text,
            progress=progress,
            is_loading=not close,
            allow_close=allow_close,
        )
        self.logger.info(f"{text} ({progress:.0%})")
        for listener in list(self._progress_listeners):
            listener(self.progress)

    # Internals

    def _require_gcp(self) -> GCP:
        if self.gcp is None:
            raise GCPTaggerError("No GCP selected; enter the tagging view first")
        return self.gcp

    def _descriptor_for(self, img: ProjectImage) -> ImageDescriptor:
        gcp = self._require_gcp()
        tags = [tag for tag in self.store.image_gcps if tag.img_name == img.name]
        current = next((tag for tag in tags if tag.gcp_name == gcp.name), None)

        image = ImageGcpTag.for_gcp(gcp, img.name)
        pin_location = None
        if current is not None:
            image.extras = list(current.extras)
            if current.is_tagged:
                image.im_x, image.im_y = current.im_x, current.im_y
                pin_location = CoordsXY(current.im_x, current.im_y)

        return ImageDescriptor(
            image=image,
            coords=CoordsLookup.start(self.store.gps_lookup(img.name)),
            pin_location=pin_location,
            preview_url=self.store.get_image_url(img.name),
            other_gcps=[tag.gcp_name for tag in tags if tag.gcp_name != gcp.name],
        )

    async def _apply_distances(self) -> None:
        """Wait for every pending GPS lookup, then set the distances that became known."""
        items = list(self.raw_images)
        coords = await asyncio.gather(*(item.coords.wait() for item in items))

        for item, coord in zip(items, coords):
            if item.coords.error is not None:
                self.logger.debug(f"Could not read coordinates of {item.name}: {item.coords.error}")
            if coord is None or item.distance is not None:
                continue
            try:
                item.distance = self.distance_calculator.distance_to(self.gcp_coords, coord)
            except GPSDataError as e:
                self.logger.warning(f"Ignoring GPS position of {item.name}: {e}")
                continue
            self.logger.debug(f"{item.name} {coord} distance: {item.distance:.1f} m")

    def _notify_layout_changed(self) -> None:
        for listener in list(self._layout_listeners):
            listener()


def _distance_sort_key(descriptor: ImageDescriptor) -> tuple[bool, float]:
    # Unknown distances first
    if descriptor.distance is None:
        return (False, 0.0)
    return (True, descriptor.distance)
