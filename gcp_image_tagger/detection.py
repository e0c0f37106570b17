"""Sequential, interruptible auto-detection of GCP pins."""

import asyncio
import importlib
import logging
from typing import Any, Callable, Protocol

from .constants import Constants
from .exceptions import DetectionError
from .session import ImageTaggerSession
from .store import ProjectStore
from .types import CoordsXY, DetectionState, ImageDescriptor


class Detector(Protocol):
    """Finds the pixel location of a GCP marker in a project image."""

    async def detect(self, image_name: str) -> CoordsXY | None:
        ...


def as_coords(result: Any) -> CoordsXY | None:
    """Normalise a detector result: CoordsXY, an (x, y) pair, a mapping with x/y, or None."""
    if result is None or isinstance(result, CoordsXY):
        return result
    if isinstance(result, dict):
        return CoordsXY(float(result["x"]), float(result["y"]))
    x, y = result
    return CoordsXY(float(x), float(y))


class CallableDetector:
    """Runs a blocking ``callable(image_path)`` detector in a worker thread."""

    def __init__(self, func: Callable[[str], Any], store: ProjectStore):
        self.func = func
        self.store = store

    async def detect(self, image_name: str) -> CoordsXY | None:
        image = self.store.get_image(image_name)
        if image is None or not image.path:
            raise DetectionError(f"No file available for image {image_name}")
        result = await asyncio.to_thread(self.func, image.path)
        return as_coords(result)


def load_detector(reference: str, store: ProjectStore) -> Detector:
    """
    Load a detector from a ``package.module:attribute`` reference.

    The attribute may be a detector object, a class building one, or a plain
    callable taking an image path.

    Raises:
        DetectionError: If the reference cannot be imported or used as a detector.
    """
    module_name, _, attr = reference.partition(":")
    if not module_name or not attr:
        raise DetectionError(f"Detector reference must look like 'package.module:attribute', got '{reference}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise DetectionError(f"Cannot import detector module {module_name}: {e}") from e

    try:
        target = getattr(module, attr)
    except AttributeError as e:
        raise DetectionError(f"Module {module_name} has no attribute {attr}") from e

    if isinstance(target, type):
        target = target()
    if hasattr(target, "detect"):
        return target
    if callable(target):
        return CallableDetector(target, store)
    raise DetectionError(f"{reference} is not a detector")


class CancellationToken:
    """Cooperative interrupt request for one detection run."""

    def __init__(self):
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def clear(self) -> None:
        self._cancelled = False


class AutoDetectionDriver:
    """
    Runs a detector over the images of a tagging session.

    Detections run one at a time in list order. ``interrupt()`` is only
    observed before the next image: a detection already in flight completes
    and keeps its result. A result arriving for an image removed meanwhile is
    discarded.
    """

    def __init__(self, session: ImageTaggerSession, detector: Detector, logger: logging.Logger):
        self.session = session
        self.detector = detector
        self.logger = logger
        self.state = DetectionState.IDLE
        self._token: CancellationToken | None = None

    async def detect_one(self, descriptor: ImageDescriptor) -> CoordsXY | None:
        """Detect the GCP in a single image. Detector errors are reported, not raised."""
        self.session.set_progress(f"Detecting GCPs in {descriptor.name}")

        try:
            coords, message = await self._detect(descriptor)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.logger.error(f"Detection failed for {descriptor.name}: {e}")
            self.session.set_progress(f"Error: {e}", 1, close=True)
            return None

        self.session.set_progress(message, 1, close=True)
        return coords

    async def detect_all(self, token: CancellationToken | None = None) -> DetectionState:
        """
        Detect the GCP in every listed image, in order.

        Args:
            token: Cancellation token checked before each image. A new one is
                created when omitted; ``interrupt()`` cancels the current one.

        Returns:
            INTERRUPTED or COMPLETED.

        Raises:
            DetectionError: If a detection run is already in progress.
        """
        if self.state is DetectionState.RUNNING:
            raise DetectionError("A detection run is already in progress")

        token = token or CancellationToken()
        self._token = token
        self.state = DetectionState.RUNNING

        images = list(self.session.images)
        total = len(images)
        self.session.set_progress(Constants.Messages.DETECTING, 0, allow_close=True)

        try:
            for index, item in enumerate(images):
                progress = index / total

                if token.is_cancelled:
                    self.logger.warning("Received interrupt signal")
                    token.clear()
                    self.session.set_progress(Constants.Messages.INTERRUPTED, progress, close=True)
                    self.state = DetectionState.INTERRUPTED
                    return self.state

                self.session.set_progress(
                    f"Detecting GCPs in {item.name} ({index + 1}/{total})", progress, allow_close=True
                )
                completed = (index + 1) / total

                try:
                    _, message = await self._detect(item)
                except Exception as e:  # pylint: disable=broad-exception-caught
                    self.logger.error(f"Detection failed for {item.name}: {e}")
                    self.session.set_progress(f"Error: {e}", completed, allow_close=True)
                    continue

                self.session.set_progress(message, completed, allow_close=True)

        except asyncio.CancelledError:
            self.state = DetectionState.INTERRUPTED
            raise
        finally:
            self._token = None

        self.session.set_progress(Constants.Messages.DONE, 1, close=True)
        self.state = DetectionState.COMPLETED
        return self.state

    def interrupt(self) -> None:
        """Ask the running detection to stop before its next image."""
        if self._token is None:
            self.logger.debug("No detection running, nothing to interrupt")
            return
        self._token.cancel()
        self.session.set_progress(Constants.Messages.INTERRUPTING, self.session.progress.progress)

    async def _detect(self, descriptor: ImageDescriptor) -> tuple[CoordsXY | None, str]:
        """Run the detector on one image; the pinned coordinates and the status to report."""
        coords = as_coords(await self.detector.detect(descriptor.name))
        if coords is None:
            return None, Constants.Messages.NO_GCP_FOUND
        if not self.session.contains(descriptor):
            self.logger.info(f"Discarding detection for removed image {descriptor.name}")
            return None, Constants.Messages.DETECTION_DISCARDED
        self.session.pin(coords, descriptor)
        return coords, Constants.Messages.GCP_FOUND
