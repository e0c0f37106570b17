"""Main application module for the GCP image tagger."""

import asyncio
import logging
import signal
import sys
from pathlib import Path

from .constants import Constants
from .exceptions import (
    ConfigurationError,
    DetectionError,
    FileOperationError,
    GPSDataError,
    ProjectionError,
)
from .config import ConfigurationManager
from .detection import AutoDetectionDriver, load_detector
from .export import GCPListExporter, KMLExporter
from .geo import DistanceCalculator
from .session import ImageTaggerSession
from .store import ProjectStore
from .types import ApplicationConfig, CoordsXY, DetectionState, ProjectConfig, TaggingConfig
from .utils import LoggingSetup


class ConsolePrompt:
    """Asks yes/no questions on the terminal."""

    def __init__(self, assume_yes: bool = False):
        self.assume_yes = assume_yes

    async def __call__(self, title: str, text: str) -> bool:
        if self.assume_yes:
            return True
        answer = await asyncio.to_thread(input, f"{title}: {text} [y/N] ")
        return answer.strip().lower() in ("y", "yes")


class TaggerWorkflow:
    """Orchestrates one tagging run for a GCP."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.store: ProjectStore | None = None
        self.session: ImageTaggerSession | None = None

    async def run(self, app_config: ApplicationConfig) -> int:
        """Run the tagging workflow and return an exit code."""
        self.store = self._load_store(app_config.project)
        self.session = ImageTaggerSession(
            self.store,
            self.logger,
            confirm=ConsolePrompt(app_config.tagging.assume_yes),
            distance_calculator=DistanceCalculator(app_config.filter.distance_model),
            filter_distance=app_config.filter.distance,
        )

        if not await self.session.enter(app_config.project.gcp_name):
            available = ", ".join(gcp.name for gcp in self.store.gcps) or "none"
            self.logger.error(f"Cannot tag GCP {app_config.project.gcp_name}. Available GCPs: {available}")
            return Constants.ErrorCodes.GCP_NOT_FOUND

        image_files = self._collect_image_files(app_config.images.paths)
        if image_files:
            await self.session.add_images(image_files)

        if app_config.output.list_only:
            self._log_images()
            return Constants.ErrorCodes.SUCCESS

        await self._apply_tagging(app_config.tagging)

        exit_code = Constants.ErrorCodes.SUCCESS
        if app_config.detection.auto_detect:
            state = await self._run_detection(app_config.detection.detector)
            if state is DetectionState.INTERRUPTED:
                exit_code = Constants.ErrorCodes.INTERRUPTED

        self._log_images()

        if app_config.output.export_kml:
            KMLExporter(self.logger).export_kml(
                self.session.gcp, self.session.gcp_coords, self.session.raw_images,
                app_config.output.export_kml,
            )

        self.session.commit()
        self._save_outputs(app_config)
        return exit_code

    def _load_store(self, project_config: ProjectConfig) -> ProjectStore:
        """Load the project from a JSON project file or a gcp_list.txt file."""
        store = ProjectStore(self.logger)
        if project_config.project_file:
            store.load_json(project_config.project_file)
        elif project_config.gcp_list_file:
            store.load_gcp_list(project_config.gcp_list_file)
        return store

    def _collect_image_files(self, paths: list[str]) -> list[Path]:
        """Expand folders into the image files they contain."""
        files: list[Path] = []
        for entry in paths:
            path = Path(entry)
            if path.is_dir():
                files.extend(
                    sorted(child for child in path.iterdir()
                           if child.is_file() and child.suffix.lower() in Constants.IMAGE_EXTENSIONS)
                )
            elif path.is_file():
                files.append(path)
            else:
                self.logger.warning(f"Image path does not exist: {path}")
        return files

    async def _apply_tagging(self, tagging_config: TaggingConfig) -> None:
        """Apply manual pins and removals."""
        assert self.session is not None, "Session must be entered first"
        for image_name, x, y in tagging_config.pins:
            descriptor = self.session.find(image_name)
            if descriptor is None:
                self.logger.warning(f"Cannot pin unknown image {image_name}")
                continue
            self.session.pin(CoordsXY(x, y), descriptor)

        for image_name in tagging_config.remove:
            descriptor = self.session.find(image_name)
            if descriptor is None:
                self.logger.warning(f"Cannot remove unknown image {image_name}")
                continue
            await self.session.remove(descriptor)

    async def _run_detection(self, detector_reference: str) -> DetectionState:
        """Run the auto-detector; Ctrl+C interrupts before the next image."""
        assert self.session is not None and self.store is not None, "Session must be entered first"
        driver = AutoDetectionDriver(
            self.session, load_detector(detector_reference, self.store), self.logger
        )

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, driver.interrupt)
        except (NotImplementedError, RuntimeError):
            previous = signal.signal(signal.SIGINT, lambda *_: loop.call_soon_threadsafe(driver.interrupt))
            try:
                return await driver.detect_all()
            finally:
                signal.signal(signal.SIGINT, previous)

        try:
            return await driver.detect_all()
        finally:
            loop.remove_signal_handler(signal.SIGINT)

    def _log_images(self) -> None:
        assert self.session is not None, "Session must be entered first"
        for descriptor in self.session.images:
            status = self.session.tag_status(descriptor)
            self.logger.info(f"[{status.value}] {self.session.display_name(descriptor)}")

        hidden = len(self.session.raw_images) - len(self.session.images)
        if hidden:
            self.logger.info(f"{hidden} images farther than {self.session.filter_distance} m not listed")

    def _save_outputs(self, app_config: ApplicationConfig) -> None:
        assert self.store is not None, "Store must be loaded first"
        project_output = app_config.output.project_output or app_config.project.project_file
        if project_output:
            self.store.save_json(project_output)

        if app_config.output.gcp_list_output:
            GCPListExporter(self.logger).export_gcp_list(
                self.store.projection, self.store.image_gcps, app_config.output.gcp_list_output
            )

        if not project_output and not app_config.output.gcp_list_output:
            self.logger.warning("No output requested; tags were not saved")


def main(argv: list[str] | None = None) -> None:
    """Main execution function."""
    logging_setup = LoggingSetup()
    logger = logging_setup.setup_logging()

    try:
        config_manager = ConfigurationManager(logger)
        app_config = config_manager.parse_arguments_and_config(argv)

        if app_config.output.verbose:
            logging.getLogger().setLevel(logging.DEBUG)

        workflow = TaggerWorkflow(logger)
        exit_code = asyncio.run(workflow.run(app_config))
        sys.exit(exit_code)

    except KeyboardInterrupt:
        logger.info("Tagging interrupted by user")
        sys.exit(Constants.ErrorCodes.INTERRUPTED)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(Constants.ErrorCodes.CONFIGURATION_ERROR)
    except ProjectionError as e:
        logger.error(f"Projection error: {e}")
        sys.exit(Constants.ErrorCodes.PROJECTION_ERROR)
    except DetectionError as e:
        logger.error(f"Detection error: {e}")
        sys.exit(Constants.ErrorCodes.DETECTION_ERROR)
    except GPSDataError as e:
        logger.error(f"GPS data error: {e}")
        sys.exit(Constants.ErrorCodes.GPS_DATA_ERROR)
    except FileOperationError as e:
        logger.error(f"File operation error: {e}")
        sys.exit(Constants.ErrorCodes.FILE_OPERATION_ERROR)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error(f"Unexpected error: {e}")
        sys.exit(Constants.ErrorCodes.GENERAL_ERROR)


if __name__ == "__main__":
    main()
