"""Configuration management for the GCP image tagger."""

import argparse
import logging
import sys
from pathlib import Path

import tomllib

from .constants import Constants
from .exceptions import ConfigurationError, FileOperationError
from .types import (
    ProjectConfig,
    ImagesConfig,
    FilterConfig,
    DetectionConfig,
    TaggingConfig,
    OutputConfig,
    ApplicationConfig,
)


class ConfigurationManager:
    """
    Builds the ApplicationConfig of a tagging run.

    Command line options are parsed with argparse, a TOML file fills in the
    options left unset, and the merged result is checked before any project
    is loaded. ``--create-config`` writes a commented sample file instead.

    Raises ConfigurationError for unusable option combinations and
    FileOperationError when the sample file cannot be written.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def parse_arguments_and_config(self, argv: list[str] | None = None) -> ApplicationConfig:
        """
        Parse ``argv`` (``sys.argv`` when None), merge the TOML file and validate.

        Raises:
            ConfigurationError: If the merged options cannot describe a tagging run.
        """
        args = self._create_argument_parser().parse_args(argv)

        if args.create_config:
            self._create_sample_config(args.create_config)
            sys.exit(Constants.ErrorCodes.SUCCESS)

        config_data = self._load_config_file(getattr(args, "config", None))
        if config_data:
            self._merge_config_with_args(config_data, args)

        app_config = ApplicationConfig(
            project=ProjectConfig(
                project_file=args.project,
                gcp_list_file=args.gcp_list,
                gcp_name=args.gcp,
            ),
            images=ImagesConfig(paths=list(args.images or [])),
            filter=FilterConfig(
                distance=args.filter_distance,
                distance_model=args.distance_model,
            ),
            detection=DetectionConfig(
                auto_detect=args.detect,
                detector=args.detector,
            ),
            tagging=TaggingConfig(
                pins=self._parse_pins(args.pin or []),
                remove=list(args.remove or []),
                assume_yes=args.yes,
            ),
            output=OutputConfig(
                project_output=args.output,
                gcp_list_output=args.export_gcp_list,
                export_kml=args.export_kml,
                list_only=args.list_only,
                verbose=args.verbose,
            ),
        )

        self._validate_configuration(app_config)
        return app_config

    def _create_argument_parser(self) -> argparse.ArgumentParser:
        """Command line options of ``gcp-image-tagger``."""
        parser = argparse.ArgumentParser(
            prog="gcp-image-tagger",
            description="Tags the pixel location of a ground control point on nearby images.",
            epilog="Examples:\n"
            "  %(prog)s -p project.json -g gcp01 --list-only\n"
            "  %(prog)s -l gcp_list.txt -g gcp01 -i photos/ --export-gcp-list out.txt\n"
            "  %(prog)s -p project.json -g gcp01 --pin DJI_0012.JPG 2011 1520\n"
            "  %(prog)s -p project.json -g gcp01 --detect --detector mydetect:find_marker\n"
            "  %(prog)s --create-config  # Create sample config file\n\n"
            "Unset options are read from the first TOML file found among:\n"
            "  1. the --config path\n"
            "  2. ./gcp_image_tagger.toml\n"
            "  3. ~/.config/gcp_image_tagger/config.toml\n"
            "  4. ~/.gcp_image_tagger.toml",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Project
        parser.add_argument(
            "-p", "--project", action="store", help="JSON project file to load"
        )
        parser.add_argument(
            "-l", "--gcp-list", action="store", help="gcp_list.txt file to load instead of a project"
        )
        parser.add_argument(
            "-g", "--gcp", action="store", help="(required) name of the GCP to tag"
        )
        parser.add_argument(
            "-i", "--images", nargs="+", help="image files or folders to add to the project"
        )

        # Filtering
        parser.add_argument(
            "-r",
            "--filter-distance",
            type=float,
            default=Constants.DEFAULT_FILTER_DISTANCE,
            help=(
                f"(optional, defaults to {Constants.DEFAULT_FILTER_DISTANCE})"
                " only list images closer than this many meters; 0 lists every image"
            ),
        )
        parser.add_argument(
            "--distance-model",
            choices=Constants.DISTANCE_MODELS,
            default=Constants.DEFAULT_DISTANCE_MODEL,
            help="distance model used to compare image positions with the GCP",
        )

        # Tagging
        parser.add_argument(
            "--pin",
            nargs=3,
            action="append",
            metavar=("IMAGE", "X", "Y"),
            help="pin the GCP at pixel X, Y of IMAGE (repeatable)",
        )
        parser.add_argument(
            "--remove", action="append", metavar="IMAGE", help="remove IMAGE from the project (repeatable)"
        )
        parser.add_argument(
            "-y", "--yes", action="store_true", help="answer yes to confirmation prompts"
        )
        parser.add_argument(
            "--detect", action="store_true", help="run the auto-detector on every listed image"
        )
        parser.add_argument(
            "--detector", type=str, help="detector to use, as 'package.module:attribute'"
        )

        # Output
        parser.add_argument(
            "-o", "--output", action="store", help="JSON project file to write (defaults to --project)"
        )
        parser.add_argument(
            "--export-gcp-list", type=str, help="write the tagged associations as gcp_list.txt"
        )
        parser.add_argument(
            "--export-kml", type=str, help="write the GCP and nearby images as KML"
        )
        parser.add_argument(
            "--list-only", action="store_true", help="only list images, do not commit or save"
        )
        parser.add_argument(
            "-v", "--verbose", action="store_true", help="log per-image details"
        )
        parser.add_argument(
            "--config", type=str, help="Path to TOML configuration file (optional)"
        )
        parser.add_argument(
            "--create-config",
            type=str,
            nargs="?",
            const="gcp_image_tagger.toml",
            help="write a commented sample TOML file (default gcp_image_tagger.toml) and exit",
        )

        return parser

    def _load_config_file(self, config_path: str | Path | None = None) -> dict:
        """
        Contents of the first readable TOML configuration file.

        Checks the given path first, then the standard locations. Returns an empty
        dictionary when no file is found or none can be parsed.
        """
        config_locations = []

        if config_path:
            config_locations.append(Path(config_path))

        config_locations.extend(
            [
                Path.cwd() / "gcp_image_tagger.toml",
                Path.home() / ".config" / "gcp_image_tagger" / "config.toml",
                Path.home() / ".gcp_image_tagger.toml",
            ]
        )

        for config_file in config_locations:
            if config_file.exists():
                try:
                    with open(config_file, "rb") as f:
                        config_data = tomllib.load(f)
                    self.logger.info(f"Using configuration file {config_file}")
                    return config_data
                except (OSError, IOError) as e:
                    self.logger.warning(f"Skipping unreadable configuration file {config_file}: {e}")
                    continue
                except tomllib.TOMLDecodeError as e:
                    self.logger.warning(f"Skipping invalid TOML in {config_file}: {e}")
                    continue

        return {}

    def _merge_config_with_args(self, config_data: dict, args: argparse.Namespace) -> None:
        """
        Fill options left unset on the command line from the TOML sections.

        Explicit command-line values win; each mapping names the TOML section, the
        argument, the TOML field and the merge strategy.
        """
        field_mappings = [
            # (section, argument, field, strategy[, default])
            ("project", "project", "file", "none_check"),
            ("project", "gcp_list", "gcp_list", "none_check"),
            ("project", "gcp", "gcp", "none_check"),
            ("images", "images", "paths", "none_check"),
            ("filter", "filter_distance", "distance", "default_value", Constants.DEFAULT_FILTER_DISTANCE),
            ("filter", "distance_model", "distance_model", "default_value", Constants.DEFAULT_DISTANCE_MODEL),
            ("detection", "detect", "auto_detect", "boolean_false_to_true"),
            ("detection", "detector", "detector", "none_check"),
            ("tagging", "pin", "pins", "none_check"),
            ("tagging", "remove", "remove", "none_check"),
            ("tagging", "yes", "assume_yes", "boolean_false_to_true"),
            ("output", "output", "project_output", "none_check"),
            ("output", "export_gcp_list", "gcp_list_output", "none_check"),
            ("output", "export_kml", "export_kml", "none_check"),
            ("output", "list_only", "list_only", "boolean_false_to_true"),
            ("output", "verbose", "verbose", "boolean_false_to_true"),
        ]

        for mapping in field_mappings:
            self._apply_field_mapping(config_data, args, mapping)

    def _apply_field_mapping(
        self, config_data: dict, args: argparse.Namespace, mapping: tuple
    ) -> None:
        """
        Copy one TOML field onto ``args`` according to its strategy.

        Merge Strategies:
            - "none_check": only when the option was not given.
            - "default_value": only while the option still equals its default.
            - "boolean_false_to_true": turn an unset flag on when the file enables it.
        """
        toml_section, arg_name, toml_field, merge_strategy = mapping[:4]
        section_data = config_data.get(toml_section, {})

        if merge_strategy == "none_check":
            if getattr(args, arg_name, None) is None and toml_field in section_data:
                setattr(args, arg_name, section_data[toml_field])

        elif merge_strategy == "default_value":
            default_value = mapping[4]
            if getattr(args, arg_name) == default_value and toml_field in section_data:
                setattr(args, arg_name, section_data[toml_field])

        elif merge_strategy == "boolean_false_to_true":
            if not getattr(args, arg_name, False) and section_data.get(toml_field, False):
                setattr(args, arg_name, section_data[toml_field])

    def _parse_pins(self, pins: list) -> list[tuple[str, float, float]]:
        """Convert ``[image, x, y]`` entries to typed tuples."""
        parsed = []
        for pin in pins:
            if len(pin) != 3:
                raise ConfigurationError(f"A pin needs an image name and two pixel coordinates: {pin}")
            image, x, y = pin
            try:
                parsed.append((str(image), float(x), float(y)))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid pixel coordinates for {image}: {x}, {y}") from e
        return parsed

    def _create_sample_config(self, output_path: str | Path | None = None) -> None:
        """Write a commented sample configuration to ``output_path``.

        Raises:
            FileOperationError: When the file cannot be written.
        """
        if not output_path:
            output_path = Path.cwd() / "gcp_image_tagger.toml"
        else:
            output_path = Path(output_path)

        sample_config = """# GCP Image Tagger Configuration File
# Save this as gcp_image_tagger.toml in your working directory,
# ~/.config/gcp_image_tagger/config.toml, or ~/.gcp_image_tagger.toml

[project]
file = "project.json"        # JSON project to load
# gcp_list = "gcp_list.txt"  # Alternative: load a gcp_list.txt file
gcp = "gcp01"                # GCP to tag

[images]
# paths = ["photos/"]        # Image files or folders to add

[filter]
distance = 10.0              # Only list images closer than this (meters), 0 lists all
distance_model = "haversine" # "haversine" or "geodesic"

[detection]
auto_detect = false          # Run the auto-detector on every listed image
# detector = "mypackage.detect:find_marker"

[tagging]
# pins = [["DJI_0012.JPG", 2011, 1520]]
# remove = ["DJI_0099.JPG"]
assume_yes = false           # Answer yes to confirmation prompts

[output]
# project_output = "project.json"
# gcp_list_output = "gcp_list.txt"
# export_kml = "gcp01.kml"
list_only = false            # Only list images, do not commit or save
verbose = false
"""

        try:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(sample_config)
            self.logger.info(f"Wrote sample configuration to {output_path}")
        except (OSError, IOError) as e:
            self.logger.error(f"Cannot write sample configuration {output_path}: {e}")
            raise FileOperationError(f"Could not write sample configuration {output_path}: {e}") from e

    def _validate_configuration(self, app_config: ApplicationConfig) -> None:
        """
        Reject option combinations that cannot describe a tagging run.

        Raises:
            ConfigurationError: Naming the first offending option.
        """
        project = app_config.project
        if not project.project_file and not project.gcp_list_file:
            raise ConfigurationError("A project (-p/--project) or GCP list (-l/--gcp-list) is required")
        if project.project_file and project.gcp_list_file:
            raise ConfigurationError("--project and --gcp-list cannot be used together")
        if not project.gcp_name:
            raise ConfigurationError("GCP name (-g/--gcp) is required")

        if app_config.filter.distance is not None and app_config.filter.distance < 0:
            raise ConfigurationError("--filter-distance cannot be negative")
        if app_config.filter.distance_model not in Constants.DISTANCE_MODELS:
            raise ConfigurationError(f"Unknown distance model: {app_config.filter.distance_model}")

        if app_config.detection.auto_detect and not app_config.detection.detector:
            raise ConfigurationError("--detect requires --detector to be specified")

        if app_config.output.list_only and (
            app_config.tagging.pins or app_config.tagging.remove or app_config.detection.auto_detect
        ):
            raise ConfigurationError("--list-only cannot be combined with --pin, --remove or --detect")
