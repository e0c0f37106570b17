"""
GCP Image Tagger - Tag ground control point pixel locations on nearby images.

This package provides functionality to:
- Project ground control points from a project coordinate system to WGS84
- Read image GPS positions from EXIF metadata and compute distances to a GCP
- Filter and sort images by distance from the GCP being tagged
- Pin GCP pixel locations manually or with an interruptible auto-detector
- Commit tags to the project and export them as gcp_list.txt or KML
"""

__version__ = "1.0.0"

from .main import main

__all__ = ["main"]
