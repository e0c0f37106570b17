"""Setup script for gcp_image_tagger package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setup(
    name="gcp-image-tagger",
    version="1.0.0",
    description="Tag ground control point pixel locations on GPS-tagged images",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "exif>=1.3.0",
        "geopy>=2.0.0",
        "pyproj>=3.4.0",
    ],
    extras_require={
        "kml": ["fastkml>=1.0", "pygeoif>=1.0"],
        "test": ["pytest>=7.0"],
        "all": ["fastkml>=1.0", "pygeoif>=1.0"],
    },
    entry_points={
        "console_scripts": [
            "gcp-image-tagger=gcp_image_tagger.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: GIS",
    ],
    keywords="gcp ground control point georeferencing exif gps photogrammetry",
)
