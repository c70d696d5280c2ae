"""
Main source package for the FitTrack backend.
"""
from pathlib import Path

# Read the version from the VERSION file shipped with the package, otherwise default to a development version.
# This makes the version accessible as `fittrack.__version__`.
try:
    __version__ = (Path(__file__).parent / "VERSION").read_text().strip()
except FileNotFoundError:
    __version__ = "0.1.0-dev"
