"""
Core module for the FitTrack backend.

Holds configuration, logging setup, storage, identity and the chatbot
dialogue engine. The FastAPI application lives in `fittrack.core.main`.
"""
import logging

from fittrack import __version__

logger = logging.getLogger(__name__)

__all__ = [
    "logger",
    "__version__",
]
