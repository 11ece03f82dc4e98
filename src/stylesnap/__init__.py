"""
stylesnap - style snapshot extraction from live web pages.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .container import DependencyContainer
from .errors import (
    AuthenticationError,
    ExtractionError,
    ExtractionTimeoutError,
    InvalidInputError,
    NavigationError,
    ScreenshotError,
)
from .models import ExtractionOptions, StyleSnapshot
from .orchestrator import StyleExtractor

__all__ = [
    "__version__",
    "AuthenticationError",
    "Config",
    "DependencyContainer",
    "ExtractionError",
    "ExtractionOptions",
    "ExtractionTimeoutError",
    "InvalidInputError",
    "NavigationError",
    "ScreenshotError",
    "StyleExtractor",
    "StyleSnapshot",
]
