"""Configuration models for stylesnap."""

from .config import (
    AuthenticationConfig,
    BrowserConfig,
    Config,
    ExtractionLimits,
    MonitoringConfig,
    NavigationConfig,
    ScreenshotConfig,
    SecurityConfig,
    StabilityConfig,
    TimeoutConfig,
    ViewportConfig,
    find_config_file,
)

__all__ = [
    "AuthenticationConfig",
    "BrowserConfig",
    "Config",
    "ExtractionLimits",
    "MonitoringConfig",
    "NavigationConfig",
    "ScreenshotConfig",
    "SecurityConfig",
    "StabilityConfig",
    "TimeoutConfig",
    "ViewportConfig",
    "find_config_file",
]
