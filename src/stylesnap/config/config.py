"""
Configuration management for stylesnap using Pydantic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

ReadinessStrategy = Literal["networkidle", "domcontentloaded", "load", "commit"]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# --- Nested Configuration Models ---


class ViewportConfig(BaseModel):
    width: int = Field(default=1920, gt=0)
    height: int = Field(default=1080, gt=0)


class BrowserConfig(BaseModel):
    """Settings for the Playwright-backed page pool."""

    headless: bool = Field(default=True, description="Run Chromium headless.")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent sent by leased pages.")
    extra_http_headers: Dict[str, str] = Field(
        default_factory=lambda: {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "DNT": "1",
            "Upgrade-Insecure-Requests": "1",
        }
    )
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    max_concurrent_page_creations: int = Field(default=3, ge=1, description="Pages created in parallel.")
    max_idle_seconds: float = Field(default=600.0, description="Inactive pages older than this are reaped.")
    reap_interval: float = Field(default=60.0, gt=0, description="Seconds between idle page sweeps.")
    stealth: bool = Field(default=True, description="Hide common automation markers.")
    launch_args: List[str] = Field(default_factory=lambda: ["--no-sandbox", "--disable-dev-shm-usage"])


class TimeoutConfig(BaseModel):
    """Overall and per-step time budgets, in seconds."""

    extraction: float = Field(default=30.0, gt=0, description="Default overall extraction budget.")
    slow_target_hosts: List[str] = Field(
        default_factory=list, description="Host suffixes known to need a larger budget."
    )
    slow_target_extraction: float = Field(default=180.0, gt=0)
    navigation_base: float = Field(default=45.0, gt=0, description="Upper bound for one navigation attempt.")
    navigation_floor: float = Field(default=2.0, gt=0, description="Minimum timeout granted to any attempt.")
    deadline_margin: float = Field(default=0.5, ge=0)


class NavigationConfig(BaseModel):
    strategies: List[ReadinessStrategy] = Field(default=["networkidle", "domcontentloaded", "load"])
    slow_target_strategies: List[ReadinessStrategy] = Field(default=["domcontentloaded", "networkidle", "load"])
    max_attempts: int = Field(default=3, ge=1)
    backoff_step: float = Field(default=1.0, ge=0, description="Linear backoff increment between attempts.")

    @field_validator("strategies", "slow_target_strategies")
    @classmethod
    def validate_strategies(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one readiness strategy is required")
        return v


class AuthenticationConfig(BaseModel):
    """Heuristics used to find and submit login forms."""

    password_keywords: List[str] = Field(default=["password", "passwd", "pwd"])
    username_keywords: List[str] = Field(default=["email", "user", "username", "login"])
    username_types: List[str] = Field(default=["email", "text"])
    login_path_markers: List[str] = Field(default=["/login", "/signin", "/sign-in", "/auth"])
    login_button_texts: List[str] = Field(default=["login", "log in", "sign in"])
    submit_selector: str = 'button[type="submit"], input[type="submit"]'
    form_button_selector: str = "form button, .login-form button, .auth-form button"
    dashboard_selector: str = '[class*="dashboard"], [class*="home"], [class*="main"]'
    keystroke_delay_ms: float = Field(default=100.0, ge=0)
    field_pause: float = Field(default=0.5, ge=0)
    selector_timeout: float = Field(default=20.0, gt=0, description="Wait for any input to appear.")
    action_timeout: float = Field(default=5.0, gt=0, description="Timeout for a single click/focus.")
    completion_timeout: float = Field(default=15.0, gt=0)


class StabilityConfig(BaseModel):
    default_timeout: float = Field(default=5.0, gt=0)
    slow_target_timeout: float = Field(default=30.0, gt=0)
    framework_globals: List[str] = Field(default=["React", "Vue", "Angular", "ng", "__NEXT_DATA__", "__NUXT__"])
    framework_markers: str = "[data-reactroot], [data-vue], .ng-app, [ng-version], #__next, #app"
    script_threshold: int = Field(default=10, ge=0)
    loading_selector: str = '.loading, .spinner, [class*="loading"], [class*="spinner"], .loader'
    content_selector: str = 'h1, h2, h3, p, article, section, main, [role="main"]'
    min_content_elements: int = Field(default=3, ge=0)
    min_dom_nodes: int = Field(default=50, ge=0)
    settle_delay: float = Field(default=1.2, ge=0)


class ExtractionLimits(BaseModel):
    """Bounds applied to DOM extraction and palette aggregation."""

    max_elements: int = Field(default=1500, gt=0)
    max_scanned_nodes: int = Field(default=6000, gt=0)
    max_text_length: int = Field(default=200, gt=0)
    max_colors: int = 50
    max_font_families: int = 20
    max_font_sizes: int = 20
    max_font_weights: int = 10
    max_line_heights: int = 20
    max_letter_spacings: int = 20
    max_spacing: int = 30
    max_border_radius: int = 20
    min_element_size: float = Field(default=5.0, description="Nodes at or below this width/height are ignored.")
    min_element_area: float = Field(default=100.0, description="Area above which a node is considered large.")
    context_retry_delay: float = Field(default=3.0, ge=0)
    color_index_max_extractions: int = Field(default=100, gt=0, description="Extractions kept in the color usage index.")
    extractor_version: str = "3.0.0-stylesnap"
    semantic_selectors: List[str] = Field(
        default=[
            '[class*="ant-"]',
            '[class*="css-"]',
            '[class*="MuiBox"], [class*="chakra-"]',
            "h1, h2, h3, h4, h5, h6",
            "p, span:not(:empty)",
            "article, section, main, aside",
            'nav, [role="navigation"]',
            'header, [role="banner"]',
            'footer, [role="contentinfo"]',
            'button, [role="button"], [class*="btn" i]',
            "a[href]:not(:empty)",
            "form",
            "input, textarea, select",
            'table, [role="table"], tbody, tr, td, th',
            "ul, ol, li, dl",
            'img[src], [role="img"]',
            'div[class*="content"], div[class*="text"], div[class*="list"], div[class*="item"]',
            '[role="main"], [role="article"]',
        ]
    )


class ScreenshotConfig(BaseModel):
    attempts: int = Field(default=2, ge=1)
    timeout: float = Field(default=15.0, gt=0)
    retry_delay: float = Field(default=1.0, ge=0)
    image_type: Literal["png", "jpeg"] = "png"
    quality: int = Field(default=80, ge=0, le=100)
    full_page: bool = True


class SecurityConfig(BaseModel):
    allowed_hosts: List[str] = Field(
        default_factory=list,
        description="When non-empty, localhost/private-network URLs must match one of these hosts.",
    )


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    prometheus_port: int | None = Field(default=None, description="Port for Prometheus exporter. None to disable.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "stylesnap"
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    authentication: AuthenticationConfig = Field(default_factory=AuthenticationConfig)
    stability: StabilityConfig = Field(default_factory=StabilityConfig)
    extraction: ExtractionLimits = Field(default_factory=ExtractionLimits)
    screenshot: ScreenshotConfig = Field(default_factory=ScreenshotConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="STYLESNAP_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)

    def is_slow_target(self, host: str) -> bool:
        host = host.lower()
        return any(host == suffix or host.endswith(f".{suffix}") for suffix in self.timeouts.slow_target_hosts)


def find_config_file() -> Optional[Path]:
    current_dir = Path.cwd()
    for name in ("stylesnap.yaml", "stylesnap.yml", "config.yaml", "config.yml"):
        path = current_dir / name
        if path.exists():
            return path
    return None
