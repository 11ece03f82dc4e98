"""
Request and snapshot data structures.

Inbound options are validated with Pydantic (they arrive as JSON from the
web layer or as keyword mappings from Python callers). Everything produced
by an extraction is a plain dataclass with a ``to_dict`` rendering the
camelCase wire shape consumed by the comparison/report layer.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidInputError
from .protocols import ColorKind

# ============================================================================
# Inbound options
# ============================================================================


class ViewportOptions(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class AuthenticationOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
    target_url: Optional[str] = Field(default=None, alias="targetUrl")


class ScreenshotOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Optional[Literal["png", "jpeg"]] = None
    quality: Optional[int] = Field(default=None, ge=0, le=100)
    full_page: Optional[bool] = Field(default=None, alias="fullPage")


class ExtractionOptions(BaseModel):
    """Options recognized by ``extract``. Timeouts are in milliseconds."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    viewport: Optional[ViewportOptions] = None
    authentication: Optional[AuthenticationOptions] = None
    include_screenshot: bool = Field(default=True, alias="includeScreenshot")
    timeout: Optional[float] = Field(default=None, gt=0)
    stability_timeout: Optional[float] = Field(default=None, gt=0, alias="stabilityTimeout")
    screenshot: Optional[ScreenshotOptions] = None


OptionsLike = Union[ExtractionOptions, Mapping[str, Any], None]

# ============================================================================
# Validated request
# ============================================================================


@dataclass(frozen=True)
class Viewport:
    width: int = 1920
    height: int = 1080


@dataclass(frozen=True)
class AuthenticationDescriptor:
    username: str
    password: str = field(repr=False)
    target_url: Optional[str] = None


@dataclass(frozen=True)
class ScreenshotSettings:
    image_type: str = "png"
    quality: int = 80
    full_page: bool = True


@dataclass(frozen=True)
class ExtractionRequest:
    """Immutable, validated input of one extraction."""

    url: str
    viewport: Viewport = field(default_factory=Viewport)
    authentication: Optional[AuthenticationDescriptor] = None
    include_screenshot: bool = True
    screenshot: Optional[ScreenshotSettings] = None
    timeout: Optional[float] = None
    stability_timeout: Optional[float] = None

    @classmethod
    def from_options(
        cls,
        url: str,
        options: OptionsLike = None,
        *,
        default_viewport: Optional[Viewport] = None,
        default_screenshot: Optional[ScreenshotSettings] = None,
        allowed_hosts: Optional[List[str]] = None,
    ) -> ExtractionRequest:
        """Validate ``url`` and ``options``; raises ``InvalidInputError``."""
        url = validate_url(url, allowed_hosts or [])
        parsed = _parse_options(options)

        viewport = default_viewport or Viewport()
        if parsed.viewport is not None:
            viewport = Viewport(width=parsed.viewport.width, height=parsed.viewport.height)

        authentication = None
        if parsed.authentication is not None:
            authentication = validate_authentication(parsed.authentication)

        shot = default_screenshot or ScreenshotSettings()
        if parsed.screenshot is not None:
            shot = ScreenshotSettings(
                image_type=parsed.screenshot.type or shot.image_type,
                quality=parsed.screenshot.quality if parsed.screenshot.quality is not None else shot.quality,
                full_page=parsed.screenshot.full_page if parsed.screenshot.full_page is not None else shot.full_page,
            )

        return cls(
            url=url,
            viewport=viewport,
            authentication=authentication,
            include_screenshot=parsed.include_screenshot,
            screenshot=shot,
            timeout=parsed.timeout / 1000.0 if parsed.timeout else None,
            stability_timeout=parsed.stability_timeout / 1000.0 if parsed.stability_timeout else None,
        )

    @property
    def host(self) -> str:
        return (urlparse(self.url).hostname or "").lower()


def _parse_options(options: OptionsLike) -> ExtractionOptions:
    if options is None:
        return ExtractionOptions()
    if isinstance(options, ExtractionOptions):
        return options
    try:
        return ExtractionOptions.model_validate(dict(options))
    except ValidationError as e:
        raise InvalidInputError(f"Invalid extraction options: {e.errors(include_url=False)}") from e
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid extraction options: {e}") from e


_PRIVATE_HOST = re.compile(r"^(10\.|172\.(1[6-9]|2[0-9]|3[01])\.|192\.168\.)")


def validate_url(url: str, allowed_hosts: List[str]) -> str:
    """Only http(s) URLs are accepted; local targets must be allow-listed when a list is configured."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidInputError("URL is required")
    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidInputError("Invalid URL format") from e

    if parsed.scheme not in ("http", "https"):
        raise InvalidInputError("Only HTTP and HTTPS URLs are allowed")
    hostname = parsed.hostname
    if not hostname:
        raise InvalidInputError("Invalid URL format")

    if allowed_hosts and _is_local_host(hostname):
        if not any(allowed in hostname for allowed in allowed_hosts):
            raise InvalidInputError("URL not in allowed hosts list")
    return url


def _is_local_host(hostname: str) -> bool:
    if hostname in ("localhost", "127.0.0.1", "::1"):
        return True
    if _PRIVATE_HOST.match(hostname):
        return True
    try:
        return ipaddress.ip_address(hostname).is_private
    except ValueError:
        return False


def validate_authentication(auth: AuthenticationOptions) -> AuthenticationDescriptor:
    if not auth.username.strip() or not auth.password:
        raise InvalidInputError("Authentication requires a non-empty username and password")
    target_url = auth.target_url
    if target_url:
        target_url = validate_url(target_url, [])
    return AuthenticationDescriptor(username=auth.username, password=auth.password, target_url=target_url)


# ============================================================================
# Snapshot records
# ============================================================================


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class ElementStyles:
    """Computed style values kept for each element."""

    color: str = ""
    background_color: str = ""
    font_family: str = ""
    font_size: str = ""
    font_weight: str = ""
    line_height: str = ""
    letter_spacing: str = ""
    padding: str = ""
    padding_top: str = ""
    padding_right: str = ""
    padding_bottom: str = ""
    padding_left: str = ""
    margin: str = ""
    margin_top: str = ""
    margin_right: str = ""
    margin_bottom: str = ""
    margin_left: str = ""
    border: str = ""
    border_width: str = ""
    border_style: str = ""
    border_color: str = ""
    border_top_color: str = ""
    border_bottom_color: str = ""
    border_radius: str = ""
    border_top_left_radius: str = ""
    border_top_right_radius: str = ""
    border_bottom_left_radius: str = ""
    border_bottom_right_radius: str = ""
    display: str = ""
    visibility: str = ""
    opacity: str = "1"

    @classmethod
    def from_computed(cls, computed: Mapping[str, Any]) -> ElementStyles:
        """Build from a camelCase mapping of computed style values."""
        values = {}
        for f in fields(cls):
            raw = computed.get(_camel(f.name))
            if raw is not None:
                values[f.name] = str(raw)
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self) if f.name not in _LAYOUT_ONLY}


_LAYOUT_ONLY = frozenset({"display", "visibility", "opacity"})


@dataclass(frozen=True)
class ElementAttributes:
    href: str = ""
    alt: str = ""
    src: str = ""
    role: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"href": self.href, "alt": self.alt, "src": self.src, "role": self.role}


@dataclass(frozen=True)
class StyleElementRecord:
    """One visually meaningful node."""

    id: str
    name: str
    type: str
    text: str
    class_name: str
    rect: Rect
    styles: ElementStyles
    attributes: ElementAttributes
    selector: str
    frame_url: str = ""
    source: str = "stylesnap"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "text": self.text,
            "className": self.class_name,
            "rect": self.rect.to_dict(),
            "styles": self.styles.to_dict(),
            "attributes": self.attributes.to_dict(),
            "selector": self.selector,
            "frameUrl": self.frame_url,
            "source": self.source,
        }


@dataclass(frozen=True)
class ColorOccurrence:
    """A normalized color tied back to the element and property it came from."""

    hex: str
    raw: str
    kind: ColorKind
    element_id: str
    selector: str
    extraction_id: str = ""


@dataclass
class Typography:
    font_families: List[str] = field(default_factory=list)
    font_sizes: List[str] = field(default_factory=list)
    font_weights: List[str] = field(default_factory=list)
    line_heights: List[str] = field(default_factory=list)
    letter_spacings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {_camel(f.name): list(getattr(self, f.name)) for f in fields(self)}


@dataclass
class SnapshotMetadata:
    title: str
    url: str
    element_count: int
    extractor_version: str
    frame_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "elementCount": self.element_count,
            "extractorVersion": self.extractor_version,
            "frameCount": self.frame_count,
        }


@dataclass(frozen=True)
class Screenshot:
    data: str
    image_type: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "type": self.image_type, "timestamp": self.timestamp.isoformat()}


@dataclass
class StyleSnapshot:
    """The complete, bounded, deduplicated result for one page."""

    url: str
    elements: List[StyleElementRecord]
    color_palette: List[str]
    typography: Typography
    spacing: List[str]
    border_radius: List[str]
    metadata: SnapshotMetadata
    screenshot: Optional[Screenshot] = None
    duration_ms: int = 0
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.metadata.element_count != len(self.elements):
            raise ValueError("metadata.element_count must equal the number of elements")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "extractedAt": self.extracted_at.isoformat(),
            "duration": self.duration_ms,
            "screenshot": self.screenshot.to_dict() if self.screenshot else None,
            "elements": [element.to_dict() for element in self.elements],
            "colorPalette": list(self.color_palette),
            "typography": self.typography.to_dict(),
            "spacing": list(self.spacing),
            "borderRadius": list(self.border_radius),
            "metadata": self.metadata.to_dict(),
        }
