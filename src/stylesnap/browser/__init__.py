"""Page-level drivers: pool, navigation, login, stability and screenshots."""

from .auth import AuthenticationHeuristics, FieldPredicate, InputField, LoginFields, identify_login_fields
from .navigation import NavigationAttempt, NavigationDriver, NavigationResult
from .pool import PlaywrightPagePool
from .screenshot import ScreenshotCapturer
from .stability import StabilityWaiter

__all__ = [
    "AuthenticationHeuristics",
    "FieldPredicate",
    "InputField",
    "LoginFields",
    "NavigationAttempt",
    "NavigationDriver",
    "NavigationResult",
    "PlaywrightPagePool",
    "ScreenshotCapturer",
    "StabilityWaiter",
    "identify_login_fields",
]
