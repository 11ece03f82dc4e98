"""
Best-effort form login.

Login fields are identified without relying on exact markup: each input is
described once in the page, then matched against ordered lists of named
predicates, with a positional fallback as the last resort. Ambiguous pages
are logged and skipped; a form that cannot be submitted, or that is still
shown afterwards, raises ``AuthenticationError``.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import AuthenticationConfig
from ..errors import AuthenticationError, InvalidInputError
from ..models import AuthenticationDescriptor
from ..observability import increment
from .scripts import ENUMERATE_INPUTS_JS, PASSWORD_FIELD_PRESENT_JS, URL_LEFT_LOGIN_JS

logger = structlog.get_logger(__name__)

NON_TEXT_INPUT_TYPES = frozenset({"hidden", "submit", "button", "checkbox", "radio", "image", "reset", "file"})


@dataclass(frozen=True)
class InputField:
    """What the page told us about one ``<input>``."""

    index: int
    type: str = "text"
    name: str = ""
    id: str = ""
    placeholder: str = ""
    autocomplete: str = ""
    aria_label: str = ""
    visible: bool = True
    enabled: bool = True

    @classmethod
    def from_page(cls, raw: Mapping[str, Any]) -> InputField:
        return cls(
            index=int(raw["index"]),
            type=str(raw.get("type") or "text").lower(),
            name=str(raw.get("name") or ""),
            id=str(raw.get("id") or ""),
            placeholder=str(raw.get("placeholder") or ""),
            autocomplete=str(raw.get("autocomplete") or ""),
            aria_label=str(raw.get("ariaLabel") or ""),
            visible=bool(raw.get("visible", True)),
            enabled=bool(raw.get("enabled", True)),
        )

    @property
    def selector(self) -> str:
        return f'[data-stylesnap-field="{self.index}"]'

    @property
    def usable(self) -> bool:
        return self.visible and self.enabled and self.type not in NON_TEXT_INPUT_TYPES

    def mentions(self, keywords: Sequence[str]) -> bool:
        haystack = " ".join((self.name, self.id, self.placeholder, self.autocomplete, self.aria_label)).lower()
        return any(keyword in haystack for keyword in keywords)


@dataclass(frozen=True)
class FieldPredicate:
    name: str
    matches: Callable[[InputField], bool]


@dataclass(frozen=True)
class LoginFields:
    username: InputField
    password: InputField
    username_rule: str
    password_rule: str


def password_predicates(config: AuthenticationConfig) -> List[FieldPredicate]:
    return [
        FieldPredicate("password-type", lambda f: f.type == "password"),
        FieldPredicate("password-keyword", lambda f: f.mentions(config.password_keywords)),
    ]


def username_predicates(config: AuthenticationConfig) -> List[FieldPredicate]:
    return [
        FieldPredicate("email-type", lambda f: f.type == "email"),
        FieldPredicate("username-keyword", lambda f: f.mentions(config.username_keywords)),
        FieldPredicate("text-type", lambda f: f.type in config.username_types),
    ]


def first_match(
    predicates: Sequence[FieldPredicate], fields: Sequence[InputField], exclude: Optional[InputField] = None
) -> Optional[Tuple[InputField, str]]:
    for predicate in predicates:
        for candidate in fields:
            if candidate is not exclude and predicate.matches(candidate):
                return candidate, predicate.name
    return None


def identify_login_fields(fields: Sequence[InputField], config: AuthenticationConfig) -> Optional[LoginFields]:
    """
    Pick the username and password inputs, or return None when the page does
    not look like a login form.
    """
    usable = [f for f in fields if f.usable]
    if len(usable) < 2:
        return None

    found = first_match(password_predicates(config), usable)
    if found is None:
        # Positional fallback: first input is the username, second the password.
        return LoginFields(usable[0], usable[1], "positional", "positional")
    password, password_rule = found

    match = first_match(username_predicates(config), usable, exclude=password)
    if match is None:
        username = next(f for f in usable if f is not password)
        return LoginFields(username, password, "first-other", password_rule)
    return LoginFields(match[0], password, match[1], password_rule)


SubmitStrategy = Tuple[str, Callable[[Any, LoginFields], Awaitable[bool]]]


class AuthenticationHeuristics:
    def __init__(self, config: AuthenticationConfig) -> None:
        self.config = config

    def _ms(self, seconds: float) -> float:
        return seconds * 1000

    async def authenticate(self, page: Any, credentials: AuthenticationDescriptor) -> bool:
        """
        Sign in on whatever form ``page`` shows.

        Returns False when the page is not a login form; raises
        ``AuthenticationError`` when the form could not be submitted or is
        still shown after submitting.
        """
        if not credentials.username or not credentials.password:
            raise InvalidInputError("Authentication requires a non-empty username and password")

        try:
            await page.wait_for_selector("input", timeout=self._ms(self.config.selector_timeout))
        except PlaywrightTimeoutError:
            logger.info("No input fields appeared, skipping authentication", url=page.url)
            return False

        raw_fields = await page.evaluate(ENUMERATE_INPUTS_JS)
        fields = [InputField.from_page(raw) for raw in raw_fields]
        login = identify_login_fields(fields, self.config)
        if login is None:
            logger.info(
                "Page does not look like a login form, skipping authentication",
                url=page.url,
                inputs=len(fields),
            )
            return False

        logger.info(
            "Login fields identified",
            username_field=login.username.index,
            username_rule=login.username_rule,
            password_field=login.password.index,
            password_rule=login.password_rule,
        )

        await self._fill(page, login.username, credentials.username)
        await asyncio.sleep(self.config.field_pause)
        await self._fill(page, login.password, credentials.password)

        strategy = await self.submit(page, login)
        increment("login_submissions", labels={"strategy": strategy})

        await self.wait_for_completion(page)
        return True

    async def _fill(self, page: Any, field: InputField, value: str) -> None:
        locator = page.locator(field.selector)
        try:
            await locator.click(timeout=self._ms(self.config.action_timeout))
            await page.keyboard.press("Control+A")
            await page.keyboard.press("Delete")
            await locator.press_sequentially(value, delay=self.config.keystroke_delay_ms)
        except PlaywrightError as e:
            raise AuthenticationError(f"could not fill login field {field.index}", cause=e) from e

    def submit_strategies(self) -> List[SubmitStrategy]:
        return [
            ("button-text", self._click_login_button),
            ("submit-selector", self._click_submit),
            ("form-button", self._click_form_button),
            ("password-enter", self._enter_on_password),
            ("last-input-enter", self._enter_on_last_input),
        ]

    async def submit(self, page: Any, login: LoginFields) -> str:
        """Run the submission cascade; returns the name of the strategy that worked."""
        for name, strategy in self.submit_strategies():
            try:
                if await strategy(page, login):
                    logger.info("Login form submitted", strategy=name)
                    return name
            except Exception as e:
                logger.debug("Submit strategy failed", strategy=name, error=str(e))
        raise AuthenticationError("could not submit login form")

    async def _click_first(self, locator: Any) -> bool:
        if await locator.count() == 0:
            return False
        await locator.first.click(timeout=self._ms(self.config.action_timeout))
        return True

    async def _click_login_button(self, page: Any, login: LoginFields) -> bool:
        pattern = re.compile("|".join(re.escape(text) for text in self.config.login_button_texts), re.IGNORECASE)
        return await self._click_first(page.locator("button").filter(has_text=pattern))

    async def _click_submit(self, page: Any, login: LoginFields) -> bool:
        return await self._click_first(page.locator(self.config.submit_selector))

    async def _click_form_button(self, page: Any, login: LoginFields) -> bool:
        return await self._click_first(page.locator(self.config.form_button_selector))

    async def _enter_on_password(self, page: Any, login: LoginFields) -> bool:
        await page.locator(login.password.selector).focus(timeout=self._ms(self.config.action_timeout))
        await page.keyboard.press("Enter")
        return True

    async def _enter_on_last_input(self, page: Any, login: LoginFields) -> bool:
        await page.locator("input").last.focus(timeout=self._ms(self.config.action_timeout))
        await page.keyboard.press("Enter")
        return True

    async def wait_for_completion(self, page: Any) -> str:
        """
        Race the completion signals; the first one to resolve wins. If all
        of them time out, decide from what the page shows now.
        """
        timeout = self._ms(self.config.completion_timeout)
        signals: Dict[asyncio.Future[Any], str] = {
            asyncio.ensure_future(
                page.wait_for_function(URL_LEFT_LOGIN_JS, arg=self.config.login_path_markers, timeout=timeout)
            ): "left-login-url",
            asyncio.ensure_future(page.wait_for_selector(self.config.dashboard_selector, timeout=timeout)): "dashboard",
            asyncio.ensure_future(page.wait_for_event("framenavigated", timeout=timeout)): "navigated",
        }
        pending = set(signals)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if task.exception() is None:
                        logger.info("Authentication completed", signal=signals[task], url=page.url)
                        return signals[task]
        finally:
            for task in pending:
                task.cancel()
            await asyncio.gather(*signals, return_exceptions=True)

        return await self._inspect_after_timeout(page)

    async def _inspect_after_timeout(self, page: Any) -> str:
        password_shown = await page.evaluate(PASSWORD_FIELD_PRESENT_JS)
        dashboard_shown = await page.locator(self.config.dashboard_selector).count() > 0
        if dashboard_shown or not password_shown:
            logger.info("Authentication result inferred from page state", url=page.url, dashboard=dashboard_shown)
            return "page-state"
        raise AuthenticationError("still on login form after submitting")
