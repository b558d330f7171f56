"""TrainingPeaks session handling: cached cookies exchanged for a bearer token."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from tp_export.core.config import resolve_cookie_store
from tp_export.core.constants import TP_API_BASE

logger = logging.getLogger(__name__)

LOGIN_URL = "https://home.trainingpeaks.com/login"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)


class AuthError(RuntimeError):
    """Raised when authentication fails."""


class TrainingPeaksAuth:
    """Authentication manager for cookie/token based auth.

    A token in ``TP_ACCESS_TOKEN`` short-circuits the cookie flow, which is
    handy for CI and for tokens copied out of a browser session.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        username: Optional[str] = None,
        password: Optional[str] = None,
        cookie_file: Optional[Path] = None,
        base_url: str = TP_API_BASE,
    ) -> None:
        self.config = config
        self.username = username or os.getenv("TP_USERNAME") or config.get("auth", {}).get("username")
        self.password = password or os.getenv("TP_PASSWORD")
        self.cookie_file = cookie_file or resolve_cookie_store(config)
        self.base_url = base_url.rstrip("/")

    @staticmethod
    def _cookies_to_jar(cookies: List[Dict[str, Any]]) -> Dict[str, str]:
        jar: Dict[str, str] = {}
        for cookie in cookies:
            if not isinstance(cookie, dict):
                continue
            name = cookie.get("name") or cookie.get("Name")
            value = cookie.get("value") or cookie.get("Value")
            if name and value is not None:
                jar[str(name)] = str(value)
        return jar

    def _try_token(self, jar: Dict[str, str]) -> Optional[str]:
        try:
            response = requests.get(f"{self.base_url}/users/v3/token", cookies=jar, timeout=10)
            if response.status_code != 200:
                logger.debug("Token exchange returned HTTP %s", response.status_code)
                return None
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.debug("Token exchange failed: %s", exc)
            return None
        if isinstance(data, dict) and data.get("success") and (data.get("token") or {}).get("access_token"):
            return str(data["token"]["access_token"])
        return None

    def _load_local_cookies(self) -> Optional[List[Dict[str, Any]]]:
        if not self.cookie_file.exists():
            return None
        try:
            data = json.loads(self.cookie_file.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cookie cache %s: %s", self.cookie_file, exc)
            return None
        return data if isinstance(data, list) else None

    def _save_local_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.cookie_file.parent.mkdir(parents=True, exist_ok=True)
        self.cookie_file.write_text(json.dumps(cookies, indent=2) + "\n")
        os.chmod(self.cookie_file, 0o600)

    def _resolve_credentials(self) -> Tuple[str, str]:
        if not self.username or not self.password:
            raise AuthError("Missing credentials. Provide --username/--password or TP_USERNAME/TP_PASSWORD.")
        return str(self.username), str(self.password)

    def login_playwright(self) -> List[Dict[str, Any]]:
        """Login using Playwright and return browser cookies."""
        try:
            from playwright.sync_api import sync_playwright
        except ImportError as exc:
            raise AuthError(
                "Playwright is not installed. Install it with `pip install tp-export[browser]`."
            ) from exc

        username, password = self._resolve_credentials()
        logger.info("Logging in to TrainingPeaks as %s", username)

        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(
                headless=True,
                args=["--disable-blink-features=AutomationControlled"],
            )
            context = browser.new_context(user_agent=USER_AGENT)
            page = context.new_page()
            page.goto(LOGIN_URL, wait_until="domcontentloaded", timeout=15000)
            time.sleep(2)

            page.fill("#Username", username)
            page.fill("#Password", password)
            with page.expect_navigation(timeout=20000):
                page.press("#Password", "Enter")
            time.sleep(3)

            cookies = context.cookies()
            browser.close()

        if not cookies:
            raise AuthError("Playwright login did not yield cookies")

        self._save_local_cookies(cookies)
        return cookies

    def login(self, force: bool = False) -> Tuple[str, Dict[str, str]]:
        """Authenticate and return bearer token + cookie jar."""
        env_token = os.getenv("TP_ACCESS_TOKEN")
        if env_token and not force:
            return env_token, {}

        if not force:
            cached = self._load_local_cookies()
            if cached:
                jar = self._cookies_to_jar(cached)
                token = self._try_token(jar)
                if token:
                    logger.debug("Reused cached TrainingPeaks session from %s", self.cookie_file)
                    return token, jar
                logger.info("Cached TrainingPeaks session expired; logging in again")

        fresh_cookies = self.login_playwright()
        jar = self._cookies_to_jar(fresh_cookies)
        token = self._try_token(jar)
        if not token:
            raise AuthError("Login succeeded but failed to exchange cookies for a bearer token")
        return token, jar

    def logout(self) -> bool:
        """Delete local cached cookie file."""
        if self.cookie_file.exists():
            self.cookie_file.unlink()
            return True
        return False
