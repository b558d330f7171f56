"""Auth-aware error classification for logging."""

from __future__ import annotations

import logging
from typing import Any

AUTH_STATUS_CODES = (401, 403)
AUTH_MESSAGE_MARKERS = ("http 401", "not authenticated", "unauthorized")


def is_expected_auth_error(error: Any) -> bool:
    """Return True when ``error`` signals a missing or expired session.

    Accepts exceptions or plain mappings carrying ``status``/``status_code``,
    ``code`` and ``message`` fields.
    """
    if error is None:
        return False

    if isinstance(error, dict):
        status = error.get("status")
        status_code = error.get("status_code", error.get("statusCode"))
        code = error.get("code")
        message = error.get("message")
    else:
        status = getattr(error, "status", None)
        status_code = getattr(error, "status_code", None)
        code = getattr(error, "code", None)
        message = str(error) if isinstance(error, BaseException) else getattr(error, "message", None)

    if status in AUTH_STATUS_CODES or status_code in AUTH_STATUS_CODES:
        return True

    if isinstance(code, str):
        normalized_code = code.upper()
        if "AUTH" in normalized_code or normalized_code == "NO_TOKEN" or "UNAUTHORIZED" in normalized_code:
            return True

    if isinstance(message, str):
        normalized_message = message.strip().lower()
        if any(marker in normalized_message for marker in AUTH_MESSAGE_MARKERS):
            return True

    return False


def log_error_with_auth_downgrade(logger: logging.Logger, prefix: str, error: Any) -> None:
    """Log expected auth failures as warnings and everything else as errors."""
    if is_expected_auth_error(error):
        logger.warning("%s %s", prefix, error)
        return
    logger.error("%s %s", prefix, error)
