"""Logging setup and helpers for CI runner output."""

import json
import logging
import os
import re
import sys
from collections.abc import Mapping, Sequence
from typing import Any

PACKAGE_LOGGER = "git_tag_action"

_USERINFO_RE = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s]+@")


class ActionsFormatter(logging.Formatter):
    """Render records the way CI runners understand them.

    Warnings and errors become workflow annotations so they surface in the
    run summary; debug records get a visible prefix because verbose mode
    prints them as plain lines.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.ERROR:
            return f"::error::{message}"
        if record.levelno >= logging.WARNING:
            return f"::warning::{message}"
        if record.levelno <= logging.DEBUG:
            return f"[DEBUG] {message}"
        return message


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Configure the package logger.

    Args:
        verbose: Emit DEBUG records (HTTP traffic, git commands).

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ActionsFormatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    return logger


def mask_secret(value: str | None, env: Mapping[str, str] | None = None) -> None:
    """Ask the CI runner to redact a secret from all subsequent output."""
    if not value:
        return
    env = os.environ if env is None else env
    if env.get("GITHUB_ACTIONS") == "true" or env.get("GITEA_ACTIONS") == "true":
        print(f"::add-mask::{value}", flush=True)


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of headers with credentials replaced."""
    sanitized = dict(headers)
    for key in sanitized:
        if key.lower() == "authorization":
            sanitized[key] = "***"
    return sanitized


def redact_url_credentials(text: str) -> str:
    """Replace URL userinfo (tokens embedded in remote URLs) with ***."""
    return _USERINFO_RE.sub(lambda m: f"{m.group('scheme')}***@", text)


def log_request(
    logger: logging.Logger,
    method: str,
    url: str,
    headers: Mapping[str, str] | None = None,
) -> None:
    logger.debug(f"HTTP {method} {url}")
    if headers:
        logger.debug(f"Headers: {json.dumps(sanitize_headers(headers), indent=2)}")


def log_response(logger: logging.Logger, status: int, reason: str, body: Any = None) -> None:
    logger.debug(f"HTTP Response: {status} {reason}")
    if body:
        rendered = body if isinstance(body, str) else json.dumps(body, indent=2)
        logger.debug(f"Response body: {rendered}")


def log_git_command(logger: logging.Logger, args: Sequence[str]) -> None:
    logger.debug(f"Git command: git {redact_url_credentials(' '.join(args))}")
