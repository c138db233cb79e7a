"""Minimal async HTTP client shared by the hosting platform backends."""

import asyncio
import logging
from enum import Enum
from typing import Any

import httpx

from git_tag_action.log import log_request, log_response

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 3.0


class ErrorKind(str, Enum):
    """Classification of a non-success HTTP status."""

    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    CONFLICT = "conflict"
    UNPROCESSABLE = "unprocessable"
    OTHER = "other"

    @classmethod
    def from_status(cls, status_code: int) -> "ErrorKind":
        return {
            404: cls.NOT_FOUND,
            405: cls.METHOD_NOT_ALLOWED,
            409: cls.CONFLICT,
            422: cls.UNPROCESSABLE,
        }.get(status_code, cls.OTHER)


class HttpError(Exception):
    """Exception raised for non-2xx API responses."""

    def __init__(self, method: str, url: str, status_code: int, reason: str, body: str) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.kind = ErrorKind.from_status(status_code)
        super().__init__(f"HTTP {status_code} {reason}: {method} {url}: {body}")

    @property
    def not_found(self) -> bool:
        return self.kind is ErrorKind.NOT_FOUND

    @property
    def already_exists(self) -> bool:
        """True for a conflict the server attributes to an existing object."""
        return self.kind is ErrorKind.CONFLICT and "exist" in self.body.lower()


class HttpClient:
    """Issues authenticated JSON requests against one API base URL.

    Args:
        base_url: API root; request paths are appended to it.
        token: Bearer token sent with every request, if set.
        ignore_cert_errors: Skip TLS certificate verification.
        verbose: Log requests and responses (credentials redacted).
        transport: Optional httpx transport, used to stub the network.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        ignore_cert_errors: bool = False,
        verbose: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._verify = not ignore_cert_errors
        self._verbose = verbose
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "git-tag-action",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def request(self, method: str, path: str, *, json: Any = None) -> Any:
        """Send a request and return the decoded JSON body.

        Returns:
            Parsed JSON, or None for an empty body.

        Raises:
            HttpError: If the response status is not 2xx.
            httpx.HTTPError: On transport failures.
        """
        url = f"{self.base_url}{path}"
        headers = self._headers()
        if self._verbose:
            log_request(logger, method, url, headers)
            if json is not None:
                logger.debug(f"Request body: {json}")

        # API calls run to completion; only discovery probes are bounded
        async with httpx.AsyncClient(verify=self._verify, transport=self._transport, timeout=None) as client:
            response = await client.request(method, url, headers=headers, json=json)

        text = response.text
        body: Any = text
        if text:
            try:
                body = response.json()
            except ValueError:
                body = text

        if self._verbose:
            log_response(logger, response.status_code, response.reason_phrase, body)

        if not response.is_success:
            raise HttpError(method, url, response.status_code, response.reason_phrase, text)
        return body if text else None

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, data: Any) -> Any:
        return await self.request("POST", path, json=data)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)


async def probe(
    url: str,
    *,
    timeout: float = PROBE_TIMEOUT_SECONDS,
    verify: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Check whether an unauthenticated GET to url succeeds.

    The whole request is bounded by ``timeout``; cancellation, transport
    errors and non-2xx statuses all count as a miss.
    """
    try:
        async with httpx.AsyncClient(
            verify=verify, transport=transport, timeout=timeout, follow_redirects=False
        ) as client:
            response = await asyncio.wait_for(client.get(url), timeout=timeout)
    except (httpx.HTTPError, asyncio.TimeoutError) as e:
        logger.debug(f"Probe {url} failed: {e!r}")
        return False
    logger.debug(f"Probe {url} -> {response.status_code}")
    return response.is_success
