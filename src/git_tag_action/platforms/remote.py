"""Shared plumbing for backends that talk to a hosting platform's REST API."""

import logging
from collections.abc import Iterable
from urllib.parse import quote

from git_tag_action.core.http import ErrorKind, HttpClient, HttpError
from git_tag_action.platforms.base import TagBackend, TagRequest

logger = logging.getLogger(__name__)


def quote_segment(value: str) -> str:
    """Percent-encode a single URL path segment."""
    return quote(value, safe="")


class RemoteBackend(TagBackend):
    """Base for API backends.

    Subclasses set ``default_base_url`` and build their endpoint paths on
    top of ``self.client``.
    """

    default_base_url: str = ""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.client = HttpClient(
            self.config.base_url or self.default_base_url,
            token=self.config.token,
            ignore_cert_errors=self.config.ignore_cert_errors,
            verbose=self.config.verbose,
            transport=self._transport,
        )
        if not self.config.token:
            logger.warning(f"No token configured for {self.platform.value}; API writes will likely fail")

    @property
    def owner(self) -> str:
        return quote_segment(self.reference.owner)

    @property
    def repo(self) -> str:
        return quote_segment(self.reference.repo)

    async def _exists(self, path: str) -> bool:
        """GET a path; a 404 means the object does not exist."""
        try:
            await self.client.get(path)
        except HttpError as e:
            if e.not_found:
                return False
            raise
        return True

    async def _delete(self, path: str, tag_name: str, gone: Iterable[ErrorKind]) -> None:
        """DELETE a path, treating the given error kinds as already deleted."""
        try:
            await self.client.delete(path)
        except HttpError as e:
            if e.kind in set(gone):
                logger.debug(f"Tag {tag_name} does not exist, skipping delete")
                return
            raise

    def _warn_if_signing(self, request: TagRequest) -> None:
        if request.sign:
            logger.warning(
                f"GPG signing is only supported with the local git backend; "
                f"{self.platform.value} tag {request.tag_name} will be unsigned"
            )
