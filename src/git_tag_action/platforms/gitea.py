"""Gitea tag backend."""

import logging
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

from git_tag_action.core.http import ErrorKind, HttpError
from git_tag_action.platforms.base import (
    PlatformKind,
    TagOutcome,
    TagRequest,
    url_origin,
)
from git_tag_action.platforms.remote import RemoteBackend, quote_segment

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://gitea.com/api/v1"

# Only an API URL (/api/vN/repos/...) keeps its prefix; /api/v1 alone is
# the repository v1 of an owner called "api".
_API_PATH_RE = re.compile(r"^(?P<prefix>.*?/api/v\d+)/repos/")


def _find_ref(payload: Any, ref: str) -> dict[str, Any] | None:
    """Pick the exact ref out of a refs response.

    Gitea matches ref paths by prefix, so ``refs/tags/v1`` may also return
    ``refs/tags/v1.0``; the response is a list in that case and a single
    object otherwise.
    """
    items = payload if isinstance(payload, list) else [payload]
    for item in items:
        if isinstance(item, dict) and item.get("ref") == ref:
            return item
    return None


class GiteaBackend(RemoteBackend, platform=PlatformKind.GITEA):
    """Tag backend for Gitea and Forgejo instances."""

    default_base_url = DEFAULT_BASE_URL

    @classmethod
    def detect_by_hostname(cls, hostname: str) -> bool:
        return "gitea" in hostname.lower()

    @classmethod
    def probe_urls(cls, origin: str) -> list[str]:
        return [f"{origin}/api/v1/version"]

    @classmethod
    def determine_base_url(
        cls,
        explicit: str | None,
        repo_url: str | None,
        env: Mapping[str, str],
    ) -> str:
        """Pick the Gitea API base URL.

        An explicit URL without an ``/api`` path gets ``/api/v1`` appended,
        so the server root can be passed directly.
        """
        if explicit:
            trimmed = explicit.rstrip("/")
            if "/api" in urlsplit(trimmed).path:
                return trimmed
            return f"{trimmed}/api/v1"

        if repo_url:
            origin = url_origin(repo_url)
            if origin:
                if "://" in repo_url:
                    match = _API_PATH_RE.match(urlsplit(repo_url).path)
                    if match:
                        return f"{origin}{match.group('prefix')}"
                return f"{origin}/api/v1"

        api_url = env.get("GITEA_API_URL")
        if api_url:
            return api_url.rstrip("/")
        server_url = env.get("GITEA_SERVER_URL")
        if server_url:
            return f"{server_url.rstrip('/')}/api/v1"
        return DEFAULT_BASE_URL

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def tag_exists(self, tag_name: str) -> bool:
        try:
            payload = await self.client.get(f"{self._repo_path}/git/refs/tags/{quote_segment(tag_name)}")
        except HttpError as e:
            if e.not_found:
                return False
            raise
        return _find_ref(payload, f"refs/tags/{tag_name}") is not None

    async def tag_sha(self, tag_name: str) -> str | None:
        try:
            payload = await self.client.get(f"{self._repo_path}/git/refs/tags/{quote_segment(tag_name)}")
        except HttpError as e:
            if e.not_found:
                return None
            raise
        ref = _find_ref(payload, f"refs/tags/{tag_name}")
        if ref is None:
            return None
        target = ref.get("object") or {}
        if target.get("type") == "tag":
            tag_object = await self.client.get(f"{self._repo_path}/git/tags/{target['sha']}")
            target = tag_object.get("object") or {}
        return target.get("sha")

    async def create_tag(self, request: TagRequest) -> TagOutcome:
        tag_name, sha = request.tag_name, request.sha
        logger.info(f"Creating Gitea tag: {tag_name} at {sha}")
        if request.verbose and request.message is not None:
            preview = request.message[:50].replace("\n", "\\n")
            logger.debug(f"Tag message: length={len(request.message)}, value={preview!r}")

        exists = await self.tag_exists(tag_name)
        if exists and not request.force:
            logger.warning(f"Tag {tag_name} already exists")
            return TagOutcome.unchanged(tag_name, sha)

        if exists:
            await self.delete_tag(tag_name)

        self._warn_if_signing(request)
        payload: dict[str, Any] = {"tag_name": tag_name, "target": sha}
        if request.annotated:
            payload["message"] = request.message or f"Tag {tag_name}"

        try:
            await self.client.post(f"{self._repo_path}/tags", payload)
        except HttpError as e:
            if e.already_exists:
                logger.warning(f"Tag {tag_name} already exists (reported by create)")
                return TagOutcome.unchanged(tag_name, sha)
            if e.kind not in (ErrorKind.NOT_FOUND, ErrorKind.METHOD_NOT_ALLOWED):
                raise
            logger.warning(f"Primary Gitea tag create failed; falling back to refs API for {tag_name}")
            await self.client.post(
                f"{self._repo_path}/git/refs",
                {"ref": f"refs/tags/{tag_name}", "sha": sha},
            )

        logger.info(f"Tag created successfully: {tag_name}")
        return TagOutcome(
            tag_name=tag_name,
            sha=sha,
            existed=exists,
            created=not exists,
            updated=exists,
        )

    async def update_tag(self, request: TagRequest) -> TagOutcome:
        await self.delete_tag(request.tag_name)
        outcome = await self.create_tag(request)
        if not outcome.created and not outcome.updated:
            return outcome
        return TagOutcome(
            tag_name=outcome.tag_name,
            sha=outcome.sha,
            existed=True,
            created=False,
            updated=True,
        )

    async def delete_tag(self, tag_name: str) -> None:
        logger.info(f"Deleting Gitea tag: {tag_name}")
        await self._delete(
            f"{self._repo_path}/git/refs/tags/{quote_segment(tag_name)}",
            tag_name,
            gone=(ErrorKind.NOT_FOUND, ErrorKind.METHOD_NOT_ALLOWED),
        )

    async def head_sha(self) -> str:
        repository = await self.client.get(self._repo_path)
        default_branch = (repository or {}).get("default_branch") or "main"

        payload = await self.client.get(f"{self._repo_path}/git/refs/heads/{quote_segment(default_branch)}")
        ref = _find_ref(payload, f"refs/heads/{default_branch}")
        if ref is None:
            raise ValueError(f"No ref found for default branch {default_branch}")
        return ref["object"]["sha"]
