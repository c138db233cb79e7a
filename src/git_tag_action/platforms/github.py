"""GitHub tag backend using the git data REST API."""

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
    url_hostname,
    url_origin,
)
from git_tag_action.platforms.remote import RemoteBackend, quote_segment

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"

# An API prefix only counts when /repos/ follows it; a plain /api/<name>
# path belongs to an owner called "api".
_API_PATH_RE = re.compile(r"^(?P<prefix>.*?/api(?:/v\d+)?)/repos/")


class GitHubBackend(RemoteBackend, platform=PlatformKind.GITHUB):
    """Tag backend for GitHub and GitHub Enterprise.

    Annotated tags need two calls: a tag object, then a ref pointing at it.
    Lightweight tags are a single ref pointing at the commit.
    """

    default_base_url = DEFAULT_BASE_URL

    @classmethod
    def detect_by_hostname(cls, hostname: str) -> bool:
        return "github" in hostname.lower()

    @classmethod
    def probe_urls(cls, origin: str) -> list[str]:
        return [f"{origin}/api/v3", f"{origin}/api"]

    @classmethod
    def determine_base_url(
        cls,
        explicit: str | None,
        repo_url: str | None,
        env: Mapping[str, str],
    ) -> str:
        """Pick the GitHub API base URL.

        Args:
            explicit: User supplied base URL, used verbatim.
            repo_url: Repository URL; github.com maps to the public API, an
                ``/api[/vN]/repos/...`` URL keeps its API prefix and other
                hosts map to Enterprise's ``/api/v3``.
            env: Environment; ``GITHUB_API_URL`` is used when no repository
                URL is known.

        Returns:
            API base URL without a trailing slash.
        """
        if explicit:
            return explicit.rstrip("/")

        if repo_url:
            origin = url_origin(repo_url)
            hostname = url_hostname(repo_url)
            if origin and hostname:
                if hostname in ("github.com", "www.github.com", "api.github.com"):
                    return DEFAULT_BASE_URL
                if "://" in repo_url:
                    match = _API_PATH_RE.match(urlsplit(repo_url).path)
                    if match:
                        return f"{origin}{match.group('prefix')}"
                return f"{origin}/api/v3"

        api_url = env.get("GITHUB_API_URL")
        if api_url:
            return api_url.rstrip("/")
        return DEFAULT_BASE_URL

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def _tag_ref_path(self, tag_name: str) -> str:
        return f"{self._repo_path}/git/refs/tags/{quote_segment(tag_name)}"

    async def tag_exists(self, tag_name: str) -> bool:
        return await self._exists(f"{self._repo_path}/git/ref/tags/{quote_segment(tag_name)}")

    async def create_tag(self, request: TagRequest) -> TagOutcome:
        tag_name, sha = request.tag_name, request.sha
        logger.info(f"Creating GitHub tag: {tag_name} at {sha}")

        exists = await self.tag_exists(tag_name)
        if exists and not request.force:
            logger.warning(f"Tag {tag_name} already exists")
            return TagOutcome.unchanged(tag_name, sha)

        if exists:
            await self.delete_tag(tag_name)

        self._warn_if_signing(request)
        target = sha
        if request.annotated:
            tag_object: dict[str, Any] = {
                "tag": tag_name,
                "message": request.message or f"Tag {tag_name}",
                "object": sha,
                "type": "commit",
            }
            if request.author_name and request.author_email:
                tag_object["tagger"] = {"name": request.author_name, "email": request.author_email}
            response = await self.client.post(f"{self._repo_path}/git/tags", tag_object)
            target = response["sha"]

        await self.client.post(
            f"{self._repo_path}/git/refs",
            {"ref": f"refs/tags/{tag_name}", "sha": target},
        )
        logger.info(f"Tag created successfully: {tag_name}")

        return TagOutcome(tag_name=tag_name, sha=sha, existed=exists, created=True, updated=exists)

    async def update_tag(self, request: TagRequest) -> TagOutcome:
        await self.delete_tag(request.tag_name)
        outcome = await self.create_tag(request.with_force())
        return TagOutcome(
            tag_name=outcome.tag_name,
            sha=outcome.sha,
            existed=True,
            created=outcome.created,
            updated=True,
        )

    async def delete_tag(self, tag_name: str) -> None:
        logger.info(f"Deleting GitHub tag: {tag_name}")
        # GitHub answers 422 "Reference does not exist" for a missing ref
        await self._delete(
            self._tag_ref_path(tag_name),
            tag_name,
            gone=(ErrorKind.NOT_FOUND, ErrorKind.UNPROCESSABLE),
        )

    async def tag_sha(self, tag_name: str) -> str | None:
        try:
            ref = await self.client.get(f"{self._repo_path}/git/ref/tags/{quote_segment(tag_name)}")
        except HttpError as e:
            if e.not_found:
                return None
            raise
        target = (ref or {}).get("object") or {}
        # Annotated tags point at a tag object; peel it to the commit
        if target.get("type") == "tag":
            tag_object = await self.client.get(f"{self._repo_path}/git/tags/{target['sha']}")
            target = tag_object["object"]
        return target.get("sha")

    async def head_sha(self) -> str:
        repository = await self.client.get(self._repo_path)
        default_branch = (repository or {}).get("default_branch") or "main"

        ref = await self.client.get(f"{self._repo_path}/git/ref/heads/{quote_segment(default_branch)}")
        return ref["object"]["sha"]
