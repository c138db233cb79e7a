"""Bitbucket Cloud tag backend."""

import logging
from collections.abc import Mapping
from typing import Any

from git_tag_action.core.http import ErrorKind, HttpError
from git_tag_action.platforms.base import PlatformKind, TagOutcome, TagRequest
from git_tag_action.platforms.remote import RemoteBackend, quote_segment

logger = logging.getLogger(__name__)

# Bitbucket Server speaks /rest/api/1.0 and needs an explicit base URL
DEFAULT_BASE_URL = "https://api.bitbucket.org/2.0"


class BitbucketBackend(RemoteBackend, platform=PlatformKind.BITBUCKET):
    """Tag backend for Bitbucket."""

    default_base_url = DEFAULT_BASE_URL

    @classmethod
    def detect_by_hostname(cls, hostname: str) -> bool:
        return "bitbucket" in hostname.lower()

    @classmethod
    def probe_urls(cls, origin: str) -> list[str]:
        return [
            f"{origin}/rest/api/1.0/application-properties",
            f"{origin}/2.0/repositories",
        ]

    @classmethod
    def determine_base_url(
        cls,
        explicit: str | None,
        repo_url: str | None,
        env: Mapping[str, str],
    ) -> str:
        return explicit.rstrip("/") if explicit else DEFAULT_BASE_URL

    @property
    def _repo_path(self) -> str:
        return f"/repositories/{self.owner}/{self.repo}"

    def _tag_path(self, tag_name: str) -> str:
        return f"{self._repo_path}/refs/tags/{quote_segment(tag_name)}"

    async def tag_exists(self, tag_name: str) -> bool:
        return await self._exists(self._tag_path(tag_name))

    async def create_tag(self, request: TagRequest) -> TagOutcome:
        tag_name, sha = request.tag_name, request.sha
        logger.info(f"Creating Bitbucket tag: {tag_name} at {sha}")

        exists = await self.tag_exists(tag_name)
        if exists and not request.force:
            logger.warning(f"Tag {tag_name} already exists")
            return TagOutcome.unchanged(tag_name, sha)

        if exists:
            await self.delete_tag(tag_name)

        self._warn_if_signing(request)
        payload: dict[str, Any] = {"name": tag_name, "target": {"hash": sha}}
        if request.annotated:
            payload["message"] = request.message or f"Tag {tag_name}"

        await self.client.post(f"{self._repo_path}/refs/tags", payload)
        logger.info(f"Tag created successfully: {tag_name}")

        return TagOutcome(tag_name=tag_name, sha=sha, existed=exists, created=True, updated=exists)

    async def update_tag(self, request: TagRequest) -> TagOutcome:
        await self.delete_tag(request.tag_name)
        outcome = await self.create_tag(request)
        return TagOutcome(
            tag_name=outcome.tag_name,
            sha=outcome.sha,
            existed=True,
            created=outcome.created,
            updated=True,
        )

    async def delete_tag(self, tag_name: str) -> None:
        logger.info(f"Deleting Bitbucket tag: {tag_name}")
        await self._delete(self._tag_path(tag_name), tag_name, gone=(ErrorKind.NOT_FOUND,))

    async def tag_sha(self, tag_name: str) -> str | None:
        try:
            tag = await self.client.get(self._tag_path(tag_name))
        except HttpError as e:
            if e.not_found:
                return None
            raise
        return ((tag or {}).get("target") or {}).get("hash")

    async def head_sha(self) -> str:
        repository = await self.client.get(self._repo_path)
        main_branch = (repository or {}).get("mainbranch") or {}
        default_branch = main_branch.get("name") or "main"

        ref = await self.client.get(f"{self._repo_path}/refs/branches/{quote_segment(default_branch)}")
        return ref["target"]["hash"]
