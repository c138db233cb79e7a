"""Local git backend for repositories on unrecognised hosts."""

import logging
from dataclasses import replace

from git_tag_action.core.git import GitError, GitService
from git_tag_action.platforms.base import PlatformKind, TagBackend, TagOutcome, TagRequest

logger = logging.getLogger(__name__)


class GenericBackend(TagBackend, platform=PlatformKind.GENERIC):
    """Tag backend that drives the local git executable.

    Tags are created in the working copy, then pushed to ``origin`` on a
    best-effort basis: a failed push is logged and the local tag stays.
    """

    is_local = True

    @property
    def git(self) -> GitService:
        if self._git is None:
            self._git = GitService(verbose=self.config.verbose)
        return self._git

    async def tag_exists(self, tag_name: str) -> bool:
        return self.git.tag_exists(tag_name)

    async def create_tag(self, request: TagRequest) -> TagOutcome:
        logger.info(f"Creating tag using Git CLI: {request.tag_name}")
        sha = request.sha or self.git.head_sha()
        outcome = self.git.create_tag(replace(request, sha=sha))

        if not self.config.push:
            logger.debug("push_tag is false, skipping tag push")
        elif outcome.created and not self.reference.url:
            logger.info(f"No remote URL known for {self.reference.full_name}, skipping tag push")
        elif outcome.created:
            try:
                self.git.push_tag(
                    request.tag_name,
                    token=self.config.token,
                    force=request.force,
                )
            except GitError as e:
                logger.warning(f"Failed to push tag to remote: {e}")
            else:
                logger.info(f"Tag {request.tag_name} pushed successfully")
        return outcome

    async def update_tag(self, request: TagRequest) -> TagOutcome:
        logger.info(f"Updating tag using Git CLI: {request.tag_name}")
        self._delete_remote(request.tag_name)
        return await self.create_tag(request.with_force())

    async def delete_tag(self, tag_name: str) -> None:
        logger.info(f"Deleting tag using Git CLI: {tag_name}")
        self._delete_remote(tag_name)
        self.git.delete_tag(tag_name)

    async def head_sha(self) -> str:
        return self.git.head_sha()

    def _delete_remote(self, tag_name: str) -> None:
        if not self.reference.url or not self.config.push:
            return
        try:
            self.git.delete_remote_tag(tag_name, token=self.config.token)
        except GitError as e:
            logger.debug(f"Tag may not exist remotely: {e}")
