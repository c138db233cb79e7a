"""Create-or-update pipeline behind the action."""

import logging
import os
from collections.abc import Mapping

import httpx

from git_tag_action.core.git import GitService
from git_tag_action.outputs import ActionOutputs
from git_tag_action.platforms.base import TagBackend, TagOutcome, TagRequest
from git_tag_action.platforms.registry import create_backend
from git_tag_action.repository import resolve_repository
from git_tag_action.settings import Settings

logger = logging.getLogger(__name__)


class ActionError(Exception):
    """Exception raised when the pipeline cannot proceed."""

    pass


def _preview(message: str | None, limit: int = 100) -> str:
    if message is None:
        return "undefined (lightweight tag)"
    preview = message if len(message) <= limit else f"{message[:limit]}..."
    return f"length={len(message)}, preview={preview!r}"


def _log_inputs(settings: Settings) -> None:
    logger.debug("=== INPUTS ===")
    logger.debug(f"tag_name: {settings.tag_name}")
    logger.debug(f"tag_sha: {settings.tag_sha or 'undefined (will use HEAD)'}")
    logger.debug(f"tag_message: {_preview(settings.tag_message)}")
    logger.debug(f"repository: {settings.repository or 'undefined (will use current repo)'}")
    logger.debug(f"token: {'*** (explicitly provided)' if settings.token else 'undefined (resolved from env)'}")
    logger.debug(f"repo_type: {settings.repo_type.value}")
    logger.debug(f"base_url: {settings.base_url or 'undefined (will auto-detect)'}")
    logger.debug(f"update_existing: {settings.update_existing}")
    logger.debug(f"gpg_sign: {settings.gpg_sign}")
    logger.debug(f"gpg_key_id: {settings.gpg_key_id or 'undefined'}")
    logger.debug(f"ignore_cert_errors: {settings.ignore_cert_errors}")
    logger.debug(f"force: {settings.force}")
    logger.debug(f"push_tag: {settings.push_tag}")
    logger.debug(f"git_user_name: {settings.git_user_name or 'undefined (will auto-detect)'}")
    logger.debug(f"git_user_email: {settings.git_user_email or 'undefined (will auto-detect)'}")


async def _reconcile(backend: TagBackend, request: TagRequest, settings: Settings) -> TagOutcome:
    """Create, update or leave the tag depending on what already exists."""
    if backend.is_local:
        logger.info("Using local Git CLI")
        return await backend.create_tag(request.with_force(settings.force or settings.update_existing))

    logger.info(f"Using {backend.platform.value} API")
    update_requested = settings.update_existing or settings.force
    if await backend.tag_exists(request.tag_name):
        if not update_requested:
            logger.info(f"Tag {request.tag_name} already exists")
            existing_sha = await backend.tag_sha(request.tag_name)
            return TagOutcome.unchanged(request.tag_name, existing_sha or request.sha)
        logger.info(f"Updating existing tag: {request.tag_name}")
        return await backend.update_tag(request)

    logger.info(f"Creating new tag: {request.tag_name}")
    return await backend.create_tag(request)


async def run_action(
    settings: Settings,
    *,
    env: Mapping[str, str] | None = None,
    git: GitService | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ActionOutputs:
    """Run the pipeline: resolve repository, backend and commit, then tag.

    Args:
        settings: Validated action inputs.
        env: Environment for CI context and token fallbacks (default:
            os.environ).
        git: Git service for the checkout (default: current directory).
        transport: Optional httpx transport for all API traffic.

    Returns:
        Outputs describing the resulting tag.

    Raises:
        ActionError: If the commit to tag cannot be determined.
        RepositoryResolutionError: If the repository cannot be identified.
        GitError: If a local git command fails.
        HttpError: If a platform API call fails.
    """
    env = os.environ if env is None else env
    git = git or GitService(env=env, verbose=settings.verbose)

    logger.info(f"Creating/updating tag: {settings.tag_name}")
    if settings.verbose:
        _log_inputs(settings)

    reference = resolve_repository(settings.repository, git=git, env=env)

    platform, backend = await create_backend(
        reference,
        settings.repo_type,
        token=settings.token,
        base_url=settings.base_url,
        ignore_cert_errors=settings.ignore_cert_errors,
        verbose=settings.verbose,
        push=settings.push_tag,
        git=git,
        env=env,
        transport=transport,
    )
    logger.debug(f"Repository {reference.full_name} on {platform.value} (url: {reference.url or 'undefined'})")

    if backend.is_local and not git.is_repository():
        raise ActionError(
            "The local Git backend was selected but the working directory is not a Git repository; "
            "set repo_type and base_url to use a platform API"
        )

    sha = settings.tag_sha
    if not sha:
        sha = await backend.head_sha()
        logger.debug(f"Using HEAD SHA from {platform.value}: {sha}")
    if not sha:
        raise ActionError("Failed to resolve tag SHA")

    request = TagRequest(
        tag_name=settings.tag_name,
        sha=sha,
        message=settings.tag_message,
        sign=settings.gpg_sign,
        sign_key_id=settings.gpg_key_id,
        force=settings.force,
        verbose=settings.verbose,
        author_name=settings.git_user_name,
        author_email=settings.git_user_email,
    )
    outcome = await _reconcile(backend, request, settings)

    if settings.update_existing and not outcome.updated:
        logger.warning(
            f"update_existing was requested but the {platform.value} backend did not report an update; "
            "reporting the tag as updated"
        )
        outcome = TagOutcome(
            tag_name=outcome.tag_name,
            sha=outcome.sha,
            existed=True,
            created=outcome.created,
            updated=True,
        )

    outputs = ActionOutputs.from_outcome(outcome, platform)
    if settings.verbose:
        logger.debug("=== OUTPUTS ===")
        for name, value in outputs.as_dict().items():
            logger.debug(f"{name}: {value}")

    logger.info("Action completed successfully")
    return outputs
