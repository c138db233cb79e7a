"""Work out which repository is being tagged."""

import logging
import os
import re
from collections.abc import Mapping
from urllib.parse import urlsplit

from git_tag_action.core.git import GitService
from git_tag_action.platforms.base import PlatformKind, RepositoryReference

logger = logging.getLogger(__name__)

_SCP_REMOTE_RE = re.compile(r"^(?P<user>[^@/\s]+)@(?P<host>[^:/\s]+):(?P<path>[^\s]+)$")


class RepositoryResolutionError(Exception):
    """Exception raised when the repository cannot be identified."""

    pass


def _split_path(path: str) -> tuple[str, str] | None:
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:
        return None
    repo = parts[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not parts[0] or not repo:
        return None
    return parts[0], repo


def parse_repository(value: str | None) -> RepositoryReference | None:
    """Parse a repository URL, scp-style remote or ``owner/repo`` string.

    Args:
        value: Repository identifier.

    Returns:
        Reference with an unresolved platform, or None if the value has no
        recognisable owner and repository.
    """
    if not value:
        return None
    value = value.strip()
    logger.debug(f"Parsing repository: {value}")

    if "://" in value:
        try:
            parts = urlsplit(value)
            hostname = parts.hostname
        except ValueError:
            hostname = None
        if hostname:
            owner_repo = _split_path(parts.path)
            if owner_repo:
                owner, repo = owner_repo
                logger.debug(f"Parsed URL: {value} -> {owner}/{repo}")
                return RepositoryReference(owner=owner, repo=repo, url=value, platform=PlatformKind.AUTO)

    match = _SCP_REMOTE_RE.match(value)
    if match:
        owner_repo = _split_path(match.group("path"))
        if owner_repo:
            owner, repo = owner_repo
            url = f"ssh://{match.group('user')}@{match.group('host')}/{owner}/{repo}.git"
            logger.debug(f"Parsed scp-style remote: {value} -> {owner}/{repo}")
            return RepositoryReference(owner=owner, repo=repo, url=url, platform=PlatformKind.AUTO)

    parts = value.split("/")
    if len(parts) == 2 and all(parts) and ":" not in value:
        logger.debug(f"Parsed as owner/repo format: {parts[0]}/{parts[1]}")
        return RepositoryReference(owner=parts[0], repo=parts[1], platform=PlatformKind.AUTO)

    logger.warning(f"Could not parse repository format: {value}")
    return None


def _from_local(git: GitService) -> RepositoryReference | None:
    if not git.is_repository():
        logger.debug("Not in a Git repository")
        return None
    remote_url = git.remote_url("origin")
    if not remote_url:
        logger.debug("No remote origin configured")
        return None
    return parse_repository(remote_url)


def _from_ci(env: Mapping[str, str]) -> RepositoryReference | None:
    # Gitea runners also set GITHUB_REPOSITORY for compatibility
    for repo_var, server_vars in (
        ("GITEA_REPOSITORY", ("GITEA_SERVER_URL", "GITHUB_SERVER_URL")),
        ("GITHUB_REPOSITORY", ("GITHUB_SERVER_URL", "GITEA_SERVER_URL")),
    ):
        full_name = env.get(repo_var)
        if not full_name:
            continue
        owner_repo = _split_path(full_name)
        if not owner_repo:
            logger.warning(f"Ignoring malformed {repo_var}: {full_name}")
            continue
        owner, repo = owner_repo
        url = None
        for server_var in server_vars:
            server_url = env.get(server_var)
            if server_url:
                url = f"{server_url.rstrip('/')}/{owner}/{repo}"
                break
        logger.debug(f"Using {repo_var}: {owner}/{repo}")
        return RepositoryReference(owner=owner, repo=repo, url=url, platform=PlatformKind.AUTO)
    return None


def resolve_repository(
    explicit: str | None,
    *,
    git: GitService,
    env: Mapping[str, str] | None = None,
) -> RepositoryReference:
    """Identify the repository from input, local checkout or CI context.

    Args:
        explicit: Repository input, if any.
        git: Local git service for the checkout.
        env: Environment holding CI context (default: os.environ).

    Returns:
        The repository reference.

    Raises:
        RepositoryResolutionError: If no source identifies a repository.
    """
    env = os.environ if env is None else env

    reference = parse_repository(explicit) if explicit else None
    if reference is None:
        reference = _from_local(git)
    if reference is None:
        reference = _from_ci(env)
    if reference is None:
        raise RepositoryResolutionError(
            "Could not determine repository information. "
            "Please provide repository input or run in a Git repository."
        )

    logger.info(f"Repository: {reference.full_name}")
    return reference
