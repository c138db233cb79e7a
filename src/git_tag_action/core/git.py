"""Local git operations service using GitPython."""

import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import IO
from urllib.parse import quote, urlsplit, urlunsplit

from git import Git
from git.exc import GitCommandNotFound

from git_tag_action.log import log_git_command, redact_url_credentials
from git_tag_action.platforms.base import TagOutcome, TagRequest

logger = logging.getLogger(__name__)

FALLBACK_AUTHOR_NAME = "github-actions[bot]"
FALLBACK_AUTHOR_EMAIL = "github-actions[bot]@users.noreply.github.com"


class GitError(Exception):
    """Exception raised for git operation failures."""

    pass


def inject_token(url: str, token: str) -> str:
    """Embed a token as the userinfo of a remote URL.

    Existing credentials are replaced. URLs that cannot be parsed fall back
    to a plain prefix substitution for http(s) remotes; anything else is
    returned unchanged.

    Args:
        url: Remote URL.
        token: Access token.

    Returns:
        The URL carrying the token.
    """
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        parts, hostname, port = None, None, None

    if parts is not None and parts.scheme and hostname:
        if ":" in hostname:
            hostname = f"[{hostname}]"
        netloc = f"{quote(token, safe='')}@{hostname}"
        if port is not None:
            netloc += f":{port}"
        return urlunsplit(parts._replace(netloc=netloc))

    for prefix in ("https://", "http://"):
        if url.startswith(prefix):
            return url.replace(prefix, f"{prefix}{token}@", 1)
    return url


class GitService:
    """Service for local git operations.

    Wraps the git executable through GitPython's command interface. Probes
    (repository detection, tag existence) report failure as False rather
    than raising; commands whose failure matters raise GitError.
    """

    def __init__(
        self,
        working_dir: Path | str | None = None,
        *,
        env: Mapping[str, str] | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the git service.

        Args:
            working_dir: Repository directory (default: current directory).
            env: Environment used to look up CI actor identity.
            verbose: Log every git command that is run.
        """
        self._git = Git(str(working_dir) if working_dir is not None else None)
        self._env = os.environ if env is None else env
        self._verbose = verbose

    def _run(
        self,
        *args: str,
        check: bool = True,
        istream: IO[bytes] | None = None,
    ) -> tuple[int, str, str]:
        """Run a git command and capture its result.

        Raises:
            GitError: If git is missing, or the command fails and check is set.
        """
        if self._verbose:
            log_git_command(logger, args)
        try:
            status, stdout, stderr = self._git.execute(
                ["git", *args],
                istream=istream,
                with_extended_output=True,
                with_exceptions=False,
            )
        except GitCommandNotFound as e:
            raise GitError(f"git executable not found: {e}") from e

        if check and status != 0:
            command = redact_url_credentials(" ".join(args))
            raise GitError(f"git {command} failed with exit code {status}: {stderr.strip()}")
        return status, stdout, stderr

    def is_repository(self) -> bool:
        """Check whether the working directory is inside a git repository."""
        try:
            status, _, _ = self._run("rev-parse", "--git-dir", check=False)
        except GitError:
            return False
        return status == 0

    def tag_exists(self, tag_name: str) -> bool:
        """Check whether a tag exists locally."""
        try:
            status, _, _ = self._run("rev-parse", "--verify", "--quiet", f"refs/tags/{tag_name}", check=False)
        except GitError:
            return False
        return status == 0

    def head_sha(self) -> str:
        """Get the SHA of the HEAD commit.

        Raises:
            GitError: If HEAD does not resolve (e.g. no commits yet).
        """
        _, stdout, _ = self._run("rev-parse", "HEAD")
        return stdout.strip()

    def tag_sha(self, tag_name: str) -> str:
        """Get the commit SHA a tag points to.

        Annotated tags are peeled to the commit they target.
        """
        _, stdout, _ = self._run("rev-parse", "--verify", f"refs/tags/{tag_name}^{{commit}}")
        return stdout.strip()

    def remote_url(self, remote: str = "origin") -> str | None:
        """Get the configured URL of a remote, or None if it has none."""
        try:
            status, stdout, _ = self._run("config", "--get", f"remote.{remote}.url", check=False)
        except GitError:
            return None
        if status != 0:
            return None
        return stdout.strip() or None

    def _config_get(self, key: str) -> str | None:
        status, stdout, _ = self._run("config", "--get", key, check=False)
        if status != 0:
            return None
        return stdout.strip() or None

    def ensure_author_identity(self, name: str | None = None, email: str | None = None) -> bool:
        """Make sure annotated tags can be created.

        Git refuses to create an annotated tag without a user identity.
        Missing values are taken from the given overrides, then from the CI
        actor, then from a bot identity. Only unset keys are written, and
        only to the repository's local config.

        Args:
            name: Preferred user name.
            email: Preferred user email.

        Returns:
            True if any config value was written.
        """
        current_name = self._config_get("user.name")
        current_email = self._config_get("user.email")
        if current_name and current_email:
            return False

        actor = self._env.get("GITHUB_ACTOR") or self._env.get("GITEA_ACTOR")
        wrote = False

        if not current_name:
            resolved_name = name or actor or FALLBACK_AUTHOR_NAME
            self._run("config", "--local", "user.name", resolved_name)
            logger.info(f"Configured git user.name: {resolved_name}")
            wrote = True

        if not current_email:
            if email:
                resolved_email = email
            elif actor:
                resolved_email = f"{actor}@users.noreply.{self._server_host()}"
            else:
                resolved_email = FALLBACK_AUTHOR_EMAIL
            self._run("config", "--local", "user.email", resolved_email)
            logger.info(f"Configured git user.email: {resolved_email}")
            wrote = True

        return wrote

    def _server_host(self) -> str:
        server_url = self._env.get("GITHUB_SERVER_URL") or self._env.get("GITEA_SERVER_URL")
        if server_url:
            host = urlsplit(server_url).hostname
            if host:
                return host
        return "github.com"

    def create_tag(self, request: TagRequest) -> TagOutcome:
        """Create a tag in the local repository.

        Args:
            request: Tag to create.

        Returns:
            Outcome whose sha is the commit the tag now points to.

        Raises:
            GitError: If tag creation fails.
        """
        tag_name = request.tag_name
        message = request.message.strip() if request.message else ""
        logger.info(f"Creating tag: {tag_name} at {request.sha or 'HEAD'}")

        exists = self.tag_exists(tag_name)
        if exists and not request.force:
            logger.warning(f"Tag {tag_name} already exists locally")
            return TagOutcome.unchanged(tag_name, self.tag_sha(tag_name))

        if message or request.sign:
            self.ensure_author_identity(request.author_name, request.author_email)

        if exists:
            logger.info(f"Deleting existing tag: {tag_name}")
            self.delete_tag(tag_name)

        args = ["tag"]
        if request.sign:
            args.append("-s")
            if request.sign_key_id:
                args.extend(["-u", request.sign_key_id])
        elif message:
            args.append("-a")

        if message or request.sign:
            # Message goes through stdin; verbatim keeps blank lines intact.
            args.extend(["--cleanup=verbatim", "-F", "-"])
            args.append(tag_name)
            if request.sha:
                args.append(request.sha)
            with tempfile.TemporaryFile() as stdin:
                stdin.write(f"{message}\n".encode())
                stdin.seek(0)
                self._run(*args, istream=stdin)
        else:
            args.append(tag_name)
            if request.sha:
                args.append(request.sha)
            self._run(*args)

        tag_sha = self.tag_sha(tag_name)
        logger.info(f"Tag created successfully: {tag_name} -> {tag_sha}")
        return TagOutcome(
            tag_name=tag_name,
            sha=tag_sha,
            existed=exists,
            created=True,
            updated=exists,
        )

    def _authenticate_remote(self, remote: str, token: str) -> None:
        """Rewrite a remote's URL so it carries the token."""
        url = self.remote_url(remote)
        if url:
            self._run("remote", "set-url", remote, inject_token(url, token))

    def push_tag(
        self,
        tag_name: str,
        *,
        remote: str = "origin",
        token: str | None = None,
        force: bool = False,
    ) -> None:
        """Push a tag to a remote.

        Raises:
            GitError: If the push fails.
        """
        logger.info(f"Pushing tag {tag_name} to {remote}")
        if token:
            self._authenticate_remote(remote, token)

        args = ["push", remote, tag_name]
        if force:
            args.append("--force")
        _, stdout, stderr = self._run(*args)
        for line in (stdout + "\n" + stderr).splitlines():
            if line.strip():
                logger.info(redact_url_credentials(line))

    def delete_tag(self, tag_name: str) -> None:
        """Delete a local tag; a missing tag is ignored."""
        self._run("tag", "-d", tag_name, check=False)

    def delete_remote_tag(
        self,
        tag_name: str,
        *,
        remote: str = "origin",
        token: str | None = None,
    ) -> None:
        """Delete a tag from a remote.

        Raises:
            GitError: If the remote deletion fails.
        """
        logger.info(f"Deleting remote tag: {tag_name} from {remote}")
        if token:
            self._authenticate_remote(remote, token)
        self._run("push", remote, "--delete", tag_name)
