"""Platform detection and backend factory."""

import logging
import os
from collections.abc import Mapping

import httpx

from git_tag_action.core.git import GitService
from git_tag_action.core.http import PROBE_TIMEOUT_SECONDS, probe
from git_tag_action.log import mask_secret
from git_tag_action.platforms.base import (
    BackendConfig,
    PlatformKind,
    RepositoryReference,
    TagBackend,
    url_hostname,
    url_origin,
)
from git_tag_action.settings import resolve_token

# Import backends to register them
from git_tag_action.platforms.bitbucket import BitbucketBackend  # noqa: F401
from git_tag_action.platforms.generic import GenericBackend  # noqa: F401
from git_tag_action.platforms.gitea import GiteaBackend  # noqa: F401
from git_tag_action.platforms.github import GitHubBackend  # noqa: F401

logger = logging.getLogger(__name__)

# Hostname rules are checked in this order so ambiguous hosts resolve stably
HOSTNAME_ORDER = (PlatformKind.GITHUB, PlatformKind.GITEA, PlatformKind.BITBUCKET)

# Probe trial order
PROBE_ORDER = (PlatformKind.GITEA, PlatformKind.GITHUB, PlatformKind.BITBUCKET)


def detect_by_hostname(url: str | None) -> PlatformKind | None:
    """Match the URL's hostname against each platform's hostname rule."""
    hostname = url_hostname(url)
    if not hostname:
        return None
    for kind in HOSTNAME_ORDER:
        backend_class = TagBackend.get_type_class(kind)
        if backend_class is not None and backend_class.detect_by_hostname(hostname):
            logger.debug(f"Detected {kind.value} from hostname {hostname}")
            return kind
    return None


async def detect_by_probing(
    url: str | None,
    *,
    timeout: float = PROBE_TIMEOUT_SECONDS,
    ignore_cert_errors: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PlatformKind | None:
    """Probe each platform's discovery endpoints on the URL's host.

    Candidates are tried one at a time; the first endpoint that answers
    with a success status decides the platform.
    """
    origin = url_origin(url)
    if not origin:
        return None
    for kind in PROBE_ORDER:
        backend_class = TagBackend.get_type_class(kind)
        if backend_class is None:
            continue
        for probe_url in backend_class.probe_urls(origin):
            logger.debug(f"Probing {kind.value} at {probe_url}")
            if await probe(probe_url, timeout=timeout, verify=not ignore_cert_errors, transport=transport):
                logger.info(f"Detected {kind.value} by probing {probe_url}")
                return kind
    return None


async def resolve_platform(
    reference: RepositoryReference,
    requested: PlatformKind = PlatformKind.AUTO,
    *,
    timeout: float = PROBE_TIMEOUT_SECONDS,
    ignore_cert_errors: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PlatformKind:
    """Decide which platform a repository lives on.

    Args:
        reference: Repository being tagged.
        requested: Explicitly configured platform; anything but AUTO is
            used as is.
        timeout: Bound for each discovery probe, in seconds.
        ignore_cert_errors: Skip TLS verification while probing.
        transport: Optional httpx transport for the probes.

    Returns:
        The resolved platform; GENERIC when nothing matches.
    """
    if requested is not PlatformKind.AUTO:
        return requested

    if reference.platform is not PlatformKind.AUTO:
        return reference.platform

    detected = detect_by_hostname(reference.url)
    if detected is None:
        detected = await detect_by_probing(
            reference.url,
            timeout=timeout,
            ignore_cert_errors=ignore_cert_errors,
            transport=transport,
        )
    if detected is None:
        logger.debug("No platform detected, falling back to local git")
        return PlatformKind.GENERIC
    return detected


async def create_backend(
    reference: RepositoryReference,
    requested: PlatformKind = PlatformKind.AUTO,
    *,
    token: str | None = None,
    base_url: str | None = None,
    ignore_cert_errors: bool = False,
    verbose: bool = False,
    push: bool = True,
    git: GitService | None = None,
    env: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = PROBE_TIMEOUT_SECONDS,
) -> tuple[PlatformKind, TagBackend]:
    """Resolve the platform and build its backend.

    The resolved platform is written back to ``reference.platform``; callers
    must report that value rather than the one they asked for.

    Returns:
        Tuple of (resolved platform, backend instance).

    Raises:
        ValueError: If no backend is registered for the platform.
    """
    env = os.environ if env is None else env
    kind = await resolve_platform(
        reference,
        requested,
        timeout=timeout,
        ignore_cert_errors=ignore_cert_errors,
        transport=transport,
    )

    backend_class = TagBackend.get_type_class(kind)
    if backend_class is None:
        valid = ", ".join(k.value for k in TagBackend.get_registered_types())
        raise ValueError(f"No backend registered for {kind.value}. Registered: {valid}")

    resolved_token = resolve_token(token, kind, env)
    mask_secret(resolved_token, env)

    config = BackendConfig(
        kind=kind,
        base_url=backend_class.determine_base_url(base_url, reference.url, env),
        token=resolved_token,
        ignore_cert_errors=ignore_cert_errors,
        verbose=verbose,
        push=push,
    )
    reference.platform = kind
    logger.debug(f"Using {kind.value} backend (base URL: {config.base_url or 'n/a'})")

    return kind, backend_class(reference, config, git=git, transport=transport)
