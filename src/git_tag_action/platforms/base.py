"""Base backend class defining the interface for all tag backends."""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

if TYPE_CHECKING:
    import httpx

    from git_tag_action.core.git import GitService

logger = logging.getLogger(__name__)

_SCP_RE = re.compile(r"^(?:[^@/\s]+@)?(?P<host>[^:/\s]+):(?P<path>[^\s]+)$")


def url_hostname(url: str | None) -> str | None:
    """Lowercased hostname of a URL or scp-style remote, if any."""
    if not url:
        return None
    if "://" not in url:
        match = _SCP_RE.match(url)
        return match.group("host").lower() if match else None
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def url_origin(url: str | None) -> str | None:
    """scheme://host[:port] for a repository URL.

    Non-http remotes (ssh, scp-style) map to an https origin on the same
    host, which is where the web API lives.
    """
    hostname = url_hostname(url)
    if not url or not hostname:
        return None
    if "://" in url:
        parts = urlsplit(url)
        if parts.scheme in ("http", "https"):
            try:
                port = parts.port
            except ValueError:
                port = None
            return f"{parts.scheme}://{hostname}" + (f":{port}" if port else "")
    return f"https://{hostname}"


class PlatformKind(str, Enum):
    """Hosting platform dialect a backend speaks."""

    GITHUB = "github"
    GITEA = "gitea"
    BITBUCKET = "bitbucket"
    GENERIC = "generic"
    AUTO = "auto"

    @classmethod
    def parse(cls, value: str) -> "PlatformKind":
        """Parse a case-insensitive platform name.

        Raises:
            ValueError: If the value is not a known platform.
        """
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        valid = ", ".join(member.value for member in cls)
        raise ValueError(f"Invalid repo_type: {value}. Must be one of: {valid}")


@dataclass
class RepositoryReference:
    """Owner/repo identification of the repository being tagged."""

    owner: str
    repo: str
    url: str | None = None
    platform: PlatformKind = PlatformKind.AUTO

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class TagRequest:
    """What tag to create and how.

    A missing message means a lightweight tag; a message means an annotated
    tag, which signing requires.
    """

    tag_name: str
    sha: str
    message: str | None = None
    sign: bool = False
    sign_key_id: str | None = None
    force: bool = False
    verbose: bool = False
    author_name: str | None = None
    author_email: str | None = None

    @property
    def annotated(self) -> bool:
        return bool(self.message and self.message.strip()) or self.sign

    def with_force(self, force: bool = True) -> "TagRequest":
        return replace(self, force=force)


@dataclass(frozen=True)
class TagOutcome:
    """Result of a create-or-update operation."""

    tag_name: str
    sha: str
    existed: bool
    created: bool
    updated: bool

    @classmethod
    def unchanged(cls, tag_name: str, sha: str) -> "TagOutcome":
        """Outcome for a tag that already exists and was left alone."""
        return cls(tag_name=tag_name, sha=sha, existed=True, created=False, updated=False)


@dataclass(frozen=True)
class BackendConfig:
    """Per-invocation configuration owned by one backend instance."""

    kind: PlatformKind
    base_url: str | None = None
    token: str | None = None
    ignore_cert_errors: bool = False
    verbose: bool = False
    push: bool = True


class TagBackend(ABC):
    """Abstract base class for tag backends.

    Each platform (local git, GitHub, Gitea, Bitbucket) extends this class
    and registers itself with the ``platform`` class keyword so the factory
    can instantiate it by kind.
    """

    # Registry of backend classes by platform kind
    _type_registry: dict[PlatformKind, type["TagBackend"]] = {}

    #: True for the backend that mutates the local checkout directly
    is_local: bool = False

    def __init__(
        self,
        reference: RepositoryReference,
        config: BackendConfig,
        *,
        git: "GitService | None" = None,
        transport: "httpx.AsyncBaseTransport | None" = None,
    ) -> None:
        """Initialize the backend.

        Args:
            reference: Repository being tagged.
            config: Backend configuration for this invocation.
            git: Local git service (used by the local backend).
            transport: Optional httpx transport (used by API backends).
        """
        self.reference = reference
        self.config = config
        self._git = git
        self._transport = transport

    def __init_subclass__(cls, platform: PlatformKind | None = None, **kwargs: Any) -> None:
        """Register subclasses in the type registry."""
        super().__init_subclass__(**kwargs)
        if platform is not None:
            TagBackend._type_registry[platform] = cls

    @classmethod
    def get_type_class(cls, platform: PlatformKind) -> type["TagBackend"] | None:
        """Get the backend class for a platform kind."""
        return cls._type_registry.get(platform)

    @classmethod
    def get_registered_types(cls) -> list[PlatformKind]:
        """Get all registered platform kinds."""
        return list(cls._type_registry.keys())

    @property
    def platform(self) -> PlatformKind:
        return self.config.kind

    # =========================================================================
    # Detection hooks
    # =========================================================================

    @classmethod
    def detect_by_hostname(cls, hostname: str) -> bool:
        """Return True if the hostname identifies this platform."""
        return False

    @classmethod
    def probe_urls(cls, origin: str) -> list[str]:
        """Well-known endpoints that answer only on this platform."""
        return []

    @classmethod
    def determine_base_url(
        cls,
        explicit: str | None,
        repo_url: str | None,
        env: Mapping[str, str],
    ) -> str | None:
        """Pick the API base URL for this platform."""
        return explicit

    # =========================================================================
    # Tag operations
    # =========================================================================

    @abstractmethod
    async def tag_exists(self, tag_name: str) -> bool:
        """Return True if the tag exists on this backend."""
        ...

    @abstractmethod
    async def create_tag(self, request: TagRequest) -> TagOutcome:
        """Create the tag, honouring ``request.force`` for existing tags."""
        ...

    @abstractmethod
    async def update_tag(self, request: TagRequest) -> TagOutcome:
        """Replace an existing tag (delete, then recreate)."""
        ...

    @abstractmethod
    async def delete_tag(self, tag_name: str) -> None:
        """Delete the tag; a tag that is already gone is not an error."""
        ...

    @abstractmethod
    async def head_sha(self) -> str:
        """Return the commit SHA at the head of the default branch."""
        ...

    async def tag_sha(self, tag_name: str) -> str | None:
        """Return the commit an existing tag points to, or None if unknown."""
        return None
