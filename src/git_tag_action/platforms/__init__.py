"""Tag backends - base class, data types and per-platform implementations."""

from git_tag_action.platforms.base import (
    BackendConfig,
    PlatformKind,
    RepositoryReference,
    TagBackend,
    TagOutcome,
    TagRequest,
)

__all__ = [
    "BackendConfig",
    "PlatformKind",
    "RepositoryReference",
    "TagBackend",
    "TagOutcome",
    "TagRequest",
]
