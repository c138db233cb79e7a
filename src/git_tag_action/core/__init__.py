"""Core services - local git and HTTP helpers used by the backends."""

from git_tag_action.core.git import GitError, GitService
from git_tag_action.core.http import HttpClient, HttpError

__all__ = ["GitError", "GitService", "HttpClient", "HttpError"]
