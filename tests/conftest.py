"""Shared fixtures: throwaway git repositories and stubbed HTTP."""

import json
import logging
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from git import Repo

from git_tag_action.core.git import GitService
from git_tag_action.log import PACKAGE_LOGGER

COMMIT_ENV = {
    "GIT_AUTHOR_NAME": "Test Author",
    "GIT_AUTHOR_EMAIL": "author@example.com",
    "GIT_COMMITTER_NAME": "Test Author",
    "GIT_COMMITTER_EMAIL": "author@example.com",
}


@pytest.fixture(autouse=True)
def isolated_git_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the user's and system git config out of every test."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for name in (*COMMIT_ENV, "GITHUB_ACTIONS", "GITEA_ACTIONS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging so caplog sees records in later tests."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def commit(repo: Repo, message: str) -> str:
    """Create an empty commit and return its SHA."""
    repo.git.commit("--allow-empty", "-m", message, env=COMMIT_ENV)
    return repo.head.commit.hexsha


@pytest.fixture
def git_repo(tmp_path: Path) -> Repo:
    """A fresh repository with one commit."""
    repo = Repo.init(tmp_path / "repo")
    commit(repo, "initial")
    return repo


@pytest.fixture
def git_service(git_repo: Repo) -> GitService:
    return GitService(git_repo.working_dir, env={})


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def calls(self) -> list[tuple[str, str]]:
        return [(request.method, request.url.path) for request in self.requests]

    def body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def make_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    return RecordingTransport
