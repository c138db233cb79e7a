import httpx
import pytest

from git_tag_action.platforms.base import BackendConfig, PlatformKind, RepositoryReference, TagRequest
from git_tag_action.platforms.bitbucket import DEFAULT_BASE_URL, BitbucketBackend

SHA = "e" * 40
REPO = "/2.0/repositories/workspace/app"


def make_backend(transport, token: str | None = "t0ken") -> BitbucketBackend:
    return BitbucketBackend(
        RepositoryReference(owner="workspace", repo="app"),
        BackendConfig(kind=PlatformKind.BITBUCKET, base_url=DEFAULT_BASE_URL, token=token),
        transport=transport,
    )


class TestBitbucketBackend:
    def test_base_url_policy(self):
        assert BitbucketBackend.determine_base_url(None, "https://bitbucket.org/w/a", {}) == DEFAULT_BASE_URL
        assert (
            BitbucketBackend.determine_base_url("https://bb.example.com/rest/api/1.0/", None, {})
            == "https://bb.example.com/rest/api/1.0"
        )

    @pytest.mark.asyncio
    async def test_create_annotated(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(404 if request.method == "GET" else 201))

        outcome = await make_backend(transport).create_tag(TagRequest(tag_name="v1", sha=SHA, message="Release"))

        assert (outcome.existed, outcome.created, outcome.updated) == (False, True, False)
        assert transport.calls() == [("GET", f"{REPO}/refs/tags/v1"), ("POST", f"{REPO}/refs/tags")]
        assert transport.body(1) == {"name": "v1", "target": {"hash": SHA}, "message": "Release"}

    @pytest.mark.asyncio
    async def test_create_lightweight_omits_message(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(404 if request.method == "GET" else 201))

        await make_backend(transport).create_tag(TagRequest(tag_name="v1", sha=SHA))

        assert transport.body(1) == {"name": "v1", "target": {"hash": SHA}}

    @pytest.mark.asyncio
    async def test_existing_without_force(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(200, json={"name": "v1"}))

        outcome = await make_backend(transport).create_tag(TagRequest(tag_name="v1", sha=SHA))

        assert (outcome.existed, outcome.created, outcome.updated) == (True, False, False)
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_update(self, make_transport):
        state = {"exists": True}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "DELETE":
                state["exists"] = False
                return httpx.Response(204)
            if request.method == "GET":
                return httpx.Response(200 if state["exists"] else 404)
            return httpx.Response(201)

        transport = make_transport(handler)

        outcome = await make_backend(transport).update_tag(TagRequest(tag_name="v1", sha=SHA))

        assert outcome.existed and outcome.updated
        assert transport.calls()[0] == ("DELETE", f"{REPO}/refs/tags/v1")
        assert transport.calls()[-1] == ("POST", f"{REPO}/refs/tags")

    @pytest.mark.asyncio
    async def test_head_sha(self, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == REPO:
                return httpx.Response(200, json={"mainbranch": {"name": "master"}})
            if request.url.path == f"{REPO}/refs/branches/master":
                return httpx.Response(200, json={"target": {"hash": SHA}})
            return httpx.Response(404)

        assert await make_backend(make_transport(handler)).head_sha() == SHA

    @pytest.mark.asyncio
    async def test_missing_token_logs_warning(self, make_transport, caplog):
        with caplog.at_level("WARNING", logger="git_tag_action"):
            make_backend(make_transport(lambda request: httpx.Response(200)), token=None)

        assert "No token configured for bitbucket" in caplog.text

    @pytest.mark.asyncio
    async def test_tag_sha(self, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == f"{REPO}/refs/tags/v1":
                return httpx.Response(200, json={"name": "v1", "target": {"hash": SHA}})
            return httpx.Response(404)

        backend = make_backend(make_transport(handler))

        assert await backend.tag_sha("v1") == SHA
        assert await backend.tag_sha("v2") is None
