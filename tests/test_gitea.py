import httpx
import pytest

from git_tag_action.core.http import HttpError
from git_tag_action.platforms.base import BackendConfig, PlatformKind, RepositoryReference, TagRequest
from git_tag_action.platforms.gitea import GiteaBackend

SHA = "c" * 40
BASE = "https://gitea.example.com/api/v1"
REPO = "/api/v1/repos/team/service"


def make_backend(transport) -> GiteaBackend:
    return GiteaBackend(
        RepositoryReference(owner="team", repo="service", url="https://gitea.example.com/team/service"),
        BackendConfig(kind=PlatformKind.GITEA, base_url=BASE, token="t0ken"),
        transport=transport,
    )


def tag_ref(name: str) -> dict:
    return {"ref": f"refs/tags/{name}", "object": {"sha": SHA, "type": "commit"}}


class TestDetermineBaseUrl:
    @pytest.mark.parametrize(
        "explicit,repo_url,env,expected",
        [
            ("https://git.example.com", None, {}, "https://git.example.com/api/v1"),
            ("https://git.example.com/api/v1/", None, {}, "https://git.example.com/api/v1"),
            (None, "https://git.example.com/team/service.git", {}, "https://git.example.com/api/v1"),
            (None, "http://git.example.com:3000/api/v1/repos/team/service", {}, "http://git.example.com:3000/api/v1"),
            (None, "https://git.example.com/api/v2", {}, "https://git.example.com/api/v1"),
            (None, "ssh://git@git.example.com/team/service.git", {}, "https://git.example.com/api/v1"),
            (None, None, {"GITEA_API_URL": "https://a.example.com/api/v1"}, "https://a.example.com/api/v1"),
            (None, None, {"GITEA_SERVER_URL": "https://s.example.com/"}, "https://s.example.com/api/v1"),
            (None, None, {}, "https://gitea.com/api/v1"),
        ],
    )
    def test_policy(self, explicit, repo_url, env, expected):
        assert GiteaBackend.determine_base_url(explicit, repo_url, env) == expected


class TestGiteaBackend:
    @pytest.mark.asyncio
    async def test_tag_exists_matches_exact_ref(self, make_transport):
        # Gitea answers prefix matches with a list
        transport = make_transport(lambda request: httpx.Response(200, json=[tag_ref("v1.0"), tag_ref("v1.0.1")]))
        backend = make_backend(transport)

        assert await backend.tag_exists("v1.0")
        assert not await backend.tag_exists("v1")

    @pytest.mark.asyncio
    async def test_tag_exists_single_object_and_404(self, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/v2"):
                return httpx.Response(200, json=tag_ref("v2"))
            return httpx.Response(404, json={"message": "Not Found"})

        backend = make_backend(make_transport(handler))

        assert await backend.tag_exists("v2")
        assert not await backend.tag_exists("v3")

    @pytest.mark.asyncio
    async def test_create_annotated(self, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(404)
            return httpx.Response(201, json={"name": "v1"})

        transport = make_transport(handler)

        outcome = await make_backend(transport).create_tag(TagRequest(tag_name="v1", sha=SHA, message="Notes"))

        assert (outcome.existed, outcome.created, outcome.updated) == (False, True, False)
        assert transport.calls()[1] == ("POST", f"{REPO}/tags")
        assert transport.body(1) == {"tag_name": "v1", "target": SHA, "message": "Notes"}

    @pytest.mark.asyncio
    async def test_create_lightweight_omits_message(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(404 if request.method == "GET" else 201))

        await make_backend(transport).create_tag(TagRequest(tag_name="v1", sha=SHA))

        assert transport.body(1) == {"tag_name": "v1", "target": SHA}

    @pytest.mark.asyncio
    async def test_conflict_on_create_reports_existing(self, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(404)
            return httpx.Response(409, json={"message": "tag already exists"})

        outcome = await make_backend(make_transport(handler)).create_tag(TagRequest(tag_name="v1", sha=SHA))

        assert (outcome.existed, outcome.created, outcome.updated) == (True, False, False)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 405])
    async def test_falls_back_to_refs_api(self, make_transport, status):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(404)
            if request.url.path.endswith("/tags"):
                return httpx.Response(status)
            return httpx.Response(201, json=tag_ref("v1"))

        transport = make_transport(handler)

        outcome = await make_backend(transport).create_tag(TagRequest(tag_name="v1", sha=SHA, message="m"))

        assert outcome.created
        assert transport.calls()[-1] == ("POST", f"{REPO}/git/refs")
        assert transport.body(2) == {"ref": "refs/tags/v1", "sha": SHA}

    @pytest.mark.asyncio
    async def test_other_create_errors_propagate(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(404 if request.method == "GET" else 500))

        with pytest.raises(HttpError, match="500"):
            await make_backend(transport).create_tag(TagRequest(tag_name="v1", sha=SHA))

    @pytest.mark.asyncio
    async def test_update_reports_updated(self, make_transport):
        state = {"exists": True}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "DELETE":
                state["exists"] = False
                return httpx.Response(204)
            if request.method == "GET":
                return httpx.Response(200, json=tag_ref("v1")) if state["exists"] else httpx.Response(404)
            return httpx.Response(201, json={})

        transport = make_transport(handler)

        outcome = await make_backend(transport).update_tag(TagRequest(tag_name="v1", sha=SHA, message="m"))

        assert (outcome.existed, outcome.created, outcome.updated) == (True, False, True)
        assert transport.calls()[0] == ("DELETE", f"{REPO}/git/refs/tags/v1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 405])
    async def test_delete_tolerates_missing(self, make_transport, status):
        await make_backend(make_transport(lambda request: httpx.Response(status))).delete_tag("v1")

    @pytest.mark.asyncio
    async def test_head_sha_from_ref_list(self, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == REPO:
                return httpx.Response(200, json={"default_branch": "develop"})
            return httpx.Response(
                200,
                json=[
                    {"ref": "refs/heads/develop", "object": {"sha": SHA}},
                    {"ref": "refs/heads/develop-old", "object": {"sha": "d" * 40}},
                ],
            )

        assert await make_backend(make_transport(handler)).head_sha() == SHA

    @pytest.mark.asyncio
    async def test_tag_sha_peels_annotated_tags(self, make_transport):
        tag_object = "d" * 40

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == f"{REPO}/git/refs/tags/v1":
                return httpx.Response(
                    200,
                    json=[
                        {"ref": "refs/tags/v1", "object": {"sha": tag_object, "type": "tag"}},
                        {"ref": "refs/tags/v1.1", "object": {"sha": "e" * 40, "type": "commit"}},
                    ],
                )
            if path == f"{REPO}/git/tags/{tag_object}":
                return httpx.Response(200, json={"object": {"sha": SHA, "type": "commit"}})
            return httpx.Response(404)

        backend = make_backend(make_transport(handler))

        assert await backend.tag_sha("v1") == SHA
        assert await backend.tag_sha("v2") is None
