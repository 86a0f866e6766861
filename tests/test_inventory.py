"""Tests for cached inventory views and their rendering."""

import json

import pytest

from unleash_mcp.cache import DEFAULT_TTL_MS, InventoryCache
from unleash_mcp.errors import UnknownResourceError
from unleash_mcp.inventory import InventoryService
from unleash_mcp.models import CollectionKey, ViewRequest

from conftest import make_flag


@pytest.fixture
def remote(projects, flags):
    """Stand-in for the Admin client that counts calls."""

    class Remote:
        def __init__(self):
            self.project_calls = 0
            self.flag_calls = []

        async def list_projects(self):
            self.project_calls += 1
            return list(projects)

        async def list_feature_flags(self, project_id):
            self.flag_calls.append(project_id)
            return [make_flag(f.name, f.created_at, project=project_id) for f in flags]

    return Remote()


@pytest.fixture
def service(remote, clock):
    return InventoryService(
        remote.list_projects,
        remote.list_feature_flags,
        cache=InventoryCache(clock=clock),
    )


class TestViews:

    @pytest.mark.asyncio
    async def test_projects_view_defaults(self, service):
        result = await service.read_projects_view()

        assert [p.id for p in result.slice] == ["delta", "alpha", "beta", "gamma"]
        assert (result.limit, result.order, result.offset) == (20, "desc", 0)
        assert result.cached is False
        assert result.next_offset is None

    @pytest.mark.asyncio
    async def test_second_view_served_from_cache(self, service, remote):
        await service.read_projects_view()
        result = await service.read_projects_view(ViewRequest(limit=2, order="asc"))

        assert result.cached is True
        assert [p.id for p in result.slice] == ["gamma", "beta"]
        assert result.next_offset == 2
        assert remote.project_calls == 1

    @pytest.mark.asyncio
    async def test_views_refetch_after_ttl(self, service, remote, clock):
        await service.read_projects_view()
        clock.advance_ms(DEFAULT_TTL_MS)
        result = await service.read_projects_view()

        assert result.cached is False
        assert remote.project_calls == 2

    @pytest.mark.asyncio
    async def test_flags_view_defaults(self, service, remote):
        result = await service.read_flags_view("web")

        assert result.slice[0].name == "api-rate-limit"
        assert (result.limit, result.order) == (50, "asc")
        assert result.total_count == 5
        assert remote.flag_calls == ["web"]

    @pytest.mark.asyncio
    async def test_flags_cached_per_project(self, service, remote):
        await service.read_flags_view("web")
        await service.read_flags_view("mobile")
        await service.read_flags_view("web")

        assert remote.flag_calls == ["web", "mobile"]


class TestReadUri:

    @pytest.mark.asyncio
    async def test_projects_payload(self, service, clock):
        payload = await service.read_uri("unleash://projects?limit=1")

        assert payload["uri"] == "unleash://projects?limit=1"
        assert payload["dryRun"] is False
        assert payload["cached"] is False
        assert payload["fetchedAt"].startswith("2023-11-14T")
        assert [p["id"] for p in payload["projects"]] == ["delta"]
        assert payload["pagination"] == {
            "limit": 1,
            "offset": 0,
            "order": "desc",
            "totalCount": 4,
            "nextOffset": 1,
        }
        assert payload["nextUri"] == "unleash://projects?limit=1&offset=1"

    @pytest.mark.asyncio
    async def test_following_next_uri_reaches_the_end(self, service):
        uri = "unleash://projects/team%2Fweb/feature-flags?limit=2"
        names = []

        while uri:
            payload = await service.read_uri(uri)
            assert payload["projectId"] == "team/web"
            names.extend(f["name"] for f in payload["flags"])
            uri = payload.get("nextUri")

        assert names == ["api-rate-limit", "beta-banner", "dark-mode", "new-checkout", "search-v2"]

    @pytest.mark.asyncio
    async def test_last_page_has_no_next_uri(self, service):
        payload = await service.read_uri("unleash://projects/web/feature-flags?offset=4")

        assert len(payload["flags"]) == 1
        assert payload["pagination"]["nextOffset"] is None
        assert "nextUri" not in payload

    @pytest.mark.asyncio
    async def test_unknown_uri(self, service, remote):
        with pytest.raises(UnknownResourceError):
            await service.read_uri("unleash://environments")

        assert remote.project_calls == 0

    @pytest.mark.asyncio
    async def test_text_is_json(self, service):
        text = await service.read_uri_text("unleash://projects")

        assert json.loads(text)["pagination"]["totalCount"] == 4

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, clock):
        async def failing():
            raise RuntimeError("unreachable")

        service = InventoryService(failing, failing, cache=InventoryCache(clock=clock))

        with pytest.raises(RuntimeError):
            await service.read_uri("unleash://projects")


class TestInjectedCache:

    def test_empty_cache_is_kept(self, remote, clock):
        cache = InventoryCache(clock=clock)
        service = InventoryService(remote.list_projects, remote.list_feature_flags, cache=cache)

        assert len(cache) == 0
        assert service.cache is cache

    @pytest.mark.asyncio
    async def test_views_populate_injected_cache(self, service, remote):
        cache = service.cache
        await service.read_flags_view("web")

        assert len(cache) == 1
        assert service.cache is cache


class TestLenientViewRequest:

    @pytest.mark.asyncio
    async def test_zero_limit_uses_default(self, service):
        result = await service.read_projects_view(ViewRequest(limit=0))

        assert result.limit == 20
        assert len(result.slice) == 4

    @pytest.mark.asyncio
    async def test_negative_offset_starts_at_zero(self, service):
        result = await service.read_flags_view("web", ViewRequest(offset=-3))

        assert result.offset == 0
        assert result.slice[0].name == "api-rate-limit"

    @pytest.mark.asyncio
    async def test_unknown_order_uses_default(self, service):
        result = await service.read_flags_view("web", ViewRequest(order="sideways"))

        assert result.order == "asc"

    @pytest.mark.asyncio
    async def test_rendered_uri_drops_invalid_options(self, service):
        request = ViewRequest(limit=-1, order="asc", offset=-3)
        result = await service.read_projects_view(request)
        payload = service.render(CollectionKey.projects(), request, result)

        assert payload["uri"] == "unleash://projects?order=asc"
        assert payload["pagination"]["offset"] == 0


class TestResources:

    @pytest.mark.asyncio
    async def test_projects_resource(self, service):
        payload = json.loads(await service.read_projects_resource())

        assert payload["uri"] == "unleash://projects"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "project_id,encoded",
        [("team/web", "team%2Fweb"), ("a?b", "a%3Fb"), ("100%", "100%25")],
    )
    async def test_flags_resource_encodes_project_id(self, service, remote, project_id, encoded):
        payload = json.loads(await service.read_flags_resource(project_id))

        assert payload["projectId"] == project_id
        assert payload["uri"] == f"unleash://projects/{encoded}/feature-flags"
        assert remote.flag_calls == [project_id]
