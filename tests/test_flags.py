"""Tests for the flag lifecycle service."""

import json

import httpx
import pytest

from unleash_mcp.client import UnleashClient
from unleash_mcp.config import AppConfig, ServerConfig, UnleashConfig
from unleash_mcp.errors import ConfigError, UnleashApiError, ValidationError
from unleash_mcp.flags import FlagService, normalize_variants, summarize_environment

BASE_URL = "https://unleash.example.com"

FEATURE = {
    "name": "checkout",
    "project": "web",
    "type": "release",
    "enabled": True,
    "archived": False,
    "impressionData": True,
    "environments": [
        {
            "name": "production",
            "enabled": True,
            "strategies": [
                {"id": "s-1", "name": "flexibleRollout"},
                {"id": "s-2", "name": "default", "disabled": True},
            ],
            "variants": [{"name": "blue"}],
        },
        {"name": "development", "enabled": False, "strategies": []},
    ],
}


def make_service(handler, default_project="web", default_environment=None, dry_run=False):
    config = AppConfig(
        unleash=UnleashConfig(
            base_url=BASE_URL,
            pat="token",
            default_project=default_project,
            default_environment=default_environment,
        ),
        server=ServerConfig(dry_run=dry_run),
    )
    client = UnleashClient(BASE_URL, "token", dry_run=dry_run, transport=httpx.MockTransport(handler))
    return FlagService(client, config)


def feature_handler(request: httpx.Request) -> httpx.Response:
    if request.method == "GET":
        return httpx.Response(200, json=FEATURE)
    return httpx.Response(200)


class TestCreateFlag:

    @pytest.mark.asyncio
    async def test_uses_default_project(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json=json.loads(request.content))

        service = make_service(handler)
        result = await service.create_flag("checkout", "release", "New checkout flow")

        assert seen[0].url.path == "/api/admin/projects/web/features"
        assert result["projectId"] == "web"
        assert result["flag"]["name"] == "checkout"
        assert result["links"]["ui"] == f"{BASE_URL}/projects/web/features/checkout"
        assert result["message"].startswith('Successfully created feature flag "checkout"')

    @pytest.mark.asyncio
    async def test_dry_run_message(self):
        service = make_service(feature_handler, dry_run=True)

        result = await service.create_flag("checkout", "kill-switch", "Emergency stop", project_id="ops")

        assert result["dryRun"] is True
        assert result["flag"]["project"] == "ops"
        assert result["message"].startswith("[DRY RUN] Would create")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,flag_type,description",
        [("", "release", "d"), ("x", "toggle", "d"), ("x", "release", "  ")],
    )
    async def test_invalid_input(self, name, flag_type, description):
        service = make_service(feature_handler)

        with pytest.raises(ValidationError):
            await service.create_flag(name, flag_type, description)

    @pytest.mark.asyncio
    async def test_no_project_available(self):
        service = make_service(feature_handler, default_project=None)

        with pytest.raises(ConfigError):
            await service.create_flag("checkout", "release", "desc")

    @pytest.mark.asyncio
    async def test_api_error_propagates(self):
        service = make_service(lambda request: httpx.Response(409, json={"message": "exists"}))

        with pytest.raises(UnleashApiError) as exc:
            await service.create_flag("checkout", "release", "desc")

        assert exc.value.code == "HTTP_409"


class TestGetFlagState:

    @pytest.mark.asyncio
    async def test_all_environments(self):
        service = make_service(feature_handler)

        result = await service.get_flag_state("checkout")

        assert [e["name"] for e in result["environments"]] == ["production", "development"]
        assert result["environments"][0]["activeStrategies"] == 1
        assert "Enabled: yes" in result["message"]

    @pytest.mark.asyncio
    async def test_environment_filter(self):
        service = make_service(feature_handler)

        result = await service.get_flag_state("checkout", environment="DEVELOPMENT")

        assert [e["name"] for e in result["environments"]] == ["development"]
        assert result["environmentFilter"] == "DEVELOPMENT"

    @pytest.mark.asyncio
    async def test_filter_without_match(self):
        service = make_service(feature_handler)

        result = await service.get_flag_state("checkout", environment="qa")

        assert result["environments"] == []
        assert "No environments matched" in result["message"]


class TestToggleEnvironment:

    @pytest.mark.asyncio
    async def test_enable(self):
        service = make_service(feature_handler)

        result = await service.toggle_environment("checkout", True, environment="production")

        assert result["enabled"] is True
        assert result["links"]["api"].endswith("/environments/production/on")
        assert result["message"] == 'Enabled "checkout" in "production".'

    @pytest.mark.asyncio
    async def test_default_environment(self):
        service = make_service(feature_handler, default_environment="development")

        result = await service.toggle_environment("checkout", False)

        assert result["environment"] == "development"
        assert result["enabled"] is False

    @pytest.mark.asyncio
    async def test_environment_required(self):
        service = make_service(feature_handler)

        with pytest.raises(ValidationError, match="Environment is required"):
            await service.toggle_environment("checkout", True)


class TestSetRollout:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("percentage", [-1, 100.5, "50", True])
    async def test_percentage_validated(self, percentage):
        service = make_service(feature_handler)

        with pytest.raises(ValidationError):
            await service.set_rollout("checkout", percentage, environment="production")

    @pytest.mark.asyncio
    async def test_dry_run_returns_strategy(self):
        service = make_service(feature_handler, dry_run=True)

        result = await service.set_rollout(
            "checkout",
            30,
            environment="production",
            variants=[{"name": "blue", "weight": 500}],
        )

        assert result["strategy"]["parameters"]["rollout"] == "30"
        assert result["strategy"]["variants"][0]["weightType"] == "variable"
        assert result["message"].startswith("[DRY RUN]")


class TestRemoveStrategy:

    @pytest.mark.asyncio
    async def test_remove(self):
        methods = []

        def handler(request):
            methods.append(request.method)
            return feature_handler(request)

        service = make_service(handler)
        result = await service.remove_strategy("checkout", "s-2", environment="production")

        assert methods == ["DELETE", "GET"]
        assert result["remainingStrategies"] == 2
        assert result["links"]["api"].endswith("/strategies/s-2")

    @pytest.mark.asyncio
    async def test_strategy_id_required(self):
        service = make_service(feature_handler)

        with pytest.raises(ValidationError):
            await service.remove_strategy("checkout", "", environment="production")


class TestHelpers:

    def test_summarize_environment(self):
        summary = summarize_environment(FEATURE["environments"][0])

        assert summary == {
            "name": "production",
            "enabled": True,
            "strategies": 2,
            "activeStrategies": 1,
            "variants": 1,
        }

    def test_normalize_variants_defaults(self):
        variants = normalize_variants([{"name": "a", "weight": 1000, "payload": {"type": "string", "value": "x"}}])

        assert variants == [
            {
                "name": "a",
                "weight": 1000,
                "weightType": "variable",
                "stickiness": "default",
                "payload": {"type": "string", "value": "x"},
            }
        ]

    @pytest.mark.parametrize(
        "variant",
        [
            {"name": "", "weight": 1},
            {"name": "a", "weight": 1001},
            {"name": "a", "weight": 1, "weightType": "half"},
            {"name": "a", "weight": 1, "payload": {"type": "xml", "value": "<a/>"}},
        ],
    )
    def test_normalize_variants_rejects(self, variant):
        with pytest.raises(ValidationError):
            normalize_variants([variant])

    def test_no_variants(self):
        assert normalize_variants(None) is None
        assert normalize_variants([]) is None
