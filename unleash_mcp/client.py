"""
Async client for the Unleash Admin API.

Wraps the handful of endpoints the server needs with:
- Consistent headers (PAT auth, app identity)
- Error translation into UnleashApiError (HTTP_<status> / NETWORK_ERROR)
- Dry-run mode that answers with synthetic payloads and never touches the network

No retries are attempted here; a failed call surfaces to the caller as-is.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from . import __version__
from .errors import UnleashApiError
from .models import FlagSummary, ProjectSummary

logger = logging.getLogger("unleash_mcp.client")

APP_NAME = "unleash-mcp"
FLAG_TYPES = ("release", "experiment", "operational", "kill-switch", "permission")
FLEXIBLE_ROLLOUT = "flexibleRollout"


def _seg(value: str) -> str:
    return quote(value, safe="")


class UnleashClient:
    """Minimal Admin API client covering projects, flags, environments and strategies."""

    def __init__(
        self,
        base_url: str,
        pat: str,
        dry_run: bool = False,
        timeout_sec: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.dry_run = dry_run
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Authorization": pat.strip(),
                "X-Unleash-AppName": APP_NAME,
                "User-Agent": f"{APP_NAME}/{__version__} (MCP Server)",
            },
            timeout=httpx.Timeout(timeout_sec),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()
        logger.debug("Closed Unleash HTTP client")

    @property
    def closed(self) -> bool:
        return self._http.is_closed

    async def __aenter__(self) -> "UnleashClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def project_ui_url(self, project_id: str) -> str:
        return f"{self.base_url}/projects/{_seg(project_id)}"

    def feature_ui_url(self, project_id: str, feature_name: str) -> str:
        return f"{self.base_url}/projects/{_seg(project_id)}/features/{_seg(feature_name)}"

    def feature_api_url(self, project_id: str, feature_name: str) -> str:
        return f"{self.base_url}{self._feature_path(project_id, feature_name)}"

    def environment_api_url(self, project_id: str, feature_name: str, environment: str) -> str:
        return f"{self.base_url}{self._environment_path(project_id, feature_name, environment)}"

    @staticmethod
    def _feature_path(project_id: str, feature_name: str) -> str:
        return f"/api/admin/projects/{_seg(project_id)}/features/{_seg(feature_name)}"

    def _environment_path(self, project_id: str, feature_name: str, environment: str) -> str:
        return f"{self._feature_path(project_id, feature_name)}/environments/{_seg(environment)}"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``None`` when empty)."""
        logger.debug(f"{method} {path}")
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.RequestError as e:
            raise UnleashApiError(
                f"Failed to connect to Unleash API while trying to {action}: {e}",
                code="NETWORK_ERROR",
                hint=f"Check that UNLEASH_BASE_URL ({self.base_url}) is correct and reachable.",
            ) from e

        if response.is_error:
            message, body = _error_message(response, action)
            logger.error(f"Unleash API request failed: {response.status_code} {method} {path}: {message}")
            raise UnleashApiError(message, status=response.status_code, body=body)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UnleashApiError(
                f"Unleash API returned a non-JSON response while trying to {action}",
                code="INVALID_RESPONSE",
            ) from e

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def list_projects(self) -> List[ProjectSummary]:
        if self.dry_run:
            return [
                ProjectSummary(
                    id="default",
                    name="Default (dry run)",
                    description=(
                        "Dry-run mode placeholder. Set UNLEASH_BASE_URL and UNLEASH_PAT "
                        "to fetch real projects."
                    ),
                    url=self.project_ui_url("default"),
                )
            ]

        data = await self._request("GET", "/api/admin/projects", action="list projects")
        projects = data.get("projects") if isinstance(data, dict) else None
        if not isinstance(projects, list):
            return []

        summaries = []
        for project in projects:
            if not isinstance(project, dict):
                continue
            project_id = project.get("id") or project.get("name") or "unknown-project"
            summaries.append(
                ProjectSummary(
                    id=project_id,
                    name=project.get("name") or project.get("id") or "Unnamed project",
                    description=project.get("description"),
                    mode=project.get("mode"),
                    created_at=project.get("createdAt"),
                    url=self.project_ui_url(project_id),
                )
            )
        return summaries

    async def list_feature_flags(self, project_id: str) -> List[FlagSummary]:
        if self.dry_run:
            return [
                FlagSummary(
                    name="dry-run-placeholder-flag",
                    description=(
                        "Dry-run mode placeholder. Set UNLEASH_BASE_URL and UNLEASH_PAT "
                        "to fetch real feature flags."
                    ),
                    project=project_id,
                    type="release",
                    archived=False,
                    impression_data=False,
                    url=self.feature_ui_url(project_id, "dry-run-placeholder-flag"),
                )
            ]

        data = await self._request(
            "GET",
            f"/api/admin/projects/{_seg(project_id)}/features",
            action=f"list feature flags for project {project_id}",
        )
        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            return []

        summaries = []
        for feature in features:
            if not isinstance(feature, dict):
                continue
            name = feature.get("name")
            if not name:
                continue
            project = feature.get("project") or project_id
            summaries.append(
                FlagSummary(
                    name=name,
                    description=feature.get("description"),
                    project=project,
                    type=feature.get("type"),
                    archived=feature.get("archived"),
                    impression_data=feature.get("impressionData"),
                    created_at=feature.get("createdAt"),
                    url=self.feature_ui_url(project, name),
                )
            )
        return summaries

    # ------------------------------------------------------------------
    # Flag lifecycle
    # ------------------------------------------------------------------

    async def create_feature_flag(
        self,
        project_id: str,
        name: str,
        flag_type: str,
        description: str,
        impression_data: bool = False,
    ) -> Dict[str, Any]:
        """POST /api/admin/projects/{projectId}/features"""
        payload = {
            "name": name,
            "type": flag_type,
            "description": description,
            "impressionData": impression_data,
        }

        if self.dry_run:
            logger.info(f"Dry-run enabled: skipping create of '{name}' in project '{project_id}'")
            return {
                **payload,
                "project": project_id,
                "createdAt": datetime.now(timezone.utc).isoformat(),
                "archived": False,
            }

        data = await self._request(
            "POST",
            f"/api/admin/projects/{_seg(project_id)}/features",
            action=f'create feature flag "{name}" in project "{project_id}"',
            json=payload,
        )
        return data or {**payload, "project": project_id}

    async def get_feature(self, project_id: str, feature_name: str) -> Dict[str, Any]:
        if self.dry_run:
            return {
                "name": feature_name,
                "project": project_id,
                "type": "release",
                "enabled": False,
                "archived": False,
                "impressionData": False,
                "environments": [],
            }

        data = await self._request(
            "GET",
            self._feature_path(project_id, feature_name),
            action=f'fetch feature flag "{feature_name}" in project "{project_id}"',
        )
        return data or {}

    async def toggle_feature_environment(
        self,
        project_id: str,
        feature_name: str,
        environment: str,
        enabled: bool,
    ) -> Dict[str, Any]:
        """Switch a flag on/off in one environment and return the refreshed feature."""
        if self.dry_run:
            logger.info(f"Dry-run enabled: skipping toggle of '{feature_name}' in '{environment}'")
            feature = await self.get_feature(project_id, feature_name)
            feature["environments"] = [
                {"name": environment, "environment": environment, "enabled": enabled, "strategies": []}
            ]
            return feature

        state = "on" if enabled else "off"
        await self._request(
            "POST",
            f"{self._environment_path(project_id, feature_name, environment)}/{state}",
            action=f'turn {state} "{feature_name}" in "{environment}"',
        )
        return await self.get_feature(project_id, feature_name)

    async def set_flexible_rollout_strategy(
        self,
        project_id: str,
        feature_name: str,
        environment: str,
        rollout_percentage: float,
        group_id: Optional[str] = None,
        stickiness: Optional[str] = None,
        title: Optional[str] = None,
        disabled: Optional[bool] = None,
        variants: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Create or update the flexibleRollout strategy of an environment.

        An existing flexibleRollout strategy in the environment is updated in
        place (PUT); otherwise a new one is added (POST).
        """
        payload: Dict[str, Any] = {
            "name": FLEXIBLE_ROLLOUT,
            "constraints": [],
            "parameters": {
                "rollout": _format_percentage(rollout_percentage),
                "stickiness": stickiness or "default",
                "groupId": group_id or feature_name,
            },
            "disabled": bool(disabled),
        }
        if title:
            payload["title"] = title
        if variants:
            payload["variants"] = variants

        if self.dry_run:
            logger.info(f"Dry-run enabled: skipping strategy update for '{feature_name}' in '{environment}'")
            return payload

        strategies_path = f"{self._environment_path(project_id, feature_name, environment)}/strategies"
        existing_id = await self._find_strategy_id(project_id, feature_name, environment, FLEXIBLE_ROLLOUT)

        if existing_id:
            data = await self._request(
                "PUT",
                f"{strategies_path}/{_seg(existing_id)}",
                action=f'update rollout strategy for "{feature_name}" in "{environment}"',
                json=payload,
            )
        else:
            data = await self._request(
                "POST",
                strategies_path,
                action=f'add rollout strategy to "{feature_name}" in "{environment}"',
                json=payload,
            )
        return data or payload

    async def delete_feature_strategy(
        self,
        project_id: str,
        feature_name: str,
        environment: str,
        strategy_id: str,
    ) -> None:
        if self.dry_run:
            logger.info(f"Dry-run enabled: skipping delete of strategy '{strategy_id}'")
            return

        await self._request(
            "DELETE",
            f"{self._environment_path(project_id, feature_name, environment)}/strategies/{_seg(strategy_id)}",
            action=f'remove strategy "{strategy_id}" from "{feature_name}" in "{environment}"',
        )

    async def _find_strategy_id(
        self,
        project_id: str,
        feature_name: str,
        environment: str,
        strategy_name: str,
    ) -> Optional[str]:
        feature = await self.get_feature(project_id, feature_name)
        env = find_environment(feature, environment)
        for strategy in (env or {}).get("strategies") or []:
            if strategy.get("name") == strategy_name and strategy.get("id"):
                return strategy["id"]
        return None


def find_environment(feature: Dict[str, Any], environment: str) -> Optional[Dict[str, Any]]:
    """Case-insensitive lookup of an environment entry in a feature payload."""
    target = environment.lower()
    for env in feature.get("environments") or []:
        names = (env.get("environment"), env.get("name"))
        if any(isinstance(n, str) and n.lower() == target for n in names):
            return env
    return None


def _format_percentage(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _error_message(response: httpx.Response, action: str):
    """Pull the most useful message out of an error response."""
    default = f"Failed to {action}: {response.status_code} {response.reason_phrase}"
    text = response.text
    try:
        body = response.json()
    except ValueError:
        if text and len(text) < 200:
            return f"{default}: {text}", text
        return default, text or None

    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"]), body
        details = body.get("details")
        if isinstance(details, list):
            messages = [d.get("message") for d in details if isinstance(d, dict) and d.get("message")]
            if messages:
                return ", ".join(messages), body
    return default, body
