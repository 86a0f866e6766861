"""
Flag lifecycle operations behind the mutating MCP tools.

Each method validates its inputs, resolves project/environment defaults from
the configuration, calls the Admin client and shapes a result dict with a
human-readable ``message`` and ``links`` to the UI and Admin API.
"""

import logging
from typing import Any, Dict, List, Optional

from .client import FLAG_TYPES, UnleashClient, find_environment
from .config import AppConfig
from .errors import ValidationError

logger = logging.getLogger("unleash_mcp.flags")

VARIANT_WEIGHT_TYPES = ("variable", "fix")
VARIANT_PAYLOAD_TYPES = ("json", "csv", "string", "number")


def _require(value: Optional[str], field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string")
    return value.strip()


def summarize_environment(env: Dict[str, Any]) -> Dict[str, Any]:
    strategies = env.get("strategies") or []
    return {
        "name": env.get("environment") or env.get("name"),
        "enabled": bool(env.get("enabled")),
        "strategies": len(strategies),
        "activeStrategies": sum(1 for s in strategies if not s.get("disabled")),
        "variants": len(env.get("variants") or []),
    }


def normalize_variants(variants: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    """Validate strategy variants and fill in ``weightType``/``stickiness`` defaults."""
    if not variants:
        return None

    normalized = []
    for variant in variants:
        name = _require(variant.get("name"), "Variant name")
        weight = variant.get("weight")
        if isinstance(weight, bool) or not isinstance(weight, int) or not 0 <= weight <= 1000:
            raise ValidationError(f"Variant '{name}' weight must be an integer between 0 and 1000")

        weight_type = variant.get("weightType") or "variable"
        if weight_type not in VARIANT_WEIGHT_TYPES:
            raise ValidationError(f"Variant '{name}' weightType must be one of {', '.join(VARIANT_WEIGHT_TYPES)}")

        entry = {
            "name": name,
            "weight": weight,
            "weightType": weight_type,
            "stickiness": variant.get("stickiness") or "default",
        }
        payload = variant.get("payload")
        if payload:
            if payload.get("type") not in VARIANT_PAYLOAD_TYPES or not payload.get("value"):
                raise ValidationError(
                    f"Variant '{name}' payload needs a type ({', '.join(VARIANT_PAYLOAD_TYPES)}) and a value"
                )
            entry["payload"] = {"type": payload["type"], "value": payload["value"]}
        normalized.append(entry)
    return normalized


class FlagService:
    """Create, inspect, toggle and roll out feature flags."""

    def __init__(self, client: UnleashClient, config: AppConfig):
        self.client = client
        self.config = config

    @property
    def dry_run(self) -> bool:
        return self.config.server.dry_run

    def resolve_environment(self, environment: Optional[str]) -> str:
        if environment and environment.strip():
            return environment.strip()
        if self.config.unleash.default_environment:
            return self.config.unleash.default_environment
        raise ValidationError(
            "Environment is required.",
            hint="Pass an environment name or set UNLEASH_DEFAULT_ENVIRONMENT.",
        )

    def _links(self, project_id: str, flag_name: str, api_url: Optional[str] = None) -> Dict[str, str]:
        return {
            "ui": self.client.feature_ui_url(project_id, flag_name),
            "api": api_url or self.client.feature_api_url(project_id, flag_name),
        }

    def _prefix(self) -> str:
        return "[DRY RUN] " if self.dry_run else ""

    # ------------------------------------------------------------------

    async def create_flag(
        self,
        name: str,
        flag_type: str,
        description: str,
        project_id: Optional[str] = None,
        impression_data: bool = False,
    ) -> Dict[str, Any]:
        name = _require(name, "Flag name")
        description = _require(description, "Description")
        if flag_type not in FLAG_TYPES:
            raise ValidationError(f"Flag type must be one of {', '.join(FLAG_TYPES)}, got {flag_type!r}")
        project_id = self.config.resolve_project_id(project_id)

        logger.info(f"Creating feature flag '{name}' in project '{project_id}'")
        flag = await self.client.create_feature_flag(
            project_id, name, flag_type, description, impression_data=bool(impression_data)
        )

        links = self._links(project_id, name)
        if self.dry_run:
            message = f'[DRY RUN] Would create feature flag "{name}" in project "{project_id}".'
        else:
            message = f'Successfully created feature flag "{name}" in project "{project_id}".'
        return {
            "dryRun": self.dry_run,
            "projectId": project_id,
            "flag": flag,
            "links": links,
            "message": f"{message}\nView in Unleash: {links['ui']}",
        }

    async def get_flag_state(
        self,
        flag_name: str,
        project_id: Optional[str] = None,
        environment: Optional[str] = None,
    ) -> Dict[str, Any]:
        flag_name = _require(flag_name, "Flag name")
        project_id = self.config.resolve_project_id(project_id)

        feature = await self.client.get_feature(project_id, flag_name)
        environments = feature.get("environments") or []
        if environment:
            match = find_environment(feature, environment)
            environments = [match] if match else []

        summaries = [summarize_environment(env) for env in environments]
        lines = [
            f'Feature "{feature.get("name", flag_name)}" ({feature.get("type") or "unknown type"})',
            f"Enabled: {'yes' if feature.get('enabled') else 'no'}, "
            f"archived: {'yes' if feature.get('archived') else 'no'}, "
            f"impression data: {'on' if feature.get('impressionData') else 'off'}",
        ]
        if summaries:
            lines += [
                f"- {s['name']}: {'enabled' if s['enabled'] else 'disabled'} "
                f"({s['activeStrategies']}/{s['strategies']} active strategies)"
                for s in summaries
            ]
        else:
            lines.append("- No environments matched the provided filters.")

        logger.info(f"Retrieved feature state for '{flag_name}'")
        return {
            "projectId": project_id,
            "featureName": feature.get("name", flag_name),
            "environmentFilter": environment,
            "feature": feature,
            "environments": summaries,
            "links": self._links(project_id, flag_name),
            "message": "\n".join(lines),
        }

    async def toggle_environment(
        self,
        flag_name: str,
        enabled: bool,
        environment: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        flag_name = _require(flag_name, "Flag name")
        if not isinstance(enabled, bool):
            raise ValidationError("enabled must be true or false")
        project_id = self.config.resolve_project_id(project_id)
        environment = self.resolve_environment(environment)

        feature = await self.client.toggle_feature_environment(project_id, flag_name, environment, enabled)
        env_state = find_environment(feature, environment)

        state = "on" if enabled else "off"
        verb = "Enabled" if enabled else "Disabled"
        api_url = f"{self.client.environment_api_url(project_id, flag_name, environment)}/{state}"
        return {
            "dryRun": self.dry_run,
            "projectId": project_id,
            "featureName": flag_name,
            "environment": environment,
            "enabled": bool(env_state.get("enabled")) if env_state else enabled,
            "feature": feature,
            "links": self._links(project_id, flag_name, api_url),
            "message": f'{self._prefix()}{verb} "{flag_name}" in "{environment}".',
        }

    async def set_rollout(
        self,
        flag_name: str,
        rollout_percentage: float,
        environment: Optional[str] = None,
        project_id: Optional[str] = None,
        group_id: Optional[str] = None,
        stickiness: Optional[str] = None,
        title: Optional[str] = None,
        disabled: Optional[bool] = None,
        variants: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        flag_name = _require(flag_name, "Flag name")
        if isinstance(rollout_percentage, bool) or not isinstance(rollout_percentage, (int, float)):
            raise ValidationError("Rollout percentage must be a number")
        if not 0 <= rollout_percentage <= 100:
            raise ValidationError(f"Rollout percentage must be between 0 and 100, got {rollout_percentage}")
        project_id = self.config.resolve_project_id(project_id)
        environment = self.resolve_environment(environment)

        strategy = await self.client.set_flexible_rollout_strategy(
            project_id,
            flag_name,
            environment,
            rollout_percentage,
            group_id=group_id,
            stickiness=stickiness,
            title=title,
            disabled=disabled,
            variants=normalize_variants(variants),
        )

        api_url = f"{self.client.environment_api_url(project_id, flag_name, environment)}/strategies"
        return {
            "dryRun": self.dry_run,
            "projectId": project_id,
            "featureName": flag_name,
            "environment": environment,
            "strategy": strategy,
            "links": self._links(project_id, flag_name, api_url),
            "message": (
                f'{self._prefix()}Configured flexibleRollout for "{flag_name}" in "{environment}" '
                f"at {rollout_percentage}%."
            ),
        }

    async def remove_strategy(
        self,
        flag_name: str,
        strategy_id: str,
        environment: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        flag_name = _require(flag_name, "Flag name")
        strategy_id = _require(strategy_id, "Strategy ID")
        project_id = self.config.resolve_project_id(project_id)
        environment = self.resolve_environment(environment)

        await self.client.delete_feature_strategy(project_id, flag_name, environment, strategy_id)
        feature = await self.client.get_feature(project_id, flag_name)
        env_state = find_environment(feature, environment)

        api_url = (
            f"{self.client.environment_api_url(project_id, flag_name, environment)}"
            f"/strategies/{strategy_id}"
        )
        return {
            "dryRun": self.dry_run,
            "projectId": project_id,
            "featureName": flag_name,
            "environment": environment,
            "strategyId": strategy_id,
            "remainingStrategies": len((env_state or {}).get("strategies") or []),
            "feature": feature,
            "links": self._links(project_id, flag_name, api_url),
            "message": f'{self._prefix()}Removed strategy "{strategy_id}" from "{flag_name}" in "{environment}".',
        }
