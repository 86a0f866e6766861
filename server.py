"""
Unleash MCP Server

A Model Context Protocol server that lets an LLM client manage Unleash
feature flags through the Admin API.

Key Features:
- Flag lifecycle tools (create, inspect, toggle, roll out, remove strategies)
- Cached, paginated inventory of projects and flags (unleash:// resources)
- Guidance for deciding when a change needs a flag and for reusing existing flags
- Language-aware snippets for wrapping code in a flag and for removing it again
- Local change workflow guides (unleash://guides/*, unleash://workspace/summary)
- Deterministic classifiers for flag-match confidence and change risk
- Dry-run mode that never touches the Unleash API
"""

from fastmcp import FastMCP, Context
from contextlib import asynccontextmanager
from typing import List, Dict, Optional, Literal, Any
import logging
import sys

from unleash_mcp import __version__
from unleash_mcp.client import UnleashClient
from unleash_mcp.config import AppConfig
from unleash_mcp.errors import ConfigError, UnleashMcpError, ValidationError
from unleash_mcp.flags import FlagService
from unleash_mcp.guidance import build_detection_guidance, build_evaluation_guidance, load_risk_patterns
from unleash_mcp.cleanup import build_cleanup_guidance
from unleash_mcp.inventory import InventoryService
from unleash_mcp.languages import load_languages
from unleash_mcp.models import CollectionKey, ViewRequest
from unleash_mcp.scoring import classify_confidence, classify_risk
from unleash_mcp.uris import FLAGS_URI_TEMPLATE, PROJECTS_URI
from unleash_mcp.workflow import (
    BACKEND_GUARDRAILS_URI,
    FEATURE_WORKFLOW_URI,
    LOCAL_CHANGE_CHECKLIST_URI,
    WORKSPACE_SUMMARY_URI,
    build_backend_guardrails,
    build_feature_workflow,
    build_local_change_checklist,
    build_workspace_summary,
    decide_local_flow as decide_local_flow_guidance,
    prepare_local_change as prepare_local_change_guidance,
)
from unleash_mcp.wrapping import build_wrap_guidance


LOG_LEVELS = {
    "silent": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

# Initialize configuration
try:
    config = AppConfig.from_env(sys.argv[1:])
except ConfigError as e:
    print(f"Configuration error: {e}", file=sys.stderr)
    sys.exit(1)

# Configure logging (stderr; stdout carries the MCP stdio transport)
logging.basicConfig(
    level=LOG_LEVELS[config.server.log_level],
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("unleash_mcp.server")


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Close the shared Admin API client when the server shuts down."""
    async with client:
        yield


# Initialize MCP server
mcp = FastMCP(
    "unleash-mcp",
    lifespan=lifespan,
    instructions=(
        "Manage Unleash feature flags. Start local work with prepare_local_change, use evaluate_change "
        "to decide whether a change needs a flag and detect_flag to look for a reusable one, then "
        "create_flag, wrap_change, set_flag_rollout and toggle_flag_environment. Remove finished flags "
        "with cleanup_flag. Browse unleash://projects and "
        "unleash://projects/{projectId}/feature-flags for the current inventory."
    ),
)

# Initialize components
client = UnleashClient(
    base_url=config.unleash.base_url,
    pat=config.unleash.pat,
    dry_run=config.server.dry_run,
    timeout_sec=config.http.timeout_sec,
)
inventory = InventoryService(
    list_projects=client.list_projects,
    list_feature_flags=client.list_feature_flags,
    dry_run=config.server.dry_run,
)
flags = FlagService(client, config)
risk_patterns = load_risk_patterns()
languages = load_languages()
registered_tools = set()


def tool(fn):
    """Register ``fn`` as an MCP tool unless UNLEASH_DISABLED_TOOLS lists it."""
    registered_tools.add(fn.__name__)
    if not config.is_tool_enabled(fn.__name__):
        logger.info(f"Disabled tool: {fn.__name__}")
        return fn
    return mcp.tool()(fn)


def error_result(e: UnleashMcpError, tool_name: str) -> Dict[str, Any]:
    logger.error(f"{tool_name} failed: [{e.code}] {e.message}")
    return {"ok": False, "error": e.to_dict()}


async def notify_progress(ctx: Optional[Context], progress: int, total: int, message: str) -> None:
    """Report progress to the client; notification failures never fail the tool."""
    if ctx is None:
        return
    try:
        await ctx.report_progress(progress, total)
        await ctx.info(message)
    except Exception as e:
        logger.debug(f"Progress notification failed: {e}")


# ============================================================================
# TOOL: create_flag - Create a feature flag
# ============================================================================

@tool
async def create_flag(
    name: str,
    type: Literal["release", "experiment", "operational", "kill-switch", "permission"],
    description: str,
    project_id: Optional[str] = None,
    impression_data: bool = False,
    ctx: Context = None,
) -> Dict[str, Any]:
    """
    Create a feature flag in Unleash.

    Types: release (gradual rollout), experiment (A/B tests), operational
    (system behaviour), kill-switch (emergency shutoff), permission (access control).
    project_id falls back to UNLEASH_DEFAULT_PROJECT.
    """
    try:
        await notify_progress(ctx, 0, 100, f'Creating feature flag "{name}"...')
        result = await flags.create_flag(name, type, description, project_id, impression_data)
        await notify_progress(ctx, 100, 100, f'Feature flag "{name}" created')
        return {"ok": True, **result}
    except UnleashMcpError as e:
        return error_result(e, "create_flag")


# ============================================================================
# TOOL: get_flag_state - Inspect a feature flag
# ============================================================================

@tool
async def get_flag_state(
    flag_name: str,
    project_id: Optional[str] = None,
    environment: Optional[str] = None,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Fetch a flag's metadata and per-environment strategies. environment filters case-insensitively."""
    try:
        await notify_progress(ctx, 0, 100, f'Fetching feature "{flag_name}"...')
        result = await flags.get_flag_state(flag_name, project_id, environment)
        await notify_progress(ctx, 100, 100, f'Fetched feature "{flag_name}"')
        return {"ok": True, **result}
    except UnleashMcpError as e:
        return error_result(e, "get_flag_state")


# ============================================================================
# TOOL: toggle_flag_environment - Enable/disable in one environment
# ============================================================================

@tool
async def toggle_flag_environment(
    flag_name: str,
    enabled: bool,
    environment: Optional[str] = None,
    project_id: Optional[str] = None,
    ctx: Context = None,
) -> Dict[str, Any]:
    """
    Enable or disable a flag in one environment.

    For gradual rollouts configure a flexibleRollout strategy first with set_flag_rollout.
    environment falls back to UNLEASH_DEFAULT_ENVIRONMENT.
    """
    action = "Enabling" if enabled else "Disabling"
    try:
        await notify_progress(ctx, 0, 100, f'{action} "{flag_name}"...')
        result = await flags.toggle_environment(flag_name, enabled, environment, project_id)
        await notify_progress(ctx, 100, 100, result["message"])
        return {"ok": True, **result}
    except UnleashMcpError as e:
        return error_result(e, "toggle_flag_environment")


# ============================================================================
# TOOL: set_flag_rollout - Configure flexibleRollout strategy
# ============================================================================

@tool
async def set_flag_rollout(
    flag_name: str,
    rollout_percentage: float,
    environment: Optional[str] = None,
    project_id: Optional[str] = None,
    group_id: Optional[str] = None,
    stickiness: Optional[str] = None,
    title: Optional[str] = None,
    disabled: Optional[bool] = None,
    variants: Optional[List[Dict[str, Any]]] = None,
    ctx: Context = None,
) -> Dict[str, Any]:
    """
    Create or update the flexibleRollout strategy of a flag in one environment.

    rollout_percentage is 0-100. group_id defaults to the flag name, stickiness to "default".
    variants: [{name, weight (0-1000), weightType?, stickiness?, payload?: {type, value}}]
    """
    try:
        await notify_progress(ctx, 0, 100, f'Configuring rollout for "{flag_name}" ({rollout_percentage}%)...')
        result = await flags.set_rollout(
            flag_name,
            rollout_percentage,
            environment=environment,
            project_id=project_id,
            group_id=group_id,
            stickiness=stickiness,
            title=title,
            disabled=disabled,
            variants=variants,
        )
        await notify_progress(ctx, 100, 100, result["message"])
        return {"ok": True, **result}
    except UnleashMcpError as e:
        return error_result(e, "set_flag_rollout")


# ============================================================================
# TOOL: remove_flag_strategy - Delete a strategy
# ============================================================================

@tool
async def remove_flag_strategy(
    flag_name: str,
    strategy_id: str,
    environment: Optional[str] = None,
    project_id: Optional[str] = None,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Remove a strategy from a flag in one environment. Use get_flag_state to find strategy ids."""
    try:
        await notify_progress(ctx, 0, 100, f'Removing strategy "{strategy_id}" from "{flag_name}"...')
        result = await flags.remove_strategy(flag_name, strategy_id, environment, project_id)
        await notify_progress(ctx, 100, 100, result["message"])
        return {"ok": True, **result}
    except UnleashMcpError as e:
        return error_result(e, "remove_flag_strategy")


# ============================================================================
# TOOLS: Inventory views
# ============================================================================

@tool
async def list_projects(
    limit: Optional[int] = None,
    order: Optional[Literal["asc", "desc"]] = None,
    offset: Optional[int] = None,
) -> Dict[str, Any]:
    """List projects, newest first by default (limit 20). Follow nextUri or nextOffset for more."""
    request = ViewRequest.of(limit=limit, order=order, offset=offset)
    try:
        result = await inventory.read_projects_view(request)
        return {"ok": True, **inventory.render(CollectionKey.projects(), request, result)}
    except UnleashMcpError as e:
        return error_result(e, "list_projects")


@tool
async def list_feature_flags(
    project_id: Optional[str] = None,
    limit: Optional[int] = None,
    order: Optional[Literal["asc", "desc"]] = None,
    offset: Optional[int] = None,
) -> Dict[str, Any]:
    """List a project's flags alphabetically by default (limit 50). project_id falls back to the default project."""
    request = ViewRequest.of(limit=limit, order=order, offset=offset)
    try:
        resolved = config.resolve_project_id(project_id)
        result = await inventory.read_flags_view(resolved, request)
        return {"ok": True, **inventory.render(CollectionKey.flags(resolved), request, result)}
    except UnleashMcpError as e:
        return error_result(e, "list_feature_flags")


@tool
async def read_inventory(uri: str) -> Dict[str, Any]:
    """Read an unleash:// inventory URI, including ?limit=&order=&offset= views and nextUri links."""
    try:
        return {"ok": True, **(await inventory.read_uri(uri))}
    except UnleashMcpError as e:
        return error_result(e, "read_inventory")


# ============================================================================
# TOOLS: Classifiers
# ============================================================================

@tool
def classify_flag_match(score: float) -> Dict[str, Any]:
    """Bucket a combined detection score (0.0-1.0): >= 0.7 use_existing, >= 0.4 ask_user, else create_new."""
    try:
        return {"ok": True, **classify_confidence(score).to_dict()}
    except UnleashMcpError as e:
        return error_result(e, "classify_flag_match")


@tool
def classify_change_risk(points: int) -> Dict[str, Any]:
    """Bucket accumulated risk points: >= 5 critical, >= 3 high, >= 2 medium, else low."""
    try:
        return {"ok": True, **classify_risk(points).to_dict()}
    except UnleashMcpError as e:
        return error_result(e, "classify_change_risk")


# ============================================================================
# TOOLS: Guidance
# ============================================================================

@tool
def evaluate_change(
    description: Optional[str] = None,
    files: Optional[List[str]] = None,
    repository: Optional[str] = None,
    branch: Optional[str] = None,
    risk_level: Optional[Literal["low", "medium", "high", "critical"]] = None,
    code_context: Optional[str] = None,
) -> Dict[str, Any]:
    """Get step-by-step guidance for deciding whether a code change should sit behind a feature flag."""
    guidance = build_evaluation_guidance(
        risk_patterns,
        description=description,
        files=files or [],
        repository=repository,
        branch=branch,
        risk_level=risk_level,
        code_context=code_context,
    )
    return {"ok": True, "guidance": guidance}


@tool
def detect_flag(
    description: str,
    files: Optional[List[str]] = None,
    code_context: Optional[str] = None,
) -> Dict[str, Any]:
    """Get guidance for finding an existing flag that already covers a change, to avoid duplicates."""
    if not description or not description.strip():
        return error_result(ValidationError("description must be a non-empty string"), "detect_flag")
    guidance = build_detection_guidance(
        description.strip(),
        files=files or [],
        code_context=code_context,
        default_project=config.unleash.default_project,
    )
    return {"ok": True, "guidance": guidance}


@tool
def wrap_change(
    flag_name: str,
    language: Optional[str] = None,
    file_name: Optional[str] = None,
    code_context: Optional[str] = None,
    framework_hint: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Get language-specific snippets and instructions for guarding code with a flag.

    language is auto-detected from file_name (typescript, javascript, python, go,
    ruby, php, csharp, java, rust). framework_hint (React, Express, Django, Rails, ...)
    selects a framework template. Call after create_flag or when reusing a flag.
    """
    try:
        result = build_wrap_guidance(
            languages,
            flag_name,
            language=language,
            file_name=file_name,
            code_context=code_context,
            framework_hint=framework_hint,
        )
        return {"ok": True, **result}
    except UnleashMcpError as e:
        return error_result(e, "wrap_change")


@tool
def cleanup_flag(
    flag_name: str,
    preserve_path: Optional[Literal["enabled", "disabled"]] = None,
    files: Optional[List[str]] = None,
    language: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Get instructions for removing a flag from the codebase while keeping one code path.

    preserve_path "enabled" keeps the code that runs when the flag is on (finished rollouts),
    "disabled" keeps the code that runs when it is off (dropped experiments, retired kill
    switches). Without it the result asks you to get the choice from the user first.
    """
    try:
        return {"ok": True, **build_cleanup_guidance(languages, flag_name, preserve_path, files, language)}
    except UnleashMcpError as e:
        return error_result(e, "cleanup_flag")


# ============================================================================
# TOOLS: Local workflow
# ============================================================================

@tool
def decide_local_flow(task: str) -> Dict[str, Any]:
    """Decide whether a request should use the local workflow and which tool to call next."""
    try:
        return {"ok": True, **decide_local_flow_guidance(task)}
    except UnleashMcpError as e:
        return error_result(e, "decide_local_flow")


@tool
def prepare_local_change(task: str, hints: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Gather repository commands, a plan and the next tools before editing files locally.

    hints: suspected file paths or components involved.
    """
    try:
        return {"ok": True, **prepare_local_change_guidance(task, hints)}
    except UnleashMcpError as e:
        return error_result(e, "prepare_local_change")


# ============================================================================
# RESOURCES: Inventory
# ============================================================================

@mcp.resource(PROJECTS_URI, mime_type="application/json")
async def projects_resource() -> str:
    """Unleash projects, newest first."""
    try:
        return await inventory.read_projects_resource()
    except UnleashMcpError as e:
        logger.error(f"Failed to read {PROJECTS_URI}: [{e.code}] {e.message}")
        raise


@mcp.resource(FLAGS_URI_TEMPLATE.replace("{projectId}", "{project_id}"), mime_type="application/json")
async def feature_flags_resource(project_id: str) -> str:
    """Feature flags of one project, alphabetical."""
    try:
        return await inventory.read_flags_resource(project_id)
    except UnleashMcpError as e:
        logger.error(f"Failed to read flags of project '{project_id}': [{e.code}] {e.message}")
        raise


# ============================================================================
# RESOURCES: Workflow guides
# ============================================================================

@mcp.resource(FEATURE_WORKFLOW_URI, mime_type="text/markdown")
def feature_workflow_resource() -> str:
    """Start here for a feature or risky change: when to evaluate, create, wrap and clean up flags."""
    return build_feature_workflow(config)


@mcp.resource(LOCAL_CHANGE_CHECKLIST_URI, mime_type="text/markdown")
def local_change_checklist_resource() -> str:
    """Checklist for preparing local modifications."""
    return build_local_change_checklist(config)


@mcp.resource(BACKEND_GUARDRAILS_URI, mime_type="text/markdown")
def backend_guardrails_resource() -> str:
    """Server-side checklist: call prepare_local_change and evaluate_change before touching code."""
    return build_backend_guardrails()


@mcp.resource(WORKSPACE_SUMMARY_URI, mime_type="text/markdown")
def workspace_summary_resource() -> str:
    """Package manager and formatter/linter/test/build commands of the working directory."""
    return build_workspace_summary()


for tool_name in config.server.disabled_tools:
    if tool_name not in registered_tools:
        logger.warning(f"Cannot disable unknown tool '{tool_name}'")


# ============================================================================
# Run server
# ============================================================================

def main() -> None:
    logger.info(f"Starting Unleash MCP Server v{__version__}...")
    logger.info(f"Unleash base URL: {config.unleash.base_url}")
    logger.info(f"Default project: {config.unleash.default_project or '(none)'}")
    if config.server.dry_run:
        logger.info("Dry-run mode: no changes will be sent to Unleash")
    mcp.run()


if __name__ == "__main__":
    main()
