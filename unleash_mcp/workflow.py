"""
Local change workflow: the guide resources plus decide_local_flow and
prepare_local_change.

Everything here is advisory text for the LLM. The only I/O is reading the
project manifests (package.json, pyproject.toml) of the working directory to
suggest formatter, linter, test and build commands.
"""

import json
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import AppConfig
from .errors import ValidationError

logger = logging.getLogger("unleash_mcp.workflow")

WORKSPACE_SUMMARY_URI = "unleash://workspace/summary"
BACKEND_GUARDRAILS_URI = "unleash://guides/backend-guardrails"
LOCAL_CHANGE_CHECKLIST_URI = "unleash://guides/local-change-checklist"
FEATURE_WORKFLOW_URI = "unleash://guides/feature-development-workflow"

LOCAL_KEYWORDS = (
    "refactor", "rename", "update", "fix", "add", "delete",
    "test", "cleanup", "restructure", "implement",
)
RISK_KEYWORDS = ("flag", "feature flag", "rollout", "toggle", "enable", "disable")

SCRIPT_ROLES = (("formatter", "format"), ("linter", "lint"), ("tests", "test"), ("build", "build"))

LOCKFILES = (
    ("uv.lock", "uv"),
    ("poetry.lock", "poetry"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
)


# ============================================================================
# Workspace signals
# ============================================================================

@dataclass
class RepoSignals:
    """Commands and tooling detected from the project manifests."""
    package_manager: str = "unknown"
    uses_typescript: bool = False
    formatter: Optional[str] = None
    linter: Optional[str] = None
    tests: Optional[str] = None
    build: Optional[str] = None

    def commands(self) -> Dict[str, str]:
        return {
            role: command
            for role, command in (
                ("formatter", self.formatter),
                ("linter", self.linter),
                ("tests", self.tests),
                ("build", self.build),
            )
            if command
        }


def _read_manifest(path: Path) -> Optional[Dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        if path.suffix == ".toml":
            with open(path, "rb") as f:
                return tomllib.load(f)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else None
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable manifest {path}: {e}")
        return None


def discover_repo_signals(root: Optional[Path] = None) -> RepoSignals:
    """
    Inspect ``root`` (default: the working directory) for project commands.

    package.json scripts win over commands inferred from pyproject.toml
    tool tables. Missing or malformed manifests leave the defaults.
    """
    root = Path(root) if root is not None else Path.cwd()
    signals = RepoSignals()

    package = _read_manifest(root / "package.json")
    if package is not None:
        scripts = package.get("scripts") if isinstance(package.get("scripts"), dict) else {}
        for role, script in SCRIPT_ROLES:
            if isinstance(scripts.get(script), str) and scripts[script]:
                setattr(signals, role, scripts[script])
        if isinstance(package.get("packageManager"), str):
            signals.package_manager = package["packageManager"]
        signals.uses_typescript = any(
            isinstance(deps, dict) and "typescript" in deps
            for deps in (package.get("dependencies"), package.get("devDependencies"))
        )

    pyproject = _read_manifest(root / "pyproject.toml")
    if pyproject is not None:
        tools = pyproject.get("tool") if isinstance(pyproject.get("tool"), dict) else {}
        inferred = {
            "formatter": "black ." if "black" in tools else ("ruff format ." if "ruff" in tools else None),
            "linter": "ruff check ." if "ruff" in tools else ("flake8" if "flake8" in tools else None),
            "tests": "pytest" if "pytest" in tools else None,
            "build": "python -m build" if "build-system" in pyproject else None,
        }
        for role, command in inferred.items():
            if command and not getattr(signals, role):
                setattr(signals, role, command)
        if signals.package_manager == "unknown":
            signals.package_manager = "pip"

    for lockfile, manager in LOCKFILES:
        if (root / lockfile).is_file() and signals.package_manager in ("unknown", "pip"):
            signals.package_manager = manager
            break

    return signals


# ============================================================================
# Guide resources
# ============================================================================

def build_workspace_summary(root: Optional[Path] = None) -> str:
    signals = discover_repo_signals(root)
    commands = signals.commands()
    return "\n".join([
        "# Workspace Summary",
        "",
        f"Package manager: {signals.package_manager}",
        f"TypeScript: {'yes' if signals.uses_typescript else 'no'}",
        "",
        "## Key commands",
        *([f"- **{role}**: {command}" for role, command in commands.items()] or ["- (none detected)"]),
        "",
        "Keep changes small and run formatter/linter/tests before completion.",
    ])


def build_backend_guardrails() -> str:
    return "\n".join([
        "# Backend Change Guardrails",
        "",
        "When working on server-side code (services, API controllers, data access):",
        "",
        "1. **Call `prepare_local_change` first.** Capture the task summary and collect impacted files, "
        "repository commands and guardrails before editing anything.",
        "2. **Call `evaluate_change`** with the plan. Backend changes often affect rollout and risk; "
        "the guidance tells you whether a feature flag is required.",
        "3. **Check for existing flags** around the area with `detect_flag`. Reuse or extend them "
        "before creating a new one.",
        "4. **Use `wrap_change`** once a flag is confirmed so the snippet matches the project conventions.",
        "5. **Review the diff and run the checks** (formatter, linter, tests) before finishing.",
        "",
        "Extra considerations:",
        "",
        "- Document rollout and cleanup expectations in the change description.",
        "- Update or add backend tests covering both flag states.",
        "- Watch for database or integration side effects that may require a gradual rollout.",
    ])


def build_local_change_checklist(config: AppConfig) -> str:
    lines = [
        "# Local Change Checklist",
        "",
        "Follow this sequence before touching code:",
        "",
        "0. If you are unsure whether this is a local code change, call **`decide_local_flow`**.",
        "1. **Call `prepare_local_change`** with the task summary to collect guardrails, suggested files "
        "and test commands.",
        "2. Review the output and open any referenced resources.",
        "3. **Call `evaluate_change`** with the planned work, even if it is only a proposal, to assess "
        "flag needs and risk.",
        "4. If a flag is required, **call `create_flag`**, then **`wrap_change`** for language-specific snippets.",
        "5. Implement the smallest safe diff, run the recommended checks, and capture follow-up tasks.",
        "",
        "## Quick Hints",
        "",
        "- Keep scopes tight; prefer iterative changes gated behind the new flag.",
        "- Call out risky areas (auth, payments, migrations) in the tool inputs.",
        "- Plan cleanup from the start; `cleanup_flag` removes the flag once rolled out.",
        f"- Read `{WORKSPACE_SUMMARY_URI}` for formatter/linter/test commands.",
        "",
        f"Default project: `{config.unleash.default_project}`"
        if config.unleash.default_project
        else "Set `UNLEASH_DEFAULT_PROJECT` to avoid passing project_id manually.",
    ]
    if config.server.dry_run:
        lines.append("Running in **dry-run** mode: Unleash API calls are validated but not executed.")
    return "\n".join(lines)


def build_feature_workflow(config: AppConfig) -> str:
    lines = [
        "# Feature Development with Unleash MCP",
        "",
        "Use this workflow whenever you begin a product change. It keeps work gated behind Unleash "
        "feature flags and tells you which tool to call next.",
        "",
        "## 1. Assess the change first",
        "",
        "- Call **`prepare_local_change`** with the task summary to gather guardrails, repository "
        "commands and next steps.",
        "- Follow up with **`evaluate_change`** as soon as a new feature or risky modification is mentioned.",
        "- Provide repository, branch, files and any risk notes so the change can be scored.",
        "- When the evaluation says a flag is needed, move to creation immediately.",
        "",
        "## 2. Create the flag if required",
        "",
        "- Run **`detect_flag`** first so an existing flag is reused instead of duplicated.",
        "- Use **`create_flag`** with the recommended name, type and description.",
        "- Keep descriptions explicit about rollout intent and cleanup expectations.",
    ]
    if config.unleash.default_project:
        lines.append(
            f"- Default project detected: `{config.unleash.default_project}`. "
            "Override only when the work belongs elsewhere."
        )
    if config.server.dry_run:
        lines.append("- The server runs in **dry-run** mode: inputs are validated and logged, Unleash is not called.")
    lines += [
        "",
        "## 3. Wrap the implementation",
        "",
        "- Call **`wrap_change`** right after flag creation (or when reusing an existing flag).",
        "- Pass the target file name and any code context so the snippet matches local conventions.",
        "- Apply the recommended snippet, then test the guarded code path.",
        "",
        "## 4. Close the loop",
        "",
        "- Confirm tests or QA plans cover both flag states.",
        "- Record rollout decisions (gradual rollout with `set_flag_rollout`, kill switches, cleanup owner).",
        "- If the evaluation said no new flag is needed, note why and proceed without one.",
        "- Once fully rolled out, remove the flag with **`cleanup_flag`**.",
        "",
        "Keep this workflow in mind: **prepare -> evaluate -> detect -> create -> wrap -> verify -> clean up**.",
    ]
    return "\n".join(lines)


# ============================================================================
# Tools
# ============================================================================

def _require_task(task: Any) -> str:
    if not isinstance(task, str) or not task.strip():
        raise ValidationError("task must be a non-empty string")
    return task.strip()


def decide_local_flow(task: str) -> Dict[str, Any]:
    """Keyword check: does the request look like a local code change, and what comes next."""
    task = _require_task(task)
    lowered = task.lower()
    local_intent = any(keyword in lowered for keyword in LOCAL_KEYWORDS)
    risk_intent = any(keyword in lowered for keyword in RISK_KEYWORDS)

    next_tool = "evaluate_change" if risk_intent else ("prepare_local_change" if local_intent else None)
    logger.debug(f"decide_local_flow: local={local_intent} risk={risk_intent} next={next_tool}")

    reasons = [
        "Task mentions code-change verbs that usually mean editing local files."
        if local_intent else "Did not find explicit code-change verbs; double-check before editing."
    ]
    if risk_intent:
        reasons.append("Mentions feature flag or rollout concepts, so run evaluate_change to plan gating.")

    guidance = "\n".join([
        "# Local Flow Recommendation",
        "",
        f"Task: {task}",
        "",
        f"Use local workflow: {'yes' if local_intent else 'unclear'}",
        f"Next tool: {next_tool or 'none (ask the user for more detail)'}",
        "",
        "## Reasons",
        "",
        *(f"- {reason}" for reason in reasons),
    ])
    return {"useLocal": local_intent, "next": next_tool, "reasons": reasons, "guidance": guidance}


NEXT_TOOLS = (
    ("evaluate_change", "Score risk, detect parent flags, and decide whether to create or reuse a flag before editing files."),
    ("create_flag", "Create the feature flag if the evaluation recommends introducing one."),
    ("wrap_change", "Collect language-specific snippets to wrap the implementation safely."),
)

PLAN = (
    "Summarize the requested change and desired outcome.",
    "Call `evaluate_change` with this summary (include repository, files, risk) to assess flag requirements.",
    "Identify candidate files/components to touch and inspect existing flag coverage.",
    "Draft the smallest diff guarded by the relevant feature flag.",
    "Run formatter, linter, and tests before finalizing the change.",
)


def prepare_local_change(task: str, hints: Optional[List[str]] = None, root: Optional[Path] = None) -> Dict[str, Any]:
    """Plan, repository commands and next tools for a local change."""
    task = _require_task(task)
    hints = [h for h in hints or [] if isinstance(h, str) and h.strip()]
    logger.info(f"Preparing local change for task: {task}")

    commands = discover_repo_signals(root).commands()
    lines = [
        "# Local Change Preparation",
        "",
        f"**Task**: {task}",
    ]
    if hints:
        lines += ["", f"**Hints**: {', '.join(f'`{h}`' for h in hints)}"]
    lines += [
        "",
        "## Recommended Flow",
        "",
        "1. Use this output to understand repository guardrails before editing files.",
        "2. Call `evaluate_change` with this task summary to plan flag usage.",
        f"3. Review `{LOCAL_CHANGE_CHECKLIST_URI}` and `{WORKSPACE_SUMMARY_URI}` for conventions.",
        "4. Inspect existing flag usage around candidate files before drafting changes.",
        "5. Apply the smallest safe diff, guarded by the recommended flag, and run local checks.",
    ]
    if commands:
        lines += ["", "## Repository Commands", *(f"- {role.capitalize()}: {command}" for role, command in commands.items())]
    lines += ["", "## Next Tools", *(f"- **{name}**: {reason}" for name, reason in NEXT_TOOLS)]

    return {
        "task": task,
        "hints": hints,
        "plan": list(PLAN),
        "repoCommands": commands,
        "nextTools": [{"name": name, "reason": reason} for name, reason in NEXT_TOOLS],
        "nextActions": [name for name, _ in NEXT_TOOLS],
        "resources": [WORKSPACE_SUMMARY_URI, LOCAL_CHANGE_CHECKLIST_URI, FEATURE_WORKFLOW_URI],
        "impactedFiles": hints,
        "guidance": "\n".join(lines),
    }
