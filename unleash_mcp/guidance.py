"""
Markdown guidance for the evaluate_change and detect_flag tools.

The documents tell the calling LLM how to gather signals and how to score
them. Thresholds and weights are rendered from scoring.py so the text always
matches what classify_flag_match / classify_change_risk enforce.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .scoring import (
    CONFIDENCE_THRESHOLDS,
    DETECTION_WEIGHTS,
    LARGE_CHANGE_LINES,
    LARGE_CHANGE_POINTS,
    MEDIUM_CHANGE_LINES,
    MEDIUM_CHANGE_POINTS,
    RISK_PATTERN_POINTS,
    RISK_THRESHOLDS,
)

logger = logging.getLogger("unleash_mcp.guidance")

CONF_DIR = Path(__file__).parent / "conf"
RISK_CATEGORIES = ("critical", "high", "medium", "low")


def load_yaml_config(path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""
    if not path.exists():
        logger.warning(f"Config file not found: {path}")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_risk_patterns(path: Optional[Path] = None) -> Dict[str, Any]:
    return load_yaml_config(path or CONF_DIR / "risk_patterns.yaml")


# ============================================================================
# evaluate_change
# ============================================================================

def render_risk_catalog(catalog: Dict[str, Any]) -> str:
    sections = []
    for category in RISK_CATEGORIES:
        entry = catalog.get(category) or {}
        points = RISK_PATTERN_POINTS[category]
        lines = [
            f"### {entry.get('title', category.upper())}",
            f"*Risk weight: +{points} point{'s' if points != 1 else ''} each*",
            "",
        ]
        for pattern in entry.get("patterns") or []:
            keywords = pattern.get("keywords") or []
            lines.append(f"**{pattern.get('description', '')}**")
            lines.append(f"- Keywords: {', '.join(keywords) if keywords else 'N/A'}")
            lines.append(f"- Reasoning: {pattern.get('reasoning', '')}")
            if pattern.get("examples"):
                lines.append(f"- Examples: {'; '.join(pattern['examples'])}")
            lines.append("")
        sections.append("\n".join(lines).rstrip())

    excluded = (catalog.get("excluded") or {}).get("patterns") or []
    if excluded:
        lines = ["### EXCLUDED - No Flag Needed", ""]
        for pattern in excluded:
            globs = ", ".join(f"`{g}`" for g in pattern.get("file_patterns") or [])
            lines.append(f"- **{pattern.get('description', '')}** ({globs}): {pattern.get('reasoning', '')}")
        sections.append("\n".join(lines))

    return "\n\n---\n\n".join(sections)


def render_risk_scoring() -> str:
    return "\n".join([
        "Add up points for every matched pattern:",
        "",
        *(f"- {category.capitalize()} pattern match: +{RISK_PATTERN_POINTS[category]}" for category in RISK_CATEGORIES),
        f"- Large change (>{LARGE_CHANGE_LINES} lines): +{LARGE_CHANGE_POINTS}",
        f"- Medium change ({MEDIUM_CHANGE_LINES}-{LARGE_CHANGE_LINES} lines): +{MEDIUM_CHANGE_POINTS}",
        "",
        "Risk levels:",
        f"- **critical**: score >= {RISK_THRESHOLDS['critical']}",
        f"- **high**: score >= {RISK_THRESHOLDS['high']}",
        f"- **medium**: score >= {RISK_THRESHOLDS['medium']}",
        f"- **low**: score < {RISK_THRESHOLDS['medium']}",
        "",
        "Call `classify_change_risk(points=...)` with your total to get the level.",
    ])


def build_evaluation_guidance(
    catalog: Dict[str, Any],
    description: Optional[str] = None,
    files: Optional[List[str]] = None,
    repository: Optional[str] = None,
    branch: Optional[str] = None,
    risk_level: Optional[str] = None,
    code_context: Optional[str] = None,
) -> str:
    """Build the evaluate_change document for a proposed change."""
    context_lines = []
    if repository:
        context_lines.append(f"**Repository**: {repository}")
    if branch:
        context_lines.append(f"**Branch**: {branch}")
    if files:
        context_lines.append(f"**Files**: {', '.join(files)}")
    if description:
        context_lines.append(f"**Description**: {description}")
    if risk_level:
        context_lines.append(f"**User-assessed risk**: {risk_level}")

    parts = [
        "# Feature Flag Evaluation",
        "",
        "You are evaluating whether code changes need a feature flag.",
        "",
        "1. Get the current changes (`git diff` / `git diff --staged`) and read the changed files.",
        "2. Check whether an existing flag already guards the changed code. If it does, stop: no new flag.",
        "3. Skip excluded files (tests, config, docs).",
        "4. Match the remaining changes against the risk patterns below and total the points.",
        "5. Classify the total with `classify_change_risk` and follow the next actions.",
    ]

    if context_lines:
        parts += ["", "## Context Provided", "", *context_lines]
    if code_context:
        parts += ["", "### Code Context", "", "```", code_context, "```"]

    parts += [
        "",
        "## Risk Patterns",
        "",
        render_risk_catalog(catalog),
        "",
        "## Risk Scoring",
        "",
        render_risk_scoring(),
        "",
        "## Next Actions",
        "",
        "- **critical / high**: call `detect_flag` to look for a reusable flag, then `create_flag` if none fits.",
        "- **medium**: ask the user whether to guard the change; prefer reusing an existing flag.",
        "- **low**: proceed without a flag.",
        "",
        "## Output Format",
        "",
        "```json",
        '{"needsFlag": true, "riskLevel": "high", "riskScore": 3, "reasoning": "...", '
        '"recommendedAction": "create_new", "suggestedFlag": "new-checkout-flow"}',
        "```",
    ]
    return "\n".join(parts)


# ============================================================================
# detect_flag
# ============================================================================

def render_detection_scoring() -> str:
    weight_lines = [f"- **{method}**: {weight:.2f}" for method, weight in DETECTION_WEIGHTS.items()]
    formula = " + ".join(f"({method} x {weight:.2f})" for method, weight in DETECTION_WEIGHTS.items())
    high = CONFIDENCE_THRESHOLDS["high"]
    medium = CONFIDENCE_THRESHOLDS["medium"]
    return "\n".join([
        "Score each detection method between 0.0 and 1.0, then combine with these weights:",
        "",
        *weight_lines,
        "",
        "```",
        f"final_score = {formula}",
        "```",
        "",
        "Confidence levels:",
        f"- **high** (>= {high}): reuse the existing flag",
        f"- **medium** (>= {medium}): possible match, ask the user",
        f"- **low** (< {medium}): create a new flag",
        "",
        "Call `classify_flag_match(score=...)` with `final_score` to get the recommendation.",
    ])


def build_detection_guidance(
    description: str,
    files: Optional[List[str]] = None,
    code_context: Optional[str] = None,
    default_project: Optional[str] = None,
) -> str:
    """Build the detect_flag document: where to look for existing flags and how to score them."""
    project_hint = default_project or "{projectId}"
    parts = [
        "# Existing Flag Detection",
        "",
        f'You are searching for existing feature flags that might already cover: **"{description}"**',
        "",
        "Goal: find the best existing flag to reuse and avoid duplicate flag creation.",
        "",
        "## Detection Methods",
        "",
        f"1. **unleash-inventory**: read `unleash://projects/{project_hint}/feature-flags` "
        "(page with `?offset=` using `nextUri`) and compare names and descriptions.",
        "2. **file-based**: grep the files being modified for flag checks "
        "(`isEnabled(`, `is_enabled(`, `useFlag(`, `getVariant(`).",
        "3. **git-history**: `git log -S isEnabled --since=3.months` to find recently added flags.",
        "4. **semantic**: match words from the description against flag names (kebab/snake/camel case).",
        "5. **code-context**: look for flag checks that already wrap the modification point.",
    ]
    if files:
        parts += ["", "### Files Being Modified", "", *(f"- `{f}`" for f in files)]
    if code_context:
        parts += ["", "### Code Context", "", "```", code_context, "```"]
    parts += [
        "",
        "## Scoring",
        "",
        render_detection_scoring(),
        "",
        "## What to Return",
        "",
        "```json",
        '{"flagFound": true, "candidate": {"name": "existing-flag-name", "location": "src/file.ts:42", '
        '"confidence": 0.85, "reasoning": "...", "detectionMethod": "file-based"}}',
        "```",
        "",
        'If nothing scores above the low threshold, return `{"flagFound": false, "candidate": null}`.',
    ]
    return "\n".join(parts)
