"""
Guidance for cleanup_flag: removing a rolled-out or abandoned flag from code.

Without a preserve path the result asks the LLM to get one from the user
first; with one it walks through search, pattern handling, edits and
verification while keeping only the chosen branch.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .languages import LanguageCatalog

logger = logging.getLogger("unleash_mcp.cleanup")

PRESERVE_PATHS = ("enabled", "disabled")


def _opposite(preserve: str) -> str:
    return "disabled" if preserve == "enabled" else "enabled"


def _scope(files: List[str]) -> str:
    return f"in {len(files)} specific file(s)" if files else "across the codebase"


def render_pattern_actions(preserve: str) -> str:
    """How each usage pattern collapses when only ``preserve`` survives."""
    keep_enabled = preserve == "enabled"
    patterns = [
        (
            "A: If-Else Block",
            "if (isEnabled('flag')) {\n  // Code A\n} else {\n  // Code B\n}",
            f"Remove the if-else and keep {'Code A' if keep_enabled else 'Code B'}.",
        ),
        (
            "B: Guard Clause",
            "if (!isEnabled('flag')) {\n  return earlyExit;\n}\n// Main code here",
            "Remove the guard clause and keep the main code."
            if keep_enabled else "Keep the early exit and remove everything after it.",
        ),
        (
            "C: Ternary Operator",
            "const value = isEnabled('flag') ? valueA : valueB;",
            f"Replace with `const value = {'valueA' if keep_enabled else 'valueB'};`.",
        ),
        (
            "D: Logical AND/OR",
            "isEnabled('flag') && doSomething();\nisEnabled('flag') || doFallback();",
            "Keep the call after `&&`, drop the `||` statement."
            if keep_enabled else "Drop the `&&` statement, keep the call after `||`.",
        ),
        (
            "E: Component Rendering (JSX)",
            "{isEnabled('flag') && <Component />}\n{isEnabled('flag') ? <ComponentA /> : <ComponentB />}",
            "Keep Component/ComponentA without the condition."
            if keep_enabled else "Keep ComponentB, or remove the whole block.",
        ),
        (
            "F: Variable Assignment",
            "const isFlagEnabled = isEnabled('flag');\nif (isFlagEnabled) { ... }",
            "Remove the assignment, then handle the condition as pattern A.",
        ),
        (
            "G: Nested Conditions",
            "if (someCondition) {\n  if (isEnabled('flag')) {\n    // Nested code\n  }\n}",
            "Remove the inner flag check and keep the nested code inside the outer condition."
            if keep_enabled else "Remove the entire inner block.",
        ),
    ]
    sections = [
        f"### Pattern {title}\n```\n{code}\n```\n**Action**: {action}"
        for title, code, action in patterns
    ]
    return "## Step 2: Identify Usage Patterns\n\n" + "\n\n".join(sections)


def render_cleanup_example(preserve: str) -> str:
    if preserve == "enabled":
        flagged, other = "new_implementation()", "old_implementation()"
        kept = flagged
    else:
        flagged, other = "experimental_implementation()", "stable_implementation()"
        kept = other
    return "\n".join([
        "**Before:**",
        "```python",
        'if unleash_client.is_enabled("example-flag"):',
        f"    return {flagged}",
        "else:",
        f"    return {other}",
        "```",
        "",
        "**After:**",
        "```python",
        f"return {kept}",
        "```",
    ])


def build_ask_user_guidance(flag_name: str, files: List[str]) -> Dict[str, Any]:
    """Result asking the LLM to find out which branch to keep."""
    files_arg = f"files={files!r}" if files else "# files optional"
    guidance = "\n".join([
        f'# Feature Flag Cleanup: "{flag_name}"',
        "",
        "## User Input Required",
        "",
        f"Before cleaning up {_scope(files)}, find out which code path to preserve.",
        "",
        f'Ask the user: "Which code path should be preserved when removing the \'{flag_name}\' flag?"',
        "",
        '1. **"enabled"**: keep the code that runs when the flag is on. Usual for a completed rollout.',
        '2. **"disabled"**: keep the code that runs when the flag is off. Usual for a failed '
        "experiment, a retired kill switch, or a revert to the original behaviour.",
        "",
        "## After the User Responds",
        "",
        "Call this tool again with `preserve_path`:",
        "",
        "```",
        f'cleanup_flag(flag_name="{flag_name}", preserve_path="enabled" or "disabled", {files_arg})',
        "```",
        "",
        "## Context to Help the User Decide",
        "",
        "1. Search for the flag to see how it is used",
        "2. Check recent commits for the flag's history",
        "3. Read both code paths so you can explain what each choice keeps",
    ])
    return {
        "requiresUserInput": True,
        "flagName": flag_name,
        "targetFiles": files,
        "nextStep": "Ask the user which path to preserve, then call cleanup_flag with preserve_path",
        "guidance": guidance,
    }


def build_cleanup_guidance(
    catalog: LanguageCatalog,
    flag_name: str,
    preserve_path: Optional[str] = None,
    files: Optional[List[str]] = None,
    language: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the cleanup_flag result.

    The language for import hints comes from ``language`` when given,
    otherwise from the first file's extension; with neither, no import
    section is added.

    Raises:
        ValidationError: empty flag name or unknown preserve path.
    """
    if not isinstance(flag_name, str) or not flag_name.strip():
        raise ValidationError("flag_name must be a non-empty string")
    flag_name = flag_name.strip()
    files = [f for f in files or [] if f]

    if preserve_path is None or not str(preserve_path).strip():
        logger.info(f'Cleanup of "{flag_name}" needs a preserve path from the user')
        return build_ask_user_guidance(flag_name, files)

    preserve = str(preserve_path).strip().lower()
    if preserve not in PRESERVE_PATHS:
        raise ValidationError(
            f"preserve_path must be one of {', '.join(PRESERVE_PATHS)}",
            hint="Use 'enabled' to keep the new behaviour, 'disabled' to keep the old one.",
        )
    removed = _opposite(preserve)

    detected = None
    if language:
        detected = catalog.detect(language=language)
    elif files:
        detected = catalog.by_extension(files[0])

    search_scope = f"specific files: {', '.join(files)}" if files else "the entire codebase"
    file_list = f"\n**Files to search**: {', '.join(f'`{f}`' for f in files)}\n" if files else ""

    sections = [
        f'# Feature Flag Cleanup: "{flag_name}"',
        "",
        "## Summary",
        "",
        f'You are removing the feature flag **"{flag_name}"** {_scope(files)}.',
        "",
        f"**Preserve Path**: **{preserve.upper()}**. The code must run as if the flag is always {preserve}.",
        "",
        "## Safety First",
        "",
        "1. Make sure the current code is committed",
        "2. Make sure tests exist and pass before the cleanup",
        f"3. You keep the **{preserve}** path and remove the **{removed}** path",
        "",
        f"Scope: {search_scope}.",
        "",
        "## Step 1: Find All Flag Occurrences",
        file_list,
        "```bash",
        f'Grep pattern: "{flag_name}" output_mode: "content" -n: true -C: 3',
        "```",
        "",
        "Look for direct checks, variable assignments, comments, tests, and configuration or "
        "initialization code mentioning the flag. List every file and line.",
        "",
        render_pattern_actions(preserve),
        "",
        "## Step 3: Execute Cleanup",
        "",
        "For each file: read it in full, plan the edits, then edit from the bottom of the file up "
        "so line numbers stay valid.",
        "",
        render_cleanup_example(preserve),
        "",
        "Afterwards remove imports that became unused. Remove client initialization or flag "
        "providers only if no other flag is left in the project.",
    ]
    if detected is not None and detected.cleanup_imports:
        sections += [
            "",
            f"### Common {detected.display_name} imports to remove",
            *(f"- `{line}`" for line in detected.cleanup_imports),
            "",
            "Only remove them if nothing else in the file uses them.",
        ]
    sections += [
        "",
        "## Step 4: Verify and Test",
        "",
        f'1. Search for "{flag_name}" again; only docs or changelogs may still mention it',
        "2. Make sure the code still compiles or parses",
        "3. Run the test suite; update or delete tests that only covered the removed path",
        "4. Review deeply nested or multi-condition cases by hand",
        "",
        "## Common Pitfalls",
        "",
        "- Leaving the unwanted branch behind as dead code",
        "- Breaking indentation when unwrapping blocks",
        "- Forgetting unused imports or flag providers",
        "- Skipping tests that exercised the removed path",
        "",
        "## Reporting Results",
        "",
        "Report the number of files changed, what was removed per file, any case that needs manual "
        "review, and whether the tests pass.",
        "",
        f"Remember: you are preserving the **{preserve}** path and removing the **{removed}** path.",
    ]

    logger.info(f'Generated cleanup guidance for "{flag_name}" (preserve: {preserve})')
    return {
        "flagName": flag_name,
        "preservePath": preserve,
        "targetFiles": files,
        "detectedLanguage": detected.key if detected else None,
        "guidance": "\n".join(sections),
    }
