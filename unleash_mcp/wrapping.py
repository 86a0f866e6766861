"""
Guidance for wrap_change: how to guard new code behind an existing flag.

The document tells the LLM to look for the flag conventions already used in
the repository first (imports, client variable, method, style) and only
fall back to the catalog templates when it finds none.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .languages import FLAG_PLACEHOLDER, Language, LanguageCatalog, WrapperTemplate

logger = logging.getLogger("unleash_mcp.wrapping")


def _fence(language: Language, code: str) -> str:
    return f"```{language.key}\n{code}\n```"


def render_search_instructions(language: Language, flag_name: str) -> str:
    """Steps for finding and copying the repository's existing flag conventions."""
    method = language.common_methods[0] if language.common_methods else "isEnabled"
    grep_lines = [f"- `{m}`: common flag check method" for m in language.common_methods]
    grep_commands = [
        f'```bash\nGrep pattern: "{m}" output_mode: "content" -n: true head_limit: 5\n```'
        for m in language.common_methods
    ]
    imports = list(dict.fromkeys(t.import_statement for t in language.templates if t.import_statement))
    styles = []
    for i, template in enumerate(language.templates_for("example-flag")[:3], 1):
        label = f"{template.pattern} pattern" + (f" for {template.framework}" if template.framework else "")
        styles.append(f"**{i}. {template.explanation}:**\n{_fence(language, template.usage)}\n*{label}*")

    return "\n".join([
        "# How to Search for Existing Flag Patterns",
        "",
        f'Before wrapping code with the flag "{flag_name}", search the codebase for existing '
        "feature flag usage and match it.",
        "",
        "## Step 1: Search for Existing Flag Usage",
        "",
        f"Search patterns for {language.display_name} (try each one):",
        *grep_lines,
        "",
        *grep_commands,
        "",
        "## Step 2: Analyze the Search Results",
        "",
        "### A. Import Patterns",
        "How is the Unleash client imported, from which path, and in what form? Copy the exact import.",
        "",
        _fence(language, "\n".join(imports)),
        "",
        "### B. Client Variable Name",
        *(f"- `{name}.{method}('flag')`: client variable is \"{name}\"" for name in language.common_client_names),
        "",
        "### C. Method Name",
        *(f"- `{m}` ({language.display_name})" for m in language.common_methods),
        "",
        "### D. Wrapping Style",
        f"Common patterns for {language.display_name}:",
        "",
        "\n\n".join(styles),
        "",
        "Use the style that appears most often in the search results.",
        "",
        "## Step 3: Read Full Context from the Best Match",
        "",
        "Read the whole file of the best match to see the full import, the indentation, "
        "what happens when the flag is disabled, and how errors are handled.",
        "",
        "## Step 4: Match the Pattern When Wrapping",
        "",
        "1. Use the EXACT import you found",
        "2. Use the EXACT client variable name you found",
        "3. Use the EXACT method name you found",
        "4. Use the SAME wrapping style you found",
        "5. Match the indentation of the surrounding code",
        f"6. Use the exact flag name: `{flag_name}`",
        "",
        "## If No Patterns Found",
        "",
        "Use the language defaults from the wrapping instructions below.",
        "",
        "## Important Notes",
        "",
        "- Always search first; do not assume patterns",
        "- Grep gives snippets, reading the file gives context",
        "- Try different search patterns if the first one finds nothing",
        "- Preserve indentation, spacing and naming conventions",
    ])


def render_wrapping_instructions(language: Language, flag_name: str) -> str:
    """Where to put the flag check, with the catalog's snippets filled in."""
    if_block = language.template("if-block")
    guard = language.first("guard")
    hook = language.first("hook")
    default = language.default_template().render(flag_name)
    runtime_example = guard.render(flag_name) if guard else default

    lines = [
        "# How to Wrap Code with a Feature Flag",
        "",
        "## Runtime Controllability",
        "",
        "A flag must be toggleable without a redeploy. Check it INSIDE the execution path "
        "(request handler, function body, scheduled job body):",
        "",
        _fence(language, runtime_example.usage),
        "",
        "NEVER wrap route registration, middleware mounting or job scheduling. Those run once "
        "at startup, so toggling the flag later has no effect:",
        "",
        _fence(language, language.anti_pattern.replace(FLAG_PLACEHOLDER, flag_name)),
        "",
        "## Wrapping Templates",
        "",
    ]
    if if_block:
        lines += ["**If-block style:**", _fence(language, if_block.render(flag_name).usage), ""]
    if guard:
        lines += ["**Guard clause style (handlers/functions):**", _fence(language, guard.render(flag_name).usage), ""]
    if hook:
        lines += [f"**{hook.framework} components (hook pattern):**", _fence(language, hook.render(flag_name).usage), ""]
    lines += [
        "### Placeholder Replacements",
        "- `CLIENT_VAR`: the client variable name you found (e.g. \"unleash\", \"client\")",
        "- `METHOD_NAME`: the method name you found (e.g. \"isEnabled\", \"is_enabled\")",
        "- `HOOK_NAME`: the hook name for React (e.g. \"useFlag\")",
        "- `ERROR_RESPONSE`: what to return when the flag is disabled",
        "",
        "## Language Defaults",
        "",
        "If no existing patterns were found:",
        "",
        "### Default Import",
        _fence(language, default.import_statement),
        "",
        "### Default Usage",
        _fence(language, default.usage),
        "",
        "## Final Checklist",
        "",
        "- [ ] Flag check is runtime controllable (inside the handler, not around registration)",
        "- [ ] Import added at the top of the file if missing",
        f"- [ ] Exact flag name used: `{flag_name}`",
        "- [ ] Existing code style and indentation matched",
        "- [ ] Code compiles and runs",
        "- [ ] Behaviour with the flag disabled considered",
        "",
        f"SDK documentation: {language.docs_url}",
    ]
    return "\n".join(lines)


def _render_template_section(language: Language, index: int, template: WrapperTemplate) -> str:
    framework = f" ({template.framework})" if template.framework else ""
    return "\n".join([
        f"### {index}. {template.pattern.capitalize()}{framework}",
        "",
        template.explanation,
        "",
        _fence(language, template.import_statement),
        "",
        _fence(language, template.usage),
    ])


def build_wrap_guidance(
    catalog: LanguageCatalog,
    flag_name: str,
    language: Optional[str] = None,
    file_name: Optional[str] = None,
    code_context: Optional[str] = None,
    framework_hint: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the wrap_change result for one flag.

    Returns:
        Dict with the markdown ``guidance`` plus the detected language, every
        rendered template and the recommended one.

    Raises:
        ValidationError: flag_name is empty.
    """
    if not isinstance(flag_name, str) or not flag_name.strip():
        raise ValidationError("flag_name must be a non-empty string")
    flag_name = flag_name.strip()

    detected = catalog.detect(language, file_name)
    if language and catalog.get(language) is None:
        logger.debug(f"Unsupported language '{language}', using {detected.key}")

    templates = detected.templates_for(flag_name)
    recommended = detected.recommended_template(framework_hint).render(flag_name)
    hint = framework_hint.strip() if framework_hint and framework_hint.strip() else None

    sections: List[str] = [
        f'# Feature Flag Wrapping Guide: "{flag_name}"',
        "",
        f"**Language:** {detected.display_name}",
    ]
    if hint:
        sections.append(f"**Framework:** {hint}")
    if file_name:
        sections.append(f"**File:** {file_name}")
    sections += [
        f"**SDK Documentation:** {detected.docs_url}",
        "",
        "---",
        "",
        "## Quick Start",
        "",
        f"You indicated you are using **{hint}**. Recommended pattern:" if hint else "Recommended default pattern:",
        "",
        "### Import",
        _fence(detected, recommended.import_statement),
        "",
        "### Usage",
        _fence(detected, recommended.usage),
        "",
        f"*{recommended.explanation}*",
    ]
    if code_context:
        sections += [
            "",
            "### Code Context Provided",
            "Check this snippet for an existing flag check before searching elsewhere:",
            _fence(detected, code_context),
        ]
    sections += [
        "",
        "---",
        "",
        render_search_instructions(detected, flag_name),
        "",
        "---",
        "",
        render_wrapping_instructions(detected, flag_name),
        "",
        "---",
        "",
        "## All Available Templates",
        "",
        f"The following {len(templates)} templates are available for {detected.display_name}:",
        "",
        "\n\n".join(_render_template_section(detected, i, t) for i, t in enumerate(templates, 1)),
        "",
        "---",
        "",
        "## Next Steps",
        "",
        "1. **Search for patterns** using the instructions above",
        "2. **Match existing conventions** if patterns are found",
        "3. **Use the default templates** if none exist",
        "4. **Test both flag states**",
        "5. **Plan cleanup**: call `cleanup_flag` once the rollout is complete",
        "",
        "## Best Practices",
        "",
        "- Keep flag checks close to the code they protect",
        "- Use descriptive variable names for flag state",
        "- Consider what happens when the flag is disabled",
        "- Note why the flag exists next to the check",
        "- Feature flags are temporary; plan their removal",
    ]

    logger.info(f'Generated wrapping guidance for "{flag_name}" ({detected.display_name}, {len(templates)} templates)')
    return {
        "flagName": flag_name,
        "detectedLanguage": detected.key,
        "languageDisplayName": detected.display_name,
        "templates": [t.to_dict() for t in templates],
        "recommendedTemplate": recommended.to_dict(),
        "supportedPatterns": [t.pattern for t in templates],
        "sdkDocumentation": detected.docs_url,
        "guidance": "\n".join(sections),
    }
