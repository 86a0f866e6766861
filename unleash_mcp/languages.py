"""
Language catalog for code-facing guidance (wrap_change, cleanup_flag).

Languages, SDK links and snippet templates live in conf/languages.yaml;
this module turns them into typed records and picks the language for a
file.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError
from .guidance import CONF_DIR, load_yaml_config

logger = logging.getLogger("unleash_mcp.languages")

FLAG_PLACEHOLDER = "{flag_name}"


@dataclass
class WrapperTemplate:
    """One way of guarding code with a flag check."""
    pattern: str  # if-block | guard | hook | decorator | ternary | middleware
    import_statement: str
    usage: str
    explanation: str
    framework: Optional[str] = None

    def render(self, flag_name: str) -> "WrapperTemplate":
        # Snippets contain literal braces; only the placeholder is substituted
        return replace(
            self,
            import_statement=self.import_statement.replace(FLAG_PLACEHOLDER, flag_name),
            usage=self.usage.replace(FLAG_PLACEHOLDER, flag_name),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern,
            "framework": self.framework,
            "import": self.import_statement,
            "usage": self.usage,
            "explanation": self.explanation,
        }


@dataclass
class Language:
    key: str
    display_name: str
    extensions: List[str]
    sdk_package: str
    docs_url: str
    common_methods: List[str] = field(default_factory=list)
    common_client_names: List[str] = field(default_factory=list)
    cleanup_imports: List[str] = field(default_factory=list)
    anti_pattern: str = ""
    templates: List[WrapperTemplate] = field(default_factory=list)

    def templates_for(self, flag_name: str) -> List[WrapperTemplate]:
        return [t.render(flag_name) for t in self.templates]

    def template(self, pattern: str, framework: Optional[str] = None) -> Optional[WrapperTemplate]:
        """Template for ``pattern``; without ``framework`` only framework-free ones match."""
        for candidate in self.templates:
            if candidate.pattern == pattern and candidate.framework == framework:
                return candidate
        return None

    def first(self, pattern: str) -> Optional[WrapperTemplate]:
        """First template for ``pattern`` regardless of framework."""
        return next((t for t in self.templates if t.pattern == pattern), None)

    def default_template(self) -> WrapperTemplate:
        return self.template("if-block") or self.templates[0]

    def recommended_template(self, framework_hint: Optional[str] = None) -> WrapperTemplate:
        """First template whose framework contains the hint (case-insensitive), else the default."""
        if framework_hint and framework_hint.strip():
            hint = framework_hint.strip().lower()
            for candidate in self.templates:
                if candidate.framework and hint in candidate.framework.lower():
                    return candidate
        return self.default_template()


class LanguageCatalog:
    """
    Supported languages in catalog order.

    The first entry is the fallback for ``detect`` when neither an explicit
    language nor a known file extension is given.
    """

    def __init__(self, languages: List[Language]):
        if not languages:
            raise ConfigError("Language catalog is empty", hint="Check unleash_mcp/conf/languages.yaml")
        self._languages = {language.key: language for language in languages}
        self.fallback = languages[0]

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> "LanguageCatalog":
        languages = []
        for key, entry in (data or {}).items():
            templates = [
                WrapperTemplate(
                    pattern=t["pattern"],
                    import_statement=t.get("import", ""),
                    usage=t["usage"],
                    explanation=t.get("explanation", ""),
                    framework=t.get("framework"),
                )
                for t in entry.get("templates") or []
            ]
            if not templates:
                logger.warning(f"Language '{key}' has no templates; skipping")
                continue
            languages.append(
                Language(
                    key=key,
                    display_name=entry.get("display_name", key),
                    extensions=[str(e).lower() for e in entry.get("extensions") or []],
                    sdk_package=entry.get("sdk_package", ""),
                    docs_url=entry.get("docs_url", ""),
                    common_methods=list(entry.get("common_methods") or []),
                    common_client_names=list(entry.get("common_client_names") or []),
                    cleanup_imports=list(entry.get("cleanup_imports") or []),
                    anti_pattern=entry.get("anti_pattern", ""),
                    templates=templates,
                )
            )
        return cls(languages)

    @property
    def keys(self) -> List[str]:
        return list(self._languages)

    def get(self, key: Optional[str]) -> Optional[Language]:
        if not isinstance(key, str):
            return None
        return self._languages.get(key.strip().lower())

    def by_extension(self, file_name: Optional[str]) -> Optional[Language]:
        if not file_name or "." not in file_name:
            return None
        extension = file_name.rsplit(".", 1)[1].lower()
        for language in self._languages.values():
            if extension in language.extensions:
                return language
        return None

    def detect(self, language: Optional[str] = None, file_name: Optional[str] = None) -> Language:
        """Explicit language if supported, else the file extension, else the fallback."""
        return self.get(language) or self.by_extension(file_name) or self.fallback


def load_languages(path: Optional[Path] = None) -> LanguageCatalog:
    return LanguageCatalog.from_config(load_yaml_config(path or CONF_DIR / "languages.yaml"))
