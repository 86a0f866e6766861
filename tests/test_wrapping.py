"""Tests for the language catalog and the wrap_change guidance."""

import pytest

from unleash_mcp.errors import ConfigError, ValidationError
from unleash_mcp.languages import FLAG_PLACEHOLDER, LanguageCatalog, load_languages
from unleash_mcp.wrapping import build_wrap_guidance


@pytest.fixture(scope="module")
def catalog():
    return load_languages()


# =============================================================================
# Catalog
# =============================================================================


class TestLanguageCatalog:

    def test_all_languages_loaded(self, catalog):
        assert catalog.keys == [
            "typescript", "javascript", "python", "go", "ruby", "php", "csharp", "java", "rust",
        ]

    def test_every_language_has_an_if_block(self, catalog):
        for key in catalog.keys:
            assert catalog.get(key).default_template().pattern == "if-block", key

    def test_javascript_shares_node_templates(self, catalog):
        ts = catalog.get("typescript")
        js = catalog.get("javascript")
        assert [t.usage for t in js.templates] == [t.usage for t in ts.templates]
        assert js.display_name == "JavaScript"

    @pytest.mark.parametrize("file_name,expected", [
        ("src/App.tsx", "typescript"),
        ("server/index.mjs", "javascript"),
        ("app/views.py", "python"),
        ("cmd/main.go", "go"),
        ("app/models/user.rb", "ruby"),
        ("Controllers/HomeController.cs", "csharp"),
        ("src/lib.RS", "rust"),
    ])
    def test_detect_by_extension(self, catalog, file_name, expected):
        assert catalog.detect(file_name=file_name).key == expected

    def test_explicit_language_wins_over_extension(self, catalog):
        assert catalog.detect(language=" Go ", file_name="app.py").key == "go"

    def test_unknown_language_uses_extension(self, catalog):
        assert catalog.detect(language="cobol", file_name="app.py").key == "python"

    @pytest.mark.parametrize("file_name", [None, "Makefile", "notes.txt"])
    def test_fallback_is_typescript(self, catalog, file_name):
        assert catalog.detect(file_name=file_name).key == "typescript"

    def test_empty_catalog_rejected(self):
        with pytest.raises(ConfigError):
            LanguageCatalog([])

    def test_languages_without_templates_skipped(self):
        catalog = LanguageCatalog.from_config({
            "empty": {"display_name": "Empty", "extensions": ["e"]},
            "kotlin": {
                "display_name": "Kotlin",
                "extensions": ["KT"],
                "templates": [{"pattern": "if-block", "usage": 'if (unleash.isEnabled("{flag_name}")) {}'}],
            },
        })
        assert catalog.keys == ["kotlin"]
        assert catalog.by_extension("Main.kt").key == "kotlin"


# =============================================================================
# Templates
# =============================================================================


class TestTemplates:

    def test_placeholder_substituted_everywhere(self, catalog):
        for key in catalog.keys:
            for template in catalog.get(key).templates_for("new-checkout"):
                assert FLAG_PLACEHOLDER not in template.usage
                assert FLAG_PLACEHOLDER not in template.import_statement
                assert "new-checkout" in template.usage, (key, template.pattern)

    def test_literal_braces_survive(self, catalog):
        hook = catalog.get("typescript").first("hook").render("beta")
        assert "{enabled && <NewFeature />}" in hook.usage
        assert "useFlag('beta')" in hook.usage

    def test_render_leaves_original_untouched(self, catalog):
        template = catalog.get("python").default_template()
        template.render("beta")
        assert FLAG_PLACEHOLDER in template.usage

    @pytest.mark.parametrize("key,hint,pattern", [
        ("typescript", "react", "hook"),
        ("typescript", "EXPRESS", "guard"),
        ("python", "django", "decorator"),
        ("go", "gin", "middleware"),
        ("python", "rails", "if-block"),
        ("python", "  ", "if-block"),
    ])
    def test_recommended_template(self, catalog, key, hint, pattern):
        assert catalog.get(key).recommended_template(hint).pattern == pattern

    def test_exact_template_lookup(self, catalog):
        python = catalog.get("python")
        assert python.template("decorator") is None
        assert python.template("decorator", "Django/Flask").pattern == "decorator"
        assert python.first("decorator").framework == "Django/Flask"


# =============================================================================
# wrap_change guidance
# =============================================================================


class TestWrapGuidance:

    def test_result_shape(self, catalog):
        result = build_wrap_guidance(catalog, "new-checkout", file_name="src/checkout.py")
        assert result["flagName"] == "new-checkout"
        assert result["detectedLanguage"] == "python"
        assert result["languageDisplayName"] == "Python"
        assert result["supportedPatterns"] == ["if-block", "guard", "decorator"]
        assert result["recommendedTemplate"]["pattern"] == "if-block"
        assert result["sdkDocumentation"] == "https://docs.getunleash.io/reference/sdks/python"
        assert all("new-checkout" in t["usage"] for t in result["templates"])

    def test_guidance_sections(self, catalog):
        text = build_wrap_guidance(catalog, "new-checkout", file_name="src/checkout.py")["guidance"]
        assert text.startswith('# Feature Flag Wrapping Guide: "new-checkout"')
        assert "**File:** src/checkout.py" in text
        assert "# How to Search for Existing Flag Patterns" in text
        assert "## Runtime Controllability" in text
        assert "The following 3 templates are available for Python" in text
        assert FLAG_PLACEHOLDER not in text

    def test_framework_hint(self, catalog):
        result = build_wrap_guidance(catalog, "beta", language="typescript", framework_hint="React")
        assert result["recommendedTemplate"]["pattern"] == "hook"
        assert result["recommendedTemplate"]["framework"] == "React"
        assert "**Framework:** React" in result["guidance"]
        assert "You indicated you are using **React**" in result["guidance"]

    def test_code_context_included(self, catalog):
        text = build_wrap_guidance(catalog, "beta", language="go", code_context="func Handle() {}")["guidance"]
        assert "### Code Context Provided" in text
        assert "func Handle() {}" in text

    def test_unknown_language_falls_back(self, catalog):
        result = build_wrap_guidance(catalog, "beta", language="cobol")
        assert result["detectedLanguage"] == "typescript"

    def test_flag_name_stripped(self, catalog):
        assert build_wrap_guidance(catalog, "  beta  ")["flagName"] == "beta"

    @pytest.mark.parametrize("flag_name", ["", "   ", None])
    def test_empty_flag_name_rejected(self, catalog, flag_name):
        with pytest.raises(ValidationError):
            build_wrap_guidance(catalog, flag_name)
