"""
Tests for the template registry, resolver and renderer.

Template trees are built under pytest's tmp_path.
"""

import os
from unittest.mock import patch

import pytest

from app.services.templates import (
    ERROR_INVALID_PATH,
    ERROR_OUTSIDE_ROOT,
    ERROR_REQUIRED,
    ERROR_UNKNOWN,
    TemplateRegistry,
    TemplateResolutionError,
    TemplateResolver,
    load_template,
    render_template,
)


@pytest.fixture()
def template_root(tmp_path):
    root = tmp_path / "templates"
    (root / "billing").mkdir(parents=True)
    (root / "welcome.html").write_text("<p>Hello {{ .name }}</p>")
    (root / "billing" / "invoice-paid.html").write_text("<p>{{.amount}}</p>")
    (root / "UPPER.HTML").write_text("<p>upper</p>")
    (root / "notes.txt").write_text("not a template")
    return root


@pytest.fixture()
def resolver(template_root):
    return TemplateResolver(TemplateRegistry(template_root))


# ---------------------------------------------------------------------------
# TemplateRegistry
# ---------------------------------------------------------------------------

class TestTemplateRegistry:

    def test_collects_templates_recursively_without_extension(self, template_root):
        registry = TemplateRegistry(template_root)
        assert registry.names == frozenset({"welcome", "billing/invoice-paid"})

    def test_ignores_other_extensions(self, template_root):
        registry = TemplateRegistry(template_root)
        assert "notes" not in registry
        # Resolution joins the name with ".html", so only exact-case files register
        assert "UPPER" not in registry

    def test_missing_root_yields_empty_allowlist(self, tmp_path):
        registry = TemplateRegistry(tmp_path / "does-not-exist")
        assert len(registry) == 0

    def test_walk_error_yields_empty_allowlist(self, template_root):
        with patch("app.services.templates.os.walk", side_effect=PermissionError("denied")):
            registry = TemplateRegistry(template_root)
        assert len(registry) == 0

    def test_files_added_after_scan_are_not_allowed(self, template_root):
        registry = TemplateRegistry(template_root)
        (template_root / "late.html").write_text("<p>late</p>")
        assert "late" not in registry
        with pytest.raises(TemplateResolutionError, match=ERROR_UNKNOWN):
            TemplateResolver(registry).resolve("late")


# ---------------------------------------------------------------------------
# TemplateResolver
# ---------------------------------------------------------------------------

class TestTemplateResolver:

    @pytest.mark.parametrize("raw", [None, "", "   ", 42, ["welcome"]])
    def test_empty_or_non_string_is_required_error(self, resolver, raw):
        with pytest.raises(TemplateResolutionError, match=ERROR_REQUIRED):
            resolver.normalize(raw)

    @pytest.mark.parametrize("raw", [
        "../secrets",
        "billing/../../etc/passwd",
        "..",
        "welcome/..",
        "%2e%2e/..",
    ])
    def test_dot_dot_is_rejected_before_lookup(self, resolver, raw):
        with pytest.raises(TemplateResolutionError, match=ERROR_INVALID_PATH):
            resolver.resolve(raw)

    @pytest.mark.parametrize("raw, expected", [
        ("welcome", "welcome"),
        ("welcome.html", "welcome"),
        ("welcome.HTML", "welcome"),
        ("/welcome", "welcome"),
        ("///billing/invoice-paid.html", "billing/invoice-paid"),
        ("  welcome  ", "welcome"),
    ])
    def test_normalizes_allowed_names(self, resolver, raw, expected):
        assert resolver.normalize(raw) == expected

    @pytest.mark.parametrize("raw", ["missing", "Welcome", "billing", "notes", "notes.txt"])
    def test_unknown_names_rejected(self, resolver, raw):
        with pytest.raises(TemplateResolutionError, match=ERROR_UNKNOWN):
            resolver.normalize(raw)

    def test_resolve_returns_absolute_path_inside_root(self, resolver, template_root):
        path = resolver.resolve("billing/invoice-paid")
        assert path.is_absolute()
        assert path == (template_root / "billing" / "invoice-paid.html").resolve()

    def test_rejection_happens_before_any_file_read(self, resolver):
        with patch("pathlib.Path.read_text") as mock_read:
            with pytest.raises(TemplateResolutionError):
                load_template(resolver, "../../etc/passwd", {})
        mock_read.assert_not_called()

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlink_escaping_root_is_rejected(self, tmp_path):
        root = tmp_path / "templates"
        root.mkdir()
        outside = tmp_path / "outside.html"
        outside.write_text("secret")
        try:
            (root / "escape.html").symlink_to(outside)
        except OSError:
            pytest.skip("cannot create symlinks here")

        resolver = TemplateResolver(TemplateRegistry(root))
        with pytest.raises(TemplateResolutionError, match=ERROR_OUTSIDE_ROOT):
            resolver.resolve("escape")


# ---------------------------------------------------------------------------
# render_template / load_template
# ---------------------------------------------------------------------------

class TestRenderTemplate:

    def test_substitutes_placeholders(self):
        assert render_template("Hi {{ .name }}, {{.count}}", {"name": "Ana", "count": 3}) == "Hi Ana, 3"

    def test_missing_and_none_values_render_empty(self):
        assert render_template("[{{ .a }}][{{ .b }}]", {"b": None}) == "[][]"

    def test_non_placeholder_braces_untouched(self):
        assert render_template("{{ name }} {{ .ok }}", {"name": "x", "ok": "y"}) == "{{ name }} y"

    def test_none_data(self):
        assert render_template("{{ .a }}", None) == ""

    def test_load_template_reads_and_renders(self, resolver):
        assert load_template(resolver, "welcome.html", {"name": "Ana"}) == "<p>Hello Ana</p>"
