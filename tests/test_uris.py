"""Tests for the unleash:// resource URI codec."""

import pytest

from unleash_mcp.errors import UnknownResourceError
from unleash_mcp.models import CollectionKey, ViewRequest
from unleash_mcp.uris import (
    PROJECTS_URI,
    build_flags_uri,
    build_projects_uri,
    build_uri,
    classify_uri,
    is_flags_uri,
    is_projects_uri,
)


class TestBuild:

    def test_bare_projects_uri(self):
        assert build_projects_uri() == "unleash://projects"
        assert build_projects_uri(ViewRequest()) == "unleash://projects"

    def test_only_set_options_serialized(self):
        assert build_projects_uri(ViewRequest(limit=5)) == "unleash://projects?limit=5"

    def test_all_options(self):
        uri = build_flags_uri("default", ViewRequest(limit=10, order="desc", offset=20))

        assert uri == "unleash://projects/default/feature-flags?limit=10&order=desc&offset=20"

    def test_project_id_is_percent_encoded(self):
        assert build_flags_uri("team/a b") == "unleash://projects/team%2Fa%20b/feature-flags"

    def test_build_uri_dispatches_on_key(self):
        assert build_uri(CollectionKey.projects()) == PROJECTS_URI
        assert build_uri(CollectionKey.flags("x")) == "unleash://projects/x/feature-flags"


class TestClassify:

    def test_projects(self):
        classified = classify_uri("unleash://projects?order=ASC&limit=3")

        assert classified.kind == "projects"
        assert classified.project_id is None
        assert classified.request == ViewRequest(limit=3, order="asc")
        assert classified.key == CollectionKey.projects()

    @pytest.mark.parametrize("project_id", ["default", "team/a b", "ünïcode", "a?b", "100%"])
    def test_flags_round_trip(self, project_id):
        request = ViewRequest(limit=7, order="desc", offset=14)

        classified = classify_uri(build_flags_uri(project_id, request))

        assert classified.kind == "flags"
        assert classified.project_id == project_id
        assert classified.request == request

    def test_invalid_options_dropped(self):
        classified = classify_uri("unleash://projects/p/feature-flags?limit=0&order=sideways&offset=-2")

        assert classified.request == ViewRequest()

    def test_non_integer_options_dropped(self):
        classified = classify_uri("unleash://projects?limit=abc&offset=1.5")

        assert classified.request == ViewRequest()

    def test_first_occurrence_wins_and_unknown_params_ignored(self):
        classified = classify_uri("unleash://projects?limit=2&limit=9&foo=bar")

        assert classified.request == ViewRequest(limit=2)

    @pytest.mark.parametrize(
        "uri",
        [
            "unleash://flags",
            "unleash://projects/",
            "unleash://projects/p/features",
            "unleash://projects/a/b/feature-flags",
            "https://projects",
            "unleash://projectsx",
        ],
    )
    def test_unknown_uri_raises(self, uri):
        with pytest.raises(UnknownResourceError) as exc:
            classify_uri(uri)

        assert exc.value.code == "UNKNOWN_RESOURCE"
        assert exc.value.uri == uri

    def test_predicates(self):
        assert is_projects_uri("unleash://projects")
        assert is_projects_uri("unleash://projects?limit=1")
        assert not is_projects_uri("unleash://projects/p/feature-flags")
        assert is_flags_uri("unleash://projects/p/feature-flags?offset=3")
        assert not is_flags_uri("unleash://projects")
