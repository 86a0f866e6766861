"""
Resource URI codec for inventory views.

Canonical forms:
    unleash://projects[?limit=L&order=O&offset=N]
    unleash://projects/{projectId}/feature-flags[?limit=L&order=O&offset=N]

The project id is percent-encoded on the way out and decoded on the way in.
Only explicitly set options are serialized. Invalid options found while
parsing are dropped rather than rejected; an identifier outside both families
raises ``UnknownResourceError``.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import parse_qsl, quote, unquote, urlencode

from .errors import UnknownResourceError
from .models import CollectionKey, ViewRequest

SCHEME = "unleash"
PROJECTS_URI = f"{SCHEME}://projects"
FLAGS_URI_TEMPLATE = f"{SCHEME}://projects/{{projectId}}/feature-flags"

_FLAGS_PATTERN = re.compile(
    rf"^{re.escape(PROJECTS_URI)}/(?P<segment>[^/?]+)/feature-flags(?:\?(?P<query>.*))?$",
    re.DOTALL,
)


@dataclass(frozen=True)
class ClassifiedUri:
    """What a URI addresses: a collection key plus the requested view options."""
    kind: str  # "projects" | "flags"
    request: ViewRequest = field(default_factory=ViewRequest)
    project_id: Optional[str] = None

    @property
    def key(self) -> CollectionKey:
        if self.kind == "flags":
            return CollectionKey.flags(self.project_id)
        return CollectionKey.projects()


def _query_string(request: Optional[ViewRequest]) -> str:
    if request is None:
        return ""
    params = request.to_dict()
    return f"?{urlencode(params)}" if params else ""


def build_projects_uri(request: Optional[ViewRequest] = None) -> str:
    return PROJECTS_URI + _query_string(request)


def build_flags_uri(project_id: str, request: Optional[ViewRequest] = None) -> str:
    return f"{PROJECTS_URI}/{quote(project_id, safe='')}/feature-flags" + _query_string(request)


def build_uri(key: CollectionKey, request: Optional[ViewRequest] = None) -> str:
    if key.kind == "flags":
        return build_flags_uri(key.project_id, request)
    return build_projects_uri(request)


def is_projects_uri(uri: str) -> bool:
    return uri == PROJECTS_URI or uri.startswith(PROJECTS_URI + "?")


def is_flags_uri(uri: str) -> bool:
    return _FLAGS_PATTERN.match(uri) is not None


def parse_view_options(query: str) -> ViewRequest:
    """Parse ``limit``/``order``/``offset`` from a query string.

    The first occurrence of each parameter wins; unknown parameters are ignored.
    """
    values: Dict[str, str] = {}
    for name, value in parse_qsl(query, keep_blank_values=True):
        values.setdefault(name, value)
    return ViewRequest.of(
        limit=values.get("limit"),
        order=values.get("order"),
        offset=values.get("offset"),
    )


def classify_uri(uri: str) -> ClassifiedUri:
    """Map a URI to its collection and view options.

    Raises:
        UnknownResourceError: the URI is neither a projects nor a flags view.
    """
    if is_projects_uri(uri):
        _, _, query = uri.partition("?")
        return ClassifiedUri(kind="projects", request=parse_view_options(query))

    match = _FLAGS_PATTERN.match(uri)
    if match:
        project_id = unquote(match.group("segment"))
        return ClassifiedUri(
            kind="flags",
            project_id=project_id,
            request=parse_view_options(match.group("query") or ""),
        )

    raise UnknownResourceError(uri)
