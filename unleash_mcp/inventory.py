"""
Inventory views: cached, sorted, paginated projections of projects and flags.

Request flow: URI or view options -> InventoryCache (fetch on miss/stale) ->
projection (sort + slice) -> JSON-ready payload.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .cache import InventoryCache
from .models import (
    FLAGS_DEFAULT_LIMIT,
    FLAGS_DEFAULT_ORDER,
    PROJECTS_DEFAULT_LIMIT,
    PROJECTS_DEFAULT_ORDER,
    CollectionKey,
    FlagSummary,
    ProjectSummary,
    ViewRequest,
    ViewResult,
)
from .projection import view_flags, view_projects
from .uris import PROJECTS_URI, build_flags_uri, build_uri, classify_uri

logger = logging.getLogger("unleash_mcp.inventory")


class InventoryService:
    """
    Serves project and flag views on top of an ``InventoryCache``.

    ``list_projects`` and ``list_feature_flags`` are the remote collaborator's
    operations (normally ``UnleashClient`` methods); the service never calls
    them while a fresh cache entry exists.
    """

    def __init__(
        self,
        list_projects: Callable[[], Awaitable[List[ProjectSummary]]],
        list_feature_flags: Callable[[str], Awaitable[List[FlagSummary]]],
        cache: Optional[InventoryCache] = None,
        dry_run: bool = False,
    ):
        self._list_projects = list_projects
        self._list_feature_flags = list_feature_flags
        self.cache = cache if cache is not None else InventoryCache()
        self.dry_run = dry_run

    async def read_projects_view(self, request: Optional[ViewRequest] = None) -> ViewResult[ProjectSummary]:
        view = (request or ViewRequest()).resolve(PROJECTS_DEFAULT_LIMIT, PROJECTS_DEFAULT_ORDER)
        lookup = await self.cache.get_or_fetch(CollectionKey.projects(), self._list_projects)
        return view_projects(lookup.data, view, cached=lookup.from_cache, fetched_at=lookup.fetched_at)

    async def read_flags_view(
        self,
        project_id: str,
        request: Optional[ViewRequest] = None,
    ) -> ViewResult[FlagSummary]:
        key = CollectionKey.flags(project_id)
        view = (request or ViewRequest()).resolve(FLAGS_DEFAULT_LIMIT, FLAGS_DEFAULT_ORDER)
        lookup = await self.cache.get_or_fetch(key, lambda: self._list_feature_flags(project_id))
        return view_flags(lookup.data, view, cached=lookup.from_cache, fetched_at=lookup.fetched_at)

    async def read_uri(self, uri: str) -> Dict[str, Any]:
        """Resolve any inventory URI to its rendered payload.

        Raises:
            UnknownResourceError: the URI matches neither family.
        """
        classified = classify_uri(uri)
        if classified.kind == "flags":
            result = await self.read_flags_view(classified.project_id, classified.request)
        else:
            result = await self.read_projects_view(classified.request)
        return self.render(classified.key, classified.request, result)

    def render(
        self,
        key: CollectionKey,
        request: ViewRequest,
        result: ViewResult[Any],
    ) -> Dict[str, Any]:
        """Shape a view result for the client, including a link to the next page."""
        items_field = "flags" if key.kind == "flags" else "projects"
        request = request.sanitized()
        payload: Dict[str, Any] = {
            "uri": build_uri(key, request),
            "fetchedAt": _iso(result.fetched_at),
            "dryRun": self.dry_run,
            "cached": result.cached,
        }
        if key.kind == "flags":
            payload["projectId"] = key.project_id
        payload[items_field] = [item.to_dict() for item in result.slice]
        payload["pagination"] = {
            "limit": result.limit,
            "offset": result.offset,
            "order": result.order,
            "totalCount": result.total_count,
            "nextOffset": result.next_offset,
        }
        if result.next_offset is not None:
            next_request = ViewRequest(limit=request.limit, order=request.order, offset=result.next_offset)
            payload["nextUri"] = build_uri(key, next_request)
        return payload

    async def read_uri_text(self, uri: str) -> str:
        return json.dumps(await self.read_uri(uri), indent=2)

    async def read_projects_resource(self) -> str:
        return await self.read_uri_text(PROJECTS_URI)

    async def read_flags_resource(self, project_id: str) -> str:
        """Read the default flags view of a project given its decoded id."""
        return await self.read_uri_text(build_flags_uri(project_id))


def _iso(epoch_seconds: Optional[float]) -> Optional[str]:
    if epoch_seconds is None:
        return None
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()
