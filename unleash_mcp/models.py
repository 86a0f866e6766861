"""
Shared types for the inventory layer.

Summaries mirror the subset of the Unleash Admin API payloads the server
exposes; view types describe a sorted, paginated projection of a collection.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .errors import ValidationError

T = TypeVar("T")

ORDERS = ("asc", "desc")

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")

PROJECTS_DEFAULT_LIMIT = 20
PROJECTS_DEFAULT_ORDER = "desc"  # newest first
FLAGS_DEFAULT_LIMIT = 50
FLAGS_DEFAULT_ORDER = "asc"  # alphabetical


@dataclass(frozen=True)
class CollectionKey:
    """Identity of a cached collection: all projects, or the flags of one project."""
    kind: str  # "projects" | "flags"
    project_id: Optional[str] = None

    @classmethod
    def projects(cls) -> "CollectionKey":
        return cls("projects")

    @classmethod
    def flags(cls, project_id: str) -> "CollectionKey":
        if not isinstance(project_id, str) or not project_id:
            raise ValidationError("Project ID must be a non-empty string")
        return cls("flags", project_id)

    def __str__(self) -> str:
        if self.kind == "flags":
            return f"flags:{self.project_id}"
        return self.kind


@dataclass
class ProjectSummary:
    """A project as listed by the Admin API."""
    id: str
    name: str
    url: str
    description: Optional[str] = None
    mode: Optional[str] = None
    created_at: Optional[str] = None  # ISO instant

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "mode": self.mode,
            "createdAt": self.created_at,
            "url": self.url,
        }


@dataclass
class FlagSummary:
    """A feature flag as listed by the Admin API."""
    name: str
    project: str
    url: str
    description: Optional[str] = None
    type: Optional[str] = None
    archived: Optional[bool] = None
    impression_data: Optional[bool] = None
    created_at: Optional[str] = None  # ISO instant

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "project": self.project,
            "type": self.type,
            "archived": self.archived,
            "impressionData": self.impression_data,
            "createdAt": self.created_at,
            "url": self.url,
        }


@dataclass(frozen=True)
class ViewRequest:
    """
    Pagination and ordering options as supplied by a caller.

    ``None`` means "not set": defaults are applied by ``resolve`` and unset
    fields are never serialized into a URI. Use ``ViewRequest.of`` to build one
    from untrusted input; it drops invalid values instead of rejecting them.
    """
    limit: Optional[int] = None
    order: Optional[str] = None
    offset: Optional[int] = None

    @classmethod
    def of(cls, limit: Any = None, order: Any = None, offset: Any = None) -> "ViewRequest":
        """Build a request, treating invalid values as unset."""
        parsed_limit = _coerce_int(limit)
        if parsed_limit is not None and parsed_limit <= 0:
            parsed_limit = None

        parsed_offset = _coerce_int(offset)
        if parsed_offset is not None and parsed_offset < 0:
            parsed_offset = None

        return cls(limit=parsed_limit, order=normalize_order(order), offset=parsed_offset)

    def sanitized(self) -> "ViewRequest":
        """Copy with invalid fields unset; direct construction skips ``of``."""
        return ViewRequest.of(limit=self.limit, order=self.order, offset=self.offset)

    def resolve(self, default_limit: int, default_order: str) -> "ResolvedView":
        clean = self.sanitized()
        return ResolvedView(
            limit=clean.limit if clean.limit is not None else default_limit,
            order=clean.order or default_order,
            offset=clean.offset if clean.offset is not None else 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: value
            for key, value in (("limit", self.limit), ("order", self.order), ("offset", self.offset))
            if value is not None
        }


@dataclass(frozen=True)
class ResolvedView:
    """A view request with defaults applied; every field is concrete."""
    limit: int
    order: str
    offset: int


@dataclass
class ViewResult(Generic[T]):
    """One page of a sorted collection."""
    slice: List[T]
    total_count: int
    cached: bool
    limit: int
    order: str
    offset: int
    next_offset: Optional[int] = None
    fetched_at: Optional[float] = None  # epoch seconds of the backing fetch

    @property
    def has_more(self) -> bool:
        return self.next_offset is not None


def normalize_order(value: Any) -> Optional[str]:
    """Case-insensitively map to ``"asc"``/``"desc"``; anything else is unset."""
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    return lowered if lowered in ORDERS else None


def _coerce_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not _INT_PATTERN.fullmatch(text):
            return None
        return int(text)
    return None
