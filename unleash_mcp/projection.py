"""
Deterministic ordering and slicing of inventory collections.

Ordering rules:
- Projects sort by ``created_at``. Entries without a parseable date count as
  the oldest, so they come last for ``desc`` and first for ``asc``. Equal dates
  (including two undated entries) fall back to the case-sensitive name in the
  same direction.
- Flags sort by name in the requested direction. Within a run of flags sharing
  a name, the dated ones are ordered by ``created_at`` ascending whatever the
  outer direction, using only the positions dated flags already held. Undated
  flags and equal dates keep their input order.

All sorts rely on Python's stable sort, so the same input always yields the
same output.
"""

from datetime import datetime, timezone
from itertools import groupby
from typing import List, Optional, Sequence, Tuple, TypeVar

from .models import FlagSummary, ProjectSummary, ResolvedView, ViewResult

T = TypeVar("T")


def parse_instant(value: Optional[str]) -> Optional[float]:
    """Parse an ISO-8601 date or instant to epoch seconds; ``None`` if unparseable.

    Naive values are taken as UTC.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _date_key(value: Optional[str]) -> Tuple[int, float]:
    # Undated sorts below every dated entry
    instant = parse_instant(value)
    if instant is None:
        return (0, 0.0)
    return (1, instant)


def sort_projects(projects: Sequence[ProjectSummary], order: str) -> List[ProjectSummary]:
    return sorted(
        projects,
        key=lambda p: (_date_key(p.created_at), p.name),
        reverse=(order == "desc"),
    )


def sort_flags(flags: Sequence[FlagSummary], order: str) -> List[FlagSummary]:
    by_name = sorted(flags, key=lambda f: f.name, reverse=(order == "desc"))
    result: List[FlagSummary] = []
    for _, group in groupby(by_name, key=lambda f: f.name):
        result.extend(_order_dated_in_place(list(group)))
    return result


def _order_dated_in_place(group: List[FlagSummary]) -> List[FlagSummary]:
    # Dated flags trade places among their own slots; undated ones stay put
    slots = [i for i, flag in enumerate(group) if parse_instant(flag.created_at) is not None]
    dated = sorted((group[i] for i in slots), key=lambda f: parse_instant(f.created_at))
    for slot, flag in zip(slots, dated):
        group[slot] = flag
    return group


def paginate(
    items: Sequence[T],
    offset: int,
    limit: Optional[int],
) -> Tuple[List[T], Optional[int]]:
    """
    Take ``items[offset:offset+limit]`` and compute the continuation offset.

    ``limit`` of ``None`` takes everything from ``offset``. Callers must have
    rejected non-positive limits already; a zero limit would never advance.

    Returns:
        (slice, next_offset) where next_offset is ``offset + limit`` when that
        is still inside the collection, else ``None``.
    """
    offset = max(offset, 0)
    total = len(items)

    if limit is None:
        return list(items[offset:]), None

    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")

    end = offset + limit
    next_offset = end if end < total else None
    return list(items[offset:end]), next_offset


def _to_view(
    sorted_items: List[T],
    view: ResolvedView,
    cached: bool,
    fetched_at: Optional[float] = None,
) -> ViewResult[T]:
    page, next_offset = paginate(sorted_items, view.offset, view.limit)
    return ViewResult(
        slice=page,
        total_count=len(sorted_items),
        cached=cached,
        limit=view.limit,
        order=view.order,
        offset=view.offset,
        next_offset=next_offset,
        fetched_at=fetched_at,
    )


def view_projects(
    projects: Sequence[ProjectSummary],
    view: ResolvedView,
    cached: bool = False,
    fetched_at: Optional[float] = None,
) -> ViewResult[ProjectSummary]:
    """Sort projects per ``view.order`` and cut the requested page."""
    return _to_view(sort_projects(projects, view.order), view, cached, fetched_at)


def view_flags(
    flags: Sequence[FlagSummary],
    view: ResolvedView,
    cached: bool = False,
    fetched_at: Optional[float] = None,
) -> ViewResult[FlagSummary]:
    """Sort flags per ``view.order`` and cut the requested page."""
    return _to_view(sort_flags(flags, view.order), view, cached, fetched_at)
