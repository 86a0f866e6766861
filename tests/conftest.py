"""Shared fixtures for the unleash_mcp test suite."""

from typing import Optional

import pytest

from unleash_mcp.models import FlagSummary, ProjectSummary


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Manually advanced clock returning seconds, like ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# Sample data
# =============================================================================


def make_project(project_id: str, created_at: Optional[str] = None, name: Optional[str] = None) -> ProjectSummary:
    return ProjectSummary(
        id=project_id,
        name=name or project_id,
        url=f"https://unleash.example.com/projects/{project_id}",
        created_at=created_at,
    )


def make_flag(name: str, created_at: Optional[str] = None, project: str = "default") -> FlagSummary:
    return FlagSummary(
        name=name,
        project=project,
        url=f"https://unleash.example.com/projects/{project}/features/{name}",
        type="release",
        created_at=created_at,
    )


@pytest.fixture
def projects():
    return [
        make_project("alpha", "2024-03-01T10:00:00Z"),
        make_project("beta", "2024-01-15T08:30:00Z"),
        make_project("gamma"),
        make_project("delta", "2024-06-20T00:00:00.000Z"),
    ]


@pytest.fixture
def flags():
    return [
        make_flag("new-checkout", "2024-02-01T00:00:00Z"),
        make_flag("beta-banner", "2024-01-01T00:00:00Z"),
        make_flag("dark-mode"),
        make_flag("search-v2", "2023-12-01T00:00:00Z"),
        make_flag("api-rate-limit", "2024-05-05T00:00:00Z"),
    ]
