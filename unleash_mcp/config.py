"""
Configuration management for the Unleash MCP server.
Loads from environment variables (and an optional .env file) with CLI overrides.
"""

import argparse
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from dotenv import load_dotenv

from .errors import ConfigError

LOG_LEVELS = ("silent", "error", "info", "debug")


@dataclass
class UnleashConfig:
    """Connection settings for the Unleash Admin API."""
    base_url: str
    pat: str
    default_project: Optional[str] = None
    default_environment: Optional[str] = None


@dataclass
class ServerConfig:
    """Behaviour of the MCP server itself."""
    dry_run: bool = False
    log_level: str = "info"
    disabled_tools: List[str] = field(default_factory=list)


@dataclass
class HttpConfig:
    """HTTP client settings."""
    timeout_sec: float = 30.0


@dataclass
class AppConfig:
    """Master configuration for the Unleash MCP server."""

    unleash: UnleashConfig
    server: ServerConfig = field(default_factory=ServerConfig)
    http: HttpConfig = field(default_factory=HttpConfig)

    @classmethod
    def from_env(cls, argv: Optional[Sequence[str]] = None) -> "AppConfig":
        """Load configuration from environment variables and CLI flags.

        ``--dry-run`` and ``--log-level`` take precedence over
        ``UNLEASH_DRY_RUN`` and ``UNLEASH_LOG_LEVEL``.
        """
        load_dotenv()
        args = _parse_args(argv)

        problems = []

        base_url = os.getenv("UNLEASH_BASE_URL", "").strip()
        if not base_url:
            problems.append("UNLEASH_BASE_URL is required")
        elif not _is_http_url(base_url):
            problems.append("UNLEASH_BASE_URL must be a valid URL")

        pat = os.getenv("UNLEASH_PAT", "").strip()
        if not pat:
            problems.append("UNLEASH_PAT is required")

        # An unrecognised --log-level value is ignored, not fatal
        log_level = args.log_level if args.log_level in LOG_LEVELS else None
        log_level = log_level or os.getenv("UNLEASH_LOG_LEVEL", "info").strip().lower()
        if log_level not in LOG_LEVELS:
            problems.append(f"UNLEASH_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

        timeout_raw = os.getenv("UNLEASH_HTTP_TIMEOUT", "30")
        try:
            timeout_sec = float(timeout_raw)
            if timeout_sec <= 0:
                raise ValueError(timeout_raw)
        except ValueError:
            problems.append("UNLEASH_HTTP_TIMEOUT must be a positive number of seconds")
            timeout_sec = 30.0

        if problems:
            raise ConfigError(f"Invalid configuration: {'; '.join(problems)}")

        dry_run = args.dry_run or os.getenv("UNLEASH_DRY_RUN", "false").lower() == "true"

        disabled_tools = [
            t.strip()
            for t in os.getenv("UNLEASH_DISABLED_TOOLS", "").split(",")
            if t.strip()
        ]

        return cls(
            unleash=UnleashConfig(
                base_url=base_url.rstrip("/"),
                pat=pat,
                default_project=os.getenv("UNLEASH_DEFAULT_PROJECT") or None,
                default_environment=os.getenv("UNLEASH_DEFAULT_ENVIRONMENT") or None,
            ),
            server=ServerConfig(
                dry_run=dry_run,
                log_level=log_level,
                disabled_tools=disabled_tools,
            ),
            http=HttpConfig(timeout_sec=timeout_sec),
        )

    def resolve_project_id(self, explicit_project_id: Optional[str]) -> str:
        """Use the explicit project id, else the configured default."""
        if explicit_project_id:
            return explicit_project_id
        if self.unleash.default_project:
            return self.unleash.default_project
        raise ConfigError(
            "Project ID is required. Provide it via the tool input or UNLEASH_DEFAULT_PROJECT."
        )

    def is_tool_enabled(self, tool_name: str) -> bool:
        """Check if a tool is enabled."""
        return tool_name not in self.server.disabled_tools


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="unleash-mcp", add_help=False)
    parser.add_argument("--dry-run", action="store_true", default=False)
    parser.add_argument("--log-level", default=None)
    # Unknown flags belong to the MCP host, not to us
    args, _ = parser.parse_known_args(argv if argv is not None else [])
    return args


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
