"""
Unleash MCP - feature flag management for LLM clients over the Unleash Admin API.

Components:
- cache: TTL cache for remote collections
- projection: deterministic sorting and pagination
- uris: unleash:// resource URI codec
- scoring: flag-match confidence and change-risk classifiers
- inventory: cached project and flag views
- client: async Admin API client
- flags: flag lifecycle operations
- guidance: evaluate_change / detect_flag documents
- languages: SDK language catalog and wrapper templates
- wrapping: wrap_change documents
- cleanup: cleanup_flag documents
- workflow: local change tools and guide resources
"""

__version__ = "0.1.0"

from .cache import InventoryCache, CacheEntry, CacheLookup, DEFAULT_TTL_MS
from .client import UnleashClient, FLAG_TYPES
from .config import AppConfig, UnleashConfig, ServerConfig, HttpConfig
from .errors import (
    UnleashMcpError,
    ConfigError,
    ValidationError,
    UnknownResourceError,
    UnleashApiError,
)
from .flags import FlagService
from .inventory import InventoryService
from .languages import Language, LanguageCatalog, WrapperTemplate, load_languages
from .cleanup import build_cleanup_guidance
from .wrapping import build_wrap_guidance
from .workflow import decide_local_flow, discover_repo_signals, prepare_local_change
from .models import (
    CollectionKey,
    ProjectSummary,
    FlagSummary,
    ViewRequest,
    ViewResult,
)
from .projection import sort_projects, sort_flags, paginate, view_projects, view_flags
from .scoring import (
    ConfidenceLevel,
    Recommendation,
    RiskLevel,
    classify_confidence,
    classify_risk,
)
from .uris import build_projects_uri, build_flags_uri, classify_uri

__all__ = [
    "__version__",
    # Cache
    "InventoryCache",
    "CacheEntry",
    "CacheLookup",
    "DEFAULT_TTL_MS",
    # Client
    "UnleashClient",
    "FLAG_TYPES",
    "FlagService",
    "InventoryService",
    # Code guidance
    "Language",
    "LanguageCatalog",
    "WrapperTemplate",
    "load_languages",
    "build_wrap_guidance",
    "build_cleanup_guidance",
    # Local workflow
    "decide_local_flow",
    "discover_repo_signals",
    "prepare_local_change",
    # Config
    "AppConfig",
    "UnleashConfig",
    "ServerConfig",
    "HttpConfig",
    # Errors
    "UnleashMcpError",
    "ConfigError",
    "ValidationError",
    "UnknownResourceError",
    "UnleashApiError",
    # Models
    "CollectionKey",
    "ProjectSummary",
    "FlagSummary",
    "ViewRequest",
    "ViewResult",
    # Projection
    "sort_projects",
    "sort_flags",
    "paginate",
    "view_projects",
    "view_flags",
    # Scoring
    "ConfidenceLevel",
    "Recommendation",
    "RiskLevel",
    "classify_confidence",
    "classify_risk",
    # URIs
    "build_projects_uri",
    "build_flags_uri",
    "classify_uri",
]
