"""
Error types for the Unleash MCP server.

Every error carries a stable ``code`` and an optional ``hint`` so tool results
can hand the LLM something actionable instead of a bare traceback.
"""

from typing import Any, Dict, Optional


class UnleashMcpError(Exception):
    """Base error with a machine-readable code and a human hint."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.hint = hint

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "hint": self.hint,
        }


class ConfigError(UnleashMcpError):
    """Missing or invalid configuration (env vars, CLI flags, default project)."""

    code = "CONFIG_ERROR"


class ValidationError(UnleashMcpError):
    """A tool argument or classifier input is out of range."""

    code = "VALIDATION_ERROR"


class UnknownResourceError(UnleashMcpError):
    """A resource URI does not belong to any known collection family."""

    code = "UNKNOWN_RESOURCE"

    def __init__(self, uri: str):
        super().__init__(
            f"Resource not found: {uri}",
            hint="Known resources: unleash://projects and unleash://projects/{projectId}/feature-flags",
        )
        self.uri = uri


class UnleashApiError(UnleashMcpError):
    """The Unleash Admin API returned an error or could not be reached."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        body: Any = None,
    ):
        if code is None:
            code = f"HTTP_{status}" if status is not None else "NETWORK_ERROR"
        if hint is None and status is not None:
            hint = http_error_hint(status)
        super().__init__(message, code=code, hint=hint)
        self.status = status
        self.body = body


def http_error_hint(status: int) -> Optional[str]:
    """Suggest a next step for common Admin API status codes."""
    if status == 401:
        return "Check your UNLEASH_PAT (Personal Access Token) in the .env file."
    if status == 403:
        return "Your token may not have permission to perform this action. Check your Unleash user permissions."
    if status == 404:
        return "The requested resource was not found. Verify the project ID and endpoint."
    if status == 409:
        return "A resource with this name already exists. Try a different name or update the existing resource."
    if status == 422:
        return "The request was invalid. Check the request parameters and try again."
    if status == 429:
        return "Rate limit exceeded. Please wait before making more requests."
    if status in (500, 502, 503):
        return "Unleash server error. Please try again later or check the Unleash service status."
    return None
