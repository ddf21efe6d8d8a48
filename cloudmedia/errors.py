"""
Errors — Exception hierarchy for CloudMedia operations.

Every error carries the HTTP status the API layer should answer with,
so routes can simply let exceptions propagate to the Flask error handler.

## Usage

    from cloudmedia.errors import BadRequestError

    if target_bytes >= asset.bytes:
        raise BadRequestError("Target size must be smaller than the original file size")
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class CloudMediaError(Exception):
    """Base class for all operation failures."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class UnauthorizedError(CloudMediaError):
    """Missing or invalid credentials."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class BadRequestError(CloudMediaError):
    """Request is malformed or asks for something impossible."""

    status_code = 400


class NotFoundError(CloudMediaError):
    """Asset does not exist or does not belong to the caller."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class PayloadTooLargeError(CloudMediaError):
    status_code = 413


class TransformError(CloudMediaError):
    """The remote transform backend failed. Never retried."""

    status_code = 400


class GhostscriptError(CloudMediaError):
    """Ghostscript exited non-zero, timed out, or produced no output."""

    status_code = 400


class GhostscriptNotFoundError(GhostscriptError):
    """No Ghostscript executable could be located."""

    def __init__(self, attempted: List[str]):
        self.attempted = list(attempted)
        super().__init__(
            f"Ghostscript binary not found. Tried: {', '.join(self.attempted)}. "
            f"Set GS_BINARY env var to the full path of gs.",
            details={"attempted": self.attempted},
        )
