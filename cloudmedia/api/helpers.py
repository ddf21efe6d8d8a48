"""
API shared helpers.

Functions used across route blueprints: authentication and access to
the services built in create_app().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from flask import current_app, g, request

from ..compression.ghostscript import GhostscriptRunner
from ..compression.orchestrator import CompressionOrchestrator
from ..conversion.service import ConversionService
from ..errors import UnauthorizedError
from ..persistence.asset_store import AssetStore
from ..persistence.conversions import ConversionLedger
from ..transform.base import TransformBackend

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, built once per app."""

    backend: TransformBackend
    assets: AssetStore
    conversions: ConversionLedger
    ghostscript: GhostscriptRunner
    orchestrator: CompressionOrchestrator
    converter: ConversionService


def services() -> Services:
    return current_app.extensions["cloudmedia"]


def verify_token(token: str, tokens: Dict[str, str]) -> str | None:
    """Map a bearer token to its user id, or None if unknown."""
    if not token:
        return None
    return tokens.get(token)


def require_user() -> str:
    """
    Authenticate the current request from its Authorization header.

    Raises:
        UnauthorizedError: If the header is missing or the token is unknown
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise UnauthorizedError()
    token = header[len("Bearer "):].strip()
    user_id = verify_token(token, current_app.config.get("AUTH_TOKENS", {}))
    if user_id is None:
        logger.debug(f"Rejected unknown token on {request.path}")
        raise UnauthorizedError()
    g.user_id = user_id
    return user_id
