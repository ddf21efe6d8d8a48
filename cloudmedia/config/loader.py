"""
Config Loader — Load settings from a master JSON key or individual env vars.

Supports two modes:
1. Master JSON key: Single CLOUDMEDIA_CONFIG env var with all settings
2. Individual keys: Separate env vars for each setting (fallback)

## Usage

    # Option 1: Master config
    export CLOUDMEDIA_CONFIG='{"cloudinary_cloud_name": "demo", "gs_binary": "/usr/bin/gs"}'

    # Option 2: Individual keys
    export CLOUDINARY_CLOUD_NAME="demo"
    export GS_BINARY="/usr/bin/gs"

The loader tries master config first, then fills gaps from individual keys.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_GS_TIMEOUT_SECONDS = 120
DEFAULT_DATA_DIR = "data"

# setting name → environment variable
ENV_KEYS = {
    "cloudinary_cloud_name": "CLOUDINARY_CLOUD_NAME",
    "cloudinary_api_key": "CLOUDINARY_API_KEY",
    "cloudinary_api_secret": "CLOUDINARY_API_SECRET",
    "cloudinary_url": "CLOUDINARY_URL",
    "gs_binary": "GS_BINARY",
    "gs_timeout_seconds": "GS_TIMEOUT_SECONDS",
    "data_dir": "CLOUDMEDIA_DATA_DIR",
    "api_tokens": "CLOUDMEDIA_API_TOKENS",
    "transform_backend": "TRANSFORM_BACKEND",
}


@dataclass
class Settings:
    """All runtime settings in one place."""

    # Cloudinary
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_url: Optional[str] = None

    # Ghostscript
    gs_binary: Optional[str] = None
    gs_timeout_seconds: Optional[str] = None

    # Storage & auth
    data_dir: Optional[str] = None
    api_tokens: Optional[str] = None

    # "cloudinary" or "mock"
    transform_backend: Optional[str] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    def has_cloudinary(self) -> bool:
        if self.cloudinary_url:
            return True
        return all([
            self.cloudinary_cloud_name,
            self.cloudinary_api_key,
            self.cloudinary_api_secret,
        ])

    @property
    def backend_name(self) -> str:
        return (self.transform_backend or "cloudinary").lower()

    @property
    def gs_timeout(self) -> int:
        try:
            return int(self.gs_timeout_seconds or DEFAULT_GS_TIMEOUT_SECONDS)
        except ValueError:
            logger.warning(
                f"Invalid GS_TIMEOUT_SECONDS={self.gs_timeout_seconds!r}, "
                f"using {DEFAULT_GS_TIMEOUT_SECONDS}"
            )
            return DEFAULT_GS_TIMEOUT_SECONDS

    def data_path(self, root: Path) -> Path:
        path = Path(self.data_dir or DEFAULT_DATA_DIR)
        return path if path.is_absolute() else root / path

    def token_map(self) -> Dict[str, str]:
        """Parse CLOUDMEDIA_API_TOKENS ("token:user,token2:user2")."""
        tokens: Dict[str, str] = {}
        for pair in (self.api_tokens or "").split(","):
            pair = pair.strip()
            if not pair or ":" not in pair:
                continue
            token, _, user_id = pair.partition(":")
            if token.strip() and user_id.strip():
                tokens[token.strip()] = user_id.strip()
        return tokens

    def to_env_dict(self) -> Dict[str, str]:
        """Convert to environment variable format."""
        mapping = {env: getattr(self, name) for name, env in ENV_KEYS.items()}
        return {k: str(v) for k, v in mapping.items() if v}

    def apply_to_env(self) -> None:
        """Apply settings to os.environ without overriding existing values."""
        for key, value in self.to_env_dict().items():
            if value and not os.environ.get(key):
                os.environ[key] = value


def load_config() -> Settings:
    """
    Load configuration from master key or individual env vars.

    Priority:
    1. CLOUDMEDIA_CONFIG (master JSON)
    2. Individual environment variables

    Returns:
        Settings with all available values
    """
    settings = Settings()

    master_config = os.environ.get("CLOUDMEDIA_CONFIG")
    if master_config:
        try:
            data = json.loads(master_config)
            settings = _parse_master_config(data)
            logger.info("Loaded configuration from CLOUDMEDIA_CONFIG")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid CLOUDMEDIA_CONFIG JSON: {e}")
        except Exception as e:
            logger.error(f"Failed to parse CLOUDMEDIA_CONFIG: {e}")

    return _load_individual_vars(settings)


def _parse_master_config(data: Dict[str, Any]) -> Settings:
    """Parse master config JSON into settings."""
    values = {}
    for name, env in ENV_KEYS.items():
        value = data.get(name)
        if value is None:
            value = data.get(env)
        values[name] = str(value) if value is not None else None
    known = set(ENV_KEYS) | set(ENV_KEYS.values())
    extra = {k: v for k, v in data.items() if k not in known}
    return Settings(**values, extra=extra)


def _load_individual_vars(existing: Settings) -> Settings:
    """Load from individual env vars, filling in missing values."""
    values = {
        name: getattr(existing, name) or os.environ.get(env)
        for name, env in ENV_KEYS.items()
    }
    return Settings(**values, extra=existing.extra)


# Global config instance (loaded on first access)
_config: Optional[Settings] = None


def get_config() -> Settings:
    """Get the global configuration (loads on first access)."""
    global _config
    if _config is None:
        _config = load_config()
        _config.apply_to_env()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (tests, config reloads)."""
    global _config
    _config = None
