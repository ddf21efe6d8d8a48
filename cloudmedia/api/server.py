"""
API Server — Flask application factory.

Builds the services (transform backend, stores, Ghostscript runner,
orchestrator) once per app and registers the route blueprints.
Every error leaves as JSON: CloudMediaError subclasses with their own
status, anything unexpected as a 500.
"""

from __future__ import annotations

import logging
import time
import traceback
from pathlib import Path
from typing import Optional
from uuid import uuid4

from flask import Flask, g, jsonify, request

from ..compression.ghostscript import GhostscriptRunner
from ..compression.orchestrator import CompressionOrchestrator
from ..config.loader import Settings, get_config
from ..conversion.service import ConversionService
from ..errors import CloudMediaError
from ..persistence.asset_store import AssetStore
from ..persistence.conversions import ConversionLedger
from ..transform.base import TransformBackend
from ..transform.registry import create_backend
from .helpers import Services
from .routes_assets import assets_bp
from .routes_compress import compress_bp
from .routes_convert import convert_bp
from .routes_core import core_bp
from .routes_download import download_bp

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

# Uploaded PDFs travel in the compress request itself
MAX_CONTENT_LENGTH = 110 * 1024 * 1024


def build_services(
    settings: Settings,
    data_dir: Path,
    backend: Optional[TransformBackend] = None,
) -> Services:
    """Wire the backend, stores and strategies together."""
    backend = backend or create_backend(settings)
    assets = AssetStore(data_dir / "assets.json")
    conversions = ConversionLedger(data_dir / "conversions.ndjson")
    ghostscript = GhostscriptRunner(gs_binary=settings.gs_binary, timeout=settings.gs_timeout)
    return Services(
        backend=backend,
        assets=assets,
        conversions=conversions,
        ghostscript=ghostscript,
        orchestrator=CompressionOrchestrator(backend, assets, conversions, ghostscript),
        converter=ConversionService(backend, assets, conversions),
    )


def create_app(
    settings: Optional[Settings] = None,
    data_dir: Optional[Path] = None,
    backend: Optional[TransformBackend] = None,
) -> Flask:
    """Create the Flask application."""
    settings = settings or get_config()
    data_dir = data_dir or settings.data_path(PROJECT_ROOT)

    app = Flask(__name__)
    app.config["DATA_DIR"] = data_dir
    app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
    app.config["AUTH_TOKENS"] = settings.token_map()
    app.extensions["cloudmedia"] = build_services(settings, data_dir, backend)

    if not app.config["AUTH_TOKENS"]:
        logger.warning("CLOUDMEDIA_API_TOKENS is empty — every API request will be rejected")

    # ── Register Blueprints ───────────────────────────────────────
    app.register_blueprint(core_bp)                                  # /api/health
    app.register_blueprint(assets_bp, url_prefix="/api/assets")      # /api/assets/*
    app.register_blueprint(compress_bp, url_prefix="/api")           # /api/compress, /api/compressions
    app.register_blueprint(convert_bp, url_prefix="/api")            # /api/convert
    app.register_blueprint(download_bp, url_prefix="/api")           # /api/download

    # ── Error Handlers ────────────────────────────────────────────

    @app.errorhandler(CloudMediaError)
    def handle_cloudmedia_error(e: CloudMediaError):
        logger.info(f"{request.method} {request.path} failed ({e.status_code}): {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(413)
    def request_entity_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 0) / (1024 * 1024)
        return jsonify({"error": f"File too large (max {max_mb:.0f} MB)"}), 413

    @app.errorhandler(500)
    def internal_server_error(e):
        """Catch-all: return JSON for any unhandled 500 so clients never see raw HTML."""
        original = getattr(e, "original_exception", None) or e
        tb = "".join(traceback.format_exception(type(original), original, original.__traceback__))
        logger.error(f"Unhandled 500 on {request.method} {request.path}: {original}\n{tb}")
        return jsonify({"error": f"Internal server error: {original}"}), 500

    # ── Request Logging ───────────────────────────────────────────

    @app.before_request
    def log_request_start():
        g.start_time = time.time()
        g.request_id = uuid4().hex[:8]

    @app.after_request
    def log_request_end(response):
        duration_ms = int((time.time() - g.get("start_time", time.time())) * 1000)
        if request.path.startswith("/api/"):
            log_fn = logger.debug if request.path == "/api/health" else logger.info
            log_fn(
                f"{request.method} {request.path} → {response.status_code} ({duration_ms}ms)",
                extra={"request_id": g.get("request_id"), "user_id": g.get("user_id")},
            )
        return response

    logger.info(
        f"API server initialized (backend={app.extensions['cloudmedia'].backend.name}, "
        f"data_dir={data_dir})"
    )
    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 5050,
    debug: bool = False,
) -> None:
    """
    Run the API server.

    Args:
        host: Bind address
        port: Port to run on
        debug: Enable Flask debug mode
    """
    app = create_app()
    print(f"CloudMedia API running at http://{host}:{port}  (Ctrl+C to stop)")
    app.run(host=host, port=port, debug=debug, use_reloader=False)
