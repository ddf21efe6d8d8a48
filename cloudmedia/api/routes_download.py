"""
API — Proxy download.

Blueprint: download_bp
Prefix: /api
Routes:
    GET /api/download?url=<encoded>&filename=<name>

Fetches a remote artifact server-side and streams it back with a
Content-Disposition header so browsers save it. Only Cloudinary hosts
are allowed, and every redirect hop is checked against the same
allow-list before it is followed.
"""

from __future__ import annotations

import logging
import unicodedata
from urllib.parse import quote, urlparse

import httpx
from flask import Blueprint, Response, jsonify, request, stream_with_context

from ..errors import BadRequestError
from .helpers import require_user

download_bp = Blueprint("download", __name__)

logger = logging.getLogger(__name__)

ALLOWED_HOST_SUFFIX = "cloudinary.com"
DOWNLOAD_TIMEOUT_SECONDS = 120
MAX_REDIRECTS = 5


def is_allowed_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    host = parsed.hostname or ""
    allowed = host == ALLOWED_HOST_SUFFIX or host.endswith("." + ALLOWED_HOST_SUFFIX)
    return parsed.scheme in ("http", "https") and allowed


def content_disposition(filename: str) -> str:
    """
    Build an attachment header for a caller-supplied name.

    Quotes, backslashes and control characters are dropped so the name
    cannot close the quoted value or split the header. Non-ASCII names
    get an ASCII fallback plus an RFC 5987 ``filename*`` parameter.
    """
    cleaned = "".join(
        c for c in filename if c not in '"\\' and ord(c) >= 0x20 and c != "\x7f"
    ).strip() or "download"
    try:
        cleaned.encode("ascii")
    except UnicodeEncodeError:
        simple = unicodedata.normalize("NFKD", cleaned).encode("ascii", "ignore").decode("ascii")
        return (
            f'attachment; filename="{simple.strip() or "download"}"; '
            f"filename*=UTF-8''{quote(cleaned, safe='')}"
        )
    return f'attachment; filename="{cleaned}"'


def open_upstream(client: httpx.Client, url: str) -> httpx.Response:
    """
    GET url, following redirects only while they stay on allowed hosts.

    Raises:
        BadRequestError: A redirect points off the allow-list, or there
            are more than MAX_REDIRECTS hops
    """
    for _ in range(MAX_REDIRECTS + 1):
        upstream = client.send(client.build_request("GET", url), stream=True)
        if not upstream.has_redirect_location:
            return upstream
        url = str(upstream.url.join(upstream.headers["location"]))
        upstream.close()
        if not is_allowed_url(url):
            logger.warning(f"Download redirect to disallowed host refused: {url}")
            raise BadRequestError("Invalid URL")
    raise BadRequestError("Too many redirects")


@download_bp.route("/download", methods=["GET"])
def download():
    require_user()

    url = request.args.get("url")
    filename = request.args.get("filename") or "download"
    if not url:
        raise BadRequestError("Missing url param")
    if not is_allowed_url(url):
        raise BadRequestError("Invalid URL")

    client = httpx.Client(timeout=DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=False)
    try:
        upstream = open_upstream(client, url)
    except httpx.HTTPError as e:
        client.close()
        logger.warning(f"Download upstream error for {url}: {e}")
        return jsonify({"error": "Upstream fetch failed"}), 502
    except BadRequestError:
        client.close()
        raise

    if upstream.status_code >= 400:
        status = upstream.status_code
        upstream.close()
        client.close()
        return jsonify({"error": "Upstream fetch failed"}), status

    def generate():
        try:
            yield from upstream.iter_bytes()
        finally:
            upstream.close()
            client.close()

    content_type = upstream.headers.get("content-type") or "application/octet-stream"
    return Response(
        stream_with_context(generate()),
        status=200,
        headers={
            "Content-Type": content_type,
            "Content-Disposition": content_disposition(filename),
            "Cache-Control": "no-store",
        },
    )
