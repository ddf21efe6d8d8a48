"""
Compression Orchestrator — route a compression request to a strategy.

Routing:
- video               → bitrate estimate, one eager transform
- image with fmt pdf  → Ghostscript DPI binary search on the uploaded bytes
- other image         → quality ladder scan over delivery URLs

Guardrails:
- target budget clamped to [50 KB, 100 MB]
- target >= original size is rejected before any transform call
- a PDF result that isn't smaller than the original is discarded
- an image or video result larger than the original leaves the asset untouched

Each request is single-shot: it either fully succeeds (possibly with a
warning) or raises a CloudMediaError. On success the asset is updated
in place and one `compress` conversion is appended to the ledger.
"""

from __future__ import annotations

import base64
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..errors import BadRequestError, NotFoundError, TransformError
from ..models.asset import MediaAsset
from ..models.conversion import Conversion
from ..persistence.asset_store import AssetStore
from ..persistence.conversions import ConversionLedger
from ..transform.base import TransformBackend, UploadResult
from .ghostscript import GhostscriptRunner
from .search import (
    BEST_EFFORT_WARNING,
    IMAGE_QUALITY_LADDER,
    MAX_DPI,
    MIN_DPI,
    Candidate,
    binary_search_quality,
    clamp_number,
    dpi_to_jpeg_quality,
    estimate_video_bitrate_kbps,
    ladder_scan_quality,
    round_half_up,
)

logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * 1024
MIN_TARGET_BYTES = 50 * KB
MAX_TARGET_BYTES = 100 * MB

PDF_MIME = "application/pdf"
BEST_QUALITY_PDF_PRESET = "/prepress"
ALREADY_COMPRESSED_NOTICE = "PDF is already well-compressed; returning original."
KEPT_ORIGINAL_NOTICE = "File is already well-compressed; keeping original."


# ── Request / result types ───────────────────────────────────


@dataclass
class CompressionRequest:
    """Parsed compress request (JSON body or multipart form)."""

    asset_id: Optional[str]
    target_kb: Optional[float] = None
    target_mb: Optional[float] = None
    pdf_data: Optional[bytes] = None
    pdf_mime: Optional[str] = None

    def target_bytes(self) -> Optional[int]:
        """Budget in bytes, clamped to [50 KB, 100 MB]; None means best quality."""
        if self.target_kb is not None:
            raw = self.target_kb * KB
        elif self.target_mb is not None:
            raw = self.target_mb * MB
        else:
            return None
        return round_half_up(clamp_number(raw, MIN_TARGET_BYTES, MAX_TARGET_BYTES))


@dataclass
class Rendition:
    """Output of one strategy, before upload."""

    data: bytes
    applied: Dict[str, Any]
    url: str = ""
    warning: Optional[str] = None


@dataclass
class CompressionOutcome:
    result_url: str
    original_bytes: int
    bytes: int
    target_bytes: Optional[int]
    format: str
    resource_type: str
    applied: Dict[str, Any] = field(default_factory=dict)
    warning: Optional[str] = None
    pdf_data: Optional[bytes] = None

    def to_api_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "resultUrl": self.result_url,
            "originalBytes": self.original_bytes,
            "bytes": self.bytes,
            "targetBytes": self.target_bytes,
            "format": self.format,
            "resourceType": self.resource_type,
        }
        if self.warning:
            payload["warning"] = self.warning
        if self.pdf_data is not None:
            payload["pdfBase64"] = base64.b64encode(self.pdf_data).decode("ascii")
        return payload


def coerce_number(value: Any) -> Optional[float]:
    """Parse a numeric field from JSON or form data; None if absent or invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


# ── PDF ──────────────────────────────────────────────────────


def compress_pdf_bytes(
    data: bytes,
    target_bytes: Optional[int],
    runner: GhostscriptRunner,
) -> Rendition:
    """
    Compress PDF bytes locally with Ghostscript.

    With a target, searches DPI in [20, 300] (JPEG quality coupled
    linearly) for the best quality that fits. Without one, renders
    once with the /prepress preset. Never returns something larger
    than the input.
    """
    if target_bytes is None:
        output = runner.render_preset(data, BEST_QUALITY_PDF_PRESET)
        rendition = Rendition(
            data=output,
            applied={"method": "ghostscript", "setting": BEST_QUALITY_PDF_PRESET},
        )
    else:
        def render(dpi: int) -> Candidate:
            jpeg_quality = dpi_to_jpeg_quality(dpi)
            return Candidate(
                level=dpi,
                data=runner.render_at_dpi(data, dpi, jpeg_quality),
                params={"method": "ghostscript_custom", "dpi": dpi, "jpegQuality": jpeg_quality},
            )

        result = binary_search_quality(render, MIN_DPI, MAX_DPI, target_bytes)
        rendition = Rendition(
            data=result.candidate.data,
            applied=dict(result.candidate.params),
            warning=result.warning,
        )
        if len(rendition.data) > target_bytes and not rendition.warning:
            rendition.warning = BEST_EFFORT_WARNING

    if len(rendition.data) >= len(data):
        logger.info(
            f"PDF compression did not reduce size "
            f"({len(data):,} → {len(rendition.data):,}), keeping original"
        )
        rendition.data = data
        rendition.warning = ALREADY_COMPRESSED_NOTICE
    return rendition


# ── Orchestrator ─────────────────────────────────────────────


class CompressionOrchestrator:
    """
    Runs one compression request end to end.

    Usage:
        orchestrator = CompressionOrchestrator(backend, assets, ledger, runner)
        outcome = orchestrator.compress("user-1", CompressionRequest(asset_id="A-1", target_kb=500))
    """

    def __init__(
        self,
        backend: TransformBackend,
        assets: AssetStore,
        conversions: ConversionLedger,
        ghostscript: GhostscriptRunner,
    ):
        self.backend = backend
        self.assets = assets
        self.conversions = conversions
        self.ghostscript = ghostscript

    def compress(self, user_id: str, request: CompressionRequest) -> CompressionOutcome:
        if not request.asset_id:
            raise BadRequestError("Bad request")

        target_bytes = request.target_bytes()

        asset = self.assets.get(request.asset_id, user_id)
        if asset is None:
            raise NotFoundError()

        original_bytes = asset.bytes
        if target_bytes is not None and target_bytes >= original_bytes:
            raise BadRequestError("Target size must be smaller than the original file size")

        log_extra = {"user_id": user_id, "asset_id": asset.id}
        logger.info(
            f"Compressing {asset.id} ({asset.resource_type}/{asset.original_format}, "
            f"{original_bytes:,} bytes) target={target_bytes}",
            extra=log_extra,
        )

        if asset.is_video:
            rendition = self._compress_video(asset, target_bytes)
        elif asset.is_pdf:
            rendition = self._compress_pdf(request, target_bytes)
        else:
            rendition = self._compress_image(asset, target_bytes)

        if not asset.is_pdf and len(rendition.data) > original_bytes:
            # Stored copy is still the original; leave it untouched
            logger.info(
                f"Output for {asset.id} ({len(rendition.data):,} bytes) is larger than "
                f"the original, keeping original",
                extra=log_extra,
            )
            rendition = Rendition(
                data=b"",
                applied={"kept": "original"},
                warning=KEPT_ORIGINAL_NOTICE,
            )
            updated = asset
            result_url = self.backend.delivery_url(
                asset.public_id, asset.resource_type, asset.original_format, []
            )
        else:
            upload = self._store_result(asset, rendition.data)
            updated = self._update_asset(asset, upload, len(rendition.data))
            result_url = upload.secure_url or rendition.url

        options: Dict[str, Any] = {
            "mode": "best_quality" if target_bytes is None else "target_size",
            "originalBytes": original_bytes,
            "achievedBytes": updated.bytes,
            "applied": rendition.applied,
        }
        if target_bytes is not None:
            options["targetBytes"] = target_bytes
        if rendition.warning:
            options["warning"] = rendition.warning

        self.conversions.append(Conversion(
            user_id=user_id,
            asset_id=updated.id,
            kind="compress",
            target_format=updated.original_format,
            options=options,
            result_url=result_url,
        ))

        if rendition.warning:
            logger.warning(f"Compression of {asset.id}: {rendition.warning}", extra=log_extra)
        logger.info(
            f"Compressed {asset.id}: {original_bytes:,} → {updated.bytes:,} bytes "
            f"applied={rendition.applied}",
            extra=log_extra,
        )

        return CompressionOutcome(
            result_url=result_url,
            original_bytes=original_bytes,
            bytes=len(rendition.data) if asset.is_pdf else updated.bytes,
            target_bytes=target_bytes,
            format="pdf" if asset.is_pdf else updated.original_format,
            resource_type=updated.resource_type,
            applied=rendition.applied,
            warning=rendition.warning,
            pdf_data=rendition.data if asset.is_pdf else None,
        )

    # ── Strategies ───────────────────────────────────────────

    def _video_duration(self, asset: MediaAsset) -> Optional[float]:
        if asset.duration and asset.duration > 0:
            return asset.duration
        try:
            info = self.backend.resource_info(asset.public_id, "video")
        except TransformError as e:
            logger.debug(f"Duration lookup failed for {asset.public_id}: {e}")
            return None
        duration = info.get("duration")
        if isinstance(duration, (int, float)) and duration > 0:
            return float(duration)
        return None

    def _compress_video(self, asset: MediaAsset, target_bytes: Optional[int]) -> Rendition:
        if target_bytes is None:
            transformation = {"quality": "auto:best", "format": "mp4"}
            eager = self.backend.explicit_eager(asset.public_id, "video", transformation)
            return Rendition(
                data=self.backend.fetch_bytes(eager.secure_url),
                applied={"quality": "auto:best", "format": "mp4"},
                url=eager.secure_url,
            )

        duration = self._video_duration(asset)
        try:
            kbps = estimate_video_bitrate_kbps(target_bytes, duration)
        except ValueError as e:
            raise BadRequestError(str(e))

        logger.info(f"Video bitrate estimate: {kbps}k for {duration}s → {target_bytes:,} bytes")
        eager = self.backend.explicit_eager(asset.public_id, "video", {
            "bit_rate": f"{kbps}k",
            "quality": "auto",
            "format": asset.original_format or "mp4",
        })
        data = self.backend.fetch_bytes(eager.secure_url)
        return Rendition(
            data=data,
            applied={"bit_rate": f"{kbps}k", "quality": "auto"},
            url=eager.secure_url,
            warning=BEST_EFFORT_WARNING if len(data) > target_bytes else None,
        )

    def _compress_pdf(self, request: CompressionRequest, target_bytes: Optional[int]) -> Rendition:
        # The backend can't re-distill PDFs; the caller sends the raw file
        if not request.pdf_data or request.pdf_mime != PDF_MIME:
            raise BadRequestError("PDF file is required for PDF compression")
        return compress_pdf_bytes(request.pdf_data, target_bytes, self.ghostscript)

    def _image_url(self, asset: MediaAsset, quality: Any) -> str:
        return self.backend.delivery_url(
            asset.public_id, "image", asset.original_format, [{"quality": quality}]
        )

    def _compress_image(self, asset: MediaAsset, target_bytes: Optional[int]) -> Rendition:
        if target_bytes is None:
            url = self._image_url(asset, "auto:best")
            return Rendition(
                data=self.backend.fetch_bytes(url),
                applied={"quality": "auto:best"},
                url=url,
            )

        def evaluate(quality: int) -> Candidate:
            url = self._image_url(asset, quality)
            return Candidate(
                level=quality,
                data=self.backend.fetch_bytes(url),
                params={"quality": quality},
                url=url,
            )

        result = ladder_scan_quality(evaluate, target_bytes, IMAGE_QUALITY_LADDER)
        return Rendition(
            data=result.candidate.data,
            applied=dict(result.candidate.params),
            url=result.candidate.url or "",
            warning=result.warning,
        )

    # ── Persistence ──────────────────────────────────────────

    def _store_result(self, asset: MediaAsset, data: bytes) -> UploadResult:
        if asset.is_pdf:
            # Raw resource so the backend serves an actual PDF, not a thumbnail
            return self.backend.upload(
                data,
                resource_type="raw",
                public_id=f"{asset.public_id}_compressed",
                overwrite=True,
                invalidate=True,
                format="pdf",
            )
        return self.backend.upload(
            data,
            resource_type="video" if asset.is_video else "image",
            public_id=asset.public_id,
            overwrite=True,
            invalidate=True,
        )

    def _update_asset(self, asset: MediaAsset, upload: UploadResult, size: int) -> MediaAsset:
        if asset.is_pdf:
            resource_type = "image"
        elif upload.resource_type in ("image", "video"):
            resource_type = upload.resource_type
        else:
            resource_type = asset.resource_type

        return self.assets.update(
            asset.id,
            public_id=upload.public_id or asset.public_id,
            resource_type=resource_type,
            original_format="pdf" if asset.is_pdf else (upload.format or asset.original_format),
            bytes=upload.bytes or size,
            width=None if asset.is_pdf else (upload.width or asset.width),
            height=None if asset.is_pdf else (upload.height or asset.height),
            duration=upload.duration or asset.duration,
        )
