"""
Conversion Service — format conversions that don't search for a size.

Kinds:
- image_format    image → jpg/png/webp/avif/pdf delivery URL
- images_to_pdf   several images → one PDF, assembled locally with Pillow
- pdf_to_image    one delivery URL per PDF page
- video_to_audio  video → audio (or other video container) delivery URL

Every successful conversion appends one record to the ledger.
"""

from __future__ import annotations

import base64
import io
import logging
from typing import Any, Dict, List, Optional

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ..compression.search import clamp_number
from ..errors import BadRequestError, NotFoundError, TransformError
from ..models.asset import MediaAsset
from ..models.conversion import Conversion
from ..persistence.asset_store import AssetStore
from ..persistence.conversions import ConversionLedger
from ..transform.base import TransformBackend

logger = logging.getLogger(__name__)

IMAGE_OUT = {"jpg", "png", "webp", "avif", "pdf"}
PDF_PAGE_OUT = {"jpg", "png", "webp"}
VIDEO_OUT = {"mp4", "webm", "gif", "mp3", "wav", "m4a"}

DEFAULT_DENSITY = 150
MIN_DENSITY = 72
MAX_DENSITY = 300

UNSUPPORTED = "Unsupported conversion"


def images_to_pdf_bytes(images: List[bytes]) -> bytes:
    """Assemble images into a PDF, one page per image at its native size."""
    if not images:
        raise BadRequestError("Select at least 1 image")
    try:
        pages = [Image.open(io.BytesIO(data)).convert("RGB") for data in images]
    except UnidentifiedImageError as e:
        raise BadRequestError(f"Failed to read source image: {e}")

    buf = io.BytesIO()
    first, *rest = pages
    first.save(buf, format="PDF", save_all=True, append_images=rest, resolution=72.0)
    return buf.getvalue()


def count_pdf_pages(data: bytes) -> int:
    try:
        return len(PdfReader(io.BytesIO(data)).pages)
    except PdfReadError as e:
        raise BadRequestError(f"Failed to determine PDF page count: {e}")


class ConversionService:
    """
    Usage:
        service = ConversionService(backend, assets, ledger)
        service.convert("user-1", {"kind": "image_format", "assetId": "A-1", "targetFormat": "webp"})
    """

    def __init__(
        self,
        backend: TransformBackend,
        assets: AssetStore,
        conversions: ConversionLedger,
    ):
        self.backend = backend
        self.assets = assets
        self.conversions = conversions

    def convert(self, user_id: str, body: Any) -> Dict[str, Any]:
        if not isinstance(body, dict) or "kind" not in body:
            raise BadRequestError("Bad request")

        asset_ids = body.get("assetIds")
        primary_id = body.get("assetId")
        if not primary_id and isinstance(asset_ids, list) and asset_ids:
            primary_id = asset_ids[0]
        if not primary_id:
            raise BadRequestError("Bad request")

        asset = self.assets.get(primary_id, user_id)
        if asset is None:
            raise NotFoundError()

        kind = body["kind"]
        if kind == "image_format":
            return self._image_format(user_id, asset, body)
        if kind == "images_to_pdf":
            return self._images_to_pdf(user_id, asset, body)
        if kind == "pdf_to_image":
            return self._pdf_to_image(user_id, asset, body)
        if kind == "video_to_audio":
            return self._video_to_audio(user_id, asset, body)
        raise BadRequestError(UNSUPPORTED)

    def _record(
        self,
        user_id: str,
        asset: MediaAsset,
        kind: str,
        target_format: str,
        options: Dict[str, Any],
        result_url: str,
    ) -> None:
        self.conversions.append(Conversion(
            user_id=user_id,
            asset_id=asset.id,
            kind=kind,
            target_format=target_format,
            options=options,
            result_url=result_url,
        ))

    # ── Kinds ────────────────────────────────────────────────

    def _image_format(self, user_id: str, asset: MediaAsset, body: Dict[str, Any]) -> Dict[str, Any]:
        target_format = body.get("targetFormat")
        if asset.resource_type != "image" or target_format not in IMAGE_OUT:
            raise BadRequestError(UNSUPPORTED)

        options = {"quality": body.get("quality") or "auto"}
        result_url = self.backend.delivery_url(
            asset.public_id,
            "image",
            target_format,
            [{"quality": options["quality"]}, {"fetch_format": target_format}],
        )
        self._record(user_id, asset, "image_format", target_format, options, result_url)
        return {"resultUrl": result_url}

    def _images_to_pdf(self, user_id: str, asset: MediaAsset, body: Dict[str, Any]) -> Dict[str, Any]:
        raw_ids = body.get("assetIds") if isinstance(body.get("assetIds"), list) else []
        unique_ids = [i for i in dict.fromkeys(raw_ids) if i]
        if not unique_ids:
            raise BadRequestError("Select at least 1 image")

        sources = self.assets.get_many(unique_ids, user_id, resource_type="image")
        if len(sources) != len(unique_ids):
            raise NotFoundError("One or more assets not found")

        images = []
        for source in sources:
            url = self.backend.delivery_url(source.public_id, "image", "jpg", [{"quality": "auto"}])
            try:
                images.append(self.backend.fetch_bytes(url))
            except TransformError as e:
                logger.warning(f"Failed to fetch {source.public_id}: {e}")
                raise BadRequestError("Failed to fetch source image")

        pdf_bytes = images_to_pdf_bytes(images)
        logger.info(f"Assembled {len(images)} image(s) into PDF ({len(pdf_bytes):,} bytes)")

        self._record(user_id, asset, "images_to_pdf", "pdf", {"count": len(sources)}, "inline:base64")
        return {"pdfBase64": base64.b64encode(pdf_bytes).decode("ascii")}

    def _page_count(self, asset: MediaAsset) -> int:
        try:
            info = self.backend.resource_info(asset.public_id, "image", pages=True)
            pages = info.get("pages")
            if isinstance(pages, int) and pages > 0:
                return pages
        except TransformError as e:
            logger.debug(f"Page count lookup failed, fetching PDF instead: {e}")

        url = self.backend.delivery_url(asset.public_id, "image", "pdf", [])
        try:
            data = self.backend.fetch_bytes(url)
        except TransformError:
            raise BadRequestError("Failed to fetch PDF")
        return count_pdf_pages(data)

    def _pdf_to_image(self, user_id: str, asset: MediaAsset, body: Dict[str, Any]) -> Dict[str, Any]:
        target_format = body.get("targetFormat")
        if asset.resource_type != "image" or target_format not in PDF_PAGE_OUT:
            raise BadRequestError(UNSUPPORTED)

        requested: Optional[Any] = body.get("density")
        if isinstance(requested, (int, float)) and not isinstance(requested, bool) and requested:
            density = int(clamp_number(requested, MIN_DENSITY, MAX_DENSITY))
        else:
            density = DEFAULT_DENSITY

        page_count = self._page_count(asset)
        page_urls = [
            self.backend.delivery_url(
                asset.public_id,
                "image",
                target_format,
                [{"density": density}, {"page": page}, {"quality": "auto"}],
            )
            for page in range(1, page_count + 1)
        ]

        options = {"density": density, "pageCount": page_count}
        self._record(user_id, asset, "pdf_to_image", target_format, options, f"{page_count} pages")
        return {"pageUrls": page_urls, "pageCount": page_count}

    def _video_to_audio(self, user_id: str, asset: MediaAsset, body: Dict[str, Any]) -> Dict[str, Any]:
        target_format = body.get("targetFormat")
        if asset.resource_type != "video" or target_format not in VIDEO_OUT:
            raise BadRequestError(UNSUPPORTED)

        audio_bitrate = body.get("audioBitrate")
        transformation: List[Dict[str, Any]] = [{"quality": "auto"}]
        options: Dict[str, Any] = {}
        if audio_bitrate:
            transformation.append({"audio_frequency": audio_bitrate})
            options["audioBitrate"] = audio_bitrate

        result_url = self.backend.delivery_url(asset.public_id, "video", target_format, transformation)
        self._record(user_id, asset, "video_to_audio", target_format, options, result_url)
        return {"resultUrl": result_url}
