"""
Tests for format conversions.

Routes tested:
    POST /api/convert
"""

import base64
import io

import pytest
from pypdf import PdfReader

from cloudmedia.conversion.service import count_pdf_pages, images_to_pdf_bytes
from cloudmedia.errors import BadRequestError
from tests.conftest import ALICE, make_pdf, make_png


def convert(client, **body):
    return client.post("/api/convert", json=body, headers=ALICE)


class TestConvertValidation:
    """Request validation shared by every kind."""

    def test_requires_auth(self, client):
        resp = client.post("/api/convert", json={"kind": "image_format"})
        assert resp.status_code == 401

    def test_missing_kind(self, client):
        resp = convert(client, assetId="A-1")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Bad request"

    def test_missing_asset(self, client):
        resp = convert(client, kind="image_format", assetId="A-missing", targetFormat="png")
        assert resp.status_code == 404

    def test_unknown_kind(self, client, seed_asset):
        asset = seed_asset(make_png(), original_format="png")
        resp = convert(client, kind="sepia", assetId=asset.id)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Unsupported conversion"


class TestImageFormat:
    """image_format conversions."""

    def test_webp(self, client, seed_asset, services):
        asset = seed_asset(make_png(), original_format="png")

        resp = convert(client, kind="image_format", assetId=asset.id, targetFormat="webp")

        assert resp.status_code == 200
        url = resp.get_json()["resultUrl"]
        assert url.endswith(".webp")
        assert "q_auto" in url

        record = services.conversions.list_for_user("alice")[0]
        assert record.kind == "image_format"
        assert record.target_format == "webp"
        assert record.result_url == url

    def test_unsupported_target(self, client, seed_asset):
        asset = seed_asset(make_png(), original_format="png")
        resp = convert(client, kind="image_format", assetId=asset.id, targetFormat="tiff")
        assert resp.status_code == 400

    def test_video_asset_rejected(self, client, seed_asset):
        asset = seed_asset(b"v" * 10, resource_type="video", original_format="mp4")
        resp = convert(client, kind="image_format", assetId=asset.id, targetFormat="png")
        assert resp.status_code == 400


class TestImagesToPdf:
    """images_to_pdf conversions."""

    def test_assembles_pdf(self, client, seed_asset, services):
        first = seed_asset(make_png(color=(255, 0, 0)), original_format="png")
        second = seed_asset(make_png(color=(0, 0, 255)), original_format="png")

        resp = convert(client, kind="images_to_pdf", assetIds=[first.id, second.id, first.id])

        assert resp.status_code == 200
        pdf = base64.b64decode(resp.get_json()["pdfBase64"])
        assert pdf.startswith(b"%PDF")
        assert len(PdfReader(io.BytesIO(pdf)).pages) == 2

        record = services.conversions.list_for_user("alice")[0]
        assert record.result_url == "inline:base64"
        assert record.options == {"count": 2}

    def test_missing_member(self, client, seed_asset):
        first = seed_asset(make_png(), original_format="png")
        resp = convert(client, kind="images_to_pdf", assetIds=[first.id, "A-missing"])
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "One or more assets not found"

    def test_non_image_member(self, client, seed_asset):
        first = seed_asset(make_png(), original_format="png")
        video = seed_asset(b"v" * 10, resource_type="video", original_format="mp4")
        resp = convert(client, kind="images_to_pdf", assetIds=[first.id, video.id])
        assert resp.status_code == 404


class TestPdfToImage:
    """pdf_to_image conversions."""

    def test_page_urls_from_metadata(self, client, seed_asset):
        asset = seed_asset(make_pdf(3), original_format="pdf", pages=3)

        resp = convert(client, kind="pdf_to_image", assetId=asset.id, targetFormat="png", density=500)

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["pageCount"] == 3
        assert len(data["pageUrls"]) == 3
        assert "dn_300" in data["pageUrls"][0]
        assert "pg_3" in data["pageUrls"][2]
        assert all(u.endswith(".png") for u in data["pageUrls"])

    def test_page_count_fallback_reads_pdf(self, client, seed_asset, services):
        asset = seed_asset(make_pdf(2), original_format="pdf")

        resp = convert(client, kind="pdf_to_image", assetId=asset.id, targetFormat="jpg")

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["pageCount"] == 2
        assert "dn_150" in data["pageUrls"][0]
        assert services.conversions.list_for_user("alice")[0].result_url == "2 pages"

    def test_unsupported_target(self, client, seed_asset):
        asset = seed_asset(make_pdf(1), original_format="pdf", pages=1)
        resp = convert(client, kind="pdf_to_image", assetId=asset.id, targetFormat="gif")
        assert resp.status_code == 400


class TestVideoToAudio:
    """video_to_audio conversions."""

    def test_mp3(self, client, seed_asset, services):
        asset = seed_asset(b"v" * 100, resource_type="video", original_format="mp4")

        resp = convert(
            client, kind="video_to_audio", assetId=asset.id, targetFormat="mp3", audioBitrate=44100,
        )

        assert resp.status_code == 200
        url = resp.get_json()["resultUrl"]
        assert url.endswith(".mp3")
        assert "af_44100" in url
        assert services.conversions.list_for_user("alice")[0].options == {"audioBitrate": 44100}

    def test_image_asset_rejected(self, client, seed_asset):
        asset = seed_asset(make_png(), original_format="png")
        resp = convert(client, kind="video_to_audio", assetId=asset.id, targetFormat="mp3")
        assert resp.status_code == 400


class TestHelpers:
    """Local PDF helpers."""

    def test_images_to_pdf_bytes(self):
        pdf = images_to_pdf_bytes([make_png(), make_png(10, 10)])
        assert count_pdf_pages(pdf) == 2

    def test_unreadable_image(self):
        with pytest.raises(BadRequestError):
            images_to_pdf_bytes([b"not an image"])

    def test_unreadable_pdf(self):
        with pytest.raises(BadRequestError):
            count_pdf_pages(b"not a pdf")
