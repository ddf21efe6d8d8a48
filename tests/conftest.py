"""
Shared fixtures for CloudMedia tests.

Provides a Flask test app wired to the in-memory mock backend and a
temporary data directory, plus a fake Ghostscript that stands in for
the gs executable so PDF searches run without it installed.
"""

from __future__ import annotations

import io
import re
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

import pytest

pytest.importorskip("flask")

from cloudmedia.config.loader import Settings
from cloudmedia.models.asset import MediaAsset
from cloudmedia.transform.mock import MockTransformBackend

ALICE = {"Authorization": "Bearer tok-alice"}
BOB = {"Authorization": "Bearer tok-bob"}

_DPI_RE = re.compile(r"^-dColorImageResolution=(\d+)$")


class FakeGhostscript:
    """
    Replacement for subprocess.run that behaves like gs.

    Writes an output file whose size is size_at_dpi(dpi) for custom
    renders and preset_size for -dPDFSETTINGS renders.
    """

    def __init__(
        self,
        size_at_dpi: Callable[[int], int],
        preset_size: int = 0,
    ):
        self.size_at_dpi = size_at_dpi
        self.preset_size = preset_size
        self.calls: List[List[str]] = []
        self.tmpdirs: List[Path] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        out_arg = next(a for a in cmd if a.startswith("-sOutputFile="))
        out_path = Path(out_arg.split("=", 1)[1])
        self.tmpdirs.append(out_path.parent)

        dpi = self._dpi(cmd)
        size = self.preset_size if dpi is None else self.size_at_dpi(dpi)
        out_path.write_bytes(b"0" * size)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    @staticmethod
    def _dpi(cmd) -> Optional[int]:
        for arg in cmd:
            match = _DPI_RE.match(arg)
            if match:
                return int(match.group(1))
        return None

    @property
    def dpis(self) -> List[Optional[int]]:
        return [self._dpi(cmd) for cmd in self.calls]


@pytest.fixture
def fake_gs(monkeypatch):
    """Install a FakeGhostscript; call with a size model to configure it."""

    def install(size_at_dpi: Callable[[int], int], preset_size: int = 0) -> FakeGhostscript:
        fake = FakeGhostscript(size_at_dpi, preset_size)
        monkeypatch.setattr("cloudmedia.compression.ghostscript.subprocess.run", fake)
        return fake

    return install


def linear_pdf_size(dpi: int) -> int:
    """300 KB at 20 DPI, growing 2,000 bytes per DPI (860,000 at 300)."""
    return 300_000 + (dpi - 20) * 2_000


def make_png(width: int = 32, height: int = 24, color=(200, 40, 40)) -> bytes:
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_pdf(pages: int = 2) -> bytes:
    from PIL import Image

    images = [Image.new("RGB", (60, 80), (i * 40, 90, 160)) for i in range(pages)]
    buf = io.BytesIO()
    images[0].save(buf, format="PDF", save_all=True, append_images=images[1:])
    return buf.getvalue()


@pytest.fixture
def settings():
    return Settings(
        api_tokens="tok-alice:alice, tok-bob:bob",
        transform_backend="mock",
    )


@pytest.fixture
def backend():
    return MockTransformBackend()


@pytest.fixture
def app(tmp_path: Path, settings, backend):
    """Create a Flask test app with a temp data dir and the mock backend."""
    from cloudmedia.api.server import create_app

    app = create_app(settings=settings, data_dir=tmp_path / "data", backend=backend)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["cloudmedia"]


@pytest.fixture
def seed_asset(services, backend):
    """Store bytes in the mock backend and create the matching asset record."""

    def seed(
        data: bytes,
        *,
        user_id: str = "alice",
        resource_type: str = "image",
        original_format: str = "jpg",
        duration: Optional[float] = None,
        pages: Optional[int] = None,
        public_id: Optional[str] = None,
    ) -> MediaAsset:
        public_id = public_id or f"cloudmedia/{user_id}/{len(backend._objects) + 1:04d}"
        backend.put(
            public_id,
            data,
            resource_type=resource_type,
            format=original_format,
            duration=duration,
            pages=pages,
        )
        return services.assets.create(MediaAsset(
            user_id=user_id,
            public_id=public_id,
            resource_type=resource_type,
            original_format=original_format,
            bytes=len(data),
            duration=duration,
        ))

    return seed
