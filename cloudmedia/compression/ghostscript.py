"""
Ghostscript Runner — re-distill PDFs with explicit quality settings.

The gs executable is resolved from a prioritized candidate list
(GS_BINARY first, then platform defaults). A candidate that doesn't
exist is skipped; any other failure is final. When every candidate is
missing, the error lists all of them.

Each render gets its own temp directory, removed on every exit path,
so concurrent requests never collide on input/output file names.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import GhostscriptError, GhostscriptNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120

WINDOWS_CANDIDATES = (
    r"C:\Program Files\gs\gs10.04.0\bin\gswin64c.exe",
    r"C:\Program Files\gs\gs10.03.1\bin\gswin64c.exe",
    r"C:\Program Files\gs\gs10.02.1\bin\gswin64c.exe",
    r"C:\Program Files (x86)\gs\gs10.04.0\bin\gswin32c.exe",
    "gswin64c.exe",
    "gswin32c.exe",
    "gs",
)

POSIX_CANDIDATES = (
    "gs",
    "/usr/bin/gs",
    "/bin/gs",
    "/nix/var/nix/profiles/default/bin/gs",
    "/etc/profiles/per-user/root/bin/gs",
    "ghostscript",
)

# Arguments shared by every render
BASE_ARGS = (
    "-sDEVICE=pdfwrite",
    "-dCompatibilityLevel=1.4",
    "-dNOPAUSE",
    "-dQUIET",
    "-dBATCH",
    "-dAutoRotatePages=/None",
)


def ghostscript_candidates(
    gs_binary: Optional[str] = None,
    platform: str = sys.platform,
) -> List[str]:
    """Executables to try, in order."""
    defaults = WINDOWS_CANDIDATES if platform.startswith("win") else POSIX_CANDIDATES
    override = (gs_binary or "").strip()
    return [override, *defaults] if override else list(defaults)


def preset_args(setting: str) -> List[str]:
    """Arguments for a named -dPDFSETTINGS preset (/prepress, /ebook, /screen)."""
    return [*BASE_ARGS, f"-dPDFSETTINGS={setting}"]


def custom_dpi_args(dpi: int, jpeg_quality: int) -> List[str]:
    """Arguments that downsample every image to dpi and re-encode as JPEG."""
    return [
        *BASE_ARGS,
        f"-dColorImageResolution={dpi}",
        f"-dGrayImageResolution={dpi}",
        f"-dMonoImageResolution={dpi}",
        "-dDownsampleColorImages=true",
        "-dDownsampleGrayImages=true",
        "-dDownsampleMonoImages=true",
        "-dColorImageDownsampleType=/Bicubic",
        "-dGrayImageDownsampleType=/Bicubic",
        "-dMonoImageDownsampleType=/Bicubic",
        "-dAutoFilterColorImages=false",
        "-dAutoFilterGrayImages=false",
        "-dColorImageFilter=/DCTEncode",
        "-dGrayImageFilter=/DCTEncode",
        f"-dJPEGQ={jpeg_quality}",
        "-dDetectDuplicateImages=true",
        "-dCompressFonts=true",
        "-dSubsetFonts=true",
    ]


class GhostscriptRunner:
    """
    Runs gs against in-memory PDF bytes.

    Usage:
        runner = GhostscriptRunner(gs_binary=os.environ.get("GS_BINARY"))
        smaller = runner.render_at_dpi(pdf_bytes, dpi=150, jpeg_quality=60)
    """

    def __init__(
        self,
        gs_binary: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.gs_binary = gs_binary
        self.timeout = timeout

    def candidates(self) -> List[str]:
        return ghostscript_candidates(self.gs_binary)

    def locate(self) -> Optional[str]:
        """First candidate that resolves on this machine (for health checks)."""
        for candidate in self.candidates():
            found = shutil.which(candidate)
            if found:
                return found
        return None

    def run(self, args: Sequence[str]) -> str:
        """
        Run gs with args, trying each candidate executable.

        Returns:
            The candidate that ran successfully.

        Raises:
            GhostscriptNotFoundError: No candidate executable exists
            GhostscriptError: gs exited non-zero, timed out, or could
                not be started (e.g. not executable)
        """
        attempted: List[str] = []
        for candidate in self.candidates():
            attempted.append(candidate)
            try:
                proc = subprocess.run(
                    [candidate, *args],
                    capture_output=True,
                    text=True,
                    errors="replace",
                    timeout=self.timeout,
                )
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Ghostscript at {candidate} could not be started: {e}")
                raise GhostscriptError(
                    f"Could not run Ghostscript at {candidate}: {e.strerror or e}",
                    details={"binary": candidate},
                )
            except subprocess.TimeoutExpired:
                logger.warning(f"Ghostscript timed out ({self.timeout}s)")
                raise GhostscriptError(f"Ghostscript timed out after {self.timeout}s")

            if proc.returncode != 0:
                stderr = (proc.stderr or "").strip()[-500:]
                logger.warning(f"Ghostscript failed (rc={proc.returncode}): {stderr}")
                raise GhostscriptError(
                    f"Ghostscript failed (exit code {proc.returncode})",
                    details={"stderr": stderr} if stderr else None,
                )
            return candidate

        raise GhostscriptNotFoundError(attempted)

    def _render(self, data: bytes, args: Sequence[str]) -> bytes:
        tmpdir = tempfile.mkdtemp(prefix="cloudmedia_pdf_")
        try:
            in_path = Path(tmpdir) / "input.pdf"
            out_path = Path(tmpdir) / "output.pdf"
            in_path.write_bytes(data)

            self.run([*args, f"-sOutputFile={out_path}", str(in_path)])

            if not out_path.exists():
                raise GhostscriptError("Ghostscript produced no output file")
            return out_path.read_bytes()
        finally:
            shutil.rmtree(tmpdir, ignore_errors=True)

    def render_preset(self, data: bytes, setting: str) -> bytes:
        output = self._render(data, preset_args(setting))
        logger.debug(f"gs preset {setting}: {len(data):,} → {len(output):,} bytes")
        return output

    def render_at_dpi(self, data: bytes, dpi: int, jpeg_quality: int) -> bytes:
        output = self._render(data, custom_dpi_args(dpi, jpeg_quality))
        logger.debug(
            f"gs dpi={dpi} jpeg={jpeg_quality}: {len(data):,} → {len(output):,} bytes"
        )
        return output
