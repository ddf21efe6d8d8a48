"""
Target-size compression: quality search strategies and the orchestrator
that routes requests to them.
"""

from .ghostscript import GhostscriptRunner
from .orchestrator import (
    CompressionOrchestrator,
    CompressionOutcome,
    CompressionRequest,
    compress_pdf_bytes,
)
from .search import (
    binary_search_quality,
    estimate_video_bitrate_kbps,
    ladder_scan_quality,
)

__all__ = [
    "GhostscriptRunner",
    "CompressionOrchestrator",
    "CompressionOutcome",
    "CompressionRequest",
    "compress_pdf_bytes",
    "binary_search_quality",
    "estimate_video_bitrate_kbps",
    "ladder_scan_quality",
]
