"""
Quality Search — find the best quality setting that fits a byte budget.

Three strategies, all pure functions over a caller-supplied transform:

1. Binary search over an integer quality domain (PDF: DPI). The
   JPEG quality is coupled to the DPI by linear interpolation, so the
   two knobs collapse into one search variable.
2. Ladder scan over a short descending list of discrete settings
   (images: Cloudinary quality). Stops at the first fit.
3. Bitrate estimate for video. One shot, no refinement.

All strategies assume output size grows monotonically with quality.
When that assumption holds, a feasible budget always yields an output
that fits it. When it doesn't, the result is still returned, with a
best-effort warning attached by the caller.

## Usage

    from cloudmedia.compression.search import binary_search_quality

    result = binary_search_quality(render_at_dpi, 20, 300, 512_000)
    result.candidate.data, result.warning, result.calls
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, NamedTuple, Optional, Sequence

logger = logging.getLogger(__name__)

# ── Defaults ─────────────────────────────────────────────────

MAX_DPI = 300
MIN_DPI = 20
MAX_JPEG = 95
MIN_JPEG = 20
MAX_ITERATIONS = 10

IMAGE_QUALITY_LADDER = (80, 60, 45, 30, 20)

MIN_VIDEO_KBPS = 200
MAX_VIDEO_KBPS = 8000

INFEASIBLE_WARNING = (
    "Could not reach target size; used maximum compression for best quality."
)
BEST_EFFORT_WARNING = (
    "Could not reach target size exactly; used best-effort compression."
)


@dataclass(frozen=True)
class Candidate:
    """One rendered output and the parameters that produced it."""

    level: int
    data: bytes
    params: Dict[str, Any] = field(default_factory=dict)
    url: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class SearchResult:
    candidate: Candidate
    warning: Optional[str]
    calls: int


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def clamp_number(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def dpi_to_jpeg_quality(
    dpi: int,
    min_dpi: int = MIN_DPI,
    max_dpi: int = MAX_DPI,
    min_jpeg: int = MIN_JPEG,
    max_jpeg: int = MAX_JPEG,
) -> int:
    """Map a DPI onto the JPEG quality range by linear interpolation."""
    fraction = (dpi - min_dpi) / (max_dpi - min_dpi)
    return round_half_up(min_jpeg + fraction * (max_jpeg - min_jpeg))


# ── Binary search ────────────────────────────────────────────


class _BisectState(NamedTuple):
    lo: int
    hi: int
    best: Candidate


def _bisect_step(
    state: _BisectState,
    transform_at: Callable[[int], Candidate],
    target_bytes: int,
) -> _BisectState:
    """Evaluate the midpoint and return the narrowed state."""
    mid = (state.lo + state.hi + 1) // 2
    attempt = transform_at(mid)
    fits = attempt.size <= target_bytes
    logger.debug(
        f"Search step: level={mid} size={attempt.size:,} "
        f"target={target_bytes:,} fits={fits}"
    )
    if fits:
        return _BisectState(lo=mid + 1, hi=state.hi, best=attempt)
    return _BisectState(lo=state.lo, hi=mid - 1, best=state.best)


def binary_search_quality(
    transform_at: Callable[[int], Candidate],
    min_level: int,
    max_level: int,
    target_bytes: int,
    iteration_cap: int = MAX_ITERATIONS,
) -> SearchResult:
    """
    Find the highest quality level whose output fits target_bytes.

    Args:
        transform_at: Renders the input at a quality level. Failures
            propagate and abort the search.
        min_level: Lowest (smallest output) level.
        max_level: Highest (largest output) level.
        target_bytes: Byte budget.
        iteration_cap: Max midpoint evaluations after the two bounds.

    Returns:
        SearchResult. Issues at most 2 + iteration_cap transform calls.
    """
    high = transform_at(max_level)
    calls = 1
    if high.size <= target_bytes:
        logger.debug(f"Highest quality fits: level={max_level} size={high.size:,}")
        return SearchResult(high, None, calls)

    low = transform_at(min_level)
    calls += 1
    if low.size > target_bytes:
        logger.info(
            f"Target {target_bytes:,} infeasible: minimum quality gives {low.size:,} bytes"
        )
        return SearchResult(low, INFEASIBLE_WARNING, calls)

    state = _BisectState(lo=min_level, hi=max_level, best=low)
    for _ in range(iteration_cap):
        if state.lo > state.hi:
            break
        state = _bisect_step(state, transform_at, target_bytes)
        calls += 1

    logger.info(
        f"Search converged: level={state.best.level} size={state.best.size:,} "
        f"target={target_bytes:,} calls={calls}"
    )
    return SearchResult(state.best, None, calls)


# ── Ladder scan ──────────────────────────────────────────────


def ladder_scan_quality(
    evaluate: Callable[[int], Candidate],
    target_bytes: int,
    ladder: Sequence[int] = IMAGE_QUALITY_LADDER,
) -> SearchResult:
    """
    Try settings from highest to lowest; stop at the first that fits.

    If nothing fits, the smallest output seen is returned with a
    best-effort warning.
    """
    if not ladder:
        raise ValueError("Quality ladder is empty")

    smallest: Optional[Candidate] = None
    calls = 0
    for setting in ladder:
        attempt = evaluate(setting)
        calls += 1
        logger.debug(
            f"Ladder step: quality={setting} size={attempt.size:,} target={target_bytes:,}"
        )
        if attempt.size <= target_bytes:
            return SearchResult(attempt, None, calls)
        if smallest is None or attempt.size < smallest.size:
            smallest = attempt

    assert smallest is not None
    return SearchResult(smallest, BEST_EFFORT_WARNING, calls)


# ── Video bitrate ────────────────────────────────────────────


def estimate_video_bitrate_kbps(
    target_bytes: int,
    duration_seconds: Optional[float],
    min_kbps: int = MIN_VIDEO_KBPS,
    max_kbps: int = MAX_VIDEO_KBPS,
) -> int:
    """
    Bitrate (kbps) that would make a video of this duration land on target_bytes.

    Raises:
        ValueError: If the duration is unknown or not positive
    """
    if not duration_seconds or duration_seconds <= 0:
        raise ValueError("Missing video duration; cannot estimate bitrate")
    raw = math.floor((target_bytes * 8) / (duration_seconds * 1000))
    return int(clamp_number(raw, min_kbps, max_kbps))
