"""
Tests for the quality search strategies.
"""

import pytest

from cloudmedia.compression.search import (
    BEST_EFFORT_WARNING,
    INFEASIBLE_WARNING,
    MAX_ITERATIONS,
    Candidate,
    binary_search_quality,
    dpi_to_jpeg_quality,
    estimate_video_bitrate_kbps,
    ladder_scan_quality,
    round_half_up,
)


def sized(size_at):
    """transform_at that records every level it is asked for."""
    levels = []

    def transform_at(level):
        levels.append(level)
        return Candidate(level=level, data=b"x" * size_at(level))

    transform_at.levels = levels
    return transform_at


class TestBinarySearch:
    """Tests for binary_search_quality."""

    def test_highest_quality_fits_single_call(self):
        transform = sized(lambda level: 1_000)
        result = binary_search_quality(transform, 20, 300, 5_000)

        assert result.candidate.level == 300
        assert result.warning is None
        assert result.calls == 1
        assert transform.levels == [300]

    def test_infeasible_returns_minimum_with_warning(self):
        transform = sized(lambda level: 10_000 + level)
        result = binary_search_quality(transform, 20, 300, 5_000)

        assert result.candidate.level == 20
        assert result.warning == INFEASIBLE_WARNING
        assert transform.levels == [300, 20]

    def test_pdf_scenario_finds_best_fitting_dpi(self):
        """2 MB PDF, 500 KB budget: highest DPI whose output fits."""
        transform = sized(lambda dpi: 300_000 + (dpi - 20) * 2_000)
        result = binary_search_quality(transform, 20, 300, 512_000)

        assert result.candidate.level == 126
        assert result.candidate.size <= 512_000
        assert result.warning is None
        assert result.calls <= 2 + MAX_ITERATIONS

    @pytest.mark.parametrize("budget", [
        *range(300_000, 860_000, 7_919),
        300_000, 301_999, 302_000, 857_999, 858_000, 859_999,
    ])
    def test_every_feasible_budget_gets_highest_fitting_level(self, budget):
        def size_at(dpi):
            return 300_000 + (dpi - 20) * 2_000

        transform = sized(size_at)
        result = binary_search_quality(transform, 20, 300, budget)

        highest_fitting = max(dpi for dpi in range(20, 301) if size_at(dpi) <= budget)
        assert result.candidate.size <= budget
        assert result.candidate.level == highest_fitting
        assert result.calls <= 2 + MAX_ITERATIONS
        assert result.warning is None

    def test_call_count_is_capped_on_wide_domain(self):
        transform = sized(lambda level: level)
        result = binary_search_quality(transform, 0, 1_000_000, 123_457)

        assert result.calls <= 12
        assert len(transform.levels) == result.calls
        assert result.candidate.size <= 123_457

    def test_plateau_prefers_highest_fitting_level(self):
        transform = sized(lambda level: 100 if level <= 50 else 200)
        result = binary_search_quality(transform, 0, 100, 150)

        assert result.candidate.level == 50

    def test_midpoint_rounds_up(self):
        transform = sized(lambda level: 10 if level <= 2 else 1_000)
        binary_search_quality(transform, 0, 3, 100)

        # bounds first, then (0 + 3 + 1) // 2
        assert transform.levels[:3] == [3, 0, 2]

    def test_transform_failure_aborts_search(self):
        def transform_at(level):
            if level not in (20, 300):
                raise RuntimeError("render failed")
            return Candidate(level=level, data=b"x" * level)

        with pytest.raises(RuntimeError, match="render failed"):
            binary_search_quality(transform_at, 20, 300, 100)


class TestLadderScan:
    """Tests for ladder_scan_quality."""

    def test_stops_at_first_fit(self):
        transform = sized(lambda q: q * 10_000)
        result = ladder_scan_quality(transform, 350_000)

        assert result.candidate.level == 30
        assert result.warning is None
        assert transform.levels == [80, 60, 45, 30]

    def test_first_setting_fits(self):
        transform = sized(lambda q: 10)
        result = ladder_scan_quality(transform, 100)

        assert result.calls == 1
        assert result.candidate.level == 80

    def test_nothing_fits_returns_smallest(self):
        transform = sized(lambda q: 1_000_000 + q)
        result = ladder_scan_quality(transform, 100)

        assert result.candidate.level == 20
        assert result.warning == BEST_EFFORT_WARNING
        assert result.calls == 5

    def test_non_monotone_ladder_keeps_smallest_seen(self):
        sizes = {80: 900, 60: 300, 45: 700, 30: 800, 20: 600}
        transform = sized(lambda q: sizes[q])
        result = ladder_scan_quality(transform, 100)

        assert result.candidate.level == 60

    def test_empty_ladder_rejected(self):
        with pytest.raises(ValueError):
            ladder_scan_quality(sized(lambda q: 1), 100, ladder=())


class TestVideoBitrate:
    """Tests for estimate_video_bitrate_kbps."""

    def test_ten_mb_sixty_seconds(self):
        assert estimate_video_bitrate_kbps(10 * 1024 * 1024, 60) == 1398

    def test_clamped_to_minimum(self):
        assert estimate_video_bitrate_kbps(50 * 1024, 600) == 200

    def test_clamped_to_maximum(self):
        assert estimate_video_bitrate_kbps(100 * 1024 * 1024, 1) == 8000

    @pytest.mark.parametrize("duration", [None, 0, -5])
    def test_missing_duration(self, duration):
        with pytest.raises(ValueError, match="Missing video duration"):
            estimate_video_bitrate_kbps(1_000_000, duration)


class TestJpegCoupling:
    """Tests for dpi_to_jpeg_quality and rounding."""

    def test_endpoints(self):
        assert dpi_to_jpeg_quality(20) == 20
        assert dpi_to_jpeg_quality(300) == 95

    def test_midpoint_rounds_half_up(self):
        # 20 + 0.5 * 75 = 57.5
        assert dpi_to_jpeg_quality(160) == 58

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2
