"""Tests for SamplingFilter."""

import pytest

from telltale.core.sampling import SamplingFilter


class TestSamplingRate:
    @pytest.mark.parametrize("draw", [0.0, 0.5, 0.999])
    def test_rate_zero_rejects_everything(self, draw):
        sampler = SamplingFilter(error_sample_rate=0.0, rng=lambda: draw)
        assert sampler.should_capture("anything") is False

    @pytest.mark.parametrize("draw", [0.0, 0.5, 0.999])
    def test_rate_one_accepts_everything(self, draw):
        sampler = SamplingFilter(error_sample_rate=1.0, rng=lambda: draw)
        assert sampler.should_capture("anything", "/app/main.py") is True

    def test_partial_rate_compares_draw(self):
        assert SamplingFilter(error_sample_rate=0.25, rng=lambda: 0.2).is_sampled()
        assert not SamplingFilter(error_sample_rate=0.25, rng=lambda: 0.3).is_sampled()

    def test_rate_is_clamped(self):
        assert SamplingFilter(error_sample_rate=7).error_sample_rate == 1.0
        assert SamplingFilter(error_sample_rate=-1).error_sample_rate == 0.0


class TestPatternFiltering:
    def test_ignore_errors_substring(self):
        sampler = SamplingFilter(ignore_errors=["Network Error"], rng=lambda: 0.0)
        assert sampler.should_capture("Network Error: timeout") is False
        assert sampler.should_capture("Disk full") is True

    def test_ignore_urls_matches_filename(self):
        sampler = SamplingFilter(ignore_urls=["/health"], rng=lambda: 0.0)
        assert sampler.should_capture("boom", "/health/check.js") is False
        assert sampler.should_capture("boom", "/api/orders.py") is True

    def test_allow_urls_rejects_other_files(self):
        sampler = SamplingFilter(allow_urls=["/srv/app"], rng=lambda: 0.0)
        assert sampler.should_capture("boom", "/srv/app/views.py") is True
        assert sampler.should_capture("boom", "/usr/lib/other.py") is False

    def test_missing_filename_passes_url_filters(self):
        sampler = SamplingFilter(
            ignore_urls=["/health"], allow_urls=["/srv/app"], rng=lambda: 0.0
        )
        assert sampler.should_capture("boom", None) is True
