import pytest # pyright: ignore[reportMissingImports]
import numpy as np

from audio_pipeline.models import Jitter, Shimmer
from audio_pipeline.perturbation import (
    compute_jitter,
    compute_shimmer,
    local_perturbation,
    windowed_perturbation_quotient,
)


class TestJitter:
    """Test jitter computation."""

    @pytest.mark.parametrize('contour', [[], [150.0], [0.0, 0.0, 0.0]])
    def test_too_few_points_is_zero(self, contour):
        """Fewer than 2 voiced points yield exactly 0, never NaN."""
        assert compute_jitter(contour) == Jitter()
        assert compute_jitter(contour, method='windowed') == Jitter()

    def test_two_point_contour(self):
        """Periods 10 ms and 8 ms: |0.002| / 0.008 = 0.25."""
        jitter = compute_jitter([100.0, 125.0])
        assert jitter.local == pytest.approx(0.25)
        assert jitter.rap == pytest.approx(0.2)
        assert jitter.ppq5 == pytest.approx(0.225)

    def test_unvoiced_frames_ignored(self):
        assert compute_jitter([0.0, 100.0, 0.0, 125.0]).local == pytest.approx(0.25)

    def test_steady_pitch(self):
        assert compute_jitter([150.0] * 20).local == 0.0

    def test_windowed_needs_enough_periods(self):
        jitter = compute_jitter([100.0, 125.0], method='windowed')
        assert jitter.local == pytest.approx(0.25)
        assert jitter.rap == 0.0
        assert jitter.ppq5 == 0.0

    def test_windowed_values_finite(self):
        rng = np.random.default_rng(0)
        contour = 150.0 + rng.normal(0, 3, size=50)
        jitter = compute_jitter(contour, method='windowed')
        assert 0 < jitter.rap < 0.1
        assert 0 < jitter.ppq5 < 0.1

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            compute_jitter([100.0, 110.0], method='praat')


class TestShimmer:
    """Test shimmer computation."""

    @pytest.mark.parametrize('amplitudes', [[], [0.4]])
    def test_too_few_points_is_zero(self, amplitudes):
        assert compute_shimmer(amplitudes) == Shimmer()

    def test_silence_is_zero(self):
        """Zero amplitudes hit the zero-denominator guard."""
        shimmer = compute_shimmer(np.zeros(40))
        assert shimmer.local == 0.0
        assert np.isfinite(shimmer.apq3)

    def test_ratio_variants(self):
        shimmer = compute_shimmer([1.0, 0.5])
        assert shimmer.local == pytest.approx(1.0)
        assert shimmer.apq3 == pytest.approx(0.7)
        assert shimmer.apq5 == pytest.approx(0.8)


class TestPerturbationQuotients:
    """Test the underlying perturbation measures."""

    def test_local_perturbation(self):
        assert local_perturbation([1.0, 2.0, 1.0]) == pytest.approx(2.0 / 3.0)

    def test_three_point_quotient(self):
        """Middle value 2 against the 3-point mean 4/3."""
        assert windowed_perturbation_quotient([1.0, 2.0, 1.0], 3) == pytest.approx(0.5)

    def test_quotient_short_input(self):
        assert windowed_perturbation_quotient([1.0, 2.0], 3) == 0.0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
