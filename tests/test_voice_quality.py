import pytest # pyright: ignore[reportMissingImports]
import numpy as np

from conftest import SAMPLE_RATE, sine_wave

from audio_pipeline.models import HNRFeatures
from audio_pipeline.voice_quality import (
    LPCFormantAnalyzer,
    PlaceholderFormantAnalyzer,
    compute_hnr,
    compute_spectral_features,
    frame_hnr,
    magnitude_spectrum,
    spectral_centroid,
    spectral_flux,
    spectral_rolloff,
    spectral_slope,
)


class TestHNR:
    """Test harmonics-to-noise ratio estimation."""

    def test_silence_has_no_valid_frames(self):
        """Silent frames score -10 dB, which lies outside the open range."""
        assert len(frame_hnr(np.zeros(SAMPLE_RATE))) == 0
        assert compute_hnr(np.zeros(SAMPLE_RATE)) == HNRFeatures()

    def test_values_within_range(self):
        rng = np.random.default_rng(1)
        values = frame_hnr(rng.normal(0, 0.1, SAMPLE_RATE))
        assert len(values) > 0
        assert np.all(values > -10) and np.all(values < 40)

    def test_short_audio(self):
        assert compute_hnr(np.zeros(100)) == HNRFeatures()


class TestSpectrum:
    """Test magnitude spectrum and spectral features."""

    def test_fft_matches_dft(self):
        """Both transforms produce the same magnitudes."""
        rng = np.random.default_rng(2)
        audio = rng.normal(0, 0.2, 2000)
        fft = magnitude_spectrum(audio, transform='fft')
        dft = magnitude_spectrum(audio, transform='dft')
        assert fft.shape == (256,)
        assert np.allclose(fft, dft, atol=1e-8)

    def test_sine_lands_in_one_bin(self):
        """250 Hz at 16 kHz is exactly bin 8 of a 512-point transform."""
        features = compute_spectral_features(sine_wave(250.0))
        assert features.centroid == pytest.approx(8.0, abs=1e-3)
        assert features.rolloff == 8.0
        assert features.spread == pytest.approx(0.0, abs=1e-2)

    def test_silence(self):
        features = compute_spectral_features(np.zeros(1000))
        assert features.centroid == 0.0
        assert features.spread == 0.0
        assert features.flux == 0.0

    def test_single_sample(self):
        features = compute_spectral_features(np.array([0.3]))
        assert features.centroid == 0.0
        assert features.slope == 0.0

    def test_slope(self):
        assert spectral_slope(np.array([0.0, 1.0, 2.0, 3.0])) == pytest.approx(1.0)

    def test_flux_counts_positive_steps(self):
        assert spectral_flux(np.array([0.0, 1.0, 0.0, 2.0])) == pytest.approx(0.75)

    def test_rolloff(self):
        assert spectral_rolloff(np.ones(4)) == 3.0

    def test_centroid(self):
        assert spectral_centroid(np.array([0.0, 1.0, 0.0, 1.0])) == pytest.approx(2.0)

    def test_unknown_transform(self):
        with pytest.raises(ValueError):
            magnitude_spectrum(np.zeros(10), transform='wavelet')


class TestFormants:
    """Test formant analyzers."""

    def test_placeholder_values(self):
        analyzer = PlaceholderFormantAnalyzer()
        formants = analyzer.analyze(np.zeros(SAMPLE_RATE))
        assert analyzer.synthetic
        assert formants.f1.mean == 700.0
        assert formants.f2.mean == 1220.0
        assert formants.f3.mean == 2600.0
        assert formants.f3.std == 200.0

    def test_lpc_silence(self):
        """Frames below the energy floor are skipped."""
        analyzer = LPCFormantAnalyzer()
        formants = analyzer.analyze(np.zeros(SAMPLE_RATE))
        assert not analyzer.synthetic
        assert formants.f1.mean == 0.0

    def test_lpc_harmonic_signal(self):
        rng = np.random.default_rng(3)
        t = np.arange(SAMPLE_RATE) / SAMPLE_RATE
        audio = sum(np.sin(2 * np.pi * 120 * k * t) / k for k in range(1, 20))
        audio = 0.3 * audio / np.max(np.abs(audio)) + rng.normal(0, 1e-3, SAMPLE_RATE)
        formants = LPCFormantAnalyzer().analyze(audio, SAMPLE_RATE)
        assert formants.f1.mean >= 0.0
        assert np.isfinite(formants.f1.mean)
        assert formants.f1.mean <= SAMPLE_RATE / 2


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
