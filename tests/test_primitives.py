import pytest # pyright: ignore[reportMissingImports]
import numpy as np

from conftest import SAMPLE_RATE, sine_wave

from audio_pipeline.primitives import (
    autocorrelation_pitch,
    dynamic_range_db,
    frame_amplitude,
    frame_energy,
    frame_pitch,
    frame_starts,
    rms_energy,
    voiced_pitch,
    zero_crossing_rate,
)


class TestFraming:
    """Test frame start computation."""

    def test_single_frame_buffer_has_no_frames(self):
        """A frame is analysed only when it starts before len - frame_size."""
        assert list(frame_starts(400, 400, 200)) == []

    def test_hop(self):
        assert list(frame_starts(1000, 400, 200)) == [0, 200, 400]

    def test_short_buffer(self):
        assert list(frame_starts(10, 400, 200)) == []

    def test_frame_energy(self):
        """Non-overlapping frames of a constant signal."""
        energy = frame_energy(np.full(1000, 0.1))
        assert len(energy) == 2
        assert np.allclose(energy, 0.01)

    def test_frame_amplitude_is_rms(self):
        amplitude = frame_amplitude(np.full(1000, -0.3))
        assert np.allclose(amplitude, 0.3)


class TestPitch:
    """Test autocorrelation pitch estimation."""

    def test_sine_pitch(self):
        """200 Hz sine is detected within 5%."""
        contour = voiced_pitch(frame_pitch(sine_wave(200.0), SAMPLE_RATE))
        assert len(contour) > 0
        assert np.mean(contour) == pytest.approx(200.0, rel=0.05)

    def test_silent_frame_is_unvoiced(self):
        assert autocorrelation_pitch(np.zeros(400), SAMPLE_RATE) == 0.0

    def test_silence_contour_is_empty_after_filtering(self):
        contour = frame_pitch(np.zeros(SAMPLE_RATE), SAMPLE_RATE)
        assert len(contour) > 0
        assert np.all(contour == 0)
        assert len(voiced_pitch(contour)) == 0

    def test_empty_audio(self):
        assert len(frame_pitch(np.zeros(0), SAMPLE_RATE)) == 0

    def test_voice_band_is_open_interval(self):
        filtered = voiced_pitch(np.array([0.0, 50.0, 51.0, 499.0, 500.0]))
        assert list(filtered) == [51.0, 499.0]


class TestEnergyFeatures:
    """Test whole-signal energy features."""

    def test_zero_crossing_rate(self):
        assert zero_crossing_rate(np.array([1.0, -1.0, 1.0, -1.0])) == 0.75

    def test_zero_counts_as_non_negative(self):
        assert zero_crossing_rate(np.zeros(100)) == 0.0
        assert zero_crossing_rate(np.array([0.0, 1.0, 0.0])) == 0.0

    def test_rms(self):
        assert rms_energy(np.array([0.5, -0.5])) == pytest.approx(0.5)
        assert rms_energy(np.zeros(0)) == 0.0

    def test_dynamic_range_silence(self):
        """All-zero input reports 0 dB rather than a huge ratio."""
        assert dynamic_range_db(np.zeros(100)) == 0.0
        assert dynamic_range_db(np.zeros(0)) == 0.0

    def test_dynamic_range(self):
        value = dynamic_range_db(np.array([0.01, 1.0]))
        assert value == pytest.approx(40.0, abs=1e-3)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
