import io
from unittest.mock import MagicMock

import pytest # pyright: ignore[reportMissingImports]
import numpy as np
import requests
import soundfile as sf

from conftest import SAMPLE_RATE, sine_wave

from utils.audio_io import (
    RETRY_STATUS_CODES,
    RecordingDownloadError,
    build_retry_session,
    decode_audio_bytes,
    download_recording,
    normalize_audio,
    pcm16_to_float,
)


def _response(status_code, content=b''):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.content = content
    return response


class TestDecoding:
    """Test payload decoding."""

    def test_pcm16_scaling(self):
        data = np.array([0, 16384, -32768], dtype='<i2').tobytes()
        assert np.allclose(pcm16_to_float(data), [0.0, 0.5, -1.0])

    def test_pcm16_drops_odd_byte(self):
        data = np.array([100, 200], dtype='<i2').tobytes() + b'\x01'
        assert len(pcm16_to_float(data)) == 2

    def test_undecodable_bytes_fall_back_to_pcm(self):
        data = np.arange(-50, 50, dtype='<i2').tobytes()
        audio, sr = decode_audio_bytes(data)
        assert sr == SAMPLE_RATE
        assert len(audio) == 100
        assert audio[0] == pytest.approx(-50 / 32768)

    def test_stereo_8khz_wav(self):
        """Channels are averaged and the rate converted to 16 kHz."""
        mono = sine_wave(200.0, sample_rate=8000)
        stereo = np.stack([mono, mono], axis=1)
        buffer = io.BytesIO()
        sf.write(buffer, stereo, 8000, format='WAV', subtype='PCM_16')

        audio, sr = decode_audio_bytes(buffer.getvalue())
        assert sr == SAMPLE_RATE
        assert audio.ndim == 1
        assert len(audio) == pytest.approx(SAMPLE_RATE, abs=2)


class TestDownload:
    """Test recording downloads."""

    def test_success(self):
        session = MagicMock()
        session.get.return_value = _response(200, b'RIFF....')

        assert download_recording('https://example.org/a.wav', timeout=5, session=session) == b'RIFF....'
        session.get.assert_called_once_with('https://example.org/a.wav', timeout=5, auth=None)

    def test_http_error(self):
        session = MagicMock()
        session.get.return_value = _response(404)

        with pytest.raises(RecordingDownloadError, match='404'):
            download_recording('https://example.org/a.wav', session=session)

    def test_network_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError('refused')

        with pytest.raises(RecordingDownloadError):
            download_recording('https://example.org/a.wav', session=session)

    def test_timeout(self):
        session = MagicMock()
        session.get.side_effect = requests.Timeout('read timed out')

        with pytest.raises(RecordingDownloadError):
            download_recording('https://example.org/a.wav', session=session)

    def test_retry_session(self):
        session = build_retry_session(max_retries=2, backoff_factor=0.1)
        retry = session.get_adapter('https://example.org').max_retries

        assert retry.total == 2
        assert retry.backoff_factor == 0.1
        assert set(retry.status_forcelist) == set(RETRY_STATUS_CODES)


class TestNormalize:
    """Test loudness normalization."""

    def test_silence_unchanged(self):
        silence = np.zeros(100)
        assert np.array_equal(normalize_audio(silence), silence)

    def test_target_level(self):
        audio = sine_wave(200.0, amplitude=0.01)
        normalized = normalize_audio(audio, target_db=-20.0)
        rms = np.sqrt(np.mean(normalized ** 2))
        assert 20 * np.log10(rms) == pytest.approx(-20.0, abs=0.01)

    def test_no_clipping(self):
        normalized = normalize_audio(sine_wave(200.0, amplitude=0.5), target_db=0.0)
        assert np.abs(normalized).max() <= 0.99 + 1e-9


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
