"""
Audio I/O utilities: decoding recordings into analysable waveforms.

Engineering decisions:
- Target 16kHz mono: all biomarker frame sizes assume it
- soundfile for container decoding (WAV/FLAC/OGG), librosa for resampling
- Undecodable bytes are reinterpreted as raw little-endian 16-bit PCM rather
  than rejected; telephony webhooks sometimes deliver headerless audio
- Recording downloads carry an explicit timeout and bounded retries
"""

import io
import logging
from typing import Optional, Tuple

import numpy as np
import librosa
import requests
import soundfile as sf
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 16000
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


class RecordingDownloadError(RuntimeError):
    """Raised when a recording cannot be fetched from its URL."""


def pcm16_to_float(data: bytes) -> np.ndarray:
    """
    Interpret raw bytes as little-endian signed 16-bit PCM in [-1, 1).

    A trailing odd byte is dropped.
    """
    usable = len(data) - (len(data) % 2)
    samples = np.frombuffer(data[:usable], dtype='<i2')
    return samples.astype(np.float32) / 32768.0


def decode_audio_bytes(
    data: bytes,
    sample_rate: int = DEFAULT_SAMPLE_RATE
) -> Tuple[np.ndarray, int]:
    """
    Decode an audio payload into a mono float waveform.

    Args:
        data: Encoded audio (any container soundfile understands) or raw PCM
        sample_rate: Target sample rate (resamples if different)

    Returns:
        Tuple of (audio_data, sample_rate)
    """
    try:
        audio_data, sr = sf.read(io.BytesIO(data), dtype='float32', always_2d=False)
    except (sf.LibsndfileError, RuntimeError, TypeError, ValueError) as e:
        logger.warning(f"Audio decoding failed, using raw PCM conversion: {e}")
        return pcm16_to_float(data), sample_rate

    if audio_data.ndim > 1:
        audio_data = np.mean(audio_data, axis=1)

    if sr != sample_rate and audio_data.size > 0:
        logger.debug(f"Resampling {sr}Hz -> {sample_rate}Hz")
        audio_data = librosa.resample(audio_data, orig_sr=sr, target_sr=sample_rate)

    logger.info(f"Decoded audio: {len(audio_data)/sample_rate:.2f}s @ {sample_rate}Hz")

    return np.asarray(audio_data, dtype=np.float32), sample_rate


def build_retry_session(max_retries: int = 3, backoff_factor: float = 0.5) -> requests.Session:
    """Session retrying connection errors and transient HTTP statuses."""
    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUS_CODES,
        allowed_methods=frozenset(['GET']),
        raise_on_status=False
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount('http://', adapter)
    session.mount('https://', adapter)
    return session


def download_recording(
    url: str,
    timeout: float = 30.0,
    max_retries: int = 3,
    backoff_factor: float = 0.5,
    auth: Optional[Tuple[str, str]] = None,
    session: Optional[requests.Session] = None
) -> bytes:
    """
    Download a call recording.

    Args:
        url: Recording URL
        timeout: Per-request deadline in seconds (connect and read)
        max_retries: Retries for connection errors and 429/5xx responses
        backoff_factor: Exponential backoff base between retries
        auth: Optional (user, password) for basic auth
        session: Pre-built session (tests, connection reuse)

    Returns:
        Raw response body

    Raises:
        RecordingDownloadError: On network failure or non-2xx status
    """
    session = session or build_retry_session(max_retries, backoff_factor)

    logger.info(f"Downloading recording from {url}")

    try:
        response = session.get(url, timeout=timeout, auth=auth)
    except requests.RequestException as e:
        logger.error(f"Recording download failed: {e}")
        raise RecordingDownloadError(f"Failed to download audio: {e}") from e

    if not response.ok:
        logger.error(f"Recording download returned HTTP {response.status_code}")
        raise RecordingDownloadError(f"Failed to download audio: {response.status_code}")

    logger.info(f"Downloaded {len(response.content)} bytes of audio data")

    return response.content


def normalize_audio(audio_data: np.ndarray, target_db: float = -20.0) -> np.ndarray:
    """
    Normalize audio to target dB level.

    Clinical rationale:
    - Telephone gain varies between calls; shimmer and HNR are ratios and
      unaffected, but the energy-based fatigue and voicing features are not

    Args:
        audio_data: Input audio array
        target_db: Target level in dB (default -20dB)

    Returns:
        Normalized audio array (silence is returned unchanged)
    """
    rms = np.sqrt(np.mean(audio_data ** 2)) if audio_data.size else 0.0
    if rms <= 0:
        return audio_data

    current_db = 20 * np.log10(rms)
    gain_linear = 10 ** ((target_db - current_db) / 20.0)
    normalized = audio_data * gain_linear

    # Prevent clipping
    max_val = np.abs(normalized).max()
    if max_val > 0.99:
        normalized = normalized / max_val * 0.99

    logger.debug(f"Normalized audio: {current_db:.2f}dB -> {target_db:.2f}dB")

    return normalized
