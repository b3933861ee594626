"""
Signal primitives shared by every biomarker analyzer.

Framing conventions (16 kHz speech):
- Pitch frames: 25 ms (400 samples) with a 50% hop (200 samples)
- Amplitude / energy frames: 400 samples, no overlap
- A frame starting at sample i is only analysed when i < len(audio) - frame_size,
  so a buffer of exactly one frame yields no frames at all

Engineering notes:
- Pitch is estimated with a raw time-domain autocorrelation (rectangular
  window, no normalisation). This is deliberately simple; it is biased towards
  shorter lags and is not robust to noise, but it is cheap and deterministic.
- Nothing in this module raises on empty or silent input. Zero pitch means
  "unvoiced" and callers must exclude it from statistics.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 16000
FRAME_SIZE = 400
VOICE_F0_MIN = 50.0
VOICE_F0_MAX = 500.0


def frame_starts(n_samples: int, frame_size: int, hop_size: int) -> range:
    """Start indices of every analysed frame."""
    if frame_size <= 0 or hop_size <= 0:
        return range(0)
    return range(0, max(n_samples - frame_size, 0), hop_size)


def autocorrelation_pitch(
    frame: np.ndarray,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    f0_min: float = VOICE_F0_MIN,
    f0_max: float = VOICE_F0_MAX
) -> float:
    """
    Estimate F0 of a single frame by autocorrelation.

    Candidate lags cover f0_max..f0_min (inclusive, floored to whole samples).
    The first lag with the largest strictly positive correlation wins.

    Returns:
        F0 in Hz, or 0.0 when no candidate lag correlates positively
    """
    n = len(frame)
    min_period = int(sample_rate // f0_max)
    max_period = min(int(sample_rate // f0_min), n - 1)
    if n < 2 or min_period < 1 or max_period < min_period:
        return 0.0

    # acf[k] = sum_i frame[i] * frame[i + k]
    acf = np.correlate(frame, frame, mode='full')[n - 1:]
    candidates = acf[min_period:max_period + 1]

    best = int(np.argmax(candidates))
    if candidates[best] <= 0:
        return 0.0

    return sample_rate / (min_period + best)


def frame_pitch(
    audio: np.ndarray,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    frame_duration: float = 0.025
) -> np.ndarray:
    """
    Per-frame pitch contour (unfiltered, 0 = unvoiced).

    Args:
        audio: Mono waveform in [-1, 1]
        sample_rate: Sample rate in Hz
        frame_duration: Frame length in seconds (hop is half of it)

    Returns:
        Array of F0 estimates in Hz, one per frame
    """
    audio = np.asarray(audio, dtype=np.float64)
    frame_size = int(sample_rate * frame_duration)
    hop_size = frame_size // 2

    pitches = [
        autocorrelation_pitch(audio[i:i + frame_size], sample_rate)
        for i in frame_starts(len(audio), frame_size, hop_size)
    ]

    logger.debug(f"Pitch contour: {len(pitches)} frames of {frame_size} samples")

    return np.asarray(pitches, dtype=np.float64)


def voiced_pitch(
    contour: np.ndarray,
    f0_min: float = VOICE_F0_MIN,
    f0_max: float = VOICE_F0_MAX
) -> np.ndarray:
    """Keep pitch values strictly inside the human voice band."""
    contour = np.asarray(contour, dtype=np.float64)
    return contour[(contour > f0_min) & (contour < f0_max)]


def frame_energy(audio: np.ndarray, frame_size: int = FRAME_SIZE) -> np.ndarray:
    """Mean squared amplitude per non-overlapping frame."""
    audio = np.asarray(audio, dtype=np.float64)
    starts = frame_starts(len(audio), frame_size, frame_size)
    if len(starts) == 0:
        return np.zeros(0)

    frames = np.stack([audio[i:i + frame_size] for i in starts])
    return np.mean(frames ** 2, axis=1)


def frame_amplitude(audio: np.ndarray, frame_size: int = FRAME_SIZE) -> np.ndarray:
    """RMS amplitude per non-overlapping frame."""
    return np.sqrt(frame_energy(audio, frame_size))


def rms_energy(audio: np.ndarray) -> float:
    """Whole-signal RMS (0 for an empty buffer)."""
    audio = np.asarray(audio, dtype=np.float64)
    if audio.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(audio ** 2)))


def zero_crossing_rate(audio: np.ndarray) -> float:
    """
    Sign changes per sample.

    Samples are split into two classes (x >= 0, x < 0); every transition
    between consecutive samples counts as one crossing.
    """
    audio = np.asarray(audio, dtype=np.float64)
    if audio.size == 0:
        return 0.0
    non_negative = audio >= 0
    crossings = np.count_nonzero(non_negative[1:] != non_negative[:-1])
    return crossings / audio.size


def dynamic_range_db(audio: np.ndarray) -> float:
    """
    Ratio of the largest to the smallest absolute amplitude in dB.

    Returns 0 for empty or all-zero buffers.
    """
    audio = np.abs(np.asarray(audio, dtype=np.float64))
    if audio.size == 0:
        return 0.0
    max_amp = float(np.max(audio))
    if max_amp <= 0:
        return 0.0
    min_amp = float(np.min(audio))
    return float(20.0 * np.log10(max_amp / (min_amp + 1e-10)))
