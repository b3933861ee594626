"""
Voice-quality analyzers: harmonics-to-noise ratio, spectral shape, formants.

HNR:
    A crude energy split is used as the harmonic/noise proxy: the energy of
    even-indexed samples counts as "harmonic", the rest as "noise". Frames
    outside (-10, 40) dB are discarded as implausible.

Spectral features:
    Computed from one magnitude spectrum over the first min(N, 512) samples.
    Two interchangeable transforms produce identical output:
    - 'dft': literal O(N^2) Fourier sum (reference implementation)
    - 'fft': scipy.fft (default)
    Flux is measured between adjacent bins of that single spectrum, not
    between successive frames, since only one frame is analysed.

Formants:
    PlaceholderFormantAnalyzer returns fixed textbook values (synthetic).
    LPCFormantAnalyzer estimates them from LPC polynomial roots (librosa).
"""

import logging
from typing import List

import numpy as np
import librosa
from scipy import fft as sp_fft

from .models import FormantTrack, Formants, HNRFeatures, SpectralFeatures
from .primitives import DEFAULT_SAMPLE_RATE, FRAME_SIZE, frame_starts

logger = logging.getLogger(__name__)

HNR_MIN_DB = -10.0
HNR_MAX_DB = 40.0
MAX_SPECTRUM_SAMPLES = 512
SPECTRAL_TRANSFORMS = ('fft', 'dft')


# =============================================================================
# Harmonics-to-noise ratio
# =============================================================================

def frame_hnr(audio: np.ndarray, frame_size: int = FRAME_SIZE) -> np.ndarray:
    """
    Per-frame HNR estimates in dB, restricted to the plausible range.

    Silent frames are scored at the floor (-10 dB) and therefore dropped.
    """
    audio = np.asarray(audio, dtype=np.float64)
    values = []

    for i in frame_starts(len(audio), frame_size, frame_size):
        energy = audio[i:i + frame_size] ** 2
        total = float(np.sum(energy))
        if total <= 0:
            values.append(HNR_MIN_DB)
            continue

        harmonic = float(np.sum(energy[::2]))
        if harmonic <= 0:
            # log10(0) -> -inf, outside the plausible range
            continue
        values.append(10.0 * np.log10(harmonic / (total - harmonic + 1e-10)))

    values = np.asarray(values, dtype=np.float64)
    return values[(values > HNR_MIN_DB) & (values < HNR_MAX_DB)]


def summarize_hnr(values: np.ndarray) -> HNRFeatures:
    """Mean and population std of valid HNR frames (0/0 when none)."""
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        return HNRFeatures()
    return HNRFeatures(mean=float(np.mean(values)), std=float(np.std(values)))


def compute_hnr(audio: np.ndarray) -> HNRFeatures:
    return summarize_hnr(frame_hnr(audio))


# =============================================================================
# Spectral features
# =============================================================================

def naive_dft_magnitude(samples: np.ndarray) -> np.ndarray:
    """Direct Fourier sum over bins 0..N/2-1. O(N^2); short frames only."""
    samples = np.asarray(samples, dtype=np.float64)
    n = samples.size
    spectrum = np.zeros(n // 2)

    indices = np.arange(n)
    for k in range(n // 2):
        angle = -2.0 * np.pi * k * indices / n
        real = np.sum(samples * np.cos(angle))
        imag = np.sum(samples * np.sin(angle))
        spectrum[k] = np.sqrt(real * real + imag * imag)

    return spectrum


def magnitude_spectrum(audio: np.ndarray, transform: str = 'fft') -> np.ndarray:
    """
    Magnitude spectrum of the first min(len(audio), 512) samples.

    Args:
        audio: Mono waveform
        transform: 'fft' (scipy) or 'dft' (direct sum)

    Returns:
        Magnitudes for bins 0..N//2-1
    """
    audio = np.asarray(audio, dtype=np.float64)
    samples = audio[:min(audio.size, MAX_SPECTRUM_SAMPLES)]

    if transform == 'dft':
        return naive_dft_magnitude(samples)
    if transform != 'fft':
        raise ValueError(f"Unknown spectral transform: {transform}")

    if samples.size < 2:
        return np.zeros(0)
    return np.abs(sp_fft.fft(samples)[:samples.size // 2])


def spectral_centroid(spectrum: np.ndarray) -> float:
    """Magnitude-weighted mean bin index."""
    total = float(np.sum(spectrum))
    if total <= 0:
        return 0.0
    bins = np.arange(spectrum.size)
    return float(np.sum(bins * spectrum) / total)


def spectral_rolloff(spectrum: np.ndarray, threshold: float = 0.85) -> float:
    """First bin at which cumulative energy reaches `threshold` of the total."""
    if spectrum.size == 0:
        return 0.0

    energy = spectrum ** 2
    cumulative = np.cumsum(energy)
    reached = np.nonzero(cumulative >= threshold * cumulative[-1])[0]

    if reached.size == 0:
        return float(spectrum.size - 1)
    return float(reached[0])


def spectral_flux(spectrum: np.ndarray) -> float:
    """Sum of positive adjacent-bin increases, normalised by bin count."""
    if spectrum.size == 0:
        return 0.0
    diffs = np.diff(spectrum)
    return float(np.sum(diffs[diffs > 0]) / spectrum.size)


def spectral_slope(spectrum: np.ndarray) -> float:
    """Least-squares slope of magnitude against bin index."""
    n = spectrum.size
    if n == 0:
        return 0.0

    bins = np.arange(n, dtype=np.float64)
    sum_x = np.sum(bins)
    sum_y = np.sum(spectrum)
    sum_xy = np.sum(bins * spectrum)
    sum_xx = np.sum(bins * bins)

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return float((n * sum_xy - sum_x * sum_y) / denominator)


def spectral_spread(spectrum: np.ndarray) -> float:
    """Magnitude-weighted standard deviation around the centroid."""
    total = float(np.sum(spectrum))
    if total <= 0:
        return 0.0
    centroid = spectral_centroid(spectrum)
    bins = np.arange(spectrum.size)
    return float(np.sqrt(np.sum(spectrum * (bins - centroid) ** 2) / total))


def compute_spectral_features(audio: np.ndarray, transform: str = 'fft') -> SpectralFeatures:
    spectrum = magnitude_spectrum(audio, transform=transform)
    return SpectralFeatures(
        centroid=spectral_centroid(spectrum),
        rolloff=spectral_rolloff(spectrum),
        flux=spectral_flux(spectrum),
        slope=spectral_slope(spectrum),
        spread=spectral_spread(spectrum)
    )


# =============================================================================
# Formants
# =============================================================================

class PlaceholderFormantAnalyzer:
    """
    Fixed adult vowel formants (F1 700, F2 1220, F3 2600 Hz).

    Not derived from the signal; records built with it mark 'formants' as
    synthetic.
    """

    synthetic = True

    def analyze(self, audio: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> Formants:
        return Formants(
            f1=FormantTrack(mean=700.0, std=100.0),
            f2=FormantTrack(mean=1220.0, std=150.0),
            f3=FormantTrack(mean=2600.0, std=200.0)
        )


class LPCFormantAnalyzer:
    """
    Formant tracking from LPC polynomial roots.

    Method (per 25 ms frame, 10 ms hop):
    1. Skip frames below the energy floor
    2. Pre-emphasis + Hamming window
    3. LPC of order 2 + sr/1000 (librosa.lpc)
    4. Roots in the upper half plane -> frequencies and bandwidths
    5. Keep candidates above 90 Hz with bandwidth below 400 Hz
    """

    synthetic = False

    def __init__(
        self,
        frame_duration: float = 0.025,
        hop_duration: float = 0.010,
        energy_floor: float = 1e-4,
        max_bandwidth: float = 400.0,
        min_frequency: float = 90.0
    ):
        self.frame_duration = frame_duration
        self.hop_duration = hop_duration
        self.energy_floor = energy_floor
        self.max_bandwidth = max_bandwidth
        self.min_frequency = min_frequency

    def analyze(self, audio: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> Formants:
        audio = np.asarray(audio, dtype=np.float64)
        frame_size = int(sample_rate * self.frame_duration)
        hop_size = int(sample_rate * self.hop_duration)
        order = 2 + sample_rate // 1000

        tracks: List[List[float]] = [[], [], []]
        window = np.hamming(frame_size)

        for i in frame_starts(len(audio), frame_size, hop_size):
            frame = audio[i:i + frame_size]
            if np.mean(frame ** 2) < self.energy_floor:
                continue

            candidates = self._frame_formants(frame * window, sample_rate, order)
            for idx, freq in enumerate(candidates[:3]):
                tracks[idx].append(freq)

        logger.debug(f"LPC formants from {len(tracks[0])} frames")

        return Formants(*(
            FormantTrack(mean=float(np.mean(t)), std=float(np.std(t))) if t else FormantTrack()
            for t in tracks
        ))

    def _frame_formants(self, frame: np.ndarray, sample_rate: int, order: int) -> List[float]:
        emphasized = librosa.effects.preemphasis(frame)
        try:
            coefficients = librosa.lpc(emphasized, order=order)
        except FloatingPointError:
            return []

        if not np.all(np.isfinite(coefficients)):
            return []

        roots = np.roots(coefficients)
        roots = roots[np.imag(roots) >= 0]

        freqs = np.angle(roots) * sample_rate / (2 * np.pi)
        bandwidths = -0.5 * (sample_rate / (2 * np.pi)) * np.log(np.abs(roots) + 1e-12)

        keep = (freqs > self.min_frequency) & (bandwidths < self.max_bandwidth)
        return sorted(float(f) for f in freqs[keep])


FORMANT_ANALYZERS = {
    'placeholder': PlaceholderFormantAnalyzer,
    'lpc': LPCFormantAnalyzer,
}
