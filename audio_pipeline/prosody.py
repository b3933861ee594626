"""
Prosodic and respiratory feature extraction for heart-failure monitoring.

Prosody = suprasegmental speech characteristics:
- Speech rate (words/minute)
- Pause patterns (rate, duration)
- Voicing (proportion of frames carrying voice energy)

Respiratory = breathing characteristics audible in speech:
- Breathing rate, inspiratory/expiratory timing
- Dyspnea indicator (low-frequency breath energy)

Clinical rationale:
- Breathlessness shortens phrases and adds pauses
- Fatigue slows speech and reduces voicing
- Fluid overload alters breathing rhythm

Engineering approach:
- Voiced ratio and dyspnea indicator are always measured from the signal
- Speech rate / pauses come from either a placeholder (fixed values) or an
  energy-based estimator; breathing timing is a placeholder. Placeholder
  values are reported through `synthetic_fields` so that records built from
  them can be told apart from measured ones.
"""

import logging
from typing import List, Tuple

import numpy as np
import librosa
from scipy.signal import find_peaks

from .models import ProsodyFeatures, RespiratoryFeatures
from .primitives import DEFAULT_SAMPLE_RATE, FRAME_SIZE, frame_energy, frame_starts

logger = logging.getLogger(__name__)

VOICING_ENERGY_THRESHOLD = 0.001
BREATH_FRAME_SIZE = 1600  # 100 ms at 16 kHz
LOW_FREQUENCY_STEP = 0.01
DYSPNEA_NORMALIZER = 0.1


def count_voiced_frames(
    audio: np.ndarray,
    frame_size: int = FRAME_SIZE,
    threshold: float = VOICING_ENERGY_THRESHOLD
) -> int:
    """Number of frames whose mean energy exceeds the voicing threshold."""
    return int(np.count_nonzero(frame_energy(audio, frame_size) > threshold))


def compute_voiced_ratio(
    audio: np.ndarray,
    frame_size: int = FRAME_SIZE,
    threshold: float = VOICING_ENERGY_THRESHOLD
) -> float:
    """
    Voiced frames divided by floor(len / frame_size).

    The numerator uses the strict frame loop (the last full frame is never
    analysed), so a fully voiced buffer scores slightly below 1.
    """
    total_frames = len(audio) // frame_size
    if total_frames == 0:
        return 0.0
    return count_voiced_frames(audio, frame_size, threshold) / total_frames


class PlaceholderProsodyAnalyzer:
    """
    Fixed speech rate (120 wpm), pause rate (0.2) and pause duration (0.5 s).

    Only the voiced ratio is measured.
    """

    synthetic_fields = ('prosody.speech_rate', 'prosody.pause_rate', 'prosody.pause_duration')

    def analyze(self, audio: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> ProsodyFeatures:
        return ProsodyFeatures(
            speech_rate=120.0,
            pause_rate=0.2,
            pause_duration=0.5,
            voiced_ratio=compute_voiced_ratio(audio)
        )


class EnergyProsodyAnalyzer:
    """
    Energy-based pause detection and flux-based speech rate.

    Pauses:
        Runs of unvoiced 25 ms frames lying between voiced frames and lasting
        at least `min_pause_duration`. Leading/trailing silence is ignored.

    Speech rate:
        Spectral flux peaks approximate syllable nuclei; syllables per second
        of speaking time are converted to words per minute.
    """

    synthetic_fields = ()

    def __init__(
        self,
        min_pause_duration: float = 0.2,
        syllables_per_word: float = 1.5,
        hop_length: int = 512,
        n_fft: int = 2048
    ):
        self.min_pause_duration = min_pause_duration
        self.syllables_per_word = syllables_per_word
        self.hop_length = hop_length
        self.n_fft = n_fft

    def analyze(self, audio: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> ProsodyFeatures:
        audio = np.asarray(audio, dtype=np.float64)
        voiced = frame_energy(audio) > VOICING_ENERGY_THRESHOLD
        frame_duration = FRAME_SIZE / sample_rate

        pauses = self._find_pauses(voiced, frame_duration)
        total_frames = len(audio) // FRAME_SIZE

        if pauses and total_frames > 0:
            pause_frames = sum(length for _, length in pauses)
            pause_rate = pause_frames / total_frames
            pause_duration = float(np.mean([length * frame_duration for _, length in pauses]))
        else:
            pause_rate = 0.0
            pause_duration = 0.0

        voiced_ratio = compute_voiced_ratio(audio)
        speech_rate = self._estimate_speech_rate(audio, sample_rate, voiced_ratio)

        logger.debug(
            f"Prosody: {len(pauses)} pauses, pause_rate={pause_rate:.2f}, "
            f"speech_rate={speech_rate:.1f} wpm"
        )

        return ProsodyFeatures(
            speech_rate=speech_rate,
            pause_rate=float(pause_rate),
            pause_duration=pause_duration,
            voiced_ratio=voiced_ratio
        )

    def _find_pauses(self, voiced: np.ndarray, frame_duration: float) -> List[Tuple[int, int]]:
        """Interior unvoiced runs as (start_frame, length) tuples."""
        voiced_idx = np.nonzero(voiced)[0]
        if voiced_idx.size < 2:
            return []

        min_frames = max(int(round(self.min_pause_duration / frame_duration)), 1)
        pauses = []

        for prev, nxt in zip(voiced_idx[:-1], voiced_idx[1:]):
            gap = int(nxt - prev - 1)
            if gap >= min_frames:
                pauses.append((int(prev + 1), gap))

        return pauses

    def _estimate_speech_rate(
        self,
        audio: np.ndarray,
        sample_rate: int,
        speaking_ratio: float
    ) -> float:
        """
        Words per minute from spectral-flux peaks.

        This is an approximation - true syllable counting requires phonetic
        analysis - but it tracks changes in rate between assessments.
        """
        if len(audio) < self.n_fft or speaking_ratio < 0.1:
            return 0.0

        spectrogram = np.abs(librosa.stft(audio, n_fft=self.n_fft, hop_length=self.hop_length))
        flux = np.sqrt(np.sum(np.diff(spectrogram, axis=1) ** 2, axis=0))
        if flux.size == 0:
            return 0.0

        threshold = np.mean(flux) + 0.5 * np.std(flux)
        min_distance = max(int(sample_rate / self.hop_length * 0.1), 1)
        peaks, _ = find_peaks(flux, height=threshold, distance=min_distance)

        speaking_time = len(audio) / sample_rate * speaking_ratio
        if speaking_time <= 0:
            return 0.0

        syllables_per_second = np.clip(len(peaks) / speaking_time, 0.0, 10.0)
        return float(syllables_per_second * 60.0 / self.syllables_per_word)


PROSODY_ANALYZERS = {
    'placeholder': PlaceholderProsodyAnalyzer,
    'energy': EnergyProsodyAnalyzer,
}


# =============================================================================
# Respiratory features
# =============================================================================

def low_frequency_energy(
    audio: np.ndarray,
    frame_size: int = BREATH_FRAME_SIZE,
    step_threshold: float = LOW_FREQUENCY_STEP
) -> float:
    """
    Average energy of slowly varying samples per 100 ms frame.

    A sample counts as low-frequency when the next sample differs from it by
    less than `step_threshold`; its squared value is accumulated. Each frame
    sum is divided by the frame length, then averaged across frames.
    """
    audio = np.asarray(audio, dtype=np.float64)
    per_frame = []

    for i in frame_starts(len(audio), frame_size, frame_size):
        frame = audio[i:i + frame_size]
        slow = np.abs(np.diff(frame)) < step_threshold
        per_frame.append(np.sum(frame[:-1][slow] ** 2) / frame.size)

    if not per_frame:
        return 0.0
    return float(np.mean(per_frame))


class RespiratoryAnalyzer:
    """
    Breathing features.

    Breathing rate (16 bpm) and inspiratory/expiratory times (1.2 s / 1.8 s)
    are fixed placeholders; the dyspnea indicator is measured.
    """

    synthetic_fields = (
        'respiratory.breathing_rate',
        'respiratory.inspiratory_time',
        'respiratory.expiratory_time',
    )

    def analyze(self, audio: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> RespiratoryFeatures:
        dyspnea = min(low_frequency_energy(audio) / DYSPNEA_NORMALIZER, 1.0)
        return RespiratoryFeatures(
            breathing_rate=16.0,
            inspiratory_time=1.2,
            expiratory_time=1.8,
            dyspnea_indicators=float(dyspnea)
        )
