"""
Voice biomarker aggregation.

Runs every analyzer over one recording and assembles a VoiceBiomarkers record:

    raw bytes -> decode -> pitch contour / amplitude frames
              -> F0, jitter, shimmer, HNR, spectral, formants,
                 prosody, respiratory, energy
              -> VoiceBiomarkers (+ quality counters, synthetic markers)

Each analyzer only reads the shared waveform and writes its own section, so
ordering has no effect on the result. Analyzers run sequentially; a whole
recording takes well under a second.
"""

import logging
from typing import Dict, Optional

import numpy as np

from utils.audio_io import decode_audio_bytes, normalize_audio
from utils.config_loader import get_nested_config

from .models import AnalysisQuality, F0Features, VoiceBiomarkers, EnergyFeatures
from .perturbation import PERTURBATION_METHODS, compute_jitter, compute_shimmer
from .primitives import (
    DEFAULT_SAMPLE_RATE,
    FRAME_SIZE,
    dynamic_range_db,
    frame_amplitude,
    frame_pitch,
    rms_energy,
    voiced_pitch,
    zero_crossing_rate,
)
from .prosody import PROSODY_ANALYZERS, RespiratoryAnalyzer, count_voiced_frames
from .voice_quality import (
    FORMANT_ANALYZERS,
    SPECTRAL_TRANSFORMS,
    compute_spectral_features,
    frame_hnr,
    summarize_hnr,
)

logger = logging.getLogger(__name__)


def compute_f0_features(voiced_contour: np.ndarray) -> F0Features:
    """Mean / population std / range over voiced pitch values."""
    if voiced_contour.size == 0:
        return F0Features()
    return F0Features(
        mean=float(np.mean(voiced_contour)),
        std=float(np.std(voiced_contour)),
        range=float(np.max(voiced_contour) - np.min(voiced_contour)),
        contour=tuple(float(v) for v in voiced_contour)
    )


def compute_energy_features(audio: np.ndarray) -> EnergyFeatures:
    return EnergyFeatures(
        rms=rms_energy(audio),
        zcr=zero_crossing_rate(audio),
        dynamic_range=dynamic_range_db(audio)
    )


class VoiceBiomarkerExtractor:
    """
    Extracts the full biomarker record from a recording.

    Configuration (all optional, `biomarkers` section of thresholds.yaml):
        perturbation_method: 'ratio' | 'windowed'
        spectral_transform: 'fft' | 'dft'
        formant_method: 'placeholder' | 'lpc'
        prosody_method: 'placeholder' | 'energy'

    Usage:
        extractor = VoiceBiomarkerExtractor(config)
        biomarkers = extractor.extract_features(recording_bytes)
    """

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}

        self.sample_rate = int(get_nested_config(config, 'audio.sample_rate', DEFAULT_SAMPLE_RATE))
        self.normalize_db = get_nested_config(config, 'audio.normalize_db')

        self.perturbation_method = get_nested_config(config, 'biomarkers.perturbation_method', 'ratio')
        self.spectral_transform = get_nested_config(config, 'biomarkers.spectral_transform', 'fft')
        formant_method = get_nested_config(config, 'biomarkers.formant_method', 'placeholder')
        prosody_method = get_nested_config(config, 'biomarkers.prosody_method', 'placeholder')

        if self.perturbation_method not in PERTURBATION_METHODS:
            raise ValueError(f"Unknown perturbation method: {self.perturbation_method}")
        if self.spectral_transform not in SPECTRAL_TRANSFORMS:
            raise ValueError(f"Unknown spectral transform: {self.spectral_transform}")
        if formant_method not in FORMANT_ANALYZERS:
            raise ValueError(f"Unknown formant method: {formant_method}")
        if prosody_method not in PROSODY_ANALYZERS:
            raise ValueError(f"Unknown prosody method: {prosody_method}")

        self.formant_analyzer = FORMANT_ANALYZERS[formant_method]()
        self.prosody_analyzer = PROSODY_ANALYZERS[prosody_method]()
        self.respiratory_analyzer = RespiratoryAnalyzer()

        logger.info(
            f"Biomarker extractor initialized: sr={self.sample_rate}, "
            f"perturbation={self.perturbation_method}, spectral={self.spectral_transform}, "
            f"formants={formant_method}, prosody={prosody_method}"
        )

    def extract_features(self, audio_bytes: bytes) -> VoiceBiomarkers:
        """
        Decode a recording and extract its biomarkers.

        Undecodable payloads are read as raw 16-bit PCM (see utils.audio_io).
        """
        audio_data, sr = decode_audio_bytes(audio_bytes, sample_rate=self.sample_rate)
        return self.extract_from_array(audio_data, sr)

    def extract_from_array(
        self,
        audio_data: np.ndarray,
        sample_rate: Optional[int] = None
    ) -> VoiceBiomarkers:
        """
        Extract biomarkers from a mono waveform in [-1, 1].

        Args:
            audio_data: Mono waveform
            sample_rate: Sample rate in Hz (defaults to the configured rate)

        Returns:
            VoiceBiomarkers record
        """
        sample_rate = sample_rate or self.sample_rate
        audio = np.asarray(audio_data, dtype=np.float64)

        if self.normalize_db is not None:
            audio = normalize_audio(audio, target_db=float(self.normalize_db))

        logger.info(f"Extracting biomarkers from {len(audio)/sample_rate:.2f}s audio")

        # Shared intermediate series
        contour = voiced_pitch(frame_pitch(audio, sample_rate))
        amplitudes = frame_amplitude(audio)
        hnr_values = frame_hnr(audio)

        formants = self.formant_analyzer.analyze(audio, sample_rate)
        prosody = self.prosody_analyzer.analyze(audio, sample_rate)
        respiratory = self.respiratory_analyzer.analyze(audio, sample_rate)

        synthetic = list(self.prosody_analyzer.synthetic_fields)
        synthetic.extend(self.respiratory_analyzer.synthetic_fields)
        if self.formant_analyzer.synthetic:
            synthetic.insert(0, 'formants')

        quality = AnalysisQuality(
            duration_seconds=len(audio) / sample_rate,
            total_frames=len(audio) // FRAME_SIZE,
            voiced_frames=count_voiced_frames(audio),
            pitched_frames=int(contour.size),
            hnr_frames=int(hnr_values.size)
        )

        biomarkers = VoiceBiomarkers(
            f0=compute_f0_features(contour),
            jitter=compute_jitter(contour, method=self.perturbation_method),
            shimmer=compute_shimmer(amplitudes, method=self.perturbation_method),
            hnr=summarize_hnr(hnr_values),
            spectral=compute_spectral_features(audio, transform=self.spectral_transform),
            formants=formants,
            prosody=prosody,
            respiratory=respiratory,
            energy=compute_energy_features(audio),
            quality=quality,
            synthetic=tuple(synthetic)
        )

        logger.info(
            f"Biomarkers: f0={biomarkers.f0.mean:.1f}Hz, jitter={biomarkers.jitter.local:.4f}, "
            f"shimmer={biomarkers.shimmer.local:.4f}, hnr={biomarkers.hnr.mean:.1f}dB "
            f"({quality.pitched_frames} pitched / {quality.total_frames} frames)"
        )

        return biomarkers

    def calculate_risk_score(self, biomarkers: VoiceBiomarkers) -> float:
        """Weighted composite risk (0-1) for a biomarker record."""
        from scoring.weighted_composite import compute_weighted_composite_risk

        return compute_weighted_composite_risk(biomarkers).overall_risk_score
