"""
Voice biomarker extraction for heart-failure monitoring.

This package turns one phone-call recording into a biomarker record:
1. Signal primitives (framing, autocorrelation pitch, energy)
2. Perturbation analysis (jitter, shimmer)
3. Voice quality (HNR, spectral shape, formants)
4. Prosody and respiratory features
5. Aggregation into VoiceBiomarkers
"""

from .models import (
    AnalysisQuality,
    EnergyFeatures,
    F0Features,
    FormantTrack,
    Formants,
    HNRFeatures,
    Jitter,
    ProsodyFeatures,
    RespiratoryFeatures,
    Shimmer,
    SpectralFeatures,
    VoiceBiomarkers,
)
from .perturbation import compute_jitter, compute_shimmer
from .voice_quality import compute_hnr, compute_spectral_features
from .prosody import compute_voiced_ratio
from .extractor import VoiceBiomarkerExtractor

__all__ = [
    'AnalysisQuality',
    'EnergyFeatures',
    'F0Features',
    'FormantTrack',
    'Formants',
    'HNRFeatures',
    'Jitter',
    'ProsodyFeatures',
    'RespiratoryFeatures',
    'Shimmer',
    'SpectralFeatures',
    'VoiceBiomarkers',
    'compute_jitter',
    'compute_shimmer',
    'compute_hnr',
    'compute_spectral_features',
    'compute_voiced_ratio',
    'VoiceBiomarkerExtractor',
]
