import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from audio_pipeline.models import (
    EnergyFeatures,
    F0Features,
    HNRFeatures,
    Jitter,
    ProsodyFeatures,
    RespiratoryFeatures,
    Shimmer,
    SpectralFeatures,
    VoiceBiomarkers,
)

SAMPLE_RATE = 16000


def make_biomarkers(
    jitter: float = 0.005,
    shimmer: float = 0.02,
    hnr: float = 20.0,
    f0_mean: float = 150.0,
    f0_std: float = 20.0,
    speech_rate: float = 120.0,
    pause_rate: float = 0.2,
    voiced_ratio: float = 0.8,
    rms: float = 0.1,
    dynamic_range: float = 40.0,
    spectral_slope: float = -10.0,
    breathing_rate: float = 12.0,
    dyspnea: float = 0.0,
    quality=None
) -> VoiceBiomarkers:
    """Hand-built record; defaults describe a healthy voice."""
    return VoiceBiomarkers(
        f0=F0Features(mean=f0_mean, std=f0_std, range=3 * f0_std, contour=(f0_mean,)),
        jitter=Jitter(local=jitter, rap=jitter * 0.8, ppq5=jitter * 0.9),
        shimmer=Shimmer(local=shimmer, apq3=shimmer * 0.7, apq5=shimmer * 0.8),
        hnr=HNRFeatures(mean=hnr, std=2.0),
        spectral=SpectralFeatures(slope=spectral_slope),
        prosody=ProsodyFeatures(
            speech_rate=speech_rate,
            pause_rate=pause_rate,
            pause_duration=0.5,
            voiced_ratio=voiced_ratio
        ),
        respiratory=RespiratoryFeatures(
            breathing_rate=breathing_rate,
            inspiratory_time=1.2,
            expiratory_time=1.8,
            dyspnea_indicators=dyspnea
        ),
        energy=EnergyFeatures(rms=rms, zcr=0.1, dynamic_range=dynamic_range),
        quality=quality
    )


def sine_wave(frequency: float, duration: float = 1.0, amplitude: float = 0.5,
              sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    t = np.arange(int(duration * sample_rate)) / sample_rate
    return amplitude * np.sin(2 * np.pi * frequency * t)


@pytest.fixture
def healthy_biomarkers():
    return make_biomarkers()


@pytest.fixture
def silence():
    return np.zeros(SAMPLE_RATE)


@pytest.fixture
def tone():
    return sine_wave(200.0)
