"""
Weighted composite heart-failure risk (0-1).

Six sub-scores, each a clamped linear function of one to three biomarkers:

    fluid_retention   breathing rate + inspiratory/expiratory ratio
    fatigue_level     voice energy + speech rate + pauses
    breathlessness    dyspnea indicator + breathing rate + voicing
    vocal_effort      jitter + shimmer + HNR
    cognitive_load    pauses + speech rate + F0 variability
    emotional_state   low pitch + reduced dynamic range + spectral slope

Composite weights (sum to 1.0):
    fluid_retention 0.30, breathlessness 0.25, fatigue_level 0.20,
    vocal_effort 0.15, cognitive_load 0.05, emotional_state 0.05

Every term, every sub-score and the composite are clamped to [0, 1].

Clinical rationale:
- Fluid retention is the most direct decompensation signal
- Breathlessness and fatigue are the primary reported symptoms
- Voice-quality changes are specific but noisy; cognitive and emotional
  markers are secondary
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict

from audio_pipeline.models import VoiceBiomarkers

logger = logging.getLogger(__name__)

ALGORITHM_NAME = 'weighted_composite'

WEIGHTS = {
    'fluid_retention': 0.30,
    'breathlessness': 0.25,
    'fatigue_level': 0.20,
    'vocal_effort': 0.15,
    'cognitive_load': 0.05,
    'emotional_state': 0.05,
}


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return float(min(max(value, low), high))


@dataclass(frozen=True)
class RiskAssessment:
    """Sub-scores and composite, all in [0, 1]."""
    fluid_retention: float
    fatigue_level: float
    breathlessness: float
    vocal_effort: float
    cognitive_load: float
    emotional_state: float
    overall_risk_score: float

    @property
    def percent(self) -> float:
        """Composite on the 0-100 scale used by the alert engine."""
        return self.overall_risk_score * 100.0

    def to_dict(self) -> Dict[str, float]:
        data = asdict(self)
        data['percent'] = self.percent
        return data


def _breathing_rate_score(b: VoiceBiomarkers) -> float:
    # 12 bpm -> 0, 20 bpm -> 1
    return _clamp((b.respiratory.breathing_rate - 12.0) / 8.0)


def _speech_rate_score(b: VoiceBiomarkers) -> float:
    return _clamp((120.0 - b.prosody.speech_rate) / 60.0)


def _pause_score(b: VoiceBiomarkers) -> float:
    return _clamp(b.prosody.pause_rate / 0.3)


def fluid_retention_score(b: VoiceBiomarkers) -> float:
    cycle = b.respiratory.inspiratory_time + b.respiratory.expiratory_time
    if cycle > 0:
        inspiratory_ratio = b.respiratory.inspiratory_time / cycle
        abnormal_breathing = _clamp(abs(inspiratory_ratio - 0.4) / 0.4)
    else:
        # no breathing cycle measured
        abnormal_breathing = 0.0

    return _clamp(_breathing_rate_score(b) * 0.6 + abnormal_breathing * 0.4)


def fatigue_score(b: VoiceBiomarkers) -> float:
    energy = 1.0 - _clamp(b.energy.rms / 0.1)
    return _clamp(energy * 0.4 + _speech_rate_score(b) * 0.3 + _pause_score(b) * 0.3)


def breathlessness_score(b: VoiceBiomarkers) -> float:
    dyspnea = _clamp(b.respiratory.dyspnea_indicators)
    voicing = _clamp((0.7 - b.prosody.voiced_ratio) / 0.3)
    return _clamp(dyspnea * 0.5 + _breathing_rate_score(b) * 0.3 + voicing * 0.2)


def vocal_effort_score(b: VoiceBiomarkers) -> float:
    jitter = _clamp(b.jitter.local / 0.02)
    shimmer = _clamp(b.shimmer.local / 0.15)
    hnr = _clamp((15.0 - b.hnr.mean) / 15.0)
    return _clamp(jitter * 0.4 + shimmer * 0.4 + hnr * 0.2)


def cognitive_load_score(b: VoiceBiomarkers) -> float:
    variability = _clamp(b.f0.std / 50.0)
    return _clamp(_pause_score(b) * 0.4 + _speech_rate_score(b) * 0.3 + variability * 0.3)


def emotional_state_score(b: VoiceBiomarkers) -> float:
    # F0 mean of 0 means no voiced frame, not a low voice
    if 0 < b.f0.mean < 120.0:
        low_pitch = _clamp((120.0 - b.f0.mean) / 40.0)
    else:
        low_pitch = 0.0
    flat_energy = 1.0 - _clamp(b.energy.dynamic_range / 40.0)
    flat_spectrum = _clamp(abs(b.spectral.slope + 10.0) / 10.0)
    return _clamp(low_pitch * 0.4 + flat_energy * 0.3 + flat_spectrum * 0.3)


def compute_weighted_composite_risk(biomarkers: VoiceBiomarkers) -> RiskAssessment:
    """
    Compute the weighted composite risk assessment.

    Pure function: the same record always yields the same assessment.

    Args:
        biomarkers: VoiceBiomarkers record

    Returns:
        RiskAssessment with sub-scores and overall_risk_score in [0, 1]
    """
    components = {
        'fluid_retention': fluid_retention_score(biomarkers),
        'fatigue_level': fatigue_score(biomarkers),
        'breathlessness': breathlessness_score(biomarkers),
        'vocal_effort': vocal_effort_score(biomarkers),
        'cognitive_load': cognitive_load_score(biomarkers),
        'emotional_state': emotional_state_score(biomarkers),
    }

    overall = _clamp(sum(components[name] * weight for name, weight in WEIGHTS.items()))

    logger.debug(
        "Risk components: " + ", ".join(f"{k}={v:.3f}" for k, v in components.items())
    )
    logger.info(f"Weighted composite risk: {overall:.3f}")

    return RiskAssessment(overall_risk_score=overall, **components)
