"""
Alert rules: static predicates over a biomarker record.

Each rule is independent; several may fire for one recording and evaluation
order never changes which ones do.

Voice-quality predicates only look at values that were actually measured.
A record produced by the extractor carries frame counters (`quality`); when
no pitched / voiced / HNR frame was found, the corresponding value is an
absence marker (0), not a measurement, and must not be read as "HNR 0 dB".
Hand-built records (`quality is None`) are trusted as given.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from audio_pipeline.models import VoiceBiomarkers
from .models import AlertCategory, AlertType
from .thresholds import ClinicalThresholds

logger = logging.getLogger(__name__)

Condition = Callable[[VoiceBiomarkers, ClinicalThresholds], bool]


@dataclass(frozen=True)
class AlertRule:
    id: str
    name: str
    category: AlertCategory
    condition: Condition
    alert_type: AlertType
    title: str
    description: str
    recommendations: Tuple[str, ...]

    def matches(self, biomarkers: VoiceBiomarkers, thresholds: ClinicalThresholds) -> bool:
        return bool(self.condition(biomarkers, thresholds))


# =============================================================================
# Measurement guards
# =============================================================================

def jitter_measured(b: VoiceBiomarkers) -> bool:
    return b.quality is None or b.quality.pitched_frames > 0


def shimmer_measured(b: VoiceBiomarkers) -> bool:
    return b.quality is None or b.quality.voiced_frames > 0


def hnr_measured(b: VoiceBiomarkers) -> bool:
    return b.quality is None or b.quality.hnr_frames > 0


def f0_measured(b: VoiceBiomarkers) -> bool:
    return b.quality is None or b.quality.pitched_frames > 0


# =============================================================================
# Predicates
# =============================================================================

def _jitter_above(b: VoiceBiomarkers, limit: float) -> bool:
    return jitter_measured(b) and b.jitter.local > limit


def _shimmer_above(b: VoiceBiomarkers, limit: float) -> bool:
    return shimmer_measured(b) and b.shimmer.local > limit


def _hnr_below(b: VoiceBiomarkers, limit: float) -> bool:
    return hnr_measured(b) and b.hnr.mean < limit


def critical_jitter(b: VoiceBiomarkers, t: ClinicalThresholds) -> bool:
    return _jitter_above(b, t.jitter.pathological)


def critical_shimmer(b: VoiceBiomarkers, t: ClinicalThresholds) -> bool:
    return _shimmer_above(b, t.shimmer.pathological)


def critical_hnr(b: VoiceBiomarkers, t: ClinicalThresholds) -> bool:
    return _hnr_below(b, t.hnr.poor)


def high_risk_combination(b: VoiceBiomarkers, t: ClinicalThresholds) -> bool:
    """At least two of: jitter elevated, shimmer elevated, HNR concerning."""
    flags = [
        _jitter_above(b, t.jitter.elevated),
        _shimmer_above(b, t.shimmer.elevated),
        _hnr_below(b, t.hnr.concerning),
    ]
    return sum(flags) >= 2


def respiratory_distress(b: VoiceBiomarkers, t: ClinicalThresholds) -> bool:
    """At least two of: frequent pauses, reduced voicing, slow speech."""
    flags = [
        b.prosody.pause_rate > t.prosody.max_pause_rate,
        b.prosody.voiced_ratio < t.prosody.min_voiced_ratio,
        b.prosody.speech_rate < t.prosody.min_speech_rate,
    ]
    return sum(flags) >= 2


def moderate_voice_changes(b: VoiceBiomarkers, t: ClinicalThresholds) -> bool:
    """Jitter or shimmer inside its elevated band (normal, elevated]."""
    jitter_elevated = (
        jitter_measured(b)
        and t.jitter.normal < b.jitter.local <= t.jitter.elevated
    )
    shimmer_elevated = (
        shimmer_measured(b)
        and t.shimmer.normal < b.shimmer.local <= t.shimmer.elevated
    )
    return jitter_elevated or shimmer_elevated


def cognitive_load(b: VoiceBiomarkers, t: ClinicalThresholds) -> bool:
    """High pitch variability together with slow speech."""
    high_variability = f0_measured(b) and b.f0.std > t.f0.variability_threshold
    slow_speech = b.prosody.speech_rate < t.prosody.min_speech_rate
    return high_variability and slow_speech


# =============================================================================
# Default battery
# =============================================================================

DEFAULT_RULES: Tuple[AlertRule, ...] = (
    AlertRule(
        id='critical-jitter',
        name='Critical Jitter Levels',
        category=AlertCategory.VOICE_QUALITY,
        condition=critical_jitter,
        alert_type=AlertType.CRITICAL,
        title='Severe Voice Instability Detected',
        description=(
            'Jitter levels indicate severe vocal cord dysfunction, potentially '
            'related to fluid retention or respiratory distress.'
        ),
        recommendations=(
            'Immediate clinical assessment recommended',
            'Check for signs of fluid overload',
            'Consider chest X-ray and BNP levels',
            'Review diuretic therapy',
            'Schedule urgent cardiology consultation',
        )
    ),
    AlertRule(
        id='critical-shimmer',
        name='Critical Shimmer Levels',
        category=AlertCategory.VOICE_QUALITY,
        condition=critical_shimmer,
        alert_type=AlertType.CRITICAL,
        title='Severe Amplitude Instability',
        description=(
            'Shimmer levels suggest significant breathing difficulties or '
            'vocal effort changes.'
        ),
        recommendations=(
            'Assess respiratory status immediately',
            'Check oxygen saturation',
            'Evaluate for pulmonary edema',
            'Consider emergency department evaluation',
            'Review heart failure medications',
        )
    ),
    AlertRule(
        id='critical-hnr',
        name='Critical Voice Quality',
        category=AlertCategory.RESPIRATORY,
        condition=critical_hnr,
        alert_type=AlertType.CRITICAL,
        title='Severe Voice Quality Deterioration',
        description=(
            'Very low HNR indicates severe respiratory compromise or vocal '
            'cord dysfunction.'
        ),
        recommendations=(
            'Immediate respiratory assessment',
            'Check for acute heart failure symptoms',
            'Consider hospitalization',
            'Evaluate airway and breathing',
            'Emergency cardiology consultation',
        )
    ),
    AlertRule(
        id='high-risk-combination',
        name='Multiple Biomarker Elevation',
        category=AlertCategory.CARDIAC,
        condition=high_risk_combination,
        alert_type=AlertType.HIGH,
        title='Multiple Voice Biomarkers Elevated',
        description=(
            'Combination of elevated voice biomarkers suggests worsening heart '
            'failure status.'
        ),
        recommendations=(
            'Schedule urgent clinical follow-up within 24-48 hours',
            'Increase monitoring frequency',
            'Review and optimize heart failure medications',
            'Check weight and fluid status',
            'Consider telehealth consultation',
        )
    ),
    AlertRule(
        id='respiratory-distress',
        name='Respiratory Pattern Changes',
        category=AlertCategory.RESPIRATORY,
        condition=respiratory_distress,
        alert_type=AlertType.HIGH,
        title='Respiratory Pattern Abnormalities',
        description=(
            'Speech patterns suggest breathing difficulties or increased '
            'respiratory effort.'
        ),
        recommendations=(
            'Assess for shortness of breath',
            'Check for orthopnea or PND',
            'Review fluid intake and weight',
            'Consider pulmonary function assessment',
            'Evaluate need for oxygen therapy',
        )
    ),
    AlertRule(
        id='moderate-voice-changes',
        name='Voice Quality Changes',
        category=AlertCategory.VOICE_QUALITY,
        condition=moderate_voice_changes,
        alert_type=AlertType.MODERATE,
        title='Voice Quality Changes Detected',
        description=(
            'Mild to moderate changes in voice stability may indicate early '
            'heart failure progression.'
        ),
        recommendations=(
            'Monitor trends over next few assessments',
            'Review patient symptoms',
            'Check medication adherence',
            'Consider routine follow-up within 1 week',
            'Patient education on symptom monitoring',
        )
    ),
    AlertRule(
        id='cognitive-load',
        name='Cognitive Load Indicators',
        category=AlertCategory.COGNITIVE,
        condition=cognitive_load,
        alert_type=AlertType.MODERATE,
        title='Cognitive Load Indicators',
        description='Speech patterns suggest increased cognitive effort or fatigue.',
        recommendations=(
            'Assess for fatigue and cognitive symptoms',
            'Review sleep quality',
            'Check for medication side effects',
            'Consider cognitive assessment if persistent',
            'Evaluate overall functional status',
        )
    ),
)

CRITICAL_RISK_RULE_ID = 'critical-risk'
CRITICAL_RISK_TITLE = 'Critical Heart Failure Risk Score'
CRITICAL_RISK_RECOMMENDATIONS = (
    'Immediate clinical evaluation required',
    'Consider emergency department assessment',
    'Review all heart failure medications',
    'Check vital signs and weight',
    'Urgent cardiology consultation',
    'Consider hospitalization if clinically indicated',
)

EXTRACTION_FAILURE_RULE_ID = 'extraction-failure'


def project_biomarkers(b: VoiceBiomarkers, category: AlertCategory) -> Dict[str, float]:
    """Biomarker subset reported with an alert of the given category."""
    if category == AlertCategory.VOICE_QUALITY:
        return {
            'jitter': b.jitter.local,
            'shimmer': b.shimmer.local,
            'hnr': b.hnr.mean,
        }
    if category == AlertCategory.RESPIRATORY:
        return {
            'hnr': b.hnr.mean,
            'pause_rate': b.prosody.pause_rate,
            'voiced_ratio': b.prosody.voiced_ratio,
        }
    if category == AlertCategory.CARDIAC:
        return {
            'jitter': b.jitter.local,
            'shimmer': b.shimmer.local,
            'hnr': b.hnr.mean,
            'f0_variability': b.f0.std,
        }
    if category == AlertCategory.COGNITIVE:
        return {
            'speech_rate': b.prosody.speech_rate,
            'f0_variability': b.f0.std,
            'pause_rate': b.prosody.pause_rate,
        }
    raise ValueError(f"Unknown alert category: {category}")
