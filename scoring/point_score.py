"""
Rule-based point score (0-100).

A simpler bucket score used when a recording is assessed per question:
fixed points are added for each biomarker outside its band, the sum is
multiplied by 1.2 for the standardized counting task, rounded half-up and
capped at 100.

    jitter     > 2.5%  +30   | > 1.04% +15
    shimmer    > 10%   +25   | > 3.5%  +12
    HNR        < 12 dB +20   | < 15 dB +10
    F0 mean    outside [100, 250] Hz  +10
    speech     < 100 wpm  +8
    pauses     > 30%      +8

A measurement equal to 0 is treated as missing and contributes nothing.

This score is not on the same scale as, and not equivalent to, the weighted
composite; callers must say which one they report.
"""

import logging
import math
from typing import List, Optional, Tuple

from audio_pipeline.models import VoiceBiomarkers

logger = logging.getLogger(__name__)

ALGORITHM_NAME = 'rule_based_points'
COUNTING_MULTIPLIER = 1.2
MAX_SCORE = 100


def point_contributions(biomarkers: VoiceBiomarkers) -> List[Tuple[str, int]]:
    """(factor, points) for every bucket the record falls into."""
    b = biomarkers
    contributions = []

    if b.jitter.local:
        if b.jitter.local > 0.025:
            contributions.append(('Pathological voice jitter', 30))
        elif b.jitter.local > 0.0104:
            contributions.append(('Elevated voice jitter', 15))

    if b.shimmer.local:
        if b.shimmer.local > 0.10:
            contributions.append(('Pathological voice shimmer', 25))
        elif b.shimmer.local > 0.035:
            contributions.append(('Elevated voice shimmer', 12))

    if b.hnr.mean:
        if b.hnr.mean < 12:
            contributions.append(('Poor harmonics-to-noise ratio', 20))
        elif b.hnr.mean < 15:
            contributions.append(('Reduced harmonics-to-noise ratio', 10))

    if b.f0.mean and (b.f0.mean < 100 or b.f0.mean > 250):
        contributions.append(('Abnormal pitch', 10))

    if b.prosody.speech_rate and b.prosody.speech_rate < 100:
        contributions.append(('Very slow speech', 8))

    if b.prosody.pause_rate and b.prosody.pause_rate > 0.3:
        contributions.append(('Frequent pauses', 8))

    return contributions


def compute_rule_based_point_score(
    biomarkers: VoiceBiomarkers,
    question_type: Optional[str] = None
) -> int:
    """
    Compute the rule-based point score.

    Args:
        biomarkers: VoiceBiomarkers record
        question_type: Assessment question ('counting' applies the 1.2x multiplier)

    Returns:
        Integer score in [0, 100]
    """
    contributions = point_contributions(biomarkers)
    raw = float(sum(points for _, points in contributions))

    if question_type == 'counting':
        raw *= COUNTING_MULTIPLIER

    score = min(int(math.floor(raw + 0.5)), MAX_SCORE)

    logger.info(
        f"Rule-based point score: {score} "
        f"({len(contributions)} factors, question={question_type})"
    )

    return score


def explain_point_score(biomarkers: VoiceBiomarkers) -> List[str]:
    """Human-readable factors behind the point score."""
    return [factor for factor, _ in point_contributions(biomarkers)]
