"""
Risk bands and alert triggering on the 0-100 scale.

Bands (lower bounds from ClinicalThresholds.risk_score):
- LOW: below moderate (0-39)
- MODERATE: 40-59
- HIGH: 60-79
- CRITICAL: 80-100

An assessment is worth an alert when it is critical, when it is the first
assessment to enter the high band, or when it rises sharply (>= 20 points)
from the previous one.
"""

import logging
from enum import Enum
from typing import Optional

from clinical_alerts.thresholds import ClinicalThresholds

logger = logging.getLogger(__name__)

SIGNIFICANT_INCREASE = 20.0


class RiskLevel(str, Enum):
    LOW = 'low'
    MODERATE = 'moderate'
    HIGH = 'high'
    CRITICAL = 'critical'


def classify_risk_level(
    score: float,
    thresholds: Optional[ClinicalThresholds] = None
) -> RiskLevel:
    """Map a 0-100 score to its risk band."""
    bands = (thresholds or ClinicalThresholds()).risk_score

    if score >= bands.critical:
        return RiskLevel.CRITICAL
    if score >= bands.high:
        return RiskLevel.HIGH
    if score >= bands.moderate:
        return RiskLevel.MODERATE
    return RiskLevel.LOW


def should_generate_alert(
    current: float,
    previous: Optional[float] = None,
    thresholds: Optional[ClinicalThresholds] = None
) -> bool:
    """
    Decide whether a new score warrants notifying the care team.

    Args:
        current: Current score (0-100)
        previous: Score of the previous assessment; None or 0 means no history
        thresholds: Band thresholds

    Returns:
        True if the score is critical, newly high, or rose by >= 20 points
    """
    bands = (thresholds or ClinicalThresholds()).risk_score

    # a previous score of 0 is the failed-assessment sentinel, not a measurement
    if not previous:
        previous = None

    if current >= bands.critical:
        return True

    if current >= bands.high and (previous is None or previous < bands.high):
        return True

    if previous is not None and current - previous >= SIGNIFICANT_INCREASE:
        logger.info(f"Risk rose from {previous:g} to {current:g}")
        return True

    return False
