"""
Clinical alerting for heart-failure voice monitoring.

This package turns biomarker records and risk scores into clinician-facing
alerts:
1. Thresholds (jitter / shimmer / HNR / F0 / prosody / risk bands)
2. Alert rules (static predicates with recommendations)
3. Alert engine (evaluation, storage, acknowledgement, escalation)

Alerts are decision support for clinicians, not diagnoses.
"""

from .models import AlertCategory, AlertType, ClinicalAlert
from .thresholds import ClinicalThresholds
from .rules import AlertRule, DEFAULT_RULES, project_biomarkers
from .engine import ClinicalAlertEngine

__all__ = [
    'AlertCategory',
    'AlertType',
    'ClinicalAlert',
    'ClinicalThresholds',
    'AlertRule',
    'DEFAULT_RULES',
    'project_biomarkers',
    'ClinicalAlertEngine',
]
