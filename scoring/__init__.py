"""
Heart-failure risk scoring module.

This package maps a VoiceBiomarkers record to interpretable risk scores:
1. Weighted composite risk (0-1): six clinical sub-scores with fixed weights
2. Rule-based point score (0-100): bucket points per abnormal biomarker
3. Risk levels: LOW / MODERATE / HIGH / CRITICAL bands on the 0-100 scale

The two algorithms are not equivalent and are always reported by name.
All scores are:
- Deterministic (pure functions of the biomarker record)
- Explainable (transparent formulas and factors)
- Non-diagnostic (decision support, not a medical diagnosis)
"""

from .weighted_composite import RiskAssessment, compute_weighted_composite_risk
from .point_score import compute_rule_based_point_score, explain_point_score
from .risk_levels import RiskLevel, classify_risk_level, should_generate_alert

__all__ = [
    'RiskAssessment',
    'compute_weighted_composite_risk',
    'compute_rule_based_point_score',
    'explain_point_score',
    'RiskLevel',
    'classify_risk_level',
    'should_generate_alert',
]
