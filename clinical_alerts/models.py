"""Clinical alert records."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    """Alert severity, most severe first."""
    CRITICAL = 'CRITICAL'
    HIGH = 'HIGH'
    MODERATE = 'MODERATE'
    INFO = 'INFO'

    @property
    def priority(self) -> int:
        return _PRIORITY[self]


_PRIORITY = {
    AlertType.CRITICAL: 0,
    AlertType.HIGH: 1,
    AlertType.MODERATE: 2,
    AlertType.INFO: 3,
}


class AlertCategory(str, Enum):
    VOICE_QUALITY = 'VOICE_QUALITY'
    RESPIRATORY = 'RESPIRATORY'
    CARDIAC = 'CARDIAC'
    COGNITIVE = 'COGNITIVE'


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class ClinicalAlert:
    """
    One alert raised for one recording.

    `acknowledged` and `escalated` are independent flags: an alert can be
    escalated and later acknowledged, or the other way round. Only
    unacknowledged alerts are considered active.
    """
    id: str
    patient_id: str
    patient_name: str
    alert_type: AlertType
    category: AlertCategory
    title: str
    description: str
    biomarker_values: Dict[str, float]
    risk_score: float
    timestamp: datetime
    call_sid: str
    clinical_recommendations: List[str] = field(default_factory=list)
    rule_id: str = ''
    acknowledged: bool = False
    escalated: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    escalated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Flat JSON-safe dictionary with ISO-8601 timestamps."""
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'patient_name': self.patient_name,
            'alert_type': self.alert_type.value,
            'category': self.category.value,
            'title': self.title,
            'description': self.description,
            'biomarker_values': dict(self.biomarker_values),
            'risk_score': self.risk_score,
            'timestamp': _iso(self.timestamp),
            'call_sid': self.call_sid,
            'acknowledged': self.acknowledged,
            'escalated': self.escalated,
            'clinical_recommendations': list(self.clinical_recommendations),
            'rule_id': self.rule_id,
            'acknowledged_by': self.acknowledged_by,
            'acknowledged_at': _iso(self.acknowledged_at),
            'escalation_reason': self.escalation_reason,
            'escalated_at': _iso(self.escalated_at),
        }
