"""
Clinical alert engine.

Evaluates the rule battery against each assessed recording, stores the
resulting alerts in memory for the lifetime of the process and manages their
acknowledgement / escalation.

One engine is constructed at application start and passed to whatever
handles requests. All state access goes through a re-entrant lock so that
concurrent requests cannot lose acknowledgement or threshold updates.
"""

import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from audio_pipeline.models import VoiceBiomarkers
from .models import AlertCategory, AlertType, ClinicalAlert
from .rules import (
    CRITICAL_RISK_RECOMMENDATIONS,
    CRITICAL_RISK_RULE_ID,
    CRITICAL_RISK_TITLE,
    DEFAULT_RULES,
    EXTRACTION_FAILURE_RULE_ID,
    AlertRule,
    project_biomarkers,
)
from .thresholds import ClinicalThresholds

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClinicalAlertEngine:
    """
    Rule-based alerting over voice biomarkers.

    Usage:
        engine = ClinicalAlertEngine()
        alerts = engine.evaluate_biomarkers('p1', 'Jane Doe', 'CA123', biomarkers, 72)
        engine.acknowledge_alert(alerts[0].id, 'dr-smith')

    Args:
        thresholds: Initial thresholds (defaults to ClinicalThresholds())
        rules: Extra rules evaluated after the default battery
        data_quality_alerts: Raise an INFO alert when extraction fails
    """

    def __init__(
        self,
        thresholds: Optional[ClinicalThresholds] = None,
        rules: Optional[Iterable[AlertRule]] = None,
        data_quality_alerts: bool = False
    ):
        self._thresholds = thresholds or ClinicalThresholds()
        self._rules: List[AlertRule] = list(DEFAULT_RULES) + list(rules or [])
        self._alerts: List[ClinicalAlert] = []
        self._index: Dict[str, ClinicalAlert] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.RLock()
        self.data_quality_alerts = data_quality_alerts

        rule_ids = [rule.id for rule in self._rules]
        if len(set(rule_ids)) != len(rule_ids):
            raise ValueError(f"Duplicate alert rule ids: {rule_ids}")

        logger.info(f"Clinical alert engine initialized with {len(self._rules)} rules")

    @property
    def rules(self) -> List[AlertRule]:
        return list(self._rules)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate_biomarkers(
        self,
        patient_id: str,
        patient_name: str,
        call_sid: str,
        biomarkers: VoiceBiomarkers,
        risk_score: float
    ) -> List[ClinicalAlert]:
        """
        Evaluate every rule and store the alerts that fire.

        Args:
            patient_id: Patient identifier
            patient_name: Display name for the alert
            call_sid: Call / session identifier
            biomarkers: Biomarker record for the recording
            risk_score: Risk score on the 0-100 scale

        Returns:
            Alerts raised for this recording (rule alerts in battery order,
            then the critical-risk alert if the score is in the critical band)
        """
        with self._lock:
            thresholds = self._thresholds
            evaluated_at = _utcnow()
            new_alerts = []

            for rule in self._rules:
                if not rule.matches(biomarkers, thresholds):
                    continue
                new_alerts.append(self._create_alert(
                    rule_id=rule.id,
                    patient_id=patient_id,
                    patient_name=patient_name,
                    call_sid=call_sid,
                    alert_type=rule.alert_type,
                    category=rule.category,
                    title=rule.title,
                    description=rule.description,
                    biomarker_values=project_biomarkers(biomarkers, rule.category),
                    risk_score=risk_score,
                    recommendations=rule.recommendations,
                    timestamp=evaluated_at,
                ))

            if risk_score >= thresholds.risk_score.critical:
                new_alerts.append(self._create_alert(
                    rule_id=CRITICAL_RISK_RULE_ID,
                    patient_id=patient_id,
                    patient_name=patient_name,
                    call_sid=call_sid,
                    alert_type=AlertType.CRITICAL,
                    category=AlertCategory.CARDIAC,
                    title=CRITICAL_RISK_TITLE,
                    description=(
                        f"Overall risk score of {risk_score:g} indicates high probability "
                        f"of heart failure decompensation."
                    ),
                    biomarker_values=project_biomarkers(biomarkers, AlertCategory.CARDIAC),
                    risk_score=risk_score,
                    recommendations=CRITICAL_RISK_RECOMMENDATIONS,
                    timestamp=evaluated_at,
                ))

            # stored only once every rule has been evaluated
            self._store(new_alerts)

        if new_alerts:
            logger.warning(
                f"Generated {len(new_alerts)} clinical alerts for patient {patient_name}: "
                f"{[f'{a.alert_type.value}: {a.title}' for a in new_alerts]}"
            )
        else:
            logger.info(f"No clinical alerts for patient {patient_name} (risk {risk_score:g})")

        return new_alerts

    def report_extraction_failure(
        self,
        patient_id: str,
        patient_name: str,
        call_sid: str,
        error: str
    ) -> Optional[ClinicalAlert]:
        """
        Record a data-quality alert for a recording that could not be analysed.

        Returns None (and stores nothing) unless data-quality alerts are enabled.
        """
        if not self.data_quality_alerts:
            logger.debug(f"Data-quality alerts disabled; not reporting failure for {call_sid}")
            return None

        with self._lock:
            alert = self._create_alert(
                rule_id=EXTRACTION_FAILURE_RULE_ID,
                patient_id=patient_id,
                patient_name=patient_name,
                call_sid=call_sid,
                alert_type=AlertType.INFO,
                category=AlertCategory.VOICE_QUALITY,
                title='Voice Analysis Unavailable',
                description=(
                    f"Voice biomarkers could not be extracted from this recording "
                    f"({error}). The reported risk score of 0 is not a clinical result."
                ),
                biomarker_values={},
                risk_score=0,
                recommendations=(
                    'Repeat the voice assessment',
                    'Check call audio quality',
                )
            )
            self._store([alert])

        logger.warning(f"Extraction failure reported for patient {patient_name}: {error}")
        return alert

    def _create_alert(
        self,
        rule_id: str,
        recommendations,
        timestamp: Optional[datetime] = None,
        **kwargs
    ) -> ClinicalAlert:
        timestamp = timestamp or _utcnow()
        sequence = next(self._sequence)
        return ClinicalAlert(
            id=f"{rule_id}-{kwargs['call_sid']}-{int(timestamp.timestamp() * 1000)}-{sequence}",
            timestamp=timestamp,
            clinical_recommendations=list(recommendations),
            rule_id=rule_id,
            **kwargs
        )

    def _store(self, alerts: List[ClinicalAlert]):
        for alert in alerts:
            self._alerts.append(alert)
            self._index[alert.id] = alert

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------

    def get_alert(self, alert_id: str) -> Optional[ClinicalAlert]:
        with self._lock:
            return self._index.get(alert_id)

    def get_alerts(
        self,
        patient_id: Optional[str] = None,
        include_acknowledged: bool = False
    ) -> List[ClinicalAlert]:
        """
        Alerts sorted by severity, newest first within a severity level.

        Alerts with identical severity and timestamp keep insertion order.
        """
        with self._lock:
            selected = [
                (position, alert) for position, alert in enumerate(self._alerts)
                if (include_acknowledged or not alert.acknowledged)
                and (patient_id is None or alert.patient_id == patient_id)
            ]

        selected.sort(key=lambda item: (
            item[1].alert_type.priority,
            -item[1].timestamp.timestamp(),
            item[0]
        ))
        return [alert for _, alert in selected]

    def get_active_alerts(self, patient_id: Optional[str] = None) -> List[ClinicalAlert]:
        """Unacknowledged alerts, most severe and most recent first."""
        return self.get_alerts(patient_id=patient_id, include_acknowledged=False)

    def get_alert_summary(self, patient_id: Optional[str] = None) -> Dict[str, int]:
        """Counts over all stored alerts (acknowledged included)."""
        alerts = self.get_alerts(patient_id=patient_id, include_acknowledged=True)
        return {
            'total': len(alerts),
            'critical': sum(1 for a in alerts if a.alert_type == AlertType.CRITICAL),
            'high': sum(1 for a in alerts if a.alert_type == AlertType.HIGH),
            'moderate': sum(1 for a in alerts if a.alert_type == AlertType.MODERATE),
            'info': sum(1 for a in alerts if a.alert_type == AlertType.INFO),
            'unacknowledged': sum(1 for a in alerts if not a.acknowledged),
            'escalated': sum(1 for a in alerts if a.escalated),
        }

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def acknowledge_alert(self, alert_id: str, clinician_id: str) -> bool:
        """Mark an alert acknowledged. Returns False for an unknown id."""
        with self._lock:
            alert = self._index.get(alert_id)
            if alert is None:
                logger.warning(f"Cannot acknowledge unknown alert {alert_id}")
                return False
            alert.acknowledged = True
            alert.acknowledged_by = clinician_id
            alert.acknowledged_at = _utcnow()

        logger.info(f"Alert {alert_id} acknowledged by {clinician_id}")
        return True

    def escalate_alert(self, alert_id: str, reason: str) -> bool:
        """Flag an alert as escalated. Returns False for an unknown id."""
        with self._lock:
            alert = self._index.get(alert_id)
            if alert is None:
                logger.warning(f"Cannot escalate unknown alert {alert_id}")
                return False
            alert.escalated = True
            alert.escalation_reason = reason
            alert.escalated_at = _utcnow()

        logger.warning(f"Alert {alert_id} escalated: {reason}")
        return True

    # -------------------------------------------------------------------------
    # Thresholds
    # -------------------------------------------------------------------------

    def get_thresholds(self) -> ClinicalThresholds:
        with self._lock:
            return self._thresholds

    def update_thresholds(self, partial: Mapping[str, Any]) -> ClinicalThresholds:
        """
        Replace threshold blocks by top-level key.

        Raises:
            ValueError: Unknown block or key, or an incomplete block
        """
        with self._lock:
            self._thresholds = self._thresholds.with_updates(partial)
            updated = self._thresholds

        logger.info(f"Clinical thresholds updated: {sorted(partial)}")
        return updated
