#!/usr/bin/env python3
"""
Main orchestration script for HeartVoice Monitor.

This script runs the voice assessment of one call recording:
1. Audio decoding (container decode, raw PCM fallback)
2. Biomarker extraction (F0, jitter, shimmer, HNR, spectral, prosody, breathing)
3. Risk scoring (weighted composite 0-1 and rule-based points 0-100)
4. Risk banding (LOW / MODERATE / HIGH / CRITICAL)
5. Clinical alert evaluation

Usage:
    python main.py --audio recording.wav --patient-id p-001 --question counting
    python main.py --url https://example.org/rec.wav --patient-id p-001 --output report.json

Clinical rationale:
- Voice changes can precede weight gain in heart-failure decompensation
- The counting task is a standardized speech sample; narratives are not
- Alerts support clinicians, they do not diagnose

Engineering approach:
- A failed extraction never aborts the call flow: it degrades to a zeroed
  biomarker record with risk 0 and an `error` field
- The recording download is the only step with a deadline and retries
- Both risk algorithms are reported by name; the configured one is canonical
"""

import argparse
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
import sys
from typing import Dict, Optional

from audio_pipeline import VoiceBiomarkerExtractor, VoiceBiomarkers
from clinical_alerts import ClinicalAlertEngine, ClinicalThresholds
from scoring import (
    classify_risk_level,
    compute_rule_based_point_score,
    compute_weighted_composite_risk,
    explain_point_score,
    should_generate_alert,
)
from scoring.point_score import ALGORITHM_NAME as POINT_ALGORITHM
from scoring.weighted_composite import ALGORITHM_NAME as COMPOSITE_ALGORITHM
from utils.audio_io import RecordingDownloadError, download_recording
from utils.config_loader import get_nested_config, load_config

logger = logging.getLogger(__name__)

RISK_ALGORITHMS = (COMPOSITE_ALGORITHM, POINT_ALGORITHM)


def build_engine(config: Optional[Dict] = None) -> ClinicalAlertEngine:
    """Alert engine configured from the `clinical_thresholds` and `alerts` sections."""
    config = config or {}
    thresholds = ClinicalThresholds.from_dict(config.get('clinical_thresholds') or {})
    return ClinicalAlertEngine(
        thresholds=thresholds,
        data_quality_alerts=bool(get_nested_config(config, 'alerts.data_quality_alerts', False))
    )


def _analysis_type(question: Optional[str]) -> str:
    return 'standardized_speech' if question == 'counting' else 'symptom_narrative'


def _failed_assessment(
    patient_id: str,
    patient_name: str,
    call_sid: str,
    question: Optional[str],
    algorithm: str,
    error: str,
    engine: ClinicalAlertEngine
) -> Dict:
    """Zeroed assessment returned when the recording could not be analysed."""
    alert = engine.report_extraction_failure(patient_id, patient_name, call_sid, error)
    return {
        'patient_id': patient_id,
        'patient_name': patient_name,
        'call_sid': call_sid,
        'question': question,
        'analysis_type': _analysis_type(question),
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'biomarkers': VoiceBiomarkers.empty().to_dict(),
        'risk_score': 0,
        'risk_algorithm': algorithm,
        'risk_level': classify_risk_level(0, engine.get_thresholds()).value,
        'risk_assessment': None,
        'rule_based_score': 0,
        'risk_factors': [],
        'notify_care_team': False,
        'alerts': [alert.to_dict()] if alert is not None else [],
        'error': error,
    }


def run_assessment(
    audio_bytes: bytes,
    patient_id: str,
    patient_name: str = '',
    call_sid: str = '',
    question: Optional[str] = None,
    config: Optional[Dict] = None,
    engine: Optional[ClinicalAlertEngine] = None,
    extractor: Optional[VoiceBiomarkerExtractor] = None,
    previous_risk_score: Optional[float] = None
) -> Dict:
    """
    Assess one recording end to end.

    Args:
        audio_bytes: Encoded recording (or raw 16-bit PCM)
        patient_id: Patient identifier
        patient_name: Display name used in alerts
        call_sid: Call / session identifier
        question: Assessment question ('counting' or a symptom prompt)
        config: Configuration dictionary
        engine: Shared alert engine (a fresh one is built if omitted)
        extractor: Biomarker extractor (built from config if omitted)
        previous_risk_score: Canonical score of the previous assessment

    Returns:
        JSON-safe assessment dictionary
    """
    config = config or {}
    engine = engine or build_engine(config)
    algorithm = get_nested_config(config, 'risk.algorithm', COMPOSITE_ALGORITHM)
    if algorithm not in RISK_ALGORITHMS:
        raise ValueError(f"Unknown risk algorithm: {algorithm} (expected one of {RISK_ALGORITHMS})")

    extractor = extractor or VoiceBiomarkerExtractor(config)

    logger.info(f"Assessing recording for patient {patient_id} (call {call_sid}, question={question})")

    try:
        biomarkers = extractor.extract_features(audio_bytes)
    except Exception as e:
        logger.exception(f"Biomarker extraction failed for call {call_sid}")
        return _failed_assessment(
            patient_id, patient_name, call_sid, question, algorithm, str(e), engine
        )

    composite = compute_weighted_composite_risk(biomarkers)
    points = compute_rule_based_point_score(biomarkers, question_type=question)

    if algorithm == POINT_ALGORITHM:
        risk_score = float(points)
    else:
        risk_score = composite.percent

    # bands and alerts see the unrounded score; only the report is rounded
    thresholds = engine.get_thresholds()
    level = classify_risk_level(risk_score, thresholds)
    alerts = engine.evaluate_biomarkers(patient_id, patient_name, call_sid, biomarkers, risk_score)
    notify = should_generate_alert(risk_score, previous_risk_score, thresholds)

    logger.info(
        f"Assessment complete: {algorithm}={risk_score:g} ({level.value}), "
        f"composite={composite.overall_risk_score:.3f}, points={points}, alerts={len(alerts)}"
    )

    return {
        'patient_id': patient_id,
        'patient_name': patient_name,
        'call_sid': call_sid,
        'question': question,
        'analysis_type': _analysis_type(question),
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'biomarkers': biomarkers.to_dict(),
        'risk_score': round(risk_score, 1),
        'risk_algorithm': algorithm,
        'risk_level': level.value,
        'risk_assessment': composite.to_dict(),
        'rule_based_score': points,
        'risk_factors': explain_point_score(biomarkers),
        'notify_care_team': notify,
        'alerts': [alert.to_dict() for alert in alerts],
    }


def assess_recording_url(
    recording_url: str,
    patient_id: str,
    patient_name: str = '',
    call_sid: str = '',
    question: Optional[str] = None,
    config: Optional[Dict] = None,
    engine: Optional[ClinicalAlertEngine] = None,
    extractor: Optional[VoiceBiomarkerExtractor] = None,
    previous_risk_score: Optional[float] = None,
    session=None
) -> Dict:
    """
    Download a recording and assess it.

    A failed download yields the zeroed failed-assessment record instead of
    raising.
    """
    config = config or {}
    engine = engine or build_engine(config)

    try:
        audio_bytes = download_recording(
            recording_url,
            timeout=float(get_nested_config(config, 'download.timeout', 30.0)),
            max_retries=int(get_nested_config(config, 'download.max_retries', 3)),
            backoff_factor=float(get_nested_config(config, 'download.backoff_factor', 0.5)),
            session=session
        )
    except RecordingDownloadError as e:
        logger.warning(f"Recording unavailable for call {call_sid}: {e}")
        algorithm = get_nested_config(config, 'risk.algorithm', COMPOSITE_ALGORITHM)
        return _failed_assessment(
            patient_id, patient_name, call_sid, question, algorithm, str(e), engine
        )

    return run_assessment(
        audio_bytes,
        patient_id=patient_id,
        patient_name=patient_name,
        call_sid=call_sid,
        question=question,
        config=config,
        engine=engine,
        extractor=extractor,
        previous_risk_score=previous_risk_score
    )


def _configure_logging(level: int = logging.INFO, log_file: str = 'heartvoice.log'):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='HeartVoice Monitor - Voice Biomarker Heart-Failure Assessment',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Assess a local recording
  python main.py --audio call.wav --patient-id p-001

  # Standardized counting task with custom config
  python main.py --audio count.wav --patient-id p-001 --question counting --config custom.yaml

  # Download a recording and write the report
  python main.py --url https://example.org/rec.wav --patient-id p-001 --output report.json
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--audio',
        type=str,
        help='Path to a recorded audio file'
    )
    source.add_argument(
        '--url',
        type=str,
        help='URL of a call recording to download'
    )

    parser.add_argument(
        '--patient-id',
        type=str,
        required=True,
        help='Patient identifier'
    )

    parser.add_argument(
        '--patient-name',
        type=str,
        default='',
        help='Patient display name used in alerts'
    )

    parser.add_argument(
        '--call-sid',
        type=str,
        default='cli',
        help='Call / session identifier (default: cli)'
    )

    parser.add_argument(
        '--question',
        type=str,
        default=None,
        help="Assessment question, e.g. 'counting' or 'symptoms'"
    )

    parser.add_argument(
        '--config',
        type=str,
        default='configs/thresholds.yaml',
        help='Path to configuration YAML file (default: configs/thresholds.yaml)'
    )

    parser.add_argument(
        '--output',
        type=str,
        default=None,
        help='Write the assessment JSON to this file instead of stdout'
    )

    args = parser.parse_args()

    _configure_logging()

    # Validate config path
    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Config file not found: {config_path}")
        sys.exit(1)

    config = load_config(str(config_path))

    try:
        engine = build_engine(config)

        if args.audio:
            audio_path = Path(args.audio)
            if not audio_path.exists():
                logger.error(f"Audio file not found: {audio_path}")
                sys.exit(1)

            result = run_assessment(
                audio_path.read_bytes(),
                patient_id=args.patient_id,
                patient_name=args.patient_name,
                call_sid=args.call_sid,
                question=args.question,
                config=config,
                engine=engine
            )
        else:
            result = assess_recording_url(
                args.url,
                patient_id=args.patient_id,
                patient_name=args.patient_name,
                call_sid=args.call_sid,
                question=args.question,
                config=config,
                engine=engine
            )

        report = json.dumps(result, indent=2)

        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(report)
            logger.info(f"Assessment written to {output_path}")
        else:
            print(report)

        sys.exit(0)

    except KeyboardInterrupt:
        logger.warning("Assessment interrupted by user")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Assessment failed: {type(e).__name__}: {e}")
        logger.exception("Full traceback:")
        sys.exit(1)


if __name__ == '__main__':
    main()
