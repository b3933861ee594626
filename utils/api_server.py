"""
FastAPI server for HeartVoice Monitor.

Provides REST endpoints for assessing call recordings and for managing the
clinical alerts they raise.

The alert engine is created once per application and shared by every
request; assessment endpoints are plain (sync) handlers so FastAPI runs the
CPU-bound extraction in its worker threadpool.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from clinical_alerts import ClinicalAlertEngine
from utils.config_loader import get_nested_config

logger = logging.getLogger(__name__)

ALERT_ACTIONS = ('acknowledge', 'escalate')


class RecordingUrlRequest(BaseModel):
    recording_url: str
    patient_id: str
    patient_name: str = ''
    call_sid: str = ''
    question: Optional[str] = None
    previous_risk_score: Optional[float] = None


class AlertActionRequest(BaseModel):
    action: str
    alert_id: str
    clinician_id: Optional[str] = None
    escalation_reason: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(
    config: Optional[Dict] = None,
    engine: Optional[ClinicalAlertEngine] = None
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Configuration dictionary (thresholds.yaml contents)
        engine: Alert engine to share across requests (built from config if omitted)

    Returns:
        FastAPI application
    """
    from main import assess_recording_url, build_engine, run_assessment

    config = config or {}
    engine = engine or build_engine(config)

    app = FastAPI(
        title="HeartVoice Monitor API",
        description="Voice biomarker assessment and clinical alerting for heart-failure monitoring",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_nested_config(config, 'server.cors_origins', ["http://localhost:3000"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.engine = engine

    @app.get("/")
    async def root():
        """API root endpoint."""
        return {
            "message": "HeartVoice Monitor API",
            "version": "1.0.0",
            "endpoints": [
                "/voice-analysis",
                "/voice-analysis/url",
                "/clinical-alerts",
                "/clinical-alerts/thresholds"
            ]
        }

    @app.post("/voice-analysis")
    def analyze_upload(
        file: UploadFile = File(...),
        patient_id: str = Form(...),
        patient_name: str = Form(''),
        call_sid: str = Form(''),
        question: Optional[str] = Form(None)
    ) -> Dict:
        """
        Assess an uploaded recording.

        Args:
            file: Audio file (WAV/FLAC/OGG or raw 16-bit PCM)
            patient_id: Patient identifier
            patient_name: Display name used in alerts
            call_sid: Call / session identifier
            question: Assessment question ('counting' or a symptom prompt)

        Returns:
            Assessment with biomarkers, risk scores and alerts
        """
        try:
            audio_bytes = file.file.read()
            logger.info(f"Received {len(audio_bytes)} bytes ({file.filename}) for patient {patient_id}")
            return run_assessment(
                audio_bytes,
                patient_id=patient_id,
                patient_name=patient_name,
                call_sid=call_sid,
                question=question,
                config=config,
                engine=engine
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.error(f"Voice analysis error: {e}")
            raise HTTPException(status_code=500, detail=f"Voice analysis failed: {str(e)}")

    @app.post("/voice-analysis/url")
    def analyze_url(request: RecordingUrlRequest) -> Dict:
        """Download a recording by URL and assess it."""
        try:
            return assess_recording_url(
                request.recording_url,
                patient_id=request.patient_id,
                patient_name=request.patient_name,
                call_sid=request.call_sid,
                question=request.question,
                config=config,
                engine=engine,
                previous_risk_score=request.previous_risk_score
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.error(f"Voice analysis error: {e}")
            raise HTTPException(status_code=500, detail=f"Voice analysis failed: {str(e)}")

    @app.get("/clinical-alerts")
    async def get_clinical_alerts(
        patient_id: Optional[str] = None,
        include_acknowledged: bool = False
    ) -> Dict:
        """
        List alerts with summary statistics.

        Args:
            patient_id: Restrict to one patient
            include_acknowledged: Include acknowledged alerts

        Returns:
            Alerts (most severe, most recent first) and summary counts
        """
        alerts = engine.get_alerts(patient_id=patient_id, include_acknowledged=include_acknowledged)
        return {
            "success": True,
            "alerts": [alert.to_dict() for alert in alerts],
            "summary": engine.get_alert_summary(patient_id=patient_id),
            "timestamp": _now()
        }

    @app.post("/clinical-alerts")
    async def update_clinical_alert(request: AlertActionRequest) -> Dict:
        """Acknowledge or escalate an alert."""
        if request.action not in ALERT_ACTIONS:
            raise HTTPException(
                status_code=400,
                detail='Invalid action. Use "acknowledge" or "escalate"'
            )

        if request.action == 'acknowledge':
            if not request.clinician_id:
                raise HTTPException(status_code=400, detail="Missing 'clinician_id' for acknowledge")
            result = engine.acknowledge_alert(request.alert_id, request.clinician_id)
            message = 'Alert acknowledged successfully' if result else 'Alert not found'
        else:
            result = engine.escalate_alert(request.alert_id, request.escalation_reason or '')
            message = 'Alert escalated successfully' if result else 'Alert not found'

        return {"success": result, "message": message, "timestamp": _now()}

    @app.get("/clinical-alerts/thresholds")
    async def get_thresholds() -> Dict:
        """Current clinical thresholds."""
        return {
            "success": True,
            "thresholds": engine.get_thresholds().to_dict(),
            "timestamp": _now()
        }

    @app.put("/clinical-alerts/thresholds")
    async def update_thresholds(partial: Dict[str, Any]) -> Dict:
        """
        Replace threshold blocks by top-level key.

        Each block sent replaces the current block and must be complete.
        """
        try:
            updated = engine.update_thresholds(partial)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return {"success": True, "thresholds": updated.to_dict(), "timestamp": _now()}

    return app


def start_server(
    host: str = "127.0.0.1",
    port: int = 8000,
    config: Optional[Dict] = None
):
    """
    Start the API server.

    Args:
        host: Host address
        port: Port number
        config: Configuration dictionary
    """
    app = create_app(config)
    print(f"Starting HeartVoice Monitor API server at http://{host}:{port}")
    print(f"API documentation available at http://{host}:{port}/docs")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    from utils.config_loader import DEFAULT_CONFIG_PATH, load_config

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    server_config = load_config(DEFAULT_CONFIG_PATH)
    start_server(
        host=get_nested_config(server_config, 'server.host', "127.0.0.1"),
        port=int(get_nested_config(server_config, 'server.port', 8000)),
        config=server_config
    )
