import io
import json

import pytest # pyright: ignore[reportMissingImports]
import soundfile as sf

from conftest import SAMPLE_RATE, make_biomarkers, sine_wave

import main
from clinical_alerts import ClinicalAlertEngine, ClinicalThresholds
from scoring import RiskAssessment
from utils.audio_io import RecordingDownloadError
from utils.config_loader import DEFAULT_CONFIG_PATH, get_nested_config, load_config


class StubExtractor:
    """Returns a fixed record, or raises."""

    def __init__(self, biomarkers=None, error=None):
        self.biomarkers = biomarkers
        self.error = error

    def extract_features(self, audio_bytes):
        if self.error is not None:
            raise self.error
        return self.biomarkers


def _wav_bytes():
    buffer = io.BytesIO()
    sf.write(buffer, sine_wave(200.0), SAMPLE_RATE, format='WAV', subtype='PCM_16')
    return buffer.getvalue()


class TestRunAssessment:
    """Test the end-to-end assessment of one recording."""

    def test_healthy_record(self):
        result = main.run_assessment(
            b'', 'p1', 'Jane Doe', 'CA1',
            extractor=StubExtractor(make_biomarkers())
        )

        assert result['risk_algorithm'] == 'weighted_composite'
        assert result['risk_score'] == 8.2
        assert result['risk_level'] == 'low'
        assert result['rule_based_score'] == 0
        assert result['alerts'] == []
        assert not result['notify_care_team']
        assert result['risk_assessment']['overall_risk_score'] == pytest.approx(0.0823, abs=1e-4)
        json.dumps(result)

    @pytest.mark.parametrize('question, analysis_type', [
        ('counting', 'standardized_speech'),
        ('symptoms', 'symptom_narrative'),
        (None, 'symptom_narrative'),
    ])
    def test_analysis_type(self, question, analysis_type):
        result = main.run_assessment(
            b'', 'p1', question=question, extractor=StubExtractor(make_biomarkers())
        )
        assert result['analysis_type'] == analysis_type

    def test_rule_based_algorithm(self):
        config = {'risk': {'algorithm': 'rule_based_points'}}
        biomarkers = make_biomarkers(jitter=0.03, shimmer=0.11, hnr=10.0)

        result = main.run_assessment(
            b'', 'p1', call_sid='CA1', question='counting', config=config,
            extractor=StubExtractor(biomarkers)
        )

        assert result['risk_algorithm'] == 'rule_based_points'
        assert result['risk_score'] == 90.0
        assert result['risk_level'] == 'critical'
        assert result['notify_care_team']
        assert 'critical-risk' in [a['rule_id'] for a in result['alerts']]
        assert len(result['risk_factors']) == 3

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError):
            main.run_assessment(b'', 'p1', config={'risk': {'algorithm': 'neural'}})

    def test_unknown_analyzer_method_is_not_swallowed(self):
        """A config error is raised, not turned into a zeroed assessment."""
        engine = ClinicalAlertEngine(data_quality_alerts=True)
        with pytest.raises(ValueError, match='praat'):
            main.run_assessment(
                b'', 'p1', engine=engine,
                config={'biomarkers': {'perturbation_method': 'praat'}}
            )
        assert engine.get_alert_summary()['total'] == 0

    def test_critical_band_uses_unrounded_score(self, monkeypatch):
        """0.7996 reports as 80.0 but stays below the critical band."""
        assessment = RiskAssessment(
            fluid_retention=0.9, fatigue_level=0.9, breathlessness=0.9,
            vocal_effort=0.5, cognitive_load=0.5, emotional_state=0.5,
            overall_risk_score=0.7996
        )
        monkeypatch.setattr(main, 'compute_weighted_composite_risk', lambda b: assessment)

        result = main.run_assessment(
            b'', 'p1', call_sid='CA1', extractor=StubExtractor(make_biomarkers())
        )

        assert result['risk_score'] == 80.0
        assert result['risk_level'] == 'high'
        assert 'critical-risk' not in [a['rule_id'] for a in result['alerts']]

    def test_extraction_failure_returns_zeroed_record(self):
        engine = ClinicalAlertEngine()
        result = main.run_assessment(
            b'', 'p1', call_sid='CA1', engine=engine,
            extractor=StubExtractor(error=RuntimeError('codec exploded'))
        )

        assert result['risk_score'] == 0
        assert result['risk_level'] == 'low'
        assert result['biomarkers']['jitter']['local'] == 0.0
        assert result['risk_assessment'] is None
        assert result['alerts'] == []
        assert result['error'] == 'codec exploded'
        assert engine.get_alert_summary()['total'] == 0

    def test_extraction_failure_data_quality_alert(self):
        engine = ClinicalAlertEngine(data_quality_alerts=True)
        result = main.run_assessment(
            b'', 'p1', call_sid='CA1', engine=engine,
            extractor=StubExtractor(error=RuntimeError('codec exploded'))
        )
        assert [a['rule_id'] for a in result['alerts']] == ['extraction-failure']
        assert result['alerts'][0]['alert_type'] == 'INFO'

    def test_alerts_stored_in_shared_engine(self):
        engine = ClinicalAlertEngine()
        main.run_assessment(
            b'', 'p1', call_sid='CA1', engine=engine,
            extractor=StubExtractor(make_biomarkers(jitter=0.03))
        )
        assert [a.rule_id for a in engine.get_active_alerts('p1')] == ['critical-jitter']

    def test_previous_score_drives_notification(self):
        biomarkers = make_biomarkers(pause_rate=0.3, voiced_ratio=0.2, dyspnea=1.0,
                                     breathing_rate=20.0)
        first = main.run_assessment(
            b'', 'p1', extractor=StubExtractor(biomarkers), previous_risk_score=25.0
        )
        assert first['risk_score'] == pytest.approx(53.9, abs=0.1)
        assert first['risk_level'] == 'moderate'
        assert first['notify_care_team']

        repeat = main.run_assessment(
            b'', 'p1', extractor=StubExtractor(biomarkers),
            previous_risk_score=first['risk_score']
        )
        assert not repeat['notify_care_team']

    def test_real_audio(self):
        result = main.run_assessment(_wav_bytes(), 'p1', call_sid='CA1')
        assert result['biomarkers']['f0']['mean'] == pytest.approx(200.0, rel=0.05)
        assert 'error' not in result


class TestAssessRecordingUrl:
    """Test the download-then-assess path."""

    def test_download_failure(self, monkeypatch):
        def fail(url, **kwargs):
            raise RecordingDownloadError('Failed to download audio: 503')

        monkeypatch.setattr(main, 'download_recording', fail)
        result = main.assess_recording_url('https://example.org/a.wav', 'p1', call_sid='CA1')

        assert result['risk_score'] == 0
        assert '503' in result['error']

    def test_download_settings_from_config(self, monkeypatch):
        calls = {}

        def fake_download(url, **kwargs):
            calls.update(kwargs)
            return b''

        monkeypatch.setattr(main, 'download_recording', fake_download)
        config = {'download': {'timeout': 7, 'max_retries': 1, 'backoff_factor': 0.2}}
        main.assess_recording_url(
            'https://example.org/a.wav', 'p1', config=config,
            extractor=StubExtractor(make_biomarkers())
        )

        assert calls['timeout'] == 7.0
        assert calls['max_retries'] == 1
        assert calls['backoff_factor'] == 0.2


class TestConfig:
    """Test configuration loading."""

    def test_shipped_config_matches_defaults(self):
        config = load_config(DEFAULT_CONFIG_PATH)
        engine = main.build_engine(config)

        assert engine.get_thresholds() == ClinicalThresholds()
        assert not engine.data_quality_alerts
        assert get_nested_config(config, 'risk.algorithm') == 'weighted_composite'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / 'missing.yaml')

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        assert load_config(path) == {}

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / 'list.yaml'
        path.write_text('- a\n- b\n')
        with pytest.raises(ValueError):
            load_config(path)

    def test_nested_lookup(self):
        config = {'biomarkers': {'formant_method': 'lpc'}}
        assert get_nested_config(config, 'biomarkers.formant_method') == 'lpc'
        assert get_nested_config(config, 'biomarkers.missing', 'x') == 'x'
        assert get_nested_config(config, 'audio.sample_rate', 16000) == 16000
        assert get_nested_config({'download': 5}, 'download.timeout', 30.0) == 30.0

    def test_engine_from_config(self):
        engine = main.build_engine({
            'clinical_thresholds': {'jitter': {'pathological': 0.02}},
            'alerts': {'data_quality_alerts': True},
        })
        assert engine.get_thresholds().jitter.pathological == 0.02
        assert engine.data_quality_alerts


class TestCommandLine:
    """Test the command-line entry point."""

    def test_assess_file(self, tmp_path, monkeypatch):
        audio_path = tmp_path / 'call.wav'
        audio_path.write_bytes(_wav_bytes())
        output_path = tmp_path / 'out' / 'report.json'

        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr('sys.argv', [
            'main.py', '--audio', str(audio_path), '--patient-id', 'p1',
            '--config', str(DEFAULT_CONFIG_PATH), '--output', str(output_path)
        ])

        with pytest.raises(SystemExit) as exc:
            main.main()

        assert exc.value.code == 0
        report = json.loads(output_path.read_text())
        assert report['patient_id'] == 'p1'
        assert report['call_sid'] == 'cli'

    def test_missing_audio(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr('sys.argv', [
            'main.py', '--audio', str(tmp_path / 'missing.wav'), '--patient-id', 'p1',
            '--config', str(DEFAULT_CONFIG_PATH)
        ])

        with pytest.raises(SystemExit) as exc:
            main.main()
        assert exc.value.code == 1


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
