"""
Voice biomarker data model.

One VoiceBiomarkers record is produced per recording. Every sub-structure is a
frozen dataclass so a record cannot be mutated after the extractor returns it.

Units:
- jitter / shimmer are fractions (0.01 == 1%), not percentages
- hnr is in dB
- spectral features are in DFT bin units (not Hz)
- formants are in Hz
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class F0Features:
    """
    Fundamental frequency statistics over voiced frames.

    Attributes:
        mean: Mean F0 (Hz), 0 when no voiced frame was found
        std: Population standard deviation of F0 (Hz)
        range: max - min F0 (Hz)
        contour: Voiced F0 values in frame order (Hz)
    """
    mean: float = 0.0
    std: float = 0.0
    range: float = 0.0
    contour: Tuple[float, ...] = ()


@dataclass(frozen=True)
class Jitter:
    """Frequency perturbation (fractions)."""
    local: float = 0.0
    rap: float = 0.0
    ppq5: float = 0.0


@dataclass(frozen=True)
class Shimmer:
    """Amplitude perturbation (fractions)."""
    local: float = 0.0
    apq3: float = 0.0
    apq5: float = 0.0


@dataclass(frozen=True)
class HNRFeatures:
    """Harmonics-to-noise ratio statistics (dB)."""
    mean: float = 0.0
    std: float = 0.0


@dataclass(frozen=True)
class SpectralFeatures:
    centroid: float = 0.0
    rolloff: float = 0.0
    flux: float = 0.0
    slope: float = 0.0
    spread: float = 0.0


@dataclass(frozen=True)
class FormantTrack:
    mean: float = 0.0
    std: float = 0.0


@dataclass(frozen=True)
class Formants:
    f1: FormantTrack = field(default_factory=FormantTrack)
    f2: FormantTrack = field(default_factory=FormantTrack)
    f3: FormantTrack = field(default_factory=FormantTrack)


@dataclass(frozen=True)
class ProsodyFeatures:
    """
    Speech timing features.

    Attributes:
        speech_rate: Words per minute
        pause_rate: Proportion of the recording spent in pauses (0-1)
        pause_duration: Mean pause length (seconds)
        voiced_ratio: Proportion of frames above the voicing energy floor (0-1)
    """
    speech_rate: float = 0.0
    pause_rate: float = 0.0
    pause_duration: float = 0.0
    voiced_ratio: float = 0.0


@dataclass(frozen=True)
class RespiratoryFeatures:
    """
    Breathing features (heart-failure specific).

    Attributes:
        breathing_rate: Breaths per minute
        inspiratory_time: Mean inspiration duration (seconds)
        expiratory_time: Mean expiration duration (seconds)
        dyspnea_indicators: Shortness-of-breath marker (0-1)
    """
    breathing_rate: float = 0.0
    inspiratory_time: float = 0.0
    expiratory_time: float = 0.0
    dyspnea_indicators: float = 0.0


@dataclass(frozen=True)
class EnergyFeatures:
    rms: float = 0.0
    zcr: float = 0.0
    dynamic_range: float = 0.0


@dataclass(frozen=True)
class AnalysisQuality:
    """
    Frame counts describing how much usable signal the analyzers saw.

    Attributes:
        duration_seconds: Length of the analysed buffer
        total_frames: Number of 400-sample frames in the buffer
        voiced_frames: Frames above the voicing energy floor
        pitched_frames: Pitch frames with F0 inside the voice band
        hnr_frames: Frames with a valid HNR estimate
    """
    duration_seconds: float = 0.0
    total_frames: int = 0
    voiced_frames: int = 0
    pitched_frames: int = 0
    hnr_frames: int = 0

    @property
    def is_sufficient(self) -> bool:
        """At least two pitched frames are needed for any perturbation measure."""
        return self.pitched_frames >= 2


_SECTIONS = {
    'f0': F0Features,
    'jitter': Jitter,
    'shimmer': Shimmer,
    'hnr': HNRFeatures,
    'spectral': SpectralFeatures,
    'prosody': ProsodyFeatures,
    'respiratory': RespiratoryFeatures,
    'energy': EnergyFeatures,
}


@dataclass(frozen=True)
class VoiceBiomarkers:
    """
    Canonical biomarker record for one recording.

    `quality` is None for records assembled by hand (e.g. from an upstream
    service); alert rules then trust every measurement as given.
    `synthetic` lists dotted field names whose values come from placeholder
    analyzers rather than from the signal.
    """
    f0: F0Features = field(default_factory=F0Features)
    jitter: Jitter = field(default_factory=Jitter)
    shimmer: Shimmer = field(default_factory=Shimmer)
    hnr: HNRFeatures = field(default_factory=HNRFeatures)
    spectral: SpectralFeatures = field(default_factory=SpectralFeatures)
    formants: Formants = field(default_factory=Formants)
    prosody: ProsodyFeatures = field(default_factory=ProsodyFeatures)
    respiratory: RespiratoryFeatures = field(default_factory=RespiratoryFeatures)
    energy: EnergyFeatures = field(default_factory=EnergyFeatures)
    quality: Optional[AnalysisQuality] = None
    synthetic: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> 'VoiceBiomarkers':
        """All-zero record used as the failed-assessment sentinel."""
        return cls(quality=AnalysisQuality())

    def is_synthetic(self, name: str) -> bool:
        """True if `name` (or its parent section) came from a placeholder."""
        section = name.split('.')[0]
        return name in self.synthetic or section in self.synthetic

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dictionary (tuples become lists)."""
        data = asdict(self)
        data['f0']['contour'] = list(self.f0.contour)
        data['synthetic'] = list(self.synthetic)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VoiceBiomarkers':
        """
        Build a record from a (possibly partial) dictionary.

        Missing sections and keys fall back to zero; unknown keys are ignored.
        """
        kwargs = {}
        for name, section_cls in _SECTIONS.items():
            values = data.get(name) or {}
            known = {f.name for f in fields(section_cls)}
            section = {k: v for k, v in values.items() if k in known}
            if 'contour' in section:
                section['contour'] = tuple(float(v) for v in section['contour'])
            kwargs[name] = section_cls(**section)

        formants = data.get('formants') or {}
        track_fields = {f.name for f in fields(FormantTrack)}
        kwargs['formants'] = Formants(**{
            key: FormantTrack(**{
                k: v for k, v in (formants.get(key) or {}).items() if k in track_fields
            })
            for key in ('f1', 'f2', 'f3')
        })

        quality = data.get('quality')
        if quality is not None:
            known = {f.name for f in fields(AnalysisQuality)}
            kwargs['quality'] = AnalysisQuality(**{k: v for k, v in quality.items() if k in known})

        kwargs['synthetic'] = tuple(data.get('synthetic') or ())
        return cls(**kwargs)
