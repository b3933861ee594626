"""
Clinical thresholds for voice biomarker alerting.

Tiers (jitter / shimmer as fractions, HNR in dB):
- Jitter:  normal < 1.04%, elevated 1.04-2.5%, pathological > 2.5%
- Shimmer: normal < 3.5%,  elevated 3.5-10%,   pathological > 10%
- HNR:     excellent > 18, good 15-18, concerning 12-15, poor < 12 (< 8 critical)
- Risk score (0-100): low 0-39, moderate 40-59, high 60-79, critical 80-100

The elevated and pathological bounds coincide for jitter and shimmer: a
value above `elevated` is pathological.

Updates are shallow: `with_updates({'jitter': {...}})` replaces the whole
jitter block, so a nested mapping must carry every field of that block.
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JitterThresholds:
    normal: float = 0.0104
    elevated: float = 0.025
    pathological: float = 0.025


@dataclass(frozen=True)
class ShimmerThresholds:
    normal: float = 0.035
    elevated: float = 0.10
    pathological: float = 0.10


@dataclass(frozen=True)
class HNRThresholds:
    excellent: float = 18.0
    good: float = 15.0
    concerning: float = 12.0
    poor: float = 8.0


@dataclass(frozen=True)
class F0Thresholds:
    min_normal: float = 80.0
    max_normal: float = 300.0
    variability_threshold: float = 50.0


@dataclass(frozen=True)
class ProsodyThresholds:
    min_speech_rate: float = 100.0
    max_pause_rate: float = 0.30
    min_voiced_ratio: float = 0.70


@dataclass(frozen=True)
class RiskScoreThresholds:
    """Lower bounds of each band on the 0-100 scale (low is everything below moderate)."""
    moderate: float = 40.0
    high: float = 60.0
    critical: float = 80.0


_BLOCKS = {
    'jitter': JitterThresholds,
    'shimmer': ShimmerThresholds,
    'hnr': HNRThresholds,
    'f0': F0Thresholds,
    'prosody': ProsodyThresholds,
    'risk_score': RiskScoreThresholds,
}


def _build_block(name: str, values: Any, require_complete: bool):
    block_cls = _BLOCKS[name]

    if isinstance(values, block_cls):
        return values
    if not isinstance(values, Mapping):
        raise ValueError(f"Threshold block '{name}' must be a mapping, got {type(values).__name__}")

    known = [f.name for f in fields(block_cls)]
    unknown = set(values) - set(known)
    if unknown:
        raise ValueError(f"Unknown keys for threshold block '{name}': {sorted(unknown)}")

    missing = [k for k in known if k not in values]
    if require_complete and missing:
        raise ValueError(
            f"Threshold block '{name}' is replaced as a whole; missing keys: {missing}"
        )

    try:
        return block_cls(**{k: float(v) for k, v in values.items()})
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value in threshold block '{name}': {e}") from e


@dataclass(frozen=True)
class ClinicalThresholds:
    jitter: JitterThresholds = field(default_factory=JitterThresholds)
    shimmer: ShimmerThresholds = field(default_factory=ShimmerThresholds)
    hnr: HNRThresholds = field(default_factory=HNRThresholds)
    f0: F0Thresholds = field(default_factory=F0Thresholds)
    prosody: ProsodyThresholds = field(default_factory=ProsodyThresholds)
    risk_score: RiskScoreThresholds = field(default_factory=RiskScoreThresholds)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ClinicalThresholds':
        """
        Build thresholds from a config mapping.

        Blocks and keys may be omitted (defaults fill the gaps); unknown
        blocks or keys raise ValueError.
        """
        data = data or {}
        unknown = set(data) - set(_BLOCKS)
        if unknown:
            raise ValueError(f"Unknown threshold blocks: {sorted(unknown)}")

        return cls(**{
            name: _build_block(name, values, require_complete=False)
            for name, values in data.items()
        })

    def with_updates(self, partial: Mapping[str, Any]) -> 'ClinicalThresholds':
        """
        Shallow replace-by-top-level-key.

        Each provided block replaces the current block wholesale and must be
        complete; blocks not mentioned are kept as they are.
        """
        unknown = set(partial) - set(_BLOCKS)
        if unknown:
            raise ValueError(f"Unknown threshold blocks: {sorted(unknown)}")

        current = {name: getattr(self, name) for name in _BLOCKS}
        for name, values in partial.items():
            current[name] = _build_block(name, values, require_complete=True)

        return ClinicalThresholds(**current)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return asdict(self)
