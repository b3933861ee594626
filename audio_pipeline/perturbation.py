"""
Perturbation analysis: jitter (pitch) and shimmer (amplitude).

Clinical rationale:
- Jitter rises with vocal fold instability (oedema, reduced muscular control)
- Shimmer rises with unsteady subglottal pressure (breathing effort)
- Both are sensitive to fluid retention in heart failure patients

Two methods are available:
- 'ratio' (default): local perturbation measured from the contour, RAP/PPQ5
  and APQ3/APQ5 derived as fixed fractions of it (0.8/0.9 and 0.7/0.8).
  These are approximations, not true multi-point quotients, and are kept
  because the clinical thresholds were tuned against them.
- 'windowed': true RAP (3-point), PPQ5 (5-point), APQ3 and APQ5 quotients.

Contours with fewer than 2 usable points always yield 0 (never NaN/inf).
"""

import logging
from typing import Sequence

import numpy as np

from .models import Jitter, Shimmer

logger = logging.getLogger(__name__)

PERTURBATION_METHODS = ('ratio', 'windowed')


def local_perturbation(values: Sequence[float]) -> float:
    """
    Mean absolute successive difference relative to the mean value.

    Computed as sum|v[i] - v[i-1]| / sum v[i] over i >= 1.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size < 2:
        return 0.0

    denominator = np.sum(values[1:])
    if denominator <= 0:
        return 0.0

    return float(np.sum(np.abs(np.diff(values))) / denominator)


def windowed_perturbation_quotient(values: Sequence[float], points: int) -> float:
    """
    N-point perturbation quotient (RAP for 3 points, PPQ5/APQ5 for 5).

    Each value is compared with the moving average of the `points` values
    centred on it; the mean absolute deviation is divided by the overall mean.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size < points or points < 1:
        return 0.0

    mean_value = np.mean(values)
    if mean_value <= 0:
        return 0.0

    half = points // 2
    smoothed = np.convolve(values, np.ones(points) / points, mode='valid')
    deviations = np.abs(values[half:values.size - half] - smoothed)

    return float(np.mean(deviations) / mean_value)


def compute_jitter(f0_contour: Sequence[float], method: str = 'ratio') -> Jitter:
    """
    Jitter from a voiced pitch contour.

    Args:
        f0_contour: Voiced F0 values in Hz (unvoiced frames already removed)
        method: 'ratio' or 'windowed'

    Returns:
        Jitter record (fractions)
    """
    f0 = np.asarray(f0_contour, dtype=np.float64)
    f0 = f0[f0 > 0]

    if f0.size < 2:
        return Jitter()

    periods = 1.0 / f0
    local = local_perturbation(periods)

    if method == 'windowed':
        return Jitter(
            local=local,
            rap=windowed_perturbation_quotient(periods, 3),
            ppq5=windowed_perturbation_quotient(periods, 5)
        )
    if method != 'ratio':
        raise ValueError(f"Unknown perturbation method: {method}")

    return Jitter(local=local, rap=local * 0.8, ppq5=local * 0.9)


def compute_shimmer(amplitudes: Sequence[float], method: str = 'ratio') -> Shimmer:
    """
    Shimmer from a per-frame amplitude series.

    Args:
        amplitudes: RMS amplitude per frame
        method: 'ratio' or 'windowed'

    Returns:
        Shimmer record (fractions)
    """
    amplitudes = np.asarray(amplitudes, dtype=np.float64)

    if amplitudes.size < 2:
        return Shimmer()

    local = local_perturbation(amplitudes)

    if method == 'windowed':
        return Shimmer(
            local=local,
            apq3=windowed_perturbation_quotient(amplitudes, 3),
            apq5=windowed_perturbation_quotient(amplitudes, 5)
        )
    if method != 'ratio':
        raise ValueError(f"Unknown perturbation method: {method}")

    return Shimmer(local=local, apq3=local * 0.7, apq5=local * 0.8)
