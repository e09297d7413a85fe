"""Confidence scoring utilities for the extraction pipeline.

Every phase, consensus merge, and review verdict carries a confidence
score in [0.0, 1.0].  This module keeps the arithmetic in one place:

- :func:`normalize_confidence` -- coerce whatever a vision model returned
  ("85", 0.85, "high", None) into the unit interval.
- :func:`calculate_confidence` -- weighted average, used where a phase
  defines an explicit formula (the Event phase weights the date 2x).
- :func:`merge_consensus_confidence` -- folds a regular run, a consensus
  run, and the cross-model agreement score into one final figure.
"""

from __future__ import annotations

from typing import Any

_DEFAULT_CONFIDENCE = 0.5


def clamp(value: float) -> float:
    """Clamp *value* into [0.0, 1.0]."""
    return max(0.0, min(1.0, value))


def normalize_confidence(raw: Any, default: float = _DEFAULT_CONFIDENCE) -> float:
    """Coerce a model-reported confidence into [0.0, 1.0].

    Values above 1 are treated as percentages (``85`` -> ``0.85``).
    Anything that cannot be read as a number falls back to *default*.
    """
    if isinstance(raw, bool) or raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if value != value:  # NaN
        return default
    if value > 1.0:
        value = value / 100.0
    return clamp(value)


def calculate_confidence(scores: list[float], weights: list[float] | None = None) -> float:
    """Calculate a weighted-average confidence score.

    Args:
        scores: List of individual confidence scores in [0.0, 1.0].
        weights: Optional weights for each score. Defaults to equal weights.

    Returns:
        Weighted average confidence clamped to [0.0, 1.0].

    Raises:
        ValueError: If scores is empty or weights length mismatches scores.
    """
    if not scores:
        raise ValueError("scores must not be empty")

    if weights is None:
        weights = [1.0] * len(scores)

    if len(scores) != len(weights):
        raise ValueError("scores and weights must have the same length")

    total_weight = sum(weights)
    if total_weight == 0:
        return 0.0

    weighted_sum = sum(s * w for s, w in zip(scores, weights, strict=True))
    return clamp(weighted_sum / total_weight)


def merge_consensus_confidence(
    regular: float,
    consensus: float,
    agreement: float,
) -> float:
    """Blend single-model and consensus confidences with the agreement score.

    ``0.5 * regular + 0.3 * consensus + 0.2 * agreement``, plus a bonus of
    0.1 when agreement exceeds 0.8 (0.05 above 0.6), capped at 1.0.
    """
    merged = regular * 0.5 + consensus * 0.3 + agreement * 0.2
    if agreement > 0.8:
        merged += 0.1
    elif agreement > 0.6:
        merged += 0.05
    return clamp(merged)
