"""
Largest-remainder (Hamilton) allocation of a fixed question count across
cognitive levels.

  1. raw[level]     = fraction[level] * question_count
  2. floored[level] = floor(raw[level])
  3. remainder      = question_count - sum(floored)
  4. +1 to the `remainder` levels with the largest fractional part,
     ties broken by canonical level order (remember first)

Fractions must be non-negative. A total below 1.0 sends the shortfall to
"understand"; a total above 1.0 is scaled down proportionally. The sum
post-condition is checked on every call and is never patched up.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping

from architect.models.blueprint import BLOOM_ORDER, CognitiveLevel

logger = logging.getLogger("architect.bloom_allocator")

_SUM_EPSILON = 1e-9


class FatalDistributionError(Exception):
    """Allocator contract or post-condition violated. Never recovered locally."""


def _describe(distribution: Mapping[CognitiveLevel, float]) -> dict[str, float]:
    return {str(getattr(k, "value", k)): v for k, v in distribution.items()}


def _normalize(distribution: Mapping[CognitiveLevel, float]) -> dict[CognitiveLevel, float]:
    weights: dict[CognitiveLevel, float] = {}
    for level in BLOOM_ORDER:
        value = float(distribution.get(level, 0.0))
        if value < 0 or math.isnan(value):
            raise FatalDistributionError(
                f"[bloom_allocator] fraction for {level.value} must be non-negative, got {value}"
            )
        weights[level] = value

    total = sum(weights.values())
    if total < 1.0 - _SUM_EPSILON:
        weights[CognitiveLevel.UNDERSTAND] += 1.0 - total
    elif total > 1.0 + _SUM_EPSILON:
        weights = {level: value / total for level, value in weights.items()}
    return weights


def allocate_bloom_counts(
    distribution: Mapping[CognitiveLevel, float],
    question_count: int,
) -> dict[CognitiveLevel, int]:
    """
    Return an exact integer count per level summing to ``question_count``.

    Raises:
        FatalDistributionError: question_count < 1, a negative fraction, or
            the sum post-condition failing (a logic defect).
    """
    if question_count < 1:
        raise FatalDistributionError(
            f"[bloom_allocator] question_count must be >= 1, got {question_count}"
        )

    weights = _normalize(distribution)

    raw = {level: weights[level] * question_count for level in BLOOM_ORDER}
    floored = {level: math.floor(raw[level]) for level in BLOOM_ORDER}
    remainder = question_count - sum(floored.values())

    by_fraction = sorted(
        BLOOM_ORDER,
        key=lambda level: (-(raw[level] - floored[level]), level.rank),
    )

    result = dict(floored)
    for level in by_fraction[:remainder]:
        result[level] += 1

    total = sum(result.values())
    if total != question_count or any(count < 0 for count in result.values()):
        raise FatalDistributionError(
            f"[bloom_allocator] expected sum={question_count}, got {total}. "
            f"Input: {_describe(distribution)}, "
            f"question_count={question_count}"
        )

    logger.debug(
        "[bloom_allocator] %d question(s) → %s",
        question_count,
        {level.value: count for level, count in result.items()},
    )
    return result
