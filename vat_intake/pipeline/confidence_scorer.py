"""
Confidence aggregation for extraction outcomes.

A strategy's primary candidate gets a base score from where it came from
(tabular sum, pattern priority, external service). Independent agreement
adds a convergence bonus. Emergency recoveries are capped low no matter what.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from vat_intake.config import Settings, settings as default_settings
from vat_intake.models.enums import StrategyName, StrategyStatus
from vat_intake.schemas.contracts import StrategyOutcome


class ConfidenceResult(BaseModel):
    confidence: float = 0.0
    base: float = 0.0
    convergence_bonus: float = 0.0
    signals: list[str] = []


# ── Base confidence by pattern priority ──────────────────────
PATTERN_PRIORITY_CONFIDENCE = {
    1: 0.80,
    2: 0.70,
    3: 0.50,
}
PATTERN_FALLBACK_CONFIDENCE = 0.40


def base_confidence(outcome: StrategyOutcome, config: Settings) -> float:
    primary = outcome.primary
    if primary is None:
        return 0.0
    if outcome.strategy == StrategyName.TABULAR:
        return config.TABULAR_BASE_CONFIDENCE
    if outcome.strategy == StrategyName.PATTERN_TEXT:
        return PATTERN_PRIORITY_CONFIDENCE.get(primary.priority, PATTERN_FALLBACK_CONFIDENCE)
    if outcome.strategy == StrategyName.EXTERNAL:
        return outcome.confidence
    if outcome.strategy == StrategyName.EMERGENCY_FALLBACK:
        return config.EMERGENCY_CONFIDENCE_CEILING
    return 0.0


def aggregate_confidence(
    primary_outcome: StrategyOutcome,
    secondary_outcomes: Optional[list[StrategyOutcome]] = None,
    config: Optional[Settings] = None,
) -> ConfidenceResult:
    """
    Score the primary candidate of `primary_outcome`.

    Convergence counts when another strategy's candidate, or a raw match from a
    different pattern of the same strategy, lies within AMOUNT_TOLERANCE of it.
    """
    config = config or default_settings
    primary = primary_outcome.primary
    if primary is None or primary_outcome.status != StrategyStatus.SUCCESS:
        return ConfidenceResult(signals=["NO_CANDIDATES"])

    tolerance = Decimal(str(config.AMOUNT_TOLERANCE))
    base = base_confidence(primary_outcome, config)
    signals = [f"BASE_{primary_outcome.strategy.value.upper()}_{base:.2f}"]

    agreeing: list[str] = []
    for raw in primary_outcome.evidence:
        if raw.source_pattern != primary.source_pattern and abs(raw.value - primary.value) <= tolerance:
            agreeing.append(f"pattern:{raw.source_pattern}")

    for other in secondary_outcomes or []:
        if other.strategy == primary_outcome.strategy or other.status != StrategyStatus.SUCCESS:
            continue
        if any(abs(c.value - primary.value) <= tolerance for c in other.candidates):
            agreeing.append(f"strategy:{other.strategy.value}")

    bonus = 0.0
    confidence = base
    if agreeing:
        bonus = config.CONVERGENCE_BONUS
        confidence = max(base, min(config.CONVERGENCE_CAP, base + bonus))
        signals.append("CONVERGENCE_" + ",".join(sorted(set(agreeing))))
    elif primary_outcome.strategy == StrategyName.EXTERNAL:
        signals.append("EXTERNAL_SOLE_CONTRIBUTOR")

    if primary_outcome.strategy == StrategyName.EMERGENCY_FALLBACK:
        confidence = min(confidence, config.EMERGENCY_CONFIDENCE_CEILING)
        signals.append("EMERGENCY_CEILING")

    return ConfidenceResult(
        confidence=round(max(0.0, min(1.0, confidence)), 4),
        base=round(base, 4),
        convergence_bonus=bonus,
        signals=signals,
    )
