"""
Tests for confidence aggregation.
"""

from decimal import Decimal

import pytest

from vat_intake.models.enums import StrategyName, StrategyStatus
from vat_intake.pipeline.confidence_scorer import aggregate_confidence
from vat_intake.schemas.contracts import CandidateAmount, StrategyOutcome


def candidate(value, strategy=StrategyName.PATTERN_TEXT, priority=1, pattern="vat_rate_bracket"):
    return CandidateAmount(value=Decimal(value), source_pattern=pattern, priority=priority, strategy=strategy)


def outcome(strategy, candidates, evidence=None, confidence=0.0, status=StrategyStatus.SUCCESS):
    return StrategyOutcome(
        strategy=strategy,
        status=status,
        candidates=candidates,
        evidence=evidence if evidence is not None else candidates,
        confidence=confidence,
    )


class TestBaseConfidence:

    def test_no_candidates(self):
        result = aggregate_confidence(outcome(StrategyName.PATTERN_TEXT, [], status=StrategyStatus.EMPTY))
        assert result.confidence == 0.0

    def test_tabular(self):
        c = candidate("10.00", StrategyName.TABULAR, pattern="columns:VAT Amount")
        assert aggregate_confidence(outcome(StrategyName.TABULAR, [c])).confidence == pytest.approx(0.8)

    @pytest.mark.parametrize("priority, expected", [(1, 0.8), (2, 0.7), (3, 0.5), (4, 0.4), (6, 0.4)])
    def test_pattern_priority(self, priority, expected):
        c = candidate("10.00", priority=priority)
        assert aggregate_confidence(outcome(StrategyName.PATTERN_TEXT, [c])).confidence == pytest.approx(expected)

    def test_external_sole_contributor_uses_own_confidence(self):
        c = candidate("10.00", StrategyName.EXTERNAL, pattern="external_service")
        result = aggregate_confidence(outcome(StrategyName.EXTERNAL, [c], confidence=0.72))
        assert result.confidence == pytest.approx(0.72)
        assert "EXTERNAL_SOLE_CONTRIBUTOR" in result.signals


class TestConvergence:

    def test_different_pattern_agrees(self):
        primary = candidate("92.00", priority=2, pattern="vat_amount")
        other = candidate("92.00", priority=5, pattern="vat_no_currency")
        result = aggregate_confidence(outcome(StrategyName.PATTERN_TEXT, [primary], evidence=[primary, other]))
        assert result.confidence == pytest.approx(0.8)
        assert result.convergence_bonus == pytest.approx(0.1)

    def test_same_pattern_does_not_count(self):
        primary = candidate("92.00", priority=2, pattern="vat_amount")
        again = candidate("92.00", priority=2, pattern="vat_amount")
        result = aggregate_confidence(outcome(StrategyName.PATTERN_TEXT, [primary], evidence=[primary, again]))
        assert result.confidence == pytest.approx(0.7)

    def test_other_strategy_agrees_within_a_cent(self):
        tabular = outcome(StrategyName.TABULAR, [candidate("50.00", StrategyName.TABULAR, pattern="columns:x")])
        primary = outcome(StrategyName.PATTERN_TEXT, [candidate("50.01")])
        result = aggregate_confidence(primary, [tabular])
        assert result.confidence == pytest.approx(0.9)

    def test_bonus_capped(self):
        c = candidate("10.00", StrategyName.EXTERNAL, pattern="external_service")
        pattern = outcome(StrategyName.PATTERN_TEXT, [candidate("10.00")])
        result = aggregate_confidence(outcome(StrategyName.EXTERNAL, [c], confidence=0.9), [pattern])
        assert result.confidence == pytest.approx(0.95)

    def test_failed_secondary_ignored(self):
        failed = outcome(StrategyName.TABULAR, [], status=StrategyStatus.FAILED)
        result = aggregate_confidence(outcome(StrategyName.PATTERN_TEXT, [candidate("5.00")]), [failed])
        assert result.convergence_bonus == 0.0


class TestEmergencyCeiling:

    def test_capped_even_with_agreement(self):
        c = candidate("23.00", StrategyName.EMERGENCY_FALLBACK, priority=9, pattern="emergency_keyword_proximity")
        agreeing = outcome(StrategyName.EXTERNAL, [candidate("23.00", StrategyName.EXTERNAL, pattern="external_service")])
        result = aggregate_confidence(outcome(StrategyName.EMERGENCY_FALLBACK, [c]), [agreeing])
        assert result.confidence <= 0.3
