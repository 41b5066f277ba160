"""
Tests for deterministic variant assignment and tuning profiles.
"""

import json
from collections import Counter

import pytest
from pydantic import ValidationError

from vat_intake.models.enums import StrategyName
from vat_intake.pipeline.assignment import assign_variant, bucket_for
from vat_intake.pipeline.pattern_extractor import DEFAULT_PATTERNS
from vat_intake.pipeline.tuning import TuningProfile, load_profile


class TestAssignVariant:

    def test_deterministic(self):
        first = assign_variant("doc-42", "exp", ["a", "b", "c"])
        assert all(assign_variant("doc-42", "exp", ["a", "b", "c"]) == first for _ in range(10))

    def test_bucket_in_unit_interval(self):
        for i in range(50):
            assert 0.0 <= bucket_for(f"doc-{i}", "exp") < 1.0

    def test_experiment_changes_bucket(self):
        assert bucket_for("doc-1", "exp-a") != bucket_for("doc-1", "exp-b")

    def test_zero_weight_never_chosen(self):
        chosen = {assign_variant(f"doc-{i}", "exp", ["a", "b"], [0.0, 1.0]) for i in range(100)}
        assert chosen == {"b"}

    def test_roughly_even_split(self):
        counts = Counter(assign_variant(f"doc-{i}", "exp", ["a", "b"]) for i in range(1000))
        assert 400 < counts["a"] < 600

    @pytest.mark.parametrize("variants, weights", [
        ([], None),
        (["a", "b"], [1.0]),
        (["a"], [-1.0]),
        (["a", "b"], [0.0, 0.0]),
    ])
    def test_invalid_input(self, variants, weights):
        with pytest.raises(ValueError):
            assign_variant("doc", "exp", variants, weights)


class TestTuningProfile:

    def test_default_order(self):
        assert TuningProfile().strategy_order == [
            StrategyName.TABULAR,
            StrategyName.PATTERN_TEXT,
            StrategyName.EXTERNAL,
        ]

    def test_apply_to_patterns(self):
        profile = TuningProfile(pattern_priorities={"vat_amount": 1}, disabled_patterns=["vat_no_currency"])
        tuned = profile.apply_to_patterns(DEFAULT_PATTERNS)
        names = [p.name for p in tuned]
        assert "vat_no_currency" not in names
        assert len(tuned) == len(DEFAULT_PATTERNS) - 1
        assert next(p for p in tuned if p.name == "vat_amount").priority == 1

    def test_duplicate_strategy_rejected(self):
        with pytest.raises(ValidationError):
            TuningProfile(strategy_order=[StrategyName.TABULAR, StrategyName.TABULAR])

    def test_emergency_not_orderable(self):
        with pytest.raises(ValidationError):
            TuningProfile(strategy_order=[StrategyName.EMERGENCY_FALLBACK])

    def test_priority_must_be_positive(self):
        with pytest.raises(ValidationError):
            TuningProfile(pattern_priorities={"vat_amount": 0})

    def test_all_zero_variant_weights_rejected(self):
        with pytest.raises(ValidationError):
            TuningProfile(variants=[TuningProfile(name="a", weight=0), TuningProfile(name="b", weight=0)])

    def test_resolve_without_variants(self):
        profile = TuningProfile(name="solo")
        assert profile.resolve("doc", "exp") is profile

    def test_resolve_is_stable(self):
        profile = TuningProfile(variants=[TuningProfile(name="control"), TuningProfile(name="tabular-last")])
        first = profile.resolve("doc-7", "exp").name
        assert first in {"control", "tabular-last"}
        assert profile.resolve("doc-7", "exp").name == first


class TestLoadProfile:

    def test_no_path_is_default(self):
        assert load_profile(None) == TuningProfile()

    def test_from_json(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(json.dumps({
            "name": "experiment",
            "strategy_order": ["pattern_text", "tabular", "external"],
            "variants": [{"name": "a", "weight": 3}, {"name": "b", "weight": 1}],
        }))
        profile = load_profile(str(path))
        assert profile.strategy_order[0] == StrategyName.PATTERN_TEXT
        assert [v.weight for v in profile.variants] == [3.0, 1.0]

    def test_bad_json_raises(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text('{"strategy_order": ["nope"]}')
        with pytest.raises(ValidationError):
            load_profile(str(path))
