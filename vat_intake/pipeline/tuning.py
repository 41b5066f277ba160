"""
Tuning profiles: the externally supplied knobs for the extraction chain.

A profile can re-prioritise or disable VAT patterns by name and reorder the
primary strategies. Profiles may carry weighted variants; the variant for a
document is picked with assign_variant so reprocessing is stable.
"""

from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, Field, field_validator, model_validator

from vat_intake.models.enums import StrategyName
from vat_intake.pipeline.assignment import assign_variant
from vat_intake.pipeline.pattern_extractor import VATPattern

logger = structlog.get_logger(__name__)

ORDERABLE_STRATEGIES = (StrategyName.TABULAR, StrategyName.PATTERN_TEXT, StrategyName.EXTERNAL)


class TuningProfile(BaseModel):
    name: str = "default"
    pattern_priorities: dict[str, int] = {}
    disabled_patterns: list[str] = []
    strategy_order: list[StrategyName] = list(ORDERABLE_STRATEGIES)
    weight: float = Field(default=1.0, ge=0.0)
    variants: list["TuningProfile"] = []

    @field_validator("strategy_order")
    @classmethod
    def check_strategy_order(cls, value):
        if len(set(value)) != len(value):
            raise ValueError("strategy_order contains duplicates")
        for strategy in value:
            if strategy not in ORDERABLE_STRATEGIES:
                raise ValueError(f"{strategy.value} cannot be reordered")
        return value

    @field_validator("pattern_priorities")
    @classmethod
    def check_priorities(cls, value):
        for name, priority in value.items():
            if priority < 1:
                raise ValueError(f"priority for {name} must be >= 1")
        return value

    @model_validator(mode="after")
    def check_variant_weights(self):
        if self.variants and sum(v.weight for v in self.variants) <= 0:
            raise ValueError("variant weights must have a positive sum")
        return self

    def apply_to_patterns(self, patterns: list[VATPattern]) -> list[VATPattern]:
        """Drop disabled patterns and apply priority overrides. Order is kept."""
        disabled = set(self.disabled_patterns)
        tuned = []
        for pattern in patterns:
            if pattern.name in disabled:
                continue
            priority = self.pattern_priorities.get(pattern.name)
            tuned.append(pattern._replace(priority=priority) if priority else pattern)
        return tuned

    def resolve(self, identity: str, experiment_id: str) -> "TuningProfile":
        """The variant this identity is assigned to, or self when there are none."""
        if not self.variants:
            return self
        chosen = assign_variant(
            identity,
            experiment_id,
            [v.name for v in self.variants],
            [v.weight for v in self.variants],
        )
        return next(v for v in self.variants if v.name == chosen)


def load_profile(path: Optional[str]) -> TuningProfile:
    """Read a profile from JSON. No path means the built-in default."""
    if not path:
        return TuningProfile()
    profile = TuningProfile.model_validate_json(Path(path).read_text(encoding="utf-8"))
    logger.info(
        "tuning_profile_loaded",
        path=path,
        profile=profile.name,
        variants=[v.name for v in profile.variants],
    )
    return profile
