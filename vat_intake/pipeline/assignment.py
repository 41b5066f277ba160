"""
Deterministic variant assignment.

assign_variant(identity, experiment_id, variants):
    h = SHA-256("{experiment_id}:{identity}") as hex
    bucket = int(h[:15], 16) / 16**15            (uniform in [0, 1))
    walk the cumulative weights (equal when none given) and return the first
    variant whose upper bound exceeds the bucket.

Same identity + experiment always lands in the same variant; a different
experiment id reshuffles independently. No state, no randomness.
"""

import hashlib
from typing import Optional

HASH_PREFIX_CHARS = 15
BUCKET_SPACE = 16 ** HASH_PREFIX_CHARS


def bucket_for(identity: str, experiment_id: str) -> float:
    digest = hashlib.sha256(f"{experiment_id}:{identity}".encode("utf-8")).hexdigest()
    return int(digest[:HASH_PREFIX_CHARS], 16) / BUCKET_SPACE


def assign_variant(
    identity: str,
    experiment_id: str,
    variants: list[str],
    weights: Optional[list[float]] = None,
) -> str:
    if not variants:
        raise ValueError("assign_variant needs at least one variant")
    if weights is None:
        weights = [1.0] * len(variants)
    if len(weights) != len(variants):
        raise ValueError("weights must match variants one-to-one")
    if any(w < 0 for w in weights) or sum(weights) <= 0:
        raise ValueError("weights must be non-negative with a positive sum")

    bucket = bucket_for(identity, experiment_id)
    total = float(sum(weights))
    upper = 0.0
    for variant, weight in zip(variants, weights):
        upper += weight / total
        if bucket < upper:
            return variant
    # Float rounding can leave the last bound a hair under 1.0
    return variants[-1]
