"""Seller reputation scoring policy."""

from typing import Any, Callable, Optional, Sequence

ReputationRule = tuple[Callable[[dict], bool], int]


def _level(level_id: str) -> Callable[[dict], bool]:
    return lambda reputation: reputation.get("level_id") == level_id


# Evaluated top-down; the first matching predicate wins.
REPUTATION_RULES: tuple[ReputationRule, ...] = (
    (lambda reputation: bool(reputation.get("power_seller_status")), 95),
    (_level("5_green"), 90),
    (_level("4_light_green"), 85),
    (_level("3_yellow"), 75),
    (lambda reputation: bool(reputation.get("level_id")), 70),
)

# Sellers without a level yet (new accounts) get a neutral score.
UNRATED_REPUTATION = 75


def score_reputation(
    profile: Optional[dict[str, Any]],
    rules: Sequence[ReputationRule] = REPUTATION_RULES,
    default: int = UNRATED_REPUTATION,
) -> int:
    """Derive the 0-100 reputation score from a ``/users/me`` profile."""
    reputation = (profile or {}).get("seller_reputation") or {}
    for predicate, score in rules:
        if predicate(reputation):
            return score
    return default
