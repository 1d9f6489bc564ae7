"""Statistics used to judge retrieval quality deltas."""

from __future__ import annotations

import math

_MASK64 = (1 << 64) - 1
_FIRST_HIT_INTENTS = frozenset({"exact_ref", "keyword", "table_intent"})


def is_first_hit_intent(intent: str) -> bool:
    """Whether the intent is judged by its first relevant hit."""
    return intent.strip().lower() in _FIRST_HIT_INTENTS


def sign_test_two_sided_p_value(deltas: list[float]) -> float | None:
    """Two-sided sign test p-value over non-zero deltas; None if all are zero."""
    wins = sum(1 for delta in deltas if delta > 0.0)
    losses = sum(1 for delta in deltas if delta < 0.0)
    n = wins + losses
    if n == 0:
        return None
    tail = sum(binomial_pmf_half(n, i) for i in range(min(wins, losses) + 1))
    return min(2.0 * tail, 1.0)


def binomial_pmf_half(n: int, k: int) -> float:
    """P(X = k) for X ~ Binomial(n, 1/2)."""
    if k > n:
        return 0.0
    coefficient = 1.0
    for i in range(min(k, n - k)):
        coefficient *= (n - i) / (i + 1)
    return coefficient * 0.5**n


def _xorshift(state: int) -> int:
    state ^= (state << 13) & _MASK64
    state ^= state >> 7
    state ^= (state << 17) & _MASK64
    return state


def bootstrap_confidence_interval_95(
    deltas: list[float], iterations: int, seed: int
) -> tuple[float | None, float | None] | None:
    """Seeded bootstrap 95% interval of the mean delta."""
    if not deltas or iterations == 0:
        return None

    rng = seed & _MASK64
    count = len(deltas)
    means: list[float] = []
    for _ in range(iterations):
        total = 0.0
        for _ in range(count):
            rng = _xorshift(rng)
            total += deltas[rng % count]
        means.append(total / count)

    means.sort()
    last = iterations - 1
    low_index = math.floor(iterations * 0.025)
    high_index = math.ceil(iterations * 0.975)
    low = means[min(low_index, last)]
    high = means[min(max(high_index - 1, 0), last)]
    return low, high