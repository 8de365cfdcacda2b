"""Small numeric helpers shared by the content analyzer and the strategy selector."""


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def normalized_margin(top: float, runner_up: float) -> float:
    """
    Confidence from the gap between the best and second-best score, in [0.5, 1].
    Equal scores (or both zero) give 0.5, i.e. maximal uncertainty.
    """
    top = max(0.0, top)
    runner_up = max(0.0, runner_up)
    total = top + runner_up
    if total <= 0:
        return 0.5
    return clamp(0.5 + 0.5 * (top - runner_up) / total)


def recency_weight(age_seconds: float, half_life_seconds: float) -> float:
    """Exponential decay: 1.0 for fresh evidence, 0.5 after one half-life."""
    if half_life_seconds <= 0:
        return 1.0
    return 0.5 ** (max(0.0, age_seconds) / half_life_seconds)


def evidence_weight(evidence: float, prior: float) -> float:
    """Share of the score given to history; 0 without evidence, approaching 1 as evidence grows."""
    if evidence <= 0:
        return 0.0
    return evidence / (evidence + max(prior, 0.0))
