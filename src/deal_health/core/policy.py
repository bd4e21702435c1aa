"""Manual probability override policy."""

import logging
from typing import Optional, Union

from .scorer import DealHealth

logger = logging.getLogger(__name__)

JUSTIFICATION_THRESHOLD = 20


class ProbabilityReasonRequired(ValueError):
    """A probability far from the recommendation was submitted without a reason."""

    code = "PROBABILITY_REASON_REQUIRED"

    def __init__(self, delta: int, recommended_probability: int, threshold: int = JUSTIFICATION_THRESHOLD):
        self.delta = delta
        self.recommended_probability = recommended_probability
        self.threshold = threshold
        super().__init__(
            f"Probability differs from the recommended {recommended_probability}% "
            f"by {abs(delta)} points (>= {threshold}); a reason is required"
        )


def requires_justification(delta: Union[int, float], threshold: int = JUSTIFICATION_THRESHOLD) -> bool:
    """Whether a recommendation delta is large enough to need a written reason."""
    return abs(delta) >= threshold


def validate_probability_override(
    health: DealHealth,
    submitted_probability: Union[int, float],
    reason: Optional[str] = None,
    threshold: int = JUSTIFICATION_THRESHOLD,
) -> Optional[str]:
    """Check a submitted probability against the recommendation.

    Returns the cleaned reason (None when blank and not needed). Raises
    ProbabilityReasonRequired when the gap reaches ``threshold`` and no
    reason was given.
    """
    delta = health.recommended_probability - submitted_probability
    cleaned = reason.strip() if reason else ""

    if requires_justification(delta, threshold):
        if not cleaned:
            raise ProbabilityReasonRequired(delta, health.recommended_probability, threshold)
        logger.info(
            f"Probability override accepted: submitted {submitted_probability}%, "
            f"recommended {health.recommended_probability}% ({cleaned!r})"
        )

    return cleaned or None
