"""
Nexus Compliance - Demo Status Helpers

Maps revenue-to-threshold ratios onto compliant / warning / critical under
a qualification strategy, and back again.
"""

import math
import random
from typing import Optional

from app.services.demo_data.constants import (
    COMPLIANT,
    CRITICAL,
    QUALIFICATION_STRATEGIES,
    WARNING,
)


def get_strategy(strategy: Optional[str]) -> dict:
    return QUALIFICATION_STRATEGIES.get(strategy or "standard", QUALIFICATION_STRATEGIES["standard"])


def determine_status(current_amount: float, threshold_amount: float, strategy: str = "standard") -> str:
    """Status of a state from its revenue ratio. A zero threshold is compliant."""
    if not threshold_amount:
        return COMPLIANT

    ratio = current_amount / threshold_amount
    limits = get_strategy(strategy)
    if ratio >= limits["critical"]:
        return CRITICAL
    if ratio >= limits["warning"]:
        return WARNING
    return COMPLIANT


def calculate_revenue_for_status(
    status: str,
    threshold_amount: float,
    strategy: str = "standard",
    rng: Optional[random.Random] = None,
) -> int:
    """
    Revenue that lands a state in the requested status.

    compliant: 10-50% of threshold
    warning: warning ratio up to just under the critical ratio, never at or over 100%
    critical: critical ratio up to critical + 50%
    """
    rng = rng or random
    limits = get_strategy(strategy)

    if status == COMPLIANT:
        return math.floor(threshold_amount * (0.10 + rng.random() * 0.40))

    if status == WARNING:
        low = limits["warning"]
        high = min(limits["critical"] - 0.01, 0.99)
        amount = math.floor(threshold_amount * (low + rng.random() * (high - low)))
        if amount >= threshold_amount:
            return math.floor(threshold_amount * 0.99)
        return amount

    if status == CRITICAL:
        low = limits["critical"]
        return math.floor(threshold_amount * (low + rng.random() * 0.50))

    return math.floor(threshold_amount * 0.10)
