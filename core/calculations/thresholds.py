"""
Project Health Threshold Classifier

Maps an overdue work-item count and the days left until delivery onto one of
three health states. Thresholds are fixed plant-wide and exposed as constants.
"""

from enum import Enum
from typing import Optional

CRITICAL_OVERDUE_COUNT = 3
CRITICAL_DEADLINE_DAYS = 3
AT_RISK_DEADLINE_DAYS = 7


class HealthState(str, Enum):
    ON_TRACK = "on-track"
    AT_RISK = "at-risk"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


def _deadline_within(days_until_deadline: Optional[int], limit: int) -> bool:
    # Past deadlines (negative days) do not count as "approaching"
    return days_until_deadline is not None and 0 <= days_until_deadline <= limit


def classify(overdue_count: int, days_until_deadline: Optional[int] = None) -> HealthState:
    """
    Classify project health.

    Args:
        overdue_count: Total overdue tasks, RFIs and submittals
        days_until_deadline: Whole days until delivery, None when no delivery date

    Returns:
        HealthState

    Example:
        >>> classify(1, 2)
        <HealthState.CRITICAL: 'critical'>
        >>> classify(0, None)
        <HealthState.ON_TRACK: 'on-track'>
    """
    if overdue_count >= CRITICAL_OVERDUE_COUNT or _deadline_within(days_until_deadline, CRITICAL_DEADLINE_DAYS):
        return HealthState.CRITICAL
    if overdue_count > 0 or _deadline_within(days_until_deadline, AT_RISK_DEADLINE_DAYS):
        return HealthState.AT_RISK
    return HealthState.ON_TRACK
