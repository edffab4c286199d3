"""Circulation business rules — pure functions.

Re-exports the rules engine pattern with the circulation rules.
"""

from patterns.rules_engine import (
    RuleResult,
    check_fine_eligibility,
    check_overdue,
    days_elapsed,
    overdue_cutoff,
)

__all__ = [
    "RuleResult",
    "check_fine_eligibility",
    "check_overdue",
    "days_elapsed",
    "overdue_cutoff",
]
