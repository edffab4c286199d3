"""Pure-function rules engine pattern.

Rules are stateless functions: (entity, context) -> RuleResult.
No database, no side effects. This makes them:
- Trivially testable (pure input/output)
- Composable (chain multiple rules)
- Auditable (deterministic, explainable)

Domain: library circulation, deciding whether a borrow record is overdue
and whether it is due a fine.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Date arithmetic
# ---------------------------------------------------------------------------

def days_elapsed(borrow_date: datetime | date, today: date) -> int:
    """Whole calendar days between the borrow day and today."""
    if isinstance(borrow_date, datetime):
        borrow_date = borrow_date.date()
    return (today - borrow_date).days


def overdue_cutoff(today: date, loan_period_days: int) -> datetime:
    """Borrows strictly before this instant are overdue."""
    return datetime.combine(today - timedelta(days=loan_period_days), time.min)


# ---------------------------------------------------------------------------
# Circulation rules
# ---------------------------------------------------------------------------

def check_overdue(
    borrow_date: datetime | date,
    today: date,
    loan_period_days: int = 14,
) -> RuleResult:
    """Check whether an unreturned borrow has outlived its loan period.

    Passes (i.e. the record IS overdue) when more than loan_period_days
    whole days have elapsed.
    """
    elapsed = days_elapsed(borrow_date, today)
    passed = elapsed > loan_period_days

    return RuleResult(
        passed=passed,
        rule_name="overdue",
        message=(
            f"Overdue: {elapsed} days since borrow, loan period {loan_period_days}"
            if passed
            else f"Within loan period: {elapsed} of {loan_period_days} days"
        ),
        details={"days_elapsed": elapsed, "loan_period_days": loan_period_days},
    )


def check_fine_eligibility(
    borrow_date: datetime | date,
    returned: bool,
    already_fined: bool,
    today: date,
    loan_period_days: int = 14,
) -> RuleResult:
    """Check if a borrow record should receive an overdue fine.

    Rules:
    - The record must still be active (not returned)
    - The loan period must have been exceeded
    - The record must not already carry a fine for this overdue episode
    """
    overdue = check_overdue(borrow_date, today, loan_period_days)
    passed = not returned and overdue.passed and not already_fined

    reasons = []
    if returned:
        reasons.append("Record already returned")
    if not overdue.passed:
        reasons.append(overdue.message)
    if already_fined:
        reasons.append("Fine already issued for this overdue borrow")

    return RuleResult(
        passed=passed,
        rule_name="fine_eligibility",
        message="Fine due" if passed else "; ".join(reasons),
        details={
            **overdue.details,
            "returned": returned,
            "already_fined": already_fined,
        },
    )
