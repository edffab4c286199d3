"""Dataclass-based domain configuration pattern.

The circulation rules keep their thresholds and limits in a frozen
dataclass. This gives you:
- Type safety (IDE autocompletion, mypy checking)
- Default values (the classic 14-day loan and 5.00 overdue fine)
- Immutability (frozen=True prevents accidental mutation)
- Easy overrides (from env vars or explicit construction in tests)
"""

import os
from dataclasses import dataclass, fields
from decimal import Decimal


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Top-level domain config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CirculationConfig:
    """Configuration for the circulation engine.

    Usage::

        config = CirculationConfig.default()
        if days_elapsed > config.loan_period_days:
            issue_fine(config.overdue_fine_amount)
    """

    loan_period_days: int = 14
    overdue_fine_amount: Decimal = Decimal("5.00")

    # Lock contention policy
    max_retries: int = 3
    retry_backoff_base: float = 0.05  # seconds
    retry_backoff_max: float = 1.0  # seconds

    # Validate members/books and reject duplicate reservations
    strict_reservations: bool = True

    def __post_init__(self):
        if self.loan_period_days < 0:
            raise ValueError("loan_period_days must be >= 0")
        if self.overdue_fine_amount < 0:
            raise ValueError("overdue_fine_amount must be >= 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @classmethod
    def default(cls) -> "CirculationConfig":
        """Create config with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "LIBRARY_") -> "CirculationConfig":
        """Create config from environment variables.

        Example: LIBRARY_LOAN_PERIOD_DAYS=21 LIBRARY_OVERDUE_FINE_AMOUNT=2.50
        """
        converters = {
            int: int,
            float: float,
            Decimal: Decimal,
            bool: _parse_bool,
        }
        overrides = {}
        for f in fields(cls):
            raw = os.getenv(f"{prefix}{f.name.upper()}")
            if raw:
                overrides[f.name] = converters[type(getattr(cls, f.name))](raw)

        return cls(**overrides)
