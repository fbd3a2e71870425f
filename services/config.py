"""
Service Configuration

Environment variables and constants for the formula evaluator and payroll runs.
"""

import os
from dataclasses import dataclass
from decimal import Decimal


@dataclass
class Config:
    """Configuration for formula evaluation and payroll."""

    # Upper bound on nodes evaluated per formula
    formula_max_steps: int = 10000

    # Payroll
    retention_pct: Decimal = Decimal("8")  # tax withholding on the period total
    max_penalty_pct: int = 10  # penalty points allowed per 100 classes, and max discount %

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        return cls(
            formula_max_steps=int(os.getenv("FORMULA_MAX_STEPS", "10000")),
            retention_pct=Decimal(os.getenv("PAYROLL_RETENTION_PCT", "8")),
            max_penalty_pct=int(os.getenv("PAYROLL_MAX_PENALTY_PCT", "10")),
        )
