"""
Payment formula evaluation.

Node-graph formulas are evaluated against one class's attendance figures;
tariff tables resolve tiered rates with fixed fee, floor, ceiling and bonus.
"""

from .errors import (
    FormulaError,
    ConfigurationError,
    CyclicGraphError,
    UnknownFieldError,
    DivisionByZeroError,
    MissingParametersError,
)
from .graph import FormulaGraph
from .tariff import TariffCalculator, TariffOutcome
from .evaluator import FormulaEvaluator, evaluate
from .validation import validate_formula

__all__ = [
    "FormulaError",
    "ConfigurationError",
    "CyclicGraphError",
    "UnknownFieldError",
    "DivisionByZeroError",
    "MissingParametersError",
    "FormulaGraph",
    "TariffCalculator",
    "TariffOutcome",
    "FormulaEvaluator",
    "evaluate",
    "validate_formula",
]
