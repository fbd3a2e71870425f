"""
Services for formula evaluation and payroll runs.
"""

from .formula import FormulaEvaluator, evaluate, validate_formula
from .payroll import PayrollCalculator, payroll_lines_frame

__all__ = [
    "FormulaEvaluator",
    "evaluate",
    "validate_formula",
    "PayrollCalculator",
    "payroll_lines_frame",
]
