"""
Errors raised while evaluating a payment formula.

The evaluator captures these into EvaluationResult.error; they never
escape FormulaEvaluator.evaluate().
"""

from typing import Iterable, Optional


class FormulaError(Exception):
    """Base class for formula evaluation failures."""

    def __init__(self, message: str, node_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.node_id = node_id


class ConfigurationError(FormulaError):
    """Raised when the formula structure is invalid (result node, references, wiring)."""
    pass


class CyclicGraphError(FormulaError):
    """Raised when the node connections contain a cycle."""

    def __init__(self, cycle_nodes: Iterable[str]):
        self.cycle_nodes = sorted(cycle_nodes)
        super().__init__(
            f"Formula graph contains a cycle; nodes left unresolved: {', '.join(self.cycle_nodes)}"
        )


class UnknownFieldError(FormulaError):
    """Raised when a variable node names a field absent from the context."""
    pass


class DivisionByZeroError(FormulaError):
    """Raised when an arithmetic node divides by zero."""
    pass


class MissingParametersError(FormulaError):
    """Raised when a tariff node has no parameters for the instructor category."""
    pass
