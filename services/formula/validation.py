"""
Formula Validator

Save-time structural checks for payment formulas. Reuses the graph index
of the evaluator so that a formula accepted here can only fail at
evaluation time for data-dependent reasons (unknown category, division by
zero).

Usage:
    from services.formula.validation import validate_formula

    result = validate_formula(formula)
    # -> FormulaValidationResult(valid=True, errors=[], warnings=[...])
"""

from typing import Dict, List
import logging

from models.formula import (
    CONTEXT_FIELDS,
    CategoriaInstructor,
    Formula,
    FormulaValidationResult,
    ParametrosPago,
    TarifaNode,
    VariableNode,
)
from services.formula.errors import FormulaError
from services.formula.graph import REQUIRED_PORTS, FormulaGraph

logger = logging.getLogger(__name__)


def _check_parameters(
    label: str,
    parametros_por_categoria: Dict[CategoriaInstructor, ParametrosPago],
    warnings: List[str],
) -> None:
    missing = [c.value for c in CategoriaInstructor if c not in parametros_por_categoria]
    if missing:
        warnings.append(f"{label}: no parameters for categories {', '.join(missing)}")

    for categoria, parametros in parametros_por_categoria.items():
        prefix = f"{label} [{categoria.value}]"
        if not parametros.tarifas:
            warnings.append(f"{prefix}: no tiers defined, every class will use tarifaFullHouse")

        thresholds = [t.numero_reservas for t in parametros.tarifas]
        repeated = sorted({t for t in thresholds if thresholds.count(t) > 1})
        if repeated:
            warnings.append(f"{prefix}: repeated tier thresholds {repeated}")

        if parametros.maximo is not None and parametros.maximo < parametros.minimo_garantizado:
            warnings.append(
                f"{prefix}: maximo {parametros.maximo} is below minimoGarantizado "
                f"{parametros.minimo_garantizado}; the maximum will always win"
            )


def validate_formula(formula: Formula) -> FormulaValidationResult:
    """
    Validate a formula without evaluating it.

    Checks:
    1. Result node is defined and exists
    2. Node ids are unique and connections reference existing nodes and ports
    3. The connection graph is acyclic
    4. Required input ports are wired; comparator branches are both-or-neither
    5. Variable nodes name known context fields
    6. Tariff parameters (warnings only)

    Args:
        formula: Formula as stored by the builder

    Returns:
        FormulaValidationResult; valid is False when any error was found
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not formula.nodos and formula.parametros_pago:
        warnings.append("Formula has no nodes; the standard tariff graph will be used")
        formula = formula.ensure_graph()

    try:
        graph = FormulaGraph(formula)
        graph.topological_order()
    except FormulaError as e:
        errors.append(e.message)
        return FormulaValidationResult(valid=False, errors=errors, warnings=warnings)

    if not formula.nodo_resultado:
        errors.append("No result node defined")
    elif formula.nodo_resultado not in graph.nodes:
        errors.append(f"No result node defined: '{formula.nodo_resultado}' is not a node of the formula")
    else:
        reachable = set(graph.reachable_from(formula.nodo_resultado))
        unused = [node_id for node_id in graph.nodes if node_id not in reachable]
        if unused:
            warnings.append(f"Nodes not connected to the result: {', '.join(unused)}")

    for node_id, node in graph.nodes.items():
        for port in REQUIRED_PORTS.get(node.tipo, ()):
            if graph.input_of(node_id, port) is None:
                errors.append(f"Node '{node_id}' is missing its '{port}' input")

        if node.tipo == "comparador":
            try:
                graph.branches(node_id)
            except FormulaError as e:
                errors.append(e.message)

        if isinstance(node, VariableNode) and node.datos.variable not in CONTEXT_FIELDS:
            errors.append(f"Node '{node_id}' reads unknown context field '{node.datos.variable}'")

        if isinstance(node, TarifaNode):
            parametros = node.datos.parametros_pago or formula.parametros_pago
            if not parametros:
                errors.append(f"Tariff node '{node_id}' has no payment parameters")
            else:
                _check_parameters(f"Tariff node '{node_id}'", parametros, warnings)

    valid = len(errors) == 0
    if not valid:
        logger.info(f"Formula {formula.id} failed validation: {len(errors)} errors")

    return FormulaValidationResult(valid=valid, errors=errors, warnings=warnings)
