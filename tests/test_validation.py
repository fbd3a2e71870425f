"""
Unit tests for save-time formula validation.
"""

from models.formula import Formula
from services.formula import validate_formula


def test_valid_tariff_formula(tariff_formula):
    result = validate_formula(tariff_formula())

    assert result.valid
    assert result.errors == []
    # Only INSTRUCTOR has parameters
    assert any("EMBAJADOR" in w for w in result.warnings)


def test_missing_result_node(build_formula):
    formula = build_formula(
        nodos=[{"id": "uno", "tipo": "numero", "datos": {"valor": 1}}],
        conexiones=[],
        nodo_resultado=None,
    )

    result = validate_formula(formula)

    assert not result.valid
    assert "No result node defined" in result.errors


def test_cycle_is_an_error(build_formula):
    formula = build_formula(
        nodos=[
            {"id": "a", "tipo": "operacion", "datos": {"operacion": "suma"}},
            {"id": "b", "tipo": "operacion", "datos": {"operacion": "suma"}},
            {"id": "resultado", "tipo": "resultado", "datos": {}},
        ],
        conexiones=[("a", "b", "input-1"), ("b", "a", "input-1"), ("a", "resultado", "input")],
    )

    result = validate_formula(formula)

    assert not result.valid
    assert "cycle" in result.errors[0]


def test_structural_errors_collected(build_formula):
    formula = build_formula(
        nodos=[
            {"id": "x", "tipo": "variable", "datos": {"variable": "asistencia"}},
            {"id": "op", "tipo": "operacion", "datos": {"operacion": "suma"}},
            {"id": "resultado", "tipo": "resultado", "datos": {}},
        ],
        conexiones=[("x", "op", "input-1"), ("op", "resultado", "input")],
    )

    result = validate_formula(formula)

    assert not result.valid
    assert "Node 'op' is missing its 'input-2' input" in result.errors
    assert "Node 'x' reads unknown context field 'asistencia'" in result.errors


def test_unconnected_node_warning(build_formula):
    formula = build_formula(
        nodos=[
            {"id": "uno", "tipo": "numero", "datos": {"valor": 1}},
            {"id": "suelto", "tipo": "numero", "datos": {"valor": 2}},
            {"id": "resultado", "tipo": "resultado", "datos": {}},
        ],
        conexiones=[("uno", "resultado", "input")],
    )

    result = validate_formula(formula)

    assert result.valid
    assert "Nodes not connected to the result: suelto" in result.warnings


def test_tariff_without_parameters(build_formula):
    formula = build_formula(
        nodos=[
            {"id": "tarifa", "tipo": "tarifa", "datos": {}},
            {"id": "resultado", "tipo": "resultado", "datos": {}},
        ],
        conexiones=[("tarifa", "resultado", "input")],
    )

    result = validate_formula(formula)

    assert not result.valid
    assert "Tariff node 'tarifa' has no payment parameters" in result.errors


def test_suspect_parameters_are_warnings(tariff_formula):
    formula = tariff_formula(
        tarifas=[{"numeroReservas": 10, "tarifa": 5}, {"numeroReservas": 10, "tarifa": 4}],
        minimoGarantizado=200,
        maximo=150,
    )

    result = validate_formula(formula)

    assert result.valid
    assert any("repeated tier thresholds [10]" in w for w in result.warnings)
    assert any("below minimoGarantizado" in w for w in result.warnings)


def test_formula_without_nodes_uses_standard_graph(base_params):
    formula = Formula.model_validate({"id": 3, "parametrosPago": {"INSTRUCTOR": base_params}})

    result = validate_formula(formula)

    assert result.valid
    assert "Formula has no nodes; the standard tariff graph will be used" in result.warnings
