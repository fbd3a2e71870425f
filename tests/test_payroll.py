"""
Unit tests for payroll runs.
"""

import pytest
from decimal import Decimal

from models.formula import CategoriaInstructor
from models.payroll import PayrollRequest
from services.config import Config
from services.payroll import PayrollCalculator, payroll_lines_frame


@pytest.fixture
def calculator():
    return PayrollCalculator(config=Config(formula_max_steps=1000, retention_pct=Decimal("8"), max_penalty_pct=10))


@pytest.fixture
def formula_payload(base_params):
    return {"id": 7, "disciplinaId": 1, "periodoId": 12, "parametrosPago": {"INSTRUCTOR": base_params}}


def _clase(clase_id, instructor_id, reservas, lugares=50, disciplina_id=1, **extra):
    return {
        "id": clase_id,
        "instructorId": instructor_id,
        "disciplinaId": disciplina_id,
        "periodoId": 12,
        "reservasTotales": reservas,
        "lugares": lugares,
        **extra,
    }


@pytest.fixture
def period_request(formula_payload):
    return PayrollRequest.model_validate({
        "periodoId": 12,
        "formulas": [formula_payload],
        "clases": [
            _clase(1, 1, 20),
            _clase(2, 1, 5),
            _clase(3, 2, 10, lugares=40, textoEspecial="FULL HOUSE cover"),
            _clase(4, 2, 20, esVersus=True, vsNum=2),
            _clase(5, 2, 20, disciplina_id=9),
            _clase(6, 3, 20),
        ],
        "categorias": [{"instructorId": 3, "disciplinaId": 1, "categoria": "EMBAJADOR"}],
    })


def _pago(result, instructor_id):
    return next(p for p in result.pagos if p.instructor_id == instructor_id)


def test_class_lines(calculator, period_request):
    result = calculator.calculate(period_request)

    montos = {l.clase_id: l.monto_calculado for l in result.lineas}
    assert montos == {1: Decimal("80"), 2: Decimal("25"), 3: Decimal("140"), 4: Decimal("40")}


def test_full_house_cover_pays_every_seat(calculator, period_request):
    result = calculator.calculate(period_request)

    linea = next(l for l in result.lineas if l.clase_id == 3)
    assert linea.es_full_house_por_cover
    assert linea.tipo_tarifa == "Full House"


def test_versus_class_split(calculator, period_request):
    result = calculator.calculate(period_request)

    linea = next(l for l in result.lineas if l.clase_id == 4)
    assert linea.es_versus
    assert linea.vs_num == 2
    assert linea.resultado.monto_pago == Decimal("80")
    assert linea.monto_calculado == Decimal("40")


def test_failures_do_not_stop_the_run(calculator, period_request):
    result = calculator.calculate(period_request)

    fallas = {f.clase_id: f for f in result.fallas}
    assert set(fallas) == {5, 6}
    assert fallas[5].error_tipo == "ConfigurationError"
    assert "Missing formula for discipline 9" in fallas[5].mensaje
    assert fallas[6].error_tipo == "MissingParametersError"
    assert "EMBAJADOR" in fallas[6].mensaje
    assert list(result.failures_by_instructor()) == [2, 3]


def test_instructor_payments(calculator, period_request):
    result = calculator.calculate(period_request)

    uno = _pago(result, 1)
    assert uno.total_clases == 2
    assert uno.subtotal == Decimal("105.00")
    assert uno.retencion_monto == Decimal("8.40")
    assert uno.monto_final == Decimal("96.60")

    dos = _pago(result, 2)
    assert dos.total_clases == 2
    assert dos.clases_con_error == 1
    assert dos.monto_final == Decimal("165.60")

    tres = _pago(result, 3)
    assert tres.total_clases == 0
    assert tres.clases_con_error == 1
    assert tres.monto_final == Decimal("0.00")

    assert result.monto_total == Decimal("262.20")
    assert any("Evaluated 4/6 classes" in note for note in result.processing_notes)


def test_penalties_discount_subtotal(calculator, formula_payload):
    request = PayrollRequest.model_validate({
        "periodoId": 12,
        "formulas": [formula_payload],
        "clases": [_clase(1, 1, 20), _clase(2, 1, 5)],
        "penalizaciones": [
            {"instructorId": 1, "puntos": 2, "tipo": "CANCELACION"},
            {"instructorId": 1, "puntos": 1, "tipo": "TARDANZA"},
        ],
    })

    pago = _pago(calculator.calculate(request), 1)

    assert pago.penalizacion_puntos == 3
    assert pago.penalizacion_descuento_pct == Decimal("3")
    assert pago.penalizacion_monto == Decimal("3.15")
    assert pago.retencion_monto == Decimal("8.15")
    assert pago.monto_final == Decimal("93.70")


@pytest.mark.parametrize("puntos,clases,expected", [
    (5, 100, Decimal("0")),
    (15, 100, Decimal("5")),
    (50, 20, Decimal("10")),
    (0, 0, Decimal("0")),
])
def test_penalty_discount_pct(calculator, puntos, clases, expected):
    assert calculator.penalty_discount_pct(puntos, clases) == expected


def test_duplicate_formulas_are_ambiguous(calculator, formula_payload):
    request = PayrollRequest.model_validate({
        "periodoId": 12,
        "formulas": [formula_payload, {**formula_payload, "id": 8}],
        "clases": [_clase(1, 1, 20)],
    })

    result = calculator.calculate(request)

    assert result.lineas == []
    assert "Multiple formulas" in result.fallas[0].mensaje


def test_formula_without_period_belongs_to_request(calculator, formula_payload):
    request = PayrollRequest.model_validate({
        "periodoId": 12,
        "formulas": [{**formula_payload, "periodoId": None}],
        "clases": [_clase(1, 1, 20)],
    })

    result = calculator.calculate(request)

    assert result.fallas == []
    assert result.lineas[0].monto_calculado == Decimal("80")


def test_default_category(calculator, formula_payload, base_params):
    formula_payload["parametrosPago"] = {"EMBAJADOR_SENIOR": {**base_params, "minimoGarantizado": 100}}
    request = PayrollRequest.model_validate({
        "periodoId": 12,
        "formulas": [formula_payload],
        "clases": [_clase(1, 1, 20)],
        "categoriaPorDefecto": "EMBAJADOR_SENIOR",
    })

    linea = calculator.calculate(request).lineas[0]

    assert linea.categoria == CategoriaInstructor.EMBAJADOR_SENIOR
    assert linea.monto_calculado == Decimal("100")


def test_lines_frame(calculator, period_request):
    frame = payroll_lines_frame(calculator.calculate(period_request))

    assert list(frame.columns) == [
        "clase_id", "instructor_id", "disciplina_id", "categoria", "tipo_tarifa",
        "monto_calculado", "bono", "es_full_house_por_cover", "es_versus", "vs_num",
    ]
    assert len(frame) == 4
    assert frame["monto_calculado"].sum() == pytest.approx(285.0)


def test_empty_period(calculator):
    result = calculator.calculate(PayrollRequest(periodo_id=12))

    assert result.pagos == []
    assert result.monto_total == Decimal("0.00")
    assert payroll_lines_frame(result).empty


def test_penalty_allowance_counts_failed_classes(calculator, formula_payload):
    clases = [_clase(i, 1, 20) for i in range(1, 10)]
    clases.append(_clase(10, 1, 20, disciplina_id=9))
    request = PayrollRequest.model_validate({
        "periodoId": 12,
        "formulas": [formula_payload],
        "clases": clases,
        "penalizaciones": [{"instructorId": 1, "puntos": 1}],
    })

    pago = _pago(calculator.calculate(request), 1)

    # 10 classes taught allow 1 free point
    assert pago.total_clases == 9
    assert pago.clases_con_error == 1
    assert pago.penalizacion_descuento_pct == Decimal("0")
    assert pago.penalizacion_monto == Decimal("0.00")
