"""
Tests for the formula and payroll API endpoints.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from main import app

client = TestClient(app)


@pytest.fixture
def formula_json(base_params):
    return {
        "id": "temp",
        "nodos": [
            {"id": "tarifa", "tipo": "tarifa", "datos": {}},
            {"id": "resultado", "tipo": "resultado", "datos": {}},
        ],
        "conexiones": [{"origen": "tarifa", "destino": "resultado", "puntoEntrada": "input"}],
        "nodoResultado": "resultado",
        "parametrosPago": {"INSTRUCTOR": base_params},
        "disciplinaId": 1,
        "periodoId": 12,
    }


@pytest.fixture
def payroll_json(formula_json):
    return {
        "periodoId": 12,
        "formulas": [formula_json],
        "clases": [
            {"id": 1, "instructorId": 1, "disciplinaId": 1, "periodoId": 12, "reservasTotales": 20, "lugares": 50},
            {"id": 2, "instructorId": 1, "disciplinaId": 2, "periodoId": 12, "reservasTotales": 20, "lugares": 50},
        ],
    }


def test_openapi_docs():
    response = client.get("/openapi.json")
    assert response.status_code == 200

    paths = response.json().get("paths", {})
    assert "/api/formulas/evaluate" in paths
    assert "/api/formulas/validate" in paths
    assert "/api/payroll/calculate" in paths
    assert "/api/payroll/export" in paths


def test_root_and_health():
    assert client.get("/").json()["service"] == "Studio Payroll API"
    assert client.get("/health").json()["status"] == "healthy"


def test_evaluate(formula_json):
    response = client.post("/api/formulas/evaluate", json={
        "formula": formula_json,
        "contexto": {"reservaciones": 20, "capacidad": 50, "categoria": "INSTRUCTOR"},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["error"] is None
    assert Decimal(str(body["montoPago"])) == Decimal("80")
    assert body["tipoTarifa"] == "Hasta 30 reservas"
    assert body["minimoAplicado"] is False


def test_evaluation_error_is_part_of_result(formula_json):
    formula_json["conexiones"].append({"origen": "resultado", "destino": "tarifa", "puntoEntrada": "reservaciones"})

    response = client.post("/api/formulas/evaluate", json={
        "formula": formula_json,
        "contexto": {"reservaciones": 20, "capacidad": 50},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["errorTipo"] == "CyclicGraphError"
    assert body["montoPago"] is None


def test_evaluate_rejects_negative_counts(formula_json):
    response = client.post("/api/formulas/evaluate", json={
        "formula": formula_json,
        "contexto": {"reservaciones": -1, "capacidad": 50},
    })

    assert response.status_code == 422


def test_evaluate_rejects_unknown_node_type(formula_json):
    formula_json["nodos"].append({"id": "x", "tipo": "raiz", "datos": {}})

    response = client.post("/api/formulas/evaluate", json={"formula": formula_json})

    assert response.status_code == 422


def test_validate(formula_json):
    formula_json["nodoResultado"] = None

    response = client.post("/api/formulas/validate", json=formula_json)

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert "No result node defined" in body["errors"]


def test_payroll_calculate(payroll_json):
    response = client.post("/api/payroll/calculate", json=payroll_json)

    assert response.status_code == 200
    body = response.json()
    assert len(body["lineas"]) == 1
    assert body["fallas"][0]["claseId"] == 2
    assert body["fallas"][0]["errorTipo"] == "ConfigurationError"
    assert Decimal(str(body["pagos"][0]["subtotal"])) == Decimal("80")


def test_payroll_rejects_invalid_versus(payroll_json):
    payroll_json["clases"][0].update({"esVersus": True, "vsNum": 0})

    response = client.post("/api/payroll/calculate", json=payroll_json)

    assert response.status_code == 422


def test_payroll_export(payroll_json):
    response = client.post("/api/payroll/export", json=payroll_json)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "pagos_periodo_12.csv" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("clase_id,instructor_id")
    assert len(lines) == 2
