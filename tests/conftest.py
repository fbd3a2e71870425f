"""
Pytest configuration and shared fixtures.

Provides payment parameter sets, a builder for formula graphs written as
builder JSON, and relaxed rate limits for API tests.
"""

import os

# Rate limits are read when middleware.rate_limiter is imported
os.environ.setdefault("RATE_LIMIT_PAYROLL", "1000/minute")
os.environ.setdefault("RATE_LIMIT_EXPORT", "1000/minute")
os.environ.setdefault("RATE_LIMIT_CALCULATOR", "1000/minute")

import pytest

from models.formula import Formula


def make_formula(nodos, conexiones, nodo_resultado="resultado", **kwargs):
    """
    Build a Formula from builder-style JSON.

    Connections are given as (origen, destino, puntoEntrada) tuples.
    """
    payload = {
        "id": kwargs.pop("id", "test"),
        "nodos": nodos,
        "conexiones": [
            {"id": f"e{i}", "origen": o, "destino": d, "puntoSalida": "output", "puntoEntrada": p}
            for i, (o, d, p) in enumerate(conexiones)
        ],
        "nodoResultado": nodo_resultado,
    }
    payload.update(kwargs)
    return Formula.model_validate(payload)


@pytest.fixture
def base_params():
    """Tier table used across tariff scenarios."""
    return {
        "tarifas": [
            {"numeroReservas": 10, "tarifa": 5},
            {"numeroReservas": 30, "tarifa": 4},
        ],
        "tarifaFullHouse": 3.5,
        "cuotaFija": 0,
        "minimoGarantizado": 0,
        "maximo": 1000,
    }


@pytest.fixture
def tariff_formula(base_params):
    """Standard tariff -> result formula for the INSTRUCTOR category."""
    def build(**overrides):
        params = {**base_params, **overrides}
        return make_formula(
            nodos=[
                {"id": "tarifa", "tipo": "tarifa", "datos": {}},
                {"id": "resultado", "tipo": "resultado", "datos": {"etiqueta": "Pago"}},
            ],
            conexiones=[("tarifa", "resultado", "input")],
            parametrosPago={"INSTRUCTOR": params},
        )
    return build


@pytest.fixture
def build_formula():
    """Expose make_formula to tests."""
    return make_formula
