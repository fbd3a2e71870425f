"""
API endpoints for payment formulas.

Provides the on-screen formula calculator and save-time validation used by
the formula builder.
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from middleware.rate_limiter import limit_calculator
from models.formula import EvaluationContext, EvaluationResult, Formula, FormulaValidationResult
from services.formula import FormulaEvaluator, validate_formula

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/formulas", tags=["Formulas"])


# Request Models

class EvaluateFormulaRequest(BaseModel):
    """Request body for POST /api/formulas/evaluate"""
    formula: Formula = Field(..., description="Formula graph as stored by the builder")
    contexto: EvaluationContext = Field(
        default_factory=EvaluationContext, description="Attendance figures of one class"
    )


# Endpoints

@router.post("/evaluate", response_model=EvaluationResult)
@limit_calculator
async def evaluate_formula(request: Request, payload: EvaluateFormulaRequest):
    """
    Evaluate a formula against one class's attendance figures.

    Evaluation failures (cycles, unknown fields, division by zero, missing
    parameters) are part of the result: the response is 200 with `error`
    and `errorTipo` set.

    **Example Request:**
    ```json
    {
      "formula": {
        "id": "temp",
        "nodos": [{"id": "t", "tipo": "tarifa"}, {"id": "r", "tipo": "resultado"}],
        "conexiones": [{"origen": "t", "destino": "r", "puntoEntrada": "input"}],
        "nodoResultado": "r",
        "parametrosPago": {
          "INSTRUCTOR": {
            "tarifas": [{"numeroReservas": 10, "tarifa": 5}, {"numeroReservas": 30, "tarifa": 4}],
            "tarifaFullHouse": 3.5,
            "maximo": 1000
          }
        }
      },
      "contexto": {"reservaciones": 20, "capacidad": 50, "categoria": "INSTRUCTOR"}
    }
    ```

    **Example Response:**
    ```json
    {
      "valor": "80",
      "montoPago": "80",
      "tarifaAplicada": "4",
      "tipoTarifa": "Hasta 30 reservas",
      "minimoAplicado": false,
      "maximoAplicado": false,
      "bonoAplicado": null,
      "detalleCalculo": ["Tarifa: Hasta 30 reservas (S/.4.00 por reserva)", "..."],
      "pasos": [...],
      "error": null
    }
    ```
    """
    try:
        evaluator = FormulaEvaluator()
        return evaluator.evaluate(payload.formula, payload.contexto)

    except Exception as e:
        logger.error(f"Formula evaluation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Formula evaluation failed: {str(e)}"
        )


@router.post("/validate", response_model=FormulaValidationResult)
async def validate(formula: Formula):
    """
    Check a formula's structure before saving it.

    Errors make the formula unusable (missing result node, cycles, unwired
    ports, unknown variables). Warnings flag suspect tariff parameters such
    as a maximum below the guaranteed minimum.
    """
    try:
        return validate_formula(formula)

    except Exception as e:
        logger.error(f"Formula validation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Formula validation failed: {str(e)}"
        )
