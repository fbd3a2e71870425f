"""
API endpoints for payroll runs.

Evaluates a period's formulas against its classes and returns the payment
of every instructor together with the classes that could not be evaluated.
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from middleware.rate_limiter import limit_export, limit_payroll
from models.payroll import PayrollRequest, PayrollRunResult
from services.payroll import PayrollCalculator, payroll_lines_frame

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payroll", tags=["Payroll"])


def _run(payload: PayrollRequest) -> PayrollRunResult:
    return PayrollCalculator().calculate(payload)


@router.post("/calculate", response_model=PayrollRunResult)
@limit_payroll
async def calculate_payroll(request: Request, payload: PayrollRequest):
    """
    Calculate instructor payments for a period.

    For each class:
    1. Look up the formula of its discipline for the period
    2. Evaluate it with the instructor's category
    3. Pay full-house covers as full classes and split versus classes

    Classes that fail are listed in `fallas` (class, instructor, error type
    and message); the other classes are still paid.

    **Example Response:**
    ```json
    {
      "periodoId": 12,
      "pagos": [{"instructorId": 3, "totalClases": 14, "subtotal": "1120.00", "montoFinal": "1030.40"}],
      "fallas": [{"claseId": 991, "instructorId": 3, "errorTipo": "MissingParametersError", "mensaje": "..."}],
      "montoTotal": "1030.40",
      "processingNotes": ["Evaluated 14/15 classes for 1 instructors, total: S/.1,030.40"]
    }
    ```
    """
    try:
        return _run(payload)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Payroll calculation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Payroll calculation failed: {str(e)}"
        )


@router.post("/export")
@limit_export
async def export_payroll(request: Request, payload: PayrollRequest):
    """
    Calculate a period's payroll and return the per-class lines as CSV.
    """
    try:
        result = _run(payload)
        frame = payroll_lines_frame(result)
        filename = f"pagos_periodo_{payload.periodo_id}.csv"
        return Response(
            content=frame.to_csv(index=False),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Payroll export failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Payroll export failed: {str(e)}"
        )
