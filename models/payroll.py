"""
Pydantic models for batch payroll runs.

A payroll run evaluates the period's formulas against every class taught in
the period and aggregates the amounts per instructor. Classes that cannot be
evaluated are reported as failures instead of aborting the run.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union

from pydantic import ConfigDict, Field

from .formula import CamelModel, CategoriaInstructor, EvaluationResult, Formula


class ClaseInput(CamelModel):
    """One class occurrence as stored by the class import."""

    id: Union[int, str]
    instructor_id: int
    disciplina_id: int
    periodo_id: int
    reservas_totales: int = Field(0, ge=0)
    lugares: int = Field(0, ge=0)
    listas_espera: int = Field(0, ge=0)
    cortesias: int = Field(0, ge=0)
    reservas_pagadas: int = Field(0, ge=0)
    texto_especial: Optional[str] = Field(
        None, description="Free text from the schedule; 'full house' marks a full-house cover"
    )
    es_versus: bool = False
    vs_num: Optional[int] = Field(None, ge=1, description="Number of instructors sharing a versus class")
    fecha: Optional[datetime] = None


class CategoriaAsignada(CamelModel):
    """Category of an instructor for one discipline in the period."""

    instructor_id: int
    disciplina_id: int
    categoria: CategoriaInstructor


class PenalizacionInput(CamelModel):
    instructor_id: int
    puntos: int = Field(..., ge=0)
    tipo: Optional[str] = None
    descripcion: Optional[str] = None


class PayrollRequest(CamelModel):
    """Input of a payroll run for one period."""

    periodo_id: int
    formulas: List[Formula] = Field(default_factory=list)
    clases: List[ClaseInput] = Field(default_factory=list)
    categorias: List[CategoriaAsignada] = Field(default_factory=list)
    categoria_por_defecto: CategoriaInstructor = CategoriaInstructor.INSTRUCTOR
    penalizaciones: List[PenalizacionInput] = Field(default_factory=list)


class PayrollClassLine(CamelModel):
    """Amount computed for one class."""

    clase_id: Union[int, str]
    instructor_id: int
    disciplina_id: int
    categoria: CategoriaInstructor
    monto_calculado: Decimal = Field(..., description="Formula amount, divided by vsNum for versus classes")
    bono: Optional[Decimal] = None
    tipo_tarifa: Optional[str] = None
    es_full_house_por_cover: bool = False
    es_versus: bool = False
    vs_num: Optional[int] = None
    resultado: EvaluationResult


class PayrollFailure(CamelModel):
    """A class that could not be evaluated."""

    clase_id: Union[int, str]
    instructor_id: int
    error_tipo: str
    mensaje: str


class InstructorPayment(CamelModel):
    """Aggregated payment of one instructor for the period."""

    instructor_id: int
    total_clases: int = Field(..., description="Classes evaluated successfully")
    clases_con_error: int = 0
    subtotal: Decimal
    bono_total: Decimal = Decimal("0.00")
    penalizacion_puntos: int = 0
    penalizacion_descuento_pct: Decimal = Decimal("0")
    penalizacion_monto: Decimal = Decimal("0.00")
    retencion_pct: Decimal = Decimal("0")
    retencion_monto: Decimal = Decimal("0.00")
    monto_final: Decimal


class PayrollRunResult(CamelModel):
    """
    Complete result of a payroll run.

    Returned by PayrollCalculator.calculate().
    """

    periodo_id: int
    lineas: List[PayrollClassLine] = Field(default_factory=list)
    pagos: List[InstructorPayment] = Field(default_factory=list)
    fallas: List[PayrollFailure] = Field(default_factory=list)
    monto_total: Decimal = Decimal("0.00")
    processing_notes: List[str] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "periodoId": 12,
                "lineas": [],
                "pagos": [
                    {
                        "instructorId": 3,
                        "totalClases": 14,
                        "clasesConError": 1,
                        "subtotal": "1120.00",
                        "bonoTotal": "0.00",
                        "penalizacionPuntos": 0,
                        "penalizacionDescuentoPct": "0",
                        "penalizacionMonto": "0.00",
                        "retencionPct": "8",
                        "retencionMonto": "89.60",
                        "montoFinal": "1030.40",
                    }
                ],
                "fallas": [
                    {
                        "claseId": 991,
                        "instructorId": 3,
                        "errorTipo": "MissingParametersError",
                        "mensaje": "No payment parameters for category EMBAJADOR",
                    }
                ],
                "montoTotal": "1030.40",
                "processingNotes": ["Evaluated 14/15 classes for 1 instructors"],
            }
        }
    )

    def failures_by_instructor(self) -> Dict[int, List[PayrollFailure]]:
        grouped: Dict[int, List[PayrollFailure]] = {}
        for failure in self.fallas:
            grouped.setdefault(failure.instructor_id, []).append(failure)
        return grouped
