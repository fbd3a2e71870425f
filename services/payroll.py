"""
Payroll calculator for instructor payments.

Evaluates the period's payment formulas against every class and aggregates
the amounts per instructor. A class that cannot be evaluated is recorded as
a failure and the run continues with the remaining classes.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
import logging

import pandas as pd

from models.formula import CategoriaInstructor, EvaluationContext, Formula
from models.payroll import (
    ClaseInput,
    InstructorPayment,
    PayrollClassLine,
    PayrollFailure,
    PayrollRequest,
    PayrollRunResult,
    PenalizacionInput,
)
from services.config import Config
from services.formula.errors import ConfigurationError
from services.formula.evaluator import FormulaEvaluator

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
FULL_HOUSE_MARK = "full house"


def _quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class PayrollCalculator:
    """
    Batch payroll run for one period.

    Workflow:
    1. Index formulas by (disciplinaId, periodoId)
    2. Evaluate each class with the instructor's category for its discipline
    3. Apply full-house covers and versus splits
    4. Record failures per class without aborting
    5. Aggregate per instructor: subtotal, bonus, penalties, retention

    Usage:
        calculator = PayrollCalculator()
        result = calculator.calculate(request)
        for failure in result.fallas:
            ...
    """

    def __init__(
        self,
        evaluator: Optional[FormulaEvaluator] = None,
        config: Optional[Config] = None
    ):
        self.config = config or Config.from_env()
        self.evaluator = evaluator or FormulaEvaluator(max_steps=self.config.formula_max_steps)

    def calculate(self, request: PayrollRequest) -> PayrollRunResult:
        """
        Run payroll for ``request.periodo_id``.

        Returns:
            PayrollRunResult with per-class lines, per-instructor payments,
            failures and processing notes
        """
        logger.info(
            f"Starting payroll for period {request.periodo_id}: "
            f"{len(request.clases)} classes, {len(request.formulas)} formulas"
        )

        processing_notes: List[str] = []
        lineas: List[PayrollClassLine] = []
        fallas: List[PayrollFailure] = []

        formulas, ambiguous = self._index_formulas(request, processing_notes)
        categorias = {
            (c.instructor_id, c.disciplina_id): c.categoria for c in request.categorias
        }

        for clase in request.clases:
            categoria = categorias.get(
                (clase.instructor_id, clase.disciplina_id), request.categoria_por_defecto
            )
            key = (clase.disciplina_id, clase.periodo_id)

            if key in ambiguous:
                fallas.append(self._failure(
                    clase,
                    ConfigurationError(
                        f"Multiple formulas for discipline {clase.disciplina_id} "
                        f"in period {clase.periodo_id}"
                    ),
                ))
                continue

            formula = formulas.get(key)
            if formula is None:
                fallas.append(self._failure(
                    clase,
                    ConfigurationError(
                        f"Missing formula for discipline {clase.disciplina_id} "
                        f"in period {clase.periodo_id}"
                    ),
                ))
                continue

            linea, falla = self._calculate_class(clase, formula, categoria)
            if falla:
                fallas.append(falla)
            else:
                lineas.append(linea)

        pagos = self._aggregate(lineas, fallas, request.penalizaciones)
        monto_total = sum((p.monto_final for p in pagos), Decimal("0.00"))

        processing_notes.append(
            f"Evaluated {len(lineas)}/{len(request.clases)} classes "
            f"for {len(pagos)} instructors, total: S/.{monto_total:,.2f}"
        )
        logger.info(processing_notes[-1])

        if fallas:
            processing_notes.append(f"{len(fallas)} classes could not be evaluated")
            logger.warning(processing_notes[-1])
            for falla in fallas:
                processing_notes.append(
                    f"ERROR class {falla.clase_id} (instructor {falla.instructor_id}): "
                    f"{falla.mensaje}"
                )

        return PayrollRunResult(
            periodo_id=request.periodo_id,
            lineas=lineas,
            pagos=pagos,
            fallas=fallas,
            monto_total=monto_total,
            processing_notes=processing_notes,
        )

    def _index_formulas(
        self,
        request: PayrollRequest,
        processing_notes: List[str]
    ) -> Tuple[Dict[Tuple[int, int], Formula], set]:
        """
        Map (disciplinaId, periodoId) to its formula.

        Formulas without a period belong to the requested period. Keys with
        more than one formula are returned as ambiguous instead of picking one.
        """
        formulas: Dict[Tuple[int, int], Formula] = {}
        ambiguous = set()

        for formula in request.formulas:
            if formula.disciplina_id is None:
                processing_notes.append(
                    f"WARNING: Formula {formula.id} has no disciplinaId - ignored"
                )
                logger.warning(processing_notes[-1])
                continue

            key = (formula.disciplina_id, formula.periodo_id or request.periodo_id)
            if key in formulas:
                ambiguous.add(key)
                processing_notes.append(
                    f"WARNING: More than one formula for discipline {key[0]} in period {key[1]}"
                )
                logger.warning(processing_notes[-1])
                continue

            formulas[key] = formula.ensure_graph()

        processing_notes.append(f"Loaded {len(formulas)} formulas for evaluation")
        return formulas, ambiguous

    def _calculate_class(
        self,
        clase: ClaseInput,
        formula: Formula,
        categoria: CategoriaInstructor
    ) -> Tuple[Optional[PayrollClassLine], Optional[PayrollFailure]]:
        """Evaluate one class; returns either a line or a failure."""
        context = EvaluationContext.from_clase(clase, categoria)

        es_full_house_por_cover = bool(
            clase.texto_especial and FULL_HOUSE_MARK in clase.texto_especial.lower()
        )
        if es_full_house_por_cover:
            # Full-house covers are paid as if every seat was booked
            context = context.model_copy(update={"reservaciones": clase.lugares})
            logger.debug(f"Class {clase.id}: full house by cover")

        resultado = self.evaluator.evaluate(formula, context)
        if resultado.error:
            return None, PayrollFailure(
                clase_id=clase.id,
                instructor_id=clase.instructor_id,
                error_tipo=resultado.error_tipo or "FormulaError",
                mensaje=resultado.error,
            )

        monto = resultado.monto_pago
        bono = resultado.bono_aplicado
        es_versus = bool(clase.es_versus and clase.vs_num and clase.vs_num > 1)
        if es_versus:
            monto = monto / clase.vs_num
            if bono is not None:
                bono = bono / clase.vs_num

        return PayrollClassLine(
            clase_id=clase.id,
            instructor_id=clase.instructor_id,
            disciplina_id=clase.disciplina_id,
            categoria=categoria,
            monto_calculado=monto,
            bono=bono,
            tipo_tarifa=resultado.tipo_tarifa,
            es_full_house_por_cover=es_full_house_por_cover,
            es_versus=es_versus,
            vs_num=clase.vs_num,
            resultado=resultado,
        ), None

    def _failure(self, clase: ClaseInput, error: ConfigurationError) -> PayrollFailure:
        logger.warning(f"Class {clase.id}: {error.message}")
        return PayrollFailure(
            clase_id=clase.id,
            instructor_id=clase.instructor_id,
            error_tipo=type(error).__name__,
            mensaje=error.message,
        )

    def _aggregate(
        self,
        lineas: List[PayrollClassLine],
        fallas: List[PayrollFailure],
        penalizaciones: List[PenalizacionInput]
    ) -> List[InstructorPayment]:
        """Build one InstructorPayment per instructor with at least one class."""
        por_instructor: Dict[int, List[PayrollClassLine]] = {}
        for linea in lineas:
            por_instructor.setdefault(linea.instructor_id, []).append(linea)

        errores: Dict[int, int] = {}
        for falla in fallas:
            errores[falla.instructor_id] = errores.get(falla.instructor_id, 0) + 1

        puntos: Dict[int, int] = {}
        for p in penalizaciones:
            puntos[p.instructor_id] = puntos.get(p.instructor_id, 0) + p.puntos

        pagos = []
        for instructor_id in sorted(set(por_instructor) | set(errores)):
            clases = por_instructor.get(instructor_id, [])
            subtotal = sum((l.monto_calculado for l in clases), Decimal("0"))
            bono_total = sum((l.bono for l in clases if l.bono is not None), Decimal("0"))

            # Free points are allowed on every class taught, including failed ones
            total_puntos = puntos.get(instructor_id, 0)
            clases_impartidas = len(clases) + errores.get(instructor_id, 0)
            descuento_pct = self.penalty_discount_pct(total_puntos, clases_impartidas)
            penalizacion_monto = subtotal * descuento_pct / 100

            retencion_pct = self.config.retention_pct
            retencion_monto = (subtotal - penalizacion_monto) * retencion_pct / 100
            monto_final = subtotal - penalizacion_monto - retencion_monto

            pagos.append(InstructorPayment(
                instructor_id=instructor_id,
                total_clases=len(clases),
                clases_con_error=errores.get(instructor_id, 0),
                subtotal=_quantize(subtotal),
                bono_total=_quantize(bono_total),
                penalizacion_puntos=total_puntos,
                penalizacion_descuento_pct=descuento_pct,
                penalizacion_monto=_quantize(penalizacion_monto),
                retencion_pct=retencion_pct,
                retencion_monto=_quantize(retencion_monto),
                monto_final=_quantize(monto_final),
            ))

        return pagos

    def penalty_discount_pct(self, puntos: int, total_clases: int) -> Decimal:
        """
        Discount percentage for penalty points.

        Up to max_penalty_pct points per 100 classes are free; each point
        beyond that discounts 1%, capped at max_penalty_pct.
        """
        limite = self.config.max_penalty_pct
        permitidos = total_clases * limite // 100
        excedentes = max(0, puntos - permitidos)
        return Decimal(min(excedentes, limite))


def payroll_lines_frame(result: PayrollRunResult) -> pd.DataFrame:
    """
    Per-class payroll lines as a DataFrame, for CSV export.

    Amounts are rounded to cents for display.
    """
    columns = [
        "clase_id", "instructor_id", "disciplina_id", "categoria", "tipo_tarifa",
        "monto_calculado", "bono", "es_full_house_por_cover", "es_versus", "vs_num",
    ]
    rows = [
        {
            "clase_id": linea.clase_id,
            "instructor_id": linea.instructor_id,
            "disciplina_id": linea.disciplina_id,
            "categoria": linea.categoria.value,
            "tipo_tarifa": linea.tipo_tarifa,
            "monto_calculado": float(_quantize(linea.monto_calculado)),
            "bono": float(_quantize(linea.bono)) if linea.bono is not None else None,
            "es_full_house_por_cover": linea.es_full_house_por_cover,
            "es_versus": linea.es_versus,
            "vs_num": linea.vs_num,
        }
        for linea in result.lineas
    ]
    return pd.DataFrame(rows, columns=columns)
