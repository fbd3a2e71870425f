"""
Pydantic models for the studio payroll backend.

This module exports the formula graph, evaluation and payroll models.
"""

from .formula import (
    CategoriaInstructor,
    OperacionAritmetica,
    Comparacion,
    CONTEXT_FIELDS,
    TarifaTier,
    ParametrosPago,
    VariableNode,
    NumeroNode,
    OperacionNode,
    ComparadorNode,
    TarifaNode,
    ResultadoNode,
    FormulaNode,
    NODE_CLASSES,
    Conexion,
    Formula,
    EvaluationContext,
    PasoEvaluacion,
    EvaluationResult,
    FormulaValidationResult,
)

from .payroll import (
    ClaseInput,
    CategoriaAsignada,
    PenalizacionInput,
    PayrollRequest,
    PayrollClassLine,
    PayrollFailure,
    InstructorPayment,
    PayrollRunResult,
)

__all__ = [
    # Enums
    "CategoriaInstructor",
    "OperacionAritmetica",
    "Comparacion",
    "CONTEXT_FIELDS",
    # Formula models
    "TarifaTier",
    "ParametrosPago",
    "VariableNode",
    "NumeroNode",
    "OperacionNode",
    "ComparadorNode",
    "TarifaNode",
    "ResultadoNode",
    "FormulaNode",
    "NODE_CLASSES",
    "Conexion",
    "Formula",
    # Evaluation models
    "EvaluationContext",
    "PasoEvaluacion",
    "EvaluationResult",
    "FormulaValidationResult",
    # Payroll models
    "ClaseInput",
    "CategoriaAsignada",
    "PenalizacionInput",
    "PayrollRequest",
    "PayrollClassLine",
    "PayrollFailure",
    "InstructorPayment",
    "PayrollRunResult",
]
