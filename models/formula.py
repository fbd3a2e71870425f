"""
Pydantic models for payment formulas and their evaluation.

A formula is stored by the studio admin UI as a JSON node graph. Nodes
reference each other only by id through ``conexiones``; these models keep
that shape so a stored formula can be validated and evaluated as-is.

JSON keys are camelCase (``nodoResultado``, ``tarifaFullHouse``); Python
attributes are snake_case. Both spellings are accepted on input.
"""

from enum import Enum
from decimal import Decimal
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================

class CategoriaInstructor(str, Enum):
    """Instructor categories; each one may carry its own tariff table."""
    INSTRUCTOR = "INSTRUCTOR"
    EMBAJADOR_JUNIOR = "EMBAJADOR_JUNIOR"
    EMBAJADOR = "EMBAJADOR"
    EMBAJADOR_SENIOR = "EMBAJADOR_SENIOR"


class OperacionAritmetica(str, Enum):
    """Binary operators available to ``operacion`` nodes."""
    SUMA = "suma"
    RESTA = "resta"
    MULTIPLICACION = "multiplicacion"
    DIVISION = "division"
    PORCENTAJE = "porcentaje"


class Comparacion(str, Enum):
    """Conditions available to ``comparador`` nodes."""
    MAYOR_QUE = "mayor_que"
    MENOR_QUE = "menor_que"
    IGUAL = "igual"
    MAYOR_IGUAL = "mayor_igual"
    MENOR_IGUAL = "menor_igual"


# Variable names accepted by ``variable`` nodes -> EvaluationContext attribute.
# ``lugares`` is the stored name for a class's capacity.
CONTEXT_FIELDS: Dict[str, str] = {
    "reservaciones": "reservaciones",
    "capacidad": "capacidad",
    "lugares": "capacidad",
    "listaEspera": "lista_espera",
    "lista_espera": "lista_espera",
    "cortesias": "cortesias",
    "reservasPagadas": "reservas_pagadas",
    "reservas_pagadas": "reservas_pagadas",
}


# =============================================================================
# PAYMENT PARAMETERS
# =============================================================================

class TarifaTier(CamelModel):
    """One tier of a tariff table: pay ``tarifa`` per reservation up to ``numeroReservas``."""

    numero_reservas: int = Field(..., description="Upper reservation threshold (inclusive)", ge=0)
    tarifa: Decimal = Field(..., description="Rate paid per reservation within this tier")


class ParametrosPago(CamelModel):
    """
    Tariff parameters for one instructor category.

    ``maximo`` is optional; when absent no ceiling is applied.
    ``bono`` is paid per reservation and reported separately from the total.
    """

    tarifas: List[TarifaTier] = Field(default_factory=list, description="Tiered rates")
    tarifa_full_house: Decimal = Field(..., description="Rate applied when the class is full")
    cuota_fija: Decimal = Field(Decimal("0"), description="Fixed amount added to the base")
    minimo_garantizado: Decimal = Field(Decimal("0"), description="Guaranteed minimum (floor)")
    maximo: Optional[Decimal] = Field(None, description="Maximum payment (ceiling)")
    bono: Decimal = Field(Decimal("0"), description="Bonus per reservation, not added to the total")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "tarifas": [
                    {"numeroReservas": 10, "tarifa": 5},
                    {"numeroReservas": 30, "tarifa": 4},
                ],
                "tarifaFullHouse": 3.5,
                "cuotaFija": 0,
                "minimoGarantizado": 0,
                "maximo": 1000,
                "bono": 0,
            }
        }
    )


# =============================================================================
# NODES
# =============================================================================

class VariableData(CamelModel):
    variable: str = Field(..., description="Context field name (reservaciones, capacidad, ...)")
    etiqueta: Optional[str] = None


class NumeroData(CamelModel):
    valor: Decimal = Field(..., description="Literal value")


class OperacionData(CamelModel):
    operacion: OperacionAritmetica
    etiqueta: Optional[str] = None


class ComparadorData(CamelModel):
    condicion: Comparacion
    etiqueta: Optional[str] = None


class TarifaData(CamelModel):
    parametros_pago: Dict[CategoriaInstructor, ParametrosPago] = Field(
        default_factory=dict,
        description="Parameter sets per category; falls back to the formula's parametrosPago"
    )
    etiqueta: Optional[str] = None


class ResultadoData(CamelModel):
    etiqueta: Optional[str] = None


class _NodeBase(CamelModel):
    id: str = Field(..., description="Node id, unique within its formula")
    posicion: Optional[Dict[str, float]] = Field(None, description="Builder canvas position")


class VariableNode(_NodeBase):
    """Reads a named field from the evaluation context."""
    tipo: Literal["variable"] = "variable"
    datos: VariableData


class NumeroNode(_NodeBase):
    """Literal numeric constant."""
    tipo: Literal["numero"] = "numero"
    datos: NumeroData


class OperacionNode(_NodeBase):
    """Arithmetic over ports ``input-1`` and ``input-2``."""
    tipo: Literal["operacion"] = "operacion"
    datos: OperacionData


class ComparadorNode(_NodeBase):
    """
    Compares ``valueA`` with ``valueB``.

    With ``true``/``false`` branches wired it yields the winning branch,
    otherwise 1 or 0.
    """
    tipo: Literal["comparador"] = "comparador"
    datos: ComparadorData


class TarifaNode(_NodeBase):
    """Tiered tariff table with fixed fee, floor, ceiling and bonus."""
    tipo: Literal["tarifa"] = "tarifa"
    datos: TarifaData = Field(default_factory=TarifaData)


class ResultadoNode(_NodeBase):
    """Final node of a formula; forwards its ``input`` port."""
    tipo: Literal["resultado"] = "resultado"
    datos: ResultadoData = Field(default_factory=ResultadoData)


FormulaNode = Annotated[
    Union[VariableNode, NumeroNode, OperacionNode, ComparadorNode, TarifaNode, ResultadoNode],
    Field(discriminator="tipo"),
]

NODE_CLASSES = (VariableNode, NumeroNode, OperacionNode, ComparadorNode, TarifaNode, ResultadoNode)


class Conexion(CamelModel):
    """Directed edge: output of ``origen`` feeds port ``puntoEntrada`` of ``destino``."""

    id: Optional[str] = None
    origen: str = Field(..., description="Source node id")
    destino: str = Field(..., description="Target node id")
    punto_salida: Optional[str] = Field(None, description="Source handle (always 'output')")
    punto_entrada: Optional[str] = Field(
        None, description="Target port; assigned in port order when omitted"
    )


# =============================================================================
# FORMULA
# =============================================================================

class Formula(CamelModel):
    """
    User-authored payment computation graph.

    At most one formula is active per (disciplinaId, periodoId) pair.
    """

    id: Union[int, str] = Field(..., description="Caller-assigned formula id")
    nombre: str = Field("", description="Display name")
    descripcion: Optional[str] = None
    nodos: List[FormulaNode] = Field(default_factory=list)
    conexiones: List[Conexion] = Field(default_factory=list)
    nodo_resultado: Optional[str] = Field(None, description="Id of the result node")
    parametros_pago: Dict[CategoriaInstructor, ParametrosPago] = Field(
        default_factory=dict,
        description="Default tariff parameters per instructor category"
    )
    disciplina_id: Optional[int] = None
    periodo_id: Optional[int] = None

    DEFAULT_TARIFF_NODE: ClassVar[str] = "tarifa"
    DEFAULT_RESULT_NODE: ClassVar[str] = "resultado"

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 7,
                "nombre": "Síclo 2025-P3",
                "nodos": [
                    {"id": "tarifa", "tipo": "tarifa", "datos": {}},
                    {"id": "resultado", "tipo": "resultado", "datos": {"etiqueta": "Pago"}},
                ],
                "conexiones": [
                    {"id": "e1", "origen": "tarifa", "destino": "resultado",
                     "puntoSalida": "output", "puntoEntrada": "input"},
                ],
                "nodoResultado": "resultado",
                "parametrosPago": {
                    "INSTRUCTOR": {
                        "tarifas": [{"numeroReservas": 30, "tarifa": 4}],
                        "tarifaFullHouse": 3.5,
                        "maximo": 1000,
                    }
                },
                "disciplinaId": 1,
                "periodoId": 12,
            }
        }
    )

    @classmethod
    def from_payment_parameters(
        cls,
        formula_id: Union[int, str],
        parametros_pago: Dict[CategoriaInstructor, ParametrosPago],
        **kwargs: Any,
    ) -> "Formula":
        """Build the standard tariff -> result graph around a set of payment parameters."""
        return cls(
            id=formula_id,
            nodos=[
                TarifaNode(id=cls.DEFAULT_TARIFF_NODE),
                ResultadoNode(id=cls.DEFAULT_RESULT_NODE),
            ],
            conexiones=[
                Conexion(
                    id=f"{cls.DEFAULT_TARIFF_NODE}-{cls.DEFAULT_RESULT_NODE}",
                    origen=cls.DEFAULT_TARIFF_NODE,
                    destino=cls.DEFAULT_RESULT_NODE,
                    punto_salida="output",
                    punto_entrada="input",
                )
            ],
            nodo_resultado=cls.DEFAULT_RESULT_NODE,
            parametros_pago=parametros_pago,
            **kwargs,
        )

    def ensure_graph(self) -> "Formula":
        """
        Return a formula with a node graph.

        Formulas saved with only ``parametrosPago`` get the standard
        tariff graph; formulas that already have nodes are returned unchanged.
        """
        if self.nodos:
            return self
        return Formula.from_payment_parameters(
            self.id,
            self.parametros_pago,
            nombre=self.nombre,
            descripcion=self.descripcion,
            disciplina_id=self.disciplina_id,
            periodo_id=self.periodo_id,
        )


# =============================================================================
# EVALUATION INPUT / OUTPUT
# =============================================================================

class EvaluationContext(CamelModel):
    """Attendance figures of one class occurrence plus the instructor category."""

    reservaciones: int = Field(0, description="Total reservations", ge=0)
    capacidad: int = Field(0, description="Seats available (lugares)", ge=0)
    lista_espera: int = Field(0, description="Waitlist count", ge=0)
    cortesias: int = Field(0, description="Courtesy seats", ge=0)
    reservas_pagadas: int = Field(0, description="Paid reservations", ge=0)
    categoria: CategoriaInstructor = Field(
        CategoriaInstructor.INSTRUCTOR, description="Selects the tariff parameter set"
    )

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "reservaciones": 20,
                "capacidad": 50,
                "listaEspera": 0,
                "cortesias": 2,
                "reservasPagadas": 18,
                "categoria": "INSTRUCTOR",
            }
        },
    )

    @classmethod
    def from_clase(
        cls,
        clase: Any,
        categoria: CategoriaInstructor = CategoriaInstructor.INSTRUCTOR,
    ) -> "EvaluationContext":
        """
        Build a context from a stored class record.

        Accepts any object exposing ``reservas_totales``, ``lugares``,
        ``listas_espera``, ``cortesias`` and ``reservas_pagadas``.
        """
        return cls(
            reservaciones=clase.reservas_totales or 0,
            capacidad=clase.lugares or 0,
            lista_espera=getattr(clase, "listas_espera", 0) or 0,
            cortesias=getattr(clase, "cortesias", 0) or 0,
            reservas_pagadas=getattr(clase, "reservas_pagadas", 0) or 0,
            categoria=categoria,
        )

    def lookup(self, variable: str) -> Optional[int]:
        """Value of a formula variable, or None when the name is not a context field."""
        attribute = CONTEXT_FIELDS.get(variable)
        if attribute is None:
            return None
        return getattr(self, attribute)


class PasoEvaluacion(CamelModel):
    """One step of the evaluation trace."""

    nodo_id: str
    descripcion: str
    valor: Optional[Decimal] = None
    es_error: bool = False


class EvaluationResult(CamelModel):
    """
    Outcome of evaluating one formula against one class.

    ``valor`` and ``montoPago`` carry the same amount. On failure both are
    null and ``error`` holds the message; the trace keeps the steps reached.
    """

    valor: Optional[Decimal] = Field(None, description="Final value of the result node")
    monto_pago: Optional[Decimal] = Field(None, description="Payment after clamps")
    tarifa_aplicada: Optional[Decimal] = Field(None, description="Rate selected by the tariff table")
    tipo_tarifa: Optional[str] = Field(None, description="Why that rate was selected")
    minimo_aplicado: bool = Field(False, description="Guaranteed minimum raised the amount")
    maximo_aplicado: bool = Field(False, description="Maximum lowered the amount")
    bono_aplicado: Optional[Decimal] = Field(
        None, description="Bonus reported separately; never included in montoPago"
    )
    detalle_calculo: List[str] = Field(default_factory=list, description="Key calculation decisions")
    pasos: List[PasoEvaluacion] = Field(default_factory=list, description="Per-node trace")
    error: Optional[str] = Field(None, description="Failure message")
    error_tipo: Optional[str] = Field(None, description="Failure class name")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "valor": "80",
                "montoPago": "80",
                "tarifaAplicada": "4",
                "tipoTarifa": "Hasta 30 reservas",
                "minimoAplicado": False,
                "maximoAplicado": False,
                "bonoAplicado": None,
                "detalleCalculo": [
                    "Tarifa: Hasta 30 reservas (S/.4.00 por reserva)",
                    "20 reservas × S/.4.00 = S/.80.00",
                ],
                "pasos": [],
                "error": None,
            }
        }
    )

    @property
    def ok(self) -> bool:
        return self.error is None


class FormulaValidationResult(CamelModel):
    """Save-time structural check of a formula."""

    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
