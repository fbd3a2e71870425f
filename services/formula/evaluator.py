"""
Payment formula evaluator.

Evaluates a formula node graph against one class's attendance figures and
returns the payment plus a readable trace of how it was reached.

Workflow:
1. Index nodes and connections (FormulaGraph), check the result node
2. Reject cyclic graphs before evaluating anything
3. Walk from the result node with an explicit stack, evaluating each
   needed node once and memoizing its value by id
4. Conditionals evaluate only their winning branch
5. Capture any FormulaError into EvaluationResult.error

The evaluator is stateless between calls: each call builds its own
memo table and trace, so concurrent calls need no coordination.
"""

from decimal import Decimal
from typing import Callable, Dict, List, Optional
import logging

from models.formula import (
    NODE_CLASSES,
    Comparacion,
    ComparadorNode,
    EvaluationContext,
    EvaluationResult,
    Formula,
    FormulaNode,
    NumeroNode,
    OperacionAritmetica,
    OperacionNode,
    PasoEvaluacion,
    ResultadoNode,
    TarifaNode,
    VariableNode,
)
from services.config import Config
from services.formula.errors import (
    ConfigurationError,
    DivisionByZeroError,
    FormulaError,
    MissingParametersError,
    UnknownFieldError,
)
from services.formula.graph import REQUIRED_PORTS, FormulaGraph
from services.formula.tariff import TariffCalculator, TariffOutcome

logger = logging.getLogger(__name__)

ONE = Decimal("1")
ZERO = Decimal("0")

OPERATOR_SYMBOLS = {
    OperacionAritmetica.SUMA: "+",
    OperacionAritmetica.RESTA: "-",
    OperacionAritmetica.MULTIPLICACION: "×",
    OperacionAritmetica.DIVISION: "÷",
    OperacionAritmetica.PORCENTAJE: "%",
}

COMPARATORS: Dict[Comparacion, Callable[[Decimal, Decimal], bool]] = {
    Comparacion.MAYOR_QUE: lambda a, b: a > b,
    Comparacion.MENOR_QUE: lambda a, b: a < b,
    Comparacion.IGUAL: lambda a, b: a == b,
    Comparacion.MAYOR_IGUAL: lambda a, b: a >= b,
    Comparacion.MENOR_IGUAL: lambda a, b: a <= b,
}

COMPARATOR_SYMBOLS = {
    Comparacion.MAYOR_QUE: ">",
    Comparacion.MENOR_QUE: "<",
    Comparacion.IGUAL: "=",
    Comparacion.MAYOR_IGUAL: "≥",
    Comparacion.MENOR_IGUAL: "≤",
}

# Node class -> _EvaluationRun method
_HANDLERS = {
    VariableNode: "_evaluate_variable",
    NumeroNode: "_evaluate_numero",
    OperacionNode: "_evaluate_operacion",
    ComparadorNode: "_evaluate_comparador",
    TarifaNode: "_evaluate_tarifa",
    ResultadoNode: "_evaluate_resultado",
}

_unhandled = set(NODE_CLASSES) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No evaluation handler for node types: {_unhandled}")


class _EvaluationRun:
    """Per-call working state: graph index, memo table and trace."""

    def __init__(self, formula: Formula, context: EvaluationContext, max_steps: int):
        self.formula = formula
        self.context = context
        self.max_steps = max_steps
        self.graph: Optional[FormulaGraph] = None
        self.memo: Dict[str, Decimal] = {}
        self.pasos: List[PasoEvaluacion] = []
        self.detalle: List[str] = []
        self.tariff: Optional[TariffOutcome] = None
        self.steps = 0

    def execute(self) -> EvaluationResult:
        try:
            result_id = self.formula.nodo_resultado
            if not result_id:
                raise ConfigurationError("No result node defined")

            self.graph = FormulaGraph(self.formula)
            if result_id not in self.graph.nodes:
                raise ConfigurationError(
                    f"No result node defined: '{result_id}' is not a node of the formula",
                    node_id=result_id,
                )

            self.graph.topological_order()
            valor = self._resolve(result_id)

        except FormulaError as e:
            logger.warning(
                f"Formula {self.formula.id} evaluation failed "
                f"({type(e).__name__}): {e.message}"
            )
            self.pasos.append(
                PasoEvaluacion(nodo_id=e.node_id or "", descripcion=e.message, es_error=True)
            )
            return EvaluationResult(
                detalle_calculo=self.detalle,
                pasos=self.pasos,
                error=e.message,
                error_tipo=type(e).__name__,
            )

        tariff = self.tariff
        return EvaluationResult(
            valor=valor,
            monto_pago=valor,
            tarifa_aplicada=tariff.tarifa_aplicada if tariff else None,
            tipo_tarifa=tariff.tipo_tarifa if tariff else None,
            minimo_aplicado=tariff.minimo_aplicado if tariff else False,
            maximo_aplicado=tariff.maximo_aplicado if tariff else False,
            bono_aplicado=tariff.bono_aplicado if tariff else None,
            detalle_calculo=self.detalle,
            pasos=self.pasos,
        )

    def _resolve(self, root_id: str) -> Decimal:
        """Evaluate ``root_id`` and every node it needs, each at most once."""
        stack = [root_id]
        while stack:
            node_id = stack[-1]
            if node_id in self.memo:
                stack.pop()
                continue

            node = self.graph.nodes[node_id]
            pending = [dep for dep in self._dependencies(node) if dep not in self.memo]
            if pending:
                stack.extend(reversed(pending))
                continue

            stack.pop()
            self.steps += 1
            if self.steps > self.max_steps:
                raise ConfigurationError(
                    f"Evaluation step budget of {self.max_steps} nodes exceeded",
                    node_id=node_id,
                )
            handler = getattr(self, _HANDLERS[type(node)])
            self.memo[node_id] = handler(node)

        return self.memo[root_id]

    def _dependencies(self, node: FormulaNode) -> List[str]:
        """Upstream node ids that must be evaluated before ``node``."""
        graph = self.graph
        if isinstance(node, ComparadorNode):
            a = graph.require_input(node.id, "valueA")
            b = graph.require_input(node.id, "valueB")
            branches = graph.branches(node.id)
            if branches is None or a not in self.memo or b not in self.memo:
                return [a, b]
            # Operands known: only the winning branch is needed
            return [branches[0] if self._condition(node) else branches[1]]

        if isinstance(node, TarifaNode):
            return [
                source for source in (
                    graph.input_of(node.id, "reservaciones"),
                    graph.input_of(node.id, "capacidad"),
                )
                if source is not None
            ]

        return [graph.require_input(node.id, port) for port in REQUIRED_PORTS.get(node.tipo, ())]

    def _value(self, node_id: str, port: str) -> Decimal:
        return self.memo[self.graph.require_input(node_id, port)]

    def _step(self, node: FormulaNode, descripcion: str, valor: Decimal) -> Decimal:
        self.pasos.append(PasoEvaluacion(nodo_id=node.id, descripcion=descripcion, valor=valor))
        return valor

    # ------------------------------------------------------------------
    # Node handlers
    # ------------------------------------------------------------------

    def _evaluate_variable(self, node: VariableNode) -> Decimal:
        name = node.datos.variable
        raw = self.context.lookup(name)
        if raw is None:
            raise UnknownFieldError(f"Unknown context field '{name}'", node_id=node.id)
        return self._step(node, f"Variable {name} = {raw}", Decimal(raw))

    def _evaluate_numero(self, node: NumeroNode) -> Decimal:
        valor = node.datos.valor
        return self._step(node, f"Número {valor}", valor)

    def _evaluate_operacion(self, node: OperacionNode) -> Decimal:
        a = self._value(node.id, "input-1")
        b = self._value(node.id, "input-2")
        operacion = node.datos.operacion

        if operacion == OperacionAritmetica.SUMA:
            valor = a + b
        elif operacion == OperacionAritmetica.RESTA:
            valor = a - b
        elif operacion == OperacionAritmetica.MULTIPLICACION:
            valor = a * b
        elif operacion == OperacionAritmetica.DIVISION:
            if b == 0:
                raise DivisionByZeroError(f"Division by zero: {a} ÷ {b}", node_id=node.id)
            valor = a / b
        else:
            valor = a * b / 100

        return self._step(node, f"{a} {OPERATOR_SYMBOLS[operacion]} {b} = {valor}", valor)

    def _condition(self, node: ComparadorNode) -> bool:
        a = self._value(node.id, "valueA")
        b = self._value(node.id, "valueB")
        return COMPARATORS[node.datos.condicion](a, b)

    def _evaluate_comparador(self, node: ComparadorNode) -> Decimal:
        a = self._value(node.id, "valueA")
        b = self._value(node.id, "valueB")
        symbol = COMPARATOR_SYMBOLS[node.datos.condicion]
        cumple = self._condition(node)
        branches = self.graph.branches(node.id)

        if branches is None:
            valor = ONE if cumple else ZERO
            return self._step(node, f"{a} {symbol} {b}: {'verdadero' if cumple else 'falso'}", valor)

        winner = branches[0] if cumple else branches[1]
        valor = self.memo[winner]
        rama = "verdadera" if cumple else "falsa"
        self.detalle.append(f"Condición {a} {symbol} {b}: se usa la rama {rama}")
        return self._step(node, f"{a} {symbol} {b}: rama {rama} = {valor}", valor)

    def _evaluate_tarifa(self, node: TarifaNode) -> Decimal:
        categoria = self.context.categoria
        parametros_por_categoria = node.datos.parametros_pago or self.formula.parametros_pago
        parametros = parametros_por_categoria.get(categoria)
        if parametros is None:
            raise MissingParametersError(
                f"No payment parameters for category {categoria.value}",
                node_id=node.id,
            )

        source = self.graph.input_of(node.id, "reservaciones")
        reservaciones = self.memo[source] if source else Decimal(self.context.reservaciones)
        source = self.graph.input_of(node.id, "capacidad")
        capacidad = self.memo[source] if source else Decimal(self.context.capacidad)

        outcome = TariffCalculator(parametros).calculate(reservaciones, capacidad)
        self.tariff = outcome
        self.detalle.extend(outcome.detalle)
        return self._step(node, f"Tarifa {outcome.tipo_tarifa}: {outcome.monto}", outcome.monto)

    def _evaluate_resultado(self, node: ResultadoNode) -> Decimal:
        valor = self._value(node.id, "input")
        etiqueta = node.datos.etiqueta or "Resultado"
        return self._step(node, f"{etiqueta} = {valor}", valor)


class FormulaEvaluator:
    """
    Evaluates payment formulas.

    Usage:
        evaluator = FormulaEvaluator()
        result = evaluator.evaluate(formula, EvaluationContext(reservaciones=20, capacidad=50))
        if result.error:
            ...
    """

    def __init__(self, max_steps: Optional[int] = None):
        """
        Args:
            max_steps: Maximum number of nodes evaluated per call; defaults to
                FORMULA_MAX_STEPS from the environment
        """
        if max_steps is None:
            max_steps = Config.from_env().formula_max_steps
        self.max_steps = max_steps

    def evaluate(self, formula: Formula, context: EvaluationContext) -> EvaluationResult:
        """
        Evaluate ``formula`` against ``context``.

        Never raises FormulaError; failures are returned in result.error.
        """
        result = _EvaluationRun(formula, context, self.max_steps).execute()
        if result.error is None:
            logger.debug(
                f"Formula {formula.id}: {context.reservaciones}/{context.capacidad} "
                f"reservations ({context.categoria.value}) -> {result.monto_pago}"
            )
        return result


def evaluate(formula: Formula, context: EvaluationContext) -> EvaluationResult:
    """Evaluate with the default configuration."""
    return FormulaEvaluator().evaluate(formula, context)
