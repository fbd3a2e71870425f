"""
Node arena and connection index for a formula.

Nodes are indexed by id and edges are kept as (origen, destino, port)
triples; no in-memory pointer graph is built. Dependency order is derived
from ``conexiones`` only, never from the position of nodes in the stored list.
"""

from collections import deque
from typing import Dict, List, Optional, Tuple
import logging

from models.formula import Formula, FormulaNode
from services.formula.errors import ConfigurationError, CyclicGraphError

logger = logging.getLogger(__name__)


# Input ports per node type, in the order unnamed connections are assigned
PORTS: Dict[str, Tuple[str, ...]] = {
    "variable": (),
    "numero": (),
    "operacion": ("input-1", "input-2"),
    "comparador": ("valueA", "valueB", "true", "false"),
    "tarifa": ("reservaciones", "capacidad"),
    "resultado": ("input",),
}

# Ports that must be wired for the node to evaluate
REQUIRED_PORTS: Dict[str, Tuple[str, ...]] = {
    "operacion": ("input-1", "input-2"),
    "comparador": ("valueA", "valueB"),
    "resultado": ("input",),
}

BRANCH_PORTS = ("true", "false")


class FormulaGraph:
    """
    Id-indexed view over a formula's nodes and connections.

    Construction fails with ConfigurationError on duplicate node ids,
    connections naming unknown nodes or ports, and ports wired twice.
    """

    def __init__(self, formula: Formula):
        self.formula = formula
        self.nodes: Dict[str, FormulaNode] = {}
        self._inputs: Dict[str, Dict[str, str]] = {}
        self._successors: Dict[str, List[str]] = {}

        for node in formula.nodos:
            if node.id in self.nodes:
                raise ConfigurationError(f"Duplicate node id '{node.id}'", node_id=node.id)
            self.nodes[node.id] = node
            self._inputs[node.id] = {}
            self._successors[node.id] = []

        for conexion in formula.conexiones:
            self._connect(conexion.origen, conexion.destino, conexion.punto_entrada)

    def _connect(self, origen: str, destino: str, port: Optional[str]) -> None:
        for node_id in (origen, destino):
            if node_id not in self.nodes:
                raise ConfigurationError(
                    f"Connection {origen} -> {destino} references unknown node '{node_id}'",
                    node_id=node_id,
                )

        target = self.nodes[destino]
        ports = PORTS[target.tipo]
        wired = self._inputs[destino]

        if not port:
            free = [p for p in ports if p not in wired]
            if not free:
                raise ConfigurationError(
                    f"Node '{destino}' ({target.tipo}) has no free input port for '{origen}'",
                    node_id=destino,
                )
            port = free[0]
        elif port not in ports:
            raise ConfigurationError(
                f"Node '{destino}' ({target.tipo}) has no input port '{port}'",
                node_id=destino,
            )

        if port in wired:
            raise ConfigurationError(
                f"Port '{port}' of node '{destino}' is connected more than once",
                node_id=destino,
            )

        wired[port] = origen
        self._successors[origen].append(destino)

    def input_of(self, node_id: str, port: str) -> Optional[str]:
        """Id of the node wired into ``port`` of ``node_id``, if any."""
        return self._inputs[node_id].get(port)

    def require_input(self, node_id: str, port: str) -> str:
        source = self.input_of(node_id, port)
        if source is None:
            raise ConfigurationError(
                f"Node '{node_id}' is missing its '{port}' input",
                node_id=node_id,
            )
        return source

    def branches(self, node_id: str) -> Optional[Tuple[str, str]]:
        """
        (true, false) branch ids of a comparator, or None when unwired.

        Wiring a single branch is a configuration error.
        """
        true_id = self.input_of(node_id, "true")
        false_id = self.input_of(node_id, "false")
        if true_id is None and false_id is None:
            return None
        if true_id is None or false_id is None:
            raise ConfigurationError(
                f"Comparator '{node_id}' must wire both 'true' and 'false' branches or neither",
                node_id=node_id,
            )
        return true_id, false_id

    def topological_order(self) -> List[str]:
        """
        Node ids in dependency order (Kahn's algorithm).

        Raises:
            CyclicGraphError: if any cycle exists, even outside the result's subgraph
        """
        in_degree = {node_id: len(inputs) for node_id, inputs in self._inputs.items()}
        ready = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
        order: List[str] = []

        while ready:
            node_id = ready.popleft()
            order.append(node_id)
            for successor in self._successors[node_id]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    ready.append(successor)

        if len(order) < len(self.nodes):
            remaining = [node_id for node_id, degree in in_degree.items() if degree > 0]
            logger.warning(
                f"Formula {self.formula.id}: cycle detected among {len(remaining)} nodes"
            )
            raise CyclicGraphError(remaining)

        return order

    def reachable_from(self, node_id: str) -> List[str]:
        """Ids of all nodes upstream of ``node_id``, including itself."""
        seen = {node_id}
        stack = [node_id]
        while stack:
            current = stack.pop()
            for source in self._inputs[current].values():
                if source not in seen:
                    seen.add(source)
                    stack.append(source)
        return [n for n in self.nodes if n in seen]
