"""
Grafo de dependencias entre recursos (nodos = nombres lógicos, arista = "depende de").

Orden topológico determinista: empates resueltos por nombre lógico ascendente.
"""

import heapq
from typing import Dict, Iterable, List, Optional, Set

from orbita.core.errors import CycleError
from orbita.core.resources.models import AppliedState, ResourceSpec


class DependencyGraph:
    """Grafo dirigido acíclico sobre nombres lógicos."""

    def __init__(self):
        self._deps: Dict[str, Set[str]] = {}

    def add_node(self, name: str) -> None:
        self._deps.setdefault(name, set())

    def add_edge(self, name: str, depends_on: str) -> None:
        self.add_node(name)
        self.add_node(depends_on)
        self._deps[name].add(depends_on)

    @classmethod
    def from_specs(cls, specs: Iterable[ResourceSpec]) -> "DependencyGraph":
        """Aristas explícitas (depends_on) más implícitas (atributos Ref)."""
        graph = cls()
        for spec in specs:
            graph.add_node(spec.name)
            for dep in spec.dependency_names():
                graph.add_edge(spec.name, dep)
        return graph

    @classmethod
    def from_states(cls, states: Iterable[AppliedState]) -> "DependencyGraph":
        """Aristas registradas al aplicar; ignora dependencias ya inexistentes."""
        states = list(states)
        names = {s.name for s in states}
        graph = cls()
        for state in states:
            graph.add_node(state.name)
            for dep in state.dependencies:
                if dep in names:
                    graph.add_edge(state.name, dep)
        return graph

    @property
    def nodes(self) -> List[str]:
        return sorted(self._deps)

    def __contains__(self, name: str) -> bool:
        return name in self._deps

    def dependencies(self, name: str) -> Set[str]:
        return set(self._deps.get(name, ()))

    def dependents(self, name: str) -> Set[str]:
        return {n for n, deps in self._deps.items() if name in deps}

    def find_cycle(self) -> Optional[List[str]]:
        """
        Recorrido en profundidad (blanco/gris/negro).

        Returns:
            Miembros del ciclo (cerrado: el primero se repite al final) o None.
        """
        white, grey, black = 0, 1, 2
        color = {n: white for n in self._deps}
        stack: List[str] = []

        def visit(node: str) -> Optional[List[str]]:
            color[node] = grey
            stack.append(node)
            for dep in sorted(self._deps[node]):
                if color[dep] == grey:
                    start = stack.index(dep)
                    return stack[start:] + [dep]
                if color[dep] == white:
                    found = visit(dep)
                    if found:
                        return found
            stack.pop()
            color[node] = black
            return None

        for node in sorted(self._deps):
            if color[node] == white:
                found = visit(node)
                if found:
                    return found
        return None

    def check(self) -> None:
        """Levanta CycleError si el grafo tiene un ciclo."""
        cycle = self.find_cycle()
        if cycle:
            raise CycleError(cycle)

    def topological_order(self) -> List[str]:
        """Dependencias primero; empates por nombre ascendente (Kahn + heap)."""
        self.check()
        remaining = {n: len(deps) for n, deps in self._deps.items()}
        dependents: Dict[str, Set[str]] = {n: set() for n in self._deps}
        for node, deps in self._deps.items():
            for dep in deps:
                dependents[dep].add(node)

        ready = [n for n, count in remaining.items() if count == 0]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            node = heapq.heappop(ready)
            order.append(node)
            for child in dependents[node]:
                remaining[child] -= 1
                if remaining[child] == 0:
                    heapq.heappush(ready, child)
        return order

    def reverse_order(self) -> List[str]:
        """Dependientes primero (orden de borrado)."""
        return list(reversed(self.topological_order()))

    def levels(self) -> List[List[str]]:
        """Agrupa nodos en oleadas que pueden ejecutarse en paralelo."""
        depth: Dict[str, int] = {}
        for node in self.topological_order():
            deps = self._deps[node]
            depth[node] = 1 + max((depth[d] for d in deps), default=-1)
        waves: List[List[str]] = []
        for node in sorted(depth, key=lambda n: (depth[n], n)):
            if depth[node] == len(waves):
                waves.append([])
            waves[depth[node]].append(node)
        return waves
