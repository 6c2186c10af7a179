"""
Agendador do grafo de dependências (DAG).

Este módulo produz a ordem topológica determinística de um grafo cujos
nós são identificadores estáveis (endereços de recurso ou chaves de
entradas do plano) e cujas arestas `(dependente, dependência)` derivam
das referências declaradas.

Princípios fundamentais:
    - O grafo deve formar um DAG válido
    - A ordenação é determinística para a mesma entrada
    - Ciclos são reportados com o caminho completo

Decisões arquiteturais:
    - Utiliza o algoritmo de Kahn (fila de grau de entrada zero)
    - Empates são resolvidos pela ordem de inserção dos nós
      (ordem de declaração), não por ordem lexicográfica
    - Destroy usa a ordem topológica reversa: dependentes são removidos
      antes de suas dependências

Invariantes:
    - Para toda aresta (A depende de B), B aparece antes de A
    - Todos os nós aparecem exatamente uma vez na ordem final

Limites explícitos:
    - Não executa operações
    - Não conhece estado persistido nem providers
"""

from __future__ import annotations

import heapq
from typing import Dict, Hashable, Iterable, List, Sequence, Set, Tuple, TypeVar

from atlas_provision.core.exceptions import CycleDetectedError


K = TypeVar("K", bound=Hashable)


def _adjacency(
    nodes: Sequence[K],
    edges: Iterable[Tuple[K, K]],
) -> Tuple[Dict[K, int], Dict[K, List[K]], Dict[K, List[K]]]:
    index: Dict[K, int] = {}
    for n in nodes:
        if n in index:
            raise ValueError(f"Duplicate graph node: {n}")
        index[n] = len(index)

    dependencies: Dict[K, List[K]] = {n: [] for n in nodes}
    dependents: Dict[K, List[K]] = {n: [] for n in nodes}
    seen: Set[Tuple[K, K]] = set()
    for dependent, dependency in edges:
        if dependent not in index or dependency not in index:
            raise ValueError(f"Edge references unknown node: {dependent} -> {dependency}")
        if (dependent, dependency) in seen:
            continue
        seen.add((dependent, dependency))
        dependencies[dependent].append(dependency)
        dependents[dependency].append(dependent)
    return index, dependencies, dependents


def _find_cycle(remaining: Set[K], index: Dict[K, int], dependencies: Dict[K, List[K]]) -> List[K]:
    # Todo nó restante possui ao menos uma dependência também restante;
    # seguir essas arestas sempre termina revisitando um nó do caminho.
    start = min(remaining, key=lambda n: index[n])
    path: List[K] = []
    position: Dict[K, int] = {}
    current = start
    while current not in position:
        position[current] = len(path)
        path.append(current)
        candidates = [d for d in dependencies[current] if d in remaining]
        current = min(candidates, key=lambda n: index[n])
    return path[position[current]:] + [current]


def schedule(nodes: Sequence[K], edges: Iterable[Tuple[K, K]]) -> List[K]:
    """
    Produz uma ordem topológica determinística.

    Sempre que múltiplos nós estiverem prontos, é escolhido o de menor
    posição em `nodes`.

    Args:
        nodes (Sequence[K]): Nós na ordem de declaração.
        edges (Iterable[Tuple[K, K]]): Arestas `(dependente, dependência)`.

    Returns:
        List[K]: Nós em ordem de aplicação (dependências primeiro).

    Raises:
        ValueError: Se houver nó duplicado ou aresta para nó desconhecido.
        CycleDetectedError: Se houver ciclo; `details["cycle"]` traz o caminho.
    """
    index, dependencies, dependents = _adjacency(nodes, edges)

    incoming_count: Dict[K, int] = {n: len(dependencies[n]) for n in nodes}
    ready: List[Tuple[int, K]] = [(index[n], n) for n in nodes if incoming_count[n] == 0]
    heapq.heapify(ready)

    order: List[K] = []
    while ready:
        _, node = heapq.heappop(ready)
        order.append(node)
        for child in dependents[node]:
            incoming_count[child] -= 1
            if incoming_count[child] == 0:
                heapq.heappush(ready, (index[child], child))

    if len(order) != len(index):
        remaining = {n for n in nodes if incoming_count[n] > 0}
        cycle = [str(n) for n in _find_cycle(remaining, index, dependencies)]
        raise CycleDetectedError(
            message="Cycle detected in dependency graph: " + " -> ".join(cycle),
            details={"cycle": cycle},
            hint="Remova uma das referências do ciclo; o grafo de recursos deve ser acíclico.",
        )

    return order


def destroy_order(nodes: Sequence[K], edges: Iterable[Tuple[K, K]]) -> List[K]:
    """Ordem topológica reversa: dependentes antes de suas dependências."""
    return list(reversed(schedule(nodes, edges)))
