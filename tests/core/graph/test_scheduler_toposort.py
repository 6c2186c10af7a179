# tests/core/graph/test_scheduler_toposort.py
"""
Testes de ordenação topológica do scheduler.

Este módulo valida a ordem de aplicação produzida pelo algoritmo de Kahn
e a ordem reversa usada no destroy.

Os testes asseguram que:
- para toda aresta (A depende de B), B aparece antes de A
- empates seguem a ordem de declaração (não a ordem lexicográfica)
- o cenário VNET/SUBNET/PIP/FW respeita todas as restrições
- destroy é o inverso exato da ordem de apply

Limites explícitos:
    - Não valida ciclos (ver test_scheduler_cycles)
"""

import pytest

try:
    from atlas_provision.core.graph import destroy_order, resolve_references, schedule
except Exception as e:
    schedule = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar o scheduler: {_IMPORT_ERR}")


def test_toposort_linear():
    _require_imports()
    assert schedule(["c", "b", "a"], [("c", "b"), ("b", "a")]) == ["a", "b", "c"]


def test_ties_follow_insertion_order():
    """
    Verifica o desempate determinístico por ordem de inserção.

    `zeta` e `alpha` ficam prontos ao mesmo tempo; a ordem de declaração
    vence a ordem alfabética.
    """
    _require_imports()
    nodes = ["root", "zeta", "alpha", "leaf"]
    edges = [("zeta", "root"), ("alpha", "root"), ("leaf", "alpha"), ("leaf", "zeta")]
    assert schedule(nodes, edges) == ["root", "zeta", "alpha", "leaf"]


def test_every_edge_is_respected():
    _require_imports()
    nodes = [f"n{i}" for i in range(12)]
    edges = [(f"n{i}", f"n{j}") for i in range(12) for j in range(i) if (i * 7 + j) % 5 == 0]
    order = schedule(list(reversed(nodes)), edges)
    position = {n: i for i, n in enumerate(order)}
    assert sorted(order) == sorted(nodes)
    for dependent, dependency in edges:
        assert position[dependency] < position[dependent]


def test_firewall_scenario_order(scenario, schemas):
    """
    VNET antes das subnets; subnets e PIPs antes do FW.

    As duas PIPs podem aparecer em qualquer ordem relativa; com desempate
    por declaração, PIP_INGRESS vem primeiro.
    """
    _require_imports()
    graph = resolve_references(scenario, schemas)
    order = [str(a) for a in schedule(graph.nodes, graph.edges)]
    pos = {a: i for i, a in enumerate(order)}

    assert pos["vnet.main"] < pos["subnet.trust"]
    assert pos["vnet.main"] < pos["subnet.untrust"]
    for upstream in ("subnet.trust", "subnet.untrust", "public_ip.ingress", "public_ip.egress"):
        assert pos[upstream] < pos["firewall.fw"]
    assert order[-1] == "firewall.fw"


def test_destroy_order_is_reverse(scenario, schemas):
    _require_imports()
    graph = resolve_references(scenario, schemas)
    apply = schedule(graph.nodes, graph.edges)
    destroy = destroy_order(graph.nodes, graph.edges)
    assert destroy == list(reversed(apply))
    assert str(destroy[0]) == "firewall.fw"


def test_unknown_node_in_edge_is_rejected():
    _require_imports()
    with pytest.raises(ValueError):
        schedule(["a"], [("a", "ghost")])


def test_duplicate_node_is_rejected():
    _require_imports()
    with pytest.raises(ValueError):
        schedule(["a", "a"], [])
