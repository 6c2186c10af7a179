# tests/core/engine/test_executor_concurrency.py
"""
Testes do modelo de concorrência do executor.

Os testes asseguram que:
- o número de chamadas simultâneas ao provider nunca excede `parallelism`
- uma entrada nunca inicia antes de todas as suas dependências concluírem
- o cancelamento interrompe o despacho, deixa terminar a chamada em
  andamento (registrando seu resultado) e reporta o restante como
  `cancelled`
"""

import threading
import time

import pytest

try:
    from atlas_provision.core.state import ResourceStatus
except Exception as e:
    ResourceStatus = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar o state: {_IMPORT_ERR}")


def test_parallelism_bound_and_dependency_order(scenario, make_engine, provider):
    """
    Com `parallelism=2`, no máximo duas chamadas ficam em andamento.

    Invariantes:
        - Upstreams do FW são criados antes do FW
        - VNET é criada antes das subnets
    """
    _require_imports()
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}
    original_create = provider.create

    def slow_create(resource_type, attributes):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        try:
            time.sleep(0.02)
            return original_create(resource_type, attributes)
        finally:
            with lock:
                state["active"] -= 1

    provider.create = slow_create
    result = make_engine(scenario, config={"engine": {"parallelism": 2}}).apply()

    assert result.exit_code == 0
    assert 1 <= state["peak"] <= 2

    created = provider.names("create")
    pos = {name: i for i, name in enumerate(created)}
    assert pos["vnet-main"] < pos["snet-trust"]
    assert pos["vnet-main"] < pos["snet-untrust"]
    for upstream in ("snet-trust", "snet-untrust", "pip-ingress", "pip-egress"):
        assert pos[upstream] < pos["fw-main"]


def test_cancellation_stops_dispatch_and_records_in_flight(scenario, make_engine, provider, store):
    """
    O sinal de cancelamento é disparado durante o create de SUBNET_T.

    Decisões arquiteturais:
        - `parallelism=1` torna o despacho sequencial e o teste determinístico
        - A chamada em andamento não é abortada: SUBNET_T termina `applied`
          e é persistida
    """
    _require_imports()
    cancel = threading.Event()

    def on_call(op, resource_type, name):
        if name == "snet-trust":
            cancel.set()

    provider.on_call = on_call
    result = make_engine(scenario, config={"engine": {"parallelism": 1}}).apply(cancel=cancel)

    assert result.cancelled is True
    assert result.exit_code == 1
    assert provider.names("create") == ["vnet-main", "snet-trust"]
    assert result.resources["subnet.trust"] == "applied"
    assert store.get("subnet.trust").status == ResourceStatus.APPLIED
    for address in ("subnet.untrust", "public_ip.ingress", "public_ip.egress", "firewall.fw"):
        assert result.resources[address] == "cancelled"
        assert store.get(address) is None
