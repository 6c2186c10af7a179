# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Provision.

Este módulo define fixtures reutilizáveis que fornecem:
- schemas dos tipos de recurso do cenário de referência
  (vnet, subnet, public_ip, firewall)
- um provider fake, determinístico e thread-safe, com falhas roteirizadas
- state store em memória
- o conjunto de declarações VNET → SUBNET_T/SUBNET_U → FW (+ duas PIPs)
- uma fábrica de `Engine` com backoff sem espera real

Decisões arquiteturais:
    - O provider fake implementa o protocolo `Provider` via duck typing
    - Identificadores atribuídos pelo provider são sequenciais (`tipo-N`)
    - Falhas são roteirizadas por (operação, atributo `name`) e consumidas
      em ordem, permitindo simular erros transitórios seguidos de sucesso
    - `sleep` do executor é substituído por um coletor de delays

Invariantes:
    - Nenhuma fixture realiza I/O de rede
    - Nenhuma fixture depende de ordem de execução entre testes
    - Todas as fixtures retornam instâncias novas por teste

Limites explícitos:
    - Não representa semântica real de nenhum provider de nuvem
    - Não substitui testes de integração com providers reais
"""

import threading

import pytest

from atlas_provision.core.engine import Engine
from atlas_provision.core.exceptions import ResourceNotFoundError
from atlas_provision.core.model import (
    DeclarationSet,
    Output,
    Reference,
    ResourceDeclaration,
    ResourceSchema,
    Variable,
    VariableReference,
)
from atlas_provision.core.providers import ProviderRegistry, ProviderResult
from atlas_provision.core.run_context import RunContext
from atlas_provision.core.state import InMemoryStateStore


# =====================================================
# Provider fake
# =====================================================

class FakeProvider:
    """
    Provider em memória usado pelos testes do engine.

    Registra todas as chamadas em `calls` como tuplas
    `(operação, tipo, name)` e mantém os objetos "remotos" em `objects`
    (provider_id → atributos + outputs).

    Falhas são roteirizadas com `fail(op, name, *errors)`: cada chamada
    correspondente consome a próxima exceção da fila.
    """

    def __init__(self):
        self.calls = []
        self.objects = {}
        self.failures = {}
        self.on_call = None
        self._lock = threading.Lock()
        self._counter = 0

    def fail(self, op, name, *errors):
        self.failures[(op, name)] = list(errors)

    def ops(self, op=None):
        return [c for c in self.calls if op is None or c[0] == op]

    def names(self, op):
        return [c[2] for c in self.calls if c[0] == op]

    def _enter(self, op, resource_type, name):
        with self._lock:
            self.calls.append((op, resource_type, name))
            queue = self.failures.get((op, name))
            exc = queue.pop(0) if queue else None
        if self.on_call is not None:
            self.on_call(op, resource_type, name)
        if exc is not None:
            raise exc

    def create(self, resource_type, attributes):
        self._enter("create", resource_type, attributes.get("name"))
        with self._lock:
            self._counter += 1
            provider_id = f"{resource_type}-{self._counter}"
            outputs = {"id": provider_id}
            if resource_type == "public_ip":
                outputs["ip_address"] = f"203.0.113.{self._counter}"
            self.objects[provider_id] = {**attributes, **outputs}
        return ProviderResult(provider_id=provider_id, outputs=outputs)

    def read(self, resource_type, provider_id):
        with self._lock:
            if provider_id not in self.objects:
                raise ResourceNotFoundError(
                    message=f"{provider_id} not found",
                    details={"provider_id": provider_id},
                )
            return dict(self.objects[provider_id])

    def update(self, resource_type, provider_id, attributes):
        self._enter("update", resource_type, attributes.get("name"))
        with self._lock:
            current = self.objects.setdefault(provider_id, {})
            current.update(attributes)
            return {k: v for k, v in current.items() if k not in attributes}

    def delete(self, resource_type, provider_id):
        with self._lock:
            name = self.objects.get(provider_id, {}).get("name")
        self._enter("delete", resource_type, name)
        with self._lock:
            self.objects.pop(provider_id, None)


# =====================================================
# Schemas e registry
# =====================================================

def scenario_schemas():
    return [
        ResourceSchema.build("vnet", required=["name", "address_space"], optional=["location"]),
        ResourceSchema.build(
            "subnet",
            required=["name", "virtual_network_name", "address_prefix"],
            replace_on_change=["address_prefix"],
        ),
        ResourceSchema.build("public_ip", required=["name"], optional=["sku"], computed=["ip_address"]),
        ResourceSchema.build(
            "firewall",
            required=["name", "trust_subnet_id", "untrust_subnet_id"],
            optional=["ingress_ip_id", "egress_ip_id", "ingress_ip_address"],
        ),
    ]


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def registry(provider):
    reg = ProviderRegistry()
    for schema in scenario_schemas():
        reg.register(schema, provider)
    return reg


@pytest.fixture
def schemas(registry):
    return registry.schemas


@pytest.fixture
def store():
    return InMemoryStateStore()


# =====================================================
# Declarações do cenário de referência
# =====================================================

def build_scenario(*, trust_prefix="10.0.1.0/24", include_fw=True, extra=()):
    """
    VNET → SUBNET_T, SUBNET_U; PIP_INGRESS e PIP_EGRESS sem dependências;
    FW depende das duas subnets e das duas PIPs.
    """
    resources = [
        ResourceDeclaration(
            "vnet",
            "main",
            {"name": "vnet-main", "address_space": ["10.0.0.0/16"], "location": VariableReference("location")},
        ),
        ResourceDeclaration(
            "subnet",
            "trust",
            {
                "name": "snet-trust",
                "virtual_network_name": Reference("vnet", "main", "name"),
                "address_prefix": trust_prefix,
            },
        ),
        ResourceDeclaration(
            "subnet",
            "untrust",
            {
                "name": "snet-untrust",
                "virtual_network_name": Reference("vnet", "main", "name"),
                "address_prefix": "10.0.2.0/24",
            },
        ),
        ResourceDeclaration("public_ip", "ingress", {"name": "pip-ingress", "sku": "Standard"}),
        ResourceDeclaration("public_ip", "egress", {"name": "pip-egress", "sku": "Standard"}),
    ]
    if include_fw:
        resources.append(
            ResourceDeclaration(
                "firewall",
                "fw",
                {
                    "name": "fw-main",
                    "trust_subnet_id": Reference("subnet", "trust", "id"),
                    "untrust_subnet_id": Reference("subnet", "untrust", "id"),
                    "ingress_ip_id": Reference("public_ip", "ingress", "id"),
                    "egress_ip_id": Reference("public_ip", "egress", "id"),
                },
            )
        )
    resources.extend(extra)

    outputs = [
        Output("ingress_ip", Reference("public_ip", "ingress", "ip_address")),
        Output("network", {"vnet": Reference("vnet", "main", "name"), "location": VariableReference("location")}),
    ]
    if include_fw:
        outputs.append(Output("firewall_id", Reference("firewall", "fw", "id")))

    return DeclarationSet(
        resources=resources,
        variables=[Variable("location", type="string", default="eastus")],
        outputs=outputs,
    )


@pytest.fixture
def scenario():
    return build_scenario()


@pytest.fixture
def scenario_factory():
    return build_scenario


# =====================================================
# Engine / contexto
# =====================================================

@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fast_config():
    return {
        "engine": {"parallelism": 4},
        "retry": {"max_attempts": 3, "backoff_base_seconds": 0.5, "backoff_max_seconds": 30.0},
    }


@pytest.fixture
def make_engine(registry, store, fast_config, sleeps):
    """Fábrica de Engine ligada ao provider fake e ao store em memória."""

    def _make(declarations, *, config=None, variables=None, run_id=None, store_override=None):
        return Engine(
            declarations=declarations,
            providers=registry,
            store=store_override if store_override is not None else store,
            config=config if config is not None else fast_config,
            variables=variables,
            run_id=run_id,
            sleep=sleeps.append,
        )

    return _make


@pytest.fixture
def ctx():
    return RunContext.new(config={}, run_id="run-test")
