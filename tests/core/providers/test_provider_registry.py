# tests/core/providers/test_provider_registry.py
"""
Testes do `ProviderRegistry`.

Os testes asseguram que:
- o provider fake satisfaz o protocolo `Provider` por duck typing
- objetos que não implementam o protocolo são rejeitados
- tipos sem provider são `ValidationError` antes de qualquer execução
- schemas duplicados são rejeitados
"""

import pytest

try:
    from atlas_provision.core.exceptions import ValidationError
    from atlas_provision.core.model import ResourceSchema
    from atlas_provision.core.providers import Provider, ProviderRegistry
except Exception as e:  # noqa: BLE001
    ProviderRegistry = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar o registry: {_IMPORT_ERR}")


def test_registry_resolves_provider_by_type(registry, provider):
    _require_imports()
    assert isinstance(provider, Provider)
    assert registry.provider_for("firewall") is provider
    assert registry.schemas.types() == ["vnet", "subnet", "public_ip", "firewall"]
    registry.require(["vnet", "firewall"])


def test_unknown_type_is_validation_error(registry):
    _require_imports()
    with pytest.raises(ValidationError) as exc:
        registry.require(["vnet", "load_balancer"])
    assert exc.value.details["resource_type"] == "load_balancer"


def test_non_provider_is_rejected():
    _require_imports()
    reg = ProviderRegistry()
    with pytest.raises(TypeError):
        reg.register(ResourceSchema.build("dns_zone", required=["name"]), object())


def test_duplicate_schema_is_rejected(registry, provider):
    _require_imports()
    with pytest.raises(ValidationError):
        registry.register(ResourceSchema.build("vnet", required=["name"]), provider)
