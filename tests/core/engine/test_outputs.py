# tests/core/engine/test_outputs.py
"""
Testes da avaliação de outputs.

Os testes asseguram que:
- referências a recursos aplicados resolvem para o valor final
- caminhos pontuados indexam dicionários e listas
- recurso não aplicado ou atributo ausente produzem `Unavailable`, nunca `None`
- expressões compostas com qualquer folha indisponível ficam inteiras `Unavailable`
"""

import pytest

try:
    from atlas_provision.core.engine import Unavailable, evaluate_outputs
    from atlas_provision.core.model import Output, Reference, ResourceAddress, VariableReference
except Exception as e:
    evaluate_outputs = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar outputs: {_IMPORT_ERR}")


def _values():
    return {
        ResourceAddress("public_ip", "ingress"): {
            "id": "public_ip-4",
            "name": "pip-ingress",
            "ip_address": "203.0.113.4",
            "ip_configuration": [{"address": "10.0.1.4"}],
        },
    }


def test_resolves_references_variables_and_paths():
    _require_imports()
    outputs = [
        Output("ip", Reference("public_ip", "ingress", "ip_address")),
        Output("private", Reference("public_ip", "ingress", "ip_configuration.0.address")),
        Output("where", {"location": VariableReference("location"), "ids": [Reference("public_ip", "ingress", "id")]}),
        Output("constant", "static"),
    ]

    result = evaluate_outputs(outputs, _values(), {"location": "eastus"})

    assert result == {
        "ip": "203.0.113.4",
        "private": "10.0.1.4",
        "where": {"location": "eastus", "ids": ["public_ip-4"]},
        "constant": "static",
    }


def test_unapplied_resource_yields_unavailable():
    _require_imports()
    outputs = [
        Output("fw", Reference("firewall", "fw", "id")),
        Output("mixed", {"ip": Reference("public_ip", "ingress", "ip_address"), "fw": Reference("firewall", "fw", "id")}),
    ]

    result = evaluate_outputs(outputs, _values(), {})

    assert isinstance(result["fw"], Unavailable)
    assert "firewall.fw" in result["fw"].reason
    assert isinstance(result["mixed"], Unavailable)
    assert result["fw"].to_dict()["unavailable"] is True


def test_missing_attribute_yields_unavailable():
    _require_imports()
    outputs = [Output("fqdn", Reference("public_ip", "ingress", "fqdn"))]
    result = evaluate_outputs(outputs, _values(), {})
    assert isinstance(result["fqdn"], Unavailable)
