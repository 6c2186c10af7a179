# tests/core/test_errors_payload.py
"""
Testes do catálogo canônico de erros.

Os testes asseguram que:
- cada exceção tipada é mapeada para um código estável
- detalhes, hint e o endereço do recurso são preservados no payload
- exceções arbitrárias não vazam stack trace
"""

import json

import pytest

try:
    from atlas_provision.core import errors
    from atlas_provision.core.exceptions import (
        ConcurrentRunError,
        CycleDetectedError,
        PermanentProviderError,
        ResourceNotFoundError,
        TransientProviderError,
        UnresolvedReferenceError,
        ValidationError,
    )
except Exception as e:  # noqa: BLE001
    errors = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar o catálogo de erros: {_IMPORT_ERR}")


@pytest.mark.parametrize(
    "exc_factory, code",
    [
        (lambda: ValidationError(message="x"), "DECLARATION_INVALID"),
        (lambda: UnresolvedReferenceError(message="x"), "REFERENCE_UNRESOLVED"),
        (lambda: CycleDetectedError(message="x"), "DEPENDENCY_CYCLE"),
        (lambda: TransientProviderError(message="x"), "PROVIDER_TRANSIENT_ERROR"),
        (lambda: PermanentProviderError(message="x"), "PROVIDER_PERMANENT_ERROR"),
        (lambda: ResourceNotFoundError(message="x"), "PROVIDER_PERMANENT_ERROR"),
        (lambda: ConcurrentRunError(message="x"), "STATE_LOCKED"),
        (lambda: KeyError("x"), "ENGINE_EXECUTION_ERROR"),
    ],
)
def test_error_codes(exc_factory, code):
    _require_imports()
    assert errors.error_code_for(exc_factory()) == code


def test_atlas_exception_payload_keeps_details():
    _require_imports()
    exc = TransientProviderError(message="throttled", details={"retry_after": 2}, hint="wait")
    payload = errors.exception_to_error(exc, address="public_ip.egress")

    assert payload.type == errors.PROVIDER_TRANSIENT_ERROR
    assert payload.message == "throttled"
    assert payload.details == {"retry_after": 2, "resource": "public_ip.egress"}
    assert payload.hint == "wait"
    assert exc.details == {"retry_after": 2}


def test_arbitrary_exception_payload_is_opaque():
    _require_imports()
    payload = errors.exception_to_error(ZeroDivisionError("division by zero"), address="vnet.main")
    data = json.loads(json.dumps(payload.to_dict()))
    assert data["type"] == "ENGINE_EXECUTION_ERROR"
    assert data["details"] == {"exception_class": "ZeroDivisionError", "resource": "vnet.main"}
    assert "Traceback" not in data["message"]


def test_dependency_failed_payload():
    _require_imports()
    payload = errors.dependency_failed(address="firewall.fw", blocked_by="subnet.trust")
    assert payload.type == errors.DEPENDENCY_FAILED
    assert payload.details == {"resource": "firewall.fw", "blocked_by": "subnet.trust"}
    assert errors.errors_to_dicts([payload])[0]["hint"]
