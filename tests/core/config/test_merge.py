# tests/core/config/test_merge.py
"""
Testes da política de deep-merge de configuração.

Os testes asseguram que:
- valores escalares são sobrescritos corretamente
- dicionários são mesclados de forma recursiva
- listas são sobrescritas integralmente
- conflitos de tipo são detectados e rejeitados explicitamente
- `int` e `float` são intercambiáveis na mesma chave
- objetos de entrada não são mutados durante o merge

Decisões arquiteturais:
    - O merge é determinístico e puramente funcional
    - Conflitos estruturais são tratados como erro fatal

Limites explícitos:
    - Não valida carregamento de arquivos
    - Não valida hashing de configuração
"""

import copy

import pytest

try:
    from atlas_provision.core.config.merge import deep_merge
    from atlas_provision.core.config.errors import ConfigTypeConflictError
except Exception as e:  # noqa: BLE001
    deep_merge = None
    ConfigTypeConflictError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar deep_merge: {_IMPORT_ERR}")


def test_merge_simple_override():
    """Overrides escalares substituem o valor base sem mutar os inputs."""
    _require_imports()
    base = {"a": 1, "b": 2}
    override = {"b": 99}
    base_copy = copy.deepcopy(base)

    result = deep_merge(base, override)

    assert result == {"a": 1, "b": 99}
    assert base == base_copy
    assert override == {"b": 99}


def test_merge_nested_dicts():
    """
    Dicionários aninhados são mesclados por chave.

    Invariantes:
        - `engine.parallelism` é sobrescrito
        - `engine.refresh` é preservado
        - seções inexistentes no base são adicionadas
    """
    _require_imports()
    base = {"engine": {"parallelism": 4, "refresh": False}}
    override = {"engine": {"parallelism": 8}, "retry": {"max_attempts": 5}}

    assert deep_merge(base, override) == {
        "engine": {"parallelism": 8, "refresh": False},
        "retry": {"max_attempts": 5},
    }


def test_merge_lists_are_replaced():
    _require_imports()
    base = {"tags": ["a", "b"]}
    assert deep_merge(base, {"tags": ["c"]}) == {"tags": ["c"]}


def test_merge_type_conflict_raises():
    _require_imports()
    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"engine": {"parallelism": 4}}, {"engine": "serial"})


def test_merge_numeric_and_none_overrides():
    _require_imports()
    base = {"retry": {"backoff_base_seconds": 1, "backoff_max_seconds": 30.0}, "engine": {"manifest_path": None}}
    override = {"retry": {"backoff_base_seconds": 0.25, "backoff_max_seconds": 60}, "engine": {"manifest_path": "m.json"}}

    result = deep_merge(base, override)

    assert result["retry"] == {"backoff_base_seconds": 0.25, "backoff_max_seconds": 60}
    assert result["engine"]["manifest_path"] == "m.json"


def test_merge_bool_is_not_numeric():
    _require_imports()
    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"engine": {"parallelism": 4}}, {"engine": {"parallelism": True}})
