# tests/core/model/test_declarations_validation.py
"""
Testes da validação estrutural do modelo de declarações.

Este módulo valida `DeclarationSet.validate`, a primeira barreira do run:
qualquer violação aqui deve abortar o run antes de resolução de
referências e antes de qualquer chamada a provider.

Os testes asseguram que:
- o cenário de referência é válido
- nomes duplicados dentro de um tipo são rejeitados
- o mesmo nome em tipos diferentes é permitido
- tipos desconhecidos, atributos fora do schema e atributos computados
  declarados são rejeitados
- atributos obrigatórios ausentes são rejeitados
- referências a variáveis não declaradas são rejeitadas
- variáveis com tipo/valor inválido são rejeitadas

Limites explícitos:
    - Não valida resolução de referências entre recursos
    - Não valida ordenação
"""

import pytest

try:
    from atlas_provision.core.exceptions import ValidationError
    from atlas_provision.core.model import (
        DeclarationSet,
        Output,
        Reference,
        ResourceDeclaration,
        Variable,
        VariableReference,
    )
except Exception as e:
    ValidationError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Falha ao importar o modelo de declarações: {_IMPORT_ERR}")


def test_reference_scenario_is_valid(scenario, schemas):
    """O cenário VNET/SUBNET/PIP/FW é estruturalmente válido."""
    _require_imports()
    assert scenario.validate(schemas) is scenario


def test_duplicate_name_within_type_is_rejected(schemas):
    """
    Verifica que nomes lógicos são únicos dentro de um tipo.

    Invariantes:
        - (tipo, nome) identifica unicamente um recurso
        - O erro aponta o endereço duplicado em `details`
    """
    _require_imports()
    decls = DeclarationSet(
        resources=[
            ResourceDeclaration("public_ip", "ingress", {"name": "a"}),
            ResourceDeclaration("public_ip", "ingress", {"name": "b"}),
        ]
    )
    with pytest.raises(ValidationError) as exc:
        decls.validate(schemas)
    assert exc.value.details["resource"] == "public_ip.ingress"


def test_same_name_in_different_types_is_allowed(schemas):
    _require_imports()
    decls = DeclarationSet(
        resources=[
            ResourceDeclaration("public_ip", "main", {"name": "a"}),
            ResourceDeclaration("vnet", "main", {"name": "b", "address_space": []}),
        ]
    )
    decls.validate(schemas)


@pytest.mark.parametrize(
    "resource, fragment",
    [
        (("storage", "x", {"name": "a"}), "Unknown resource type"),
        (("public_ip", "x", {"name": "a", "zones": [1]}), "is not defined"),
        (("public_ip", "x", {"name": "a", "ip_address": "1.2.3.4"}), "computed"),
        (("public_ip", "x", {"name": "a", "id": "forced"}), "computed"),
        (("subnet", "x", {"name": "a", "address_prefix": "10.0.0.0/24"}), "missing required"),
    ],
)
def test_schema_violations_are_rejected(schemas, resource, fragment):
    """
    Verifica as violações de schema detectadas na validação.

    Decisões arquiteturais:
        - Atributos computados (incluindo o `id` implícito) pertencem ao provider
        - Atributos fora do schema nunca são ignorados silenciosamente
    """
    _require_imports()
    rtype, name, attrs = resource
    decls = DeclarationSet(resources=[ResourceDeclaration(rtype, name, attrs)])
    with pytest.raises(ValidationError) as exc:
        decls.validate(schemas)
    assert fragment in exc.value.message


def test_reference_nested_in_literal_is_rejected(schemas):
    _require_imports()
    decls = DeclarationSet(
        resources=[
            ResourceDeclaration("vnet", "main", {"name": "v", "address_space": ["10.0.0.0/16"]}),
            ResourceDeclaration(
                "vnet",
                "other",
                {"name": "o", "address_space": [Reference("vnet", "main", "name")]},
            ),
        ]
    )
    with pytest.raises(ValidationError):
        decls.validate(schemas)


def test_undeclared_variable_reference_is_rejected(schemas):
    """Um atributo que referencia variável inexistente invalida o conjunto."""
    _require_imports()
    decls = DeclarationSet(
        resources=[ResourceDeclaration("public_ip", "x", {"name": VariableReference("pip_name")})]
    )
    with pytest.raises(ValidationError) as exc:
        decls.validate(schemas)
    assert exc.value.details["variable"] == "pip_name"


def test_output_with_undeclared_variable_is_rejected(schemas):
    _require_imports()
    decls = DeclarationSet(outputs=[Output("o", VariableReference("nope"))])
    with pytest.raises(ValidationError):
        decls.validate(schemas)


def test_duplicate_output_is_rejected(schemas):
    _require_imports()
    decls = DeclarationSet(outputs=[Output("o", 1), Output("o", 2)])
    with pytest.raises(ValidationError):
        decls.validate(schemas)


@pytest.mark.parametrize(
    "variables",
    [
        [Variable("a"), Variable("a")],
        [Variable("a", type="float")],
        [Variable("a", type="number", default="ten")],
        [Variable("a", type="number", default=True)],
        [Variable("a", type="string", default="x", override=3)],
    ],
)
def test_invalid_variables_are_rejected(schemas, variables):
    """
    Verifica a validação de variáveis.

    Invariantes:
        - Nomes de variáveis são únicos
        - O tipo declarado pertence ao conjunto suportado
        - `bool` não é aceito como `number`
        - Default e override respeitam o tipo declarado
    """
    _require_imports()
    with pytest.raises(ValidationError):
        DeclarationSet(variables=variables).validate(schemas)


def test_variable_value_prefers_override():
    _require_imports()
    assert Variable("a", type="string", default="x", override="y").value() == "y"
    assert Variable("a", type="string", default="x").value() == "x"
    with pytest.raises(ValidationError):
        Variable("a").value()
