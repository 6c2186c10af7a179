"""
# Declaration Model — Atlas Provision

Este pacote define a representação em memória do estado desejado de
infraestrutura: recursos tipados, variáveis, outputs e os schemas dos
tipos de recurso.

## Componentes

- **values**: `ResourceAddress`, expressões (`Reference`, `VariableReference`)
  e a variante resolvida (`Literal`, `PendingReference`)
- **schema**: `AttributeSpec`, `ResourceSchema`, `SchemaRegistry`
- **declarations**: `ResourceDeclaration`, `Variable`, `Output`, `DeclarationSet`
- **loader**: construção de `DeclarationSet` a partir de YAML/JSON estruturado

## Limites Explícitos

- Não resolve referências nem ordena recursos
- Não conhece estado persistido nem providers
- Não realiza I/O (exceto `loader`, que apenas lê o arquivo informado)
"""

from .declarations import NO_VALUE, DeclarationSet, Output, ResourceDeclaration, Variable
from .loader import (
    DeclarationFileNotFoundError,
    DeclarationParseError,
    UnsupportedDeclarationFormatError,
    declarations_from_dict,
    load_declarations,
)
from .schema import ID_ATTRIBUTE, AttributeSpec, ResourceSchema, SchemaRegistry
from .values import (
    Literal,
    PendingReference,
    Reference,
    ResolvedValue,
    ResourceAddress,
    VariableReference,
    lookup_path,
)

__all__ = [
    "NO_VALUE",
    "DeclarationSet",
    "Output",
    "ResourceDeclaration",
    "Variable",
    "DeclarationFileNotFoundError",
    "DeclarationParseError",
    "UnsupportedDeclarationFormatError",
    "declarations_from_dict",
    "load_declarations",
    "ID_ATTRIBUTE",
    "AttributeSpec",
    "ResourceSchema",
    "SchemaRegistry",
    "Literal",
    "PendingReference",
    "Reference",
    "ResolvedValue",
    "ResourceAddress",
    "VariableReference",
    "lookup_path",
]
