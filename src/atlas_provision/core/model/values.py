"""
Valores e expressões do modelo de declarações.

Este módulo define os tipos que aparecem como valores de atributos:

    - ResourceAddress   → identidade estável de um recurso (`type.name`)
    - Reference         → expressão declarada que aponta para atributo de outro recurso
    - VariableReference → expressão declarada que aponta para uma variável
    - Literal           → valor concreto, já conhecido
    - PendingReference  → referência resolvida para (tipo, nome, caminho),
                          cujo valor ainda não foi substituído

`Literal` e `PendingReference` formam a variante marcada produzida pela
resolução: um valor ainda desconhecido nunca é representado por `None`
ou string sentinela, evitando ambiguidade com valores vazios legítimos.

Limites explícitos:
    - Não valida schemas
    - Não conhece estado nem providers
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Union


@dataclass(frozen=True, order=True)
class ResourceAddress:
    """Identidade de um recurso: (tipo, nome lógico)."""

    type: str
    name: str

    def __str__(self) -> str:
        return f"{self.type}.{self.name}"

    @classmethod
    def parse(cls, text: str) -> "ResourceAddress":
        parts = str(text).split(".")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise ValueError(f"invalid resource address: {text!r} (expected 'type.name')")
        return cls(type=parts[0], name=parts[1])


@dataclass(frozen=True)
class Reference:
    """Expressão `type.name.attribute[.path...]` declarada em um atributo."""

    resource_type: str
    name: str
    attribute: str

    @property
    def address(self) -> ResourceAddress:
        return ResourceAddress(self.resource_type, self.name)

    @property
    def root_attribute(self) -> str:
        return self.attribute.split(".", 1)[0]

    def __str__(self) -> str:
        return f"{self.resource_type}.{self.name}.{self.attribute}"

    @classmethod
    def parse(cls, text: str) -> "Reference":
        parts = str(text).split(".", 2)
        if len(parts) != 3 or not all(p.strip() for p in parts):
            raise ValueError(f"invalid reference: {text!r} (expected 'type.name.attribute')")
        return cls(resource_type=parts[0], name=parts[1], attribute=parts[2])


@dataclass(frozen=True)
class VariableReference:
    name: str

    def __str__(self) -> str:
        return f"var.{self.name}"


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class PendingReference:
    """Referência resolvida cujo valor será substituído antes do uso.

    `deferred` indica que o atributo alvo é computado pelo provider
    (ex.: `id`, endereço IP alocado) e só existe após o create do alvo.
    """

    target: ResourceAddress
    attribute_path: str
    deferred: bool = False

    @property
    def root_attribute(self) -> str:
        return self.attribute_path.split(".", 1)[0]

    def __str__(self) -> str:
        return f"{self.target}.{self.attribute_path}"


ResolvedValue = Union[Literal, PendingReference]


def is_expression(value: Any) -> bool:
    return isinstance(value, (Reference, VariableReference))


def iter_expressions(value: Any) -> Iterator[Union[Reference, VariableReference]]:
    """Percorre listas/dicts aninhados e produz todas as expressões encontradas."""
    if is_expression(value):
        yield value
    elif isinstance(value, dict):
        for v in value.values():
            yield from iter_expressions(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            yield from iter_expressions(v)


def render_expression(value: Any) -> Any:
    """Converte expressões em texto para serialização (hash, manifest)."""
    if is_expression(value):
        return "${" + str(value) + "}"
    if isinstance(value, dict):
        return {k: render_expression(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_expression(v) for v in value]
    return value


def lookup_path(values: Dict[str, Any], path: str) -> Any:
    """Resolve um caminho pontuado (`ip_configuration.0.address`) em `values`.

    Segmentos numéricos indexam listas. Levanta `KeyError` quando algum
    segmento não existe.
    """
    current: Any = values
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                raise KeyError(path)
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                raise KeyError(path)
            current = current[index]
        else:
            raise KeyError(path)
    return current
