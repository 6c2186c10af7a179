"""
Resolvedor de referências.

Percorre um `DeclarationSet` já validado e:
    - resolve variáveis uma única vez (overrides de run têm precedência)
    - converte cada atributo em `Literal` ou `PendingReference`
    - produz o conjunto completo de arestas do grafo de dependências

Decisões arquiteturais:
    - Uma referência é válida se o recurso alvo existe e o primeiro
      segmento do caminho existe no schema do tipo alvo
    - Referências a atributos computados pelo provider são marcadas como
      `deferred`: seu valor só existe após o create do alvo
    - Atributos que um provider não suporta simplesmente não constam do
      schema, e referenciá-los é `UnresolvedReferenceError`

Limites explícitos:
    - Não detecta ciclos (responsabilidade do scheduler)
    - Não consulta estado nem providers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from atlas_provision.core.exceptions import UnresolvedReferenceError, ValidationError
from atlas_provision.core.model.declarations import DeclarationSet, Output, Variable
from atlas_provision.core.model.schema import SchemaRegistry
from atlas_provision.core.model.values import (
    Literal,
    PendingReference,
    Reference,
    ResolvedValue,
    ResourceAddress,
    VariableReference,
    iter_expressions,
)


Edge = Tuple[ResourceAddress, ResourceAddress]


@dataclass(frozen=True)
class ResolvedResource:
    address: ResourceAddress
    attributes: Dict[str, ResolvedValue]
    dependencies: Tuple[ResourceAddress, ...] = ()


@dataclass(frozen=True)
class ResolvedGraph:
    """Arena de recursos resolvidos + arestas `(dependente, dependência)`."""

    resources: Dict[ResourceAddress, ResolvedResource]
    edges: List[Edge] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    outputs: List[Output] = field(default_factory=list)

    @property
    def nodes(self) -> List[ResourceAddress]:
        return list(self.resources)


def resolve_variables(
    variables: List[Variable],
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Resolve o valor de cada variável; overrides de run vencem `Variable.override`."""
    overrides = dict(overrides or {})
    by_name = {v.name: v for v in variables}
    unknown = sorted(set(overrides) - set(by_name))
    if unknown:
        raise ValidationError(
            message=f"Overrides for undeclared variables: {unknown}",
            details={"variables": unknown},
        )

    values: Dict[str, Any] = {}
    for var in variables:
        if var.name in overrides:
            values[var.name] = var.check(overrides[var.name])
        else:
            values[var.name] = var.value()
    return values


def _resolve_reference(
    ref: Reference,
    *,
    known: Mapping[ResourceAddress, Any],
    schemas: SchemaRegistry,
    origin: str,
) -> PendingReference:
    target = ref.address
    if target not in known:
        raise UnresolvedReferenceError(
            message=f"{origin}: reference to undeclared resource {target}",
            details={"origin": origin, "reference": str(ref), "target": str(target)},
        )
    schema = schemas.get(target.type)
    if not schema.has_attribute(ref.root_attribute):
        raise UnresolvedReferenceError(
            message=f"{origin}: {target.type} has no attribute '{ref.root_attribute}'",
            details={"origin": origin, "reference": str(ref), "attribute": ref.root_attribute},
            hint="Verifique o schema do tipo alvo; atributos não suportados pelo provider não podem ser referenciados.",
        )
    return PendingReference(
        target=target,
        attribute_path=ref.attribute,
        deferred=schema.is_computed(ref.root_attribute),
    )


def resolve_references(
    declarations: DeclarationSet,
    schemas: SchemaRegistry,
    *,
    variable_overrides: Optional[Mapping[str, Any]] = None,
) -> ResolvedGraph:
    """
    Resolve variáveis e referências de um `DeclarationSet` validado.

    Args:
        declarations (DeclarationSet): Declarações já validadas.
        schemas (SchemaRegistry): Schemas dos tipos declarados.
        variable_overrides: Valores de variáveis fornecidos para o run.

    Returns:
        ResolvedGraph: recursos resolvidos, arestas, variáveis e outputs.

    Raises:
        ValidationError: Override para variável não declarada ou de tipo inválido.
        UnresolvedReferenceError: Referência para recurso/atributo inexistente.
    """
    variables = resolve_variables(declarations.variables, variable_overrides)
    declared = declarations.by_address()

    resources: Dict[ResourceAddress, ResolvedResource] = {}
    edges: List[Edge] = []
    for decl in declarations.resources:
        origin = str(decl.address)
        attributes: Dict[str, ResolvedValue] = {}
        dependencies: List[ResourceAddress] = []
        for attr, value in decl.attributes.items():
            if isinstance(value, Reference):
                pending = _resolve_reference(value, known=declared, schemas=schemas, origin=f"{origin}.{attr}")
                attributes[attr] = pending
                if pending.target not in dependencies:
                    dependencies.append(pending.target)
            elif isinstance(value, VariableReference):
                attributes[attr] = Literal(variables[value.name])
            else:
                attributes[attr] = Literal(value)

        edges.extend((decl.address, dep) for dep in dependencies)
        resources[decl.address] = ResolvedResource(
            address=decl.address,
            attributes=attributes,
            dependencies=tuple(dependencies),
        )

    for out in declarations.outputs:
        for expr in iter_expressions(out.expression):
            if isinstance(expr, Reference):
                _resolve_reference(expr, known=declared, schemas=schemas, origin=f"output.{out.name}")

    return ResolvedGraph(
        resources=resources,
        edges=edges,
        variables=variables,
        outputs=list(declarations.outputs),
    )
