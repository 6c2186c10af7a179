"""
Modelo de declarações do Atlas Provision.

Representação em memória do estado desejado: recursos, variáveis e
outputs. O modelo é um arena de declarações indexado por
`ResourceAddress`; recursos nunca apontam diretamente uns para os outros,
apenas carregam expressões `Reference` em seus atributos.

Responsabilidades do módulo:
    - Definir `ResourceDeclaration`, `Variable`, `Output` e `DeclarationSet`
    - Validar estruturalmente o conjunto contra os schemas dos tipos

Invariantes (após `validate`):
    - Nomes lógicos são únicos dentro de um tipo
    - Todo atributo declarado existe no schema e não é computado
    - Todo atributo obrigatório está presente
    - Toda `VariableReference` aponta para uma variável declarada
    - Expressões aparecem apenas no nível do atributo, nunca aninhadas
      dentro de literais

Limites explícitos:
    - Não resolve referências entre recursos (ver `core.graph.resolver`)
    - Não realiza I/O
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set

from atlas_provision.core.exceptions import ValidationError

from .schema import SchemaRegistry
from .values import (
    Reference,
    ResourceAddress,
    VariableReference,
    is_expression,
    iter_expressions,
    render_expression,
)


class _NoValue:
    def __repr__(self) -> str:
        return "NO_VALUE"


NO_VALUE = _NoValue()

VARIABLE_TYPES: Dict[str, Any] = {
    "string": (str,),
    "number": (int, float),
    "bool": (bool,),
    "list": (list, tuple),
    "map": (dict,),
    "any": None,
}


def _matches_type(value: Any, declared: str) -> bool:
    accepted = VARIABLE_TYPES[declared]
    if accepted is None:
        return True
    if declared == "number" and isinstance(value, bool):
        return False
    return isinstance(value, accepted)


@dataclass(frozen=True)
class Variable:
    """Variável de entrada; `override` tem precedência sobre `default`."""

    name: str
    type: str = "any"
    default: Any = NO_VALUE
    override: Any = NO_VALUE

    def value(self) -> Any:
        if self.override is not NO_VALUE:
            return self.override
        if self.default is not NO_VALUE:
            return self.default
        raise ValidationError(
            message=f"Variable '{self.name}' has no default and no override",
            details={"variable": self.name},
            hint="Declare um default ou forneça um override para a variável.",
        )

    def check(self, value: Any) -> Any:
        if not _matches_type(value, self.type):
            raise ValidationError(
                message=f"Variable '{self.name}' expects {self.type}, got {type(value).__name__}",
                details={"variable": self.name, "type": self.type, "value": repr(value)},
            )
        return value


@dataclass(frozen=True)
class ResourceDeclaration:
    resource_type: str
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> ResourceAddress:
        return ResourceAddress(self.resource_type, self.name)

    def references(self) -> Iterator[tuple]:
        """Produz pares (atributo, Reference) na ordem de declaração."""
        for attr, value in self.attributes.items():
            if isinstance(value, Reference):
                yield attr, value


@dataclass(frozen=True)
class Output:
    """Output nomeado; `expression` pode ser expressão, literal ou list/dict delas."""

    name: str
    expression: Any
    description: Optional[str] = None


@dataclass
class DeclarationSet:
    """Conjunto de declarações consumido pelo engine."""

    resources: List[ResourceDeclaration] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)
    outputs: List[Output] = field(default_factory=list)

    def by_address(self) -> Dict[ResourceAddress, ResourceDeclaration]:
        return {r.address: r for r in self.resources}

    def variable_map(self) -> Dict[str, Variable]:
        return {v.name: v for v in self.variables}

    def to_dict(self) -> Dict[str, Any]:
        """Forma serializável (expressões renderizadas como `${...}`)."""
        return {
            "resources": [
                {
                    "type": r.resource_type,
                    "name": r.name,
                    "attributes": render_expression(dict(r.attributes)),
                }
                for r in self.resources
            ],
            "variables": [
                {
                    "name": v.name,
                    "type": v.type,
                    "default": None if v.default is NO_VALUE else v.default,
                }
                for v in self.variables
            ],
            "outputs": {o.name: render_expression(o.expression) for o in self.outputs},
        }

    def validate(self, schemas: SchemaRegistry) -> "DeclarationSet":
        """
        Valida estruturalmente o conjunto de declarações.

        Esta validação ocorre antes de qualquer resolução de referências e
        antes de qualquer chamada a provider; uma falha aqui aborta o run
        sem efeitos colaterais.

        Args:
            schemas (SchemaRegistry): Schemas dos tipos de recurso conhecidos.

        Returns:
            DeclarationSet: o próprio conjunto, para encadeamento.

        Raises:
            ValidationError: na primeira violação encontrada.
        """
        declared_vars: Set[str] = set()
        for var in self.variables:
            if not isinstance(var.name, str) or not var.name.strip():
                raise ValidationError(message="variable name must be a non-empty string", details={})
            if var.name in declared_vars:
                raise ValidationError(
                    message=f"Duplicate variable: {var.name}",
                    details={"variable": var.name},
                )
            if var.type not in VARIABLE_TYPES:
                raise ValidationError(
                    message=f"Variable '{var.name}' has unknown type '{var.type}'",
                    details={"variable": var.name, "type": var.type, "allowed": sorted(VARIABLE_TYPES)},
                )
            for candidate in (var.default, var.override):
                if candidate is not NO_VALUE:
                    var.check(candidate)
            declared_vars.add(var.name)

        seen: Set[ResourceAddress] = set()
        for res in self.resources:
            address = res.address
            if not res.resource_type or not res.name:
                raise ValidationError(
                    message="resource type and name must be non-empty",
                    details={"resource": str(address)},
                )
            if address in seen:
                raise ValidationError(
                    message=f"Duplicate resource name '{res.name}' for type '{res.resource_type}'",
                    details={"resource": str(address)},
                    hint="Nomes lógicos devem ser únicos dentro de um tipo.",
                )
            seen.add(address)

            if res.resource_type not in schemas:
                raise ValidationError(
                    message=f"Unknown resource type: {res.resource_type}",
                    details={"resource": str(address), "known_types": schemas.types()},
                )
            schema = schemas.get(res.resource_type)

            for attr, value in res.attributes.items():
                spec = schema.attribute(attr)
                if spec is None:
                    raise ValidationError(
                        message=f"{address}: attribute '{attr}' is not defined for {res.resource_type}",
                        details={"resource": str(address), "attribute": attr},
                    )
                if spec.computed:
                    raise ValidationError(
                        message=f"{address}: attribute '{attr}' is computed by the provider and cannot be declared",
                        details={"resource": str(address), "attribute": attr},
                    )
                if not is_expression(value) and any(True for _ in iter_expressions(value)):
                    raise ValidationError(
                        message=f"{address}: references must be the whole attribute value ('{attr}')",
                        details={"resource": str(address), "attribute": attr},
                    )
                if isinstance(value, VariableReference) and value.name not in declared_vars:
                    raise ValidationError(
                        message=f"{address}: attribute '{attr}' references undeclared variable '{value.name}'",
                        details={"resource": str(address), "attribute": attr, "variable": value.name},
                    )

            missing = [a for a in schema.required_attributes() if a not in res.attributes]
            if missing:
                raise ValidationError(
                    message=f"{address}: missing required attributes {missing}",
                    details={"resource": str(address), "missing": missing},
                )

        output_names: Set[str] = set()
        for out in self.outputs:
            if out.name in output_names:
                raise ValidationError(
                    message=f"Duplicate output: {out.name}",
                    details={"output": out.name},
                )
            output_names.add(out.name)
            for expr in iter_expressions(out.expression):
                if isinstance(expr, VariableReference) and expr.name not in declared_vars:
                    raise ValidationError(
                        message=f"Output '{out.name}' references undeclared variable '{expr.name}'",
                        details={"output": out.name, "variable": expr.name},
                    )

        return self
