"""
Schemas de tipos de recurso.

Cada tipo de recurso suportado por um provider declara seu schema: quais
atributos existem, quais são obrigatórios, quais são computados pelo
provider e quais forçam substituição (delete + create) quando alterados.

Decisões arquiteturais:
    - Todo schema possui implicitamente o atributo computado `id`
    - Atributos ausentes do schema não existem para o engine: declará-los
      é `ValidationError`, referenciá-los é `UnresolvedReferenceError`
    - O registro preserva ordem de inserção, como o registro de Steps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from atlas_provision.core.exceptions import ValidationError


ID_ATTRIBUTE = "id"


@dataclass(frozen=True)
class AttributeSpec:
    name: str
    required: bool = False
    computed: bool = False
    replace_on_change: bool = False


@dataclass(frozen=True)
class ResourceSchema:
    """Schema de um tipo de recurso (atributos indexados por nome)."""

    resource_type: str
    attributes: Dict[str, AttributeSpec] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        resource_type: str,
        *,
        required: Iterable[str] = (),
        optional: Iterable[str] = (),
        computed: Iterable[str] = (),
        replace_on_change: Iterable[str] = (),
    ) -> "ResourceSchema":
        """Atalho declarativo.

        `replace_on_change` pode citar atributos obrigatórios ou opcionais;
        citar um atributo que não foi declarado é erro.
        """
        replace = set(replace_on_change)
        specs: Dict[str, AttributeSpec] = {}
        for name in required:
            specs[name] = AttributeSpec(name, required=True, replace_on_change=name in replace)
        for name in optional:
            specs[name] = AttributeSpec(name, replace_on_change=name in replace)
        for name in computed:
            specs[name] = AttributeSpec(name, computed=True)

        unknown = sorted(replace - set(specs))
        if unknown:
            raise ValueError(f"{resource_type}: replace_on_change cites undeclared attributes {unknown}")
        return cls(resource_type=resource_type, attributes=specs)

    def attribute(self, name: str) -> Optional[AttributeSpec]:
        if name == ID_ATTRIBUTE and name not in self.attributes:
            return AttributeSpec(ID_ATTRIBUTE, computed=True)
        return self.attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return self.attribute(name) is not None

    def is_computed(self, name: str) -> bool:
        spec = self.attribute(name)
        return bool(spec and spec.computed)

    def triggers_replace(self, name: str) -> bool:
        spec = self.attribute(name)
        return bool(spec and spec.replace_on_change)

    def required_attributes(self) -> List[str]:
        return [n for n, s in self.attributes.items() if s.required]


@dataclass
class SchemaRegistry:
    """Registro de schemas por tipo de recurso."""

    _schemas: Dict[str, ResourceSchema] = field(default_factory=dict, init=False, repr=False)

    def add(self, schema: ResourceSchema) -> None:
        rtype = getattr(schema, "resource_type", None)
        if not isinstance(rtype, str) or not rtype.strip():
            raise ValueError("schema.resource_type must be a non-empty string")
        if rtype in self._schemas:
            raise ValidationError(
                message=f"Duplicate schema for resource type: {rtype}",
                details={"resource_type": rtype},
            )
        self._schemas[rtype] = schema

    def get(self, resource_type: str) -> ResourceSchema:
        return self._schemas[resource_type]

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._schemas

    def types(self) -> List[str]:
        return list(self._schemas)
