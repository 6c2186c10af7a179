"""
Registro de providers por tipo de recurso.

Associa cada tipo de recurso ao seu schema e ao provider que o implementa.
O registro é consultado:
    - na validação (schemas)
    - no planejamento (todo tipo planejado precisa de provider)
    - na execução (despacho de create/read/update/delete)

Invariantes:
    - Cada tipo de recurso é registrado exatamente uma vez
    - A ordem de registro é preservada
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable

from atlas_provision.core.exceptions import ValidationError
from atlas_provision.core.model.schema import ResourceSchema, SchemaRegistry

from .base import Provider


@dataclass
class ProviderRegistry:
    schemas: SchemaRegistry = field(default_factory=SchemaRegistry)
    _providers: Dict[str, Provider] = field(default_factory=dict, init=False, repr=False)

    def register(self, schema: ResourceSchema, provider: Provider) -> None:
        if not isinstance(provider, Provider):
            raise TypeError(f"{type(provider).__name__} does not implement the Provider protocol")
        self.schemas.add(schema)
        self._providers[schema.resource_type] = provider

    def provider_for(self, resource_type: str) -> Provider:
        try:
            return self._providers[resource_type]
        except KeyError:
            raise ValidationError(
                message=f"No provider registered for resource type: {resource_type}",
                details={"resource_type": resource_type, "known_types": list(self._providers)},
            ) from None

    def require(self, resource_types: Iterable[str]) -> None:
        """Garante provider para todos os tipos informados (falha antes de executar)."""
        for rtype in resource_types:
            self.provider_for(rtype)
