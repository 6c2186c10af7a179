"""
Registros de estado persistidos por recurso lógico.

Um `StateRecord` guarda o que o engine sabe sobre um recurso após a
última operação: identificador atribuído pelo provider, snapshot dos
atributos aplicados, outputs computados pelo provider, dependências
registradas e status.

Decisões arquiteturais:
    - O registro é imutável; cada transição produz uma nova instância
      (`dataclasses.replace`)
    - As dependências registradas permitem ordenar deletes de recursos que
      não existem mais nas declarações
    - Salvar um registro com status `destroyed` remove-o do store
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from atlas_provision.core.model.schema import ID_ATTRIBUTE
from atlas_provision.core.model.values import ResourceAddress


class ResourceStatus(str, Enum):
    """
    Status persistido de um recurso.

    - PENDING: registro conhecido, operação ainda não concluída
    - APPLIED: última operação concluída com sucesso
    - FAILED: última operação falhou; o snapshot é o último aplicado
    - DESTROYED: recurso removido (o registro deixa de existir no store)
    """

    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"
    DESTROYED = "destroyed"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class StateRecord:
    resource_type: str
    name: str
    provider_id: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    dependencies: Tuple[str, ...] = ()
    status: ResourceStatus = ResourceStatus.PENDING
    updated_at: Optional[str] = None

    @property
    def address(self) -> ResourceAddress:
        return ResourceAddress(self.resource_type, self.name)

    def values(self) -> Dict[str, Any]:
        """Atributos aplicados + outputs do provider + `id`."""
        merged = dict(self.attributes)
        merged.update(self.outputs)
        if self.provider_id is not None:
            merged.setdefault(ID_ATTRIBUTE, self.provider_id)
        return merged

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.resource_type,
            "name": self.name,
            "provider_id": self.provider_id,
            "attributes": dict(self.attributes),
            "outputs": dict(self.outputs),
            "dependencies": list(self.dependencies),
            "status": self.status.value,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateRecord":
        return cls(
            resource_type=data["type"],
            name=data["name"],
            provider_id=data.get("provider_id"),
            attributes=dict(data.get("attributes", {}) or {}),
            outputs=dict(data.get("outputs", {}) or {}),
            dependencies=tuple(data.get("dependencies", []) or []),
            status=ResourceStatus(data.get("status", ResourceStatus.PENDING.value)),
            updated_at=data.get("updated_at"),
        )
