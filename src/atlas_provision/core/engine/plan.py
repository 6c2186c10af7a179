"""
Plano de execução (Plan v1).

Um `Plan` é a lista ordenada de entradas produzida pelo reconciler para
um run. Cada `PlanEntry` descreve uma ação sobre um recurso lógico e as
entradas das quais ela depende.

Decisões arquiteturais:
    - Um replace é representado por duas entradas (`delete` e `create`)
      com `replace=True`; a chave da entrada (`type.name:action`) é única
      dentro do plano
    - Atributos planejados mantêm a variante marcada
      (`Literal` | `PendingReference`): valores conhecidos somente após o
      apply de um upstream permanecem pendentes até a execução
    - O plano é transitório: nunca é persistido no state store

Limites explícitos:
    - Não executa operações
    - Não decide ordem (a ordem é fornecida pelo reconciler)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from atlas_provision.core.model.values import Literal, PendingReference, ResolvedValue, ResourceAddress
from atlas_provision.core.state.records import StateRecord


class PlanAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


KNOWN_AFTER_APPLY = "(known after apply)"


@dataclass(frozen=True)
class AttributeChange:
    """Diferença de um atributo entre o snapshot aplicado e o desejado.

    `known=False` indica que o valor desejado depende de um upstream ainda
    não aplicado; `removed=True` indica atributo presente apenas no snapshot.
    """

    before: Any
    after: Any
    known: bool = True
    removed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "before": self.before,
            "after": self.after if self.known else KNOWN_AFTER_APPLY,
            "known": self.known,
            "removed": self.removed,
        }


@dataclass(frozen=True)
class PlanEntry:
    address: ResourceAddress
    action: PlanAction
    attributes: Dict[str, ResolvedValue] = field(default_factory=dict)
    diff: Dict[str, AttributeChange] = field(default_factory=dict)
    depends_on: Tuple[str, ...] = ()
    resource_dependencies: Tuple[ResourceAddress, ...] = ()
    replace: bool = False
    prior: Optional[StateRecord] = None

    @property
    def key(self) -> str:
        return f"{self.address}:{self.action.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "address": str(self.address),
            "action": self.action.value,
            "replace": self.replace,
            "depends_on": list(self.depends_on),
            "attributes": {k: _render(v) for k, v in self.attributes.items()},
            "diff": {k: c.to_dict() for k, c in self.diff.items()},
        }


def _render(value: ResolvedValue) -> Any:
    if isinstance(value, Literal):
        return value.value
    if isinstance(value, PendingReference):
        return "${" + str(value) + "}"
    return value


@dataclass(frozen=True)
class Plan:
    """Plano ordenado: toda entrada aparece depois das entradas de que depende."""

    entries: Tuple[PlanEntry, ...] = ()

    def by_key(self) -> Dict[str, PlanEntry]:
        return {e.key: e for e in self.entries}

    def summary(self) -> Dict[str, int]:
        counts = {a.value: 0 for a in PlanAction}
        for e in self.entries:
            counts[e.action.value] += 1
        # um replace conta como uma única substituição, além de delete/create
        counts["replace"] = sum(1 for e in self.entries if e.replace and e.action == PlanAction.CREATE)
        return counts

    @property
    def has_changes(self) -> bool:
        return any(e.action != PlanAction.NOOP for e in self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary(),
            "entries": [e.to_dict() for e in self.entries],
        }
