"""
Reconciler de estado: estado desejado x último estado conhecido.

Para cada recurso lógico, compara os atributos resolvidos com o snapshot
do `StateRecord` e classifica a ação:

    - ausente no estado, presente no desejado  → create
    - presente no estado, ausente no desejado  → delete
    - presente em ambos, snapshot diferente    → update
      (atributo replace-triggering alterado    → delete + create)
    - presente em ambos, snapshot idêntico     → noop
    - registro `failed`/`pending` sem diff     → update (reconvergência)

Decisões arquiteturais:
    - Referências pendentes são fixadas como `Literal` quando o valor já é
      conhecido no planejamento (alvo `noop`, ou atributo declarado do alvo
      já literal); caso contrário o atributo é "known after apply" e conta
      como alteração
    - Dependências entre entradas:
        * create/update aguardam a entrada principal de cada upstream
        * o create de um replace aguarda o próprio delete
        * o delete de um recurso aguarda os deletes/updates dos recursos
          que o referenciam (segundo as dependências registradas)
    - Entre entradas prontas, deletes de recursos que deixaram de existir
      vêm primeiro; depois, a ordem do scheduler

Invariantes:
    - Planejamento é puro: não consulta providers nem escreve no store
    - O plano resultante é uma ordem topológica das entradas

Limites explícitos:
    - Não executa operações
    - Não detecta drift remoto (ver refresh no Engine)
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from atlas_provision.core.graph.resolver import ResolvedGraph
from atlas_provision.core.graph.scheduler import destroy_order, schedule
from atlas_provision.core.model.schema import ID_ATTRIBUTE, SchemaRegistry
from atlas_provision.core.model.values import (
    Literal,
    PendingReference,
    ResolvedValue,
    ResourceAddress,
    lookup_path,
)
from atlas_provision.core.state.records import ResourceStatus, StateRecord

from .plan import AttributeChange, Plan, PlanAction, PlanEntry


_MISSING = object()


def _recorded_dependencies(record: StateRecord, known: Iterable[ResourceAddress]) -> List[ResourceAddress]:
    known_set = set(known)
    deps: List[ResourceAddress] = []
    for text in record.dependencies:
        try:
            addr = ResourceAddress.parse(text)
        except ValueError:
            continue
        if addr in known_set and addr not in deps:
            deps.append(addr)
    return deps


# ---------------------------------------------------------------------------
# Fixação de referências pendentes
# ---------------------------------------------------------------------------

def _pin(
    value: ResolvedValue,
    *,
    actions: Mapping[ResourceAddress, Tuple[PlanAction, bool]],
    planned: Mapping[ResourceAddress, Dict[str, ResolvedValue]],
    records: Mapping[ResourceAddress, StateRecord],
) -> ResolvedValue:
    if not isinstance(value, PendingReference):
        return value

    action, replacing = actions[value.target]
    record = records.get(value.target)

    if value.deferred:
        # id e outputs só são estáveis se o alvo não muda; `id` sobrevive a update in-place
        stable = action == PlanAction.NOOP or (
            action == PlanAction.UPDATE and not replacing and value.root_attribute == ID_ATTRIBUTE
        )
        if stable and record is not None:
            try:
                return Literal(lookup_path(record.values(), value.attribute_path))
            except KeyError:
                return value
        return value

    if value.root_attribute not in planned[value.target]:
        # atributo opcional não declarado no alvo
        return Literal(None)
    target_value = planned[value.target][value.root_attribute]
    if isinstance(target_value, Literal):
        try:
            return Literal(lookup_path({value.root_attribute: target_value.value}, value.attribute_path))
        except KeyError:
            return value
    return value


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------

def _diff(planned: Mapping[str, ResolvedValue], snapshot: Mapping[str, Any]) -> Dict[str, AttributeChange]:
    changes: Dict[str, AttributeChange] = {}
    for name, value in planned.items():
        before = snapshot.get(name, _MISSING)
        before_value = None if before is _MISSING else before
        if isinstance(value, PendingReference):
            changes[name] = AttributeChange(before=before_value, after=value, known=False)
        elif before is _MISSING or before != value.value:
            changes[name] = AttributeChange(before=before_value, after=value.value)
    for name in snapshot:
        if name not in planned:
            changes[name] = AttributeChange(before=snapshot[name], after=None, removed=True)
    return changes


def _classify(
    record: Optional[StateRecord],
    diff: Mapping[str, AttributeChange],
    triggers_replace,
) -> Tuple[PlanAction, bool]:
    if record is None or record.provider_id is None:
        return PlanAction.CREATE, False
    if diff:
        replacing = any(triggers_replace(name) for name, c in diff.items() if not c.removed)
        return PlanAction.UPDATE, replacing
    if record.status != ResourceStatus.APPLIED:
        return PlanAction.UPDATE, False
    return PlanAction.NOOP, False


# ---------------------------------------------------------------------------
# Deletes de recursos fora das declarações
# ---------------------------------------------------------------------------

def _delete_entries(
    records: Sequence[StateRecord],
    all_records: Mapping[ResourceAddress, StateRecord],
) -> List[PlanEntry]:
    """Entradas `delete` para `records`, em ordem de destroy (dependentes primeiro)."""
    addresses = [r.address for r in records]
    edges = [
        (r.address, dep)
        for r in records
        for dep in _recorded_dependencies(r, addresses)
    ]
    ordered = destroy_order(addresses, edges)
    by_addr = {r.address: r for r in records}
    return [
        PlanEntry(
            address=addr,
            action=PlanAction.DELETE,
            diff={
                k: AttributeChange(before=v, after=None, removed=True)
                for k, v in by_addr[addr].attributes.items()
            },
            resource_dependencies=tuple(_recorded_dependencies(by_addr[addr], all_records)),
            prior=by_addr[addr],
        )
        for addr in ordered
    ]


def _referrers(
    target: ResourceAddress,
    graph: Optional[ResolvedGraph],
    records: Mapping[ResourceAddress, StateRecord],
) -> List[ResourceAddress]:
    found: List[ResourceAddress] = []
    for addr, record in records.items():
        if str(target) in record.dependencies and addr not in found:
            found.append(addr)
    if graph is not None:
        for addr, res in graph.resources.items():
            if target in res.dependencies and addr not in found:
                found.append(addr)
    return found


def _ordered_plan(
    ranked: List[PlanEntry],
    edges: Set[Tuple[str, str]],
) -> Plan:
    keys = [e.key for e in ranked]
    rank = {k: i for i, k in enumerate(keys)}
    deps: Dict[str, List[str]] = {k: [] for k in keys}
    for dependent, dependency in sorted(edges, key=lambda e: (rank[e[0]], rank[e[1]])):
        deps[dependent].append(dependency)
    order = schedule(keys, edges)
    by_key = {e.key: e for e in ranked}
    return Plan(
        entries=tuple(
            replace(by_key[k], depends_on=tuple(deps[k]))
            for k in order
        )
    )


# ---------------------------------------------------------------------------
# API pública
# ---------------------------------------------------------------------------

def reconcile(
    graph: ResolvedGraph,
    order: Sequence[ResourceAddress],
    records: Sequence[StateRecord],
    schemas: SchemaRegistry,
) -> Plan:
    """
    Reconcilia o grafo resolvido com o último estado conhecido.

    Args:
        graph (ResolvedGraph): Recursos desejados, já resolvidos.
        order (Sequence[ResourceAddress]): Ordem topológica do scheduler.
        records (Sequence[StateRecord]): Snapshot do state store.
        schemas (SchemaRegistry): Schemas (atributos replace-triggering).

    Returns:
        Plan: Entradas ordenadas com dependências entre entradas.

    Raises:
        CycleDetectedError: Se as dependências registradas no estado formarem
            ciclo com as declaradas (estado inconsistente).
    """
    by_addr: Dict[ResourceAddress, StateRecord] = {r.address: r for r in records}

    actions: Dict[ResourceAddress, Tuple[PlanAction, bool]] = {}
    planned: Dict[ResourceAddress, Dict[str, ResolvedValue]] = {}
    main_entries: Dict[ResourceAddress, PlanEntry] = {}
    replace_deletes: Dict[ResourceAddress, PlanEntry] = {}

    for addr in order:
        resource = graph.resources[addr]
        record = by_addr.get(addr)
        attributes = {
            name: _pin(value, actions=actions, planned=planned, records=by_addr)
            for name, value in resource.attributes.items()
        }
        snapshot = record.attributes if record is not None and record.provider_id is not None else {}
        diff = _diff(attributes, snapshot)
        schema = schemas.get(addr.type)
        action, replacing = _classify(record, diff, schema.triggers_replace)

        actions[addr] = (action, replacing)
        planned[addr] = attributes

        if replacing:
            replace_deletes[addr] = PlanEntry(
                address=addr,
                action=PlanAction.DELETE,
                resource_dependencies=tuple(_recorded_dependencies(record, by_addr)),
                replace=True,
                prior=record,
            )
            main_entries[addr] = PlanEntry(
                address=addr,
                action=PlanAction.CREATE,
                attributes=attributes,
                diff=diff,
                resource_dependencies=resource.dependencies,
                replace=True,
            )
        else:
            main_entries[addr] = PlanEntry(
                address=addr,
                action=action,
                attributes=attributes,
                diff=diff if action != PlanAction.NOOP else {},
                resource_dependencies=resource.dependencies,
                prior=record,
            )

    removed = [r for r in records if r.address not in graph.resources]
    removed_deletes = {e.address: e for e in _delete_entries(removed, by_addr)}

    def delete_key(addr: ResourceAddress) -> Optional[str]:
        if addr in removed_deletes:
            return removed_deletes[addr].key
        if addr in replace_deletes:
            return replace_deletes[addr].key
        return None

    edges: Set[Tuple[str, str]] = set()
    for addr in order:
        entry = main_entries[addr]
        for dep in graph.resources[addr].dependencies:
            edges.add((entry.key, main_entries[dep].key))
        if addr in replace_deletes:
            delete = replace_deletes[addr]
            edges.add((entry.key, delete.key))
            for referrer in _referrers(addr, graph, by_addr):
                other = delete_key(referrer)
                if other is not None and other != delete.key:
                    edges.add((delete.key, other))

    for addr, delete in removed_deletes.items():
        for referrer in _referrers(addr, None, by_addr):
            if referrer == addr:
                continue
            other = delete_key(referrer)
            if other is not None:
                edges.add((delete.key, other))
            if referrer in main_entries:
                edges.add((delete.key, main_entries[referrer].key))

    ranked: List[PlanEntry] = list(removed_deletes.values())
    for addr in order:
        if addr in replace_deletes:
            ranked.append(replace_deletes[addr])
        ranked.append(main_entries[addr])

    return _ordered_plan(ranked, edges)


def plan_destroy(records: Sequence[StateRecord]) -> Plan:
    """Plano de destroy: `delete` para todo registro, dependentes primeiro."""
    by_addr = {r.address: r for r in records}
    deletes = _delete_entries(list(records), by_addr)
    keys = {e.address: e.key for e in deletes}

    edges: Set[Tuple[str, str]] = set()
    for entry in deletes:
        for referrer in _referrers(entry.address, None, by_addr):
            if referrer != entry.address:
                edges.add((entry.key, keys[referrer]))

    return _ordered_plan(deletes, edges)
