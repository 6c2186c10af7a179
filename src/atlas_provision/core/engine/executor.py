"""
Executor do plano.

Consome um `Plan` já ordenado e invoca as operações do provider de cada
entrada com um worker pool limitado.

Decisões arquiteturais:
    - Fila de prontos alimentada por contagem regressiva de dependências:
      cada conclusão decrementa os dependentes; uma entrada é despachada
      quando sua contagem chega a zero
    - Empates na fila de prontos seguem a ordem do plano
    - Entradas `noop` concluem sem chamar o provider
    - Referências pendentes são substituídas no despacho, a partir dos
      valores dos upstreams já aplicados
    - Somente `ProviderError` transitório é retentado, com backoff
      exponencial limitado (`RetryPolicy`)
    - O registro de estado é persistido pelo worker antes que a entrada
      seja considerada concluída; escritas no store passam por um único lock

Política de falha parcial:
    - A entrada que falhou é registrada como `failed` (o registro anterior,
      se existir, é persistido com status `failed`)
    - Todos os dependentes transitivos são `skipped` com `blocked_by`
      e seu estado não é alterado; dependentes `noop` concluem como `noop`,
      pois não há chamada ao provider a bloquear
    - Ramos independentes continuam

Cancelamento:
    - Um `threading.Event` interrompe o despacho de novas entradas
    - Chamadas em andamento terminam e são registradas normalmente
    - Entradas nunca despachadas são reportadas como `cancelled`
"""

from __future__ import annotations

import heapq
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from atlas_provision.core.config.settings import EngineSettings
from atlas_provision.core.errors import AtlasErrorPayload, dependency_failed, exception_to_error
from atlas_provision.core.exceptions import (
    PermanentProviderError,
    ProviderError,
    UnresolvedReferenceError,
)
from atlas_provision.core.model.values import Literal, PendingReference, ResourceAddress, lookup_path
from atlas_provision.core.providers.registry import ProviderRegistry
from atlas_provision.core.run_context import RunContext
from atlas_provision.core.state.records import ResourceStatus, StateRecord, utc_now_iso
from atlas_provision.core.state.store import StateStore
from atlas_provision.core.traceability.manifest import (
    AtlasManifest,
    entry_failed,
    entry_finished,
    entry_started,
)

from .plan import Plan, PlanAction, PlanEntry


APPLIED = "applied"
DESTROYED = "destroyed"
NOOP = "noop"
FAILED = "failed"
SKIPPED = "skipped"
CANCELLED = "cancelled"

SUCCESS_STATUSES = frozenset({APPLIED, DESTROYED, NOOP})


@dataclass(frozen=True)
class EntryOutcome:
    key: str
    address: str
    action: str
    status: str
    attempts: int = 0
    provider_id: Optional[str] = None
    error: Optional[AtlasErrorPayload] = None
    blocked_by: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status in SUCCESS_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "address": self.address,
            "action": self.action,
            "status": self.status,
            "attempts": self.attempts,
            "provider_id": self.provider_id,
            "error": self.error.to_dict() if self.error else None,
            "blocked_by": self.blocked_by,
        }


@dataclass(frozen=True)
class ExecutionSummary:
    """Resultado do executor: outcome por entrada (ordem do plano) e erros-raiz."""

    outcomes: Dict[str, EntryOutcome] = field(default_factory=dict)
    errors: List[AtlasErrorPayload] = field(default_factory=list)
    values: Dict[ResourceAddress, Dict[str, Any]] = field(default_factory=dict)
    cancelled: bool = False

    def resource_status(self) -> Dict[str, str]:
        """Status final por recurso.

        Qualquer entrada `failed` torna o recurso `failed`; senão `skipped`
        ou `cancelled` prevalecem; senão vale a última entrada (o `create`
        de um replace).
        """
        grouped: Dict[str, List[str]] = {}
        for outcome in self.outcomes.values():
            grouped.setdefault(outcome.address, []).append(outcome.status)
        final: Dict[str, str] = {}
        for address, statuses in grouped.items():
            for dominant in (FAILED, SKIPPED, CANCELLED):
                if dominant in statuses:
                    final[address] = dominant
                    break
            else:
                final[address] = statuses[-1]
        return final

    def applied_values(self) -> Dict[ResourceAddress, Dict[str, Any]]:
        """Valores apenas dos recursos que terminaram em `applied`/`noop`."""
        status = self.resource_status()
        return {
            addr: dict(vals)
            for addr, vals in self.values.items()
            if status.get(str(addr), NOOP) in (APPLIED, NOOP)
        }


@dataclass(frozen=True)
class _WorkerResult:
    record: Optional[StateRecord]
    attempts: int
    error: Optional[AtlasErrorPayload] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Executor:
    """Executa um `Plan` contra os providers, persistindo estado por entrada."""

    def __init__(
        self,
        *,
        providers: ProviderRegistry,
        store: StateStore,
        settings: EngineSettings,
        ctx: RunContext,
        manifest: Optional[AtlasManifest] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.providers = providers
        self.store = store
        self.settings = settings
        self.ctx = ctx
        self.manifest = manifest
        self._sleep = sleep
        self._state_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Worker (executa em thread do pool)
    # ------------------------------------------------------------------
    def _call_provider(self, entry: PlanEntry, attributes: Dict[str, Any]) -> StateRecord:
        provider = self.providers.provider_for(entry.address.type)
        rtype = entry.address.type
        deps = tuple(str(d) for d in entry.resource_dependencies)

        if entry.action == PlanAction.CREATE:
            result = provider.create(rtype, dict(attributes))
            return StateRecord(
                resource_type=rtype,
                name=entry.address.name,
                provider_id=result.provider_id,
                attributes=dict(attributes),
                outputs=dict(result.outputs or {}),
                dependencies=deps,
                status=ResourceStatus.APPLIED,
                updated_at=utc_now_iso(),
            )

        prior = entry.prior
        if prior is None or prior.provider_id is None:
            raise PermanentProviderError(
                message=f"{entry.address}: no provider id recorded for {entry.action.value}",
                details={"resource": str(entry.address), "action": entry.action.value},
            )

        if entry.action == PlanAction.UPDATE:
            outputs = provider.update(rtype, prior.provider_id, dict(attributes))
            return replace(
                prior,
                attributes=dict(attributes),
                outputs=dict(outputs or {}),
                dependencies=deps,
                status=ResourceStatus.APPLIED,
                updated_at=utc_now_iso(),
            )

        provider.delete(rtype, prior.provider_id)
        return replace(prior, status=ResourceStatus.DESTROYED, updated_at=utc_now_iso())

    def _persist(self, record: StateRecord) -> None:
        with self._state_lock:
            self.store.save(record)

    def _fail(self, entry: PlanEntry, exc: Exception, attempts: int) -> _WorkerResult:
        address = str(entry.address)
        error = exception_to_error(exc, address=address)
        self.ctx.log(
            resource=address,
            level="ERROR",
            message=f"{entry.action.value} failed: {error.message}",
            error_type=error.type,
            attempts=attempts,
        )
        if entry.prior is not None:
            self._persist(replace(entry.prior, status=ResourceStatus.FAILED, updated_at=utc_now_iso()))
        return _WorkerResult(record=None, attempts=attempts, error=error)

    def _run_entry(self, entry: PlanEntry, attributes: Dict[str, Any]) -> _WorkerResult:
        policy = self.settings.retry
        address = str(entry.address)
        attempt = 0
        while True:
            attempt += 1
            try:
                record = self._call_provider(entry, attributes)
                break
            except ProviderError as exc:
                if exc.transient and attempt < policy.max_attempts:
                    delay = policy.delay_for(attempt)
                    self.ctx.log(
                        resource=address,
                        level="WARNING",
                        message=f"transient provider error, retrying in {delay:.2f}s",
                        attempt=attempt,
                        error=str(exc),
                    )
                    self._sleep(delay)
                    continue
                return self._fail(entry, exc, attempt)
            except Exception as exc:
                wrapped = PermanentProviderError(
                    message=str(exc) or exc.__class__.__name__,
                    details={"exception_class": exc.__class__.__name__},
                    hint="Verifique a implementação do provider para este tipo de recurso",
                )
                return self._fail(entry, wrapped, attempt)

        try:
            self._persist(record)
        except Exception as exc:
            error = exception_to_error(exc, address=address)
            error = replace(
                error,
                details={**error.details, "provider_id": record.provider_id, "action": entry.action.value},
                hint="O objeto remoto existe mas não foi registrado; importe-o no estado ou remova-o pelo provider_id.",
            )
            self.ctx.log(
                resource=address,
                level="ERROR",
                message=f"state persistence failed after {entry.action.value}: {error.message}",
                provider_id=record.provider_id,
            )
            return _WorkerResult(record=None, attempts=attempt, error=error)
        return _WorkerResult(record=record, attempts=attempt)

    # ------------------------------------------------------------------
    # Laço principal (thread do chamador)
    # ------------------------------------------------------------------
    @staticmethod
    def _resolve_attributes(entry: PlanEntry, values: Mapping[ResourceAddress, Dict[str, Any]]) -> Dict[str, Any]:
        resolved: Dict[str, Any] = {}
        for name, value in entry.attributes.items():
            if isinstance(value, Literal):
                resolved[name] = value.value
            elif isinstance(value, PendingReference):
                target_values = values.get(value.target)
                try:
                    resolved[name] = lookup_path(target_values or {}, value.attribute_path)
                except KeyError:
                    if target_values is not None and not value.deferred:
                        # atributo opcional não declarado no alvo
                        resolved[name] = None
                        continue
                    raise UnresolvedReferenceError(
                        message=f"{entry.address}.{name}: value of {value} is not available",
                        details={"resource": str(entry.address), "attribute": name, "reference": str(value)},
                        hint="O provider do recurso alvo não retornou o atributo referenciado.",
                    ) from None
            else:
                resolved[name] = value
        return resolved

    def execute(
        self,
        plan: Plan,
        records: Sequence[StateRecord],
        *,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionSummary:
        """
        Executa o plano respeitando dependências, paralelismo e cancelamento.

        Args:
            plan (Plan): Plano ordenado.
            records (Sequence[StateRecord]): Snapshot usado no planejamento
                (fonte dos valores de upstreams `noop`).
            cancel (threading.Event, optional): Sinal de cancelamento do run.

        Returns:
            ExecutionSummary: outcomes por entrada, erros-raiz e valores finais.
        """
        entries = list(plan.entries)
        index = {e.key: i for i, e in enumerate(entries)}
        by_key = {e.key: e for e in entries}
        remaining = {e.key: len(e.depends_on) for e in entries}
        dependents: Dict[str, List[str]] = {e.key: [] for e in entries}
        for e in entries:
            for dep in e.depends_on:
                dependents[dep].append(e.key)

        values: Dict[ResourceAddress, Dict[str, Any]] = {
            r.address: r.values()
            for r in records
            if r.status == ResourceStatus.APPLIED and r.provider_id is not None
        }
        outcomes: Dict[str, EntryOutcome] = {}
        errors: List[AtlasErrorPayload] = []
        ready: List[Tuple[int, str]] = [(index[k], k) for k, n in remaining.items() if n == 0]
        heapq.heapify(ready)
        in_flight: Dict[Future, PlanEntry] = {}
        cancelled = False
        parallelism = self.settings.parallelism

        def record_outcome(entry: PlanEntry, outcome: EntryOutcome) -> None:
            outcomes[entry.key] = outcome
            if self.manifest is not None and outcome.status != FAILED:
                entry_finished(
                    self.manifest,
                    entry=entry.key,
                    ts=_now(),
                    status=outcome.status,
                    attempts=outcome.attempts,
                    provider_id=outcome.provider_id,
                )

        def complete(entry: PlanEntry, outcome: EntryOutcome) -> None:
            record_outcome(entry, outcome)
            for child in dependents[entry.key]:
                remaining[child] -= 1
                if remaining[child] == 0 and child not in outcomes:
                    heapq.heappush(ready, (index[child], child))

        def fail(entry: PlanEntry, error: AtlasErrorPayload, attempts: int) -> None:
            address = str(entry.address)
            errors.append(error)
            outcomes[entry.key] = EntryOutcome(
                key=entry.key,
                address=address,
                action=entry.action.value,
                status=FAILED,
                attempts=attempts,
                error=error,
            )
            if self.manifest is not None:
                entry_failed(self.manifest, entry=entry.key, ts=_now(), error=error.to_dict())

            stack = list(dependents[entry.key])
            while stack:
                child_key = stack.pop(0)
                if child_key in outcomes:
                    continue
                child = by_key[child_key]
                if child.action == PlanAction.NOOP:
                    # sem chamada ao provider: o recurso segue aplicado com o estado registrado
                    record_outcome(
                        child,
                        EntryOutcome(
                            key=child_key,
                            address=str(child.address),
                            action=child.action.value,
                            status=NOOP,
                            provider_id=child.prior.provider_id if child.prior else None,
                        ),
                    )
                    stack.extend(dependents[child_key])
                    continue
                self.ctx.log(
                    resource=str(child.address),
                    level="WARNING",
                    message=f"skipped: dependency {address} failed",
                    blocked_by=address,
                )
                record_outcome(
                    child,
                    EntryOutcome(
                        key=child_key,
                        address=str(child.address),
                        action=child.action.value,
                        status=SKIPPED,
                        error=dependency_failed(address=str(child.address), blocked_by=address),
                        blocked_by=address,
                    ),
                )
                stack.extend(dependents[child_key])

        def dispatch(pool: ThreadPoolExecutor, entry: PlanEntry) -> None:
            address = str(entry.address)
            if entry.action == PlanAction.NOOP:
                complete(
                    entry,
                    EntryOutcome(
                        key=entry.key,
                        address=address,
                        action=entry.action.value,
                        status=NOOP,
                        provider_id=entry.prior.provider_id if entry.prior else None,
                    ),
                )
                return
            try:
                attributes = self._resolve_attributes(entry, values)
            except UnresolvedReferenceError as exc:
                self.ctx.log(resource=address, level="ERROR", message=exc.message)
                fail(entry, exception_to_error(exc, address=address), 0)
                return
            self.ctx.log(resource=address, level="INFO", message=f"{entry.action.value} started", entry=entry.key)
            if self.manifest is not None:
                entry_started(self.manifest, entry=entry.key, action=entry.action.value, ts=_now())
            in_flight[pool.submit(self._run_entry, entry, attributes)] = entry

        def collect(entry: PlanEntry, result: _WorkerResult) -> None:
            address = str(entry.address)
            if result.error is not None:
                fail(entry, result.error, result.attempts)
                return
            record = result.record
            if entry.action == PlanAction.DELETE:
                values.pop(entry.address, None)
                status = DESTROYED
            else:
                values[entry.address] = record.values()
                status = APPLIED
            self.ctx.log(
                resource=address,
                level="INFO",
                message=f"{entry.action.value} finished",
                entry=entry.key,
                status=status,
                attempts=result.attempts,
            )
            complete(
                entry,
                EntryOutcome(
                    key=entry.key,
                    address=address,
                    action=entry.action.value,
                    status=status,
                    attempts=result.attempts,
                    provider_id=record.provider_id,
                ),
            )

        with ThreadPoolExecutor(max_workers=parallelism, thread_name_prefix="atlas-provision") as pool:
            while ready or in_flight:
                if not cancelled and cancel is not None and cancel.is_set():
                    cancelled = True
                    self.ctx.log(resource=None, level="WARNING", message="cancellation requested; dispatch stopped")

                while ready and not cancelled and len(in_flight) < parallelism:
                    _, key = heapq.heappop(ready)
                    if key in outcomes:
                        continue
                    dispatch(pool, by_key[key])

                if not in_flight:
                    if cancelled or not ready:
                        break
                    continue

                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: index[in_flight[f].key]):
                    entry = in_flight.pop(future)
                    collect(entry, future.result())

        for entry in entries:
            if entry.key not in outcomes:
                record_outcome(
                    entry,
                    EntryOutcome(
                        key=entry.key,
                        address=str(entry.address),
                        action=entry.action.value,
                        status=CANCELLED,
                    ),
                )

        ordered = {e.key: outcomes[e.key] for e in entries}
        return ExecutionSummary(outcomes=ordered, errors=errors, values=values, cancelled=cancelled)
