"""
Engine de provisionamento do Atlas Provision.

Orquestra as fases de um run:

    1. validação das declarações (schemas do `ProviderRegistry`)
    2. resolução de variáveis e referências
    3. ordenação topológica (scheduler)
    4. lock exclusivo do state store
    5. leitura do snapshot de estado (+ refresh opcional)
    6. reconciliação → `Plan`
    7. execução do plano (worker pool)
    8. avaliação de outputs
    9. Manifest do run (persistido se `engine.manifest_path`)

Decisões arquiteturais:
    - As fases 1–3 são puras: uma falha ali aborta o run antes de qualquer
      chamada a provider ou escrita no store
    - O lock do store é mantido durante todo o run e sempre liberado
    - Falhas de execução não levantam exceção: são convertidas em
      `AtlasErrorPayload` e devolvidas no `RunResult`
    - `RunResult.exit_code`: 0 sucesso total, 1 falha parcial/cancelado;
      `exit_code_for_error` mapeia erros de planejamento/config/lock para 2
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from atlas_provision import __version__
from atlas_provision.core.config.errors import ConfigError
from atlas_provision.core.config.hashing import compute_config_hash, compute_hash
from atlas_provision.core.config.settings import EngineSettings
from atlas_provision.core.errors import AtlasErrorPayload, errors_to_dicts
from atlas_provision.core.exceptions import (
    ConcurrentRunError,
    EngineConfigurationError,
    PlanningError,
    ResourceNotFoundError,
)
from atlas_provision.core.graph.resolver import ResolvedGraph, resolve_references
from atlas_provision.core.graph.scheduler import schedule
from atlas_provision.core.model.declarations import DeclarationSet
from atlas_provision.core.model.values import ResourceAddress
from atlas_provision.core.providers.registry import ProviderRegistry
from atlas_provision.core.run_context import RunContext
from atlas_provision.core.state.records import ResourceStatus, StateRecord, utc_now_iso
from atlas_provision.core.state.store import StateStore
from atlas_provision.core.traceability.manifest import (
    AtlasManifest,
    add_event,
    create_manifest,
    save_manifest,
)

from .executor import SUCCESS_STATUSES, EntryOutcome, Executor
from .outputs import Unavailable, evaluate_outputs
from .plan import Plan
from .reconciler import plan_destroy, reconcile


EXIT_SUCCESS = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_PLANNING_ERROR = 2


def exit_code_for_error(exc: BaseException) -> int:
    """Código de saída para exceções que abortam o run antes da execução."""
    if isinstance(exc, (PlanningError, ConcurrentRunError, EngineConfigurationError, ConfigError)):
        return EXIT_PLANNING_ERROR
    return EXIT_PARTIAL_FAILURE


def _render_output(value: Any) -> Any:
    if isinstance(value, Unavailable):
        return value.to_dict()
    return value


@dataclass(frozen=True)
class RunResult:
    """Resultado agregado de um run (RunResult v1)."""

    run_id: str
    operation: str
    plan: Plan
    resources: Dict[str, str] = field(default_factory=dict)
    entries: Dict[str, EntryOutcome] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    errors: List[AtlasErrorPayload] = field(default_factory=list)
    cancelled: bool = False
    manifest: Optional[AtlasManifest] = None

    @property
    def succeeded(self) -> bool:
        return (
            not self.errors
            and not self.cancelled
            and all(o.status in SUCCESS_STATUSES for o in self.entries.values())
        )

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS if self.succeeded else EXIT_PARTIAL_FAILURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "operation": self.operation,
            "succeeded": self.succeeded,
            "exit_code": self.exit_code,
            "cancelled": self.cancelled,
            "plan": self.plan.summary(),
            "resources": dict(self.resources),
            "entries": [o.to_dict() for o in self.entries.values()],
            "outputs": {k: _render_output(v) for k, v in self.outputs.items()},
            "errors": errors_to_dicts(self.errors),
        }


class Engine:
    """Engine canônico do Atlas Provision (plan / apply / destroy)."""

    def __init__(
        self,
        *,
        declarations: DeclarationSet,
        providers: ProviderRegistry,
        store: StateStore,
        config: Optional[Dict[str, Any]] = None,
        variables: Optional[Mapping[str, Any]] = None,
        run_id: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.declarations = declarations
        self.providers = providers
        self.store = store
        self.config: Dict[str, Any] = dict(config or {})
        self.variables: Dict[str, Any] = dict(variables or {})
        self.settings = EngineSettings.from_config(self.config)
        self.ctx = RunContext.new(config=self.config, run_id=run_id)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Fases puras
    # ------------------------------------------------------------------
    def _prepare(self) -> Tuple[ResolvedGraph, List[ResourceAddress]]:
        schemas = self.providers.schemas
        self.declarations.validate(schemas)
        graph = resolve_references(self.declarations, schemas, variable_overrides=self.variables)
        order = schedule(graph.nodes, graph.edges)
        self.providers.require(a.type for a in order)
        self.ctx.log(
            resource=None,
            level="INFO",
            message="declarations resolved",
            resources=len(order),
            edges=len(graph.edges),
        )
        return graph, order

    # ------------------------------------------------------------------
    # Snapshot de estado
    # ------------------------------------------------------------------
    def _refresh(self, records: Sequence[StateRecord]) -> List[StateRecord]:
        """Relê cada registro via `Provider.read`.

        `ResourceNotFoundError` remove o registro (store e snapshot): o objeto
        remoto não existe mais. Atributos declarados com drift e outputs são
        atualizados apenas no snapshot de planejamento.
        """
        refreshed: List[StateRecord] = []
        for record in records:
            if record.provider_id is None:
                refreshed.append(record)
                continue
            address = str(record.address)
            provider = self.providers.provider_for(record.resource_type)
            try:
                observed = dict(provider.read(record.resource_type, record.provider_id) or {})
            except ResourceNotFoundError:
                self.ctx.add_warning(
                    resource=address,
                    message="Recurso não encontrado no provider durante refresh; registro removido do estado",
                )
                self.store.save(replace(record, status=ResourceStatus.DESTROYED, updated_at=utc_now_iso()))
                continue

            attributes = {k: observed.get(k, v) for k, v in record.attributes.items()}
            drifted = sorted(k for k, v in record.attributes.items() if attributes[k] != v)
            if drifted:
                self.ctx.add_warning(resource=address, message=f"Drift detectado em: {', '.join(drifted)}")
            outputs = {k: v for k, v in observed.items() if k not in record.attributes}
            refreshed.append(replace(record, attributes=attributes, outputs=outputs))
        return refreshed

    def _snapshot(self) -> List[StateRecord]:
        records = list(self.store.load())
        if self.settings.refresh:
            records = self._refresh(records)
        return records

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def _create_manifest(self, operation: str) -> AtlasManifest:
        return create_manifest(
            run_id=self.ctx.run_id,
            operation=operation,
            started_at=self.ctx.created_at,
            engine_version=__version__,
            config_hash=compute_config_hash(self.config),
            declarations_hash=compute_hash(self.declarations.to_dict()),
        )

    def _run(
        self,
        operation: str,
        plan: Plan,
        records: Sequence[StateRecord],
        graph: Optional[ResolvedGraph],
        cancel: Optional[threading.Event],
    ) -> RunResult:
        manifest = self._create_manifest(operation)
        add_event(
            manifest,
            event_type="run_started",
            ts=datetime.now(timezone.utc),
            payload={"plan": plan.summary()},
        )
        self.ctx.log(resource=None, level="INFO", message=f"{operation} started", plan=plan.summary())

        executor = Executor(
            providers=self.providers,
            store=self.store,
            settings=self.settings,
            ctx=self.ctx,
            manifest=manifest,
            sleep=self._sleep,
        )
        summary = executor.execute(plan, records, cancel=cancel)

        outputs: Dict[str, Any] = {}
        if graph is not None:
            outputs = evaluate_outputs(graph.outputs, summary.applied_values(), graph.variables)

        result = RunResult(
            run_id=self.ctx.run_id,
            operation=operation,
            plan=plan,
            resources=summary.resource_status(),
            entries=summary.outcomes,
            outputs=outputs,
            errors=list(summary.errors),
            cancelled=summary.cancelled,
            manifest=manifest,
        )

        add_event(
            manifest,
            event_type="run_finished",
            ts=datetime.now(timezone.utc),
            payload={"succeeded": result.succeeded, "exit_code": result.exit_code},
        )
        self.ctx.log(
            resource=None,
            level="INFO" if result.succeeded else "ERROR",
            message=f"{operation} finished",
            exit_code=result.exit_code,
            errors=len(result.errors),
        )
        if self.settings.manifest_path:
            save_manifest(manifest, Path(self.settings.manifest_path))
        return result

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------
    def plan(self) -> Plan:
        """Calcula o plano sem executar (não adquire o lock nem escreve no store)."""
        graph, order = self._prepare()
        records = list(self.store.load())
        return reconcile(graph, order, records, self.providers.schemas)

    def apply(self, cancel: Optional[threading.Event] = None) -> RunResult:
        """
        Converge a infraestrutura para as declarações.

        Raises:
            ValidationError, UnresolvedReferenceError, CycleDetectedError:
                Falha de planejamento (nenhuma chamada a provider).
            ConcurrentRunError: O store já está bloqueado por outro run.
        """
        graph, order = self._prepare()
        self.store.acquire_lock(self.ctx.run_id)
        try:
            records = self._snapshot()
            plan = reconcile(graph, order, records, self.providers.schemas)
            return self._run("apply", plan, records, graph, cancel)
        finally:
            self.store.release_lock()

    def destroy(self, cancel: Optional[threading.Event] = None) -> RunResult:
        """Remove todos os recursos registrados, dependentes primeiro."""
        self.store.acquire_lock(self.ctx.run_id)
        try:
            records = self._snapshot()
            self.providers.require({r.resource_type for r in records})
            plan = plan_destroy(records)
            return self._run("destroy", plan, records, None, cancel)
        finally:
            self.store.release_lock()
