"""
Manifest v1 — rastreabilidade forense de runs do Atlas Provision.

O Manifest consolida, de forma determinística e auditável:
    - metadados do run (run_id, operação, versão do engine)
    - hashes das entradas (configuração efetiva e declarações)
    - estado incremental de cada entrada do plano executada
    - Event Log ordenado de eventos explícitos

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente
    - A ordem do Event Log reflete a ordem real de despacho/conclusão
    - O Manifest é serializável e reconstruível (round-trip)

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - O formato de persistência é JSON determinístico
    - O Manifest é um registro do run; ele não substitui o state store

Limites explícitos:
    - Não executa operações
    - Não decide políticas de execução
    - Não é consultado pelo planejamento de runs futuros
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Normaliza um timestamp para timezone-aware em UTC (naive é assumido UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class AtlasManifest:
    """
    Manifest v1 — registro forense de um run.

    Campos principais:
        - run: metadados da execução (run_id, operation, started_at, engine_version)
        - inputs: hashes de configuração e declarações
        - entries: estado incremental de cada entrada do plano, por chave
          (`type.name:action`)
        - events: Event Log ordenado

    Invariantes:
        - `entries` é sempre um dicionário indexado pela chave da entrada
        - `events` é sempre uma lista ordenada
        - A estrutura completa é serializável
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    entries: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "entries": {k: dict(v) for k, v in self.entries.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AtlasManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            entries={k: dict(v) for k, v in (data.get("entries", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def create_manifest(
    *,
    run_id: str,
    operation: str,
    started_at: datetime,
    engine_version: str,
    config_hash: str,
    declarations_hash: str,
) -> AtlasManifest:
    """
    Cria o Manifest inicial de um run.

    ⚠️ Importante: esta função **não emite eventos implicitamente**.
    O Event Log inicia vazio e só é preenchido por chamadas explícitas.

    Args:
        run_id (str): Identificador único do run.
        operation (str): `apply` ou `destroy`.
        started_at (datetime): Timestamp de início.
        engine_version (str): Versão do Atlas Provision.
        config_hash (str): Hash da configuração efetiva.
        declarations_hash (str): Hash do conjunto de declarações.

    Returns:
        AtlasManifest: Manifest inicializado, sem entradas nem eventos.
    """
    return AtlasManifest(
        run={
            "run_id": run_id,
            "operation": operation,
            "started_at": _iso(started_at),
            "engine_version": engine_version,
        },
        inputs={
            "config_hash": config_hash,
            "declarations_hash": declarations_hash,
        },
    )


def add_event(
    manifest: AtlasManifest,
    *,
    event_type: str,
    ts: datetime,
    entry: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """Adiciona um evento explícito ao Event Log (ordem de chamada = ordem canônica)."""
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if entry is not None:
        ev["entry"] = entry
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def entry_started(manifest: AtlasManifest, *, entry: str, action: str, ts: datetime) -> None:
    """Marca uma entrada do plano como `running` e registra `entry_started`."""
    manifest.entries.setdefault(entry, {}).update(
        {
            "entry": entry,
            "action": action,
            "status": "running",
            "started_at": _iso(ts),
        }
    )
    add_event(manifest, event_type="entry_started", ts=ts, entry=entry, payload={"action": action})


def entry_finished(
    manifest: AtlasManifest,
    *,
    entry: str,
    ts: datetime,
    status: str,
    attempts: int = 0,
    provider_id: Optional[str] = None,
) -> None:
    """
    Registra a conclusão de uma entrada do plano.

    A duração é calculada a partir de `started_at` quando disponível;
    entradas concluídas sem despacho (ex.: `noop`, `skipped`) têm duração zero.
    """
    s = manifest.entries.setdefault(entry, {"entry": entry})
    started_iso = s.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts
    s.update(
        {
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "attempts": attempts,
            "provider_id": provider_id,
        }
    )
    add_event(
        manifest,
        event_type="entry_finished",
        ts=ts,
        entry=entry,
        payload={"status": status, "duration_ms": s["duration_ms"]},
    )


def entry_failed(manifest: AtlasManifest, *, entry: str, ts: datetime, error: Dict[str, Any]) -> None:
    """Marca a entrada como `failed`, associando o payload de erro."""
    s = manifest.entries.setdefault(entry, {"entry": entry})
    s.update(
        {
            "status": "failed",
            "finished_at": _iso(ts),
            "error": error,
        }
    )
    add_event(manifest, event_type="entry_failed", ts=ts, entry=entry, payload={"error": error})


def save_manifest(manifest: AtlasManifest, path: Path) -> None:
    """
    Persiste um Manifest em disco no formato JSON.

    Decisões arquiteturais:
        - A ordenação de chaves é estável (`sort_keys=True`)
        - Diretórios intermediários são criados automaticamente

    Raises:
        OSError: Em caso de falha ao criar diretórios ou escrever o arquivo.
        TypeError: Se o conteúdo do Manifest não for serializável em JSON.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(manifest.to_dict(), ensure_ascii=False, indent=2, sort_keys=True),
        encoding="utf-8",
    )


def load_manifest(path: Path) -> AtlasManifest:
    data = json.loads(path.read_text(encoding="utf-8"))
    return AtlasManifest.from_dict(data)
