"""
RunContext — Contexto canônico de execução do Atlas Provision.

O RunContext é a estrutura compartilhada de um run do engine e o único
meio permitido de:
- registro de logs estruturados de execução
- coleta de warnings não fatais associados a recursos
- acesso à configuração efetiva do run

Princípios fundamentais:
- Isolamento por execução (cada run possui seu próprio contexto)
- Nenhum componente acessa estado global para registrar eventos
- Workers do executor registram eventos concorrentemente; toda mutação
  é protegida por lock
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class RunContext:
    """
    Contexto de execução compartilhado de um run.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva (defaults + local deep-merge)
    - meta: metadados de execução (ex.: operação, paths)
    - warnings: warnings por endereço de recurso
    - events: log estruturado de eventos
    """

    run_id: str
    created_at: datetime
    config: Dict[str, Any]
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @classmethod
    def new(cls, *, config: Optional[Dict[str, Any]] = None, run_id: Optional[str] = None, **meta: Any) -> "RunContext":
        return cls(
            run_id=run_id or uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            config=dict(config or {}),
            meta=dict(meta),
        )

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, resource: Optional[str], level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "resource": resource,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, resource: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(resource, []).append(message)
        self.log(resource=resource, level="WARNING", message=message)

    def events_for(self, resource: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [e for e in self.events if e.get("resource") == resource]
