"""
State stores do Atlas Provision.

O state store é o único recurso mutável compartilhado de um run. Ele é
passado explicitamente ao engine (nunca acessado como singleton), o que
mantém o planejamento puro e permite testes com o store em memória.

Contrato (`StateStore`):
    - load()            → snapshot consistente de todos os registros
    - save(record)      → escrita atômica de um registro
                          (status `destroyed` remove o registro)
    - acquire_lock(id)  → lock exclusivo do run; `ConcurrentRunError` se ocupado
    - release_lock()    → libera o lock

Implementações:
    - InMemoryStateStore → testes e uso embutido
    - JsonFileStateStore → arquivo JSON reescrito atomicamente
                           (arquivo temporário + `os.replace`) e lock em
                           arquivo criado com `O_CREAT | O_EXCL`
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

from atlas_provision.core.exceptions import ConcurrentRunError

from .records import ResourceStatus, StateRecord, utc_now_iso


STATE_FORMAT_VERSION = 1


@runtime_checkable
class StateStore(Protocol):
    def load(self) -> List[StateRecord]:
        ...

    def save(self, record: StateRecord) -> None:
        ...

    def acquire_lock(self, run_id: str) -> None:
        ...

    def release_lock(self) -> None:
        ...


class InMemoryStateStore:
    """Store em memória (não durável)."""

    def __init__(self, records: Optional[List[StateRecord]] = None):
        self._records: Dict[str, StateRecord] = {str(r.address): r for r in records or []}
        self._write_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._holder: Optional[str] = None
        self.saves: int = 0

    def load(self) -> List[StateRecord]:
        with self._write_lock:
            return list(self._records.values())

    def save(self, record: StateRecord) -> None:
        with self._write_lock:
            key = str(record.address)
            if record.status == ResourceStatus.DESTROYED:
                self._records.pop(key, None)
            else:
                self._records[key] = record
            self.saves += 1

    def get(self, address: str) -> Optional[StateRecord]:
        with self._write_lock:
            return self._records.get(address)

    def acquire_lock(self, run_id: str) -> None:
        if not self._run_lock.acquire(blocking=False):
            raise ConcurrentRunError(
                message="State store is locked by another run",
                details={"holder": self._holder, "requested_by": run_id},
                hint="Aguarde o término do run em andamento.",
            )
        self._holder = run_id

    def release_lock(self) -> None:
        self._holder = None
        if self._run_lock.locked():
            self._run_lock.release()


class JsonFileStateStore:
    """Store durável em arquivo JSON com lock exclusivo em arquivo irmão."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self._write_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Leitura / escrita
    # ------------------------------------------------------------------
    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"version": STATE_FORMAT_VERSION, "resources": {}}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        data.setdefault("resources", {})
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data["version"] = STATE_FORMAT_VERSION
        data["serial"] = int(data.get("serial", 0)) + 1
        fd, tmp = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def load(self) -> List[StateRecord]:
        with self._write_lock:
            data = self._read()
        return [StateRecord.from_dict(r) for r in data["resources"].values()]

    def save(self, record: StateRecord) -> None:
        with self._write_lock:
            data = self._read()
            key = str(record.address)
            if record.status == ResourceStatus.DESTROYED:
                data["resources"].pop(key, None)
            else:
                data["resources"][key] = record.to_dict()
            self._write(data)

    # ------------------------------------------------------------------
    # Lock exclusivo do run
    # ------------------------------------------------------------------
    def acquire_lock(self, run_id: str) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            holder: Dict[str, Any] = {}
            try:
                holder = json.loads(self.lock_path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                pass
            raise ConcurrentRunError(
                message="State store is locked by another run",
                details={"lock_path": str(self.lock_path), "holder": holder, "requested_by": run_id},
                hint="Aguarde o término do run em andamento ou remova o lock se o processo não existe mais.",
            )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"run_id": run_id, "acquired_at": utc_now_iso(), "pid": os.getpid()}, f)

    def release_lock(self) -> None:
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            pass
