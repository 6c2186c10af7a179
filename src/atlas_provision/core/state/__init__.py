"""
Estado persistido do Atlas Provision.

Componentes:
    - records → `StateRecord` e `ResourceStatus`
    - store   → contrato `StateStore` e implementações em memória e JSON

Invariantes:
    - Durante um run, apenas o Executor escreve no store
    - Toda escrita é serializada (um escritor por vez)
    - Um segundo run contra o mesmo store falha com `ConcurrentRunError`
"""

from .records import ResourceStatus, StateRecord, utc_now_iso
from .store import InMemoryStateStore, JsonFileStateStore, StateStore

__all__ = [
    "ResourceStatus",
    "StateRecord",
    "utc_now_iso",
    "InMemoryStateStore",
    "JsonFileStateStore",
    "StateStore",
]
