"""
Pacote de rastreabilidade do Atlas Provision — Manifest v1.

API pública exposta:
    - AtlasManifest   → estrutura canônica do Manifest
    - create_manifest → criação explícita do Manifest de um run
    - add_event       → registro explícito de eventos no Event Log
    - entry_started   → marca início de uma entrada do plano
    - entry_finished  → registra conclusão de uma entrada
    - entry_failed    → registra falha de uma entrada
    - save_manifest   → persistência do Manifest em JSON
    - load_manifest   → restauração determinística do Manifest
"""

from .manifest import (
    AtlasManifest,
    create_manifest,
    add_event,
    entry_started,
    entry_finished,
    entry_failed,
    save_manifest,
    load_manifest,
)

__all__ = [
    "AtlasManifest",
    "create_manifest",
    "add_event",
    "entry_started",
    "entry_finished",
    "entry_failed",
    "save_manifest",
    "load_manifest",
]
