"""
Atlas Provision — Canonical Exceptions (v1)

Este módulo define as exceções tipadas do Atlas Provision.

Objetivo:
- Permitir que resolver, scheduler, reconciler e executor levantem
  exceções semânticas tipadas
- Facilitar o mapeamento determinístico para AtlasErrorPayload
- Distinguir erros de planejamento (fatais, sem efeitos colaterais) de
  erros de execução (escopados ao recurso que falhou)

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Erros de provider são classificados como transitórios ou permanentes;
  apenas os transitórios são elegíveis a retry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Planejamento (fatais antes de qualquer chamada a provider)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanningError(AtlasException):
    """Base dos erros de validação/resolução/agendamento."""


@dataclass(frozen=True)
class ValidationError(PlanningError):
    """Declarações inválidas (nome duplicado, atributo ausente, variável desconhecida)."""


@dataclass(frozen=True)
class UnresolvedReferenceError(PlanningError):
    """Referência aponta para recurso inexistente ou atributo fora do schema."""


@dataclass(frozen=True)
class CycleDetectedError(PlanningError):
    """O grafo de dependências não é um DAG.

    `details["cycle"]` contém o caminho completo do ciclo, com o primeiro
    nó repetido ao final (ex.: ``["a.x", "b.y", "a.x"]``).
    """

    @property
    def cycle(self) -> List[str]:
        return list(self.details.get("cycle", []))


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderError(AtlasException):
    """Erro reportado por um provider durante create/read/update/delete."""

    transient: bool = False


@dataclass(frozen=True)
class TransientProviderError(ProviderError):
    """Timeout, throttling: elegível a retry com backoff exponencial."""

    transient: bool = True


@dataclass(frozen=True)
class PermanentProviderError(ProviderError):
    """Atributo rejeitado, conflito: nunca é retentado."""


@dataclass(frozen=True)
class ResourceNotFoundError(PermanentProviderError):
    """O recurso remoto não existe mais (usado por `read` durante refresh)."""


# ---------------------------------------------------------------------------
# Engine / Store
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConcurrentRunError(AtlasException):
    """Outro run mantém o lock exclusivo do state store."""


@dataclass(frozen=True)
class EngineConfigurationError(AtlasException):
    """Configuração inválida ou inconsistente para execução."""
