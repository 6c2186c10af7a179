"""
Atlas Provision — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas Provision.
Erros são artefatos do run e fazem parte do contrato operacional do
engine, devendo ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

O `RunResult` nunca carrega exceções cruas: toda falha de execução é
convertida em `AtlasErrorPayload` antes de sair do executor.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .exceptions import (
    AtlasException,
    ConcurrentRunError,
    CycleDetectedError,
    EngineConfigurationError,
    PermanentProviderError,
    ProviderError,
    TransientProviderError,
    UnresolvedReferenceError,
    ValidationError,
)


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtlasErrorPayload:
    """
    Payload canônico de erro do Atlas Provision.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Planejamento
DECLARATION_INVALID = "DECLARATION_INVALID"
REFERENCE_UNRESOLVED = "REFERENCE_UNRESOLVED"
DEPENDENCY_CYCLE = "DEPENDENCY_CYCLE"

# Provider
PROVIDER_TRANSIENT_ERROR = "PROVIDER_TRANSIENT_ERROR"
PROVIDER_PERMANENT_ERROR = "PROVIDER_PERMANENT_ERROR"

# Execução
DEPENDENCY_FAILED = "DEPENDENCY_FAILED"
STATE_LOCKED = "STATE_LOCKED"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"
ENGINE_CONFIGURATION_ERROR = "ENGINE_CONFIGURATION_ERROR"

_CODES_BY_EXCEPTION = (
    (ValidationError, DECLARATION_INVALID),
    (UnresolvedReferenceError, REFERENCE_UNRESOLVED),
    (CycleDetectedError, DEPENDENCY_CYCLE),
    (TransientProviderError, PROVIDER_TRANSIENT_ERROR),
    (PermanentProviderError, PROVIDER_PERMANENT_ERROR),
    (ConcurrentRunError, STATE_LOCKED),
    (EngineConfigurationError, ENGINE_CONFIGURATION_ERROR),
)


def error_code_for(exc: BaseException) -> str:
    """Retorna o código estável do catálogo para uma exceção."""
    for exc_type, code in _CODES_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return code
    if isinstance(exc, ProviderError):
        return PROVIDER_TRANSIENT_ERROR if exc.transient else PROVIDER_PERMANENT_ERROR
    return ENGINE_EXECUTION_ERROR


def exception_to_error(exc: BaseException, *, address: Optional[str] = None) -> AtlasErrorPayload:
    """Converte exceções em AtlasErrorPayload (serializável, acionável).

    Regras:
    - AtlasException: já vem com message/details/hint.
    - Outras exceções: encapsular como ENGINE_EXECUTION_ERROR sem expor stack trace.
    """
    if isinstance(exc, AtlasException):
        details = dict(exc.details or {})
        if address is not None:
            details.setdefault("resource", address)
        return AtlasErrorPayload(
            type=error_code_for(exc),
            message=str(exc) or "Erro de execução",
            details=details,
            hint=exc.hint,
        )

    details = {"exception_class": exc.__class__.__name__}
    if address is not None:
        details["resource"] = address
    return AtlasErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message=str(exc) or "Erro inesperado durante execução",
        details=details,
        hint="Verifique a implementação do provider para este tipo de recurso",
    )


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def dependency_failed(
    *,
    address: str,
    blocked_by: str,
    hint: str = "Corrija a falha do recurso upstream e reexecute; o estado deste recurso não foi alterado.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=DEPENDENCY_FAILED,
        message="Recurso não processado porque uma dependência falhou",
        details={
            "resource": address,
            "blocked_by": blocked_by,
        },
        hint=hint,
    )


def errors_to_dicts(errors: List[AtlasErrorPayload]) -> List[Dict[str, Any]]:
    return [e.to_dict() for e in errors]
