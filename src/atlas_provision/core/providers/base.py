"""
Contrato canônico de Provider do Atlas Provision.

Um Provider implementa as operações remotas de um ou mais tipos de
recurso. O engine o trata como opaco: não conhece autenticação, payloads
REST nem protocolo de plugin.

Responsabilidades de um Provider:
    - executar create/read/update/delete para um tipo de recurso
    - classificar falhas como transitórias ou permanentes, levantando
      `TransientProviderError` / `PermanentProviderError`

Invariantes:
    - `create` retorna sempre um `provider_id` não vazio
    - `read` levanta `ResourceNotFoundError` quando o recurso não existe
    - A conformidade é verificada por duck typing (`@runtime_checkable`)

Limites explícitos:
    - Não decide retry (responsabilidade do Executor)
    - Não escreve no state store
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Protocol, runtime_checkable


@dataclass(frozen=True)
class ProviderResult:
    """Resultado de `create`: identificador remoto + atributos computados."""

    provider_id: str
    outputs: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Provider(Protocol):
    """
    Protocolo mínimo que todo provider deve satisfazer.

    O protocolo não impõe herança, apenas conformidade estrutural.
    """

    def create(self, resource_type: str, attributes: Dict[str, Any]) -> ProviderResult:
        ...

    def read(self, resource_type: str, provider_id: str) -> Dict[str, Any]:
        ...

    def update(self, resource_type: str, provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Atualiza in-place e retorna os atributos computados resultantes."""
        ...

    def delete(self, resource_type: str, provider_id: str) -> None:
        ...
