"""
Configurações efetivas do engine.

Materializa as seções `engine` e `retry` da configuração resolvida em uma
estrutura imutável e validada. Chaves ausentes assumem os defaults
documentados abaixo; valores inválidos são erro explícito.

```yaml
engine:
  parallelism: 4          # tamanho do worker pool
  refresh: false          # reler estado remoto via Provider.read antes do plano
  manifest_path: null     # quando definido, o Manifest do run é salvo em JSON
retry:
  max_attempts: 3         # tentativas totais para erros transitórios
  backoff_base_seconds: 0.5
  backoff_max_seconds: 30.0
```
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from atlas_provision.core.exceptions import EngineConfigurationError


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff exponencial: `base * 2**(attempt-1)`, limitado a `max_seconds`."""

    max_attempts: int = 3
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 30.0

    def delay_for(self, attempt: int) -> float:
        return min(self.backoff_max_seconds, self.backoff_base_seconds * (2 ** (attempt - 1)))


@dataclass(frozen=True)
class EngineSettings:
    parallelism: int = 4
    refresh: bool = False
    manifest_path: Optional[str] = None
    retry: RetryPolicy = RetryPolicy()

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "EngineSettings":
        """Lê `engine` e `retry` da configuração efetiva.

        Raises:
            EngineConfigurationError: Se algum valor estiver fora do domínio.
        """
        engine_cfg = (config or {}).get("engine", {}) or {}
        retry_cfg = (config or {}).get("retry", {}) or {}

        parallelism = engine_cfg.get("parallelism", 4)
        if isinstance(parallelism, bool) or not isinstance(parallelism, int) or parallelism < 1:
            raise EngineConfigurationError(
                message="engine.parallelism deve ser um inteiro >= 1",
                details={"engine.parallelism": parallelism},
            )

        max_attempts = retry_cfg.get("max_attempts", 3)
        if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
            raise EngineConfigurationError(
                message="retry.max_attempts deve ser um inteiro >= 1",
                details={"retry.max_attempts": max_attempts},
            )

        base = retry_cfg.get("backoff_base_seconds", 0.5)
        cap = retry_cfg.get("backoff_max_seconds", 30.0)
        for key, value in (("retry.backoff_base_seconds", base), ("retry.backoff_max_seconds", cap)):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise EngineConfigurationError(
                    message=f"{key} deve ser um número >= 0",
                    details={key: value},
                )

        manifest_path = engine_cfg.get("manifest_path")
        if manifest_path is not None and not isinstance(manifest_path, str):
            raise EngineConfigurationError(
                message="engine.manifest_path deve ser string",
                details={"engine.manifest_path": manifest_path},
            )

        return cls(
            parallelism=parallelism,
            refresh=bool(engine_cfg.get("refresh", False)),
            manifest_path=manifest_path,
            retry=RetryPolicy(
                max_attempts=max_attempts,
                backoff_base_seconds=float(base),
                backoff_max_seconds=float(cap),
            ),
        )
