"""
Camada de configuração do Atlas Provision.

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Geração de hash canônico para rastreabilidade
    - Materialização validada das chaves lidas pelo engine (`EngineSettings`)

Princípios fundamentais:
    - Configuração não contém declarações de infraestrutura
    - Overrides são sempre explícitos
    - A mesma entrada sempre produz a mesma configuração final
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash, compute_hash
from .loader import load_config
from .merge import deep_merge
from .settings import EngineSettings, RetryPolicy

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "compute_hash",
    "load_config",
    "deep_merge",
    "EngineSettings",
    "RetryPolicy",
]
