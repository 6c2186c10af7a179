"""
Hashing canônico do Atlas Provision.

Gera hashes determinísticos (SHA-256 sobre JSON canônico) usados para
identificar a configuração efetiva e o conjunto de declarações de um run
no Manifest.

Invariantes:
    - Estruturas equivalentes produzem o mesmo hash, independente da
      ordem original das chaves
    - O valor gerado é sempre uma string hexadecimal de 64 caracteres
"""

import hashlib
import json
from typing import Any, Dict


def compute_hash(data: Any) -> str:
    """Hash SHA-256 da serialização JSON canônica de `data`.

    Valores não serializáveis em JSON são convertidos via `str`.
    """
    canonical_json = json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico da configuração efetiva do engine.

    Política de hashing (v1):
        - Serialização JSON canônica
        - Ordenação estável de chaves
        - Separadores compactos
        - Codificação UTF-8
        - Algoritmo SHA-256

    Args:
        config (Dict[str, Any]): Configuração efetiva.

    Returns:
        str: Hash SHA-256 hexadecimal da configuração.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )
    return compute_hash(config)
