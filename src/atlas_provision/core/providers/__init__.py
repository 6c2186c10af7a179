"""
Interface de providers do Atlas Provision.

    - base     → protocolo `Provider` e `ProviderResult`
    - registry → `ProviderRegistry` (tipo de recurso → schema + provider)
"""

from .base import Provider, ProviderResult
from .registry import ProviderRegistry

__all__ = ["Provider", "ProviderResult", "ProviderRegistry"]
