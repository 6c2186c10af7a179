"""
Grafo de dependências do Atlas Provision.

Componentes:
    - resolver  → resolução de variáveis/referências e extração de arestas
    - scheduler → ordenação topológica determinística (Kahn) e ordem de destroy

Invariantes:
    - Recursos são identificados por `ResourceAddress`; o grafo é uma
      estrutura de adjacência explícita, nunca ponteiros entre objetos
    - Um recurso nunca é ordenado antes de suas dependências
"""

from .resolver import ResolvedGraph, ResolvedResource, resolve_references, resolve_variables
from .scheduler import destroy_order, schedule

__all__ = [
    "ResolvedGraph",
    "ResolvedResource",
    "resolve_references",
    "resolve_variables",
    "destroy_order",
    "schedule",
]
