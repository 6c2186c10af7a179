"""
Avaliação de outputs declarados.

Executada após o executor (com sucesso total ou parcial). Um output cujo
recurso referenciado não chegou a `applied` resolve para um marcador
explícito `Unavailable`, nunca para `None`, e nunca interrompe o run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from atlas_provision.core.model.declarations import Output
from atlas_provision.core.model.values import Reference, ResourceAddress, VariableReference, lookup_path


@dataclass(frozen=True)
class Unavailable:
    """Marcador de output indisponível (recurso não aplicado ou atributo ausente)."""

    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"unavailable": True, "reason": self.reason}


class _Missing(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _evaluate(
    expression: Any,
    values: Mapping[ResourceAddress, Dict[str, Any]],
    variables: Mapping[str, Any],
) -> Any:
    if isinstance(expression, Reference):
        if expression.address not in values:
            raise _Missing(f"{expression.address} did not reach applied state")
        try:
            return lookup_path(values[expression.address], expression.attribute)
        except KeyError:
            raise _Missing(f"{expression} is not available on {expression.address}") from None
    if isinstance(expression, VariableReference):
        return variables[expression.name]
    if isinstance(expression, dict):
        return {k: _evaluate(v, values, variables) for k, v in expression.items()}
    if isinstance(expression, (list, tuple)):
        return [_evaluate(v, values, variables) for v in expression]
    return expression


def evaluate_outputs(
    outputs: List[Output],
    values: Mapping[ResourceAddress, Dict[str, Any]],
    variables: Mapping[str, Any],
) -> Dict[str, Any]:
    """
    Avalia cada output contra os valores finais dos recursos aplicados.

    Args:
        outputs (List[Output]): Outputs declarados.
        values: Valores (atributos + outputs do provider + `id`) apenas dos
            recursos que terminaram o run em `applied`.
        variables: Valores de variáveis resolvidos.

    Returns:
        Dict[str, Any]: nome → valor, ou `Unavailable` quando qualquer
        recurso referenciado não está disponível.
    """
    result: Dict[str, Any] = {}
    for out in outputs:
        try:
            result[out.name] = _evaluate(out.expression, values, variables)
        except _Missing as missing:
            result[out.name] = Unavailable(reason=missing.reason)
    return result
