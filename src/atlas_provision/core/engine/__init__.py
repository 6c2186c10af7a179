"""
Engine do Atlas Provision.

Componentes:
    - plan       → `Plan`, `PlanEntry`, `PlanAction`, `AttributeChange`
    - reconciler → estado desejado x estado conhecido → `Plan`
    - executor   → worker pool, retry, persistência por entrada
    - outputs    → avaliação de outputs (`Unavailable`)
    - engine     → fachada `Engine` (plan / apply / destroy) e `RunResult`
"""

from .engine import (
    EXIT_PARTIAL_FAILURE,
    EXIT_PLANNING_ERROR,
    EXIT_SUCCESS,
    Engine,
    RunResult,
    exit_code_for_error,
)
from .executor import EntryOutcome, ExecutionSummary, Executor
from .outputs import Unavailable, evaluate_outputs
from .plan import AttributeChange, Plan, PlanAction, PlanEntry
from .reconciler import plan_destroy, reconcile

__all__ = [
    "Engine",
    "RunResult",
    "exit_code_for_error",
    "EXIT_SUCCESS",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_PLANNING_ERROR",
    "EntryOutcome",
    "ExecutionSummary",
    "Executor",
    "Unavailable",
    "evaluate_outputs",
    "AttributeChange",
    "Plan",
    "PlanAction",
    "PlanEntry",
    "plan_destroy",
    "reconcile",
]
