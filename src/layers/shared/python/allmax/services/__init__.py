"""Service classes for intake hand-off."""

from allmax.services.orchestration import OrchestrationQueue, generate_problem_id

__all__ = [
    "OrchestrationQueue",
    "generate_problem_id",
]
