"""
Decide whether a pipeline step may run given the state of its dependencies.
"""

from enum import Enum
from typing import List, Set

from controller.src.models.pipeline import PipelineStep, StepStatus

class Eligibility(str, Enum):
    RUNNABLE = "runnable"
    BLOCKED = "blocked"
    SKIP = "skip"

SKIP_STATUSES = {StepStatus.FAILED, StepStatus.SKIPPED, StepStatus.CANCELLED}
WAITING_STATUSES = {StepStatus.PENDING, StepStatus.RUNNING}

def unfinished_dependencies(step: PipelineStep, all_steps: List[PipelineStep]) -> List[str]:
    by_id = {s.id: s for s in all_steps}
    return [
        dep_id for dep_id in step.dependencies
        if dep_id in by_id and by_id[dep_id].status in WAITING_STATUSES
    ]

def resolve_eligibility(step: PipelineStep, all_steps: List[PipelineStep]) -> Eligibility:
    """
    RUNNABLE if every dependency completed, SKIP if any dependency failed,
    was skipped or cancelled (or does not exist), BLOCKED otherwise.
    """
    by_id = {s.id: s for s in all_steps}
    waiting = False

    for dep_id in step.dependencies:
        dependency = by_id.get(dep_id)
        if dependency is None or dependency.status in SKIP_STATUSES:
            return Eligibility.SKIP
        if dependency.status in WAITING_STATUSES:
            waiting = True

    return Eligibility.BLOCKED if waiting else Eligibility.RUNNABLE

def transitive_dependents(step_id: str, all_steps: List[PipelineStep]) -> Set[str]:
    """Ids of all steps that depend on step_id directly or transitively."""
    dependents: Set[str] = set()
    frontier = {step_id}

    while frontier:
        found = {
            s.id for s in all_steps
            if s.id not in dependents and frontier.intersection(s.dependencies)
        }
        dependents |= found
        frontier = found

    return dependents
