"""
Orchestration error taxonomy.
"""

from typing import List, Optional


class OrchestratorError(Exception):
    """Base class for errors raised by the orchestration core."""
    pass


class NotFound(OrchestratorError):
    """Raised when a referenced deployment or pipeline does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class Conflict(OrchestratorError):
    """Raised when a deployment already has an active pipeline."""
    pass


class InvalidState(OrchestratorError):
    """Raised when an operation is not allowed in the record's current state."""
    pass


class PipelineBuildError(OrchestratorError):
    """Raised when a deployment cannot be turned into pipeline steps."""
    pass


class StepExecutionFailure(OrchestratorError):
    """Raised by the step executor when an external tool fails.

    Carries whatever log lines the tool produced before failing.
    """

    def __init__(self, message: str, logs: Optional[List[str]] = None):
        super().__init__(message)
        self.logs = list(logs or [])


class ConsistencyFault(OrchestratorError):
    """A step was reached while its dependencies were still unfinished."""

    def __init__(self, pipeline_id: str, step_id: str, waiting_on: List[str]):
        self.pipeline_id = pipeline_id
        self.step_id = step_id
        self.waiting_on = waiting_on
        super().__init__(
            f"Consistency fault in pipeline {pipeline_id}: step {step_id} "
            f"reached while dependencies {waiting_on} are unfinished"
        )
