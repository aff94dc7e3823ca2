from controller.src.services.builder import build_pipeline_steps, validate_deployment
from controller.src.services.resolver import (
    Eligibility,
    resolve_eligibility,
    transitive_dependents,
)
from controller.src.services.executor import StepExecutor, StepOutcome
from controller.src.services.runner import PipelineRunner
from controller.src.services.orchestrator import Orchestrator, create_orchestrator
from controller.src.services.store import PipelineStore
from controller.src.services.broadcaster import RedisBroadcaster, room_channel

__all__ = [
    "build_pipeline_steps",
    "validate_deployment",
    "Eligibility",
    "resolve_eligibility",
    "transitive_dependents",
    "StepExecutor",
    "StepOutcome",
    "PipelineRunner",
    "Orchestrator",
    "PipelineStore",
    "RedisBroadcaster",
    "room_channel",
    "create_orchestrator",
]
