"""
Step executor - runs a single pipeline step through its tool adapter.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from controller.src.errors import StepExecutionFailure
from controller.src.models.pipeline import PipelineStep, StepType
from controller.src.tools import ToolError, ToolHandler, default_toolbox

logger = logging.getLogger(__name__)

# Failures of these steps are logged but never fail the pipeline
BEST_EFFORT_STEPS = {StepType.NOTIFY}

class StepOutcome(BaseModel):
    logs: List[str]
    ok: bool = True

class StepExecutor:
    """
    Dispatches a step to the tool handler registered for its type.
    The executor never mutates the step; the runner applies the outcome.
    """

    def __init__(self, toolbox: Optional[Dict[StepType, ToolHandler]] = None):
        self.toolbox = toolbox if toolbox is not None else default_toolbox()

        missing = [t.value for t in StepType if t not in self.toolbox]
        if missing:
            raise ValueError(f"No tool handler registered for step types: {missing}")

    async def execute(self, step: PipelineStep, context: Optional[Dict[str, Any]] = None) -> StepOutcome:
        """
        Run the step's tool with the step config plus the pipeline context
        (workspace, pipeline_id, outcome so far).
        Raises StepExecutionFailure carrying partial logs if the tool fails.
        """
        handler = self.toolbox[step.type]
        config = {**step.config, **(context or {})}
        logs = [f"Starting step: {step.name}"]

        try:
            logs.extend(await handler(config))
        except Exception as e:
            partial = e.logs if isinstance(e, ToolError) else []

            if step.type in BEST_EFFORT_STEPS:
                logger.warning(f"Step {step.name} failed (ignored): {e}")
                logs.extend(partial)
                logs.append(f"WARNING: {e}")
                logs.append(f"Step finished with warnings: {step.name}")
                return StepOutcome(logs=logs, ok=True)

            logger.error(f"Step {step.name} ({step.type.value}) failed: {e}")
            raise StepExecutionFailure(str(e) or type(e).__name__, logs + partial) from e

        logs.append(f"Step completed successfully: {step.name}")
        return StepOutcome(logs=logs, ok=True)
