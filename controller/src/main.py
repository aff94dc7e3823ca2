"""
Launchpad Controller - run a single deployment pipeline from the command line.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from controller.src.config import get_settings
from controller.src.errors import OrchestratorError
from controller.src.models.pipeline import PipelineStatus
from controller.src.services.orchestrator import create_orchestrator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="launchpad-run",
        description="Trigger a deployment and wait for its pipeline to finish.",
    )
    parser.add_argument("deployment_id", help="Deployment to trigger.")
    parser.add_argument(
        "--actor",
        default="cli",
        help="Name recorded as the pipeline's trigger (default: cli).",
    )
    return parser

async def run_deployment(deployment_id: str, actor: str) -> bool:
    settings = get_settings()
    orchestrator = create_orchestrator(settings)

    try:
        await orchestrator.store.init_schema()
        pipeline_id = await orchestrator.trigger(deployment_id, actor)
        logger.info(f"Pipeline {pipeline_id} started")

        pipeline = await orchestrator.wait(pipeline_id)
        for step in pipeline.steps:
            print(f"  [{step.status.value:>9}] {step.name}")
        print(f"Pipeline {pipeline.id}: {pipeline.status.value}")

        return pipeline.status == PipelineStatus.COMPLETED
    finally:
        await orchestrator.shutdown()

def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        succeeded = asyncio.run(run_deployment(args.deployment_id, args.actor))
    except OrchestratorError as e:
        logger.error(str(e))
        sys.exit(1)

    sys.exit(0 if succeeded else 1)

if __name__ == "__main__":
    main()
