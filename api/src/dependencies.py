from fastapi import Request

from controller.src.services.orchestrator import Orchestrator

def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator
