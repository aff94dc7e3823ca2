import logging
import sys

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from api.src.config import get_settings
from api.src.routes import (
    health_router,
    deployments_router,
    pipelines_router,
    events_router,
    metrics_router,
)
from controller.src.config import get_settings as get_controller_settings
from controller.src.errors import (
    Conflict,
    InvalidState,
    NotFound,
    OrchestratorError,
    PipelineBuildError,
)
from controller.src.services.orchestrator import create_orchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

settings = get_settings()

ERROR_STATUS = {
    NotFound: 404,
    Conflict: 409,
    InvalidState: 400,
    PipelineBuildError: 422,
}

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Launchpad API")
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = create_orchestrator(get_controller_settings())
        if settings.create_schema:
            await app.state.orchestrator.store.init_schema()
    yield
    # Shutdown
    logger.info("Shutting down Launchpad API")
    await app.state.orchestrator.shutdown()

app = FastAPI(
    title="Launchpad",
    description="Deployment pipeline orchestration",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(OrchestratorError)
async def orchestrator_error_handler(request: Request, exc: OrchestratorError):
    status_code = ERROR_STATUS.get(type(exc), 500)
    if status_code == 500:
        logger.error(f"Unhandled orchestrator error on {request.url.path}: {exc}")
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc)})

# Include routers
app.include_router(health_router)
app.include_router(deployments_router, prefix="/api")
app.include_router(pipelines_router, prefix="/api")
app.include_router(metrics_router, prefix="/api")
app.include_router(events_router)

@app.get("/")
async def root():
    return {
        "name": "Launchpad",
        "version": "0.1.0",
        "docs": "/docs"
    }

def serve():
    uvicorn.run("api.src.main:app", host=settings.api_host, port=settings.api_port, log_level="info")

if __name__ == "__main__":
    serve()
