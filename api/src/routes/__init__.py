from api.src.routes.health import router as health_router
from api.src.routes.deployments import router as deployments_router
from api.src.routes.pipelines import router as pipelines_router
from api.src.routes.events import router as events_router
from api.src.routes.metrics import router as metrics_router

__all__ = [
    "health_router",
    "deployments_router",
    "pipelines_router",
    "events_router",
    "metrics_router",
]
