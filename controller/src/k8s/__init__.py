from controller.src.k8s.client import (
    init_k8s_client,
    get_core_api,
    ensure_namespace,
)

__all__ = [
    "init_k8s_client",
    "get_core_api",
    "ensure_namespace",
]
