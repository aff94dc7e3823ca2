"""
Kubernetes client initialization and namespace management.
"""

from kubernetes import client, config
from kubernetes.client.rest import ApiException
import logging

from controller.src.config import get_settings

logger = logging.getLogger(__name__)

_api_client = None
_core_v1 = None

def init_k8s_client() -> bool:
    """Initialize Kubernetes client."""
    global _api_client, _core_v1
    settings = get_settings()

    try:
        if settings.k8s_in_cluster:
            # Running inside Kubernetes
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes config")
        else:
            # Uses the context written by `gcloud container clusters get-credentials`
            config.load_kube_config()
            logger.info("Loaded local Kubernetes config")

        _api_client = client.ApiClient()
        _core_v1 = client.CoreV1Api(_api_client)
        return True
    except Exception as e:
        logger.error(f"Failed to initialize Kubernetes client: {e}")
        return False

def get_core_api() -> client.CoreV1Api:
    """Get CoreV1 API client for namespace operations."""
    if _core_v1 is None and not init_k8s_client():
        raise RuntimeError("Kubernetes client is not available")
    return _core_v1

def ensure_namespace(namespace: str) -> bool:
    """
    Ensure a namespace exists.
    Returns True if it was created, False if it already existed.
    """
    core_v1 = get_core_api()

    try:
        core_v1.read_namespace(name=namespace)
        logger.info(f"Namespace '{namespace}' exists")
        return False
    except ApiException as e:
        if e.status != 404:
            raise

    body = client.V1Namespace(
        metadata=client.V1ObjectMeta(
            name=namespace,
            labels={"app.kubernetes.io/managed-by": "launchpad"},
        )
    )
    try:
        core_v1.create_namespace(body=body)
    except ApiException as e:
        if e.status == 409:
            # Created concurrently
            return False
        raise

    logger.info(f"Created namespace '{namespace}'")
    return True
