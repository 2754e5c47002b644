"""
Thin get/create/update wrappers over the Kubernetes API.

Configmaps, statefulsets, services, deployments and the custom object are
exchanged as plain dicts (the shape the API server speaks); pods are kept
as V1Pod models because callers read and modify them in place.
"""

import logging
from typing import Any, Dict, List, Optional

from kubernetes import client

from redis_operator.api import GROUP, PLURAL, VERSION

logger = logging.getLogger(__name__)


def label_selector(labels: Dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


class KubernetesClient:
    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.api_client = api_client or client.ApiClient()
        self.core = client.CoreV1Api(self.api_client)
        self.apps = client.AppsV1Api(self.api_client)
        self.custom = client.CustomObjectsApi(self.api_client)

    def _to_dict(self, obj) -> Dict[str, Any]:
        return self.api_client.sanitize_for_serialization(obj)

    @staticmethod
    def _meta(body: Dict[str, Any]):
        return body["metadata"]["name"], body["metadata"]["namespace"]

    # configmap
    def get_configmap(self, name: str, namespace: str) -> Dict[str, Any]:
        logger.debug(f"Getting configmap {namespace}/{name}")
        return self._to_dict(self.core.read_namespaced_config_map(name, namespace))

    def create_configmap(self, body: Dict[str, Any]):
        name, namespace = self._meta(body)
        logger.debug(f"Creating configmap {namespace}/{name}")
        self.core.create_namespaced_config_map(namespace, body)

    def update_configmap(self, body: Dict[str, Any]):
        name, namespace = self._meta(body)
        logger.debug(f"Updating configmap {namespace}/{name}")
        self.core.patch_namespaced_config_map(name, namespace, body)

    # statefulset
    def get_statefulset(self, name: str, namespace: str) -> Dict[str, Any]:
        logger.debug(f"Getting statefulset {namespace}/{name}")
        return self._to_dict(self.apps.read_namespaced_stateful_set(name, namespace))

    def create_statefulset(self, body: Dict[str, Any]):
        name, namespace = self._meta(body)
        logger.debug(f"Creating statefulset {namespace}/{name}")
        self.apps.create_namespaced_stateful_set(namespace, body)

    def update_statefulset(self, body: Dict[str, Any]):
        name, namespace = self._meta(body)
        logger.debug(f"Updating statefulset {namespace}/{name}")
        self.apps.patch_namespaced_stateful_set(name, namespace, body)

    # service
    def get_service(self, name: str, namespace: str) -> Dict[str, Any]:
        logger.debug(f"Getting service {namespace}/{name}")
        return self._to_dict(self.core.read_namespaced_service(name, namespace))

    def create_service(self, body: Dict[str, Any]):
        name, namespace = self._meta(body)
        logger.debug(f"Creating service {namespace}/{name}")
        self.core.create_namespaced_service(namespace, body)

    def update_service(self, body: Dict[str, Any]):
        name, namespace = self._meta(body)
        logger.debug(f"Updating service {namespace}/{name}")
        self.core.patch_namespaced_service(name, namespace, body)

    # deployment
    def get_deployment(self, name: str, namespace: str) -> Dict[str, Any]:
        logger.debug(f"Getting deployment {namespace}/{name}")
        return self._to_dict(self.apps.read_namespaced_deployment(name, namespace))

    def create_deployment(self, body: Dict[str, Any]):
        name, namespace = self._meta(body)
        logger.debug(f"Creating deployment {namespace}/{name}")
        self.apps.create_namespaced_deployment(namespace, body)

    def update_deployment(self, body: Dict[str, Any]):
        name, namespace = self._meta(body)
        logger.debug(f"Updating deployment {namespace}/{name}")
        self.apps.patch_namespaced_deployment(name, namespace, body)

    # pod
    def get_pod(self, name: str, namespace: str) -> client.V1Pod:
        return self.core.read_namespaced_pod(name, namespace)

    def list_pods(self, namespace: str, selector: Dict[str, str]) -> List[client.V1Pod]:
        return self.core.list_namespaced_pod(namespace, label_selector=label_selector(selector)).items

    def update_pod(self, pod: client.V1Pod):
        logger.debug(f"Updating pod {pod.metadata.namespace}/{pod.metadata.name}")
        self.core.replace_namespaced_pod(pod.metadata.name, pod.metadata.namespace, pod)

    # CustomRedis
    def get_custom_redis(self, name: str, namespace: str) -> Dict[str, Any]:
        return self.custom.get_namespaced_custom_object(GROUP, VERSION, namespace, PLURAL, name)

    def list_custom_redis(self, namespace: str = "") -> List[Dict[str, Any]]:
        if namespace:
            result = self.custom.list_namespaced_custom_object(GROUP, VERSION, namespace, PLURAL)
        else:
            result = self.custom.list_cluster_custom_object(GROUP, VERSION, PLURAL)
        return result.get("items", [])

    def update_custom_redis_status(self, name: str, namespace: str, status: Dict[str, Any]):
        logger.debug(f"Updating status of {namespace}/{name}: {status}")
        self.custom.patch_namespaced_custom_object_status(
            GROUP, VERSION, namespace, PLURAL, name, {"status": status}
        )
