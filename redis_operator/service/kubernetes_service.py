import logging
from typing import List

from kubernetes import client

from redis_operator.api import CustomRedis
from redis_operator.clients.kubernetes_client import KubernetesClient
from redis_operator.service.redis_service import RedisService

logger = logging.getLogger(__name__)


def is_pod_ready(pod: client.V1Pod) -> bool:
    """Running, Ready and not being deleted"""
    if pod.metadata.deletion_timestamp is not None:
        return False
    if pod.status is None or pod.status.phase != "Running" or not pod.status.pod_ip:
        return False
    for condition in pod.status.conditions or []:
        if condition.type == "Ready":
            return condition.status == "True"
    return False


class KubernetesService:
    def __init__(self, kube: KubernetesClient, redis_service: RedisService, log=None):
        self.kube = kube
        self.redis_service = redis_service
        self.logger = log or logger

    def _ready_pods(self, namespace: str, workload: dict) -> List[client.V1Pod]:
        selector = workload["spec"]["selector"]["matchLabels"]
        pods = self.kube.list_pods(namespace, selector)
        return [pod for pod in pods if is_pod_ready(pod)]

    def get_statefulset_ready_pods(self, name: str, namespace: str) -> List[client.V1Pod]:
        self.logger.debug(f"Getting ready pods of statefulset {namespace}/{name}")
        return self._ready_pods(namespace, self.kube.get_statefulset(name, namespace))

    def get_deployment_ready_pods(self, name: str, namespace: str) -> List[client.V1Pod]:
        self.logger.debug(f"Getting ready pods of deployment {namespace}/{name}")
        return self._ready_pods(namespace, self.kube.get_deployment(name, namespace))

    def get_master_ips(self, cr: CustomRedis) -> List[str]:
        """IPs of the ready redis pods whose live role is master"""
        master_ips = []
        for pod in self.get_statefulset_ready_pods(cr.name, cr.namespace):
            ip = pod.status.pod_ip
            if self.redis_service.is_master(cr, ip):
                master_ips.append(ip)
        return master_ips

    def update_pod_if_exists(self, pod: client.V1Pod):
        # raises 404 if the pod disappeared since it was listed
        self.kube.get_pod(pod.metadata.name, pod.metadata.namespace)
        pod.metadata.resource_version = None
        self.kube.update_pod(pod)
