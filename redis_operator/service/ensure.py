import copy
import logging
from typing import Any, Callable, Dict, List

from kubernetes import client

from redis_operator import generator
from redis_operator.api import KIND, ROLE_LABEL, ClusterMode, CustomRedis, Role
from redis_operator.clients.kubernetes_client import KubernetesClient
from redis_operator.errors import AllPodsReadyPendingError, MultipleMastersError, is_not_found
from redis_operator.service.kubernetes_service import KubernetesService
from redis_operator.service.redis_service import RedisService

logger = logging.getLogger(__name__)


def is_unset_monitor(monitor_ip: str) -> bool:
    """A sentinel still watching the placeholder address has not been configured yet"""
    return not monitor_ip or monitor_ip == generator.UNSET_MONITOR_IP


class Ensure:
    """Idempotent create-or-update of every resource backing a CustomRedis"""

    def __init__(self, kube: KubernetesClient, k8s_service: KubernetesService,
                 redis_service: RedisService, log=None):
        self.kube = kube
        self.k8s_service = k8s_service
        self.redis_service = redis_service
        self.logger = log or logger

    def _apply(self, body: Dict[str, Any], get: Callable, create: Callable, update: Callable):
        name = body["metadata"]["name"]
        namespace = body["metadata"]["namespace"]
        try:
            get(name, namespace)
        except client.ApiException as e:
            if not is_not_found(e):
                raise
            self.logger.info(f"➕ Creating {body['kind']} {name}")
            create(body)
            return
        update(body)

    def ensure_configmap(self, cr: CustomRedis):
        self.logger.info("Ensuring configmap")
        for body in generator.configmaps(cr):
            self._apply(body, self.kube.get_configmap, self.kube.create_configmap, self.kube.update_configmap)

    def ensure_statefulset(self, cr: CustomRedis):
        self.logger.info("Ensuring statefulset")
        self._apply(generator.statefulset(cr), self.kube.get_statefulset,
                    self.kube.create_statefulset, self.kube.update_statefulset)

    def ensure_service(self, cr: CustomRedis):
        self.logger.info("Ensuring services")
        for body in generator.services(cr).values():
            self._apply(body, self.kube.get_service, self.kube.create_service, self.kube.update_service)

    def ensure_deployment(self, cr: CustomRedis):
        self.logger.info("Ensuring sentinel deployment")
        self._apply(generator.deployment(cr), self.kube.get_deployment,
                    self.kube.create_deployment, self.kube.update_deployment)

    def ensure_pod_ready_for_statefulset(self, cr: CustomRedis):
        self.logger.info("Ensuring all redis pods are ready")
        pods = self.k8s_service.get_statefulset_ready_pods(cr.name, cr.namespace)
        if len(pods) != cr.spec.replicas:
            raise AllPodsReadyPendingError(f"{len(pods)}/{cr.spec.replicas} redis pods are ready")

    def ensure_pod_ready_for_deployment(self, cr: CustomRedis):
        self.logger.info("Ensuring all sentinel pods are ready")
        pods = self.k8s_service.get_deployment_ready_pods(cr.sentinel_name, cr.namespace)
        if len(pods) != cr.spec.sentinel_num:
            raise AllPodsReadyPendingError(f"{len(pods)}/{cr.spec.sentinel_num} sentinel pods are ready")

    def _sentinel_pods_if_any(self, cr: CustomRedis) -> List[client.V1Pod]:
        try:
            return self.k8s_service.get_deployment_ready_pods(cr.sentinel_name, cr.namespace)
        except client.ApiException as e:
            # sentinel deployment is created later in the pipeline
            if is_not_found(e):
                return []
            raise

    def ensure_pod_owner(self, cr: CustomRedis):
        """Add the CustomRedis as a second, non-controlling owner of every pod so pod
        deletions trigger a reconcile"""
        self.logger.info("Ensuring a second owner reference on pods")
        pods = self.k8s_service.get_statefulset_ready_pods(cr.name, cr.namespace)
        if cr.spec.cluster_mode == ClusterMode.SENTINEL:
            pods = pods + self._sentinel_pods_if_any(cr)

        for pod in pods:
            owners = pod.metadata.owner_references or []
            if any(owner.kind == KIND and owner.name == cr.name for owner in owners):
                continue

            ref = generator.owner_reference(cr, controller=False)
            updated = copy.deepcopy(pod)
            updated.metadata.owner_references = list(owners) + [
                client.V1OwnerReference(
                    api_version=ref["apiVersion"],
                    kind=ref["kind"],
                    name=ref["name"],
                    uid=ref["uid"],
                    controller=False,
                    block_owner_deletion=ref["blockOwnerDeletion"],
                )
            ]
            self.k8s_service.update_pod_if_exists(updated)

    def _single_master(self, cr: CustomRedis) -> str:
        master_ips = self.k8s_service.get_master_ips(cr)
        if len(master_ips) != 1:
            # forces the next pass through the master count check
            raise MultipleMastersError(f"expected exactly one master, found {len(master_ips)}: {master_ips}")
        return master_ips[0]

    def ensure_sentinel_monitor(self, cr: CustomRedis):
        self.logger.info("Ensuring sentinels monitor the current master")
        master_ip = self._single_master(cr)

        for pod in self.k8s_service.get_deployment_ready_pods(cr.sentinel_name, cr.namespace):
            sentinel_ip = pod.status.pod_ip
            monitor_ip, _ = self.redis_service.get_sentinel_monitor(cr, sentinel_ip)
            if is_unset_monitor(monitor_ip) or monitor_ip != master_ip:
                self.redis_service.set_sentinel_monitor(cr, sentinel_ip, master_ip)

    def ensure_slave_of_master(self, cr: CustomRedis):
        self.logger.info("Ensuring all slaves follow the current master")
        master_ip = self._single_master(cr)

        for pod in self.k8s_service.get_statefulset_ready_pods(cr.name, cr.namespace):
            slave_ip = pod.status.pod_ip
            if slave_ip == master_ip:
                continue
            if self.redis_service.get_replication_of_master_host(cr, slave_ip) == master_ip:
                continue
            self.redis_service.set_as_slave(cr, slave_ip, master_ip)

    def ensure_labels(self, cr: CustomRedis):
        self.logger.info("Ensuring pod role labels")
        for pod in self.k8s_service.get_statefulset_ready_pods(cr.name, cr.namespace):
            is_master = self.redis_service.is_master(cr, pod.status.pod_ip)
            role = Role.MASTER.value if is_master else Role.REPLICA.value

            labels = pod.metadata.labels or {}
            if labels.get(ROLE_LABEL) == role:
                continue

            updated = copy.deepcopy(pod)
            updated.metadata.labels = {**labels, ROLE_LABEL: role}
            self.k8s_service.update_pod_if_exists(updated)
