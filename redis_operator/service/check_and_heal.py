import logging

from redis_operator.api import ClusterMode, CustomRedis, Phase
from redis_operator.errors import (
    MasterBeingElectedError,
    MultipleMastersError,
    NoMasterError,
    RedisOperatorError,
)
from redis_operator.service.ensure import is_unset_monitor
from redis_operator.service.kubernetes_service import KubernetesService
from redis_operator.service.redis_service import RedisService

logger = logging.getLogger(__name__)


class CheckAndHeal:
    """Keeps exactly one master among the ready redis pods"""

    def __init__(self, k8s_service: KubernetesService, redis_service: RedisService, log=None):
        self.k8s_service = k8s_service
        self.redis_service = redis_service
        self.logger = log or logger

    def check_number_of_masters(self, cr: CustomRedis):
        self.logger.info("Checking the number of masters")
        master_ips = self.k8s_service.get_master_ips(cr)

        if len(master_ips) == 1:
            return
        if len(master_ips) == 0:
            self._heal_no_masters(cr)
        else:
            self._heal_many_masters(cr, master_ips)

    def _bootstrap(self, cr: CustomRedis):
        self.logger.info("🗳️ Electing the oldest pod as master")
        pods = self.k8s_service.get_statefulset_ready_pods(cr.name, cr.namespace)
        self.redis_service.set_oldest_as_master(cr, pods)

    def _heal_no_masters(self, cr: CustomRedis):
        self.logger.info("Healing: no master")
        if cr.phase == Phase.CREATING:
            self._bootstrap(cr)
            return

        # running cluster lost its master
        if cr.spec.cluster_mode == ClusterMode.MASTER_SLAVE:
            raise NoMasterError()
        if cr.spec.cluster_mode == ClusterMode.SENTINEL:
            raise MasterBeingElectedError()
        raise RedisOperatorError(f"unsupported cluster mode {cr.spec.cluster_mode.value}")

    def _heal_many_masters(self, cr: CustomRedis, master_ips):
        self.logger.info(f"Healing: {len(master_ips)} masters {master_ips}")
        if cr.phase == Phase.CREATING:
            self._bootstrap(cr)
            return

        if cr.spec.cluster_mode == ClusterMode.MASTER_SLAVE:
            raise MultipleMastersError()

        if cr.spec.cluster_mode == ClusterMode.SENTINEL:
            monitor_ip = self.get_sentinel_monitor(cr)
            if not monitor_ip:
                raise MultipleMastersError("multiple masters exist and no sentinel endorses any of them")

            for master_ip in master_ips:
                if master_ip == monitor_ip:
                    continue
                self.redis_service.set_as_slave(cr, master_ip, monitor_ip)
            return

        raise RedisOperatorError(f"unsupported cluster mode {cr.spec.cluster_mode.value}")

    def get_sentinel_monitor(self, cr: CustomRedis) -> str:
        """Master address endorsed by the first sentinel that has one, empty if none do"""
        for pod in self.k8s_service.get_deployment_ready_pods(cr.sentinel_name, cr.namespace):
            monitor_ip, _ = self.redis_service.get_sentinel_monitor(cr, pod.status.pod_ip)
            if is_unset_monitor(monitor_ip):
                continue
            return monitor_ip
        return ""
