import logging
from typing import Callable, Dict, List

from redis_operator.api import ClusterMode, CustomRedis
from redis_operator.clients.kubernetes_client import KubernetesClient
from redis_operator.clients.redis_client import RedisClient
from redis_operator.service.check_and_heal import CheckAndHeal
from redis_operator.service.ensure import Ensure
from redis_operator.service.kubernetes_service import KubernetesService
from redis_operator.service.redis_service import RedisService

logger = logging.getLogger(__name__)

Step = Callable[[CustomRedis], None]


class RedisHandler:
    """Runs the ordered convergence pipeline for one CustomRedis"""

    def __init__(self, ensure: Ensure, check: CheckAndHeal, log=None):
        self.ensure = ensure
        self.check = check
        self.logger = log or logger

    @classmethod
    def build(cls, kube: KubernetesClient, redis_client: RedisClient, log=None) -> "RedisHandler":
        redis_service = RedisService(redis_client, log)
        k8s_service = KubernetesService(kube, redis_service, log)
        return cls(
            ensure=Ensure(kube, k8s_service, redis_service, log),
            check=CheckAndHeal(k8s_service, redis_service, log),
            log=log,
        )

    def master_slave_steps(self) -> List[Step]:
        return [
            self.ensure.ensure_configmap,
            self.ensure.ensure_statefulset,
            self.ensure.ensure_pod_ready_for_statefulset,
            # pod owner and services must exist before roles are corrected
            self.ensure.ensure_pod_owner,
            self.ensure.ensure_service,
            self.check.check_number_of_masters,
            self.ensure.ensure_slave_of_master,
            self.ensure.ensure_labels,
        ]

    def sentinel_steps(self) -> List[Step]:
        return self.master_slave_steps() + [
            self.ensure.ensure_deployment,
            self.ensure.ensure_pod_ready_for_deployment,
            self.ensure.ensure_sentinel_monitor,
            self.ensure.ensure_slave_of_master,
        ]

    def pipelines(self) -> Dict[ClusterMode, List[Step]]:
        return {
            ClusterMode.MASTER_SLAVE: self.master_slave_steps(),
            ClusterMode.SENTINEL: self.sentinel_steps(),
        }

    def sync(self, cr: CustomRedis):
        """Run every step in order; the first exception stops the pass and propagates"""
        steps = self.pipelines().get(cr.spec.cluster_mode)
        if steps is None:
            self.logger.warning(f"⚠️ Cluster mode {cr.spec.cluster_mode.value} is not supported, nothing to do")
            return

        self.logger.info(f"Starting {cr.spec.cluster_mode.value} sync")
        for step in steps:
            step(cr)
