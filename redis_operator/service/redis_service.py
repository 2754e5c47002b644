import logging
from typing import Any, Dict, List, Tuple

from kubernetes import client

from redis_operator.api import CustomRedis
from redis_operator.clients.redis_client import RedisClient
from redis_operator.errors import RedisOperatorError

logger = logging.getLogger(__name__)


def _creation_order(pod: client.V1Pod):
    return pod.metadata.creation_timestamp, pod.metadata.name


class RedisService:
    """Reads and changes the live replication roles of redis and sentinel nodes"""

    def __init__(self, redis_client: RedisClient, log=None):
        self.client = redis_client
        self.logger = log or logger

    def get_replication(self, cr: CustomRedis, ip: str) -> Dict[str, Any]:
        self.logger.debug(f"Getting replication info from {ip}")
        return self.client.get_replication(ip, cr.port, cr.password)

    def is_master(self, cr: CustomRedis, ip: str) -> bool:
        return self.get_replication(cr, ip).get("role") == "master"

    def get_replication_of_master_host(self, cr: CustomRedis, ip: str) -> str:
        """The master a node currently replicates from, empty if it follows nobody"""
        master_host = self.get_replication(cr, ip).get("master_host")
        return str(master_host) if master_host else ""

    def set_as_master(self, cr: CustomRedis, ip: str):
        self.logger.info(f"👑 Setting {ip} as master")
        self.client.set_as_master(ip, cr.port, cr.password)

    def set_as_slave(self, cr: CustomRedis, slave_ip: str, master_ip: str):
        self.logger.info(f"🔗 Setting {slave_ip} as slave of {master_ip}")
        self.client.set_as_slave(slave_ip, master_ip, cr.port, cr.password)

    def set_oldest_as_master(self, cr: CustomRedis, pods: List[client.V1Pod]):
        """Elect the earliest created pod as master and attach every other pod to it"""
        if not pods:
            raise RedisOperatorError("no ready pods available")

        ordered = sorted(pods, key=_creation_order)
        master_ip = ordered[0].status.pod_ip
        self.set_as_master(cr, master_ip)
        for pod in ordered[1:]:
            self.set_as_slave(cr, pod.status.pod_ip, master_ip)

    def get_sentinel_monitor(self, cr: CustomRedis, sentinel_ip: str) -> Tuple[str, str]:
        self.logger.debug(f"Getting sentinel monitor from {sentinel_ip}")
        return self.client.get_sentinel_monitor(sentinel_ip)

    def set_sentinel_monitor(self, cr: CustomRedis, sentinel_ip: str, master_ip: str):
        quorum = cr.spec.sentinel_num // 2 + 1
        self.logger.info(f"🛰️ Pointing sentinel {sentinel_ip} at {master_ip} (quorum {quorum})")
        self.client.set_sentinel_monitor(sentinel_ip, master_ip, cr.port, quorum, cr.password)
