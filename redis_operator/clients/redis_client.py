import logging
from typing import Any, Dict, Tuple

import redis

from redis_operator.api import SENTINEL_PORT
from redis_operator.errors import RedisCommandError

logger = logging.getLogger(__name__)

MASTER_GROUP = "mymaster"


class RedisClient:
    """One short-lived connection per command, against a node addressed by pod IP"""

    def __init__(self, socket_timeout: float = 5.0):
        self.socket_timeout = socket_timeout

    def _connect(self, ip: str, port: int, password: str = "") -> redis.Redis:
        return redis.Redis(
            host=ip,
            port=port,
            password=password or None,
            decode_responses=True,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
        )

    def get_replication(self, ip: str, port: int, password: str) -> Dict[str, Any]:
        """INFO replication, parsed into a dict (role, master_host, ...)"""
        try:
            with self._connect(ip, port, password) as conn:
                return conn.info("replication")
        except redis.RedisError as e:
            raise RedisCommandError(f"failed to get replication info from {ip}:{port}: {e}") from e

    def set_as_master(self, ip: str, port: int, password: str):
        try:
            with self._connect(ip, port, password) as conn:
                conn.slaveof()
        except redis.RedisError as e:
            raise RedisCommandError(f"failed to set {ip}:{port} as master: {e}") from e

    def set_as_slave(self, slave_ip: str, master_ip: str, port: int, password: str):
        try:
            with self._connect(slave_ip, port, password) as conn:
                conn.slaveof(master_ip, port)
        except redis.RedisError as e:
            raise RedisCommandError(f"failed to set {slave_ip}:{port} as slave of {master_ip}: {e}") from e

    def get_sentinel_monitor(self, sentinel_ip: str) -> Tuple[str, str]:
        """Return (ip, port) of the master watched under MASTER_GROUP, ("", "") if none"""
        try:
            with self._connect(sentinel_ip, SENTINEL_PORT) as conn:
                addr = conn.sentinel_get_master_addr_by_name(MASTER_GROUP)
        except redis.RedisError as e:
            raise RedisCommandError(f"failed to get sentinel monitor info from {sentinel_ip}: {e}") from e

        if not addr:
            return "", ""
        return str(addr[0]), str(addr[1])

    def set_sentinel_monitor(self, sentinel_ip: str, master_ip: str, port: int, quorum: int, password: str):
        try:
            with self._connect(sentinel_ip, SENTINEL_PORT) as conn:
                try:
                    conn.sentinel_remove(MASTER_GROUP)
                except redis.ResponseError as e:
                    # nothing monitored yet
                    if "no such master" not in str(e).lower():
                        raise
                conn.sentinel_monitor(MASTER_GROUP, master_ip, port, quorum)
                if password:
                    conn.sentinel_set(MASTER_GROUP, "auth-pass", password)
        except redis.RedisError as e:
            raise RedisCommandError(f"failed to point sentinel {sentinel_ip} at {master_ip}: {e}") from e
