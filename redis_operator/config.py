import logging
import os

from kubernetes import config

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class OperatorConfig:
    """Controller settings, read from the environment"""

    def __init__(self):
        # Empty namespace means watch every namespace
        self.namespace = os.getenv('WATCH_NAMESPACE', '')
        self.workers = int(os.getenv('MAX_CONCURRENT_RECONCILES', '2'))
        self.resync_seconds = int(os.getenv('RESYNC_PERIOD_SECONDS', '300'))
        self.watch_timeout_seconds = int(os.getenv('WATCH_TIMEOUT_SECONDS', '300'))
        self.redis_socket_timeout = float(os.getenv('REDIS_SOCKET_TIMEOUT', '5'))
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

        if self.workers < 1:
            self.workers = 1

    def log_settings(self):
        logger.info(f"🔧 Watch namespace: {self.namespace or '<all>'}")
        logger.info(f"🔧 Workers: {self.workers}, resync every {self.resync_seconds}s")
        logger.info(f"🔧 Redis socket timeout: {self.redis_socket_timeout}s")


def setup_logging(level: str = 'INFO'):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def load_kube_config():
    """Use the in-cluster service account, falling back to the local kubeconfig"""
    try:
        config.load_incluster_config()
        logger.info("✅ Connected to Kubernetes (in-cluster)")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("✅ Connected to Kubernetes (kubeconfig)")


class InstanceLogger(logging.LoggerAdapter):
    """Prefixes every message with the namespace/name of the object being reconciled"""

    def process(self, msg, kwargs):
        return f"[{self.extra['instance']}] {msg}", kwargs


def instance_logger(key: str, base: logging.Logger = None) -> InstanceLogger:
    return InstanceLogger(base or logging.getLogger('redis_operator'), {'instance': key})
