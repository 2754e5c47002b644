#!/usr/bin/env python3
import logging
import signal

from redis_operator.clients import KubernetesClient, RedisClient
from redis_operator.config import OperatorConfig, load_kube_config, setup_logging
from redis_operator.controller import Controller, Reconciler

logger = logging.getLogger(__name__)


def main():
    settings = OperatorConfig()
    setup_logging(settings.log_level)
    settings.log_settings()

    try:
        load_kube_config()
    except Exception as e:
        logger.error(f"❌ Kubernetes connection failed: {e}")
        raise

    kube = KubernetesClient()
    reconciler = Reconciler(kube, RedisClient(socket_timeout=settings.redis_socket_timeout))
    controller = Controller(settings, kube, reconciler)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}")
        controller.stop()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    controller.run()


if __name__ == "__main__":
    main()
