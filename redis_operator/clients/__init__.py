from redis_operator.clients.kubernetes_client import KubernetesClient
from redis_operator.clients.redis_client import RedisClient

__all__ = ["KubernetesClient", "RedisClient"]
