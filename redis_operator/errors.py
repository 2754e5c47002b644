from kubernetes.client.rest import ApiException


class RedisOperatorError(Exception):
    """Base class for every error raised by the reconcile pipeline"""


class AllPodsReadyPendingError(RedisOperatorError):
    def __init__(self, message: str = "not all pods are ready"):
        super().__init__(message)


class NoMasterError(RedisOperatorError):
    def __init__(self, message: str = "cluster has no master"):
        super().__init__(message)


class MasterBeingElectedError(RedisOperatorError):
    def __init__(self, message: str = "master is being elected"):
        super().__init__(message)


class MultipleMastersError(RedisOperatorError):
    def __init__(self, message: str = "multiple masters exist"):
        super().__init__(message)


class InvalidSpecError(RedisOperatorError):
    """The CustomRedis object cannot be turned into a desired state"""


class RedisCommandError(RedisOperatorError):
    """A command sent to a redis or sentinel node failed"""


def is_not_found(error: BaseException) -> bool:
    return isinstance(error, ApiException) and error.status == 404
