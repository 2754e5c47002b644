"""
CustomRedis resource model.

The custom object arrives from the API server as a plain dict; it is parsed
once per reconcile pass into the dataclasses below so the rest of the
pipeline reads named fields instead of nested maps.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from redis_operator.errors import InvalidSpecError

GROUP = "redis.hongqchen"
VERSION = "v1beta1"
KIND = "CustomRedis"
PLURAL = "customredis"
API_VERSION = f"{GROUP}/{VERSION}"

SENTINEL_SUFFIX = "sentinel"
SENTINEL_PORT = 26379
DEFAULT_SENTINEL_NUM = 3
DEFAULT_INIT_IMAGE = "busybox:1.28"
DEFAULT_DATA_DIR = "/data"
MIN_REPLICAS = 3
PULL_POLICIES = ("Always", "Never", "IfNotPresent")

# Label keys shared by every generated resource
CONTROLLER_LABEL = "hongqchen.com/controller"
COMPONENT_LABEL = "hongqchen.com/component"
INSTANCE_LABEL = "hongqchen.com/name"
ROLE_LABEL = "redis.hongqchen/role"

CONTROLLER_NAME = "custom-redis"
COMPONENT_NAME = "database"
SENTINEL_COMPONENT_NAME = "sentinel"


class ClusterMode(str, Enum):
    MASTER_SLAVE = "master-slave"
    SENTINEL = "sentinel"
    CLUSTER = "cluster"


class Phase(str, Enum):
    FAILED = "failed"
    CREATING = "creating"
    SCALING = "scaling"
    RUNNING = "running"


class Role(str, Enum):
    MASTER = "master"
    REPLICA = "replica"
    SENTINEL = "sentinel"


@dataclass(frozen=True)
class ResourceLabels:
    """The handful of label keys the controller reads and writes"""
    instance: str
    controller: str = CONTROLLER_NAME
    component: str = COMPONENT_NAME
    role: Optional[str] = None

    @classmethod
    def from_dict(cls, labels: Optional[Dict[str, str]]) -> "ResourceLabels":
        labels = labels or {}
        return cls(
            instance=labels.get(INSTANCE_LABEL, ""),
            controller=labels.get(CONTROLLER_LABEL, ""),
            component=labels.get(COMPONENT_LABEL, ""),
            role=labels.get(ROLE_LABEL),
        )

    def with_role(self, role: Optional[str]) -> "ResourceLabels":
        return ResourceLabels(self.instance, self.controller, self.component, role)

    def to_dict(self) -> Dict[str, str]:
        labels = {
            CONTROLLER_LABEL: self.controller,
            COMPONENT_LABEL: self.component,
            INSTANCE_LABEL: self.instance,
        }
        if self.role:
            labels[ROLE_LABEL] = self.role
        return labels


@dataclass
class PodTemplate:
    image: str
    init_image: str = DEFAULT_INIT_IMAGE
    image_pull_policy: Optional[str] = None
    resources: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CustomRedisSpec:
    replicas: int
    cluster_mode: ClusterMode
    templates: PodTemplate
    redis_config: Dict[str, str]
    sentinel_num: int = DEFAULT_SENTINEL_NUM
    volume_config: Optional[Dict[str, Any]] = None


@dataclass
class CustomRedis:
    name: str
    namespace: str
    uid: str
    spec: CustomRedisSpec
    phase: Optional[Phase] = None
    generation: int = 0

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "CustomRedis":
        """Parse and default a CustomRedis object as returned by the API server"""
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}
        name = metadata.get("name", "")

        try:
            cluster_mode = ClusterMode(spec.get("clusterMode"))
        except ValueError:
            raise InvalidSpecError(f"{name}: unknown clusterMode {spec.get('clusterMode')!r}")

        replicas = spec.get("replicas")
        if not isinstance(replicas, int) or replicas < MIN_REPLICAS:
            raise InvalidSpecError(f"{name}: replicas must be an integer >= {MIN_REPLICAS}, got {replicas!r}")

        sentinel_num = spec.get("sentinelNum")
        if sentinel_num is None:
            sentinel_num = DEFAULT_SENTINEL_NUM
        if not isinstance(sentinel_num, int) or sentinel_num < 1:
            raise InvalidSpecError(f"{name}: sentinelNum must be a positive integer, got {sentinel_num!r}")

        templates = spec.get("templates") or {}
        image = templates.get("image") or ""
        if len(image) < 5:
            raise InvalidSpecError(f"{name}: templates.image must be at least 5 characters")
        pull_policy = templates.get("imagePullPolicy")
        if pull_policy and pull_policy not in PULL_POLICIES:
            raise InvalidSpecError(f"{name}: invalid imagePullPolicy {pull_policy!r}")

        redis_config = {str(k): str(v) for k, v in (spec.get("redisConfig") or {}).items()}
        if "port" not in redis_config:
            raise InvalidSpecError(f"{name}: redisConfig has no port")
        if not redis_config["port"].isdigit():
            raise InvalidSpecError(f"{name}: redisConfig port {redis_config['port']!r} is invalid")

        phase = status.get("phase")
        if phase and phase not in {p.value for p in Phase}:
            raise InvalidSpecError(f"{name}: unknown status phase {phase!r}")

        return cls(
            name=name,
            namespace=metadata.get("namespace", ""),
            uid=metadata.get("uid", ""),
            generation=metadata.get("generation", 0),
            phase=Phase(phase) if phase else None,
            spec=CustomRedisSpec(
                replicas=replicas,
                cluster_mode=cluster_mode,
                sentinel_num=sentinel_num,
                redis_config=redis_config,
                volume_config=spec.get("volumeConfig"),
                templates=PodTemplate(
                    image=image,
                    init_image=templates.get("initImage") or DEFAULT_INIT_IMAGE,
                    image_pull_policy=pull_policy,
                    resources=templates.get("resources") or {},
                ),
            ),
        )

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def sentinel_name(self) -> str:
        return f"{self.name}-{SENTINEL_SUFFIX}"

    @property
    def port(self) -> int:
        return int(self.spec.redis_config["port"])

    @property
    def password(self) -> str:
        return self.spec.redis_config.get("requirepass", "")

    @property
    def data_dir(self) -> str:
        return self.spec.redis_config.get("dir") or DEFAULT_DATA_DIR

    @property
    def labels(self) -> ResourceLabels:
        return ResourceLabels(instance=self.name)

    @property
    def sentinel_labels(self) -> ResourceLabels:
        return ResourceLabels(instance=self.name, component=SENTINEL_COMPONENT_NAME, role=Role.SENTINEL.value)

    def set_default_status(self) -> bool:
        """Advance the phase at the start of a pass. Returns True if it changed."""
        if self.phase is None:
            self.phase = Phase.CREATING
            return True
        if self.phase == Phase.RUNNING:
            self.phase = Phase.SCALING
            return True
        return False
