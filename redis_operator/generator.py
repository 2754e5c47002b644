"""
Render the child resources of a CustomRedis as API-server shaped dicts.

Everything here is a pure function of the desired state; the ensure layer
decides whether a body is created or applied as an update.
"""

from typing import Any, Dict, List

from redis_operator.api import (
    API_VERSION,
    KIND,
    SENTINEL_PORT,
    SENTINEL_SUFFIX,
    ClusterMode,
    CustomRedis,
    Role,
)

REDIS_CONFIG_FILE = "redis.conf"
SENTINEL_CONFIG_FILE = "sentinel.conf"
CONFIG_MOUNT_PATH = "/redis/cm"
PVC_NAME = "pvc"
UNSET_MONITOR_IP = "127.0.0.1"


def owner_reference(cr: CustomRedis, controller: bool = True) -> Dict[str, Any]:
    return {
        "apiVersion": API_VERSION,
        "kind": KIND,
        "name": cr.name,
        "uid": cr.uid,
        "controller": controller,
        "blockOwnerDeletion": True,
    }


def _metadata(cr: CustomRedis, name: str, labels: Dict[str, str] = None) -> Dict[str, Any]:
    return {
        "name": name,
        "namespace": cr.namespace,
        "labels": labels or cr.labels.to_dict(),
        "ownerReferences": [owner_reference(cr)],
    }


def render_redis_config(redis_config: Dict[str, str]) -> str:
    config = dict(redis_config)

    # requirepass and masterauth always travel together
    if "requirepass" in config and "masterauth" not in config:
        config["masterauth"] = config["requirepass"]

    lines = [f"{key} {config[key]}" for key in sorted(config) if config[key]]
    return "".join(line + "\n" for line in lines)


def render_sentinel_config(cr: CustomRedis) -> str:
    quorum = cr.spec.sentinel_num // 2 + 1
    lines = [
        "sentinel down-after-milliseconds mymaster 30000",
        "sentinel failover-timeout mymaster 180000",
        "sentinel parallel-syncs mymaster 1",
        f"sentinel monitor mymaster {UNSET_MONITOR_IP} {cr.port} {quorum}",
    ]
    if cr.password:
        lines.append(f"sentinel auth-pass mymaster {cr.password}")
    return "\n".join(lines)


def configmap(cr: CustomRedis) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(cr, cr.name),
        "data": {REDIS_CONFIG_FILE: render_redis_config(cr.spec.redis_config)},
    }


def configmap_for_sentinel(cr: CustomRedis) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(cr, cr.sentinel_name),
        "data": {SENTINEL_CONFIG_FILE: render_sentinel_config(cr)},
    }


def configmaps(cr: CustomRedis) -> List[Dict[str, Any]]:
    bodies = [configmap(cr)]
    if cr.spec.cluster_mode == ClusterMode.SENTINEL:
        bodies.append(configmap_for_sentinel(cr))
    return bodies


def statefulset(cr: CustomRedis) -> Dict[str, Any]:
    labels = cr.labels.to_dict()
    templates = cr.spec.templates

    volumes = [
        {
            "name": "volume-local-redisconf",
            "configMap": {
                "name": cr.name,
                "items": [{"key": REDIS_CONFIG_FILE, "path": REDIS_CONFIG_FILE}],
            },
        },
        # host timezone
        {"name": "volume-local-time", "hostPath": {"path": "/etc/localtime"}},
    ]
    mounts = [
        {"name": "volume-local-redisconf", "mountPath": CONFIG_MOUNT_PATH, "readOnly": False},
        {"name": "volume-local-time", "mountPath": "/etc/localtime", "readOnly": True},
    ]

    claim_templates = []
    if cr.spec.volume_config:
        claim_templates.append({
            "metadata": {"name": PVC_NAME, "namespace": cr.namespace},
            "spec": cr.spec.volume_config,
        })
        mounts.append({"name": PVC_NAME, "mountPath": cr.data_dir, "readOnly": False})
    else:
        volumes.append({"name": "volume-redis-data", "emptyDir": {}})
        mounts.append({"name": "volume-redis-data", "mountPath": cr.data_dir, "readOnly": False})

    container = {
        "name": cr.name,
        "image": templates.image,
        "command": ["redis-server"],
        "args": [f"{CONFIG_MOUNT_PATH}/{REDIS_CONFIG_FILE}"],
        "ports": [{"name": "redis-port", "containerPort": cr.port}],
        "resources": templates.resources,
        "volumeMounts": mounts,
    }
    if templates.image_pull_policy:
        container["imagePullPolicy"] = templates.image_pull_policy

    spec = {
        "replicas": cr.spec.replicas,
        "serviceName": cr.name,
        "selector": {"matchLabels": labels},
        "template": {
            "metadata": {"labels": labels},
            "spec": {"containers": [container], "volumes": volumes},
        },
        # pods are only replaced when deleted, so roles are never reshuffled by a rollout
        "updateStrategy": {"type": "OnDelete"},
    }
    if claim_templates:
        spec["volumeClaimTemplates"] = claim_templates

    return {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": _metadata(cr, cr.name, labels),
        "spec": spec,
    }


def _service(cr: CustomRedis, name: str, selector: Dict[str, str], port_name: str, port: int) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(cr, name, selector),
        "spec": {
            "ports": [{"name": port_name, "port": port, "protocol": "TCP"}],
            "selector": selector,
        },
    }


def services(cr: CustomRedis) -> Dict[str, Dict[str, Any]]:
    """One service per role, keyed by service name"""
    bodies = [
        _service(cr, f"{cr.name}-{role.value}", cr.labels.with_role(role.value).to_dict(), "redis-port", cr.port)
        for role in (Role.MASTER, Role.REPLICA)
    ]
    if cr.spec.cluster_mode == ClusterMode.SENTINEL:
        bodies.append(
            _service(cr, cr.sentinel_name, cr.sentinel_labels.to_dict(), SENTINEL_SUFFIX, SENTINEL_PORT)
        )
    return {body["metadata"]["name"]: body for body in bodies}


def deployment(cr: CustomRedis) -> Dict[str, Any]:
    name = cr.sentinel_name
    labels = cr.sentinel_labels.to_dict()
    directory = cr.data_dir
    templates = cr.spec.templates

    # sentinel rewrites its config file at runtime, the configmap copy is read-only
    writable = {"name": "volume-sentinel-config-writable", "emptyDir": {}}

    volumes = [
        {
            "name": "volume-sentinel-config-readonly",
            "configMap": {
                "name": name,
                "items": [{"key": SENTINEL_CONFIG_FILE, "path": SENTINEL_CONFIG_FILE}],
            },
        },
        writable,
    ]

    init_container = {
        "name": "prepare-sentinel-config",
        "image": templates.init_image,
        "command": [
            "cp",
            f"{CONFIG_MOUNT_PATH}/{SENTINEL_CONFIG_FILE}",
            f"{directory}/{SENTINEL_CONFIG_FILE}",
        ],
        "volumeMounts": [
            {"name": "volume-sentinel-config-readonly", "mountPath": CONFIG_MOUNT_PATH},
            {"name": "volume-sentinel-config-writable", "mountPath": directory},
        ],
    }
    container = {
        "name": SENTINEL_SUFFIX,
        "image": templates.image,
        "command": ["redis-server"],
        "args": [f"{directory}/{SENTINEL_CONFIG_FILE}", "--sentinel"],
        "ports": [{"name": SENTINEL_SUFFIX, "containerPort": SENTINEL_PORT, "protocol": "TCP"}],
        "volumeMounts": [{"name": "volume-sentinel-config-writable", "mountPath": directory}],
    }
    if templates.image_pull_policy:
        init_container["imagePullPolicy"] = templates.image_pull_policy
        container["imagePullPolicy"] = templates.image_pull_policy

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(cr, name, labels),
        "spec": {
            "replicas": cr.spec.sentinel_num,
            "selector": {"matchLabels": labels},
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "initContainers": [init_container],
                    "containers": [container],
                    "volumes": volumes,
                },
            },
        },
    }
