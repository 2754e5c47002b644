import pytest

from redis_operator import generator
from redis_operator.api import CustomRedis
from redis_operator.handler import RedisHandler
from tests.fakes import FakeKube, FakeRedis, make_pod


def custom_redis_dict(mode="master-slave", phase=None, replicas=3, sentinel_num=None, **redis_config):
    config = {"port": "6379", "dir": "/data"}
    config.update(redis_config)
    obj = {
        "apiVersion": "redis.hongqchen/v1beta1",
        "kind": "CustomRedis",
        "metadata": {"name": "demo", "namespace": "default", "uid": "cr-uid", "generation": 1},
        "spec": {
            "replicas": replicas,
            "clusterMode": mode,
            "templates": {"image": "redis:7.2", "imagePullPolicy": "IfNotPresent"},
            "redisConfig": config,
        },
    }
    if sentinel_num is not None:
        obj["spec"]["sentinelNum"] = sentinel_num
    if phase:
        obj["status"] = {"phase": phase}
    return obj


def make_cr(mode="master-slave", phase=None, **kwargs):
    return CustomRedis.from_dict(custom_redis_dict(mode, phase, **kwargs))


@pytest.fixture
def kube():
    return FakeKube()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def handler(kube, fake_redis):
    return RedisHandler.build(kube, fake_redis)


def add_redis_pods(kube, fake_redis, cr, count=3, offsets=None):
    """Statefulset plus `count` ready pods; pod i gets IP 10.0.0.<i+1>"""
    kube.objects[("StatefulSet", cr.namespace, cr.name)] = generator.statefulset(cr)
    offsets = offsets or list(range(count))
    pods = []
    for i in range(count):
        ip = f"10.0.0.{i + 1}"
        pods.append(kube.add_pod(make_pod(f"{cr.name}-{i}", ip, offsets[i], cr.labels.to_dict())))
        fake_redis.add_master(ip)
    return pods


def add_sentinel_pods(kube, cr, count=3):
    """Sentinel deployment plus `count` ready pods; pod i gets IP 10.0.1.<i+1>"""
    kube.objects[("Deployment", cr.namespace, cr.sentinel_name)] = generator.deployment(cr)
    return [
        kube.add_pod(make_pod(f"{cr.sentinel_name}-{i}", f"10.0.1.{i + 1}", i, cr.sentinel_labels.to_dict()))
        for i in range(count)
    ]
