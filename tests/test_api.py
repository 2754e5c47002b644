import pytest

from redis_operator.api import (
    CONTROLLER_LABEL,
    INSTANCE_LABEL,
    ROLE_LABEL,
    ClusterMode,
    CustomRedis,
    Phase,
    ResourceLabels,
)
from redis_operator.errors import InvalidSpecError
from tests.conftest import custom_redis_dict, make_cr


class TestParsing:
    def test_defaults(self):
        cr = make_cr()
        assert cr.name == "demo"
        assert cr.key == "default/demo"
        assert cr.spec.cluster_mode == ClusterMode.MASTER_SLAVE
        assert cr.spec.sentinel_num == 3
        assert cr.spec.templates.init_image == "busybox:1.28"
        assert cr.phase is None
        assert cr.port == 6379
        assert cr.password == ""
        assert cr.sentinel_name == "demo-sentinel"

    def test_sentinel_num_and_password(self):
        cr = make_cr("sentinel", sentinel_num=5, requirepass="secret")
        assert cr.spec.cluster_mode == ClusterMode.SENTINEL
        assert cr.spec.sentinel_num == 5
        assert cr.password == "secret"

    def test_phase_is_read_from_status(self):
        assert make_cr(phase="running").phase == Phase.RUNNING

    def test_data_dir_defaults_when_absent(self):
        obj = custom_redis_dict()
        del obj["spec"]["redisConfig"]["dir"]
        assert CustomRedis.from_dict(obj).data_dir == "/data"

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda spec: spec["redisConfig"].pop("port"),
            lambda spec: spec["redisConfig"].update(port="six"),
            lambda spec: spec.update(replicas=2),
            lambda spec: spec.update(clusterMode="galaxy"),
            lambda spec: spec["templates"].update(image="r:1"),
            lambda spec: spec["templates"].update(imagePullPolicy="Sometimes"),
            lambda spec: spec.update(sentinelNum=0),
        ],
    )
    def test_invalid_specs_are_rejected(self, mutate):
        obj = custom_redis_dict()
        mutate(obj["spec"])
        with pytest.raises(InvalidSpecError):
            CustomRedis.from_dict(obj)


class TestPhaseBookkeeping:
    def test_unset_becomes_creating(self):
        cr = make_cr()
        assert cr.set_default_status() is True
        assert cr.phase == Phase.CREATING

    def test_running_becomes_scaling(self):
        cr = make_cr(phase="running")
        assert cr.set_default_status() is True
        assert cr.phase == Phase.SCALING

    @pytest.mark.parametrize("phase", ["creating", "scaling", "failed"])
    def test_other_phases_are_kept(self, phase):
        cr = make_cr(phase=phase)
        assert cr.set_default_status() is False
        assert cr.phase == Phase(phase)


class TestResourceLabels:
    def test_unknown_keys_are_ignored(self):
        labels = ResourceLabels.from_dict({
            INSTANCE_LABEL: "demo",
            CONTROLLER_LABEL: "custom-redis",
            ROLE_LABEL: "master",
            "statefulset.kubernetes.io/pod-name": "demo-0",
        })
        assert labels.role == "master"
        assert "statefulset.kubernetes.io/pod-name" not in labels.to_dict()

    def test_role_is_only_emitted_when_set(self):
        labels = make_cr().labels
        assert ROLE_LABEL not in labels.to_dict()
        assert labels.with_role("replica").to_dict()[ROLE_LABEL] == "replica"
