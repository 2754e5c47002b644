from unittest import mock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from redis_operator.api import ROLE_LABEL
from redis_operator.backoff import DEFAULT_DELAY, PODS_PENDING_DELAY, TOPOLOGY_DELAY
from redis_operator.config import OperatorConfig
from redis_operator.controller import Controller, Reconciler, Request
from redis_operator.errors import RedisCommandError
from redis_operator.workqueue import WorkQueue
from tests.conftest import add_redis_pods, add_sentinel_pods, custom_redis_dict, make_cr

REQUEST = Request("default", "demo")


@pytest.fixture
def reconciler(kube, fake_redis):
    return Reconciler(kube, fake_redis)


def _statuses(kube):
    return [phase for verb, _, phase in kube.calls if verb == "status"]


class TestReconciler:
    def test_deleted_object_is_done(self, reconciler, kube):
        assert reconciler.reconcile(REQUEST) == 0
        assert kube.calls == []

    def test_other_api_errors_propagate(self, reconciler, kube):
        kube.get_custom_redis = mock.Mock(side_effect=ApiException(status=403, reason="Forbidden"))
        with pytest.raises(ApiException):
            reconciler.reconcile(REQUEST)

    def test_cold_start_converges(self, reconciler, kube, fake_redis):
        kube.custom_redis[("default", "demo")] = custom_redis_dict()
        add_redis_pods(kube, fake_redis, make_cr(), offsets=[0, 10, 20])

        assert reconciler.reconcile(REQUEST) == 0
        assert _statuses(kube) == ["creating", "running"]
        assert fake_redis.masters() == ["10.0.0.1"]
        roles = [pod.metadata.labels[ROLE_LABEL] for pod in kube.pods.values()]
        assert roles == ["master", "replica", "replica"]
        assert kube.custom_redis[("default", "demo")]["status"]["phase"] == "running"

    def test_cold_start_in_sentinel_mode(self, reconciler, kube, fake_redis):
        kube.custom_redis[("default", "demo")] = custom_redis_dict("sentinel")
        cr = make_cr("sentinel")
        add_redis_pods(kube, fake_redis, cr)
        add_sentinel_pods(kube, cr)

        assert reconciler.reconcile(REQUEST) == 0
        assert fake_redis.sentinels == {ip: "10.0.0.1" for ip in ["10.0.1.1", "10.0.1.2", "10.0.1.3"]}
        assert ("create", "Deployment", "demo-sentinel") not in kube.calls

    def test_second_pass_changes_no_roles(self, reconciler, kube, fake_redis):
        kube.custom_redis[("default", "demo")] = custom_redis_dict()
        add_redis_pods(kube, fake_redis, make_cr())
        reconciler.reconcile(REQUEST)
        fake_redis.calls.clear()

        assert reconciler.reconcile(REQUEST) == 0
        assert fake_redis.mutations() == []

    def test_lost_master_waits_for_an_operator(self, reconciler, kube, fake_redis):
        kube.custom_redis[("default", "demo")] = custom_redis_dict(phase="running")
        add_redis_pods(kube, fake_redis, make_cr())
        for ip in ["10.0.0.1", "10.0.0.2", "10.0.0.3"]:
            fake_redis.add_slave(ip, "10.0.0.9")

        assert reconciler.reconcile(REQUEST) == TOPOLOGY_DELAY
        assert fake_redis.mutations() == []
        assert _statuses(kube) == ["scaling"]

    def test_pending_pods_are_retried(self, reconciler, kube, fake_redis):
        kube.custom_redis[("default", "demo")] = custom_redis_dict()
        add_redis_pods(kube, fake_redis, make_cr(), count=0)

        assert reconciler.reconcile(REQUEST) == PODS_PENDING_DELAY
        assert _statuses(kube) == ["creating"]


@pytest.fixture
def controller(kube):
    return Controller(OperatorConfig(), kube, mock.Mock(), WorkQueue())


def _drain(queue):
    items = []
    while len(queue):
        item = queue.get(timeout=0)
        items.append(item)
        queue.done(item)
    return items


class TestEvents:
    def test_custom_redis_spec_changes_are_queued(self, controller):
        obj = custom_redis_dict()
        controller.on_custom_redis_event("ADDED", obj)
        controller.on_custom_redis_event("MODIFIED", obj)
        assert _drain(controller.queue) == [REQUEST]

        obj["metadata"]["generation"] = 2
        controller.on_custom_redis_event("MODIFIED", obj)
        controller.on_custom_redis_event("DELETED", obj)
        assert _drain(controller.queue) == [REQUEST]

    def test_statefulset_changes_queue_the_controlling_owner(self, controller):
        owner = client.V1OwnerReference(api_version="redis.hongqchen/v1beta1", kind="CustomRedis",
                                        name="demo", uid="cr-uid", controller=True)
        sts = client.V1StatefulSet(metadata=client.V1ObjectMeta(
            name="demo", namespace="default", generation=1, owner_references=[owner]))

        controller.on_statefulset_event("ADDED", sts)
        assert _drain(controller.queue) == []

        sts.metadata.annotations = {"kubectl.kubernetes.io/restartedAt": "now"}
        controller.on_statefulset_event("MODIFIED", sts)
        assert _drain(controller.queue) == [REQUEST]

    def test_statefulset_without_custom_redis_owner_is_ignored(self, controller):
        sts = {"metadata": {"name": "other", "namespace": "default", "generation": 1}}
        controller.on_statefulset_event("ADDED", sts)
        sts = {"metadata": {"name": "other", "namespace": "default", "generation": 2}}
        controller.on_statefulset_event("MODIFIED", sts)
        assert _drain(controller.queue) == []

    def test_only_pod_deletions_are_queued(self, controller):
        owner = client.V1OwnerReference(api_version="redis.hongqchen/v1beta1", kind="CustomRedis",
                                        name="demo", uid="cr-uid", controller=False)
        pod = client.V1Pod(metadata=client.V1ObjectMeta(name="demo-0", namespace="default",
                                                        owner_references=[owner]))
        controller.on_pod_event("MODIFIED", pod)
        assert _drain(controller.queue) == []
        controller.on_pod_event("DELETED", pod)
        assert _drain(controller.queue) == [REQUEST]


class TestProcessing:
    def test_delay_requeues_the_key(self, controller):
        controller.reconciler.reconcile.return_value = 30
        controller.enqueue("default", "demo")
        with mock.patch.object(controller.queue, "add_after") as add_after:
            assert controller.process_next() is True
        add_after.assert_called_once_with(REQUEST, 30)

    def test_converged_key_is_not_requeued(self, controller):
        controller.reconciler.reconcile.return_value = 0
        controller.enqueue("default", "demo")
        with mock.patch.object(controller.queue, "add_after") as add_after:
            controller.process_next()
        add_after.assert_not_called()
        assert len(controller.queue) == 0

    def test_reconcile_errors_are_classified(self, controller):
        controller.reconciler.reconcile.side_effect = RedisCommandError("timeout")
        controller.enqueue("default", "demo")
        with mock.patch.object(controller.queue, "add_after") as add_after:
            controller.process_next()
        add_after.assert_called_once_with(REQUEST, DEFAULT_DELAY)

    def test_extra_triggers_do_not_multiply_retries(self, controller):
        controller.reconciler.reconcile.return_value = 30
        controller.enqueue("default", "demo")
        try:
            for _ in range(3):
                controller.process_next()
                assert controller.queue.pending_delayed() == 1
                assert len(controller.queue) == 0
                for _ in range(5):
                    controller.enqueue("default", "demo")
                assert len(controller.queue) == 1
        finally:
            controller.queue.shut_down()

    def test_stops_after_shutdown(self, controller):
        controller.queue.shut_down()
        assert controller.process_next() is False

    def test_resync_queues_every_custom_redis(self, controller, kube):
        controller.config.resync_seconds = 0
        kube.custom_redis[("default", "demo")] = custom_redis_dict()

        def list_then_stop(namespace):
            controller.stop()
            return [custom_redis_dict()]

        kube.list_custom_redis = list_then_stop
        controller._resync()
        assert _drain(controller.queue) == [REQUEST]


class TestWatch:
    @pytest.fixture
    def watcher(self):
        with mock.patch("redis_operator.controller.watch.Watch") as watch_cls:
            yield watch_cls.return_value

    def test_events_are_dispatched_with_resource_version(self, controller, watcher):
        pod = client.V1Pod(metadata=client.V1ObjectMeta(name="demo-0", resource_version="42"))
        seen = []

        def handle(event_type, obj):
            seen.append((event_type, obj.metadata.name))
            if len(seen) == 2:
                controller.stop()

        watcher.stream.side_effect = [iter([{"type": "ADDED", "object": pod}]),
                                      iter([{"type": "DELETED", "object": pod}])]
        list_func = mock.Mock()
        controller._watch("Pod", list_func, handle, label_selector="a=b")

        assert seen == [("ADDED", "demo-0"), ("DELETED", "demo-0")]
        second = watcher.stream.call_args_list[1]
        assert second.kwargs["resource_version"] == "42"
        assert second.kwargs["label_selector"] == "a=b"

    def test_expired_watch_relists(self, controller, watcher):
        pod = {"metadata": {"name": "demo-0", "resourceVersion": "7"}}

        def handle(event_type, obj):
            controller.stop()

        watcher.stream.side_effect = [ApiException(status=410, reason="Gone"),
                                      iter([{"type": "ADDED", "object": pod}])]
        controller._watch("Pod", mock.Mock(), handle)
        assert watcher.stream.call_count == 2
        assert "resource_version" not in watcher.stream.call_args_list[1].kwargs

    def test_error_events_keep_the_resource_version(self, controller, watcher):
        pod = client.V1Pod(metadata=client.V1ObjectMeta(name="demo-0", resource_version="42"))
        status = {"kind": "Status", "code": 500, "message": "internal error"}
        seen = []

        def handle(event_type, obj):
            seen.append(event_type)
            if len(seen) == 2:
                controller.stop()

        watcher.stream.side_effect = [
            iter([{"type": "ADDED", "object": pod}, {"type": "ERROR", "object": status}]),
            iter([{"type": "MODIFIED", "object": pod}]),
        ]
        controller._watch("Pod", mock.Mock(), handle)

        assert seen == ["ADDED", "MODIFIED"]
        assert watcher.stream.call_args_list[1].kwargs["resource_version"] == "42"
