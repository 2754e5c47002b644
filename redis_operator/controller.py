import functools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from kubernetes import watch
from kubernetes.client.rest import ApiException

from redis_operator.api import (
    CONTROLLER_LABEL,
    CONTROLLER_NAME,
    GROUP,
    KIND,
    PLURAL,
    VERSION,
    CustomRedis,
    Phase,
)
from redis_operator.backoff import requeue_after
from redis_operator.clients.kubernetes_client import KubernetesClient
from redis_operator.clients.redis_client import RedisClient
from redis_operator.config import OperatorConfig, instance_logger
from redis_operator.errors import is_not_found
from redis_operator.handler import RedisHandler
from redis_operator.predicates import AnnotationsOrGenerationChanged, GenerationChanged, pod_deleted
from redis_operator.workqueue import WorkQueue

logger = logging.getLogger(__name__)

WATCH_RETRY_SECONDS = 5


@dataclass(frozen=True)
class Request:
    namespace: str
    name: str

    def __str__(self):
        return f"{self.namespace}/{self.name}"


class Reconciler:
    """One reconcile pass per CustomRedis key"""

    def __init__(self, kube: KubernetesClient, redis_client: RedisClient):
        self.kube = kube
        self.redis_client = redis_client

    def _set_phase(self, cr: CustomRedis, log):
        log.info(f"Setting phase -- {cr.phase.value}")
        self.kube.update_custom_redis_status(cr.name, cr.namespace, {"phase": cr.phase.value})

    def reconcile(self, request: Request) -> float:
        """Returns the delay before the next pass, 0 when converged"""
        log = instance_logger(str(request))
        try:
            obj = self.kube.get_custom_redis(request.name, request.namespace)
        except ApiException as e:
            if is_not_found(e):
                log.debug("CustomRedis is gone, nothing to do")
                return 0
            raise

        cr = CustomRedis.from_dict(obj)
        log.info("Reconciling")

        if cr.set_default_status():
            self._set_phase(cr, log)

        handler = RedisHandler.build(self.kube, self.redis_client, log)
        try:
            handler.sync(cr)
        except Exception as e:
            return requeue_after(e, log)

        if cr.phase != Phase.RUNNING:
            cr.phase = Phase.RUNNING
            self._set_phase(cr, log)
        log.info("✅ Reconciled")
        return 0


def _field(obj: Any, dict_key: str, attr: str):
    if isinstance(obj, dict):
        return obj.get(dict_key)
    return getattr(obj, attr, None)


def _metadata(obj: Any):
    return _field(obj, "metadata", "metadata") or {}


def _owner_refs(obj: Any) -> List[Any]:
    return _field(_metadata(obj), "ownerReferences", "owner_references") or []


class Controller:
    """Watches CustomRedis objects and their children and feeds the work queue"""

    def __init__(self, config: OperatorConfig, kube: KubernetesClient, reconciler: Reconciler,
                 queue: Optional[WorkQueue] = None):
        self.config = config
        self.kube = kube
        self.reconciler = reconciler
        self.queue = queue or WorkQueue()
        self.stop_event = threading.Event()
        self._cr_filter = GenerationChanged()
        self._sts_filter = AnnotationsOrGenerationChanged()

    def enqueue(self, namespace: str, name: str, delay: float = 0):
        self.queue.add_after(Request(namespace, name), delay)

    # event handlers
    def on_custom_redis_event(self, event_type: str, obj: Any):
        meta = _metadata(obj)
        namespace = _field(meta, "namespace", "namespace")
        name = _field(meta, "name", "name")
        if self._cr_filter(event_type, (namespace, name), _field(meta, "generation", "generation")):
            self.enqueue(namespace, name)

    def on_statefulset_event(self, event_type: str, obj: Any):
        meta = _metadata(obj)
        namespace = _field(meta, "namespace", "namespace")
        key = (namespace, _field(meta, "name", "name"))
        changed = self._sts_filter(
            event_type, key, _field(meta, "generation", "generation"), _field(meta, "annotations", "annotations")
        )
        if not changed:
            return
        for owner in _owner_refs(obj):
            if _field(owner, "kind", "kind") == KIND and _field(owner, "controller", "controller"):
                self.enqueue(namespace, _field(owner, "name", "name"))

    def on_pod_event(self, event_type: str, obj: Any):
        if not pod_deleted(event_type):
            return
        namespace = _field(_metadata(obj), "namespace", "namespace")
        for owner in _owner_refs(obj):
            if _field(owner, "kind", "kind") == KIND:
                self.enqueue(namespace, _field(owner, "name", "name"))

    # loops
    def _list_funcs(self):
        ns = self.config.namespace
        custom, apps, core = self.kube.custom, self.kube.apps, self.kube.core
        if ns:
            return (
                functools.partial(custom.list_namespaced_custom_object, GROUP, VERSION, ns, PLURAL),
                functools.partial(apps.list_namespaced_stateful_set, ns),
                functools.partial(core.list_namespaced_pod, ns),
            )
        return (
            functools.partial(custom.list_cluster_custom_object, GROUP, VERSION, PLURAL),
            apps.list_stateful_set_for_all_namespaces,
            core.list_pod_for_all_namespaces,
        )

    def _watch(self, kind: str, list_func: Callable, handle: Callable, **kwargs):
        resource_version = None
        while not self.stop_event.is_set():
            w = watch.Watch()
            try:
                stream_kwargs = dict(kwargs, timeout_seconds=self.config.watch_timeout_seconds)
                if resource_version:
                    stream_kwargs["resource_version"] = resource_version
                for event in w.stream(list_func, **stream_kwargs):
                    if self.stop_event.is_set():
                        w.stop()
                        break
                    obj = event["object"]
                    if event["type"] == "ERROR":
                        # status object, carries no resource version
                        logger.warning(f"⚠️ Watch on {kind} reported an error: {obj}")
                        continue
                    resource_version = _field(_metadata(obj), "resourceVersion", "resource_version")
                    handle(event["type"], obj)
            except ApiException as e:
                if e.status == 410:
                    logger.info(f"Watch on {kind} expired, relisting")
                    resource_version = None
                    continue
                logger.error(f"❌ Watch on {kind} failed: {e}")
                self.stop_event.wait(WATCH_RETRY_SECONDS)
            except Exception as e:
                logger.error(f"❌ Watch on {kind} failed: {e}")
                self.stop_event.wait(WATCH_RETRY_SECONDS)

    def _resync(self):
        while not self.stop_event.wait(self.config.resync_seconds):
            try:
                for obj in self.kube.list_custom_redis(self.config.namespace):
                    meta = obj.get("metadata", {})
                    self.enqueue(meta.get("namespace"), meta.get("name"))
            except Exception as e:
                logger.error(f"❌ Resync failed: {e}")

    def process_next(self) -> bool:
        """Run one reconcile pass from the queue. False once the queue is shut down."""
        request = self.queue.get()
        if request is None:
            return False

        try:
            delay = self.reconciler.reconcile(request)
        except Exception as e:
            delay = requeue_after(e, instance_logger(str(request)))
        self.queue.done(request)

        if delay > 0:
            self.queue.add_after(request, delay)
        return True

    def _worker(self):
        while self.process_next():
            pass

    def run(self):
        logger.info("🚀 Redis operator started")
        cr_list, sts_list, pod_list = self._list_funcs()
        selector = f"{CONTROLLER_LABEL}={CONTROLLER_NAME}"

        threads = [
            threading.Thread(target=self._watch, args=("CustomRedis", cr_list, self.on_custom_redis_event),
                             name="watch-customredis", daemon=True),
            threading.Thread(target=self._watch, args=("StatefulSet", sts_list, self.on_statefulset_event),
                             kwargs={"label_selector": selector}, name="watch-statefulset", daemon=True),
            threading.Thread(target=self._watch, args=("Pod", pod_list, self.on_pod_event),
                             kwargs={"label_selector": selector}, name="watch-pod", daemon=True),
            threading.Thread(target=self._resync, name="resync", daemon=True),
        ]
        workers = [
            threading.Thread(target=self._worker, name=f"worker-{i}", daemon=True)
            for i in range(self.config.workers)
        ]
        for thread in threads + workers:
            thread.start()

        self.stop_event.wait()
        logger.info("🛑 Shutting down")
        self.queue.shut_down()
        for worker in workers:
            worker.join()

    def stop(self):
        self.stop_event.set()
