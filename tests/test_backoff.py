import logging
from unittest.mock import Mock

import pytest
from kubernetes.client.rest import ApiException

from redis_operator.backoff import (
    DEFAULT_DELAY,
    NOT_FOUND_DELAY,
    PODS_PENDING_DELAY,
    TOPOLOGY_DELAY,
    requeue_after,
)
from redis_operator.errors import (
    AllPodsReadyPendingError,
    InvalidSpecError,
    MasterBeingElectedError,
    MultipleMastersError,
    NoMasterError,
    RedisCommandError,
)


@pytest.mark.parametrize(
    "error, delay",
    [
        (ApiException(status=404, reason="Not Found"), NOT_FOUND_DELAY),
        (AllPodsReadyPendingError(), PODS_PENDING_DELAY),
        (NoMasterError(), TOPOLOGY_DELAY),
        (MasterBeingElectedError(), TOPOLOGY_DELAY),
        (MultipleMastersError(), TOPOLOGY_DELAY),
        (ApiException(status=500, reason="Internal Server Error"), DEFAULT_DELAY),
        (RedisCommandError("connection refused"), DEFAULT_DELAY),
        (InvalidSpecError("bad"), DEFAULT_DELAY),
        (ValueError("anything else"), DEFAULT_DELAY),
    ],
)
def test_each_error_kind_maps_to_one_delay(error, delay):
    assert requeue_after(error) == delay


def test_delays_are_ordered():
    assert NOT_FOUND_DELAY < PODS_PENDING_DELAY < DEFAULT_DELAY < TOPOLOGY_DELAY


def test_no_master_is_logged_as_error(caplog):
    with caplog.at_level(logging.INFO):
        requeue_after(NoMasterError())
    assert [r.levelno for r in caplog.records] == [logging.ERROR]
    assert "manual intervention" in caplog.text


def test_transient_topology_errors_are_logged_as_info(caplog):
    with caplog.at_level(logging.INFO):
        requeue_after(MasterBeingElectedError())
    assert [r.levelno for r in caplog.records] == [logging.INFO]


def test_unknown_error_is_logged_with_traceback(caplog):
    with caplog.at_level(logging.INFO):
        requeue_after(RuntimeError("boom"))
    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert record.exc_info is not None


def test_uses_given_logger():
    log = Mock()
    requeue_after(AllPodsReadyPendingError(), log)
    log.info.assert_called_once()
    assert "not all pods are ready" in log.info.call_args[0][0]
