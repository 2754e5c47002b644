import logging

from redis_operator.errors import (
    AllPodsReadyPendingError,
    MasterBeingElectedError,
    MultipleMastersError,
    NoMasterError,
    is_not_found,
)

logger = logging.getLogger(__name__)

# Requeue delays, in seconds
NOT_FOUND_DELAY = 1.0
PODS_PENDING_DELAY = 20.0
TOPOLOGY_DELAY = 60.0
DEFAULT_DELAY = 30.0


def requeue_after(error: BaseException, log=None) -> float:
    """Map an error raised by a reconcile pass to the delay before the next pass"""
    log = log or logger

    # dependent resource not created yet
    if is_not_found(error):
        log.info(f"Reconcile failed: {error}, retrying in {NOT_FOUND_DELAY:.0f}s")
        return NOT_FOUND_DELAY

    if isinstance(error, AllPodsReadyPendingError):
        log.info(f"⏳ Reconcile failed: {error}, retrying in {PODS_PENDING_DELAY:.0f}s")
        return PODS_PENDING_DELAY

    if isinstance(error, NoMasterError):
        log.error(f"🚨 Reconcile failed: {error}, manual intervention required, retrying in 1min")
        return TOPOLOGY_DELAY

    if isinstance(error, (MasterBeingElectedError, MultipleMastersError)):
        log.info(f"Reconcile failed: {error}, retrying in 1min")
        return TOPOLOGY_DELAY

    log.error(f"❌ Reconcile failed: {error}, retrying in {DEFAULT_DELAY:.0f}s", exc_info=error)
    return DEFAULT_DELAY
