import threading
import time
from collections import deque
from typing import Dict, Hashable, Optional, Tuple


class WorkQueue:
    """
    Keyed work queue with per-key serialization.

    A key is handed to at most one worker at a time. Adding a key that is
    already queued is a no-op; adding a key that is being processed marks
    it dirty and it is queued again once the worker calls done().

    A key has at most one pending delayed add. A later add_after keeps the
    earlier deadline, and an immediate add drops the pending one.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._queue = deque()
        self._dirty = set()
        self._processing = set()
        self._waiting: Dict[Hashable, Tuple[float, threading.Timer]] = {}
        self._shutting_down = False

    def add(self, item: Hashable):
        with self._cond:
            pending = self._waiting.pop(item, None)
            if pending:
                pending[1].cancel()
            if self._shutting_down or item in self._dirty:
                return
            self._dirty.add(item)
            if item in self._processing:
                return
            self._queue.append(item)
            self._cond.notify()

    def add_after(self, item: Hashable, delay: float):
        if delay <= 0:
            self.add(item)
            return

        def fire():
            with self._cond:
                current = self._waiting.get(item)
                if current is None or current[1] is not timer:
                    return
                del self._waiting[item]
            self.add(item)

        deadline = time.monotonic() + delay
        with self._cond:
            if self._shutting_down:
                return
            pending = self._waiting.get(item)
            if pending and pending[0] <= deadline:
                return
            if pending:
                pending[1].cancel()
            timer = threading.Timer(delay, fire)
            timer.daemon = True
            self._waiting[item] = (deadline, timer)
            timer.start()

    def pending_delayed(self) -> int:
        """Number of keys with a delayed add still waiting"""
        with self._cond:
            return len(self._waiting)

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        """Block until a key is available; None on shutdown or timeout"""
        with self._cond:
            if not self._cond.wait_for(lambda: self._queue or self._shutting_down, timeout):
                return None
            if not self._queue:
                return None
            item = self._queue.popleft()
            self._processing.add(item)
            self._dirty.discard(item)
            return item

    def done(self, item: Hashable):
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty and not self._shutting_down:
                self._queue.append(item)
                self._cond.notify()

    def shut_down(self):
        with self._cond:
            self._shutting_down = True
            for _, timer in self._waiting.values():
                timer.cancel()
            self._waiting.clear()
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self):
        with self._cond:
            return len(self._queue)
