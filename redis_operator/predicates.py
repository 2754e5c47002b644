"""
Event filters deciding which watch events trigger a reconcile.

Watch events carry only the new object, so the filters that compare with
the previous version keep the last seen generation/annotations per object.
"""

from typing import Dict, Hashable, Optional, Tuple

ADDED = "ADDED"
MODIFIED = "MODIFIED"
DELETED = "DELETED"


class GenerationChanged:
    """Pass adds and spec changes; ignore status-only updates and deletes"""

    def __init__(self):
        self._seen: Dict[Hashable, int] = {}

    def __call__(self, event_type: str, key: Hashable, generation: Optional[int]) -> bool:
        if event_type == DELETED:
            self._seen.pop(key, None)
            return False

        previous = self._seen.get(key)
        self._seen[key] = generation
        if event_type == ADDED:
            return True
        return event_type == MODIFIED and previous != generation


class AnnotationsOrGenerationChanged:
    """Pass updates that change generation or annotations; ignore creates and deletes"""

    def __init__(self):
        self._seen: Dict[Hashable, Tuple[Optional[int], Dict[str, str]]] = {}

    def __call__(self, event_type: str, key: Hashable, generation: Optional[int],
                 annotations: Optional[Dict[str, str]]) -> bool:
        if event_type == DELETED:
            self._seen.pop(key, None)
            return False

        current = (generation, dict(annotations or {}))
        previous = self._seen.get(key)
        self._seen[key] = current
        if event_type != MODIFIED or previous is None:
            return False
        return previous != current


def pod_deleted(event_type: str) -> bool:
    return event_type == DELETED
