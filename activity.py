import logging
import time
from typing import Any, Dict, List, Optional

from schemas import ActivityLog
from store import MatchStore

logger = logging.getLogger(__name__)


class ActivityRecorder:
    """Writes ActivityLog entries through a store.

    Lifecycle: init() -> record()/query() -> shutdown(). Recording on a
    recorder that was shut down raises RuntimeError.
    """

    def __init__(self, store: MatchStore):
        self.store = store
        self._open = False

    def init(self) -> "ActivityRecorder":
        self._open = True
        return self

    @property
    def is_open(self) -> bool:
        return self._open

    def record(self, user_id: str, user_type: str, action: str,
               meta: Optional[Dict[str, Any]] = None) -> str:
        if not self._open:
            raise RuntimeError("ActivityRecorder is not open")
        entry = ActivityLog(user_id=user_id, user_type=user_type, action=action, meta=meta)
        doc = entry.model_dump()
        doc["created_at"] = int(time.time() * 1000)
        return self.store.insert_activity(doc)

    def query(self, user_id: Optional[str] = None, action: Optional[str] = None) -> List[Dict[str, Any]]:
        filt = {}
        if user_id:
            filt["user_id"] = user_id
        if action:
            filt["action"] = action
        return self.store.query_activity(filt)

    def shutdown(self):
        self._open = False
        logger.debug("Activity recorder shut down")
