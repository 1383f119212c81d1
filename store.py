"""
Storage interface consumed by the match manager, plus an in-memory backend.

Records travel as plain dicts keyed like the pydantic schemas, with the
document id under "_id" as a string.
"""
import copy
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]


class DuplicateMatchError(Exception):
    """A match for this (idea_id, offer_id) pair already exists."""

    def __init__(self, idea_id: str, offer_id: str):
        super().__init__(f"Match already exists for idea {idea_id} and offer {offer_id}")
        self.idea_id = idea_id
        self.offer_id = offer_id


class MatchStore(ABC):
    name = "abstract"

    # --- users ---
    @abstractmethod
    def insert_user(self, doc: Record) -> str: ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Record]: ...

    @abstractmethod
    def query_users_by_type(self, user_type: str) -> List[Record]: ...

    # --- ideas ---
    @abstractmethod
    def insert_idea(self, doc: Record) -> str: ...

    @abstractmethod
    def get_idea(self, idea_id: str) -> Optional[Record]: ...

    @abstractmethod
    def patch_idea(self, idea_id: str, fields: Record) -> bool: ...

    @abstractmethod
    def query_ideas_by_status(self, status: str) -> List[Record]: ...

    @abstractmethod
    def query_ideas_by_creator(self, creator_id: str) -> List[Record]: ...

    # --- offers ---
    @abstractmethod
    def insert_offer(self, doc: Record) -> str: ...

    @abstractmethod
    def get_offer(self, offer_id: str) -> Optional[Record]: ...

    @abstractmethod
    def patch_offer(self, offer_id: str, fields: Record) -> bool: ...

    @abstractmethod
    def query_offers_by_active(self, is_active: bool) -> List[Record]: ...

    @abstractmethod
    def query_offers_by_investor(self, investor_id: str) -> List[Record]: ...

    # --- matches ---
    @abstractmethod
    def insert_match(self, doc: Record) -> str:
        """Insert a match, raising DuplicateMatchError if the pair is taken."""

    @abstractmethod
    def get_match(self, match_id: str) -> Optional[Record]: ...

    @abstractmethod
    def patch_match(self, match_id: str, fields: Record) -> bool: ...

    @abstractmethod
    def query_match_by_idea_and_offer(self, idea_id: str, offer_id: str) -> Optional[Record]: ...

    @abstractmethod
    def query_matches_by_idea(self, idea_id: str) -> List[Record]: ...

    @abstractmethod
    def query_matches_by_investor(self, investor_id: str) -> List[Record]: ...

    @abstractmethod
    def query_matches_by_creator(self, creator_id: str) -> List[Record]: ...

    @abstractmethod
    def query_matches_by_status(self, status: str) -> List[Record]: ...

    # --- activity ---
    @abstractmethod
    def insert_activity(self, doc: Record) -> str: ...

    @abstractmethod
    def query_activity(self, filt: Record) -> List[Record]: ...

    def collection_names(self) -> List[str]:
        return []


class InMemoryStore(MatchStore):
    """Dict-backed store. Insert order is preserved for every query."""

    name = "memory"

    def __init__(self):
        self._lock = threading.Lock()
        self._tables: Dict[str, Dict[str, Record]] = {
            "user": {},
            "businessidea": {},
            "investmentoffer": {},
            "match": {},
            "activitylog": {},
        }

    def _insert(self, table: str, doc: Record) -> str:
        new_id = uuid.uuid4().hex
        record = copy.deepcopy(dict(doc))
        record["_id"] = new_id
        self._tables[table][new_id] = record
        return new_id

    def _get(self, table: str, doc_id: str) -> Optional[Record]:
        with self._lock:
            record = self._tables[table].get(doc_id)
            return copy.deepcopy(record) if record is not None else None

    def _patch(self, table: str, doc_id: str, fields: Record) -> bool:
        with self._lock:
            record = self._tables[table].get(doc_id)
            if record is None:
                return False
            record.update(copy.deepcopy(fields))
            return True

    def _find(self, table: str, **conditions) -> List[Record]:
        with self._lock:
            rows = list(self._tables[table].values())
        return [
            copy.deepcopy(r) for r in rows
            if all(r.get(k) == v for k, v in conditions.items())
        ]

    def insert_user(self, doc):
        with self._lock:
            return self._insert("user", doc)

    def get_user(self, user_id):
        return self._get("user", user_id)

    def query_users_by_type(self, user_type):
        return self._find("user", user_type=user_type)

    def insert_idea(self, doc):
        with self._lock:
            return self._insert("businessidea", doc)

    def get_idea(self, idea_id):
        return self._get("businessidea", idea_id)

    def patch_idea(self, idea_id, fields):
        return self._patch("businessidea", idea_id, fields)

    def query_ideas_by_status(self, status):
        return self._find("businessidea", status=status)

    def query_ideas_by_creator(self, creator_id):
        return self._find("businessidea", creator_id=creator_id)

    def insert_offer(self, doc):
        with self._lock:
            return self._insert("investmentoffer", doc)

    def get_offer(self, offer_id):
        return self._get("investmentoffer", offer_id)

    def patch_offer(self, offer_id, fields):
        return self._patch("investmentoffer", offer_id, fields)

    def query_offers_by_active(self, is_active):
        return self._find("investmentoffer", is_active=is_active)

    def query_offers_by_investor(self, investor_id):
        return self._find("investmentoffer", investor_id=investor_id)

    def insert_match(self, doc):
        # check and insert under one lock so concurrent discovery cannot duplicate
        with self._lock:
            for existing in self._tables["match"].values():
                if existing["idea_id"] == doc["idea_id"] and existing["offer_id"] == doc["offer_id"]:
                    raise DuplicateMatchError(doc["idea_id"], doc["offer_id"])
            return self._insert("match", doc)

    def get_match(self, match_id):
        return self._get("match", match_id)

    def patch_match(self, match_id, fields):
        return self._patch("match", match_id, fields)

    def query_match_by_idea_and_offer(self, idea_id, offer_id):
        found = self._find("match", idea_id=idea_id, offer_id=offer_id)
        return found[0] if found else None

    def query_matches_by_idea(self, idea_id):
        return self._find("match", idea_id=idea_id)

    def query_matches_by_investor(self, investor_id):
        return self._find("match", investor_id=investor_id)

    def query_matches_by_creator(self, creator_id):
        return self._find("match", creator_id=creator_id)

    def query_matches_by_status(self, status):
        return self._find("match", status=status)

    def insert_activity(self, doc):
        with self._lock:
            return self._insert("activitylog", doc)

    def query_activity(self, filt):
        return self._find("activitylog", **filt)

    def collection_names(self):
        return list(self._tables)
