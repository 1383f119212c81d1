"""
MongoDB access layer.

`db` is None when DATABASE_URL is not configured; the app then falls back to
the in-memory store.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError

from config import get_settings
from store import DuplicateMatchError, MatchStore

logger = logging.getLogger(__name__)

_settings = get_settings()
client: Optional[MongoClient] = MongoClient(_settings.database_url) if _settings.database_url else None
db = client[_settings.database_name] if client is not None else None


def _serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc["_id"] = str(doc["_id"]) if "_id" in doc else None
    return doc


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]], database=None) -> str:
    database = db if database is None else database
    if database is None:
        raise RuntimeError("Database not configured")
    payload = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    result = database[collection_name].insert_one(payload)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None, database=None) -> List[Dict[str, Any]]:
    database = db if database is None else database
    if database is None:
        raise RuntimeError("Database not configured")
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return [_serialize(d) for d in cursor]


def to_object_id(id_str: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(id_str):
        return None
    return ObjectId(id_str)


class MongoStore(MatchStore):
    name = "mongo"

    USERS = "user"
    IDEAS = "businessidea"
    OFFERS = "investmentoffer"
    MATCHES = "match"
    ACTIVITY = "activitylog"

    def __init__(self, database=None):
        self.db = db if database is None else database
        if self.db is None:
            raise RuntimeError("Database not configured")

    def ensure_indexes(self):
        matches = self.db[self.MATCHES]
        matches.create_index([("idea_id", ASCENDING), ("offer_id", ASCENDING)], unique=True)
        for field in ("idea_id", "investor_id", "creator_id", "status"):
            matches.create_index(field)
        self.db[self.IDEAS].create_index("status")
        self.db[self.IDEAS].create_index("creator_id")
        self.db[self.OFFERS].create_index("is_active")
        self.db[self.OFFERS].create_index("investor_id")
        self.db[self.USERS].create_index("user_type")
        logger.info("Mongo indexes ensured on %s", self.db.name)

    def _get(self, collection: str, doc_id: str):
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return _serialize(self.db[collection].find_one({"_id": oid}))

    def _patch(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        oid = to_object_id(doc_id)
        if oid is None:
            return False
        result = self.db[collection].update_one({"_id": oid}, {"$set": fields})
        return result.matched_count > 0

    def _find(self, collection: str, filt: Dict[str, Any]):
        return get_documents(collection, filt, database=self.db)

    def insert_user(self, doc):
        return create_document(self.USERS, doc, database=self.db)

    def get_user(self, user_id):
        return self._get(self.USERS, user_id)

    def query_users_by_type(self, user_type):
        return self._find(self.USERS, {"user_type": user_type})

    def insert_idea(self, doc):
        return create_document(self.IDEAS, doc, database=self.db)

    def get_idea(self, idea_id):
        return self._get(self.IDEAS, idea_id)

    def patch_idea(self, idea_id, fields):
        return self._patch(self.IDEAS, idea_id, fields)

    def query_ideas_by_status(self, status):
        return self._find(self.IDEAS, {"status": status})

    def query_ideas_by_creator(self, creator_id):
        return self._find(self.IDEAS, {"creator_id": creator_id})

    def insert_offer(self, doc):
        return create_document(self.OFFERS, doc, database=self.db)

    def get_offer(self, offer_id):
        return self._get(self.OFFERS, offer_id)

    def patch_offer(self, offer_id, fields):
        return self._patch(self.OFFERS, offer_id, fields)

    def query_offers_by_active(self, is_active):
        return self._find(self.OFFERS, {"is_active": is_active})

    def query_offers_by_investor(self, investor_id):
        return self._find(self.OFFERS, {"investor_id": investor_id})

    def insert_match(self, doc):
        try:
            return create_document(self.MATCHES, doc, database=self.db)
        except DuplicateKeyError:
            raise DuplicateMatchError(doc["idea_id"], doc["offer_id"])

    def get_match(self, match_id):
        return self._get(self.MATCHES, match_id)

    def patch_match(self, match_id, fields):
        return self._patch(self.MATCHES, match_id, fields)

    def query_match_by_idea_and_offer(self, idea_id, offer_id):
        return _serialize(self.db[self.MATCHES].find_one({"idea_id": idea_id, "offer_id": offer_id}))

    def query_matches_by_idea(self, idea_id):
        return self._find(self.MATCHES, {"idea_id": idea_id})

    def query_matches_by_investor(self, investor_id):
        return self._find(self.MATCHES, {"investor_id": investor_id})

    def query_matches_by_creator(self, creator_id):
        return self._find(self.MATCHES, {"creator_id": creator_id})

    def query_matches_by_status(self, status):
        return self._find(self.MATCHES, {"status": status})

    def insert_activity(self, doc):
        return create_document(self.ACTIVITY, doc, database=self.db)

    def query_activity(self, filt):
        return self._find(self.ACTIVITY, filt)

    def collection_names(self):
        return self.db.list_collection_names()
