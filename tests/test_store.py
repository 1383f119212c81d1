"""
Tests for the storage backends. MongoStore runs against a mocked database.
"""
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from database import MongoStore, to_object_id
from store import DuplicateMatchError, InMemoryStore


def match_doc(idea_id="idea", offer_id="offer", **overrides):
    doc = {
        "idea_id": idea_id, "offer_id": offer_id,
        "investor_id": "inv", "creator_id": "cre",
        "match_score": 70, "matching_factors": {},
        "status": "suggested", "created_at": 1, "updated_at": 1,
    }
    doc.update(overrides)
    return doc


@pytest.mark.unit
class TestInMemoryStore:

    def test_insert_assigns_string_ids(self, store):
        user_id = store.insert_user({"name": "A", "user_type": "creator"})
        assert isinstance(user_id, str)
        assert store.get_user(user_id)["_id"] == user_id

    def test_returned_records_are_copies(self, store):
        idea_id = store.insert_idea({"status": "published", "tags": ["a"]})
        store.get_idea(idea_id)["tags"].append("b")
        assert store.get_idea(idea_id)["tags"] == ["a"]

    def test_duplicate_pair_is_rejected(self, store):
        store.insert_match(match_doc())
        with pytest.raises(DuplicateMatchError) as exc:
            store.insert_match(match_doc(match_score=90))
        assert exc.value.idea_id == "idea"
        assert len(store.query_matches_by_idea("idea")) == 1

    def test_same_idea_different_offer_is_allowed(self, store):
        store.insert_match(match_doc(offer_id="o1"))
        store.insert_match(match_doc(offer_id="o2"))
        assert len(store.query_matches_by_idea("idea")) == 2
        assert store.query_match_by_idea_and_offer("idea", "o2")["offer_id"] == "o2"
        assert store.query_match_by_idea_and_offer("idea", "o3") is None

    def test_patch_missing_record(self, store):
        assert store.patch_match("missing", {"status": "viewed"}) is False

    def test_filters(self, store):
        store.insert_offer({"investor_id": "a", "is_active": True})
        store.insert_offer({"investor_id": "a", "is_active": False})
        store.insert_offer({"investor_id": "b", "is_active": True})
        assert len(store.query_offers_by_active(True)) == 2
        assert len(store.query_offers_by_investor("a")) == 2

    def test_collection_names(self):
        assert "match" in InMemoryStore().collection_names()


@pytest.mark.unit
class TestMongoStore:

    @pytest.fixture
    def database(self):
        return MagicMock()

    def test_requires_database(self, monkeypatch):
        monkeypatch.setattr("database.db", None)
        with pytest.raises(RuntimeError):
            MongoStore()

    def test_insert_match_returns_string_id(self, database):
        oid = ObjectId()
        database["match"].insert_one.return_value.inserted_id = oid
        assert MongoStore(database).insert_match(match_doc()) == str(oid)

    def test_duplicate_key_becomes_duplicate_match(self, database):
        database["match"].insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")
        with pytest.raises(DuplicateMatchError):
            MongoStore(database).insert_match(match_doc())

    def test_get_serializes_id(self, database):
        oid = ObjectId()
        database["businessidea"].find_one.return_value = {"_id": oid, "title": "x"}
        idea = MongoStore(database).get_idea(str(oid))
        assert idea == {"_id": str(oid), "title": "x"}
        database["businessidea"].find_one.assert_called_once_with({"_id": oid})

    def test_bad_id_is_not_found(self, database):
        store = MongoStore(database)
        assert store.get_match("not-an-object-id") is None
        assert store.patch_match("not-an-object-id", {"status": "viewed"}) is False

    def test_patch_uses_set(self, database):
        oid = ObjectId()
        database["match"].update_one.return_value.matched_count = 1
        assert MongoStore(database).patch_match(str(oid), {"status": "viewed"}) is True
        database["match"].update_one.assert_called_once_with({"_id": oid}, {"$set": {"status": "viewed"}})

    def test_queries_serialize_results(self, database):
        oid = ObjectId()
        database["investmentoffer"].find.return_value = [{"_id": oid, "is_active": True}]
        offers = MongoStore(database).query_offers_by_active(True)
        assert offers == [{"_id": str(oid), "is_active": True}]
        database["investmentoffer"].find.assert_called_once_with({"is_active": True})

    def test_ensure_indexes_makes_pair_unique(self, database):
        MongoStore(database).ensure_indexes()
        database["match"].create_index.assert_any_call([("idea_id", 1), ("offer_id", 1)], unique=True)

    def test_to_object_id(self):
        oid = ObjectId()
        assert to_object_id(str(oid)) == oid
        assert to_object_id("nope") is None
        assert to_object_id(None) is None
