"""
Shared fixtures: an in-memory store, a recorder and a manager wired together,
plus one stored creator/investor/idea/offer.
"""
import pytest

from activity import ActivityRecorder
from matching import MatchManager
from store import InMemoryStore
from tests.factories import creator_doc, idea_doc, investor_doc, offer_doc


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def recorder(store):
    rec = ActivityRecorder(store).init()
    yield rec
    rec.shutdown()


@pytest.fixture
def manager(store, recorder):
    return MatchManager(store, recorder=recorder)


@pytest.fixture
def creator_id(store):
    return store.insert_user(creator_doc())


@pytest.fixture
def investor_id(store):
    return store.insert_user(investor_doc())


@pytest.fixture
def idea_id(store, creator_id):
    return store.insert_idea(idea_doc(creator_id))


@pytest.fixture
def offer_id(store, investor_id):
    return store.insert_offer(offer_doc(investor_id))
