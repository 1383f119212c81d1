import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from activity import ActivityRecorder
from config import get_settings
from matching import InvalidStateError, MatchManager, NotFoundError, now_ms
from schemas import (
    ActiveUpdate,
    BusinessIdea,
    IdeaMatchSummary,
    IdeaStatusUpdate,
    InvestmentOffer,
    MatchStatistics,
    MatchStatus,
    OfferMatchSummary,
    ScoreRequest,
    ScoreResponse,
    StatusUpdate,
    User,
    UserType,
)
from scoring import calculate_match_score
from store import InMemoryStore, MatchStore

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_store: Optional[MatchStore] = None
_recorder: Optional[ActivityRecorder] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _recorder is not None:
        _recorder.shutdown()


app = FastAPI(title="Business Matchmaking API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> MatchStore:
    global _store
    if _store is None:
        if settings.store_backend == "mongo":
            from database import MongoStore
            mongo = MongoStore()
            mongo.ensure_indexes()
            _store = mongo
        else:
            _store = InMemoryStore()
        logger.info("Using %s store", _store.name)
    return _store


def get_recorder(store: MatchStore = Depends(get_store)) -> ActivityRecorder:
    global _recorder
    if _recorder is None or _recorder.store is not store:
        _recorder = ActivityRecorder(store).init()
    return _recorder


def get_manager(store: MatchStore = Depends(get_store),
                recorder: ActivityRecorder = Depends(get_recorder)) -> MatchManager:
    return MatchManager(
        store,
        threshold=settings.match_score_threshold,
        top_limit=settings.top_matches_limit,
        strict_transitions=settings.strict_status_transitions,
        recorder=recorder,
    )


def _raise_http(e: Exception):
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidStateError):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        raise HTTPException(status_code=400, detail=str(e))
    raise e


@app.get("/")
def root():
    return {"message": "Matchmaking backend is running"}


@app.get("/test")
def test_database(store: MatchStore = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "store": store.name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["collections"] = store.collection_names()[:10]
        response["connection_status"] = "Connected"
    except Exception as e:
        logger.warning("Store health check failed: %s", e)
        response["connection_status"] = f"❌ Error: {str(e)[:80]}"
    return response


# ----- User Endpoints -----
@app.post("/api/users", response_model=dict)
async def create_user(payload: User, store: MatchStore = Depends(get_store)):
    return {"id": store.insert_user(payload.model_dump())}


@app.get("/api/users", response_model=List[dict])
async def list_users(user_type: UserType, store: MatchStore = Depends(get_store)):
    return store.query_users_by_type(user_type)


@app.get("/api/users/{user_id}", response_model=dict)
async def get_user(user_id: str, store: MatchStore = Depends(get_store)):
    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _require_user(store: MatchStore, user_id: str, user_type: str):
    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail=f"{user_type.capitalize()} not found")
    if user.get("user_type") != user_type:
        raise HTTPException(status_code=400, detail=f"User {user_id} is not a {user_type}")
    return user


# ----- Idea Endpoints -----
@app.post("/api/ideas", response_model=dict)
async def create_idea(payload: BusinessIdea, store: MatchStore = Depends(get_store)):
    _require_user(store, payload.creator_id, "creator")
    ts = now_ms()
    doc = payload.model_dump()
    doc.update(created_at=ts, updated_at=ts)
    return {"id": store.insert_idea(doc)}


@app.get("/api/ideas", response_model=List[dict])
async def list_ideas(status: Optional[str] = None, creator_id: Optional[str] = None,
                     store: MatchStore = Depends(get_store)):
    if creator_id:
        docs = store.query_ideas_by_creator(creator_id)
        return [d for d in docs if status is None or d.get("status") == status]
    return store.query_ideas_by_status(status or "published")


@app.get("/api/ideas/{idea_id}", response_model=dict)
async def get_idea(idea_id: str, store: MatchStore = Depends(get_store)):
    idea = store.get_idea(idea_id)
    if idea is None:
        raise HTTPException(status_code=404, detail="Idea not found")
    return idea


@app.patch("/api/ideas/{idea_id}/status", response_model=dict)
async def update_idea_status(idea_id: str, body: IdeaStatusUpdate, store: MatchStore = Depends(get_store)):
    if not store.patch_idea(idea_id, {"status": body.status, "updated_at": now_ms()}):
        raise HTTPException(status_code=404, detail="Idea not found")
    return store.get_idea(idea_id)


# ----- Offer Endpoints -----
@app.post("/api/offers", response_model=dict)
async def create_offer(payload: InvestmentOffer, store: MatchStore = Depends(get_store)):
    _require_user(store, payload.investor_id, "investor")
    ts = now_ms()
    doc = payload.model_dump()
    doc.update(created_at=ts, updated_at=ts)
    return {"id": store.insert_offer(doc)}


@app.get("/api/offers", response_model=List[dict])
async def list_offers(active: bool = True, investor_id: Optional[str] = None,
                      store: MatchStore = Depends(get_store)):
    if investor_id:
        docs = store.query_offers_by_investor(investor_id)
        return [d for d in docs if d.get("is_active") == active]
    return store.query_offers_by_active(active)


@app.get("/api/offers/{offer_id}", response_model=dict)
async def get_offer(offer_id: str, store: MatchStore = Depends(get_store)):
    offer = store.get_offer(offer_id)
    if offer is None:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


@app.patch("/api/offers/{offer_id}/active", response_model=dict)
async def update_offer_active(offer_id: str, body: ActiveUpdate, store: MatchStore = Depends(get_store)):
    if not store.patch_offer(offer_id, {"is_active": body.is_active, "updated_at": now_ms()}):
        raise HTTPException(status_code=404, detail="Offer not found")
    return store.get_offer(offer_id)


# ----- Matchmaking -----
@app.post("/api/score", response_model=ScoreResponse)
async def preview_score(body: ScoreRequest):
    result = calculate_match_score(body.idea, body.offer, body.creator, body.investor)
    return ScoreResponse(score=result.score, factors=result.factors)


@app.post("/api/ideas/{idea_id}/matches", response_model=List[IdeaMatchSummary])
async def find_matches_for_idea(idea_id: str, manager: MatchManager = Depends(get_manager)):
    try:
        return manager.find_matches_for_idea(idea_id)
    except (NotFoundError, InvalidStateError) as e:
        _raise_http(e)


@app.post("/api/offers/{offer_id}/matches", response_model=List[OfferMatchSummary])
async def find_matches_for_offer(offer_id: str, manager: MatchManager = Depends(get_manager)):
    try:
        return manager.find_matches_for_offer(offer_id)
    except (NotFoundError, InvalidStateError) as e:
        _raise_http(e)


@app.get("/api/ideas/{idea_id}/top-matches", response_model=List[dict])
async def top_matches_for_idea(idea_id: str, limit: Optional[int] = None,
                               manager: MatchManager = Depends(get_manager)):
    try:
        return manager.get_top_matches_for_idea(idea_id, limit)
    except ValueError as e:
        _raise_http(e)


@app.get("/api/matches", response_model=List[dict])
async def list_matches(idea_id: Optional[str] = None, investor_id: Optional[str] = None,
                       creator_id: Optional[str] = None, status: Optional[MatchStatus] = None,
                       manager: MatchManager = Depends(get_manager)):
    filters = {k: v for k, v in {
        "idea_id": idea_id, "investor_id": investor_id,
        "creator_id": creator_id, "status": status,
    }.items() if v}
    if len(filters) != 1:
        raise HTTPException(status_code=400, detail="Provide exactly one of idea_id, investor_id, creator_id, status")
    if idea_id:
        return manager.get_matches_by_idea(idea_id)
    if investor_id:
        return manager.get_matches_by_investor(investor_id)
    if creator_id:
        return manager.get_matches_by_creator(creator_id)
    return manager.get_matches_by_status(status)


# registered before /api/matches/{match_id} so "stats" is not taken for an id
@app.get("/api/matches/stats", response_model=MatchStatistics)
async def match_statistics(user_id: Optional[str] = None, user_type: Optional[UserType] = None,
                           recent_days: int = 30, manager: MatchManager = Depends(get_manager)):
    try:
        return manager.get_match_statistics(user_id=user_id, user_type=user_type, recent_days=recent_days)
    except (NotFoundError, ValueError) as e:
        _raise_http(e)


@app.get("/api/matches/{match_id}", response_model=dict)
async def get_match(match_id: str, manager: MatchManager = Depends(get_manager)):
    match = manager.get_match(match_id)
    if match is None:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


@app.patch("/api/matches/{match_id}/status", response_model=dict)
async def update_match_status(match_id: str, body: StatusUpdate, manager: MatchManager = Depends(get_manager)):
    try:
        return manager.update_match_status(match_id, body.status)
    except (NotFoundError, InvalidStateError) as e:
        _raise_http(e)


# ----- Activity -----
@app.get("/api/activity", response_model=List[dict])
async def list_activity(user_id: Optional[str] = None, action: Optional[str] = None,
                        recorder: ActivityRecorder = Depends(get_recorder)):
    return recorder.query(user_id=user_id, action=action)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
