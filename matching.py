"""
Match discovery and match lifecycle.

MatchManager pairs published ideas with active offers, scores each pair,
persists the ones that clear the threshold and owns the status updates of
the resulting matches. Storage is reached only through a MatchStore.
"""
import logging
import time
from typing import Dict, List, Optional

from pydantic import ValidationError

from activity import ActivityRecorder
from schemas import (
    BusinessIdea,
    FactorAverage,
    IdeaMatchSummary,
    InvestmentOffer,
    MATCH_STATUSES,
    Match,
    MatchStatistics,
    OfferMatchSummary,
    User,
)
from scoring import calculate_match_score, round_half_up
from store import DuplicateMatchError, MatchStore

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 50
DEFAULT_TOP_LIMIT = 10
DEFAULT_RECENT_DAYS = 30
DAY_MS = 24 * 60 * 60 * 1000

FACTOR_NAMES = ("amount_compatibility", "industry_alignment", "stage_preference", "risk_alignment")

ALLOWED_TRANSITIONS = {
    "suggested": {"viewed", "contacted", "rejected"},
    "viewed": {"contacted", "rejected"},
    "contacted": {"negotiating", "rejected"},
    "negotiating": {"invested", "rejected"},
    "invested": set(),
    "rejected": set(),
}


class MatchingError(Exception):
    pass


class NotFoundError(MatchingError):
    pass


class InvalidStateError(MatchingError):
    pass


class InvalidTransitionError(InvalidStateError):
    pass


def can_transition(current: str, new: str) -> bool:
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(current, set())


def now_ms() -> int:
    return int(time.time() * 1000)


def summarize_matches(matches: List[dict], recent_days: int = DEFAULT_RECENT_DAYS,
                      now: Optional[int] = None) -> MatchStatistics:
    total = len(matches)
    counts = {status: 0 for status in MATCH_STATUSES}
    for m in matches:
        counts[m.get("status")] = counts.get(m.get("status"), 0) + 1
    if total == 0:
        return MatchStatistics(status_counts=counts, recent_days=recent_days)

    cutoff = (now_ms() if now is None else now) - recent_days * DAY_MS
    factor_sums = {name: 0.0 for name in FACTOR_NAMES}
    for m in matches:
        factors = m.get("matching_factors") or {}
        for name in FACTOR_NAMES:
            factor_sums[name] += factors.get(name, 0)
    top_factors = sorted(
        (FactorAverage(factor=name, average=value / total) for name, value in factor_sums.items()),
        key=lambda f: f.average, reverse=True,
    )

    return MatchStatistics(
        total_matches=total,
        average_score=round_half_up(sum(m.get("match_score", 0) for m in matches) / total),
        status_counts=counts,
        success_rate=counts["invested"] * 100 // total,
        recent_matches=sum(1 for m in matches if m.get("created_at", 0) > cutoff),
        recent_days=recent_days,
        top_factors=top_factors,
    )


class MatchManager:
    def __init__(self, store: MatchStore, threshold: int = DEFAULT_THRESHOLD,
                 top_limit: int = DEFAULT_TOP_LIMIT, strict_transitions: bool = False,
                 recorder: Optional[ActivityRecorder] = None):
        self.store = store
        self.threshold = threshold
        self.top_limit = top_limit
        self.strict_transitions = strict_transitions
        self.recorder = recorder

    # ----- Discovery -----
    def find_matches_for_idea(self, idea_id: str) -> List[IdeaMatchSummary]:
        idea_doc = self.store.get_idea(idea_id)
        if idea_doc is None:
            raise NotFoundError("Idea not found")
        if idea_doc.get("status") != "published":
            raise InvalidStateError("Idea is not published")
        idea = self._load_target(BusinessIdea, idea_doc, "Idea")

        creator_doc = self.store.get_user(idea.creator_id)
        if creator_doc is None:
            raise NotFoundError("Creator not found")
        creator = self._load_target(User, creator_doc, "Creator")

        offers = self.store.query_offers_by_active(True)
        investors = self._users_by_id("investor")
        logger.info("Discovering matches for idea %s against %d active offers", idea_id, len(offers))

        results = []
        for offer_doc in offers:
            offer_id = offer_doc["_id"]
            investor = investors.get(offer_doc.get("investor_id"))
            if investor is None:
                logger.debug("Skipping offer %s: investor %s not found", offer_id, offer_doc.get("investor_id"))
                continue
            offer = self._load_candidate(InvestmentOffer, offer_doc)
            if offer is None:
                continue
            match_id, score = self._evaluate_pair(idea_id, idea, offer_id, offer, creator, investor)
            if match_id is not None:
                results.append(IdeaMatchSummary(
                    match_id=match_id, score=score,
                    offer_title=offer.title, investor_name=investor.name,
                ))

        logger.info("Idea %s: %d new matches", idea_id, len(results))
        return results

    def find_matches_for_offer(self, offer_id: str) -> List[OfferMatchSummary]:
        offer_doc = self.store.get_offer(offer_id)
        if offer_doc is None:
            raise NotFoundError("Offer not found")
        if not offer_doc.get("is_active"):
            raise InvalidStateError("Offer is not active")
        offer = self._load_target(InvestmentOffer, offer_doc, "Offer")

        investor_doc = self.store.get_user(offer.investor_id)
        if investor_doc is None:
            raise NotFoundError("Investor not found")
        investor = self._load_target(User, investor_doc, "Investor")

        ideas = self.store.query_ideas_by_status("published")
        creators = self._users_by_id("creator")
        logger.info("Discovering matches for offer %s against %d published ideas", offer_id, len(ideas))

        results = []
        for idea_doc in ideas:
            idea_id = idea_doc["_id"]
            creator = creators.get(idea_doc.get("creator_id"))
            if creator is None:
                logger.debug("Skipping idea %s: creator %s not found", idea_id, idea_doc.get("creator_id"))
                continue
            idea = self._load_candidate(BusinessIdea, idea_doc)
            if idea is None:
                continue
            match_id, score = self._evaluate_pair(idea_id, idea, offer_id, offer, creator, investor)
            if match_id is not None:
                results.append(OfferMatchSummary(
                    match_id=match_id, score=score,
                    idea_title=idea.title, creator_name=creator.name,
                ))

        logger.info("Offer %s: %d new matches", offer_id, len(results))
        return results

    def _evaluate_pair(self, idea_id, idea, offer_id, offer, creator, investor):
        """Score a pair and persist it if new and above threshold.

        Returns (match_id, score); match_id is None when nothing was written.
        """
        if self.store.query_match_by_idea_and_offer(idea_id, offer_id) is not None:
            return None, None

        result = calculate_match_score(idea, offer, creator, investor)
        if result.score < self.threshold:
            return None, result.score

        ts = now_ms()
        match = Match(
            idea_id=idea_id,
            offer_id=offer_id,
            investor_id=offer.investor_id,
            creator_id=idea.creator_id,
            match_score=result.score,
            matching_factors=result.factors,
            status="suggested",
            created_at=ts,
            updated_at=ts,
        )
        try:
            match_id = self.store.insert_match(match.model_dump())
        except DuplicateMatchError:
            # another discovery run wrote this pair between our check and insert
            logger.info("Match for idea %s / offer %s already exists, skipping", idea_id, offer_id)
            return None, result.score

        logger.debug("Created match %s (idea %s, offer %s, score %d)", match_id, idea_id, offer_id, result.score)
        self._record(idea.creator_id, "creator", "match_suggested",
                     {"match_id": match_id, "idea_id": idea_id, "offer_id": offer_id, "score": result.score})
        return match_id, result.score

    def _users_by_id(self, user_type: str) -> Dict[str, User]:
        users = {}
        for doc in self.store.query_users_by_type(user_type):
            user = self._load_candidate(User, doc)
            if user is not None:
                users[doc["_id"]] = user
        return users

    @staticmethod
    def _load_target(model, doc, label):
        try:
            return model.model_validate(doc)
        except ValidationError as e:
            raise InvalidStateError(f"{label} has invalid data: {e.error_count()} validation error(s)")

    @staticmethod
    def _load_candidate(model, doc):
        try:
            return model.model_validate(doc)
        except ValidationError as e:
            logger.warning("Skipping %s %s: %s", model.__name__, doc.get("_id"), e.errors()[0].get("msg"))
            return None

    def _record(self, user_id, user_type, action, meta):
        if self.recorder is None or not self.recorder.is_open:
            return
        try:
            self.recorder.record(user_id, user_type, action, meta)
        except Exception:
            logger.exception("Failed to record activity %s for %s", action, user_id)

    # ----- Queries -----
    def get_match(self, match_id: str) -> Optional[dict]:
        return self.store.get_match(match_id)

    def get_matches_by_idea(self, idea_id: str) -> List[dict]:
        return self.store.query_matches_by_idea(idea_id)

    def get_matches_by_investor(self, investor_id: str) -> List[dict]:
        return self.store.query_matches_by_investor(investor_id)

    def get_matches_by_creator(self, creator_id: str) -> List[dict]:
        return self.store.query_matches_by_creator(creator_id)

    def get_matches_by_status(self, status: str) -> List[dict]:
        if status not in MATCH_STATUSES:
            raise ValueError(f"Unknown match status: {status}")
        return self.store.query_matches_by_status(status)

    def get_top_matches_for_idea(self, idea_id: str, limit: Optional[int] = None) -> List[dict]:
        """Highest-scoring matches for an idea, at most `limit` of them.

        `limit=None` uses the manager's default (10 unless configured).
        A limit below 1 raises ValueError rather than falling back to the
        default, so the HTTP layer answers `limit=0` with a 400.
        """
        limit = self.top_limit if limit is None else limit
        if limit < 1:
            raise ValueError("limit must be positive")
        matches = self.store.query_matches_by_idea(idea_id)
        # sorted() is stable, equal scores keep fetch order
        return sorted(matches, key=lambda m: m["match_score"], reverse=True)[:limit]

    def get_match_statistics(self, user_id: Optional[str] = None, user_type: Optional[str] = None,
                             recent_days: int = DEFAULT_RECENT_DAYS) -> MatchStatistics:
        """Aggregate figures over a set of matches.

        Without a user id every match on the platform is counted. With one,
        only that user's matches are counted: as creator or as investor
        depending on `user_type`, which is read from the user record when
        not given.
        """
        if recent_days < 1:
            raise ValueError("recent_days must be positive")
        if user_id is None:
            if user_type is not None:
                raise ValueError("user_type requires user_id")
            matches = [m for status in MATCH_STATUSES for m in self.store.query_matches_by_status(status)]
        else:
            if user_type is None:
                user = self.store.get_user(user_id)
                if user is None:
                    raise NotFoundError("User not found")
                user_type = user.get("user_type")
            if user_type == "creator":
                matches = self.store.query_matches_by_creator(user_id)
            elif user_type == "investor":
                matches = self.store.query_matches_by_investor(user_id)
            else:
                raise ValueError(f"Unknown user type: {user_type}")
        return summarize_matches(matches, recent_days)

    # ----- Lifecycle -----
    def update_match_status(self, match_id: str, status: str) -> dict:
        if status not in MATCH_STATUSES:
            raise ValueError(f"Unknown match status: {status}")
        match = self.store.get_match(match_id)
        if match is None:
            raise NotFoundError("Match not found")

        previous = match.get("status")
        if self.strict_transitions and not can_transition(previous, status):
            raise InvalidTransitionError(f"Cannot move match from {previous} to {status}")

        updated_at = max(now_ms(), match.get("updated_at", 0) + 1)
        fields = {"status": status, "updated_at": updated_at}
        if not self.store.patch_match(match_id, fields):
            raise NotFoundError("Match not found")
        match.update(fields)

        logger.info("Match %s status %s -> %s", match_id, previous, status)
        self._record(match["investor_id"], "investor", "match_status_changed",
                     {"match_id": match_id, "from": previous, "to": status})
        return match
