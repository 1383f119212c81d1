"""
Compatibility scoring between a business idea and an investment offer.

The score is a weighted sum of four factors, each reported on a 0-100 scale:

    amount compatibility   40%
    industry alignment     30%
    stage preference       20%
    risk alignment         10%

Everything here is pure: no I/O, no logging, no mutation of the inputs.
Inputs are expected to be validated pydantic models (see schemas.py).
"""
import math
from typing import NamedTuple

from schemas import BusinessIdea, InvestmentOffer, User, MatchingFactors

AMOUNT_WEIGHT = 40
INDUSTRY_WEIGHT = 30
STAGE_WEIGHT = 20
RISK_WEIGHT = 10

TAG_MATCH_POINTS = 20
TAG_MATCH_CAP = 80

EXPERIENCE_KEYWORDS = ("experienced", "serial", "expert")


class ScoreResult(NamedTuple):
    score: int
    factors: MatchingFactors


def amount_compatibility(funding_goal: float, range_min: float, range_max: float) -> float:
    """100 inside the range, linear ramp down to 0 at half (or double) the bound."""
    if range_min <= funding_goal <= range_max:
        return 100.0
    if funding_goal < range_min:
        ratio = funding_goal / range_min
    else:
        ratio = range_max / funding_goal
    return min(100.0, max(0.0, (ratio - 0.5) * 200))


def industry_alignment(category: str, tags, preferred_industries) -> float:
    industries = [i.lower() for i in preferred_industries]
    cat = category.lower()
    if any(ind in cat or cat in ind for ind in industries):
        return 100.0
    tag_matches = sum(
        1 for tag in tags
        if any(ind in tag.lower() for ind in industries)
    )
    return float(min(TAG_MATCH_CAP, tag_matches * TAG_MATCH_POINTS))


def stage_preference(stage: str, preferred_stages) -> float:
    return 100.0 if stage in preferred_stages else 0.0


def has_experience(experience) -> bool:
    text = (experience or "").lower()
    return any(kw in text for kw in EXPERIENCE_KEYWORDS)


def risk_alignment(risk_tolerance, stage: str, experienced: bool) -> float:
    tolerance = risk_tolerance or "medium"
    concept = stage == "concept"
    # order matters: first matching rule wins
    if tolerance == "high" and (concept or not experienced):
        return 80.0
    if tolerance == "medium" and not concept:
        return 70.0
    if tolerance == "low" and experienced and not concept:
        return 90.0
    if tolerance == "low" and (not experienced or concept):
        return 30.0
    return 50.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_match_score(idea: BusinessIdea, offer: InvestmentOffer,
                          creator: User, investor: User) -> ScoreResult:
    """Score one idea/offer pair. Returns the integer score and raw factors."""
    factors = MatchingFactors(
        amount_compatibility=amount_compatibility(
            idea.funding_goal, offer.amount_range.min, offer.amount_range.max
        ),
        industry_alignment=industry_alignment(
            idea.category, idea.tags, offer.preferred_industries
        ),
        stage_preference=stage_preference(idea.stage, offer.preferred_stages),
        risk_alignment=risk_alignment(
            investor.risk_tolerance, idea.stage, has_experience(creator.experience)
        ),
    )
    total = (
        factors.amount_compatibility / 100 * AMOUNT_WEIGHT
        + factors.industry_alignment / 100 * INDUSTRY_WEIGHT
        + factors.stage_preference / 100 * STAGE_WEIGHT
        + factors.risk_alignment / 100 * RISK_WEIGHT
    )
    return ScoreResult(max(0, min(100, round_half_up(total))), factors)
