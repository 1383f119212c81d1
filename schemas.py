"""
Database Schemas for the Business Matchmaking Platform

Each Pydantic model maps to a MongoDB collection. The collection name is the
lowercase of the class name (e.g., BusinessIdea -> "businessidea").
"""
from typing import List, Optional, Literal, Dict, Any, Annotated
from pydantic import BaseModel, Field, EmailStr, StringConstraints, model_validator

BusinessStage = Literal["concept", "mvp", "early", "growth"]
IdeaStatus = Literal["draft", "published", "funded", "cancelled"]
UserType = Literal["creator", "investor"]
RiskTolerance = Literal["low", "medium", "high"]
InvestmentType = Literal["equity", "debt", "convertible"]
MatchStatus = Literal["suggested", "viewed", "contacted", "negotiating", "invested", "rejected"]

MATCH_STATUSES = ("suggested", "viewed", "contacted", "negotiating", "invested", "rejected")

# labels are matched by substring, so an empty one would match everything
Label = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# --- Users ---
class User(BaseModel):
    name: str = Field(..., description="Display name")
    email: Optional[EmailStr] = None
    user_type: UserType
    company_name: Optional[str] = None
    industry: Optional[str] = None
    experience: Optional[str] = Field(None, description="Free text, scanned for seniority keywords")
    risk_tolerance: Optional[RiskTolerance] = Field(None, description="Investor only, treated as medium when absent")
    bio: Optional[str] = None
    location: Optional[str] = None


# --- Ideas & Offers ---
class BusinessIdea(BaseModel):
    creator_id: str
    title: str
    description: str = ""
    category: Label = Field(..., description="Free-text category label")
    tags: List[Label] = Field(default_factory=list)
    funding_goal: float = Field(..., gt=0)
    current_funding: float = Field(0, ge=0)
    equity_offered: float = Field(0, ge=0, le=100)
    stage: BusinessStage = "concept"
    status: IdeaStatus = "draft"


class AmountRange(BaseModel):
    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


class EquityRange(BaseModel):
    min: float = Field(0, ge=0, le=100)
    max: float = Field(100, ge=0, le=100)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


class InvestmentOffer(BaseModel):
    investor_id: str
    title: str
    description: str = ""
    amount_range: AmountRange
    preferred_equity: EquityRange = Field(default_factory=EquityRange)
    preferred_stages: List[BusinessStage] = Field(default_factory=list)
    preferred_industries: List[Label] = Field(default_factory=list)
    investment_type: InvestmentType = "equity"
    is_active: bool = True


# --- Matchmaking ---
class MatchingFactors(BaseModel):
    amount_compatibility: float = Field(0, ge=0, le=100)
    industry_alignment: float = Field(0, ge=0, le=100)
    stage_preference: float = Field(0, ge=0, le=100)
    risk_alignment: float = Field(0, ge=0, le=100)


class Match(BaseModel):
    idea_id: str
    offer_id: str
    investor_id: str
    creator_id: str
    match_score: int = Field(..., ge=0, le=100)
    matching_factors: MatchingFactors
    status: MatchStatus = "suggested"
    created_at: int = Field(..., description="Milliseconds since epoch")
    updated_at: int = Field(..., description="Milliseconds since epoch")


class IdeaMatchSummary(BaseModel):
    match_id: str
    score: int
    offer_title: str
    investor_name: str


class OfferMatchSummary(BaseModel):
    match_id: str
    score: int
    idea_title: str
    creator_name: str


class FactorAverage(BaseModel):
    factor: str
    average: float


class MatchStatistics(BaseModel):
    total_matches: int = 0
    average_score: int = Field(0, description="Mean match score, rounded")
    status_counts: Dict[str, int] = Field(default_factory=dict)
    success_rate: int = Field(0, description="Percent of matches that reached invested, floored")
    recent_matches: int = Field(0, description="Matches created inside the recent window")
    recent_days: int = 30
    top_factors: List[FactorAverage] = Field(default_factory=list, description="Factor means, highest first")


class StatusUpdate(BaseModel):
    status: MatchStatus


class IdeaStatusUpdate(BaseModel):
    status: IdeaStatus


class ActiveUpdate(BaseModel):
    is_active: bool


class ScoreRequest(BaseModel):
    idea: BusinessIdea
    offer: InvestmentOffer
    creator: User
    investor: User


class ScoreResponse(BaseModel):
    score: int
    factors: MatchingFactors


# --- Minimal Analytics ---
class ActivityLog(BaseModel):
    user_id: str
    user_type: UserType
    action: str
    meta: Optional[Dict[str, Any]] = None
