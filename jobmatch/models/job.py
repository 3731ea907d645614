from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobmatch.models.sponsor import SponsorSummary
from jobmatch.settings import settings

JobType = Literal["new_grad", "internship"]
VisaStatus = Literal["sponsor_verified", "likely_sponsor", "unknown"]


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; convert aware inputs to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class JobModel(BaseModel):
    """A normalized posting as handed over by a crawler."""
    source: str
    title: str
    company: str
    location: Optional[str] = None
    url: str
    description: Optional[str] = None
    is_remote: bool = False
    job_type: Optional[JobType] = None
    posted_at: Optional[datetime] = None
    embedding: Optional[list[float]] = None

    @field_validator("posted_at")
    @classmethod
    def _utc_posted_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class JobPosting(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    company: str
    location: Optional[str] = None
    description: Optional[str] = None
    url: str
    is_remote: Optional[bool] = None
    job_type: Optional[str] = None
    source: Optional[str] = None
    scraped_at: Optional[datetime] = None
    posted_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    is_link_active: Optional[bool] = None
    visa_status: Optional[str] = None
    sponsorship_confidence: Optional[int] = None
    visa_notes: Optional[str] = None
    visa_sponsor_id: Optional[str] = None
    manual_review: Optional[bool] = None
    similarity: Optional[float] = None
    sponsor_summary: Optional[SponsorSummary] = None


class ScoreDetails(BaseModel):
    similarity: float
    recency: float
    sponsorship: float


class SearchResult(JobPosting):
    score_details: ScoreDetails
    match_score: float
    match_reasons: list[str]


class SearchFilters(BaseModel):
    job_type: Optional[Literal["new_grad", "internship", "all"]] = None
    is_remote: Optional[bool] = None
    location: Optional[str] = None
    visa_status: Optional[VisaStatus] = None
    min_sponsorship_confidence: Optional[int] = Field(default=None, ge=0, le=100)
    requires_verified_sponsor: bool = False
    posted_after: Optional[datetime] = None
    posted_before: Optional[datetime] = None
    include_inactive: bool = False
    limit: int = Field(default=settings.SEARCH_DEFAULT_LIMIT, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, v: int) -> int:
        return min(v, settings.SEARCH_MAX_LIMIT)

    @field_validator("posted_after", "posted_before")
    @classmethod
    def _utc_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class SearchResponse(BaseModel):
    results: list[SearchResult]
    total: int
