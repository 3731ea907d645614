from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class SponsorUpdate(BaseModel):
    summary: str
    occurred_at: Optional[str] = None


class CandidateSponsor(BaseModel):
    """One company match returned by the remote sponsor provider."""
    id: str
    name: str
    normalized_name: str
    visa_types: Optional[list[str]] = None
    sponsorship_confidence: Optional[int] = None
    last_year_sponsored: Optional[int] = None
    total_filings: Optional[int] = None
    latest_update: Optional[SponsorUpdate] = None
    updated_at: Optional[str] = None
    raw: Optional[dict[str, Any]] = None


class SponsorRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    company_name: str
    normalized_name: str
    aliases: list[str] = []
    sponsorship_types: list[str] = []
    last_year_sponsored: Optional[int] = None
    sponsorship_confidence: Optional[int] = 50
    notes: Optional[str] = None
    source: Optional[str] = None
    meta: dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("aliases", "sponsorship_types", mode="before")
    @classmethod
    def _null_list(cls, v):
        return v or []

    @field_validator("meta", mode="before")
    @classmethod
    def _null_meta(cls, v):
        return v if isinstance(v, dict) else {}


class SponsorSummary(BaseModel):
    id: Optional[str] = None
    company_name: str
    sponsorship_confidence: Optional[int] = None
    last_year_sponsored: Optional[int] = None
    visa_types: Optional[list[str]] = None
    latest_update: Optional[SponsorUpdate] = None
    total_filings: Optional[int] = None
    source: Optional[str] = None
