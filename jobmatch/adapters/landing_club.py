from typing import Any, Iterable, Optional

import httpx
from pydantic import BaseModel

from jobmatch.adapters.base import BaseSponsorAdapter
from jobmatch.client.http import get_client
from jobmatch.errors import SponsorProviderError, SponsorProviderNotConfigured
from jobmatch.log import get_logger
from jobmatch.models.sponsor import CandidateSponsor, SponsorUpdate
from jobmatch.pipeline.normalize import normalize_company_name
from jobmatch.settings import settings

log = get_logger(__name__)

# ------------------------------------------------------------------
# Field names seen in provider payloads, tried left to right per attribute
# ------------------------------------------------------------------
SPONSOR_FIELDS: dict[str, list[str]] = {
    "name": ["companyName", "name", "company", "organization", "title"],
    "normalized_name": ["normalizedName", "normalized_name"],
    "id": ["id", "companyId", "slug"],
    "confidence": ["sponsorshipConfidence", "visaSuccessScore", "sponsorship_score", "score"],
    "last_year": ["lastYearSponsored", "last_year_sponsored", "latest_filing_year", "h1b_last_year"],
    "total_filings": ["totalFilings", "total_filings", "totalFilingsLast5Years"],
    "updates": ["recentUpdates", "updates", "latest_updates", "news"],
    "visa_types": ["visaTypes", "visa_types", "supportedVisas", "sponsorshipTypes", "sponsorship_types"],
    "updated_at": ["updatedAt", "updated_at", "last_updated_at"],
}

UPDATE_FIELDS: dict[str, list[str]] = {
    "summary": ["summary", "description", "title", "headline"],
    "occurred_at": ["occurredAt", "date", "updated_at", "timestamp"],
}

# Candidate lists may be wrapped under one of these keys, or be the body itself
RESULT_KEYS = ["results", "companies"]


def pick(entry: dict, names: Iterable[str]) -> Any:
    """First field in `names` that holds a usable value."""
    for name in names:
        value = entry.get(name)
        if value is not None and value != "":
            return value
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(round(value))
    return None


def _latest_update(updates: Any) -> Optional[SponsorUpdate]:
    if not isinstance(updates, list) or not updates or not isinstance(updates[0], dict):
        return None
    first = updates[0]
    summary = pick(first, UPDATE_FIELDS["summary"])
    if not summary or not isinstance(summary, str):
        return None
    occurred = pick(first, UPDATE_FIELDS["occurred_at"])
    return SponsorUpdate(summary=summary, occurred_at=str(occurred) if occurred is not None else None)


def map_sponsor_entry(entry: Any) -> Optional[CandidateSponsor]:
    if not isinstance(entry, dict):
        return None
    name = pick(entry, SPONSOR_FIELDS["name"])
    if not name or not isinstance(name, str):
        return None

    normalized = pick(entry, SPONSOR_FIELDS["normalized_name"])
    normalized = normalize_company_name(normalized if isinstance(normalized, str) else name)
    visa_types = pick(entry, SPONSOR_FIELDS["visa_types"])
    updated_at = pick(entry, SPONSOR_FIELDS["updated_at"])

    return CandidateSponsor(
        id=str(pick(entry, SPONSOR_FIELDS["id"]) or normalized),
        name=name,
        normalized_name=normalized,
        visa_types=[str(v) for v in visa_types if v] if isinstance(visa_types, list) else None,
        sponsorship_confidence=_as_int(pick(entry, SPONSOR_FIELDS["confidence"])),
        last_year_sponsored=_as_int(pick(entry, SPONSOR_FIELDS["last_year"])),
        total_filings=_as_int(pick(entry, SPONSOR_FIELDS["total_filings"])),
        latest_update=_latest_update(pick(entry, SPONSOR_FIELDS["updates"])),
        updated_at=str(updated_at) if updated_at is not None else None,
        raw=entry,
    )


def extract_candidates(data: Any) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in RESULT_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
    return []


class SponsorApiConfig(BaseModel):
    base_url: str = settings.SPONSOR_API_BASE_URL
    api_key: Optional[str] = None
    timeout: float = settings.SPONSOR_API_TIMEOUT
    search_limit: int = settings.SPONSOR_SEARCH_LIMIT

    @classmethod
    def from_settings(cls) -> "SponsorApiConfig":
        return cls(
            base_url=settings.SPONSOR_API_BASE_URL,
            api_key=settings.SPONSOR_API_KEY,
            timeout=settings.SPONSOR_API_TIMEOUT,
            search_limit=settings.SPONSOR_SEARCH_LIMIT,
        )


class LandingClubAdapter(BaseSponsorAdapter):
    source_name = "landing_club"

    def __init__(self, config: SponsorApiConfig, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def search_companies(self, query: str) -> list[CandidateSponsor]:
        if not query:
            return []
        if not self.is_configured():
            raise SponsorProviderNotConfigured("sponsor API key is not set")

        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        try:
            with get_client(
                base_url=self.config.base_url.rstrip("/") + "/",
                timeout=self.config.timeout,
                headers=headers,
                transport=self.transport,
            ) as client:
                r = client.get("companies/search", params={"query": query, "limit": self.config.search_limit})
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            raise SponsorProviderError(
                f"sponsor search failed ({e.response.status_code}): {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise SponsorProviderError(f"sponsor search failed: {e}") from e
        except ValueError as e:
            raise SponsorProviderError(f"sponsor search returned invalid JSON: {e}") from e

        candidates = [c for c in map(map_sponsor_entry, extract_candidates(data)) if c]
        log.debug("sponsor search %r -> %d candidates", query, len(candidates))
        return candidates


def pick_best_candidate(company_name: str, candidates: list[CandidateSponsor]) -> Optional[CandidateSponsor]:
    """Exact normalized-name match if present, else the provider's top result."""
    if not candidates:
        return None
    wanted = normalize_company_name(company_name)
    for c in candidates:
        if normalize_company_name(c.name) == wanted:
            return c
    return candidates[0]
