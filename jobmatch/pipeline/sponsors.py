# jobmatch/pipeline/sponsors.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

from jobmatch.adapters.base import BaseSponsorAdapter
from jobmatch.adapters.landing_club import pick_best_candidate
from jobmatch.errors import SponsorProviderError
from jobmatch.log import get_logger
from jobmatch.models.sponsor import CandidateSponsor, SponsorRecord, SponsorSummary, SponsorUpdate
from jobmatch.pipeline import storage
from jobmatch.pipeline.normalize import normalize_company_name
from jobmatch.settings import settings

log = get_logger(__name__)

REMOTE_SOURCE = "landing_club"
# keys inside SponsorRecord.meta
META_PAYLOAD = "landing_club"
META_SYNCED_AT = "landing_club_synced_at"


# ---------------------
# Staleness policy
# ---------------------
def _parse_ts(value: Union[str, datetime, None]) -> Optional[datetime]:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value:
        try:
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def is_stale(synced_at: Union[str, datetime, None], threshold_hours: float,
             now: Optional[datetime] = None) -> bool:
    """
    True when remote data synced at `synced_at` is older than the threshold.
    Missing or unparseable timestamps count as stale.
    """
    synced = _parse_ts(synced_at)
    if synced is None:
        return True
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - synced > timedelta(hours=threshold_hours)


def synced_at(record: Optional[SponsorRecord]) -> Optional[str]:
    if record is None:
        return None
    return record.meta.get(META_SYNCED_AT)


def _cached_payload(record: Optional[SponsorRecord]) -> Optional[CandidateSponsor]:
    payload = record.meta.get(META_PAYLOAD) if record else None
    if not isinstance(payload, dict):
        return None
    try:
        return CandidateSponsor.model_validate(payload)
    except ValueError:
        log.warning("ignoring malformed cached sponsor payload for %s", record.normalized_name)
        return None


# ---------------------
# Merge & summary
# ---------------------
def merge_string_lists(*values: Optional[list[str]]) -> list[str]:
    merged: list[str] = []
    for value in values:
        for entry in value or []:
            if entry and entry not in merged:
                merged.append(entry)
    return merged


def merge_sponsor(existing: Optional[SponsorRecord], candidate: CandidateSponsor,
                  now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Column values for a sponsor row combining local and remote knowledge.
    Remote fields win when present; visa types are unioned.
    """
    now = now or datetime.now(timezone.utc)
    meta = dict(existing.meta) if existing else {}
    meta[META_PAYLOAD] = candidate.model_dump(mode="json")
    meta[META_SYNCED_AT] = now.isoformat()

    visa_types = merge_string_lists(candidate.visa_types, existing.sponsorship_types if existing else None)
    confidence = candidate.sponsorship_confidence
    if confidence is None:
        confidence = existing.sponsorship_confidence if existing else None
    if confidence is None:
        confidence = settings.DEFAULT_SPONSOR_CONFIDENCE
    last_year = candidate.last_year_sponsored
    if last_year is None and existing:
        last_year = existing.last_year_sponsored
    notes = candidate.latest_update.summary if candidate.latest_update else None

    return {
        "company_name": candidate.name,
        "aliases": list(existing.aliases) if existing else [],
        "sponsorship_types": visa_types or None,
        "last_year_sponsored": last_year,
        "sponsorship_confidence": confidence,
        "notes": notes or (existing.notes if existing else None),
        "source": REMOTE_SOURCE,
        "meta": meta,
    }


def build_sponsor_summary(record: Optional[SponsorRecord]) -> Optional[SponsorSummary]:
    if record is None:
        return None
    remote = _cached_payload(record)
    latest: Optional[SponsorUpdate] = remote.latest_update if remote else None
    return SponsorSummary(
        id=record.id,
        company_name=record.company_name,
        sponsorship_confidence=record.sponsorship_confidence,
        last_year_sponsored=record.last_year_sponsored,
        visa_types=record.sponsorship_types or (remote.visa_types if remote else None),
        latest_update=latest,
        total_filings=remote.total_filings if remote else None,
        source=record.source,
    )


# ---------------------
# Resolver
# ---------------------
class SponsorResolver:
    """
    Finds the best sponsor record for a company: local store first, the
    remote provider when the local copy is missing or stale.
    """

    def __init__(
        self,
        provider: Optional[BaseSponsorAdapter] = None,
        stale_hours: Optional[float] = None,
        session_factory: Optional[Callable] = None,
        partial_match: bool = True,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.provider = provider
        self.stale_hours = settings.SPONSOR_STALE_HOURS if stale_hours is None else stale_hours
        self._session_factory = session_factory
        self.partial_match = partial_match
        self.clock = clock

    def session(self):
        return (self._session_factory or storage.get_session)()

    def is_configured(self) -> bool:
        return self.provider is not None and self.provider.is_configured()

    def is_record_stale(self, record: Optional[SponsorRecord]) -> bool:
        return record is None or is_stale(synced_at(record), self.stale_hours, now=self.clock())

    def lookup(self, normalized: str, partial: bool = False) -> Optional[SponsorRecord]:
        with self.session() as sess:
            row = storage.find_sponsor_by_normalized_name(sess, normalized, partial=partial)
            return SponsorRecord.model_validate(row) if row else None

    def refresh(self, company_name: str, existing: Optional[SponsorRecord]) -> Optional[SponsorRecord]:
        """
        Pull the company from the remote provider and persist the merge.
        Returns `existing` when the provider knows nothing about it.
        Raises SponsorProviderError on provider failure.
        """
        if not self.is_configured():
            return existing
        key = existing.normalized_name if existing else normalize_company_name(company_name)
        if not key:
            return existing

        log.info("remote sponsor lookup for %r", company_name)
        candidate = pick_best_candidate(company_name, self.provider.search_companies(company_name))
        if candidate is None:
            return existing

        values = merge_sponsor(existing, candidate, now=self.clock())
        with self.session() as sess:
            row = storage.upsert_sponsor(sess, key, values)
            return SponsorRecord.model_validate(row)

    def resolve(self, company_name: str) -> Optional[SponsorRecord]:
        normalized = normalize_company_name(company_name)
        if not normalized:
            return None

        record = self.lookup(normalized)
        if record is not None and not self.is_record_stale(record):
            return record

        if self.is_configured():
            try:
                resolved = self.refresh(company_name, record)
            except SponsorProviderError as e:
                log.warning("sponsor lookup for %r failed, using local data: %s", company_name, e)
                resolved = record
        else:
            resolved = record

        if resolved is None and self.partial_match:
            resolved = self.lookup(normalized, partial=True)
        return resolved
