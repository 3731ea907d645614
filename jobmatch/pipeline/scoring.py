# jobmatch/pipeline/scoring.py
from datetime import datetime, timezone
from typing import Optional, Sequence

from pydantic import BaseModel

from jobmatch.models.job import JobPosting, ScoreDetails, SearchResult

# ---------------------------
# Scoring policy (defaults)
# ---------------------------

STRONG_MATCH = "Strong alignment with your profile preferences"
GOOD_MATCH = "Good match to your stated interests"
RECENT = "Recently posted opportunity"
HIGH_SPONSOR = "High confidence visa sponsorship"
LIKELY_SPONSOR = "Likely to sponsor work visas"
FALLBACK = "Matches your filters"


class ScoringPolicy(BaseModel):
    similarity_weight: float = 0.6
    recency_weight: float = 0.25
    sponsorship_weight: float = 0.15
    # (max age in days, score), checked in order
    recency_steps: list[tuple[float, float]] = [(3, 1.0), (7, 0.8), (14, 0.6), (30, 0.4), (60, 0.2)]
    verified_score: float = 1.0
    # (min confidence, score) checked before and after the likely-sponsor status
    confidence_steps_high: list[tuple[int, float]] = [(80, 0.9), (60, 0.6)]
    likely_score: float = 0.5
    confidence_steps_low: list[tuple[int, float]] = [(40, 0.3)]
    strong_similarity: float = 0.75
    good_similarity: float = 0.5
    recent_reason_at: float = 0.6
    sponsor_reason_at: float = 0.6


DEFAULT_POLICY = ScoringPolicy()


def _clamp(x: float) -> float:
    return max(0.0, min(1.0, x))


def recency_score(posted_at: Optional[datetime], now: datetime,
                  policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    if posted_at is None:
        return 0.0
    if posted_at.tzinfo is None:
        posted_at = posted_at.replace(tzinfo=timezone.utc)
    days = (now - posted_at).total_seconds() / 86400
    for max_days, score in policy.recency_steps:
        if days <= max_days:
            return score
    return 0.0


def sponsorship_score(posting: JobPosting, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    confidence = None
    if posting.sponsor_summary is not None:
        confidence = posting.sponsor_summary.sponsorship_confidence
    if confidence is None:
        confidence = posting.sponsorship_confidence

    if posting.visa_status == "sponsor_verified":
        return policy.verified_score
    for min_conf, score in policy.confidence_steps_high:
        if confidence is not None and confidence >= min_conf:
            return score
    if posting.visa_status == "likely_sponsor":
        return policy.likely_score
    for min_conf, score in policy.confidence_steps_low:
        if confidence is not None and confidence >= min_conf:
            return score
    return 0.0


def match_reasons(posting: JobPosting, details: ScoreDetails,
                  policy: ScoringPolicy = DEFAULT_POLICY) -> list[str]:
    reasons = []
    if details.similarity >= policy.strong_similarity:
        reasons.append(STRONG_MATCH)
    elif details.similarity >= policy.good_similarity:
        reasons.append(GOOD_MATCH)

    if details.recency >= policy.recent_reason_at:
        reasons.append(RECENT)

    if details.sponsorship >= policy.sponsor_reason_at:
        has_sponsor_data = posting.visa_status == "sponsor_verified" or (
            posting.sponsor_summary is not None
            and posting.sponsor_summary.sponsorship_confidence is not None
        )
        reasons.append(HIGH_SPONSOR if has_sponsor_data else LIKELY_SPONSOR)

    return reasons or [FALLBACK]


def score(postings: Sequence[JobPosting], now: Optional[datetime] = None,
          policy: ScoringPolicy = DEFAULT_POLICY) -> list[SearchResult]:
    """
    Composite ranking of enriched postings, best first. Pure: the same
    input and `now` always give the same output, ties in input order.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    results = []
    for posting in postings:
        similarity = _clamp(posting.similarity) if posting.similarity is not None else 0.0
        details = ScoreDetails(
            similarity=round(similarity, 3),
            recency=round(recency_score(posting.posted_at, now, policy), 3),
            sponsorship=round(sponsorship_score(posting, policy), 3),
        )
        composite = (
            policy.similarity_weight * similarity
            + policy.recency_weight * details.recency
            + policy.sponsorship_weight * details.sponsorship
        )
        results.append(SearchResult(
            **posting.model_dump(),
            score_details=details,
            match_score=round(_clamp(composite), 3),
            match_reasons=match_reasons(posting, details, policy),
        ))
    return sorted(results, key=lambda r: -r.match_score)
