# jobmatch/pipeline/orchestrator.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from jobmatch.adapters.landing_club import LandingClubAdapter, SponsorApiConfig
from jobmatch.client.embeddings import OpenAIEmbedder
from jobmatch.errors import EmbeddingError, JobMatchError, JobNotFound
from jobmatch.log import get_logger
from jobmatch.models.job import JobModel, JobPosting, SearchFilters, SearchResponse
from jobmatch.models.sponsor import SponsorRecord
from jobmatch.models.user import UserProfile
from jobmatch.pipeline import scoring, search, storage
from jobmatch.pipeline.enrich import JobEnricher
from jobmatch.pipeline.sponsors import SponsorResolver, build_sponsor_summary
from jobmatch.settings import settings

log = get_logger(__name__)


class JobSearchService:
    """Search → enrich → score, plus the profile and sponsor maintenance around it."""

    def __init__(
        self,
        embedder: Optional[OpenAIEmbedder] = None,
        resolver: Optional[SponsorResolver] = None,
        enricher: Optional[JobEnricher] = None,
        policy: scoring.ScoringPolicy = scoring.DEFAULT_POLICY,
        session_factory: Optional[Callable] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.embedder = embedder
        self.resolver = resolver or SponsorResolver(session_factory=session_factory, clock=clock)
        self.enricher = enricher or JobEnricher(self.resolver)
        self.policy = policy
        self._session_factory = session_factory
        self.clock = clock

    def session(self):
        return (self._session_factory or storage.get_session)()

    @property
    def embedding_dim(self) -> int:
        return self.embedder.dim if self.embedder else settings.EMBEDDING_DIM

    # --- search ---------------------------------------------------------------

    def _embed_query(self, text: str) -> list[float]:
        if self.embedder is None:
            raise EmbeddingError("no embedding provider configured")
        return self.embedder.embed(text)

    def _profile_vector(self, sess, user_id: str) -> Optional[list[float]]:
        user = storage.get_user(sess, user_id)
        vector = user.profile_embedding if user else None
        if not vector:
            return None
        if len(vector) != self.embedding_dim:
            log.warning("data integrity: profile embedding for user %s has %d dims, expected %d; "
                        "falling back to chronological order", user_id, len(vector), self.embedding_dim)
            return None
        return vector

    def search(self, filters: Optional[SearchFilters] = None, query_text: Optional[str] = None,
               user_id: Optional[str] = None) -> SearchResponse:
        """
        Explicit text wins over the user's profile. An embedding failure
        on explicit text is raised; a missing profile vector just means
        newest-first ordering.
        """
        filters = filters or SearchFilters()
        query_text = (query_text or "").strip() or None

        with self.session() as sess:
            vector = None
            if query_text:
                vector = self._embed_query(query_text)
            elif user_id:
                vector = self._profile_vector(sess, user_id)
            postings = search.similarity_search(sess, filters, vector)
            total = search.count(sess, filters)

        try:
            postings = self.enricher.enrich(postings)
        except JobMatchError as e:
            log.warning("sponsor enrichment failed, returning unenriched results: %s", e)

        results = scoring.score(postings, now=self.clock(), policy=self.policy)
        log.debug("search returned %d of %d (ranked=%s)", len(results), total, vector is not None)
        return SearchResponse(results=results, total=total)

    def get_enriched_job(self, job_id: str) -> JobPosting:
        with self.session() as sess:
            row = storage.get_job(sess, job_id)
            if row is None:
                raise JobNotFound(job_id)
            posting = JobPosting.model_validate(row)
        record = self.resolver.resolve(posting.company) if posting.company else None
        return posting.model_copy(update={"sponsor_summary": build_sponsor_summary(record)})

    # --- profiles ---------------------------------------------------------------

    def update_profile(self, user_id: str, description: str, email: Optional[str] = None) -> UserProfile:
        """Store the preference text and its fresh embedding."""
        vector = self._embed_query(description)
        with self.session() as sess:
            user = storage.save_user_profile(sess, user_id, description, vector, email=email)
            return UserProfile.model_validate(user)

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        with self.session() as sess:
            user = storage.get_user(sess, user_id)
            return UserProfile.model_validate(user) if user else None

    # --- sponsors & lifecycle ---------------------------------------------------

    def link_job_to_sponsor(self, job_id: str, company_name: str) -> Optional[SponsorRecord]:
        record = self.resolver.resolve(company_name)
        if record is None:
            return None
        confidence = record.sponsorship_confidence
        if not confidence:
            status = "unknown"
        elif confidence >= settings.VERIFIED_CONFIDENCE:
            status = "sponsor_verified"
        else:
            status = "likely_sponsor"
        notes = record.notes
        if not notes:
            summary = build_sponsor_summary(record)
            notes = summary.latest_update.summary if summary and summary.latest_update else None

        with self.session() as sess:
            job = storage.update_job_visa(
                sess, job_id,
                visa_sponsor_id=record.id,
                sponsorship_confidence=confidence,
                visa_status=status,
                visa_notes=notes,
            )
            if job is None:
                raise JobNotFound(job_id)
        return record

    def reclassify_visa_status(self) -> dict[str, int]:
        with self.session() as sess:
            counts = storage.reclassify_visa_status(
                sess,
                verified_at=settings.RECLASSIFY_VERIFIED_CONFIDENCE,
                likely_at=settings.RECLASSIFY_LIKELY_CONFIDENCE,
            )
        for status, n in counts.items():
            log.info("visa status %s: %d jobs", status, n)
        return counts

    def ingest(self, jobs: Iterable[JobModel]) -> int:
        """Upsert crawled postings by url."""
        n = 0
        with self.session() as sess:
            for jm in jobs:
                storage.upsert_job(sess, jm)
                n += 1
        return n

    def mark_stale_jobs_inactive(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
        cutoff = now - timedelta(days=settings.JOB_STALE_DAYS)
        with self.session() as sess:
            n = storage.mark_stale_jobs_inactive(sess, cutoff)
        log.info("marked %d postings inactive (not seen since %s)", n, cutoff.isoformat())
        return n


# --- factory -------------------------------------------------------------------

def build_service() -> JobSearchService:
    """Wire the service from settings; optional providers stay off when unconfigured."""
    storage.init_engine(settings.DB_URL)

    provider = LandingClubAdapter(SponsorApiConfig.from_settings())
    if not provider.is_configured():
        log.info("SPONSOR_API_KEY not set, sponsor data limited to local records")
    embedder = OpenAIEmbedder()
    if not embedder.is_configured():
        log.info("OPENAI_API_KEY not set, text search unavailable")

    resolver = SponsorResolver(provider)
    return JobSearchService(embedder=embedder, resolver=resolver)
