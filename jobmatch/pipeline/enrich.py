# jobmatch/pipeline/enrich.py
from typing import Optional

from jobmatch.errors import SponsorProviderError
from jobmatch.log import get_logger
from jobmatch.models.job import JobPosting
from jobmatch.models.sponsor import SponsorRecord, SponsorSummary
from jobmatch.pipeline import storage
from jobmatch.pipeline.normalize import normalize_company_name
from jobmatch.pipeline.sponsors import SponsorResolver, build_sponsor_summary
from jobmatch.settings import settings

log = get_logger(__name__)


class JobEnricher:
    """
    Attaches a sponsor summary to every posting of a result page.

    Local records are bulk-fetched by normalized name, then by alias for
    the names that missed. At most `remote_budget`
    distinct companies are refreshed from the remote provider per call;
    the rest keep whatever local data exists until a later request.
    """

    def __init__(self, resolver: SponsorResolver, remote_budget: Optional[int] = None):
        self.resolver = resolver
        self.remote_budget = settings.REMOTE_SYNC_LIMIT if remote_budget is None else remote_budget

    def enrich(self, postings: list[JobPosting]) -> list[JobPosting]:
        groups: dict[str, list[int]] = {}
        for i, posting in enumerate(postings):
            key = normalize_company_name(posting.company)
            if key:
                groups.setdefault(key, []).append(i)
        if not groups:
            return [p.model_copy(update={"sponsor_summary": None}) for p in postings]

        with self.resolver.session() as sess:
            rows = storage.find_sponsors_by_normalized_names(sess, groups.keys())
            local = {r.normalized_name: SponsorRecord.model_validate(r) for r in rows}
            missed = [k for k in groups if k not in local]
            for key, row in storage.find_sponsors_by_aliases(sess, missed).items():
                local[key] = SponsorRecord.model_validate(row)

        remote_ok = self.resolver.is_configured()
        budget = self.remote_budget
        skipped = 0
        summaries: dict[str, Optional[SponsorSummary]] = {}

        for key, idxs in groups.items():
            record = local.get(key)
            wants_remote = remote_ok and self.resolver.is_record_stale(record)
            if wants_remote and budget > 0:
                budget -= 1
                try:
                    record = self.resolver.refresh(postings[idxs[0]].company, record) or record
                except SponsorProviderError as e:
                    log.warning("sponsor refresh for %r failed: %s", postings[idxs[0]].company, e)
            elif wants_remote:
                skipped += 1
            summaries[key] = build_sponsor_summary(record)

        if skipped:
            log.info("remote sponsor budget exhausted, %d companies left for a later request", skipped)

        enriched = []
        for posting in postings:
            key = normalize_company_name(posting.company)
            enriched.append(posting.model_copy(update={"sponsor_summary": summaries.get(key)}))
        return enriched
