# jobmatch/pipeline/search.py
from typing import Optional, Sequence

import numpy as np

from jobmatch.log import get_logger
from jobmatch.models.job import JobPosting, SearchFilters
from jobmatch.pipeline import storage

log = get_logger(__name__)


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """1 - cosine distance of every row against the query, clamped to [0, 1]."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, matrix @ query / norms, 0.0)
    return np.clip(sims, 0.0, 1.0)


def _as_vector(value, dim: int) -> Optional[np.ndarray]:
    if not isinstance(value, (list, tuple)) or len(value) != dim:
        return None
    try:
        return np.asarray(value, dtype=float)
    except (TypeError, ValueError):
        return None


def similarity_search(sess, filters: SearchFilters,
                      query_vector: Optional[Sequence[float]] = None) -> list[JobPosting]:
    """
    Jobs matching `filters`. With a query vector they are ranked by cosine
    similarity; otherwise newest scrape first. Jobs whose stored embedding
    is missing or malformed are kept, unranked, after the ranked ones.
    """
    if query_vector is None:
        rows = storage.query_jobs(sess, filters, limit=filters.limit, offset=filters.offset)
        return [JobPosting.model_validate(r) for r in rows]

    query = np.asarray(query_vector, dtype=float)
    dim = len(query)
    ranked_ids, vectors, unranked_ids, malformed = [], [], [], []
    for job_id, embedding in storage.query_job_vectors(sess, filters):
        vec = _as_vector(embedding, dim)
        if vec is None:
            unranked_ids.append(job_id)
            if embedding is not None:
                malformed.append(job_id)
        else:
            ranked_ids.append(job_id)
            vectors.append(vec)

    if malformed:
        log.warning(
            "data integrity: %d jobs have embeddings that are not %d-dim floats, left unranked: %s",
            len(malformed), dim, ", ".join(malformed[:10]),
        )

    scores: dict[str, float] = {}
    if vectors:
        sims = cosine_similarities(query, np.vstack(vectors))
        scores = {job_id: float(s) for job_id, s in zip(ranked_ids, sims)}
    # sorted() is stable: equal scores keep the newest-scrape order
    ordered = sorted(ranked_ids, key=lambda i: -scores[i]) + unranked_ids
    page = ordered[filters.offset:filters.offset + filters.limit]

    jobs = storage.get_jobs_by_ids(sess, page)
    results = []
    for job_id in page:
        posting = JobPosting.model_validate(jobs[job_id])
        results.append(posting.model_copy(update={"similarity": scores.get(job_id)}))
    log.debug("similarity search: %d ranked, %d unranked, page of %d",
              len(ranked_ids), len(unranked_ids), len(results))
    return results


def count(sess, filters: SearchFilters) -> int:
    return storage.count_jobs(sess, filters)
