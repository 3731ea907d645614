from __future__ import annotations

import logging
from datetime import timedelta

import numpy as np
import pytest

from conftest import NOW_NAIVE
from jobmatch.models.job import SearchFilters
from jobmatch.pipeline import search, storage
from jobmatch.settings import settings


def _run(filters: SearchFilters | None = None, vector=None):
    with storage.get_session() as sess:
        f = filters or SearchFilters()
        return search.similarity_search(sess, f, vector), search.count(sess, f)


def test_cosine_similarities_are_clamped() -> None:
    matrix = np.array([[1.0, 0.0], [-1.0, 0.0], [0.0, 0.0], [1.0, 1.0]])
    sims = search.cosine_similarities(np.array([1.0, 0.0]), matrix)
    assert list(np.round(sims, 4)) == [1.0, 0.0, 0.0, 0.7071]
    assert sims.min() >= 0.0 and sims.max() <= 1.0


def test_without_vector_newest_scrape_comes_first(make_job) -> None:
    old = make_job(scraped_at=NOW_NAIVE - timedelta(days=2))
    new = make_job(scraped_at=NOW_NAIVE)
    mid = make_job(scraped_at=NOW_NAIVE - timedelta(days=1))
    results, total = _run()
    assert [r.id for r in results] == [new, mid, old]
    assert all(r.similarity is None for r in results)
    assert total == 3


def test_vector_ranks_by_cosine_similarity(make_job) -> None:
    far = make_job(embedding=[0.0, 1.0, 0.0, 0.0])
    near = make_job(embedding=[1.0, 0.1, 0.0, 0.0])
    opposite = make_job(embedding=[-1.0, 0.0, 0.0, 0.0])
    results, _ = _run(vector=[1.0, 0.0, 0.0, 0.0])
    assert [r.id for r in results] == [near, far, opposite]
    assert results[0].similarity == pytest.approx(0.995, abs=1e-3)
    assert results[2].similarity == 0.0


def test_malformed_embeddings_are_unranked_and_logged(make_job, caplog) -> None:
    good = make_job(embedding=[0.0, 1.0, 0.0, 0.0])
    short = make_job(embedding=[1.0, 0.0])
    missing = make_job(embedding=None)
    with caplog.at_level(logging.WARNING):
        results, total = _run(vector=[0.0, 1.0, 0.0, 0.0])
    assert [r.id for r in results] == [good, short, missing]
    assert results[1].similarity is None
    assert total == 3
    assert "data integrity" in caplog.text
    assert short in caplog.text


def test_vector_pagination_applies_after_ranking(make_job) -> None:
    ids = [make_job(embedding=[1.0, float(i), 0.0, 0.0]) for i in range(5)]
    page, total = _run(SearchFilters(limit=2, offset=1), vector=[1.0, 0.0, 0.0, 0.0])
    assert [r.id for r in page] == [ids[1], ids[2]]
    assert total == 5


def test_structured_filters_are_and_combined(make_job, make_sponsor) -> None:
    sponsor_id = make_sponsor("Acme")
    hit = make_job(
        location="San Francisco, CA", is_remote=True, job_type="internship",
        visa_status="sponsor_verified", visa_sponsor_id=sponsor_id, sponsorship_confidence=90,
        posted_at=NOW_NAIVE - timedelta(days=2),
    )
    make_job(location="San Francisco, CA", is_remote=False, job_type="internship")
    make_job(location="New York", is_remote=True, job_type="internship")
    make_job(location="san francisco", is_remote=True, job_type="new_grad")
    make_job(location="San Francisco", is_remote=True, job_type="internship",
             visa_status="sponsor_verified", sponsorship_confidence=90)  # no sponsor link

    filters = SearchFilters(
        location="francisco", is_remote=True, job_type="internship",
        requires_verified_sponsor=True, min_sponsorship_confidence=80,
        posted_after=NOW_NAIVE - timedelta(days=7), posted_before=NOW_NAIVE,
    )
    results, total = _run(filters)
    assert [r.id for r in results] == [hit]
    assert total == 1


def test_location_match_is_case_insensitive(make_job) -> None:
    job = make_job(location="Remote - USA")
    results, _ = _run(SearchFilters(location="remote - usa"))
    assert [r.id for r in results] == [job]


def test_job_type_all_and_inactive_flags(make_job) -> None:
    active = make_job(job_type="new_grad")
    inactive = make_job(job_type="internship", is_active=False)
    results, total = _run(SearchFilters(job_type="all"))
    assert [r.id for r in results] == [active]
    assert total == 1
    results, total = _run(SearchFilters(job_type="all", include_inactive=True))
    assert {r.id for r in results} == {active, inactive}
    assert total == 2


def test_posted_bounds_exclude_unknown_dates(make_job) -> None:
    make_job(posted_at=None)
    recent = make_job(posted_at=NOW_NAIVE - timedelta(days=1))
    make_job(posted_at=NOW_NAIVE - timedelta(days=40))
    results, total = _run(SearchFilters(posted_after=NOW_NAIVE - timedelta(days=30)))
    assert [r.id for r in results] == [recent]
    assert total == 1


def test_limit_is_capped() -> None:
    assert SearchFilters(limit=10_000).limit == settings.SEARCH_MAX_LIMIT
    with pytest.raises(ValueError):
        SearchFilters(limit=0)


@pytest.mark.parametrize("term,expected", [("100%", "100% Remote"), ("a_b", "a_b Labs"), ("c\\d", "c\\d Street")])
def test_location_wildcards_match_literally(make_job, term, expected) -> None:
    names = ["100% Remote", "1000 Oaks", "a_b Labs", "axb Labs", "c\\d Street", "cd Street"]
    ids = {name: make_job(location=name) for name in names}
    results, total = _run(SearchFilters(location=term))
    assert [r.id for r in results] == [ids[expected]]
    assert total == 1


def test_job_vectors_stream_newest_scrape_first(make_job) -> None:
    old = make_job(scraped_at=NOW_NAIVE - timedelta(days=1), embedding=[1.0, 0.0, 0.0, 0.0])
    new = make_job(scraped_at=NOW_NAIVE, embedding=None)
    with storage.get_session() as sess:
        rows = storage.query_job_vectors(sess, SearchFilters())
        assert not isinstance(rows, list)
        assert list(rows) == [(new, None), (old, [1.0, 0.0, 0.0, 0.0])]
