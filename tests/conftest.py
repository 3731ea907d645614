from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from db.schemas import Job, VisaSponsor
from jobmatch.adapters.landing_club import LandingClubAdapter, SponsorApiConfig
from jobmatch.errors import EmbeddingError
from jobmatch.pipeline import storage
from jobmatch.pipeline.normalize import normalize_company_name

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
NOW_NAIVE = NOW.replace(tzinfo=None)


@pytest.fixture
def db():
    engine = storage.init_engine("sqlite://")
    yield engine
    engine.dispose()


class FakeEmbedder:
    dim = 4

    def __init__(self, vectors: dict[str, list[float]] | None = None, fail: bool = False) -> None:
        self.vectors = vectors or {}
        self.fail = fail
        self.calls: list[str] = []

    def is_configured(self) -> bool:
        return True

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("provider unreachable")
        return self.vectors.get(text, [1.0, 0.0, 0.0, 0.0])


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


class FakeSponsorApi:
    """Answers companies/search from a dict keyed by normalized query."""

    def __init__(self) -> None:
        self.companies: dict[str, list[dict]] = {}
        self.calls: list[str] = []
        self.failing: set[str] = set()
        self.down = False
        self.adapter = LandingClubAdapter(
            SponsorApiConfig(base_url="https://sponsors.test/v1", api_key="test-key", timeout=2.0),
            transport=httpx.MockTransport(self.handler),
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        query = request.url.params.get("query", "")
        self.calls.append(query)
        key = normalize_company_name(query)
        if self.down or key in self.failing:
            return httpx.Response(503, text="upstream unavailable")
        return httpx.Response(200, json={"results": self.companies.get(key, [])})

    def add(self, query: str, **entry) -> None:
        self.companies.setdefault(normalize_company_name(query), []).append(entry)


@pytest.fixture
def sponsor_api() -> FakeSponsorApi:
    return FakeSponsorApi()


@pytest.fixture
def make_job(db):
    counter = {"n": 0}

    def _make(**kw) -> str:
        counter["n"] += 1
        n = counter["n"]
        values = {
            "title": f"Software Engineer {n}",
            "company": "Acme Inc",
            "url": f"https://jobs.example.com/{n}",
            "source": "greenhouse",
            "job_type": "new_grad",
            "scraped_at": NOW_NAIVE - timedelta(minutes=n),
            "last_seen_at": NOW_NAIVE,
            "is_active": True,
        }
        values.update(kw)
        with storage.get_session() as sess:
            job = Job(**values)
            sess.add(job)
            sess.flush()
            return job.id

    return _make


@pytest.fixture
def make_sponsor(db):
    def _make(company_name: str, synced_at: datetime | None = None, **kw) -> str:
        meta = kw.pop("meta", {})
        if synced_at is not None:
            meta["landing_club_synced_at"] = synced_at.isoformat()
        with storage.get_session() as sess:
            row = VisaSponsor(
                company_name=company_name,
                normalized_name=kw.pop("normalized_name", normalize_company_name(company_name)),
                meta=meta,
                **kw,
            )
            sess.add(row)
            sess.flush()
            return row.id

    return _make
