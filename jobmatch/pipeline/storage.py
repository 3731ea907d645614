from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional

from sqlalchemy import create_engine, func
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from db.base import Base
from db.schemas import Job, User, VisaSponsor, utcnow
from jobmatch.models.job import JobModel, SearchFilters
from jobmatch.pipeline.normalize import best_partial_match

_engine = None
_Session = None


def init_engine(db_url: str):
    global _engine, _Session
    kwargs = {}
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every session sees an empty db
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    _engine = create_engine(db_url, future=True, **kwargs)
    Base.metadata.create_all(_engine)
    _Session = sessionmaker(bind=_engine, expire_on_commit=False)
    return _engine


@contextmanager
def get_session():
    if _Session is None:
        raise RuntimeError("init_engine() must be called before get_session()")
    sess = _Session()
    try:
        yield sess
        sess.commit()
    except Exception:
        sess.rollback()
        raise
    finally:
        sess.close()


def _insert_for(sess):
    dialect = sess.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"upsert not supported on {dialect}")
    return insert


# --- jobs --------------------------------------------------------------------

def upsert_job(sess, jm: JobModel) -> Job:
    # The url is the natural key: a re-crawl refreshes the row and keeps it alive
    insert = _insert_for(sess)
    now = utcnow()
    values = {
        "source": jm.source,
        "title": jm.title,
        "company": jm.company,
        "location": jm.location,
        "url": jm.url,
        "description": jm.description,
        "is_remote": jm.is_remote,
        "job_type": jm.job_type,
        "posted_at": jm.posted_at,
        "embedding": jm.embedding,
        "last_seen_at": now,
        "is_active": True,
    }
    stmt = insert(Job.__table__).values(scraped_at=now, **values)
    update = {k: stmt.excluded[k] for k in values if k not in ("url", "embedding")}
    if jm.embedding is not None:
        update["embedding"] = stmt.excluded["embedding"]
    sess.execute(stmt.on_conflict_do_update(index_elements=["url"], set_=update))
    return sess.query(Job).populate_existing().filter(Job.url == jm.url).one()


def like_escape(text: str) -> str:
    """Make LIKE wildcards in user input match literally (escape char is a backslash)."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def job_filter_clauses(filters: SearchFilters) -> list:
    clauses = []
    if not filters.include_inactive:
        clauses.append(Job.is_active.is_(True))
    if filters.job_type and filters.job_type != "all":
        clauses.append(Job.job_type == filters.job_type)
    if filters.is_remote is not None:
        clauses.append(Job.is_remote.is_(filters.is_remote))
    if filters.location:
        clauses.append(Job.location.ilike(f"%{like_escape(filters.location)}%", escape="\\"))
    if filters.visa_status:
        clauses.append(Job.visa_status == filters.visa_status)
    if filters.requires_verified_sponsor:
        clauses.append(Job.visa_status == "sponsor_verified")
        clauses.append(Job.visa_sponsor_id.isnot(None))
    if filters.min_sponsorship_confidence is not None:
        clauses.append(Job.sponsorship_confidence >= filters.min_sponsorship_confidence)
    if filters.posted_after:
        clauses.append(Job.posted_at >= filters.posted_after)
    if filters.posted_before:
        clauses.append(Job.posted_at <= filters.posted_before)
    return clauses


def query_jobs(sess, filters: SearchFilters, limit: int, offset: int = 0) -> list[Job]:
    """Filtered jobs, newest scrape first."""
    return (
        sess.query(Job)
        .filter(*job_filter_clauses(filters))
        .order_by(Job.scraped_at.desc(), Job.id)
        .limit(limit)
        .offset(offset)
        .all()
    )


VECTOR_BATCH_SIZE = 500


def query_job_vectors(sess, filters: SearchFilters) -> Iterator[tuple[str, Optional[list]]]:
    """
    (id, embedding) for every job matching the filters, newest scrape first.

    Rows are streamed in batches of VECTOR_BATCH_SIZE; only ids and vectors
    are loaded, full rows are fetched later for the requested page alone.
    Every filtered vector is still read once per ranked search.
    """
    q = (
        sess.query(Job.id, Job.embedding)
        .filter(*job_filter_clauses(filters))
        .order_by(Job.scraped_at.desc(), Job.id)
        .yield_per(VECTOR_BATCH_SIZE)
    )
    for job_id, embedding in q:
        yield job_id, embedding


def get_jobs_by_ids(sess, ids: Iterable[str]) -> dict[str, Job]:
    ids = list(ids)
    if not ids:
        return {}
    return {j.id: j for j in sess.query(Job).filter(Job.id.in_(ids)).all()}


def count_jobs(sess, filters: SearchFilters) -> int:
    return sess.query(func.count(Job.id)).filter(*job_filter_clauses(filters)).scalar() or 0


def get_job(sess, job_id: str) -> Optional[Job]:
    return sess.get(Job, job_id)


def update_job_visa(sess, job_id: str, **fields) -> Optional[Job]:
    job = sess.get(Job, job_id)
    if job is None:
        return None
    for key, value in fields.items():
        setattr(job, key, value)
    return job


def reclassify_visa_status(sess, verified_at: int, likely_at: int) -> dict[str, int]:
    """Re-derive visa_status from each job's stored confidence; counts per status."""
    conf = func.coalesce(Job.sponsorship_confidence, 0)
    buckets = {
        "sponsor_verified": conf >= verified_at,
        "likely_sponsor": (conf >= likely_at) & (conf < verified_at),
        "unknown": conf < likely_at,
    }
    return {
        status: sess.query(Job).filter(cond).update({Job.visa_status: status}, synchronize_session=False)
        for status, cond in buckets.items()
    }


def mark_stale_jobs_inactive(sess, cutoff: datetime) -> int:
    """Deactivate active postings not seen by a crawl since `cutoff`."""
    return (
        sess.query(Job)
        .filter(Job.is_active.is_(True), Job.last_seen_at < cutoff)
        .update({Job.is_active: False}, synchronize_session=False)
    )


# --- sponsors ----------------------------------------------------------------

def find_sponsor_by_normalized_name(sess, normalized: str, partial: bool = False) -> Optional[VisaSponsor]:
    """
    Direct hit on normalized_name first, then the alias lists. With
    partial=True a significant-word overlap over names and aliases is
    tried last.
    """
    if not normalized:
        return None
    direct = sess.query(VisaSponsor).filter(VisaSponsor.normalized_name == normalized).one_or_none()
    if direct:
        return direct

    by_alias = find_sponsors_by_aliases(sess, [normalized]).get(normalized)
    if by_alias:
        return by_alias

    if not partial:
        return None
    keyed: dict[str, VisaSponsor] = {}
    for row in sess.query(VisaSponsor).order_by(VisaSponsor.normalized_name).all():
        keyed.setdefault(row.normalized_name, row)
        for alias in row.aliases or []:
            keyed.setdefault(alias, row)
    hit = best_partial_match(normalized, keyed)
    return keyed[hit] if hit else None


def find_sponsors_by_normalized_names(sess, names: Iterable[str]) -> list[VisaSponsor]:
    names = [n for n in set(names) if n]
    if not names:
        return []
    return sess.query(VisaSponsor).filter(VisaSponsor.normalized_name.in_(names)).all()


def find_sponsors_by_aliases(sess, names: Iterable[str]) -> dict[str, VisaSponsor]:
    """
    Map each name to the sponsor listing it as an alias, in one scan.
    Alias lists are JSON, scanned here so sqlite and postgres behave alike.
    When several rows claim the same alias the lowest normalized_name wins,
    as in find_sponsor_by_normalized_name.
    """
    wanted = {n for n in names if n}
    if not wanted:
        return {}
    found: dict[str, VisaSponsor] = {}
    rows = (
        sess.query(VisaSponsor)
        .filter(VisaSponsor.aliases.isnot(None))
        .order_by(VisaSponsor.normalized_name)
        .all()
    )
    for row in rows:
        for alias in row.aliases or []:
            if alias in wanted:
                found.setdefault(alias, row)
    return found


_SPONSOR_FIELDS = (
    "company_name", "aliases", "sponsorship_types", "last_year_sponsored",
    "sponsorship_confidence", "notes", "source", "meta",
)


def upsert_sponsor(sess, normalized_name: str, values: dict) -> VisaSponsor:
    """Insert, or update on conflict with normalized_name; last writer wins."""
    insert = _insert_for(sess)
    # "meta" is stored in the "metadata" column
    data = {("metadata" if k == "meta" else k): values.get(k) for k in _SPONSOR_FIELDS}
    stmt = insert(VisaSponsor.__table__).values(normalized_name=normalized_name, **data)
    stmt = stmt.on_conflict_do_update(
        index_elements=["normalized_name"],
        set_={**{k: stmt.excluded[k] for k in data}, "updated_at": utcnow()},
    )
    sess.execute(stmt)
    return (
        sess.query(VisaSponsor)
        .populate_existing()
        .filter(VisaSponsor.normalized_name == normalized_name)
        .one()
    )


# --- users -------------------------------------------------------------------

def get_user(sess, user_id: str) -> Optional[User]:
    return sess.get(User, user_id)


def save_user_profile(sess, user_id: str, description: str, embedding: list[float],
                      email: Optional[str] = None) -> User:
    user = sess.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email)
        sess.add(user)
    elif email and not user.email:
        user.email = email
    user.profile_description = description
    user.profile_embedding = embedding
    sess.flush()
    return user
