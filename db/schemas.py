import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # Timestamps are stored as naive UTC so sqlite and postgres compare alike
    return datetime.now(timezone.utc).replace(tzinfo=None)


class VisaSponsor(Base):
    __tablename__ = "visa_sponsors"
    id = Column(String(36), primary_key=True, default=_uuid)
    company_name = Column(String(300), nullable=False)
    normalized_name = Column(String(300), nullable=False, unique=True, index=True)
    aliases = Column(JSON(none_as_null=True), nullable=True)  # list of normalized names
    sponsorship_types = Column(JSON(none_as_null=True), nullable=True)
    last_year_sponsored = Column(Integer, nullable=True)
    sponsorship_confidence = Column(Integer, default=50)
    notes = Column(Text, nullable=True)
    source = Column(String(50), nullable=True)
    meta = Column("metadata", JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class User(Base):
    __tablename__ = "users"
    id = Column(String(64), primary_key=True, default=_uuid)
    email = Column(String(300), nullable=True, unique=True)
    profile_description = Column(Text, nullable=True)
    profile_embedding = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Job(Base):
    __tablename__ = "jobs"
    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(300), nullable=False)
    company = Column(String(200), nullable=False)
    location = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    url = Column(String(1000), nullable=False, unique=True)
    is_remote = Column(Boolean, default=False)
    job_type = Column(String(20), nullable=True)  # new_grad | internship
    source = Column(String(50), nullable=True)
    embedding = Column(JSON(none_as_null=True), nullable=True)  # list[float], EMBEDDING_DIM long
    scraped_at = Column(DateTime, default=utcnow)
    is_active = Column(Boolean, default=True)
    posted_at = Column(DateTime, nullable=True)
    last_seen_at = Column(DateTime, default=utcnow, index=True)
    link_checked_at = Column(DateTime, nullable=True)
    is_link_active = Column(Boolean, default=True)
    visa_status = Column(String(30), nullable=True, index=True)
    sponsorship_confidence = Column(Integer, default=0)
    visa_notes = Column(Text, nullable=True)
    visa_sponsor_id = Column(String(36), ForeignKey("visa_sponsors.id"), nullable=True)
    manual_review = Column(Boolean, default=False)
