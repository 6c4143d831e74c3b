"""ORM models for the provider catalog, usage log and telemetry events."""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from .database import Base

DEFAULT_HEALTH_SCORE = 100
MAX_HEALTH_SCORE = 100
MIN_HEALTH_SCORE = 0
DEFAULT_PRIORITY = 50


class Provider(Base):
    __tablename__ = "providers"
    __table_args__ = (
        Index("ix_providers_channel_tenant", "channel_type", "tenant_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    channel_type = Column(String(32), nullable=False)
    tenant_id = Column(Integer)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True))
    health_score = Column(Integer, nullable=False, default=DEFAULT_HEALTH_SCORE)
    cost_per_unit = Column(Float, nullable=False, default=0.0)
    priority = Column(Integer, nullable=False, default=DEFAULT_PRIORITY)
    credentials_encrypted = Column(Text)
    credentials_iv = Column(String(64))
    total_requests = Column(Integer, nullable=False, default=0)
    failed_requests = Column(Integer, nullable=False, default=0)
    last_used_at = Column(DateTime(timezone=True))
    last_success_at = Column(DateTime(timezone=True))
    last_failure_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class CatalogEntry(Base):
    __tablename__ = "catalog_entries"
    __table_args__ = (
        UniqueConstraint("channel_type", "code", name="uq_catalog_entries_channel_code"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(100), nullable=False)
    channel_type = Column(String(32), nullable=False)
    display_name = Column(String(200), nullable=False)
    description = Column(String(512))
    attributes = Column(JSON, nullable=False, default=dict)
    primary_provider_id = Column(Integer, ForeignKey("providers.id"))
    fallback_provider_ids = Column(JSON, nullable=False, default=list)
    vendor_refs = Column(JSON, nullable=False, default=dict)
    supported_countries = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class ProviderUsageLog(Base):
    __tablename__ = "provider_usage_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String(64), nullable=False)
    provider_id = Column(Integer, nullable=False)
    tenant_id = Column(Integer)
    channel_type = Column(String(32), nullable=False)
    success = Column(Boolean, nullable=False)
    latency_ms = Column(Float, nullable=False)
    cost = Column(Float, nullable=False, default=0.0)
    meta = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_provider_usage_log_request_id", "request_id"),
        Index("ix_provider_usage_log_provider_created", "provider_id", "created_at"),
    )


class RouterEvent(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    level = Column(String(16), nullable=False)
    kind = Column(String(64), nullable=False)
    request_id = Column(String(64))
    channel_type = Column(String(32))
    provider_from = Column(Integer)
    provider_to = Column(Integer)
    message = Column(String(512))
    meta = Column(Text)

    __table_args__ = (
        Index("ix_events_ts", "ts"),
        Index("ix_events_kind_ts", "kind", "ts"),
    )
