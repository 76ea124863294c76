"""SQLAlchemy models for the durable repository.

Cross-entity ids (user_id, document_id, uploaded_by, reviewed_by, sent_by) are
plain indexed strings, not foreign keys: dangling references are an accepted
condition and nothing cascades.
"""
from datetime import timezone

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, Index, Integer, String,
    Text, TypeDecorator, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from .database import Base


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every backend.

    SQLite drops tzinfo on round-trip; values are normalised to UTC on bind and
    tagged as UTC on load so both repositories hand out comparable instants.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


JSONType = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    """Dashboard user, bootstrapped from identity-provider claims."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    profile_image_url = Column(Text, nullable=True)
    role = Column(String(20), nullable=False, default="user", index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    quota = Column(Integer, nullable=False, default=100)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint(role.in_(["admin", "user"]), name="chk_user_role"),
    )


class Document(Base):
    """Uploaded PKS / Juknis / POC artifact."""
    __tablename__ = "documents"

    id = Column(String(64), primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    file_name = Column(Text, nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(255), nullable=False)
    uploaded_by = Column(String(64), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    category = Column(String(20), nullable=False, index=True)
    expiration_date = Column(UTCDateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(String(20), nullable=False, default="1.0")
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(["pending", "approved", "rejected"]), name="chk_document_status"),
        CheckConstraint(category.in_(["PKS", "Juknis", "POC"]), name="chk_document_category"),
    )


class Agreement(Base):
    """Formal agreement binding a user to a document for a date range."""
    __tablename__ = "agreements"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=True, index=True)
    document_id = Column(String(64), nullable=True, index=True)
    type = Column(String(20), nullable=False)
    agreement_number = Column(String(100), nullable=True)
    start_date = Column(UTCDateTime, nullable=True)
    end_date = Column(UTCDateTime, nullable=True, index=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    renewal_requested = Column(Boolean, nullable=False, default=False)
    renewal_request_date = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint(type.in_(["PKS", "Juknis", "POC"]), name="chk_agreement_type"),
        CheckConstraint(
            status.in_(["active", "expired", "pending_renewal"]),
            name="chk_agreement_status"
        ),
        Index("idx_agreements_status_end_date", "status", "end_date"),
    )


class QuotaUsage(Base):
    """Per-user, per-quota-type usage counter. Remaining quota is never stored."""
    __tablename__ = "quota_usage"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    quota_type = Column(String(50), nullable=False)
    used_amount = Column(Integer, nullable=False, default=0)
    total_quota = Column(Integer, nullable=False)
    period = Column(String(20), nullable=False, default="monthly")
    reset_date = Column(UTCDateTime, nullable=True, index=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "quota_type", name="uq_quota_usage_user_type"),
        CheckConstraint(period.in_(["daily", "monthly", "yearly"]), name="chk_quota_usage_period"),
    )


class PnbpTransaction(Base):
    """Fee (PNBP) payment record."""
    __tablename__ = "pnbp_transactions"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=True, index=True)
    transaction_id = Column(String(100), unique=True, nullable=True)
    service_type = Column(String(100), nullable=True)
    amount = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_method = Column(String(50), nullable=True)
    reference_number = Column(String(100), nullable=True)
    transaction_date = Column(UTCDateTime, nullable=True)
    payment_date = Column(UTCDateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())


class Activity(Base):
    """Append-only audit trail entry."""
    __tablename__ = "activities"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=True, index=True)
    type = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes.
    meta_data = Column("metadata", JSONType, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), index=True)

    __table_args__ = (
        Index("idx_activities_type_created", "type", "created_at"),
    )


class Request(Base):
    """User request awaiting admin review."""
    __tablename__ = "requests"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=True, index=True)
    type = Column(String(50), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    priority = Column(String(20), nullable=False, default="normal")
    reviewed_by = Column(String(64), nullable=True)
    reviewed_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(["pending", "approved", "rejected"]), name="chk_request_status"),
        CheckConstraint(priority.in_(["normal", "urgent"]), name="chk_request_priority"),
    )


class Notification(Base):
    """Broadcast or targeted message. Read state is shared per notification."""
    __tablename__ = "notifications"

    id = Column(String(64), primary_key=True)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="info")
    target_type = Column(String(20), nullable=False, default="all")
    target_id = Column(String(64), nullable=True)
    sent_by = Column(String(64), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(type.in_(["info", "warning", "success", "error"]), name="chk_notification_type"),
        CheckConstraint(target_type.in_(["all", "user", "role"]), name="chk_notification_target_type"),
        Index("idx_notifications_target", "target_type", "target_id"),
    )
