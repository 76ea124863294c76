"""Pydantic schemas: stored records, insert payloads and partial updates.

Records are frozen so a repository can hand them out without exposing its own
state to mutation. Insert payloads omit server-assigned fields (id,
created_at, updated_at). ``*Update`` models are applied as a shallow merge of
the fields the caller actually set.
"""
from datetime import datetime
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field, model_validator

from .services.lifecycle_rules import as_utc


# Naive datetimes are taken to be UTC.
UTCDatetime = Annotated[datetime, AfterValidator(as_utc)]


Role = Literal["admin", "user"]
ReviewStatus = Literal["pending", "approved", "rejected"]
DocumentCategory = Literal["PKS", "Juknis", "POC"]
AgreementStatus = Literal["active", "expired", "pending_renewal"]
QuotaPeriod = Literal["daily", "monthly", "yearly"]
TransactionStatus = Literal["pending", "completed", "failed"]
RequestPriority = Literal["normal", "urgent"]
NotificationType = Literal["info", "warning", "success", "error"]
NotificationTarget = Literal["all", "user", "role"]


class RecordBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


# User schemas
class User(RecordBase):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: Role = "user"
    is_active: bool = True
    quota: int = 100
    created_at: UTCDatetime
    updated_at: UTCDatetime

    @property
    def display_name(self) -> str:
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full or self.email or self.id


class UpsertUser(BaseModel):
    """Identity bootstrap payload; ``id`` is the identity provider subject."""
    id: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    quota: Optional[int] = None


class UserUpdate(BaseModel):
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    quota: Optional[int] = Field(None, ge=0)


class IdentityClaims(BaseModel):
    """Claims the identity provider hands over after a successful sign-in."""
    sub: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


# Document schemas
class DocumentBase(BaseModel):
    title: str
    description: Optional[str] = None
    file_name: str
    file_path: str
    file_size: int = Field(ge=0)
    mime_type: str
    uploaded_by: Optional[str] = None
    status: ReviewStatus = "pending"
    category: DocumentCategory
    expiration_date: Optional[UTCDatetime] = None
    is_active: bool = True
    version: str = "1.0"


class DocumentCreate(DocumentBase):
    pass


class Document(RecordBase, DocumentBase):
    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime


class DocumentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ReviewStatus] = None
    category: Optional[DocumentCategory] = None
    expiration_date: Optional[UTCDatetime] = None
    is_active: Optional[bool] = None
    version: Optional[str] = None


# Agreement schemas
class AgreementBase(BaseModel):
    user_id: Optional[str] = None
    document_id: Optional[str] = None
    type: DocumentCategory
    agreement_number: Optional[str] = None
    start_date: Optional[UTCDatetime] = None
    end_date: Optional[UTCDatetime] = None
    status: AgreementStatus = "active"
    renewal_requested: bool = False
    renewal_request_date: Optional[UTCDatetime] = None


class AgreementCreate(AgreementBase):
    @model_validator(mode="after")
    def _check_dates(self) -> "AgreementCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be earlier than start_date")
        if self.renewal_requested and self.renewal_request_date is None:
            raise ValueError("renewal_request_date is required when renewal_requested is set")
        return self


class Agreement(RecordBase, AgreementBase):
    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime


class AgreementUpdate(BaseModel):
    document_id: Optional[str] = None
    agreement_number: Optional[str] = None
    start_date: Optional[UTCDatetime] = None
    end_date: Optional[UTCDatetime] = None
    status: Optional[AgreementStatus] = None
    renewal_requested: Optional[bool] = None
    renewal_request_date: Optional[UTCDatetime] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "AgreementUpdate":
        # Only dates sent together; update_agreement_use_case checks against stored ones.
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be earlier than start_date")
        return self


# Quota schemas
class QuotaUsageBase(BaseModel):
    user_id: str
    quota_type: str
    used_amount: int = Field(0, ge=0)
    total_quota: int = Field(ge=0)
    period: QuotaPeriod = "monthly"
    reset_date: Optional[UTCDatetime] = None


class QuotaUsageCreate(QuotaUsageBase):
    pass


class QuotaUsage(RecordBase, QuotaUsageBase):
    # Corrections may push used_amount below zero through negative increments.
    used_amount: int = 0
    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime

    @computed_field
    @property
    def remaining_quota(self) -> int:
        return self.total_quota - self.used_amount


class QuotaStats(BaseModel):
    total_counters: int
    total_used: int
    active_quotas: int
    exhausted_quotas: int


# PNBP transaction schemas
class PnbpTransactionBase(BaseModel):
    user_id: Optional[str] = None
    transaction_id: Optional[str] = None
    service_type: Optional[str] = None
    amount: int
    description: Optional[str] = None
    status: TransactionStatus = "pending"
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    transaction_date: Optional[UTCDatetime] = None
    payment_date: Optional[UTCDatetime] = None
    notes: Optional[str] = None


class PnbpTransactionCreate(PnbpTransactionBase):
    pass


class PnbpTransaction(RecordBase, PnbpTransactionBase):
    # The repository stores whatever status the caller sets.
    status: str = "pending"
    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime


# Activity schemas
class ActivityCreate(BaseModel):
    user_id: Optional[str] = None
    type: str
    description: str
    metadata: Optional[dict[str, Any]] = None


class Activity(RecordBase):
    id: str
    user_id: Optional[str] = None
    type: str
    description: str
    metadata: Optional[dict[str, Any]] = None
    created_at: UTCDatetime


# Request schemas
class RequestCreate(BaseModel):
    user_id: Optional[str] = None
    type: str
    title: str
    description: str
    # Accepted for payload compatibility; creation always stores "pending".
    status: Optional[ReviewStatus] = None
    priority: RequestPriority = "normal"


class Request(RecordBase):
    id: str
    user_id: Optional[str] = None
    type: str
    title: str
    description: str
    status: ReviewStatus = "pending"
    priority: RequestPriority = "normal"
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[UTCDatetime] = None
    created_at: UTCDatetime
    updated_at: UTCDatetime


class RequestUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ReviewStatus] = None
    priority: Optional[RequestPriority] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[UTCDatetime] = None


# Notification schemas
class NotificationCreate(BaseModel):
    title: str
    message: str
    type: NotificationType = "info"
    target_type: NotificationTarget = "all"
    target_id: Optional[str] = None
    sent_by: Optional[str] = None
    is_read: bool = False

    @model_validator(mode="after")
    def _check_target(self) -> "NotificationCreate":
        if self.target_type != "all" and not self.target_id:
            raise ValueError(f"target_id is required when target_type is '{self.target_type}'")
        return self


class Notification(RecordBase):
    id: str
    title: str
    message: str
    type: NotificationType = "info"
    target_type: NotificationTarget = "all"
    target_id: Optional[str] = None
    sent_by: Optional[str] = None
    is_read: bool = False
    created_at: UTCDatetime


# Dashboard
class DashboardStats(BaseModel):
    total_users: int
    active_users: int
    today_logins: int
    pending_docs: int
    pending_requests: int
    active_agreements: int
    expiring_agreements: int
    total_quota_usage: int
    pending_transactions: int
