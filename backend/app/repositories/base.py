"""Repository contract shared by the in-memory and SQL implementations.

Absence is reported as ``None`` / ``False``, never raised. Cross-entity ids
are soft references: nothing here checks that a referenced user or document
exists, and deleting a document leaves agreements pointing at it untouched.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional, get_args

from pydantic import BaseModel

from ..schemas import (
    Activity,
    ActivityCreate,
    Agreement,
    AgreementCreate,
    AgreementUpdate,
    DashboardStats,
    Document,
    DocumentCreate,
    DocumentUpdate,
    Notification,
    NotificationCreate,
    PnbpTransaction,
    PnbpTransactionCreate,
    QuotaUsage,
    QuotaUsageCreate,
    Request,
    RequestCreate,
    RequestUpdate,
    UpsertUser,
    User,
    UserUpdate,
)


def _is_nullable(record_cls: type[BaseModel], name: str) -> bool:
    field = record_cls.model_fields.get(name)
    return field is not None and type(None) in get_args(field.annotation)


def merge_values(updates: BaseModel, record_cls: type[BaseModel]) -> dict[str, Any]:
    """Fields the caller explicitly set, minus ``None`` for fields the record cannot hold empty."""
    values = updates.model_dump(exclude_unset=True)
    return {
        name: value
        for name, value in values.items()
        if name in record_cls.model_fields and (value is not None or _is_nullable(record_cls, name))
    }


class Repository(ABC):
    """Data-access operations consumed by the use-case layer."""

    # Users
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def upsert_user(self, data: UpsertUser) -> User:
        """Merge provided fields into an existing user or create one.

        New users default to role "user", active, and the configured quota;
        a fresh id is assigned when none is given. Repeating the call with the
        same claims leaves id/email/role unchanged and only moves updated_at.
        """

    @abstractmethod
    def get_all_users(self) -> list[User]:
        pass

    @abstractmethod
    def update_user(self, user_id: str, updates: UserUpdate) -> Optional[User]:
        pass

    # Documents
    @abstractmethod
    def create_document(self, data: DocumentCreate) -> Document:
        """Store a document with the status the caller provides."""

    @abstractmethod
    def get_all_documents(self) -> list[Document]:
        pass

    @abstractmethod
    def get_document_by_id(self, document_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    def update_document(self, document_id: str, updates: DocumentUpdate) -> Optional[Document]:
        pass

    @abstractmethod
    def delete_document(self, document_id: str) -> bool:
        """Remove the document; returns whether it existed."""

    # Activities (append-only)
    @abstractmethod
    def create_activity(self, data: ActivityCreate) -> Activity:
        pass

    @abstractmethod
    def get_activities(self, limit: Optional[int] = None) -> list[Activity]:
        """Most recent first, truncated to ``limit`` (default from settings)."""

    @abstractmethod
    def get_user_activities(self, user_id: str, limit: Optional[int] = None) -> list[Activity]:
        pass

    # Requests
    @abstractmethod
    def create_request(self, data: RequestCreate) -> Request:
        """Store a request; status is always "pending" regardless of the payload."""

    @abstractmethod
    def get_all_requests(self) -> list[Request]:
        pass

    @abstractmethod
    def get_request_by_id(self, request_id: str) -> Optional[Request]:
        pass

    @abstractmethod
    def get_pending_requests(self) -> list[Request]:
        pass

    @abstractmethod
    def update_request(self, request_id: str, updates: RequestUpdate) -> Optional[Request]:
        pass

    # Notifications
    @abstractmethod
    def create_notification(self, data: NotificationCreate) -> Notification:
        pass

    @abstractmethod
    def get_all_notifications(self) -> list[Notification]:
        pass

    @abstractmethod
    def get_user_notifications(self, user_id: str, role: Optional[str] = None) -> list[Notification]:
        """Notifications for everyone plus those targeted at ``user_id``, newest first.

        Role-targeted notifications are only included when the caller resolves
        the user's role and passes it in.
        """

    @abstractmethod
    def mark_notification_read(self, notification_id: str) -> bool:
        pass

    # Agreements
    @abstractmethod
    def create_agreement(self, data: AgreementCreate) -> Agreement:
        pass

    @abstractmethod
    def get_all_agreements(self) -> list[Agreement]:
        pass

    @abstractmethod
    def get_agreement_by_id(self, agreement_id: str) -> Optional[Agreement]:
        pass

    @abstractmethod
    def get_user_agreements(self, user_id: str) -> list[Agreement]:
        pass

    @abstractmethod
    def get_expiring_agreements(self, days_ahead: int = 30) -> list[Agreement]:
        """Active agreements whose end date is on or before now + ``days_ahead``."""

    @abstractmethod
    def update_agreement(self, agreement_id: str, updates: AgreementUpdate) -> Optional[Agreement]:
        pass

    @abstractmethod
    def request_agreement_renewal(self, agreement_id: str) -> bool:
        """Flag renewal and stamp the request date. Status is left alone."""

    @abstractmethod
    def expire_agreements(self, as_of: Optional[datetime] = None) -> int:
        """Mark active agreements past their end date as expired; returns the count."""

    # Quota
    @abstractmethod
    def create_quota_usage(self, data: QuotaUsageCreate) -> QuotaUsage:
        pass

    @abstractmethod
    def get_all_quota_usage(self) -> list[QuotaUsage]:
        pass

    @abstractmethod
    def get_user_quota_usage(self, user_id: str) -> list[QuotaUsage]:
        pass

    @abstractmethod
    def update_quota_usage(self, user_id: str, quota_type: str, amount: int) -> bool:
        """Add ``amount`` (may be negative) to the counter; False if no counter exists."""

    @abstractmethod
    def reset_user_quota(self, user_id: str, quota_type: str) -> bool:
        pass

    @abstractmethod
    def reset_due_quotas(self, as_of: Optional[datetime] = None) -> int:
        """Zero every counter whose reset date has passed and roll the date forward."""

    # PNBP transactions
    @abstractmethod
    def create_pnbp_transaction(self, data: PnbpTransactionCreate) -> PnbpTransaction:
        pass

    @abstractmethod
    def get_all_transactions(self) -> list[PnbpTransaction]:
        pass

    @abstractmethod
    def get_transaction_by_id(self, transaction_id: str) -> Optional[PnbpTransaction]:
        """Lookup by record id, not by the ``TRX/...`` number."""

    @abstractmethod
    def get_user_transactions(self, user_id: str) -> list[PnbpTransaction]:
        pass

    @abstractmethod
    def update_transaction_status(
        self, transaction_id: str, status: str, *, payment_date: Optional[datetime] = None
    ) -> bool:
        """Set status by record id without checking the transition.

        ``payment_date`` is stored alongside when given; otherwise left as is.
        """

    # Statistics
    @abstractmethod
    def get_stats(self) -> DashboardStats:
        """Full-scan point-in-time aggregate; nothing is cached between calls."""
