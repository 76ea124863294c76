"""In-memory repository used for development, tests and the seeded demo."""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar
from uuid import uuid4

from pydantic import BaseModel

from ..config import settings
from ..domain_errors import DuplicateRecordError
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
from ..services.lifecycle_rules import (
    as_utc,
    expiry_cutoff,
    is_expiring,
    next_reset_date,
    now_utc,
    start_of_local_day,
)
from .base import Repository, merge_values

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class KeyedTable(Generic[T]):
    """id -> frozen record map. Every write replaces the stored record.

    Records are copied deeply on the way in and on the way out, so nested
    values (activity metadata) held by callers never alias stored state.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._rows: dict[str, T] = {}

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, key: str) -> bool:
        return key in self._rows

    @staticmethod
    def _copy(record: T) -> T:
        return record.model_copy(deep=True)

    def get(self, key: str) -> Optional[T]:
        row = self._rows.get(key)
        return self._copy(row) if row is not None else None

    def put(self, record: T) -> T:
        self._rows[record.id] = self._copy(record)  # type: ignore[attr-defined]
        return self._copy(record)

    def merge(self, key: str, changes: dict[str, Any]) -> Optional[T]:
        current = self._rows.get(key)
        if current is None:
            return None
        updated = current.model_copy(update=changes, deep=True)
        self._rows[key] = updated
        return self._copy(updated)

    def delete(self, key: str) -> bool:
        return self._rows.pop(key, None) is not None

    def values(self) -> list[T]:
        return [self._copy(row) for row in self._rows.values()]

    def filter(self, predicate: Callable[[T], bool]) -> list[T]:
        return [self._copy(row) for row in self._rows.values() if predicate(row)]

    def find(self, predicate: Callable[[T], bool]) -> Optional[T]:
        row = next((row for row in self._rows.values() if predicate(row)), None)
        return self._copy(row) if row is not None else None

    def count(self, predicate: Callable[[T], bool]) -> int:
        return sum(1 for row in self._rows.values() if predicate(row))


def _newest_first(rows: Iterable[T]) -> list[T]:
    # sorted() stays stable with reverse=True, so ties keep insertion order.
    return sorted(rows, key=lambda row: row.created_at, reverse=True)  # type: ignore[attr-defined]


class InMemoryRepository(Repository):
    """Process-local storage; state lives as long as the instance."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] | None = None,
        default_user_quota: int | None = None,
        activity_default_limit: int | None = None,
        local_timezone: str | None = None,
        expiring_days: int | None = None,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory or (lambda: str(uuid4()))
        self._default_user_quota = default_user_quota if default_user_quota is not None else settings.DEFAULT_USER_QUOTA
        self._activity_default_limit = activity_default_limit or settings.ACTIVITY_DEFAULT_LIMIT
        self._local_timezone = local_timezone or settings.LOCAL_TIMEZONE
        self._expiring_days = expiring_days if expiring_days is not None else settings.EXPIRING_AGREEMENT_DAYS
        # Guards check-then-write sequences (unique keys, quota increments).
        self._lock = threading.RLock()

        self._users: KeyedTable[User] = KeyedTable("users")
        self._documents: KeyedTable[Document] = KeyedTable("documents")
        self._activities: KeyedTable[Activity] = KeyedTable("activities")
        self._requests: KeyedTable[Request] = KeyedTable("requests")
        self._notifications: KeyedTable[Notification] = KeyedTable("notifications")
        self._agreements: KeyedTable[Agreement] = KeyedTable("agreements")
        self._quota_usage: KeyedTable[QuotaUsage] = KeyedTable("quota_usage")
        self._transactions: KeyedTable[PnbpTransaction] = KeyedTable("pnbp_transactions")

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def _new_id(self) -> str:
        return self._id_factory()

    # Users
    def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def _ensure_email_free(self, email: Optional[str], owner_id: Optional[str]) -> None:
        if not email:
            return
        taken = self._users.find(lambda u: u.email == email and u.id != owner_id)
        if taken:
            raise DuplicateRecordError.for_key("user", email=email)

    def upsert_user(self, data: UpsertUser) -> User:
        values = merge_values(data, User)
        user_id = values.pop("id", None)
        now = self._now()

        with self._lock:
            existing = self._users.get(user_id) if user_id else None
            self._ensure_email_free(values.get("email"), existing.id if existing else None)

            if existing:
                logger.debug("Upserting existing user %s", existing.id)
                return self._users.merge(existing.id, {**values, "updated_at": now})

            user = User(
                id=user_id or self._new_id(),
                email=values.get("email"),
                first_name=values.get("first_name"),
                last_name=values.get("last_name"),
                profile_image_url=values.get("profile_image_url"),
                role=values.get("role", "user"),
                is_active=values.get("is_active", True),
                quota=values.get("quota", self._default_user_quota),
                created_at=now,
                updated_at=now,
            )
            logger.info("Created user %s", user.id)
            return self._users.put(user)

    def get_all_users(self) -> list[User]:
        return self._users.values()

    def update_user(self, user_id: str, updates: UserUpdate) -> Optional[User]:
        values = merge_values(updates, User)
        with self._lock:
            if user_id not in self._users:
                return None
            self._ensure_email_free(values.get("email"), user_id)
            return self._users.merge(user_id, {**values, "updated_at": self._now()})

    # Documents
    def create_document(self, data: DocumentCreate) -> Document:
        now = self._now()
        document = Document(id=self._new_id(), **data.model_dump(), created_at=now, updated_at=now)
        logger.debug("Stored document %s (%s)", document.id, document.category)
        return self._documents.put(document)

    def get_all_documents(self) -> list[Document]:
        return self._documents.values()

    def get_document_by_id(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    def update_document(self, document_id: str, updates: DocumentUpdate) -> Optional[Document]:
        values = merge_values(updates, Document)
        return self._documents.merge(document_id, {**values, "updated_at": self._now()})

    def delete_document(self, document_id: str) -> bool:
        return self._documents.delete(document_id)

    # Activities
    def create_activity(self, data: ActivityCreate) -> Activity:
        activity = Activity(id=self._new_id(), **data.model_dump(), created_at=self._now())
        return self._activities.put(activity)

    def _limit(self, limit: Optional[int]) -> int:
        return self._activity_default_limit if limit is None else max(0, limit)

    def get_activities(self, limit: Optional[int] = None) -> list[Activity]:
        return _newest_first(self._activities.values())[: self._limit(limit)]

    def get_user_activities(self, user_id: str, limit: Optional[int] = None) -> list[Activity]:
        rows = self._activities.filter(lambda a: a.user_id == user_id)
        return _newest_first(rows)[: self._limit(limit)]

    # Requests
    def create_request(self, data: RequestCreate) -> Request:
        now = self._now()
        request = Request(
            id=self._new_id(),
            **data.model_dump(exclude={"status"}),
            status="pending",
            reviewed_by=None,
            reviewed_at=None,
            created_at=now,
            updated_at=now,
        )
        return self._requests.put(request)

    def get_all_requests(self) -> list[Request]:
        return self._requests.values()

    def get_request_by_id(self, request_id: str) -> Optional[Request]:
        return self._requests.get(request_id)

    def get_pending_requests(self) -> list[Request]:
        return self._requests.filter(lambda r: r.status == "pending")

    def update_request(self, request_id: str, updates: RequestUpdate) -> Optional[Request]:
        values = merge_values(updates, Request)
        return self._requests.merge(request_id, {**values, "updated_at": self._now()})

    # Notifications
    def create_notification(self, data: NotificationCreate) -> Notification:
        notification = Notification(id=self._new_id(), **data.model_dump(), created_at=self._now())
        return self._notifications.put(notification)

    def get_all_notifications(self) -> list[Notification]:
        return _newest_first(self._notifications.values())

    def get_user_notifications(self, user_id: str, role: Optional[str] = None) -> list[Notification]:
        def _visible(n: Notification) -> bool:
            if n.target_type == "all":
                return True
            if n.target_type == "user":
                return n.target_id == user_id
            return role is not None and n.target_type == "role" and n.target_id == role

        return _newest_first(self._notifications.filter(_visible))

    def mark_notification_read(self, notification_id: str) -> bool:
        return self._notifications.merge(notification_id, {"is_read": True}) is not None

    # Agreements
    def create_agreement(self, data: AgreementCreate) -> Agreement:
        now = self._now()
        agreement = Agreement(id=self._new_id(), **data.model_dump(), created_at=now, updated_at=now)
        return self._agreements.put(agreement)

    def get_all_agreements(self) -> list[Agreement]:
        return self._agreements.values()

    def get_agreement_by_id(self, agreement_id: str) -> Optional[Agreement]:
        return self._agreements.get(agreement_id)

    def get_user_agreements(self, user_id: str) -> list[Agreement]:
        return self._agreements.filter(lambda a: a.user_id == user_id)

    def get_expiring_agreements(self, days_ahead: int = 30) -> list[Agreement]:
        cutoff = expiry_cutoff(now=self._now(), days_ahead=days_ahead)
        return self._agreements.filter(
            lambda a: is_expiring(status=a.status, end_date=a.end_date, cutoff=cutoff)
        )

    def update_agreement(self, agreement_id: str, updates: AgreementUpdate) -> Optional[Agreement]:
        values = merge_values(updates, Agreement)
        return self._agreements.merge(agreement_id, {**values, "updated_at": self._now()})

    def request_agreement_renewal(self, agreement_id: str) -> bool:
        now = self._now()
        updated = self._agreements.merge(
            agreement_id,
            {"renewal_requested": True, "renewal_request_date": now, "updated_at": now},
        )
        return updated is not None

    def expire_agreements(self, as_of: Optional[datetime] = None) -> int:
        now = self._now()
        cutoff = as_utc(as_of) if as_of else now
        expired = 0
        with self._lock:
            for agreement in self._agreements.filter(
                lambda a: is_expiring(status=a.status, end_date=a.end_date, cutoff=cutoff)
            ):
                self._agreements.merge(agreement.id, {"status": "expired", "updated_at": now})
                expired += 1
        if expired:
            logger.info("Expired %s agreement(s) ending on or before %s", expired, cutoff.isoformat())
        return expired

    # Quota
    def _find_quota(self, user_id: str, quota_type: str) -> Optional[QuotaUsage]:
        return self._quota_usage.find(lambda q: q.user_id == user_id and q.quota_type == quota_type)

    def create_quota_usage(self, data: QuotaUsageCreate) -> QuotaUsage:
        now = self._now()
        with self._lock:
            if self._find_quota(data.user_id, data.quota_type):
                raise DuplicateRecordError.for_key("quota_usage", user_id=data.user_id, quota_type=data.quota_type)
            quota = QuotaUsage(id=self._new_id(), **data.model_dump(), created_at=now, updated_at=now)
            return self._quota_usage.put(quota)

    def get_all_quota_usage(self) -> list[QuotaUsage]:
        return self._quota_usage.values()

    def get_user_quota_usage(self, user_id: str) -> list[QuotaUsage]:
        return self._quota_usage.filter(lambda q: q.user_id == user_id)

    def update_quota_usage(self, user_id: str, quota_type: str, amount: int) -> bool:
        with self._lock:
            quota = self._find_quota(user_id, quota_type)
            if quota is None:
                return False
            self._quota_usage.merge(
                quota.id,
                {"used_amount": quota.used_amount + amount, "updated_at": self._now()},
            )
            return True

    def reset_user_quota(self, user_id: str, quota_type: str) -> bool:
        with self._lock:
            quota = self._find_quota(user_id, quota_type)
            if quota is None:
                return False
            self._quota_usage.merge(quota.id, {"used_amount": 0, "updated_at": self._now()})
            return True

    def reset_due_quotas(self, as_of: Optional[datetime] = None) -> int:
        now = self._now()
        cutoff = as_utc(as_of) if as_of else now
        reset = 0
        with self._lock:
            for quota in self._quota_usage.filter(lambda q: q.reset_date is not None and q.reset_date <= cutoff):
                self._quota_usage.merge(
                    quota.id,
                    {
                        "used_amount": 0,
                        "reset_date": next_reset_date(reset_date=quota.reset_date, period=quota.period, as_of=cutoff),
                        "updated_at": now,
                    },
                )
                reset += 1
        if reset:
            logger.info("Reset %s quota counter(s) due by %s", reset, cutoff.isoformat())
        return reset

    # PNBP transactions
    def create_pnbp_transaction(self, data: PnbpTransactionCreate) -> PnbpTransaction:
        now = self._now()
        values = data.model_dump()
        if values["transaction_date"] is None:
            values["transaction_date"] = now
        with self._lock:
            if values["transaction_id"] and self._transactions.find(
                lambda t: t.transaction_id == values["transaction_id"]
            ):
                raise DuplicateRecordError.for_key("pnbp_transaction", transaction_id=values["transaction_id"])
            transaction = PnbpTransaction(id=self._new_id(), **values, created_at=now, updated_at=now)
            return self._transactions.put(transaction)

    def get_all_transactions(self) -> list[PnbpTransaction]:
        return self._transactions.values()

    def get_transaction_by_id(self, transaction_id: str) -> Optional[PnbpTransaction]:
        return self._transactions.get(transaction_id)

    def get_user_transactions(self, user_id: str) -> list[PnbpTransaction]:
        return self._transactions.filter(lambda t: t.user_id == user_id)

    def update_transaction_status(
        self, transaction_id: str, status: str, *, payment_date: Optional[datetime] = None
    ) -> bool:
        changes: dict[str, Any] = {"status": status, "updated_at": self._now()}
        if payment_date is not None:
            changes["payment_date"] = as_utc(payment_date)
        return self._transactions.merge(transaction_id, changes) is not None

    # Statistics
    def get_stats(self) -> DashboardStats:
        now = self._now()
        today = start_of_local_day(now=now, tz_name=self._local_timezone)
        cutoff = expiry_cutoff(now=now, days_ahead=self._expiring_days)

        return DashboardStats(
            total_users=len(self._users),
            active_users=self._users.count(lambda u: u.is_active),
            today_logins=self._activities.count(lambda a: a.type == "login" and a.created_at >= today),
            pending_docs=self._documents.count(lambda d: d.status == "pending"),
            pending_requests=self._requests.count(lambda r: r.status == "pending"),
            active_agreements=self._agreements.count(lambda a: a.status == "active"),
            expiring_agreements=self._agreements.count(
                lambda a: is_expiring(status=a.status, end_date=a.end_date, cutoff=cutoff)
            ),
            total_quota_usage=sum(q.used_amount for q in self._quota_usage.values()),
            pending_transactions=self._transactions.count(lambda t: t.status == "pending"),
        )
