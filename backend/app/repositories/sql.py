"""SQLAlchemy-backed repository.

Every public method opens exactly one session and runs as a single database
transaction: commit on success, rollback and re-raise on failure, always close.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .. import models
from ..config import settings
from ..database import SessionLocal
from ..domain_errors import DomainError, DuplicateRecordError
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
    next_reset_date,
    now_utc,
    start_of_local_day,
)
from .base import Repository, merge_values

logger = logging.getLogger(__name__)


def _activity_out(row: models.Activity) -> Activity:
    # The ORM attribute is meta_data; from_attributes would pick up Base.metadata.
    return Activity(
        id=row.id,
        user_id=row.user_id,
        type=row.type,
        description=row.description,
        metadata=row.meta_data,
        created_at=row.created_at,
    )


def _count(db: Session, model: Any, *criteria: Any) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return int(db.scalar(stmt) or 0)


class SqlAlchemyRepository(Repository):
    """Durable repository over the tables in ``app.models``."""

    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session] = SessionLocal,
        *,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] | None = None,
        default_user_quota: int | None = None,
        activity_default_limit: int | None = None,
        local_timezone: str | None = None,
        expiring_days: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._id_factory = id_factory or (lambda: str(uuid4()))
        self._default_user_quota = default_user_quota if default_user_quota is not None else settings.DEFAULT_USER_QUOTA
        self._activity_default_limit = activity_default_limit or settings.ACTIVITY_DEFAULT_LIMIT
        self._local_timezone = local_timezone or settings.LOCAL_TIMEZONE
        self._expiring_days = expiring_days if expiring_days is not None else settings.EXPIRING_AGREEMENT_DAYS

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def _new_id(self) -> str:
        return self._id_factory()

    @contextmanager
    def _session(self, on_conflict: Callable[[], DomainError] | None = None) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if on_conflict is None:
                logger.error("Integrity error in repository operation", exc_info=True)
                raise
            raise on_conflict() from exc
        except DomainError:
            db.rollback()
            raise
        except Exception:
            db.rollback()
            logger.error("Repository operation failed", exc_info=True)
            raise
        finally:
            db.close()

    # Users
    def get_user(self, user_id: str) -> Optional[User]:
        with self._session() as db:
            row = db.get(models.User, user_id)
            return User.model_validate(row) if row else None

    def _ensure_email_free(self, db: Session, email: Optional[str], owner_id: Optional[str]) -> None:
        if not email:
            return
        stmt = select(models.User.id).where(models.User.email == email)
        if owner_id:
            stmt = stmt.where(models.User.id != owner_id)
        if db.scalar(stmt.limit(1)) is not None:
            raise DuplicateRecordError.for_key("user", email=email)

    def upsert_user(self, data: UpsertUser) -> User:
        values = merge_values(data, User)
        user_id = values.pop("id", None)
        now = self._now()
        conflict = lambda: DuplicateRecordError.for_key("user", id=user_id, email=values.get("email"))  # noqa: E731

        with self._session(on_conflict=conflict) as db:
            existing = db.get(models.User, user_id) if user_id else None
            self._ensure_email_free(db, values.get("email"), existing.id if existing else None)

            if existing:
                logger.debug("Upserting existing user %s", existing.id)
                for field, value in values.items():
                    setattr(existing, field, value)
                existing.updated_at = now
                db.flush()
                return User.model_validate(existing)

            row = models.User(
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
            db.add(row)
            db.flush()
            logger.info("Created user %s", row.id)
            return User.model_validate(row)

    def get_all_users(self) -> list[User]:
        with self._session() as db:
            rows = db.scalars(select(models.User).order_by(models.User.created_at, models.User.id)).all()
            return [User.model_validate(row) for row in rows]

    def update_user(self, user_id: str, updates: UserUpdate) -> Optional[User]:
        values = merge_values(updates, User)
        conflict = lambda: DuplicateRecordError.for_key("user", email=values.get("email"))  # noqa: E731
        with self._session(on_conflict=conflict) as db:
            row = db.get(models.User, user_id)
            if row is None:
                return None
            self._ensure_email_free(db, values.get("email"), user_id)
            for field, value in values.items():
                setattr(row, field, value)
            row.updated_at = self._now()
            db.flush()
            return User.model_validate(row)

    # Documents
    def create_document(self, data: DocumentCreate) -> Document:
        now = self._now()
        with self._session() as db:
            row = models.Document(id=self._new_id(), **data.model_dump(), created_at=now, updated_at=now)
            db.add(row)
            db.flush()
            logger.debug("Stored document %s (%s)", row.id, row.category)
            return Document.model_validate(row)

    def get_all_documents(self) -> list[Document]:
        with self._session() as db:
            rows = db.scalars(select(models.Document).order_by(models.Document.created_at, models.Document.id)).all()
            return [Document.model_validate(row) for row in rows]

    def get_document_by_id(self, document_id: str) -> Optional[Document]:
        with self._session() as db:
            row = db.get(models.Document, document_id)
            return Document.model_validate(row) if row else None

    def update_document(self, document_id: str, updates: DocumentUpdate) -> Optional[Document]:
        values = merge_values(updates, Document)
        with self._session() as db:
            row = db.get(models.Document, document_id)
            if row is None:
                return None
            for field, value in values.items():
                setattr(row, field, value)
            row.updated_at = self._now()
            db.flush()
            return Document.model_validate(row)

    def delete_document(self, document_id: str) -> bool:
        with self._session() as db:
            row = db.get(models.Document, document_id)
            if row is None:
                return False
            db.delete(row)
            return True

    # Activities
    def create_activity(self, data: ActivityCreate) -> Activity:
        with self._session() as db:
            row = models.Activity(
                id=self._new_id(),
                user_id=data.user_id,
                type=data.type,
                description=data.description,
                meta_data=data.metadata,
                created_at=self._now(),
            )
            db.add(row)
            db.flush()
            return _activity_out(row)

    def _limit(self, limit: Optional[int]) -> int:
        return self._activity_default_limit if limit is None else max(0, limit)

    def _recent_activities(self, *criteria: Any, limit: Optional[int]) -> list[Activity]:
        n = self._limit(limit)
        if n == 0:
            return []
        stmt = select(models.Activity)
        if criteria:
            stmt = stmt.where(*criteria)
        stmt = stmt.order_by(models.Activity.created_at.desc(), models.Activity.id.desc()).limit(n)
        with self._session() as db:
            return [_activity_out(row) for row in db.scalars(stmt).all()]

    def get_activities(self, limit: Optional[int] = None) -> list[Activity]:
        return self._recent_activities(limit=limit)

    def get_user_activities(self, user_id: str, limit: Optional[int] = None) -> list[Activity]:
        return self._recent_activities(models.Activity.user_id == user_id, limit=limit)

    # Requests
    def create_request(self, data: RequestCreate) -> Request:
        now = self._now()
        with self._session() as db:
            row = models.Request(
                id=self._new_id(),
                **data.model_dump(exclude={"status"}),
                status="pending",
                reviewed_by=None,
                reviewed_at=None,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            db.flush()
            return Request.model_validate(row)

    def _requests(self, *criteria: Any) -> list[Request]:
        stmt = select(models.Request)
        if criteria:
            stmt = stmt.where(*criteria)
        with self._session() as db:
            rows = db.scalars(stmt.order_by(models.Request.created_at, models.Request.id)).all()
            return [Request.model_validate(row) for row in rows]

    def get_all_requests(self) -> list[Request]:
        return self._requests()

    def get_request_by_id(self, request_id: str) -> Optional[Request]:
        with self._session() as db:
            row = db.get(models.Request, request_id)
            return Request.model_validate(row) if row else None

    def get_pending_requests(self) -> list[Request]:
        return self._requests(models.Request.status == "pending")

    def update_request(self, request_id: str, updates: RequestUpdate) -> Optional[Request]:
        values = merge_values(updates, Request)
        with self._session() as db:
            row = db.get(models.Request, request_id)
            if row is None:
                return None
            for field, value in values.items():
                setattr(row, field, value)
            row.updated_at = self._now()
            db.flush()
            return Request.model_validate(row)

    # Notifications
    def create_notification(self, data: NotificationCreate) -> Notification:
        with self._session() as db:
            row = models.Notification(id=self._new_id(), **data.model_dump(), created_at=self._now())
            db.add(row)
            db.flush()
            return Notification.model_validate(row)

    def _notifications(self, *criteria: Any) -> list[Notification]:
        stmt = select(models.Notification)
        if criteria:
            stmt = stmt.where(*criteria)
        stmt = stmt.order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        with self._session() as db:
            return [Notification.model_validate(row) for row in db.scalars(stmt).all()]

    def get_all_notifications(self) -> list[Notification]:
        return self._notifications()

    def get_user_notifications(self, user_id: str, role: Optional[str] = None) -> list[Notification]:
        n = models.Notification
        visible = [
            n.target_type == "all",
            and_(n.target_type == "user", n.target_id == user_id),
        ]
        if role is not None:
            visible.append(and_(n.target_type == "role", n.target_id == role))
        return self._notifications(or_(*visible))

    def mark_notification_read(self, notification_id: str) -> bool:
        with self._session() as db:
            row = db.get(models.Notification, notification_id)
            if row is None:
                return False
            row.is_read = True
            return True

    # Agreements
    def create_agreement(self, data: AgreementCreate) -> Agreement:
        now = self._now()
        with self._session() as db:
            row = models.Agreement(id=self._new_id(), **data.model_dump(), created_at=now, updated_at=now)
            db.add(row)
            db.flush()
            return Agreement.model_validate(row)

    def _agreements(self, *criteria: Any) -> list[Agreement]:
        stmt = select(models.Agreement)
        if criteria:
            stmt = stmt.where(*criteria)
        with self._session() as db:
            rows = db.scalars(stmt.order_by(models.Agreement.created_at, models.Agreement.id)).all()
            return [Agreement.model_validate(row) for row in rows]

    def get_all_agreements(self) -> list[Agreement]:
        return self._agreements()

    def get_agreement_by_id(self, agreement_id: str) -> Optional[Agreement]:
        with self._session() as db:
            row = db.get(models.Agreement, agreement_id)
            return Agreement.model_validate(row) if row else None

    def get_user_agreements(self, user_id: str) -> list[Agreement]:
        return self._agreements(models.Agreement.user_id == user_id)

    @staticmethod
    def _expiring_criteria(cutoff: datetime) -> tuple[Any, ...]:
        return (
            models.Agreement.status == "active",
            models.Agreement.end_date.is_not(None),
            models.Agreement.end_date <= cutoff,
        )

    def get_expiring_agreements(self, days_ahead: int = 30) -> list[Agreement]:
        cutoff = expiry_cutoff(now=self._now(), days_ahead=days_ahead)
        return self._agreements(*self._expiring_criteria(cutoff))

    def update_agreement(self, agreement_id: str, updates: AgreementUpdate) -> Optional[Agreement]:
        values = merge_values(updates, Agreement)
        with self._session() as db:
            row = db.get(models.Agreement, agreement_id)
            if row is None:
                return None
            for field, value in values.items():
                setattr(row, field, value)
            row.updated_at = self._now()
            db.flush()
            return Agreement.model_validate(row)

    def request_agreement_renewal(self, agreement_id: str) -> bool:
        now = self._now()
        with self._session() as db:
            row = db.get(models.Agreement, agreement_id)
            if row is None:
                return False
            row.renewal_requested = True
            row.renewal_request_date = now
            row.updated_at = now
            return True

    def expire_agreements(self, as_of: Optional[datetime] = None) -> int:
        now = self._now()
        cutoff = as_utc(as_of) if as_of else now
        with self._session() as db:
            result = db.execute(
                update(models.Agreement)
                .where(*self._expiring_criteria(cutoff))
                .values(status="expired", updated_at=now)
                .execution_options(synchronize_session=False)
            )
            expired = int(result.rowcount or 0)
        if expired:
            logger.info("Expired %s agreement(s) ending on or before %s", expired, cutoff.isoformat())
        return expired

    # Quota
    def create_quota_usage(self, data: QuotaUsageCreate) -> QuotaUsage:
        now = self._now()
        conflict = lambda: DuplicateRecordError.for_key(  # noqa: E731
            "quota_usage", user_id=data.user_id, quota_type=data.quota_type
        )
        with self._session(on_conflict=conflict) as db:
            taken = db.scalar(
                select(models.QuotaUsage.id)
                .where(models.QuotaUsage.user_id == data.user_id, models.QuotaUsage.quota_type == data.quota_type)
                .limit(1)
            )
            if taken is not None:
                raise conflict()
            row = models.QuotaUsage(id=self._new_id(), **data.model_dump(), created_at=now, updated_at=now)
            db.add(row)
            db.flush()
            return QuotaUsage.model_validate(row)

    def _quota_rows(self, *criteria: Any) -> list[QuotaUsage]:
        stmt = select(models.QuotaUsage)
        if criteria:
            stmt = stmt.where(*criteria)
        with self._session() as db:
            rows = db.scalars(stmt.order_by(models.QuotaUsage.created_at, models.QuotaUsage.id)).all()
            return [QuotaUsage.model_validate(row) for row in rows]

    def get_all_quota_usage(self) -> list[QuotaUsage]:
        return self._quota_rows()

    def get_user_quota_usage(self, user_id: str) -> list[QuotaUsage]:
        return self._quota_rows(models.QuotaUsage.user_id == user_id)

    def update_quota_usage(self, user_id: str, quota_type: str, amount: int) -> bool:
        # Single UPDATE: the increment happens inside the database, never read-modify-write.
        with self._session() as db:
            result = db.execute(
                update(models.QuotaUsage)
                .where(models.QuotaUsage.user_id == user_id, models.QuotaUsage.quota_type == quota_type)
                .values(used_amount=models.QuotaUsage.used_amount + amount, updated_at=self._now())
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)

    def reset_user_quota(self, user_id: str, quota_type: str) -> bool:
        with self._session() as db:
            result = db.execute(
                update(models.QuotaUsage)
                .where(models.QuotaUsage.user_id == user_id, models.QuotaUsage.quota_type == quota_type)
                .values(used_amount=0, updated_at=self._now())
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)

    def reset_due_quotas(self, as_of: Optional[datetime] = None) -> int:
        now = self._now()
        cutoff = as_utc(as_of) if as_of else now
        with self._session() as db:
            # SKIP LOCKED lets concurrent sweepers split the work (ignored on SQLite).
            rows = db.scalars(
                select(models.QuotaUsage)
                .where(models.QuotaUsage.reset_date.is_not(None), models.QuotaUsage.reset_date <= cutoff)
                .with_for_update(skip_locked=True)
            ).all()
            for row in rows:
                row.used_amount = 0
                row.reset_date = next_reset_date(reset_date=row.reset_date, period=row.period, as_of=cutoff)
                row.updated_at = now
            reset = len(rows)
        if reset:
            logger.info("Reset %s quota counter(s) due by %s", reset, cutoff.isoformat())
        return reset

    # PNBP transactions
    def create_pnbp_transaction(self, data: PnbpTransactionCreate) -> PnbpTransaction:
        now = self._now()
        values = data.model_dump()
        if values["transaction_date"] is None:
            values["transaction_date"] = now
        conflict = lambda: DuplicateRecordError.for_key(  # noqa: E731
            "pnbp_transaction", transaction_id=values["transaction_id"]
        )
        with self._session(on_conflict=conflict) as db:
            if values["transaction_id"] and db.scalar(
                select(models.PnbpTransaction.id)
                .where(models.PnbpTransaction.transaction_id == values["transaction_id"])
                .limit(1)
            ) is not None:
                raise conflict()
            row = models.PnbpTransaction(id=self._new_id(), **values, created_at=now, updated_at=now)
            db.add(row)
            db.flush()
            return PnbpTransaction.model_validate(row)

    def _transactions(self, *criteria: Any) -> list[PnbpTransaction]:
        stmt = select(models.PnbpTransaction)
        if criteria:
            stmt = stmt.where(*criteria)
        with self._session() as db:
            rows = db.scalars(stmt.order_by(models.PnbpTransaction.created_at, models.PnbpTransaction.id)).all()
            return [PnbpTransaction.model_validate(row) for row in rows]

    def get_all_transactions(self) -> list[PnbpTransaction]:
        return self._transactions()

    def get_transaction_by_id(self, transaction_id: str) -> Optional[PnbpTransaction]:
        with self._session() as db:
            row = db.get(models.PnbpTransaction, transaction_id)
            return PnbpTransaction.model_validate(row) if row else None

    def get_user_transactions(self, user_id: str) -> list[PnbpTransaction]:
        return self._transactions(models.PnbpTransaction.user_id == user_id)

    def update_transaction_status(
        self, transaction_id: str, status: str, *, payment_date: Optional[datetime] = None
    ) -> bool:
        with self._session() as db:
            row = db.get(models.PnbpTransaction, transaction_id)
            if row is None:
                return False
            row.status = status
            if payment_date is not None:
                row.payment_date = payment_date
            row.updated_at = self._now()
            return True

    # Statistics
    def get_stats(self) -> DashboardStats:
        now = self._now()
        today = start_of_local_day(now=now, tz_name=self._local_timezone)
        cutoff = expiry_cutoff(now=now, days_ahead=self._expiring_days)

        with self._session() as db:
            total_quota_usage = db.scalar(select(func.coalesce(func.sum(models.QuotaUsage.used_amount), 0)))
            return DashboardStats(
                total_users=_count(db, models.User),
                active_users=_count(db, models.User, models.User.is_active.is_(True)),
                today_logins=_count(
                    db, models.Activity, models.Activity.type == "login", models.Activity.created_at >= today
                ),
                pending_docs=_count(db, models.Document, models.Document.status == "pending"),
                pending_requests=_count(db, models.Request, models.Request.status == "pending"),
                active_agreements=_count(db, models.Agreement, models.Agreement.status == "active"),
                expiring_agreements=_count(db, models.Agreement, *self._expiring_criteria(cutoff)),
                total_quota_usage=int(total_quota_usage or 0),
                pending_transactions=_count(db, models.PnbpTransaction, models.PnbpTransaction.status == "pending"),
            )
