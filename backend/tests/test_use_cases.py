from __future__ import annotations

from datetime import timedelta

import pytest

from app.domain_errors import DomainError, InvalidTransitionError, RecordNotFoundError
from app.schemas import (
    AgreementCreate,
    AgreementUpdate,
    DocumentCreate,
    DocumentUpdate,
    IdentityClaims,
    NotificationCreate,
    PnbpTransactionCreate,
    QuotaUsageCreate,
    RequestCreate,
    UpsertUser,
)
from app.use_cases.agreements import (
    create_agreement_use_case,
    expire_agreements_use_case,
    request_renewal_use_case,
    update_agreement_use_case,
)
from app.use_cases.documents import (
    delete_document_use_case,
    review_document_use_case,
    update_document_use_case,
    upload_document_use_case,
)
from app.use_cases.identity import current_user_use_case, sign_in_use_case
from app.use_cases.notifications import (
    list_user_notifications_use_case,
    mark_notification_read_use_case,
    send_notification_use_case,
)
from app.use_cases.quota import (
    quota_stats_use_case,
    record_quota_usage_use_case,
    reset_quota_use_case,
)
from app.use_cases.requests import create_request_use_case, review_request_use_case
from app.use_cases.transactions import (
    issue_transaction_use_case,
    next_transaction_number,
    settle_transaction_use_case,
)
from app.use_cases.users import set_user_active_use_case, set_user_quota_use_case

from conftest import START


def _upload(repo, actor_id: str = "user-001"):
    return upload_document_use_case(
        repo=repo,
        data=DocumentCreate(
            title="Juknis Akta Kelahiran",
            file_name="juknis.pdf",
            file_path="/uploads/juknis.pdf",
            file_size=2048,
            mime_type="application/pdf",
            category="Juknis",
            status="approved",
        ),
        actor_id=actor_id,
    )


def test_sign_in_upserts_user_and_logs_login(repo) -> None:
    claims = IdentityClaims(sub="user-001", email="budi@example.com", first_name="Budi", last_name="Santoso")

    user = sign_in_use_case(repo=repo, claims=claims)

    assert user.id == "user-001"
    assert user.role == "user"
    [activity] = repo.get_user_activities("user-001")
    assert activity.type == "login"
    assert activity.description == "Budi Santoso signed in"
    assert repo.get_stats().today_logins == 1


def test_sign_in_keeps_role_assigned_locally(repo) -> None:
    repo.upsert_user(UpsertUser(id="admin-123", email="admin@example.com", role="admin"))

    user = sign_in_use_case(repo=repo, claims=IdentityClaims(sub="admin-123", email="admin@example.com"))

    assert user.role == "admin"


def test_sign_in_rejects_deactivated_user_without_logging_login(repo) -> None:
    repo.upsert_user(UpsertUser(id="user-001", is_active=False))

    with pytest.raises(DomainError) as exc_info:
        sign_in_use_case(repo=repo, claims=IdentityClaims(sub="user-001"))

    assert exc_info.value.code == "USER_INACTIVE"
    assert exc_info.value.http_status == 403
    assert repo.get_activities() == []


def test_current_user_missing_raises_stable_code(repo) -> None:
    with pytest.raises(RecordNotFoundError) as exc_info:
        current_user_use_case(repo=repo, user_id="ghost")

    assert exc_info.value.code == "USER_NOT_FOUND"
    assert exc_info.value.http_status == 404
    assert exc_info.value.details == {"id": "ghost"}


def test_upload_forces_pending_and_uploader(repo) -> None:
    document = _upload(repo)

    assert document.status == "pending"
    assert document.uploaded_by == "user-001"
    [activity] = repo.get_activities()
    assert activity.type == "upload"
    assert activity.description == "Uploaded document: Juknis Akta Kelahiran"
    assert activity.metadata == {"document_id": document.id, "file_name": "juknis.pdf"}


def test_review_document_once(repo, clock) -> None:
    document = _upload(repo)
    clock.advance(minutes=1)

    reviewed = review_document_use_case(repo=repo, document_id=document.id, decision="approved", actor_id="admin-123")

    assert reviewed.status == "approved"
    assert repo.get_activities(1)[0].description == "Approved document: Juknis Akta Kelahiran"
    with pytest.raises(InvalidTransitionError) as exc_info:
        review_document_use_case(repo=repo, document_id=document.id, decision="rejected", actor_id="admin-123")
    assert exc_info.value.code == "DOCUMENT_INVALID_TRANSITION"
    assert exc_info.value.http_status == 409


def test_delete_document_missing_raises_not_found(repo) -> None:
    document = _upload(repo)

    delete_document_use_case(repo=repo, document_id=document.id, actor_id="admin-123")

    with pytest.raises(RecordNotFoundError) as exc_info:
        delete_document_use_case(repo=repo, document_id=document.id, actor_id="admin-123")
    assert exc_info.value.code == "DOCUMENT_NOT_FOUND"


def test_update_document_merges_fields_and_reports_missing(repo) -> None:
    document = _upload(repo)

    updated = update_document_use_case(
        repo=repo, document_id=document.id, updates=DocumentUpdate(description="Revisi 2", version="1.1")
    )

    assert updated.description == "Revisi 2"
    assert updated.version == "1.1"
    assert updated.title == document.title
    assert updated.status == "pending"
    with pytest.raises(RecordNotFoundError) as exc_info:
        update_document_use_case(repo=repo, document_id="missing", updates=DocumentUpdate(title="x"))
    assert exc_info.value.code == "DOCUMENT_NOT_FOUND"


def test_review_request_stamps_reviewer_and_rejects_second_review(repo, clock) -> None:
    request = create_request_use_case(
        repo=repo,
        data=RequestCreate(type="quota_reset", title="Reset Kuota Download", description="audit", priority="urgent"),
        actor_id="user-002",
    )
    assert request.user_id == "user-002"
    clock.advance(hours=1)

    reviewed = review_request_use_case(
        repo=repo, request_id=request.id, decision="rejected", actor_id="admin-123", clock=clock
    )

    assert reviewed.status == "rejected"
    assert reviewed.reviewed_by == "admin-123"
    assert reviewed.reviewed_at == clock.now
    assert [a.type for a in repo.get_activities()] == ["review", "request"]
    assert repo.get_activities(1)[0].description == "Rejected request: Reset Kuota Download"
    with pytest.raises(InvalidTransitionError):
        review_request_use_case(repo=repo, request_id=request.id, decision="approved", actor_id="admin-123")
    with pytest.raises(RecordNotFoundError):
        review_request_use_case(repo=repo, request_id="missing", decision="approved", actor_id="admin-123")


def test_role_notifications_reach_users_with_that_role(repo, clock) -> None:
    repo.upsert_user(UpsertUser(id="admin-123", role="admin"))
    repo.upsert_user(UpsertUser(id="user-001"))
    sent = send_notification_use_case(
        repo=repo,
        data=NotificationCreate(title="Audit", message="m", target_type="role", target_id="admin"),
        actor_id="admin-123",
    )

    assert sent.sent_by == "admin-123"
    assert [n.id for n in list_user_notifications_use_case(repo=repo, user_id="admin-123")] == [sent.id]
    assert list_user_notifications_use_case(repo=repo, user_id="user-001") == []
    assert repo.get_activities(1)[0].description == "Sent notification: Audit"

    mark_notification_read_use_case(repo=repo, notification_id=sent.id)
    with pytest.raises(RecordNotFoundError):
        mark_notification_read_use_case(repo=repo, notification_id="missing")


def test_request_renewal_sets_flag_then_pending_renewal(repo) -> None:
    agreement = create_agreement_use_case(
        repo=repo,
        data=AgreementCreate(user_id="user-001", type="POC", agreement_number="POC/2026/003",
                             end_date=START + timedelta(days=10)),
        actor_id="admin-123",
    )

    renewed = request_renewal_use_case(repo=repo, agreement_id=agreement.id, actor_id="user-001")

    assert renewed.status == "pending_renewal"
    assert renewed.renewal_requested is True
    assert renewed.renewal_request_date == START
    assert repo.get_activities(1)[0].type == "renewal"
    # A second request is a no-op.
    again = request_renewal_use_case(repo=repo, agreement_id=agreement.id, actor_id="user-001")
    assert again == renewed
    assert len(repo.get_activities()) == 1


def test_request_renewal_of_expired_agreement_is_rejected(repo) -> None:
    agreement = repo.create_agreement(
        AgreementCreate(user_id="user-001", type="PKS", end_date=START - timedelta(days=1), status="expired")
    )

    with pytest.raises(InvalidTransitionError) as exc_info:
        request_renewal_use_case(repo=repo, agreement_id=agreement.id, actor_id="user-001")

    assert exc_info.value.code == "AGREEMENT_EXPIRED"
    assert repo.get_agreement_by_id(agreement.id).renewal_requested is False


def test_update_agreement_checks_end_date_against_stored_start_date(repo) -> None:
    agreement = repo.create_agreement(
        AgreementCreate(user_id="user-001", type="PKS", start_date=START, end_date=START + timedelta(days=365))
    )

    with pytest.raises(DomainError) as exc_info:
        update_agreement_use_case(
            repo=repo,
            agreement_id=agreement.id,
            updates=AgreementUpdate(end_date=START - timedelta(days=5)),
            actor_id="admin-123",
        )
    assert exc_info.value.code == "AGREEMENT_INVALID_PERIOD"
    assert exc_info.value.http_status == 422
    assert repo.get_agreement_by_id(agreement.id).end_date == START + timedelta(days=365)

    moved = update_agreement_use_case(
        repo=repo,
        agreement_id=agreement.id,
        updates=AgreementUpdate(start_date=START - timedelta(days=30), end_date=START - timedelta(days=5)),
        actor_id="admin-123",
    )
    assert moved.end_date == START - timedelta(days=5)


def test_update_missing_agreement_raises_not_found(repo) -> None:
    with pytest.raises(RecordNotFoundError) as exc_info:
        update_agreement_use_case(
            repo=repo, agreement_id="missing", updates=AgreementUpdate(agreement_number="PKS/1"), actor_id="admin-123"
        )
    assert exc_info.value.code == "AGREEMENT_NOT_FOUND"


def test_expire_agreements_use_case_returns_count(repo) -> None:
    repo.create_agreement(AgreementCreate(user_id="user-001", type="PKS", end_date=START - timedelta(days=1)))

    assert expire_agreements_use_case(repo=repo) == 1
    assert expire_agreements_use_case(repo=repo) == 0


def test_record_quota_usage_logs_download(repo) -> None:
    repo.create_quota_usage(QuotaUsageCreate(user_id="user-001", quota_type="document_download", total_quota=100))

    record_quota_usage_use_case(repo=repo, user_id="user-001", quota_type="document_download", amount=3)

    assert repo.get_user_quota_usage("user-001")[0].used_amount == 3
    [activity] = repo.get_user_activities("user-001")
    assert activity.type == "download"
    assert activity.metadata == {"quota_type": "document_download", "amount": 3}


def test_record_quota_usage_without_counter_raises(repo) -> None:
    with pytest.raises(RecordNotFoundError) as exc_info:
        record_quota_usage_use_case(repo=repo, user_id="user-001", quota_type="api_calls", amount=1)

    assert exc_info.value.code == "QUOTA_USAGE_NOT_FOUND"
    assert repo.get_activities() == []


def test_reset_quota_and_stats(repo) -> None:
    repo.create_quota_usage(QuotaUsageCreate(user_id="user-001", quota_type="document_download", total_quota=100, used_amount=100))
    repo.create_quota_usage(QuotaUsageCreate(user_id="user-001", quota_type="api_calls", total_quota=500, used_amount=480))
    repo.create_quota_usage(QuotaUsageCreate(user_id="user-002", quota_type="document_download", total_quota=100, used_amount=45))

    stats = quota_stats_use_case(repo=repo)
    assert (stats.total_counters, stats.total_used, stats.active_quotas, stats.exhausted_quotas) == (3, 625, 2, 1)

    reset_quota_use_case(repo=repo, user_id="user-001", quota_type="document_download", actor_id="admin-123")

    user_stats = quota_stats_use_case(repo=repo, user_id="user-001")
    assert (user_stats.total_counters, user_stats.total_used, user_stats.exhausted_quotas) == (2, 480, 0)
    assert repo.get_activities(1)[0].type == "quota_reset"


def test_next_transaction_number_continues_the_year_sequence() -> None:
    existing = ["TRX/2026/001", "TRX/2026/007", "TRX/2025/050", None, "manual-1"]

    assert next_transaction_number(existing, year=2026) == "TRX/2026/008"
    assert next_transaction_number(existing, year=2027) == "TRX/2027/001"


def test_issue_transaction_numbers_and_forces_pending(repo, clock) -> None:
    first = issue_transaction_use_case(
        repo=repo,
        data=PnbpTransactionCreate(amount=50000, service_type="akta_kelahiran", status="completed"),
        actor_id="user-001",
        clock=clock,
    )
    second = issue_transaction_use_case(
        repo=repo, data=PnbpTransactionCreate(amount=75000), actor_id="user-002", clock=clock
    )

    assert first.transaction_id == "TRX/2026/001"
    assert second.transaction_id == "TRX/2026/002"
    assert first.status == "pending"
    assert first.user_id == "user-001"


def test_settle_transaction_completes_once_and_stamps_payment_date(repo, clock) -> None:
    issued = issue_transaction_use_case(
        repo=repo, data=PnbpTransactionCreate(amount=50000), actor_id="user-001", clock=clock
    )
    clock.advance(hours=2)

    settled = settle_transaction_use_case(
        repo=repo, transaction_id=issued.id, status="completed", actor_id="admin-123", clock=clock
    )

    assert settled.status == "completed"
    assert settled.payment_date == clock.now
    assert repo.get_activities(1)[0].type == "payment"
    with pytest.raises(InvalidTransitionError) as exc_info:
        settle_transaction_use_case(
            repo=repo, transaction_id=issued.id, status="failed", actor_id="admin-123", clock=clock
        )
    assert exc_info.value.code == "PNBP_TRANSACTION_INVALID_TRANSITION"


def test_failed_settlement_leaves_payment_date_empty(repo, clock) -> None:
    issued = issue_transaction_use_case(
        repo=repo, data=PnbpTransactionCreate(amount=25000), actor_id="user-001", clock=clock
    )

    settled = settle_transaction_use_case(
        repo=repo, transaction_id=issued.id, status="failed", actor_id="admin-123", clock=clock
    )

    assert settled.status == "failed"
    assert settled.payment_date is None


def test_user_administration_logs_changes(repo) -> None:
    repo.upsert_user(UpsertUser(id="user-001"))

    deactivated = set_user_active_use_case(repo=repo, user_id="user-001", is_active=False, actor_id="admin-123")
    raised = set_user_quota_use_case(repo=repo, user_id="user-001", quota=500, actor_id="admin-123")

    assert deactivated.is_active is False
    assert raised.quota == 500
    assert raised.is_active is False
    assert repo.get_stats().active_users == 0
    assert [a.type for a in repo.get_user_activities("admin-123")] == ["user_update", "user_update"]
    with pytest.raises(RecordNotFoundError):
        set_user_quota_use_case(repo=repo, user_id="ghost", quota=1, actor_id="admin-123")
