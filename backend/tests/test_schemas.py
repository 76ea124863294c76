from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.domain_errors import DuplicateRecordError, RecordNotFoundError
from app.repositories.base import merge_values
from app.schemas import (
    AgreementCreate,
    Document,
    DocumentUpdate,
    NotificationCreate,
    QuotaUsage,
    User,
    UserUpdate,
)

NOW = datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)


def test_agreement_end_date_cannot_precede_start_date() -> None:
    with pytest.raises(ValidationError, match="end_date must not be earlier"):
        AgreementCreate(type="PKS", start_date=datetime(2026, 2, 1), end_date=datetime(2026, 1, 1))


def test_agreement_renewal_flag_requires_request_date() -> None:
    with pytest.raises(ValidationError, match="renewal_request_date is required"):
        AgreementCreate(type="POC", renewal_requested=True)


def test_agreement_rejects_unknown_category() -> None:
    with pytest.raises(ValidationError):
        AgreementCreate(type="MoU")


def test_targeted_notification_requires_target_id() -> None:
    with pytest.raises(ValidationError, match="target_id is required"):
        NotificationCreate(title="t", message="m", target_type="user")
    assert NotificationCreate(title="t", message="m").target_type == "all"


def test_naive_datetimes_are_stored_as_utc() -> None:
    agreement = AgreementCreate(type="PKS", end_date=datetime(2026, 12, 31, 0, 0))
    assert agreement.end_date == datetime(2026, 12, 31, 0, 0, tzinfo=timezone.utc)


def test_remaining_quota_is_derived_not_stored() -> None:
    quota = QuotaUsage(
        id="q-1",
        user_id="user-001",
        quota_type="api_calls",
        used_amount=480,
        total_quota=500,
        created_at=NOW,
        updated_at=NOW,
    )

    assert quota.remaining_quota == 20
    assert quota.model_dump()["remaining_quota"] == 20
    assert "remaining_quota" not in QuotaUsage.model_fields


def test_user_display_name_falls_back_to_email_then_id() -> None:
    base = {"created_at": NOW, "updated_at": NOW}
    assert User(id="u-1", first_name="Siti", last_name="Rahma", **base).display_name == "Siti Rahma"
    assert User(id="u-1", email="siti@example.com", **base).display_name == "siti@example.com"
    assert User(id="u-1", **base).display_name == "u-1"


def test_user_quota_update_cannot_be_negative() -> None:
    with pytest.raises(ValidationError):
        UserUpdate(quota=-1)


def test_merge_values_keeps_explicit_nulls_only_for_nullable_fields() -> None:
    updates = DocumentUpdate(title=None, description=None, expiration_date=None)

    assert merge_values(updates, Document) == {"description": None, "expiration_date": None}
    assert merge_values(DocumentUpdate(), Document) == {}


def test_domain_errors_carry_stable_codes() -> None:
    not_found = RecordNotFoundError.for_entity("quota_usage", "user-001:api_calls")
    duplicate = DuplicateRecordError.for_key("user", email="a@example.com")

    assert (not_found.code, not_found.http_status, str(not_found)) == ("QUOTA_USAGE_NOT_FOUND", 404, "Quota usage not found")
    assert duplicate.code == "DUPLICATE_RECORD"
    assert duplicate.http_status == 409
    assert duplicate.details == {"entity": "user", "email": "a@example.com"}
