"""Agreement use-cases: creation, edits, renewal requests and the expiry sweep."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..domain_errors import DomainError, InvalidTransitionError
from ..repositories.base import Repository
from ..schemas import Agreement, AgreementCreate, AgreementUpdate
from ..services.lifecycle_rules import ensure_agreement_period
from .activity_log import record_activity, require

logger = logging.getLogger(__name__)


def create_agreement_use_case(*, repo: Repository, data: AgreementCreate, actor_id: str) -> Agreement:
    agreement = repo.create_agreement(data)
    logger.info("Agreement %s (%s) created by %s", agreement.id, agreement.type, actor_id)
    return agreement


def update_agreement_use_case(
    *, repo: Repository, agreement_id: str, updates: AgreementUpdate, actor_id: str
) -> Agreement:
    """Apply a partial update, checking the resulting period against stored dates."""
    current = require(repo.get_agreement_by_id(agreement_id), entity="agreement", record_id=agreement_id)
    fields = updates.model_fields_set
    start_date = updates.start_date if "start_date" in fields else current.start_date
    end_date = updates.end_date if "end_date" in fields else current.end_date
    try:
        ensure_agreement_period(start_date=start_date, end_date=end_date)
    except ValueError as exc:
        raise DomainError(
            code="AGREEMENT_INVALID_PERIOD",
            http_status=422,
            message=str(exc),
            details={"id": agreement_id},
        ) from exc

    updated = require(repo.update_agreement(agreement_id, updates), entity="agreement", record_id=agreement_id)
    logger.info("Agreement %s updated by %s", agreement_id, actor_id)
    return updated


def request_renewal_use_case(*, repo: Repository, agreement_id: str, actor_id: str) -> Agreement:
    """Flag the agreement for renewal and move it to ``pending_renewal``.

    The flag and the status change are two repository writes; a reader in
    between sees the flag set while the status is still ``active``.
    """
    agreement = require(repo.get_agreement_by_id(agreement_id), entity="agreement", record_id=agreement_id)
    if agreement.status == "pending_renewal" and agreement.renewal_requested:
        return agreement
    if agreement.status == "expired":
        raise InvalidTransitionError(
            code="AGREEMENT_EXPIRED",
            http_status=409,
            message="Expired agreements cannot be renewed; create a new agreement instead",
            details={"id": agreement_id},
        )

    if not repo.request_agreement_renewal(agreement_id):
        require(None, entity="agreement", record_id=agreement_id)
    updated = require(
        repo.update_agreement(agreement_id, AgreementUpdate(status="pending_renewal")),
        entity="agreement",
        record_id=agreement_id,
    )
    record_activity(
        repo,
        user_id=actor_id,
        type="renewal",
        description=f"Requested renewal: {updated.agreement_number or updated.id}",
        metadata={"agreement_id": agreement_id, "agreement_type": updated.type},
    )
    return updated


def expire_agreements_use_case(*, repo: Repository, as_of: Optional[datetime] = None) -> int:
    expired = repo.expire_agreements(as_of)
    logger.info("Agreement expiry sweep finished: %s expired", expired)
    return expired
