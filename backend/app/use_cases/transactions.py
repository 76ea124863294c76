"""PNBP (non-tax state revenue) transaction use-cases."""
from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime

from ..domain_errors import DuplicateRecordError
from ..repositories.base import Repository
from ..schemas import PnbpTransaction, PnbpTransactionCreate
from ..services.lifecycle_rules import now_utc, validate_transaction_transition
from .activity_log import record_activity, require, transition_error

logger = logging.getLogger(__name__)

_ISSUE_ATTEMPTS = 3


def next_transaction_number(existing: list[str | None], *, year: int) -> str:
    """``TRX/<year>/<n>`` with n one past the highest number used that year."""
    pattern = re.compile(rf"^TRX/{year}/(\d+)$")
    used = [int(m.group(1)) for value in existing if value and (m := pattern.match(value))]
    return f"TRX/{year}/{max(used, default=0) + 1:03d}"


def issue_transaction_use_case(
    *,
    repo: Repository,
    data: PnbpTransactionCreate,
    actor_id: str,
    clock: Callable[[], datetime] = now_utc,
) -> PnbpTransaction:
    """Create a pending transaction, numbering it when the caller did not."""
    payload = data.model_copy(update={"status": "pending", "payment_date": None})
    if payload.user_id is None:
        payload = payload.model_copy(update={"user_id": actor_id})

    if payload.transaction_id:
        return repo.create_pnbp_transaction(payload)

    year = clock().year
    # Two issuers can pick the same number; retry with a fresh one.
    attempt = 0
    while True:
        attempt += 1
        number = next_transaction_number(
            [t.transaction_id for t in repo.get_all_transactions()], year=year
        )
        try:
            transaction = repo.create_pnbp_transaction(payload.model_copy(update={"transaction_id": number}))
        except DuplicateRecordError:
            if attempt == _ISSUE_ATTEMPTS:
                raise
            logger.warning("Transaction number %s taken, retrying (%s/%s)", number, attempt, _ISSUE_ATTEMPTS)
        else:
            logger.info("Issued transaction %s for %s", number, transaction.user_id)
            return transaction


def settle_transaction_use_case(
    *,
    repo: Repository,
    transaction_id: str,
    status: str,
    actor_id: str,
    clock: Callable[[], datetime] = now_utc,
) -> PnbpTransaction:
    """Move a pending transaction to ``completed`` or ``failed``."""
    current = require(repo.get_transaction_by_id(transaction_id), entity="pnbp_transaction", record_id=transaction_id)
    try:
        next_status = validate_transaction_transition(current_status=current.status, next_status=status)
    except ValueError as exc:
        raise transition_error(entity="pnbp_transaction", record_id=transaction_id, exc=exc) from exc

    payment_date = clock() if next_status == "completed" else None
    if not repo.update_transaction_status(transaction_id, next_status, payment_date=payment_date):
        require(None, entity="pnbp_transaction", record_id=transaction_id)

    record_activity(
        repo,
        user_id=actor_id,
        type="payment",
        description=f"Transaction {current.transaction_id or transaction_id} {next_status}",
        metadata={"transaction_id": transaction_id, "status": next_status, "amount": current.amount},
    )
    return require(repo.get_transaction_by_id(transaction_id), entity="pnbp_transaction", record_id=transaction_id)
