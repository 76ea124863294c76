"""Quota use-cases: usage recording, resets and the monitoring summary."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from ..repositories.base import Repository
from ..schemas import QuotaStats, QuotaUsage
from .activity_log import record_activity, require

logger = logging.getLogger(__name__)

# Activity type logged per quota type; anything else is logged as "quota_usage".
USAGE_ACTIVITY_TYPES: dict[str, str] = {
    "document_download": "download",
    "api_calls": "api_call",
}


def _quota_key(user_id: str, quota_type: str) -> str:
    return f"{user_id}:{quota_type}"


def record_quota_usage_use_case(
    *,
    repo: Repository,
    user_id: str,
    quota_type: str,
    amount: int,
    description: Optional[str] = None,
) -> None:
    """Add ``amount`` to an existing counter. Counters are never created implicitly."""
    if not repo.update_quota_usage(user_id, quota_type, amount):
        require(None, entity="quota_usage", record_id=_quota_key(user_id, quota_type))

    record_activity(
        repo,
        user_id=user_id,
        type=USAGE_ACTIVITY_TYPES.get(quota_type, "quota_usage"),
        description=description or f"Used {amount} of {quota_type}",
        metadata={"quota_type": quota_type, "amount": amount},
    )


def reset_quota_use_case(*, repo: Repository, user_id: str, quota_type: str, actor_id: str) -> None:
    if not repo.reset_user_quota(user_id, quota_type):
        require(None, entity="quota_usage", record_id=_quota_key(user_id, quota_type))

    record_activity(
        repo,
        user_id=actor_id,
        type="quota_reset",
        description=f"Reset {quota_type} quota for user {user_id}",
        metadata={"user_id": user_id, "quota_type": quota_type},
    )
    logger.info("Quota %s reset for %s by %s", quota_type, user_id, actor_id)


def reset_due_quotas_use_case(*, repo: Repository, as_of: Optional[datetime] = None) -> int:
    reset = repo.reset_due_quotas(as_of)
    logger.info("Quota reset sweep finished: %s counter(s) reset", reset)
    return reset


def summarize_quota(counters: Iterable[QuotaUsage]) -> QuotaStats:
    counters = list(counters)
    return QuotaStats(
        total_counters=len(counters),
        total_used=sum(q.used_amount for q in counters),
        active_quotas=sum(1 for q in counters if q.remaining_quota > 0),
        exhausted_quotas=sum(1 for q in counters if q.remaining_quota <= 0),
    )


def quota_stats_use_case(*, repo: Repository, user_id: Optional[str] = None) -> QuotaStats:
    """Summary for one user, or across every counter when ``user_id`` is omitted."""
    counters = repo.get_user_quota_usage(user_id) if user_id else repo.get_all_quota_usage()
    return summarize_quota(counters)
