"""Request approval workflow: pending -> approved | rejected, reviewed once."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..repositories.base import Repository
from ..schemas import Request, RequestCreate, RequestUpdate
from ..services.lifecycle_rules import ensure_reviewable, now_utc
from .activity_log import record_activity, require, transition_error

logger = logging.getLogger(__name__)


def create_request_use_case(*, repo: Repository, data: RequestCreate, actor_id: str) -> Request:
    request = repo.create_request(data.model_copy(update={"user_id": actor_id}))
    record_activity(
        repo,
        user_id=actor_id,
        type="request",
        description=f"Created request: {request.title}",
        metadata={"request_id": request.id, "request_type": request.type},
    )
    return request


def review_request_use_case(
    *,
    repo: Repository,
    request_id: str,
    decision: str,
    actor_id: str,
    clock: Callable[[], datetime] = now_utc,
) -> Request:
    """Approve or reject a pending request and stamp the reviewer."""
    current = require(repo.get_request_by_id(request_id), entity="request", record_id=request_id)
    try:
        status = ensure_reviewable(current_status=current.status, next_status=decision)
    except ValueError as exc:
        raise transition_error(entity="request", record_id=request_id, exc=exc) from exc

    updated = require(
        repo.update_request(
            request_id,
            RequestUpdate(status=status, reviewed_by=actor_id, reviewed_at=clock()),
        ),
        entity="request",
        record_id=request_id,
    )
    record_activity(
        repo,
        user_id=actor_id,
        type="review",
        description=f"{'Approved' if status == 'approved' else 'Rejected'} request: {updated.title}",
        metadata={"request_id": request_id, "status": status},
    )
    logger.info("Request %s %s by %s", request_id, status, actor_id)
    return updated
