"""Shared helpers for use cases: audit entries and not-found / transition errors."""
from __future__ import annotations

from typing import Any, Optional, TypeVar

from ..domain_errors import InvalidTransitionError, RecordNotFoundError
from ..repositories.base import Repository
from ..schemas import Activity, ActivityCreate

T = TypeVar("T")


def record_activity(
    repo: Repository,
    *,
    user_id: Optional[str],
    type: str,
    description: str,
    metadata: Optional[dict[str, Any]] = None,
) -> Activity:
    return repo.create_activity(
        ActivityCreate(user_id=user_id, type=type, description=description, metadata=metadata)
    )


def require(record: Optional[T], *, entity: str, record_id: str) -> T:
    if record is None:
        raise RecordNotFoundError.for_entity(entity, record_id)
    return record


def transition_error(*, entity: str, record_id: str, exc: ValueError) -> InvalidTransitionError:
    return InvalidTransitionError(
        code=f"{entity.upper()}_INVALID_TRANSITION",
        http_status=409,
        message=str(exc),
        details={"id": record_id},
    )
