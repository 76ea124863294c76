"""User administration use-cases."""
from __future__ import annotations

from ..repositories.base import Repository
from ..schemas import User, UserUpdate
from .activity_log import record_activity, require


def _apply(*, repo: Repository, user_id: str, updates: UserUpdate, actor_id: str, description: str) -> User:
    user = require(repo.update_user(user_id, updates), entity="user", record_id=user_id)
    record_activity(
        repo,
        user_id=actor_id,
        type="user_update",
        description=description,
        metadata={"user_id": user_id, **updates.model_dump(exclude_unset=True)},
    )
    return user


def update_user_use_case(*, repo: Repository, user_id: str, updates: UserUpdate, actor_id: str) -> User:
    return _apply(repo=repo, user_id=user_id, updates=updates, actor_id=actor_id, description=f"Updated user {user_id}")


def set_user_active_use_case(*, repo: Repository, user_id: str, is_active: bool, actor_id: str) -> User:
    action = "Activated" if is_active else "Deactivated"
    return _apply(
        repo=repo,
        user_id=user_id,
        updates=UserUpdate(is_active=is_active),
        actor_id=actor_id,
        description=f"{action} user {user_id}",
    )


def set_user_quota_use_case(*, repo: Repository, user_id: str, quota: int, actor_id: str) -> User:
    return _apply(
        repo=repo,
        user_id=user_id,
        updates=UserUpdate(quota=quota),
        actor_id=actor_id,
        description=f"Set quota of user {user_id} to {quota}",
    )
