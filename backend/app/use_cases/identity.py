"""Sign-in: map identity-provider claims onto a local user."""
from __future__ import annotations

import logging

from ..domain_errors import DomainError
from ..repositories.base import Repository
from ..schemas import IdentityClaims, UpsertUser, User
from .activity_log import record_activity, require

logger = logging.getLogger(__name__)


def sign_in_use_case(*, repo: Repository, claims: IdentityClaims) -> User:
    """Upsert the user from ``claims`` and log the login.

    Profile fields are refreshed on every sign-in; role, quota and the active
    flag are never taken from the identity provider.
    """
    user = repo.upsert_user(
        UpsertUser(
            id=claims.sub,
            email=claims.email,
            first_name=claims.first_name,
            last_name=claims.last_name,
            profile_image_url=claims.profile_image_url,
        )
    )
    if not user.is_active:
        logger.warning("Inactive user %s attempted to sign in", user.id)
        raise DomainError(
            code="USER_INACTIVE",
            http_status=403,
            message="User account is deactivated",
            details={"id": user.id},
        )

    record_activity(
        repo,
        user_id=user.id,
        type="login",
        description=f"{user.display_name} signed in",
    )
    return user


def current_user_use_case(*, repo: Repository, user_id: str) -> User:
    return require(repo.get_user(user_id), entity="user", record_id=user_id)
