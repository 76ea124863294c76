"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    """Use-case level error with stable code and HTTP mapping."""

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class RecordNotFoundError(DomainError):
    """A use case needed a record the repository reported as absent."""

    @classmethod
    def for_entity(cls, entity: str, record_id: str) -> "RecordNotFoundError":
        return cls(
            code=f"{entity.upper()}_NOT_FOUND",
            http_status=404,
            message=f"{entity.replace('_', ' ').capitalize()} not found",
            details={"id": record_id},
        )


class DuplicateRecordError(DomainError):
    """A unique key (email, transaction id, quota counter) is already taken."""

    @classmethod
    def for_key(cls, entity: str, **key: Any) -> "DuplicateRecordError":
        return cls(
            code="DUPLICATE_RECORD",
            http_status=409,
            message=f"{entity.replace('_', ' ').capitalize()} already exists",
            details={"entity": entity, **key},
        )


class InvalidTransitionError(DomainError):
    """Workflow state change that the lifecycle rules do not allow."""
