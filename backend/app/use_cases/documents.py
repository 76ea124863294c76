"""Document use-cases: upload, review, edit and delete."""
from __future__ import annotations

import logging

from ..repositories.base import Repository
from ..schemas import Document, DocumentCreate, DocumentUpdate
from ..services.lifecycle_rules import ensure_reviewable
from .activity_log import record_activity, require, transition_error

logger = logging.getLogger(__name__)


def upload_document_use_case(*, repo: Repository, data: DocumentCreate, actor_id: str) -> Document:
    """Store an uploaded file's metadata; new uploads always wait for review."""
    document = repo.create_document(data.model_copy(update={"uploaded_by": actor_id, "status": "pending"}))

    record_activity(
        repo,
        user_id=actor_id,
        type="upload",
        description=f"Uploaded document: {document.title}",
        metadata={"document_id": document.id, "file_name": document.file_name},
    )
    logger.info("Document %s uploaded by %s", document.id, actor_id)
    return document


def review_document_use_case(
    *,
    repo: Repository,
    document_id: str,
    decision: str,
    actor_id: str,
) -> Document:
    document = require(repo.get_document_by_id(document_id), entity="document", record_id=document_id)
    try:
        status = ensure_reviewable(current_status=document.status, next_status=decision)
    except ValueError as exc:
        raise transition_error(entity="document", record_id=document_id, exc=exc) from exc

    updated = require(
        repo.update_document(document_id, DocumentUpdate(status=status)),
        entity="document",
        record_id=document_id,
    )
    record_activity(
        repo,
        user_id=actor_id,
        type="review",
        description=f"{'Approved' if status == 'approved' else 'Rejected'} document: {updated.title}",
        metadata={"document_id": document_id, "status": status},
    )
    return updated


def update_document_use_case(*, repo: Repository, document_id: str, updates: DocumentUpdate) -> Document:
    return require(repo.update_document(document_id, updates), entity="document", record_id=document_id)


def delete_document_use_case(*, repo: Repository, document_id: str, actor_id: str) -> None:
    # Agreements referencing the document are left as they are.
    if not repo.delete_document(document_id):
        require(None, entity="document", record_id=document_id)
    logger.info("Document %s deleted by %s", document_id, actor_id)
