"""Document API routes: version history, manual saves and reverts."""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from aichatbot.api.auth import AuthContext, get_auth_context
from aichatbot.api.schemas import DeleteResponse, DocumentResponse, DocumentSave
from aichatbot.db.connection import get_db
from aichatbot.db.repositories import DocumentRepository
from aichatbot.utils.timeutils import as_utc

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{document_id}", response_model=list[DocumentResponse])
def list_versions(
    document_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[DocumentResponse]:
    """All versions of a document, oldest first."""
    versions = DocumentRepository(session).list_versions(document_id)
    if not versions:
        raise HTTPException(status_code=404, detail="Document not found")
    if versions[-1].user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return [DocumentResponse.model_validate(v) for v in versions]


@router.post("/{document_id}", response_model=DocumentResponse)
def save_version(
    document_id: UUID,
    body: DocumentSave,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> DocumentResponse:
    """Save a new version (e.g. a user edit in the artifact panel)."""
    repo = DocumentRepository(session)
    current = repo.current_version(document_id)
    if current is not None and current.user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")

    document = repo.save(
        id=document_id,
        title=body.title,
        kind=body.kind,
        content=body.content,
        user_id=auth.user_id,
    )
    logger.info(f"Saved document {document_id} version {document.created_at}")
    return DocumentResponse.model_validate(document)


@router.delete("/{document_id}", response_model=DeleteResponse)
def delete_versions_after(
    document_id: UUID,
    after: datetime = Query(..., description="Delete versions created after"),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> DeleteResponse:
    """Revert a document by deleting the versions after a timestamp."""
    repo = DocumentRepository(session)
    current = repo.current_version(document_id)
    if current is None:
        raise HTTPException(status_code=404, detail="Document not found")
    if current.user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return DeleteResponse(deleted=repo.delete_after(document_id, as_utc(after)))
