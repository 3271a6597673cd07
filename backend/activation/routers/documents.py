"""Activation document routes.

Endpoints:
  POST /api/activation/documents/upload  → multipart `file` + `documentType`
  GET  /api/activation/documents         → caller's uploaded documents

Each upload is validated on its own (type tag, image content type, size)
and answered independently; the client fires one request per file.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile

from activation.auth.deps import get_current_user_id
from activation.config import settings
from activation.middleware.exceptions import DocumentRejectedError
from activation.schemas.profile import DocumentListResponse, DocumentType, UploadResponse
from activation.services.profile_store import ProfileStore, get_profile_store

router = APIRouter()


def _allowed_types() -> set[str]:
    return {t.strip() for t in settings.allowed_upload_types.split(",") if t.strip()}


@router.post("/documents/upload", response_model=UploadResponse)
async def upload_document(
    file: UploadFile | None = File(None),
    documentType: str | None = Form(None),
    user_id: str = Depends(get_current_user_id),
    store: ProfileStore = Depends(get_profile_store),
):
    if file is None:
        raise DocumentRejectedError("No file provided", error_code="FILE_REQUIRED")
    if not documentType:
        raise DocumentRejectedError("Document type is required", error_code="DOCUMENT_TYPE_REQUIRED")
    try:
        document_type = DocumentType(documentType)
    except ValueError:
        raise DocumentRejectedError(
            f"Unknown document type: {documentType}", error_code="INVALID_DOCUMENT_TYPE"
        ) from None

    content_type = file.content_type or ""
    if content_type not in _allowed_types():
        raise DocumentRejectedError(
            "Invalid file type. Only JPEG, PNG, WebP, and GIF are allowed",
            error_code="INVALID_FILE_TYPE",
        )

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise DocumentRejectedError(
            f"File size exceeds {limit_mb}MB limit", error_code="FILE_TOO_LARGE"
        )

    document = store.add_document(
        user_id,
        document_type,
        filename=file.filename or document_type.value,
        mime_type=content_type,
        content=content,
    )
    return UploadResponse(document=document.summary())


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    user_id: str = Depends(get_current_user_id),
    store: ProfileStore = Depends(get_profile_store),
):
    return DocumentListResponse(
        documents=[d.summary() for d in store.list_documents(user_id)]
    )
