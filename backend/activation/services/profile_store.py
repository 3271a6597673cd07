"""In-memory profile and document store for the reference activation service.

One profile per user, created on the first step write. Documents are
appended (a re-upload of the same type adds a new row, like the upstream
service); listing returns them oldest first.
"""

import logging
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from activation.schemas.profile import DocumentType, RemoteProfile, UploadedDocument
from activation.schemas.steps import StepData
from activation.services.mapper import merge_step

logger = logging.getLogger(__name__)


class StoredDocument(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    document_type: DocumentType
    original_filename: str
    mime_type: str
    file_size: int
    content: bytes = Field(repr=False)
    verification_status: str = "pending"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> UploadedDocument:
        return UploadedDocument(
            id=self.id,
            document_type=self.document_type.value,
            filename=self.original_filename,
            size=self.file_size,
            status=self.verification_status,
        )


class ProfileStore:
    def __init__(self) -> None:
        self._profiles: dict[str, RemoteProfile] = {}
        self._documents: dict[str, list[StoredDocument]] = {}

    def get_profile(self, user_id: str) -> RemoteProfile | None:
        return self._profiles.get(user_id)

    def put_profile(self, profile: RemoteProfile) -> RemoteProfile:
        """Store a complete profile as-is (seeding, imports)."""
        if not profile.user_id:
            raise ValueError("Profile has no user_id")
        self._profiles[profile.user_id] = profile
        return profile

    def save_step(self, user_id: str, step: int, data: StepData) -> RemoteProfile:
        profile = self._profiles.get(user_id) or RemoteProfile(
            id=str(uuid.uuid4()), user_id=user_id
        )
        profile = merge_step(profile, step, data)
        self._profiles[user_id] = profile
        logger.info(
            "Saved step %d for user %s (status=%s, current_step=%d)",
            step,
            user_id,
            profile.activation_status,
            profile.current_step,
        )
        return profile

    def add_document(
        self,
        user_id: str,
        document_type: DocumentType,
        filename: str,
        mime_type: str,
        content: bytes,
    ) -> StoredDocument:
        document = StoredDocument(
            user_id=user_id,
            document_type=document_type,
            original_filename=filename,
            mime_type=mime_type,
            file_size=len(content),
            content=content,
        )
        self._documents.setdefault(user_id, []).append(document)
        logger.info(f"Saved document {document_type.value} for user {user_id}")
        return document

    def list_documents(self, user_id: str) -> list[StoredDocument]:
        return list(self._documents.get(user_id, []))

    def reset(self) -> None:
        self._profiles.clear()
        self._documents.clear()


profile_store = ProfileStore()


def get_profile_store() -> ProfileStore:
    """FastAPI dependency; tests override it with a fresh store."""
    return profile_store
