"""Pydantic schemas for the activation service's wire format.

The service stores every step in one flat, camelCase profile record.
`RemoteProfile` mirrors that record; the step-partitioned view lives in
`activation.schemas.steps` and the two are translated only by
`activation.services.mapper`.
"""

import enum
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from activation.schemas.steps import FamilyRelative

ActivationStatus = Literal["pending", "in_progress", "completed", "rejected"]


class DocumentType(str, enum.Enum):
    ID_FRONT = "id_front"
    ID_BACK = "id_back"
    SELFIE = "selfie"
    PASSPORT_PHOTO = "passport_photo"
    DRIVER_LICENSE = "driver_license"
    ELECTRICITY_BILL = "electricity_bill"


class CamelModel(BaseModel):
    model_config = {"populate_by_name": True, "alias_generator": to_camel}


# ── Profile ─────────────────────────────────────────────────

class RemoteProfile(CamelModel):
    id: str | None = None
    user_id: str | None = None

    # Step 1
    gender: str | None = None
    full_name: str | None = None
    date_of_birth: date | None = None
    marital_status: str | None = None
    nationality: str | None = None
    agreed_to_terms: bool | None = None

    # Step 2
    family_relatives: list[FamilyRelative] | None = None

    # Step 3
    residing_country: str | None = None
    state_region_province: str | None = None
    town_city: str | None = None

    # Step 4 (documents are tracked separately)
    id_type: str | None = None
    id_number: str | None = None

    # Step 5
    account_type: str | None = None
    bank_name: str | None = None
    account_number: str | None = None
    account_holder_name: str | None = None

    # Step 6
    signature_data: str | None = None

    # Status
    # Nullable on the wire; readers fall back to "pending" and step 1
    activation_status: ActivationStatus | None = "pending"
    current_step: int | None = 1
    completed_at: datetime | None = None

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _strip_time(cls, value):
        # The service may send a full timestamp ("1990-05-15T00:00:00.000Z")
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        return value


# ── Documents ───────────────────────────────────────────────

class UploadedDocument(CamelModel):
    id: str
    document_type: str = Field(alias="type")
    filename: str | None = None
    size: int | None = None
    status: str = "pending"


class UploadResult(BaseModel):
    """Outcome of one document upload. Never raised, always returned."""
    document_type: DocumentType
    success: bool
    document: UploadedDocument | None = None
    error: str | None = None


class DocumentListResponse(CamelModel):
    documents: list[UploadedDocument] = []


# ── Requests / responses ────────────────────────────────────

class ProfileResponse(CamelModel):
    profile: RemoteProfile | None = None
    documents: list[UploadedDocument] = []
    progress: int = 0
    is_complete: bool = False


class StepUpdateRequest(BaseModel):
    step: int = Field(ge=1, le=6)
    data: dict


class StepUpdateResponse(CamelModel):
    message: str = "Step saved"
    profile: RemoteProfile | None = None
    progress: int = 0
    is_complete: bool = False


class UploadResponse(CamelModel):
    message: str = "Document uploaded successfully"
    document: UploadedDocument
