"""Activation profile routes.

Endpoints:
  GET  /api/activation/profile  → {profile, documents, progress, isComplete}
  POST /api/activation/profile  → save one step's fields {step, data}

Step payloads arrive in the step shape (camelCase, date of birth as
day/month/year). They are validated against the step schema and merged
into the flat profile by the mapper; file fields are never part of this
body (see documents.py).
"""

from fastapi import APIRouter, Depends

from activation.auth.deps import get_current_user_id
from activation.schemas.profile import ProfileResponse, StepUpdateRequest, StepUpdateResponse
from activation.schemas.steps import Step4Form, parse_step
from activation.services.mapper import progress
from activation.services.profile_store import ProfileStore, get_profile_store

router = APIRouter()


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    store: ProfileStore = Depends(get_profile_store),
):
    profile = store.get_profile(user_id)
    return ProfileResponse(
        profile=profile,
        documents=[d.summary() for d in store.list_documents(user_id)],
        progress=progress(profile),
        is_complete=profile is not None and profile.activation_status == "completed",
    )


@router.post("/profile", response_model=StepUpdateResponse)
async def save_step(
    body: StepUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    store: ProfileStore = Depends(get_profile_store),
):
    """Merge one step into the caller's profile and advance its current step."""
    data = parse_step(body.step, body.data)
    if isinstance(data, Step4Form):
        data = data.persisted()

    profile = store.save_step(user_id, body.step, data)
    return StepUpdateResponse(
        message=f"Step {body.step} saved",
        profile=profile,
        progress=progress(profile),
        is_complete=profile.activation_status == "completed",
    )
