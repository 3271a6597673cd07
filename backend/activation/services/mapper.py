"""Step data mapper: translates between the flat remote profile and the
six step shapes.

This is the only place where the two representations are allowed to
diverge structurally:
  - date of birth is one `date` on the profile, day/month/year strings
    in step 1
  - step 6's `signature` is stored as `signatureData`
  - a step is "present" on the profile only if its identifying field is
    non-empty (see PRESENCE_FIELDS); other fields are defaulted
"""

from datetime import date, datetime, timezone

from activation.schemas.profile import RemoteProfile
from activation.schemas.steps import (
    TOTAL_STEPS,
    DateParts,
    Step1Data,
    Step2Data,
    Step3Data,
    Step4Data,
    Step5Data,
    Step6Data,
    StepData,
    validate_step_number,
)

# Identifying field per step, by RemoteProfile attribute name.
PRESENCE_FIELDS: dict[int, str] = {
    1: "full_name",
    2: "family_relatives",
    3: "residing_country",
    4: "id_number",
    5: "account_number",
    6: "signature_data",
}

_GENDERS = ("male", "female")
_ACCOUNT_TYPES = ("bank", "ewallet", "custom")


def is_step_present(profile: RemoteProfile, step: int) -> bool:
    return bool(getattr(profile, PRESENCE_FIELDS[validate_step_number(step)]))


def present_steps(profile: RemoteProfile) -> list[int]:
    return [s for s in range(1, TOTAL_STEPS + 1) if is_step_present(profile, s)]


def progress(profile: RemoteProfile | None) -> int:
    """Percentage of steps present on the profile."""
    if profile is None:
        return 0
    return round(100 * len(present_steps(profile)) / TOTAL_STEPS)


# ── Dates ───────────────────────────────────────────────────

def decompose_date(value: date | None) -> DateParts:
    if value is None:
        return DateParts()
    return DateParts(day=str(value.day), month=str(value.month), year=str(value.year))


def compose_date(parts: DateParts) -> date | None:
    """Return None for incomplete or impossible dates (e.g. 31/02)."""
    try:
        return date(int(parts.year), int(parts.month), int(parts.day))
    except (TypeError, ValueError):
        return None


# ── Profile → steps ─────────────────────────────────────────

def profile_to_steps(profile: RemoteProfile) -> dict[int, StepData]:
    steps: dict[int, StepData] = {}

    if is_step_present(profile, 1):
        steps[1] = Step1Data(
            gender=profile.gender if profile.gender in _GENDERS else "male",
            full_name=profile.full_name,
            date_of_birth=decompose_date(profile.date_of_birth),
            marital_status=profile.marital_status or "",
            nationality=profile.nationality or "",
            agreed_to_terms=bool(profile.agreed_to_terms),
        )

    if is_step_present(profile, 2):
        steps[2] = Step2Data(family_relatives=list(profile.family_relatives))

    if is_step_present(profile, 3):
        steps[3] = Step3Data(
            residing_country=profile.residing_country,
            state_region_province=profile.state_region_province or "",
            town_city=profile.town_city or "",
        )

    if is_step_present(profile, 4):
        # Files are never part of the profile; step 4 comes back without them
        steps[4] = Step4Data(id_type="NIC", id_number=profile.id_number)

    if is_step_present(profile, 5):
        steps[5] = Step5Data(
            account_type=profile.account_type if profile.account_type in _ACCOUNT_TYPES else "bank",
            bank_name=profile.bank_name or "",
            account_number=profile.account_number,
            account_holder_name=profile.account_holder_name or "",
        )

    if is_step_present(profile, 6):
        steps[6] = Step6Data(signature=profile.signature_data)

    return steps


# ── Step → profile ──────────────────────────────────────────

def step_to_profile_fields(step: int, data: StepData) -> dict:
    """Profile attributes (snake_case) carried by one step."""
    step = validate_step_number(step)
    if step == 1:
        return {
            "gender": data.gender,
            "full_name": data.full_name,
            "date_of_birth": compose_date(data.date_of_birth),
            "marital_status": data.marital_status,
            "nationality": data.nationality,
            "agreed_to_terms": data.agreed_to_terms,
        }
    if step == 2:
        return {"family_relatives": list(data.family_relatives)}
    if step == 3:
        return {
            "residing_country": data.residing_country,
            "state_region_province": data.state_region_province,
            "town_city": data.town_city,
        }
    if step == 4:
        return {"id_type": data.id_type, "id_number": data.id_number}
    if step == 5:
        return {
            "account_type": data.account_type,
            "bank_name": data.bank_name,
            "account_number": data.account_number,
            "account_holder_name": data.account_holder_name,
        }
    return {"signature_data": data.signature}


def merge_step(profile: RemoteProfile, step: int, data: StepData) -> RemoteProfile:
    """Apply one step write to a profile and advance its status."""
    updated = profile.model_copy(update=step_to_profile_fields(step, data))

    next_step = min(step + 1, TOTAL_STEPS)
    if next_step > (updated.current_step or 0):
        updated.current_step = next_step

    if len(present_steps(updated)) == TOTAL_STEPS:
        updated.activation_status = "completed"
        if updated.completed_at is None:
            updated.completed_at = datetime.now(timezone.utc)
    elif updated.activation_status in (None, "pending"):
        updated.activation_status = "in_progress"
    return updated
