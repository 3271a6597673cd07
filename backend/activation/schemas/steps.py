"""Pydantic schemas for the six activation wizard steps.

Every field has a default so a partially filled step can be saved and
resumed. Attributes are snake_case; the camelCase aliases are the format
used by the activation service and by the local cache envelope.

Step 4 comes in two shapes:
  - `Step4Data`  → what is persisted (locally and remotely): ID type/number
  - `Step4Form`  → `Step4Data` plus the attached image files. The files are
                   `LocalFile` objects that only live for the current
                   session; they are excluded from every dump and are sent
                   through the document upload endpoint instead.
"""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from activation.errors import InvalidStepError

TOTAL_STEPS = 6


class StepModel(BaseModel):
    # Unknown keys are rejected
    model_config = {"populate_by_name": True, "alias_generator": to_camel, "extra": "forbid"}


# ── Step 1: Personal details ────────────────────────────────

class DateParts(StepModel):
    day: str = ""
    month: str = ""
    year: str = ""


class Step1Data(StepModel):
    gender: Literal["male", "female"] = "male"
    full_name: str = ""
    date_of_birth: DateParts = Field(default_factory=DateParts)
    marital_status: str = ""
    nationality: str = ""
    agreed_to_terms: bool = False


# ── Step 2: Family references ───────────────────────────────

class FamilyRelative(StepModel):
    # Also embedded in the remote profile, which may carry extra keys or nulls
    model_config = {"extra": "ignore"}

    full_name: str = ""
    relationship: str = ""
    phone_number: str = ""

    @field_validator("full_name", "relationship", "phone_number", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return "" if value is None else value


class Step2Data(StepModel):
    family_relatives: list[FamilyRelative] = []


# ── Step 3: Residence ───────────────────────────────────────

class Step3Data(StepModel):
    residing_country: str = ""
    state_region_province: str = ""
    town_city: str = ""


# ── Step 4: Identity + documents ────────────────────────────

@dataclass(frozen=True)
class LocalFile:
    """A file picked by the user during this session. Never serialized."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> "LocalFile":
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content=path.read_bytes(),
            content_type=content_type or guessed or "application/octet-stream",
        )

    @property
    def size(self) -> int:
        return len(self.content)


class Step4Data(StepModel):
    id_type: Literal["NIC"] = "NIC"
    id_number: str = ""


class Step4Form(Step4Data):
    model_config = {"arbitrary_types_allowed": True}

    front_image: LocalFile | None = Field(default=None, exclude=True)
    back_image: LocalFile | None = Field(default=None, exclude=True)
    selfie_image: LocalFile | None = Field(default=None, exclude=True)
    passport_photo: LocalFile | None = Field(default=None, exclude=True)
    driver_license_photo: LocalFile | None = Field(default=None, exclude=True)
    electricity_bill_photo: LocalFile | None = Field(default=None, exclude=True)

    def persisted(self) -> Step4Data:
        return Step4Data(id_type=self.id_type, id_number=self.id_number)

    def attachments(self) -> dict[str, LocalFile]:
        """Bound files keyed by field name."""
        files = {}
        for name in FILE_FIELD_NAMES:
            value = getattr(self, name)
            if isinstance(value, LocalFile):
                files[name] = value
        return files


FILE_FIELD_NAMES = (
    "front_image",
    "back_image",
    "selfie_image",
    "passport_photo",
    "driver_license_photo",
    "electricity_bill_photo",
)


# ── Step 5: Payout account ──────────────────────────────────

class Step5Data(StepModel):
    account_type: Literal["bank", "ewallet", "custom"] = "bank"
    bank_name: str = ""
    account_number: str = ""
    account_holder_name: str = ""


# ── Step 6: Signature ───────────────────────────────────────

class Step6Data(StepModel):
    signature: str = ""


StepData = Union[Step1Data, Step2Data, Step3Data, Step4Data, Step5Data, Step6Data]

STEP_MODELS: dict[int, type[StepModel]] = {
    1: Step1Data,
    2: Step2Data,
    3: Step3Data,
    4: Step4Data,
    5: Step5Data,
    6: Step6Data,
}


def validate_step_number(step: int) -> int:
    if isinstance(step, bool) or step not in STEP_MODELS:
        raise InvalidStepError(step)
    return step


def parse_step(step: int, payload) -> StepData:
    """Coerce a dict (aliases or field names) or model into the step's shape.

    Step 4 payloads are parsed as `Step4Form` so attached files survive
    until the caller splits them off with `persisted()`/`attachments()`.
    """
    model = Step4Form if validate_step_number(step) == 4 else STEP_MODELS[step]
    if isinstance(payload, model):
        return payload
    if isinstance(payload, StepModel):
        payload = payload.model_dump(by_alias=True)
    return model.model_validate(payload)


def dump_step(data: StepData) -> dict:
    """JSON-safe dict in the wire/cache format. Files are never included."""
    return data.model_dump(mode="json", by_alias=True)
