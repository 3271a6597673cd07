"""Step data mapper tests (remote profile ↔ step shapes)."""

from datetime import date

import pytest

from activation.errors import InvalidStepError
from activation.schemas.profile import RemoteProfile
from activation.schemas.steps import (
    DateParts,
    FamilyRelative,
    Step1Data,
    Step2Data,
    Step3Data,
    Step4Data,
    Step5Data,
    Step6Data,
)
from activation.services.mapper import (
    compose_date,
    decompose_date,
    is_step_present,
    merge_step,
    profile_to_steps,
    progress,
    step_to_profile_fields,
)


def _full_profile(**overrides) -> RemoteProfile:
    fields = dict(
        id="p-1",
        user_id="user-1",
        gender="female",
        full_name="Jane Doe",
        date_of_birth=date(1990, 5, 7),
        marital_status="single",
        nationality="Pakistani",
        agreed_to_terms=True,
        family_relatives=[FamilyRelative(full_name="Ali", relationship="brother", phone_number="0300")],
        residing_country="Pakistan",
        state_region_province="Punjab",
        town_city="Lahore",
        id_type="NIC",
        id_number="12345-1234567-1",
        account_type="ewallet",
        bank_name="JazzCash",
        account_number="03001234567",
        account_holder_name="Jane Doe",
        signature_data="data:image/png;base64,AAAA",
        current_step=6,
    )
    fields.update(overrides)
    return RemoteProfile(**fields)


@pytest.mark.unit
class TestProfileToSteps:
    def test_full_profile_maps_all_steps(self):
        steps = profile_to_steps(_full_profile())

        assert sorted(steps) == [1, 2, 3, 4, 5, 6]
        assert steps[1].full_name == "Jane Doe"
        assert steps[1].gender == "female"
        assert steps[2].family_relatives[0].relationship == "brother"
        assert steps[3].town_city == "Lahore"
        assert steps[4] == Step4Data(id_type="NIC", id_number="12345-1234567-1")
        assert steps[5].account_type == "ewallet"
        assert steps[6] == Step6Data(signature="data:image/png;base64,AAAA")

    def test_only_present_steps_are_produced(self):
        """A step appears only if its identifying field is non-empty."""
        profile = RemoteProfile(
            full_name="John Doe",
            town_city="Karachi",  # step 3 without residing country → absent
            id_number="",
            current_step=3,
        )
        steps = profile_to_steps(profile)

        assert list(steps) == [1]
        assert steps[1].full_name == "John Doe"

    def test_empty_relatives_list_is_absent(self):
        assert 2 not in profile_to_steps(RemoteProfile(family_relatives=[]))

    def test_date_of_birth_decomposed_without_padding(self):
        steps = profile_to_steps(_full_profile())
        assert steps[1].date_of_birth == DateParts(day="7", month="5", year="1990")

    def test_missing_optional_fields_get_defaults(self):
        steps = profile_to_steps(
            RemoteProfile(full_name="John Doe", account_number="123", signature_data="sig")
        )
        assert steps[1] == Step1Data(full_name="John Doe")
        assert steps[5] == Step5Data(account_number="123")
        assert steps[6].signature == "sig"

    def test_unknown_enum_values_fall_back(self):
        steps = profile_to_steps(
            RemoteProfile(full_name="X", gender="other", account_number="1", account_type="crypto")
        )
        assert steps[1].gender == "male"
        assert steps[5].account_type == "bank"

    def test_timestamp_date_from_service(self):
        profile = RemoteProfile.model_validate(
            {"fullName": "John Doe", "dateOfBirth": "1990-05-15T00:00:00.000Z"}
        )
        assert profile.date_of_birth == date(1990, 5, 15)

    def test_null_status_fields_accepted(self):
        profile = RemoteProfile.model_validate(
            {
                "fullName": "John Doe",
                "currentStep": None,
                "activationStatus": None,
                "familyRelatives": [{"fullName": "Ali", "relationship": None, "phoneNumber": None}],
            }
        )

        assert profile.current_step is None
        assert profile.activation_status is None
        steps = profile_to_steps(profile)
        assert steps[1].full_name == "John Doe"
        assert steps[2].family_relatives == [FamilyRelative(full_name="Ali")]


@pytest.mark.unit
class TestStepToProfile:
    def test_step1_composes_date(self):
        fields = step_to_profile_fields(
            1,
            Step1Data(full_name="Jane", date_of_birth=DateParts(day="7", month="5", year="1990")),
        )
        assert fields["date_of_birth"] == date(1990, 5, 7)
        assert fields["full_name"] == "Jane"

    def test_impossible_date_is_none(self):
        assert compose_date(DateParts(day="31", month="2", year="2000")) is None
        assert compose_date(DateParts(day="1", month="1", year="")) is None

    def test_step6_signature_renamed(self):
        assert step_to_profile_fields(6, Step6Data(signature="sig")) == {"signature_data": "sig"}

    def test_step4_only_scalars(self):
        fields = step_to_profile_fields(4, Step4Data(id_number="42"))
        assert fields == {"id_type": "NIC", "id_number": "42"}

    def test_invalid_step_rejected(self):
        with pytest.raises(InvalidStepError):
            step_to_profile_fields(7, Step6Data())

    def test_decompose_none(self):
        assert decompose_date(None) == DateParts()


@pytest.mark.unit
class TestMergeStep:
    def test_merge_advances_current_step(self):
        profile = merge_step(RemoteProfile(), 1, Step1Data(full_name="Jane"))

        assert profile.full_name == "Jane"
        assert profile.current_step == 2
        assert profile.activation_status == "in_progress"

    def test_merge_never_moves_current_step_back(self):
        profile = merge_step(RemoteProfile(current_step=5), 2, Step2Data())
        assert profile.current_step == 5

    def test_merge_into_null_status_fields(self):
        profile = merge_step(
            RemoteProfile(current_step=None, activation_status=None), 3, Step3Data(residing_country="PK")
        )

        assert profile.current_step == 4
        assert profile.activation_status == "in_progress"

    def test_last_step_caps_at_six(self):
        profile = merge_step(RemoteProfile(current_step=6), 6, Step6Data(signature="sig"))
        assert profile.current_step == 6

    def test_all_steps_complete_profile(self):
        profile = _full_profile(signature_data=None, activation_status="in_progress")
        assert not is_step_present(profile, 6)

        profile = merge_step(profile, 6, Step6Data(signature="sig"))

        assert profile.activation_status == "completed"
        assert profile.completed_at is not None

    def test_progress(self):
        assert progress(None) == 0
        assert progress(RemoteProfile(full_name="Jane")) == 17
        assert progress(_full_profile()) == 100
