"""Patient and doctor profile creation."""

import pytest

from app.features.auth.models import Role, User
from app.features.auth.service import AuthService
from app.features.doctors.models import Specialization
from app.features.doctors.schemas import CreateDoctorRequest, DoctorProfileFields
from app.features.doctors.service import DoctorService
from app.features.patients.schemas import CreatePatientRequest, PatientProfileFields
from app.features.patients.service import PatientService
from app.shared.exceptions import BadRequestException, ConflictException


def doctor_fields(**extra) -> dict:
    return {"specialization": Specialization.CARDIOLOGY, "license_number": "LIC-0042", **extra}


async def test_onboarding_promotes_a_new_user(make_user):
    user = await make_user(Role.USER)

    await PatientService.create_profile(str(user.id), PatientProfileFields(), onboarding=True)

    assert (await User.get(user.id)).role == Role.PATIENT


async def test_doctor_onboarding_promotes_a_new_user(make_user):
    user = await make_user(Role.USER)

    await DoctorService.create_profile(str(user.id), DoctorProfileFields(**doctor_fields()), onboarding=True)

    assert (await User.get(user.id)).role == Role.DOCTOR


async def test_patient_profile_on_behalf_needs_a_patient(make_user):
    doctor = await make_user(Role.DOCTOR)
    newcomer = await make_user(Role.USER)

    with pytest.raises(BadRequestException):
        await PatientService.create_profile(str(doctor.id), CreatePatientRequest(user_id=str(doctor.id)))
    with pytest.raises(BadRequestException):
        await PatientService.create_profile(str(newcomer.id), CreatePatientRequest(user_id=str(newcomer.id)))

    # The newcomer keeps their one-time role choice
    updated = await AuthService.update_role(await User.get(newcomer.id), Role.DOCTOR)
    assert updated.role == Role.DOCTOR


async def test_doctor_profile_on_behalf_needs_a_doctor(make_user):
    patient = await make_user(Role.PATIENT)
    with pytest.raises(BadRequestException):
        await DoctorService.create_profile(
            str(patient.id), CreateDoctorRequest(user_id=str(patient.id), **doctor_fields())
        )

    doctor = await make_user(Role.DOCTOR)
    profile = await DoctorService.create_profile(
        str(doctor.id), CreateDoctorRequest(user_id=str(doctor.id), **doctor_fields())
    )
    assert profile.user_id == str(doctor.id)


async def test_second_patient_profile_conflicts(make_patient):
    user, _ = await make_patient()
    with pytest.raises(ConflictException):
        await PatientService.create_profile(str(user.id), PatientProfileFields(), onboarding=True)
