# Patient Profiles Feature - Router

from fastapi import APIRouter, Depends, status
from app.features.patients.schemas import (
    CreatePatientRequest,
    PatientProfileFields,
    UpdatePatientRequest,
    PatientResponse,
    PatientListResponse,
)
from app.features.patients.service import PatientService
from app.features.auth.dependencies import require_roles
from app.features.auth.models import Role, User
from app.shared.exceptions import ForbiddenException
from app.shared.schemas import MessageResponse


router = APIRouter(prefix="/patients", tags=["Patients"])


# ============== Self-Service Endpoints ==============

@router.post("/me", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_my_profile(
    request: PatientProfileFields,
    current_user: User = Depends(require_roles(Role.PATIENT, Role.USER))
):
    """
    Create the current user's patient profile (onboarding).
    """
    profile = await PatientService.create_profile(str(current_user.id), request, onboarding=True)
    return await PatientService.to_response(profile)


@router.get("/me", response_model=PatientResponse)
async def get_my_profile(
    current_user: User = Depends(require_roles(Role.PATIENT, Role.USER))
):
    """
    Get the current user's patient profile.
    """
    profile = await PatientService.get_by_user_id(str(current_user.id))
    return await PatientService.to_response(profile, current_user)


# ============== Doctor/Admin Endpoints ==============

@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    request: CreatePatientRequest,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Create a patient profile for an existing user.
    """
    profile = await PatientService.create_profile(request.user_id, request)
    return await PatientService.to_response(profile)


@router.get("", response_model=PatientListResponse)
async def list_patients(
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    List all patient profiles.
    """
    profiles = await PatientService.list_profiles()

    return PatientListResponse(
        patients=[await PatientService.to_response(p) for p in profiles],
        total=len(profiles)
    )


@router.get("/{profile_id}", response_model=PatientResponse)
async def get_patient(
    profile_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR, Role.PATIENT))
):
    """
    Get a patient profile. Patients may only read their own.
    """
    profile = await PatientService.get_by_id(profile_id)

    if current_user.role == Role.PATIENT and profile.user_id != str(current_user.id):
        raise ForbiddenException("You can only view your own patient profile")

    return await PatientService.to_response(profile)


@router.patch("/{profile_id}", response_model=PatientResponse)
async def update_patient(
    profile_id: str,
    request: UpdatePatientRequest,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Update a patient's profile.
    """
    profile = await PatientService.update_profile(profile_id, request)
    return await PatientService.to_response(profile)


@router.delete("/{profile_id}", response_model=MessageResponse)
async def delete_patient(
    profile_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN))
):
    """
    Delete a patient profile.
    """
    await PatientService.delete_profile(profile_id)
    return MessageResponse(message="Patient profile deleted successfully")
