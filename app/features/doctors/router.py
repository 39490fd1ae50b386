# Doctor Profiles Feature - Router

from fastapi import APIRouter, Depends, status
from app.features.doctors.schemas import (
    CreateDoctorRequest,
    DoctorProfileFields,
    UpdateDoctorRequest,
    DoctorResponse,
    DoctorListResponse,
)
from app.features.doctors.service import DoctorService
from app.features.auth.dependencies import require_roles
from app.features.auth.models import Role, User
from app.shared.exceptions import ForbiddenException
from app.shared.schemas import MessageResponse


router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.post("/me", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_my_profile(
    request: DoctorProfileFields,
    current_user: User = Depends(require_roles(Role.DOCTOR, Role.USER))
):
    """
    Create the current user's doctor profile (onboarding).
    """
    profile = await DoctorService.create_profile(str(current_user.id), request, onboarding=True)
    return await DoctorService.to_response(profile)


@router.get("/me", response_model=DoctorResponse)
async def get_my_profile(
    current_user: User = Depends(require_roles(Role.DOCTOR))
):
    """
    Get the current doctor's profile.
    """
    profile = await DoctorService.get_by_user_id(str(current_user.id))
    return await DoctorService.to_response(profile, current_user)


@router.post("", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_doctor(
    request: CreateDoctorRequest,
    current_user: User = Depends(require_roles(Role.ADMIN))
):
    """
    Create a doctor profile for an existing user.
    """
    profile = await DoctorService.create_profile(request.user_id, request)
    return await DoctorService.to_response(profile)


@router.get("", response_model=DoctorListResponse)
async def list_doctors(
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR, Role.PATIENT, Role.USER))
):
    """
    List all doctors (patients browse this to request access).
    """
    profiles = await DoctorService.list_profiles()

    return DoctorListResponse(
        doctors=[await DoctorService.to_response(p) for p in profiles],
        total=len(profiles)
    )


@router.get("/{profile_id}", response_model=DoctorResponse)
async def get_doctor(
    profile_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR, Role.PATIENT, Role.USER))
):
    profile = await DoctorService.get_by_id(profile_id)
    return await DoctorService.to_response(profile)


@router.patch("/{profile_id}", response_model=DoctorResponse)
async def update_doctor(
    profile_id: str,
    request: UpdateDoctorRequest,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Update a doctor profile. Doctors may only update their own.
    """
    profile = await DoctorService.get_by_id(profile_id)

    if current_user.role == Role.DOCTOR and profile.user_id != str(current_user.id):
        raise ForbiddenException("You can only update your own profile")

    profile = await DoctorService.update_profile(profile_id, request)
    return await DoctorService.to_response(profile)


@router.delete("/{profile_id}", response_model=MessageResponse)
async def delete_doctor(
    profile_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN))
):
    await DoctorService.delete_profile(profile_id)
    return MessageResponse(message="Doctor profile deleted successfully")
