# Doctor Profiles Feature - Service

from typing import Optional, List
from app.features.auth.models import Role, User
from app.features.auth.service import AuthService
from app.features.doctors.models import DoctorProfile
from app.features.doctors.schemas import (
    DoctorProfileFields,
    UpdateDoctorRequest,
    DoctorResponse,
)
from app.shared.models import get_document
from app.core.logging import logger
from app.shared.exceptions import BadRequestException, NotFoundException, ConflictException


class DoctorService:
    """Service class for doctor profile operations."""

    @staticmethod
    async def create_profile(
        user_id: str,
        fields: DoctorProfileFields,
        onboarding: bool = False,
    ) -> DoctorProfile:
        """
        Create the doctor profile of a user.

        When onboarding, a user still in the pre-onboarding USER role becomes
        DOCTOR. A profile created on someone else's behalf needs a user whose
        role is already DOCTOR.

        Raises:
            NotFoundException: If the user does not exist
            BadRequestException: If the user's role cannot hold a doctor profile
            ConflictException: If the user already has a doctor profile
        """
        user = await AuthService.require_user(user_id)

        allowed_roles = (Role.DOCTOR, Role.USER) if onboarding else (Role.DOCTOR,)
        if user.role not in allowed_roles:
            raise BadRequestException(
                f"User with role {user.role.value} cannot have a doctor profile"
            )

        if await DoctorProfile.find_one(DoctorProfile.user_id == user_id):
            raise ConflictException("Doctor with this user ID already exists")

        profile = DoctorProfile(
            user_id=user_id,
            **fields.model_dump(exclude={"user_id"}),
        )
        await profile.insert()

        if user.role == Role.USER:
            user.role = Role.DOCTOR
            user.update_timestamp()
            await user.save()

        logger.info(f"Created doctor profile {profile.id} for user {user_id}")
        return profile

    @staticmethod
    async def list_profiles() -> List[DoctorProfile]:
        return await DoctorProfile.find_all().sort([("created_at", -1)]).to_list()

    @staticmethod
    async def get_by_id(profile_id: str) -> DoctorProfile:
        """Get a doctor profile by id or raise NotFound."""
        profile = await get_document(DoctorProfile, profile_id)
        if not profile:
            raise NotFoundException(f"Doctor with ID {profile_id} not found")
        return profile

    @staticmethod
    async def find_by_user_id(user_id: str) -> Optional[DoctorProfile]:
        return await DoctorProfile.find_one(DoctorProfile.user_id == user_id)

    @staticmethod
    async def get_by_user_id(user_id: str) -> DoctorProfile:
        """Get the doctor profile of a user or raise NotFound."""
        profile = await DoctorService.find_by_user_id(user_id)
        if not profile:
            raise NotFoundException(f"Doctor with User ID {user_id} not found")
        return profile

    @staticmethod
    async def update_profile(profile_id: str, request: UpdateDoctorRequest) -> DoctorProfile:
        profile = await DoctorService.get_by_id(profile_id)

        for field, value in request.model_dump(exclude_unset=True).items():
            setattr(profile, field, value)

        profile.update_timestamp()
        await profile.save()

        logger.info(f"Updated doctor profile {profile_id}")
        return profile

    @staticmethod
    async def delete_profile(profile_id: str) -> None:
        profile = await DoctorService.get_by_id(profile_id)
        await profile.delete()
        logger.info(f"Deleted doctor profile {profile_id}")

    @staticmethod
    async def to_response(profile: DoctorProfile, user: Optional[User] = None) -> DoctorResponse:
        """Convert DoctorProfile document to DoctorResponse."""
        if user is None:
            user = await AuthService.get_user_by_id(profile.user_id)

        return DoctorResponse(
            id=str(profile.id),
            user_id=profile.user_id,
            name=user.name if user else None,
            email=user.email if user else None,
            wallet_address=user.wallet_address if user else None,
            specialization=profile.specialization,
            license_number=profile.license_number,
            affiliation=profile.affiliation,
            education=profile.education,
            years_of_experience=profile.years_of_experience,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )
