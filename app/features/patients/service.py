# Patient Profiles Feature - Service

from typing import Optional, List
from app.features.auth.models import Role, User
from app.features.auth.service import AuthService
from app.features.patients.models import PatientProfile
from app.features.patients.schemas import (
    PatientProfileFields,
    UpdatePatientRequest,
    PatientResponse,
)
from app.shared.models import get_document
from app.core.logging import logger
from app.shared.exceptions import BadRequestException, NotFoundException, ConflictException


class PatientService:
    """Service class for patient profile operations."""

    @staticmethod
    async def create_profile(
        user_id: str,
        fields: PatientProfileFields,
        onboarding: bool = False,
    ) -> PatientProfile:
        """
        Create the patient profile of a user.

        When onboarding, a user still in the pre-onboarding USER role becomes
        PATIENT. A profile created on someone else's behalf needs a user whose
        role is already PATIENT.

        Raises:
            NotFoundException: If the user does not exist
            BadRequestException: If the user's role cannot hold a patient profile
            ConflictException: If the user already has a patient profile
        """
        user = await AuthService.require_user(user_id)

        allowed_roles = (Role.PATIENT, Role.USER) if onboarding else (Role.PATIENT,)
        if user.role not in allowed_roles:
            raise BadRequestException(
                f"User with role {user.role.value} cannot have a patient profile"
            )

        if await PatientProfile.find_one(PatientProfile.user_id == user_id):
            raise ConflictException("Patient with this user ID already exists")

        profile = PatientProfile(
            user_id=user_id,
            **fields.model_dump(exclude={"user_id"}),
        )
        await profile.insert()

        if user.role == Role.USER:
            user.role = Role.PATIENT
            user.update_timestamp()
            await user.save()

        logger.info(f"Created patient profile {profile.id} for user {user_id}")
        return profile

    @staticmethod
    async def list_profiles() -> List[PatientProfile]:
        """Get all patient profiles, newest first."""
        return await PatientProfile.find_all().sort([("created_at", -1)]).to_list()

    @staticmethod
    async def get_by_id(profile_id: str) -> PatientProfile:
        """Get a patient profile by id or raise NotFound."""
        profile = await get_document(PatientProfile, profile_id)
        if not profile:
            raise NotFoundException(f"Patient with ID {profile_id} not found")
        return profile

    @staticmethod
    async def find_by_user_id(user_id: str) -> Optional[PatientProfile]:
        return await PatientProfile.find_one(PatientProfile.user_id == user_id)

    @staticmethod
    async def get_by_user_id(user_id: str) -> PatientProfile:
        """Get the patient profile of a user or raise NotFound."""
        profile = await PatientService.find_by_user_id(user_id)
        if not profile:
            raise NotFoundException(f"Patient with User ID {user_id} not found")
        return profile

    @staticmethod
    async def get_by_wallet(wallet_address: str) -> PatientProfile:
        """
        Resolve a patient profile from the owner's wallet address.

        Raises:
            NotFoundException: If no user or no profile matches
        """
        user = await AuthService.get_user_by_wallet(wallet_address)
        if not user:
            raise NotFoundException(f"No user found with wallet address {wallet_address}")
        return await PatientService.get_by_user_id(str(user.id))

    @staticmethod
    async def update_profile(profile_id: str, request: UpdatePatientRequest) -> PatientProfile:
        """Update patient profile fields that were provided."""
        profile = await PatientService.get_by_id(profile_id)

        for field, value in request.model_dump(exclude_unset=True).items():
            setattr(profile, field, value)

        profile.update_timestamp()
        await profile.save()

        logger.info(f"Updated patient profile {profile_id}")
        return profile

    @staticmethod
    async def delete_profile(profile_id: str) -> None:
        """Delete a patient profile. The user account is kept."""
        profile = await PatientService.get_by_id(profile_id)
        await profile.delete()
        logger.info(f"Deleted patient profile {profile_id}")

    @staticmethod
    async def to_response(profile: PatientProfile, user: Optional[User] = None) -> PatientResponse:
        """Convert PatientProfile document to PatientResponse."""
        if user is None:
            user = await AuthService.get_user_by_id(profile.user_id)

        return PatientResponse(
            id=str(profile.id),
            user_id=profile.user_id,
            name=user.name if user else None,
            email=user.email if user else None,
            wallet_address=user.wallet_address if user else None,
            date_of_birth=profile.date_of_birth,
            gender=profile.gender,
            phone_number=profile.phone_number,
            address=profile.address,
            emergency_contact=profile.emergency_contact,
            blood_type=profile.blood_type,
            medical_history=profile.medical_history,
            allergies=profile.allergies,
            medications=profile.medications,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )
