# Appointments Feature - Service

from typing import Optional, List
from datetime import datetime
from beanie import PydanticObjectId
from app.database import Database
from app.features.appointments.models import Appointment, AppointmentStatus
from app.features.appointments.schemas import (
    CreateAppointmentRequest,
    UpdateAppointmentRequest,
    AppointmentResponse,
)
from app.features.auth.models import Role, User
from app.features.doctors.models import DoctorProfile
from app.features.notifications.models import NotificationType
from app.features.notifications.service import NotificationService
from app.features.patients.models import PatientProfile
from app.core.side_effects import PostCommitHooks
from app.shared.models import get_document
from app.shared.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from app.core.logging import logger


class AppointmentService:
    """Scheduling store. A doctor's non-cancelled appointments never overlap."""

    @staticmethod
    async def find_conflict(
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[PydanticObjectId] = None,
        session=None,
    ) -> Optional[Appointment]:
        """A non-cancelled appointment of the doctor overlapping ``[start, end)``."""
        conditions = [
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.scheduled_at < end,
            Appointment.end_time > start,
        ]
        if exclude_id is not None:
            conditions.append(Appointment.id != exclude_id)

        return await Appointment.find_one(*conditions, session=session)

    @staticmethod
    def _validate_window(start: datetime, end: datetime) -> None:
        if end <= start:
            raise BadRequestException("end_time must be after scheduled_at")

    @staticmethod
    async def _parties(appointment: Appointment) -> tuple[Optional[PatientProfile], Optional[DoctorProfile]]:
        patient = await get_document(PatientProfile, appointment.patient_id)
        doctor = await get_document(DoctorProfile, appointment.doctor_id)
        return patient, doctor

    @staticmethod
    def _is_party(user: User, patient: Optional[PatientProfile], doctor: Optional[DoctorProfile]) -> bool:
        user_id = str(user.id)
        return (patient is not None and patient.user_id == user_id) or (
            doctor is not None and doctor.user_id == user_id
        )

    @staticmethod
    def _notify_parties(
        hooks: PostCommitHooks,
        appointment: Appointment,
        patient: Optional[PatientProfile],
        doctor: Optional[DoctorProfile],
        title: str,
        message: str,
        skip_user_id: Optional[str] = None,
    ) -> None:
        for party in (patient, doctor):
            if party is None or party.user_id == skip_user_id:
                continue
            hooks.add(
                NotificationService.notify,
                party.user_id,
                NotificationType.APPOINTMENT,
                title,
                message,
                related_id=str(appointment.id),
                action_url=f"/appointments/{appointment.id}",
            )

    # =========================================================================
    # CREATE
    # =========================================================================

    @staticmethod
    async def create(
        request: CreateAppointmentRequest,
        caller: User,
        hooks: Optional[PostCommitHooks] = None,
    ) -> Appointment:
        """
        Book an appointment.

        The overlap check and the insert share one store transaction.

        Raises:
            NotFoundException: If the patient or doctor profile is missing
            ForbiddenException: If the caller is neither a party nor an admin
            BadRequestException: If the window is empty or inverted
            ConflictException: If the doctor already has an overlapping appointment
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        patient = await get_document(PatientProfile, request.patient_id)
        if not patient:
            raise NotFoundException(f"Patient with ID {request.patient_id} not found")

        doctor = await get_document(DoctorProfile, request.doctor_id)
        if not doctor:
            raise NotFoundException(f"Doctor with ID {request.doctor_id} not found")

        if caller.role != Role.ADMIN and not AppointmentService._is_party(caller, patient, doctor):
            raise ForbiddenException("You can only book appointments you are a party to")

        AppointmentService._validate_window(request.scheduled_at, request.end_time)

        appointment = Appointment(
            patient_id=request.patient_id,
            doctor_id=request.doctor_id,
            created_by_user_id=str(caller.id),
            scheduled_at=request.scheduled_at,
            end_time=request.end_time,
            status=request.status,
            notes=request.notes,
            meeting_link=request.meeting_link,
        )

        async with Database.transaction() as session:
            if request.status != AppointmentStatus.CANCELLED:
                conflict = await AppointmentService.find_conflict(
                    request.doctor_id, request.scheduled_at, request.end_time, session=session
                )
                if conflict:
                    raise ConflictException("Doctor has a conflicting appointment at this time")
            await appointment.insert(session=session)

        logger.info(f"Booked appointment {appointment.id} with doctor {request.doctor_id}")

        when = appointment.scheduled_at.strftime("%Y-%m-%d %H:%M")
        AppointmentService._notify_parties(
            hooks, appointment, patient, doctor,
            "New Appointment",
            f"An appointment has been scheduled for {when}.",
            skip_user_id=str(caller.id),
        )
        await hooks.run()
        return appointment

    # =========================================================================
    # READ
    # =========================================================================

    @staticmethod
    async def list_all() -> List[Appointment]:
        return await Appointment.find_all().sort([("scheduled_at", 1)]).to_list()

    @staticmethod
    async def list_by_patient(patient_id: str) -> List[Appointment]:
        if not await get_document(PatientProfile, patient_id):
            raise NotFoundException(f"Patient with ID {patient_id} not found")
        return await Appointment.find(
            Appointment.patient_id == patient_id
        ).sort([("scheduled_at", 1)]).to_list()

    @staticmethod
    async def list_by_doctor(doctor_id: str) -> List[Appointment]:
        if not await get_document(DoctorProfile, doctor_id):
            raise NotFoundException(f"Doctor with ID {doctor_id} not found")
        return await Appointment.find(
            Appointment.doctor_id == doctor_id
        ).sort([("scheduled_at", 1)]).to_list()

    @staticmethod
    async def _own_doctor_profile(caller: User) -> Optional[DoctorProfile]:
        return await DoctorProfile.find_one(DoctorProfile.user_id == str(caller.id))

    @staticmethod
    async def list_for(caller: User) -> List[Appointment]:
        """Admins see every appointment, a doctor sees their own schedule."""
        if caller.role == Role.ADMIN:
            return await AppointmentService.list_all()
        if caller.role != Role.DOCTOR:
            raise ForbiddenException("Only admins and doctors can list appointments")

        doctor = await AppointmentService._own_doctor_profile(caller)
        if doctor is None:
            return []
        return await AppointmentService.list_by_doctor(str(doctor.id))

    @staticmethod
    async def list_by_doctor_for(doctor_id: str, caller: User) -> List[Appointment]:
        """
        Raises:
            ForbiddenException: Unless the caller is an admin or owns the doctor profile
        """
        if caller.role != Role.ADMIN:
            doctor = await AppointmentService._own_doctor_profile(caller)
            if doctor is None or str(doctor.id) != doctor_id:
                raise ForbiddenException("You can only view your own schedule")
        return await AppointmentService.list_by_doctor(doctor_id)

    @staticmethod
    async def list_by_patient_for(patient_id: str, caller: User) -> List[Appointment]:
        """
        A patient's appointments. Patients list their own; a doctor sees only
        the appointments that patient has with them.
        """
        if caller.role in (Role.PATIENT, Role.USER):
            own = await PatientProfile.find_one(PatientProfile.user_id == str(caller.id))
            if own is None or str(own.id) != patient_id:
                raise ForbiddenException("You can only view your own appointments")

        appointments = await AppointmentService.list_by_patient(patient_id)
        if caller.role == Role.DOCTOR:
            doctor = await AppointmentService._own_doctor_profile(caller)
            doctor_id = str(doctor.id) if doctor else None
            appointments = [a for a in appointments if a.doctor_id == doctor_id]
        return appointments

    @staticmethod
    async def get(appointment_id: str) -> Appointment:
        appointment = await get_document(Appointment, appointment_id)
        if not appointment:
            raise NotFoundException(f"Appointment with ID {appointment_id} not found")
        return appointment

    @staticmethod
    async def get_for(appointment_id: str, caller: User) -> Appointment:
        """Get an appointment visible to the caller (parties and admins)."""
        appointment = await AppointmentService.get(appointment_id)
        if caller.role != Role.ADMIN:
            patient, doctor = await AppointmentService._parties(appointment)
            if not AppointmentService._is_party(caller, patient, doctor):
                raise ForbiddenException("You do not have permission to view this appointment")
        return appointment

    # =========================================================================
    # UPDATE
    # =========================================================================

    @staticmethod
    async def update(
        appointment_id: str,
        request: UpdateAppointmentRequest,
        caller: User,
        hooks: Optional[PostCommitHooks] = None,
    ) -> Appointment:
        """
        Update an appointment. Time changes are re-checked for overlaps.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the caller is neither a party nor an admin
            BadRequestException: If the new window is empty or inverted
            ConflictException: If the new window overlaps another appointment
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        appointment = await AppointmentService.get(appointment_id)
        patient, doctor = await AppointmentService._parties(appointment)

        if caller.role != Role.ADMIN and not AppointmentService._is_party(caller, patient, doctor):
            raise ForbiddenException("You do not have permission to update this appointment")

        changes = request.model_dump(exclude_unset=True)
        previous_status = appointment.status

        start = changes.get("scheduled_at") or appointment.scheduled_at
        end = changes.get("end_time") or appointment.end_time
        status = changes.get("status") or appointment.status
        AppointmentService._validate_window(start, end)

        # A reactivated appointment occupies its slot again
        needs_check = status != AppointmentStatus.CANCELLED and (
            "scheduled_at" in changes
            or "end_time" in changes
            or previous_status == AppointmentStatus.CANCELLED
        )

        for field, value in changes.items():
            if value is not None or field in ("notes", "meeting_link"):
                setattr(appointment, field, value)
        appointment.update_timestamp()

        async with Database.transaction() as session:
            if needs_check:
                conflict = await AppointmentService.find_conflict(
                    appointment.doctor_id, start, end, exclude_id=appointment.id, session=session
                )
                if conflict:
                    raise ConflictException("This time conflicts with another appointment")
            await appointment.save(session=session)

        logger.info(f"Updated appointment {appointment_id}")

        if appointment.status != previous_status:
            when = appointment.scheduled_at.strftime("%Y-%m-%d %H:%M")
            if appointment.status == AppointmentStatus.CONFIRMED:
                AppointmentService._notify_parties(
                    hooks, appointment, patient, doctor,
                    "Appointment Confirmed",
                    f"Your appointment on {when} has been confirmed.",
                )
            elif appointment.status == AppointmentStatus.CANCELLED:
                AppointmentService._notify_parties(
                    hooks, appointment, patient, doctor,
                    "Appointment Cancelled",
                    f"Your appointment on {when} has been cancelled.",
                )
        await hooks.run()
        return appointment

    # =========================================================================
    # DELETE
    # =========================================================================

    @staticmethod
    async def delete(appointment_id: str, caller: User) -> None:
        """
        Delete an appointment (admin or the appointment's doctor).

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: Otherwise
        """
        appointment = await AppointmentService.get(appointment_id)

        if caller.role != Role.ADMIN:
            doctor = await get_document(DoctorProfile, appointment.doctor_id)
            if doctor is None or doctor.user_id != str(caller.id):
                raise ForbiddenException("You do not have permission to delete this appointment")

        await appointment.delete()
        logger.info(f"Deleted appointment {appointment_id}")

    @staticmethod
    def to_response(appointment: Appointment) -> AppointmentResponse:
        """Convert Appointment document to AppointmentResponse."""
        return AppointmentResponse(
            id=str(appointment.id),
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            created_by_user_id=appointment.created_by_user_id,
            scheduled_at=appointment.scheduled_at,
            end_time=appointment.end_time,
            status=appointment.status,
            notes=appointment.notes,
            meeting_link=appointment.meeting_link,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )
