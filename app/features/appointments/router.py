# Appointments Feature - Router

from fastapi import APIRouter, Depends, status
from app.features.appointments.schemas import (
    CreateAppointmentRequest,
    UpdateAppointmentRequest,
    AppointmentResponse,
    AppointmentListResponse,
)
from app.features.appointments.service import AppointmentService
from app.features.auth.dependencies import require_roles
from app.features.auth.models import Role, User
from app.shared.schemas import MessageResponse


router = APIRouter(prefix="/appointments", tags=["Appointments"])

ANY_ROLE = (Role.ADMIN, Role.DOCTOR, Role.PATIENT, Role.USER)


def _list_response(appointments) -> AppointmentListResponse:
    return AppointmentListResponse(
        appointments=[AppointmentService.to_response(a) for a in appointments],
        total=len(appointments),
    )


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    request: CreateAppointmentRequest,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    """
    Book an appointment. Overlapping a doctor's existing booking is a conflict.
    """
    appointment = await AppointmentService.create(request, current_user)
    return AppointmentService.to_response(appointment)


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Every appointment for admins, the caller's own schedule for doctors.
    """
    return _list_response(await AppointmentService.list_for(current_user))


@router.get("/patient/{patient_id}", response_model=AppointmentListResponse)
async def list_patient_appointments(
    patient_id: str,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    """
    A patient's appointments. Patients list their own, doctors see the ones booked with them.
    """
    return _list_response(await AppointmentService.list_by_patient_for(patient_id, current_user))


@router.get("/doctor/{doctor_id}", response_model=AppointmentListResponse)
async def list_doctor_appointments(
    doctor_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    A doctor's schedule, visible to that doctor and admins.
    """
    return _list_response(await AppointmentService.list_by_doctor_for(doctor_id, current_user))


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    appointment = await AppointmentService.get_for(appointment_id, current_user)
    return AppointmentService.to_response(appointment)


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: str,
    request: UpdateAppointmentRequest,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    """
    Reschedule or change status. CONFIRMED and CANCELLED notify both parties.
    """
    appointment = await AppointmentService.update(appointment_id, request, current_user)
    return AppointmentService.to_response(appointment)


@router.delete("/{appointment_id}", response_model=MessageResponse)
async def delete_appointment(
    appointment_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    await AppointmentService.delete(appointment_id, current_user)
    return MessageResponse(message="Appointment deleted successfully")
