"""Appointment booking and the no-overlap rule."""

from datetime import datetime, timedelta

import pytest

from app.features.appointments.models import Appointment, AppointmentStatus
from app.features.appointments.schemas import CreateAppointmentRequest, UpdateAppointmentRequest
from app.features.appointments.service import AppointmentService
from app.features.auth.models import Role
from app.features.notifications.models import Notification, NotificationType
from app.shared.exceptions import BadRequestException, ConflictException, ForbiddenException

NINE = datetime(2030, 3, 1, 9, 0)


def slot(patient, doctor, start: datetime, minutes: int = 30, **extra) -> CreateAppointmentRequest:
    return CreateAppointmentRequest(
        patient_id=str(patient.id),
        doctor_id=str(doctor.id),
        scheduled_at=start,
        end_time=start + timedelta(minutes=minutes),
        **extra,
    )


@pytest.fixture
async def parties(make_patient, make_doctor):
    patient_user, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    return patient_user, patient, doctor_user, doctor


async def test_overlapping_booking_conflicts(parties):
    patient_user, patient, _, doctor = parties
    await AppointmentService.create(slot(patient, doctor, NINE), patient_user)

    with pytest.raises(ConflictException):
        await AppointmentService.create(slot(patient, doctor, NINE + timedelta(minutes=15)), patient_user)
    assert await Appointment.find_all().count() == 1


async def test_back_to_back_bookings_are_allowed(parties):
    patient_user, patient, _, doctor = parties
    await AppointmentService.create(slot(patient, doctor, NINE), patient_user)
    await AppointmentService.create(slot(patient, doctor, NINE + timedelta(minutes=30)), patient_user)
    assert await Appointment.find_all().count() == 2


async def test_other_doctors_do_not_conflict(parties, make_doctor):
    patient_user, patient, _, doctor = parties
    _, other_doctor = await make_doctor(name="Dr. Other")

    await AppointmentService.create(slot(patient, doctor, NINE), patient_user)
    await AppointmentService.create(slot(patient, other_doctor, NINE), patient_user)


async def test_cancelled_slot_can_be_rebooked_but_not_reactivated(parties):
    patient_user, patient, doctor_user, doctor = parties
    first = await AppointmentService.create(slot(patient, doctor, NINE), patient_user)

    await AppointmentService.update(
        str(first.id), UpdateAppointmentRequest(status=AppointmentStatus.CANCELLED), doctor_user
    )
    await AppointmentService.create(slot(patient, doctor, NINE), patient_user)

    with pytest.raises(ConflictException):
        await AppointmentService.update(
            str(first.id), UpdateAppointmentRequest(status=AppointmentStatus.SCHEDULED), doctor_user
        )


async def test_rescheduling_into_another_slot_conflicts(parties):
    patient_user, patient, doctor_user, doctor = parties
    await AppointmentService.create(slot(patient, doctor, NINE), patient_user)
    second = await AppointmentService.create(slot(patient, doctor, NINE + timedelta(hours=1)), patient_user)

    with pytest.raises(ConflictException):
        await AppointmentService.update(
            str(second.id),
            UpdateAppointmentRequest(scheduled_at=NINE + timedelta(minutes=10), end_time=NINE + timedelta(minutes=40)),
            doctor_user,
        )

    moved = await AppointmentService.update(
        str(second.id), UpdateAppointmentRequest(notes="bring lab results"), doctor_user
    )
    assert moved.notes == "bring lab results"


async def test_inverted_window_is_rejected(parties):
    patient_user, patient, _, doctor = parties
    request = slot(patient, doctor, NINE)
    request.end_time = NINE - timedelta(minutes=5)
    with pytest.raises(BadRequestException):
        await AppointmentService.create(request, patient_user)


async def test_outsider_cannot_book(parties, make_patient):
    _, patient, _, doctor = parties
    stranger, _ = await make_patient(name="Stranger")
    with pytest.raises(ForbiddenException):
        await AppointmentService.create(slot(patient, doctor, NINE), stranger)


async def test_booking_and_confirmation_notify_parties(parties):
    patient_user, patient, doctor_user, doctor = parties
    appointment = await AppointmentService.create(slot(patient, doctor, NINE), patient_user)

    doctor_inbox = await Notification.find(Notification.user_id == str(doctor_user.id)).to_list()
    assert [n.title for n in doctor_inbox] == ["New Appointment"]
    assert await Notification.find(Notification.user_id == str(patient_user.id)).count() == 0

    await AppointmentService.update(
        str(appointment.id), UpdateAppointmentRequest(status=AppointmentStatus.CONFIRMED), doctor_user
    )
    confirmations = await Notification.find(
        Notification.type == NotificationType.APPOINTMENT,
        Notification.title == "Appointment Confirmed",
    ).to_list()
    assert {n.user_id for n in confirmations} == {str(patient_user.id), str(doctor_user.id)}


async def test_only_admin_or_own_doctor_deletes(parties, make_doctor):
    patient_user, patient, doctor_user, doctor = parties
    other_user, _ = await make_doctor(name="Dr. Other")
    appointment = await AppointmentService.create(slot(patient, doctor, NINE), patient_user)

    with pytest.raises(ForbiddenException):
        await AppointmentService.delete(str(appointment.id), other_user)

    await AppointmentService.delete(str(appointment.id), doctor_user)
    assert await Appointment.find_all().count() == 0


async def test_doctors_see_only_their_own_schedule(parties, make_doctor, make_user):
    patient_user, patient, doctor_user, doctor = parties
    other_user, other_doctor = await make_doctor(name="Dr. Other")
    admin = await make_user(Role.ADMIN)

    mine = await AppointmentService.create(slot(patient, doctor, NINE), patient_user)
    theirs = await AppointmentService.create(slot(patient, other_doctor, NINE), patient_user)

    assert [a.id for a in await AppointmentService.list_for(doctor_user)] == [mine.id]
    assert len(await AppointmentService.list_for(admin)) == 2

    with pytest.raises(ForbiddenException):
        await AppointmentService.list_by_doctor_for(str(other_doctor.id), doctor_user)
    assert [a.id for a in await AppointmentService.list_by_doctor_for(str(other_doctor.id), other_user)] == [theirs.id]

    by_patient = await AppointmentService.list_by_patient_for(str(patient.id), doctor_user)
    assert [a.id for a in by_patient] == [mine.id]
    assert len(await AppointmentService.list_by_patient_for(str(patient.id), patient_user)) == 2
