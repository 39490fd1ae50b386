"""Readings, vital-sign snapshots, alerts and latest vitals."""

from datetime import datetime, timedelta
from typing import Optional

import pytest
from pymongo.errors import PyMongoError

from app.features.auth.models import Role
from app.features.health_data.models import HealthReading, ReadingType
from app.features.health_data.schemas import CreateReadingRequest, CreateVitalSignRequest
from app.features.health_data.service import HealthDataService
from app.features.health_data.vitals import DEFAULT_UNITS, abnormal_fields, canonical_value, out_of_bounds
from app.features.notifications.models import Notification, NotificationType
from app.shared.exceptions import BadRequestException, ForbiddenException


def reading(type: ReadingType, value: float, unit: Optional[str] = None, **extra) -> CreateReadingRequest:
    return CreateReadingRequest(type=type, value=value, unit=unit or DEFAULT_UNITS[type], **extra)


# === Ranges ===

def test_bounds_are_inclusive():
    assert out_of_bounds("heart_rate", 40) is None
    assert out_of_bounds("heart_rate", 220) is None
    assert out_of_bounds("heart_rate", 221) == "Heart rate must be between 40 and 220 (got 221)"
    assert out_of_bounds("oxygen_saturation", 69.5) is not None


def test_abnormal_fields_ignore_missing_and_unranged():
    values = {"heart_rate": 110, "temperature": None, "respiratory_rate": 39, "oxygen_saturation": 97}
    assert abnormal_fields(values) == ["heart_rate"]


# === Readings ===

async def test_out_of_bounds_reading_is_rejected(make_patient):
    user, _ = await make_patient()
    with pytest.raises(BadRequestException):
        await HealthDataService.submit_reading(user, reading(ReadingType.HEART_RATE, 300))
    assert await HealthReading.find_all().count() == 0


async def test_doctors_cannot_submit_readings(make_doctor):
    user, _ = await make_doctor()
    with pytest.raises(ForbiddenException):
        await HealthDataService.submit_reading(user, reading(ReadingType.HEART_RATE, 70))


async def test_batch_is_all_or_nothing(make_patient):
    user, _ = await make_patient()
    batch = [
        reading(ReadingType.HEART_RATE, 72),
        reading(ReadingType.TEMPERATURE, 50, unit="°C"),
    ]
    with pytest.raises(BadRequestException):
        await HealthDataService.submit_batch(user, batch)
    assert await HealthReading.find_all().count() == 0

    stored = await HealthDataService.submit_batch(user, batch[:1])
    assert len(stored) == 1


async def test_store_failure_mid_batch_keeps_nothing(make_patient, monkeypatch):
    user, _ = await make_patient()
    insert = HealthReading.insert
    calls = []

    async def fails_on_second(self, *args, **kwargs):
        calls.append(self.type)
        if len(calls) == 2:
            raise PyMongoError("connection reset")
        return await insert(self, *args, **kwargs)

    monkeypatch.setattr(HealthReading, "insert", fails_on_second)

    batch = [reading(t, v) for t, v in [
        (ReadingType.HEART_RATE, 72),
        (ReadingType.BLOOD_OXYGEN, 97),
        (ReadingType.BLOOD_PRESSURE_SYSTOLIC, 118),
        (ReadingType.BLOOD_PRESSURE_DIASTOLIC, 76),
    ]]
    with pytest.raises(PyMongoError):
        await HealthDataService.submit_batch(user, batch)

    assert len(calls) == 2
    assert await HealthReading.find_all().count() == 0


# === Units ===

def test_canonical_value_converts_fahrenheit():
    assert canonical_value(ReadingType.TEMPERATURE, 98.6, "°F") == 37.0
    assert canonical_value(ReadingType.TEMPERATURE, 37.0, "celsius") == 37.0
    assert canonical_value(ReadingType.HEART_RATE, 70, "bpm") == 70
    assert canonical_value(ReadingType.TEMPERATURE, 310, "K") is None


async def test_fahrenheit_reading_is_checked_in_celsius(make_patient, make_doctor, connect):
    patient_user, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    await connect(patient, doctor_user, doctor)

    morning = datetime(2030, 1, 1, 8, 0)
    stored = await HealthDataService.submit_reading(
        patient_user, reading(ReadingType.TEMPERATURE, 98.6, unit="°F", timestamp=morning)
    )
    assert (stored.value, stored.unit) == (98.6, "°F")
    assert await Notification.find(Notification.type == NotificationType.VITAL_ALERT).count() == 0

    await HealthDataService.submit_reading(
        patient_user, reading(ReadingType.TEMPERATURE, 104, unit="°F", timestamp=morning + timedelta(hours=1))
    )
    assert await Notification.find(Notification.type == NotificationType.VITAL_ALERT).count() == 1

    with pytest.raises(BadRequestException):
        await HealthDataService.submit_reading(patient_user, reading(ReadingType.TEMPERATURE, 120, unit="°F"))

    latest = await HealthDataService.get_latest_vitals(str(patient_user.id))
    assert latest.temperature == 40.0


async def test_unknown_unit_is_stored_unchecked(make_patient):
    user, _ = await make_patient()
    stored = await HealthDataService.submit_reading(user, reading(ReadingType.TEMPERATURE, 310, unit="K"))

    assert stored.value == 310
    latest = await HealthDataService.get_latest_vitals(str(user.id))
    assert latest.temperature is None


async def test_abnormal_reading_alerts_connected_doctors_only(make_patient, make_doctor, connect):
    patient_user, patient = await make_patient()
    connected_user, connected = await make_doctor()
    bystander_user, _ = await make_doctor(name="Dr. Bystander")
    await connect(patient, connected_user, connected)

    await HealthDataService.submit_reading(patient_user, reading(ReadingType.HEART_RATE, 130))

    alerts = await Notification.find(Notification.type == NotificationType.VITAL_ALERT).to_list()
    assert [a.user_id for a in alerts] == [str(connected_user.id)]
    assert "heart rate 130" in alerts[0].message
    assert await Notification.find(Notification.user_id == str(bystander_user.id)).count() == 0


async def test_normal_reading_sends_no_alert(make_patient, make_doctor, connect):
    patient_user, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    await connect(patient, doctor_user, doctor)

    await HealthDataService.submit_reading(patient_user, reading(ReadingType.HEART_RATE, 72))
    assert await Notification.find(Notification.type == NotificationType.VITAL_ALERT).count() == 0


async def test_readings_are_paginated_newest_first(make_patient):
    user, _ = await make_patient()
    start = datetime(2030, 1, 1, 8, 0)
    for minutes in range(5):
        await HealthDataService.submit_reading(
            user, reading(ReadingType.HEART_RATE, 70 + minutes, timestamp=start + timedelta(minutes=minutes))
        )

    page = await HealthDataService.get_own_readings(str(user.id), page=1, limit=2)
    assert [r.value for r in page.data] == [74, 73]
    assert page.meta.total == 5


async def test_doctor_needs_active_connection_to_read(make_patient, make_doctor, connect):
    patient_user, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    await HealthDataService.submit_reading(patient_user, reading(ReadingType.HEART_RATE, 72))

    with pytest.raises(ForbiddenException):
        await HealthDataService.get_patient_readings(str(doctor_user.id), str(patient_user.id))

    await connect(patient, doctor_user, doctor)
    result = await HealthDataService.get_patient_readings(str(doctor_user.id), str(patient_user.id))
    assert len(result.data) == 1


def test_public_sample_is_synthetic():
    sample = HealthDataService.public_sample()
    assert len(sample.data) == len(ReadingType)
    assert {r.patient_user_id for r in sample.data} == {"demo-patient"}


# === Vital signs ===

async def test_vital_sign_needs_a_measurement(make_patient):
    user, _ = await make_patient()
    with pytest.raises(BadRequestException):
        await HealthDataService.record_vital_sign(user, CreateVitalSignRequest())


async def test_doctor_records_for_connected_patient(make_patient, make_doctor, connect):
    _, patient = await make_patient()
    doctor_user, doctor = await make_doctor()

    request = CreateVitalSignRequest(patient_id=str(patient.id), heart_rate=80)
    with pytest.raises(ForbiddenException):
        await HealthDataService.record_vital_sign(doctor_user, request)

    await connect(patient, doctor_user, doctor)
    vital_sign = await HealthDataService.record_vital_sign(doctor_user, request)
    assert vital_sign.patient_id == str(patient.id)
    assert vital_sign.recorded_by_user_id == str(doctor_user.id)


async def test_recording_doctor_is_not_alerted_about_own_entry(make_patient, make_doctor, connect):
    _, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    await connect(patient, doctor_user, doctor)

    await HealthDataService.record_vital_sign(
        doctor_user, CreateVitalSignRequest(patient_id=str(patient.id), oxygen_saturation=88)
    )
    assert await Notification.find(Notification.type == NotificationType.VITAL_ALERT).count() == 0


# === Latest vitals ===

async def test_latest_vitals_merges_snapshot_and_readings(make_patient):
    user, _ = await make_patient()
    earlier = datetime(2030, 1, 1, 8, 0)
    later = earlier + timedelta(hours=1)

    await HealthDataService.record_vital_sign(
        user, CreateVitalSignRequest(heart_rate=80, timestamp=earlier)
    )
    await HealthDataService.submit_reading(user, reading(ReadingType.HEART_RATE, 90, timestamp=later))
    await HealthDataService.submit_reading(
        user, reading(ReadingType.TEMPERATURE, 37.0, unit="°C", timestamp=later)
    )

    latest = await HealthDataService.get_latest_vitals(str(user.id))

    assert latest.heart_rate == 80
    assert latest.temperature == 37.0
    assert latest.oxygen_saturation is None
    assert latest.sources == {"heart_rate": "vital_sign", "temperature": "reading"}
    assert latest.timestamp == later


async def test_latest_vitals_empty(make_user):
    user = await make_user(Role.USER)
    latest = await HealthDataService.get_latest_vitals(str(user.id))
    assert latest.sources == {}
    assert latest.timestamp is None


async def test_duplicate_readings_are_kept(make_patient):
    user, _ = await make_patient()
    first = await HealthDataService.submit_reading(user, reading(ReadingType.HEART_RATE, 72))
    second = await HealthDataService.submit_reading(user, reading(ReadingType.HEART_RATE, 72))

    assert first.id != second.id
    assert first.timestamp is not None
    assert await HealthReading.find(HealthReading.patient_user_id == str(user.id)).count() == 2


async def test_latest_heart_rate_falls_back_to_reading(make_patient):
    user, _ = await make_patient()
    await HealthDataService.submit_reading(user, reading(ReadingType.HEART_RATE, 66))

    latest = await HealthDataService.get_latest_vitals(str(user.id))
    assert latest.heart_rate == 66
    assert latest.sources == {"heart_rate": "reading"}
