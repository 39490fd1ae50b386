# Health Data Feature - Service

from typing import Dict, List, Optional
from datetime import datetime
from app.database import Database
from app.features.auth.models import Role, User
from app.features.auth.service import AuthService
from app.features.connections.service import ConnectionService
from app.features.doctors.service import DoctorService
from app.features.health_data.models import HealthReading, ReadingType, VitalSign
from app.features.health_data.schemas import (
    CreateReadingRequest,
    CreateVitalSignRequest,
    LatestVitalsResponse,
    ReadingListResponse,
    ReadingResponse,
    VitalSignResponse,
)
from app.features.health_data.vitals import (
    DEFAULT_UNITS,
    METRIC_LABELS,
    READING_TYPE_FIELDS,
    SAMPLE_VALUES,
    VITAL_FIELDS,
    abnormal_fields,
    canonical_value,
    out_of_bounds,
)
from app.features.notifications.models import NotificationType
from app.features.notifications.service import NotificationService
from app.features.patients.models import PatientProfile
from app.features.patients.service import PatientService
from app.core.side_effects import PostCommitHooks
from app.shared.schemas import PaginationMeta
from app.shared.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.core.logging import logger


SELF_SUBMITTING_ROLES = (Role.PATIENT, Role.USER)


class HealthDataService:
    """Service for patient readings, vital-sign snapshots and latest vitals."""

    # =========================================================================
    # Access
    # =========================================================================

    @staticmethod
    async def ensure_can_read(caller: User, patient: PatientProfile) -> None:
        """
        Admins read anyone, patients read themselves and doctors need an
        ACTIVE connection.

        Raises:
            ForbiddenException: If the caller may not read this patient's data
        """
        if caller.role == Role.ADMIN:
            return

        if caller.role in SELF_SUBMITTING_ROLES:
            if patient.user_id != str(caller.id):
                raise ForbiddenException("Patients can only access their own health data")
            return

        if caller.role == Role.DOCTOR:
            if not await ConnectionService.doctor_user_has_access(str(caller.id), str(patient.id)):
                raise ForbiddenException(
                    f"Doctor (User ID: {caller.id}) does not have active access to patient (User ID: {patient.user_id})"
                )
            return

        raise ForbiddenException("User role not authorized")

    # =========================================================================
    # Readings
    # =========================================================================

    @staticmethod
    def _ensure_can_submit(user: User) -> None:
        if user.role not in SELF_SUBMITTING_ROLES:
            raise ForbiddenException("Only patients can submit health readings")

    @staticmethod
    def _build_reading(user_id: str, request: CreateReadingRequest) -> HealthReading:
        """Validate one reading against physiological bounds and build the document."""
        value = canonical_value(request.type, request.value, request.unit)
        if value is not None:
            error = out_of_bounds(READING_TYPE_FIELDS[request.type], value)
            if error:
                raise BadRequestException(error)

        return HealthReading(
            patient_user_id=user_id,
            type=request.type,
            value=request.value,
            unit=request.unit,
            timestamp=request.timestamp or datetime.utcnow(),
        )

    @staticmethod
    def _alert_values(reading: HealthReading) -> Dict[str, Optional[float]]:
        return {READING_TYPE_FIELDS[reading.type]: canonical_value(reading.type, reading.value, reading.unit)}

    @staticmethod
    async def _queue_alerts(
        hooks: PostCommitHooks,
        patient: Optional[PatientProfile],
        patient_name: str,
        values: Dict[str, Optional[float]],
        related_id: str,
        exclude_user_id: Optional[str] = None,
    ) -> None:
        """Queue one VITAL_ALERT per actively connected doctor for abnormal values."""
        fields = abnormal_fields(values)
        if not fields or patient is None:
            return

        details = ", ".join(f"{METRIC_LABELS[f]} {values[f]:g}" for f in fields)
        for doctor_user_id in await ConnectionService.active_doctor_user_ids(str(patient.id)):
            if doctor_user_id == exclude_user_id:
                continue
            hooks.add(
                NotificationService.notify,
                doctor_user_id,
                NotificationType.VITAL_ALERT,
                "Abnormal Vital Sign",
                f"Abnormal reading for {patient_name}: {details}",
                related_id=related_id,
                action_url=f"/patients/{patient.id}",
            )

    @staticmethod
    async def submit_reading(
        user: User,
        request: CreateReadingRequest,
        hooks: Optional[PostCommitHooks] = None,
    ) -> HealthReading:
        """
        Store one reading for the calling patient.

        Raises:
            ForbiddenException: If the caller is not a patient
            BadRequestException: If the value is outside physiological bounds
        """
        hooks = hooks if hooks is not None else PostCommitHooks()
        HealthDataService._ensure_can_submit(user)

        reading = HealthDataService._build_reading(str(user.id), request)
        await reading.insert()
        logger.info(f"Stored {reading.type.value} reading for user {user.id}")

        patient = await PatientService.find_by_user_id(str(user.id))
        await HealthDataService._queue_alerts(
            hooks,
            patient,
            user.name or "a patient",
            HealthDataService._alert_values(reading),
            str(reading.id),
        )
        await hooks.run()
        return reading

    @staticmethod
    async def submit_batch(
        user: User,
        requests: List[CreateReadingRequest],
        hooks: Optional[PostCommitHooks] = None,
    ) -> List[HealthReading]:
        """
        Store several readings, all or nothing.

        Every reading is validated before anything is written, and a store
        failure part-way leaves no readings behind.
        """
        hooks = hooks if hooks is not None else PostCommitHooks()
        HealthDataService._ensure_can_submit(user)

        readings = [HealthDataService._build_reading(str(user.id), r) for r in requests]

        await Database.insert_all(readings)

        logger.info(f"Stored batch of {len(readings)} readings for user {user.id}")

        patient = await PatientService.find_by_user_id(str(user.id))
        for reading in readings:
            await HealthDataService._queue_alerts(
                hooks,
                patient,
                user.name or "a patient",
                HealthDataService._alert_values(reading),
                str(reading.id),
            )
        await hooks.run()
        return readings

    @staticmethod
    async def _paginate_readings(
        user_id: str,
        page: int,
        limit: int,
        type: Optional[ReadingType],
    ) -> ReadingListResponse:
        conditions = [HealthReading.patient_user_id == user_id]
        if type:
            conditions.append(HealthReading.type == type)

        query = HealthReading.find(*conditions)
        total = await query.count()
        readings = await HealthReading.find(*conditions).sort(
            [("timestamp", -1)]
        ).skip((page - 1) * limit).limit(limit).to_list()

        return ReadingListResponse(
            data=[HealthDataService.reading_to_response(r) for r in readings],
            meta=PaginationMeta.build(total, page, limit),
        )

    @staticmethod
    async def get_own_readings(
        user_id: str,
        page: int = 1,
        limit: int = 100,
        type: Optional[ReadingType] = None,
    ) -> ReadingListResponse:
        return await HealthDataService._paginate_readings(user_id, page, limit, type)

    @staticmethod
    async def get_patient_readings(
        doctor_user_id: str,
        patient_user_id: str,
        page: int = 1,
        limit: int = 100,
        type: Optional[ReadingType] = None,
    ) -> ReadingListResponse:
        """
        A connected doctor reads a patient's readings.

        Raises:
            NotFoundException: If the doctor or patient profile is missing
            ForbiddenException: Without an ACTIVE connection
        """
        doctor = await DoctorService.find_by_user_id(doctor_user_id)
        if not doctor:
            raise NotFoundException(f"Doctor profile not found for user ID {doctor_user_id}")

        patient = await PatientService.find_by_user_id(patient_user_id)
        if not patient:
            raise NotFoundException("Patient profile not found")

        if not await ConnectionService.get_active_connection(str(patient.id), str(doctor.id)):
            raise ForbiddenException(
                f"Doctor (User ID: {doctor_user_id}) does not have active access to patient (User ID: {patient_user_id})"
            )

        return await HealthDataService._paginate_readings(patient_user_id, page, limit, type)

    @staticmethod
    async def create_sample_data(user: User) -> List[HealthReading]:
        """Store one normal reading of every type for the caller."""
        now = datetime.utcnow()
        requests = [
            CreateReadingRequest(type=t, value=SAMPLE_VALUES[t], unit=DEFAULT_UNITS[t], timestamp=now)
            for t in ReadingType
        ]
        return await HealthDataService.submit_batch(user, requests)

    @staticmethod
    def public_sample() -> ReadingListResponse:
        """Synthetic readings for the unauthenticated demo endpoint. Nothing stored is exposed."""
        now = datetime.utcnow()
        data = [
            ReadingResponse(
                id=f"sample-{index}",
                patient_user_id="demo-patient",
                type=t,
                value=SAMPLE_VALUES[t],
                unit=DEFAULT_UNITS[t],
                timestamp=now,
            )
            for index, t in enumerate(ReadingType, start=1)
        ]
        return ReadingListResponse(data=data, meta=PaginationMeta.build(len(data), 1, 100))

    # =========================================================================
    # Vital signs
    # =========================================================================

    @staticmethod
    async def _resolve_vital_sign_patient(user: User, patient_id: Optional[str]) -> PatientProfile:
        if user.role in SELF_SUBMITTING_ROLES:
            patient = await PatientService.get_by_user_id(str(user.id))
            if patient_id and patient_id != str(patient.id):
                raise ForbiddenException("You can only add vital signs for yourself")
            return patient

        if user.role == Role.DOCTOR:
            if not patient_id:
                raise BadRequestException("patient_id is required when a doctor records vital signs")
            patient = await PatientService.get_by_id(patient_id)
            await HealthDataService.ensure_can_read(user, patient)
            return patient

        raise ForbiddenException("Only patients and doctors can record vital signs")

    @staticmethod
    async def record_vital_sign(
        user: User,
        request: CreateVitalSignRequest,
        hooks: Optional[PostCommitHooks] = None,
    ) -> VitalSign:
        """
        Store a structured snapshot for the caller or a connected patient.

        Raises:
            BadRequestException: If no measurement is given or a value is out of bounds
            ForbiddenException: If the caller may not record for this patient
            NotFoundException: If the patient profile does not exist
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        values = {field: getattr(request, field) for field in VITAL_FIELDS}
        if all(value is None for value in values.values()):
            raise BadRequestException("At least one measurement is required")

        for field, value in values.items():
            if value is not None:
                error = out_of_bounds(field, value)
                if error:
                    raise BadRequestException(error)

        patient = await HealthDataService._resolve_vital_sign_patient(user, request.patient_id)

        vital_sign = VitalSign(
            patient_id=str(patient.id),
            recorded_by_user_id=str(user.id),
            timestamp=request.timestamp or datetime.utcnow(),
            **values,
        )
        await vital_sign.insert()
        logger.info(f"Stored vital sign {vital_sign.id} for patient {patient.id}")

        owner = await AuthService.get_user_by_id(patient.user_id)
        await HealthDataService._queue_alerts(
            hooks,
            patient,
            (owner.name if owner else None) or "a patient",
            values,
            str(vital_sign.id),
            exclude_user_id=str(user.id),
        )
        await hooks.run()
        return vital_sign

    @staticmethod
    async def list_vital_signs(patient_id: str) -> List[VitalSign]:
        return await VitalSign.find(
            VitalSign.patient_id == patient_id
        ).sort([("timestamp", -1)]).to_list()

    # =========================================================================
    # Latest vitals
    # =========================================================================

    @staticmethod
    async def get_latest_vitals(target_user_id: str) -> LatestVitalsResponse:
        """
        Merge the newest snapshot with the newest reading per type.

        Non-null fields of the newest VitalSign win; every field still empty
        is filled from the newest HealthReading of the mapped type.

        Raises:
            NotFoundException: If the user does not exist
        """
        await AuthService.require_user(target_user_id)

        result = LatestVitalsResponse(patient_user_id=target_user_id)
        timestamps: List[datetime] = []

        patient = await PatientService.find_by_user_id(target_user_id)
        if patient:
            snapshot = await VitalSign.find(
                VitalSign.patient_id == str(patient.id)
            ).sort([("timestamp", -1)]).first_or_none()
            if snapshot:
                for field in VITAL_FIELDS:
                    value = getattr(snapshot, field)
                    if value is not None:
                        setattr(result, field, value)
                        result.sources[field] = "vital_sign"
                if result.sources:
                    timestamps.append(snapshot.timestamp)

        for reading_type, field in READING_TYPE_FIELDS.items():
            if getattr(result, field) is not None:
                continue
            reading = await HealthReading.find(
                HealthReading.patient_user_id == target_user_id,
                HealthReading.type == reading_type,
            ).sort([("timestamp", -1)]).first_or_none()
            value = canonical_value(reading.type, reading.value, reading.unit) if reading else None
            if value is not None:
                setattr(result, field, value)
                result.sources[field] = "reading"
                timestamps.append(reading.timestamp)

        result.timestamp = max(timestamps) if timestamps else None
        return result

    # =========================================================================
    # Converters
    # =========================================================================

    @staticmethod
    def reading_to_response(reading: HealthReading) -> ReadingResponse:
        return ReadingResponse(
            id=str(reading.id),
            patient_user_id=reading.patient_user_id,
            type=reading.type,
            value=reading.value,
            unit=reading.unit,
            timestamp=reading.timestamp,
        )

    @staticmethod
    def vital_sign_to_response(vital_sign: VitalSign) -> VitalSignResponse:
        return VitalSignResponse(
            id=str(vital_sign.id),
            patient_id=vital_sign.patient_id,
            recorded_by_user_id=vital_sign.recorded_by_user_id,
            heart_rate=vital_sign.heart_rate,
            blood_pressure_systolic=vital_sign.blood_pressure_systolic,
            blood_pressure_diastolic=vital_sign.blood_pressure_diastolic,
            temperature=vital_sign.temperature,
            respiratory_rate=vital_sign.respiratory_rate,
            oxygen_saturation=vital_sign.oxygen_saturation,
            glucose_level=vital_sign.glucose_level,
            timestamp=vital_sign.timestamp,
        )
