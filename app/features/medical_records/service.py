# Medical Records Feature - Service

from typing import Optional, List
from fastapi.concurrency import run_in_threadpool
from beanie.operators import In, Or
from app.features.auth.models import Role, User
from app.features.connections.service import ConnectionService
from app.features.doctors.models import DoctorProfile
from app.features.doctors.service import DoctorService
from app.features.medical_records.models import MedicalRecord, RecordAttachment
from app.features.medical_records.schemas import (
    CreateMedicalRecordRequest,
    UpdateMedicalRecordRequest,
    AttachmentResponse,
    MedicalRecordResponse,
    IntegrityResponse,
)
from app.features.notifications.models import NotificationType
from app.features.notifications.service import NotificationService
from app.features.patients.models import PatientProfile
from app.features.patients.service import PatientService
from app.core.blockchain import AnchorService
from app.core.side_effects import PostCommitHooks
from app.shared.models import get_document
from app.shared.exceptions import ForbiddenException, NotFoundException
from app.core.logging import logger


class MedicalRecordService:
    """Service for clinical records and their on-chain integrity anchors."""

    # =========================================================================
    # Access
    # =========================================================================

    @staticmethod
    async def is_assigned_doctor(user: User, record: MedicalRecord) -> bool:
        doctor = await get_document(DoctorProfile, record.doctor_id)
        return doctor is not None and doctor.user_id == str(user.id)

    @staticmethod
    async def can_modify(user: User, record: MedicalRecord) -> bool:
        """Admins, the record's creator and its assigned doctor may modify it."""
        if user.role == Role.ADMIN or record.created_by_user_id == str(user.id):
            return True
        return await MedicalRecordService.is_assigned_doctor(user, record)

    @staticmethod
    async def ensure_can_read(user: User, record: MedicalRecord) -> None:
        """
        Raises:
            ForbiddenException: Unless the caller is an admin, the creator, the
                assigned doctor, an actively connected doctor or the patient
        """
        if await MedicalRecordService.can_modify(user, record):
            return

        if user.role == Role.DOCTOR:
            if await ConnectionService.doctor_user_has_access(str(user.id), record.patient_id):
                return
        else:
            patient = await get_document(PatientProfile, record.patient_id)
            if patient is not None and patient.user_id == str(user.id):
                return

        raise ForbiddenException("You do not have permission to view this medical record")

    # =========================================================================
    # Anchoring
    # =========================================================================

    @staticmethod
    def _stamp(record: MedicalRecord) -> None:
        """Record the digest of the current content. The old anchor no longer applies."""
        record.content_hash = AnchorService.digest(record.integrity_payload())
        record.anchor_tx_hash = None

    @staticmethod
    async def _anchor_record(record: MedicalRecord) -> None:
        tx_hash = await run_in_threadpool(AnchorService.anchor, record.integrity_payload())
        if tx_hash:
            record.anchor_tx_hash = tx_hash
            await record.save()
            logger.info(f"Medical record {record.id} anchored in {tx_hash}")

    # =========================================================================
    # CRUD
    # =========================================================================

    @staticmethod
    async def create(
        request: CreateMedicalRecordRequest,
        caller: User,
        hooks: Optional[PostCommitHooks] = None,
    ) -> MedicalRecord:
        """
        Create a record, then anchor its digest and notify the patient.

        Raises:
            NotFoundException: If the patient or doctor profile is missing
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        patient = await get_document(PatientProfile, request.patient_id)
        if not patient:
            raise NotFoundException(f"Patient with ID {request.patient_id} not found")

        if request.doctor_id and not await get_document(DoctorProfile, request.doctor_id):
            raise NotFoundException(f"Doctor with ID {request.doctor_id} not found")

        record = MedicalRecord(
            patient_id=request.patient_id,
            doctor_id=request.doctor_id,
            created_by_user_id=str(caller.id),
            diagnosis=request.diagnosis,
            treatment=request.treatment,
            medication=request.medication,
            notes=request.notes,
        )
        MedicalRecordService._stamp(record)
        await record.insert()

        logger.info(f"Created medical record {record.id} for patient {record.patient_id}")

        hooks.add(MedicalRecordService._anchor_record, record)
        hooks.add(
            NotificationService.notify,
            patient.user_id,
            NotificationType.MEDICAL_RECORD,
            "New Medical Record",
            "A new medical record has been added to your profile.",
            related_id=str(record.id),
            action_url=f"/medical-records/{record.id}",
        )
        await hooks.run()
        return record

    @staticmethod
    async def list_all() -> List[MedicalRecord]:
        return await MedicalRecord.find_all().sort([("created_at", -1)]).to_list()

    @staticmethod
    async def list_for(caller: User) -> List[MedicalRecord]:
        """
        Every record the caller may read. Admins see all; a doctor sees records
        they created, are assigned to, or hold through an ACTIVE connection.
        """
        if caller.role == Role.ADMIN:
            return await MedicalRecordService.list_all()

        if caller.role != Role.DOCTOR:
            raise ForbiddenException("Only admins and doctors can list medical records")

        conditions = [MedicalRecord.created_by_user_id == str(caller.id)]
        doctor = await DoctorService.find_by_user_id(str(caller.id))
        if doctor:
            conditions.append(MedicalRecord.doctor_id == str(doctor.id))
            patient_ids = await ConnectionService.active_patient_ids(str(doctor.id))
            if patient_ids:
                conditions.append(In(MedicalRecord.patient_id, patient_ids))

        return await MedicalRecord.find(Or(*conditions)).sort([("created_at", -1)]).to_list()

    @staticmethod
    async def list_by_patient(patient_id: str) -> List[MedicalRecord]:
        if not await get_document(PatientProfile, patient_id):
            raise NotFoundException(f"Patient with ID {patient_id} not found")
        return await MedicalRecord.find(
            MedicalRecord.patient_id == patient_id
        ).sort([("created_at", -1)]).to_list()

    @staticmethod
    async def list_by_patient_for(patient_id: str, caller: User) -> List[MedicalRecord]:
        """
        A patient's records. Patients see their own, doctors need an ACTIVE connection.

        Raises:
            ForbiddenException: If the caller may not read this patient's records
            NotFoundException: If the patient profile does not exist
        """
        if caller.role in (Role.PATIENT, Role.USER):
            own = await PatientService.find_by_user_id(str(caller.id))
            if own is None or str(own.id) != patient_id:
                raise ForbiddenException("You can only view your own medical records")
        elif caller.role == Role.DOCTOR:
            if not await ConnectionService.doctor_user_has_access(str(caller.id), patient_id):
                raise ForbiddenException("You do not have active access to this patient")

        return await MedicalRecordService.list_by_patient(patient_id)

    @staticmethod
    async def get(record_id: str) -> MedicalRecord:
        record = await get_document(MedicalRecord, record_id)
        if not record:
            raise NotFoundException(f"Medical record with ID {record_id} not found")
        return record

    @staticmethod
    async def get_for(record_id: str, caller: User) -> MedicalRecord:
        record = await MedicalRecordService.get(record_id)
        await MedicalRecordService.ensure_can_read(caller, record)
        return record

    @staticmethod
    async def update(
        record_id: str,
        request: UpdateMedicalRecordRequest,
        caller: User,
        hooks: Optional[PostCommitHooks] = None,
    ) -> MedicalRecord:
        """
        Update clinical content and re-anchor the new digest.

        Raises:
            NotFoundException: If the record does not exist
            ForbiddenException: Unless the caller is the creator, the assigned doctor or an admin
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        record = await MedicalRecordService.get(record_id)
        if not await MedicalRecordService.can_modify(caller, record):
            raise ForbiddenException("You do not have permission to update this medical record")

        changes = request.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(record, field, value)

        MedicalRecordService._stamp(record)
        record.update_timestamp()
        await record.save()

        logger.info(f"Updated medical record {record_id}")

        hooks.add(MedicalRecordService._anchor_record, record)
        await hooks.run()
        return record

    @staticmethod
    async def delete(record_id: str) -> None:
        record = await MedicalRecordService.get(record_id)
        await record.delete()
        logger.info(f"Deleted medical record {record_id}")

    # =========================================================================
    # Integrity
    # =========================================================================

    @staticmethod
    async def verify_integrity(record_id: str, caller: User) -> IntegrityResponse:
        """
        Re-hash the record and compare it with the stored digest and the
        anchoring transaction. An unanchored record never verifies.
        """
        record = await MedicalRecordService.get_for(record_id, caller)
        payload = record.integrity_payload()

        hash_matches = record.content_hash == AnchorService.digest(payload)
        is_verified = False
        if hash_matches and record.anchor_tx_hash:
            is_verified = await run_in_threadpool(AnchorService.verify, record.anchor_tx_hash, payload)

        if not is_verified:
            logger.warning(f"⚠️ Integrity check failed for medical record {record_id}")

        return IntegrityResponse(
            is_verified=is_verified,
            content_hash_matches=hash_matches,
            anchor_tx_hash=record.anchor_tx_hash,
            record=MedicalRecordService.to_response(record),
        )

    @staticmethod
    def attachment_to_response(attachment: RecordAttachment) -> AttachmentResponse:
        return AttachmentResponse(**attachment.model_dump())

    @staticmethod
    def to_response(record: MedicalRecord) -> MedicalRecordResponse:
        """Convert MedicalRecord document to MedicalRecordResponse."""
        return MedicalRecordResponse(
            id=str(record.id),
            patient_id=record.patient_id,
            doctor_id=record.doctor_id,
            created_by_user_id=record.created_by_user_id,
            diagnosis=record.diagnosis,
            treatment=record.treatment,
            medication=record.medication,
            notes=record.notes,
            attachments=[MedicalRecordService.attachment_to_response(a) for a in record.attachments],
            content_hash=record.content_hash,
            anchor_tx_hash=record.anchor_tx_hash,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
