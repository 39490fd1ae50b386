# Medical Records Feature - Router

from fastapi import APIRouter, Depends, UploadFile, File, status
from app.features.medical_records.schemas import (
    CreateMedicalRecordRequest,
    UpdateMedicalRecordRequest,
    MedicalRecordResponse,
    MedicalRecordListResponse,
    IntegrityResponse,
    AttachmentResponse,
    AttachmentDetailsResponse,
    AttachmentListResponse,
)
from app.features.medical_records.service import MedicalRecordService
from app.features.medical_records.files_service import RecordFilesService
from app.features.auth.dependencies import require_roles
from app.features.auth.models import Role, User
from app.shared.schemas import MessageResponse


router = APIRouter(prefix="/medical-records", tags=["Medical Records"])

ANY_ROLE = (Role.ADMIN, Role.DOCTOR, Role.PATIENT, Role.USER)


def _list_response(records) -> MedicalRecordListResponse:
    return MedicalRecordListResponse(
        records=[MedicalRecordService.to_response(r) for r in records],
        total=len(records),
    )


# =============================================================================
# RECORDS
# =============================================================================

@router.post("", response_model=MedicalRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_medical_record(
    request: CreateMedicalRecordRequest,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Create a medical record. Its content digest is anchored on chain after saving.
    """
    record = await MedicalRecordService.create(request, current_user)
    return MedicalRecordService.to_response(record)


@router.get("", response_model=MedicalRecordListResponse)
async def list_medical_records(
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Records visible to the caller. Doctors see the records they created, are
    assigned to, or reach through an active connection.
    """
    return _list_response(await MedicalRecordService.list_for(current_user))


@router.get("/patient/{patient_id}", response_model=MedicalRecordListResponse)
async def list_patient_medical_records(
    patient_id: str,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    """
    A patient's records. Patients see their own, doctors need an active connection.
    """
    return _list_response(await MedicalRecordService.list_by_patient_for(patient_id, current_user))


@router.get("/{record_id}", response_model=MedicalRecordResponse)
async def get_medical_record(
    record_id: str,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    record = await MedicalRecordService.get_for(record_id, current_user)
    return MedicalRecordService.to_response(record)


@router.patch("/{record_id}", response_model=MedicalRecordResponse)
async def update_medical_record(
    record_id: str,
    request: UpdateMedicalRecordRequest,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Update a record (creator, assigned doctor or admin). The new content is re-anchored.
    """
    record = await MedicalRecordService.update(record_id, request, current_user)
    return MedicalRecordService.to_response(record)


@router.delete("/{record_id}", response_model=MessageResponse)
async def delete_medical_record(
    record_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN))
):
    await MedicalRecordService.delete(record_id)
    return MessageResponse(message="Medical record deleted successfully")


@router.get("/{record_id}/verify", response_model=IntegrityResponse)
async def verify_medical_record(
    record_id: str,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    """
    Re-hash the record and compare it with its anchoring transaction.
    """
    return await MedicalRecordService.verify_integrity(record_id, current_user)


# =============================================================================
# FILES
# =============================================================================

@router.post(
    "/{record_id}/files",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_record_file(
    record_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Pin a file to IPFS and attach it to the record.

    - **file**: Any document or image, max 10MB
    """
    attachment = await RecordFilesService.add_file(record_id, file, current_user)
    return MedicalRecordService.attachment_to_response(attachment)


@router.get("/{record_id}/files", response_model=AttachmentListResponse)
async def list_record_files(
    record_id: str,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    files = await RecordFilesService.list_files(record_id, current_user)
    return AttachmentListResponse(
        files=[MedicalRecordService.attachment_to_response(f) for f in files],
        total=len(files),
    )


@router.get("/{record_id}/files/{file_id}", response_model=AttachmentDetailsResponse)
async def get_record_file(
    record_id: str,
    file_id: str,
    current_user: User = Depends(require_roles(*ANY_ROLE))
):
    return await RecordFilesService.get_file_details(record_id, file_id, current_user)


@router.delete("/{record_id}/files/{file_id}", response_model=MessageResponse)
async def delete_record_file(
    record_id: str,
    file_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """
    Unpin a file and remove it from the record (admin or the record's creator).
    """
    await RecordFilesService.remove_file(record_id, file_id, current_user)
    return MessageResponse(message="File removed successfully")
