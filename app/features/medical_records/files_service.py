# Medical Records Feature - Attachment Files Service

from typing import List, Optional
import requests
from pymongo.errors import PyMongoError
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from app.features.auth.models import Role, User
from app.features.medical_records.models import MedicalRecord, RecordAttachment
from app.features.medical_records.schemas import AttachmentDetailsResponse
from app.features.medical_records.service import MedicalRecordService
from app.core.blockchain import AnchorService
from app.core.pinning import PinningService
from app.core.side_effects import PostCommitHooks
from app.shared.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.core.logging import logger


class RecordFilesService:
    """Pins attachment bytes on IPFS and keeps the record's attachment list in step."""

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

    @staticmethod
    def _find(record: MedicalRecord, file_id: str) -> RecordAttachment:
        for attachment in record.attachments:
            if attachment.id == file_id:
                return attachment
        raise NotFoundException(f"File with ID {file_id} not found on this record")

    @staticmethod
    async def _anchor_file(record: MedicalRecord, file_id: str) -> None:
        attachment = RecordFilesService._find(record, file_id)
        tx_hash = await run_in_threadpool(AnchorService.anchor, {
            "action": "file_attached",
            "record_id": str(record.id),
            "file_id": attachment.id,
            "ipfs_hash": attachment.ipfs_hash,
            "uploaded_by": attachment.uploaded_by,
        })
        if tx_hash:
            attachment.anchor_tx_hash = tx_hash
            await record.save()

    @staticmethod
    async def _release_pin(ipfs_hash: str) -> None:
        try:
            await run_in_threadpool(PinningService.unpin_file, ipfs_hash)
        except BadRequestException as e:
            logger.error(f"❌ Orphaned pin {ipfs_hash} left on Pinata: {e.detail}")

    @staticmethod
    async def add_file(
        record_id: str,
        file: UploadFile,
        caller: User,
        hooks: Optional[PostCommitHooks] = None,
    ) -> RecordAttachment:
        """
        Pin an uploaded file and attach it to the record.

        Args:
            record_id: MedicalRecord id
            file: Uploaded file
            caller: Admin, the record's creator or its assigned doctor

        Returns:
            RecordAttachment: The stored attachment

        Raises:
            ForbiddenException: If the caller may not modify the record
            BadRequestException: If the file is empty, too large, or pinning fails
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        record = await MedicalRecordService.get(record_id)
        if not await MedicalRecordService.can_modify(caller, record):
            raise ForbiddenException("You do not have permission to add files to this medical record")

        if not file.filename:
            raise BadRequestException("No file provided")

        content = await file.read()
        if not content:
            raise BadRequestException("Uploaded file is empty")
        if len(content) > RecordFilesService.MAX_FILE_SIZE:
            raise BadRequestException("File size exceeds 10MB limit")

        draft = RecordAttachment(
            name=file.filename,
            ipfs_hash="",
            mime_type=file.content_type or "application/octet-stream",
            size=len(content),
            gateway_url="",
            uploaded_by=str(caller.id),
        )

        pinned = await run_in_threadpool(
            PinningService.pin_file,
            content,
            file.filename,
            draft.mime_type,
            metadata={
                "recordId": str(record.id),
                "patientId": record.patient_id,
                "uploadedBy": str(caller.id),
                "fileId": draft.id,
            },
        )

        attachment = draft.model_copy(
            update={"ipfs_hash": pinned.ipfs_hash, "gateway_url": pinned.gateway_url}
        )
        record.attachments.append(attachment)
        record.update_timestamp()
        try:
            await record.save()
        except PyMongoError:
            logger.error(f"❌ Failed to attach {pinned.ipfs_hash} to medical record {record_id}, unpinning")
            await RecordFilesService._release_pin(pinned.ipfs_hash)
            raise

        logger.info(f"Attached file {attachment.id} ({pinned.ipfs_hash}) to medical record {record_id}")

        hooks.add(RecordFilesService._anchor_file, record, attachment.id)
        await hooks.run()
        return RecordFilesService._find(record, attachment.id)

    @staticmethod
    async def list_files(record_id: str, caller: User) -> List[RecordAttachment]:
        record = await MedicalRecordService.get_for(record_id, caller)
        return list(record.attachments)

    @staticmethod
    async def get_file_details(record_id: str, file_id: str, caller: User) -> AttachmentDetailsResponse:
        """
        Attachment details with a fresh check that the pin still exists.
        A failed check reports ``exists=False`` with the error instead of raising.
        """
        record = await MedicalRecordService.get_for(record_id, caller)
        attachment = RecordFilesService._find(record, file_id)

        try:
            exists = await run_in_threadpool(PinningService.file_exists, attachment.ipfs_hash)
            error = None
        except (requests.RequestException, BadRequestException) as e:
            logger.warning(f"Could not check pin {attachment.ipfs_hash}: {e}")
            exists = False
            error = getattr(e, "detail", None) or str(e)

        return AttachmentDetailsResponse(
            **attachment.model_dump(exclude={"gateway_url"}),
            gateway_url=PinningService.gateway_url(attachment.ipfs_hash),
            exists=exists,
            error=error,
        )

    @staticmethod
    async def remove_file(record_id: str, file_id: str, caller: User) -> None:
        """
        Unpin a file and remove it from the record (admin or the record's creator).

        Raises:
            ForbiddenException: If the caller is neither
            BadRequestException: If unpinning fails; the attachment is kept
        """
        record = await MedicalRecordService.get(record_id)
        if caller.role != Role.ADMIN and record.created_by_user_id != str(caller.id):
            raise ForbiddenException("Only the record creator or an admin can remove files")

        attachment = RecordFilesService._find(record, file_id)
        await run_in_threadpool(PinningService.unpin_file, attachment.ipfs_hash)

        record.attachments = [a for a in record.attachments if a.id != file_id]
        record.update_timestamp()
        await record.save()

        logger.info(f"Removed file {file_id} from medical record {record_id}")
