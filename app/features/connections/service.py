# Connections Feature - Service

from typing import Optional, List
from pymongo.errors import DuplicateKeyError
from fastapi.concurrency import run_in_threadpool
from app.features.auth.models import Role
from app.features.auth.service import AuthService
from app.features.connections.models import Connection
from app.features.connections.schemas import ConnectionResponse
from app.features.connections.state import ConnectionStatus, ConnectionTransition
from app.features.doctors.models import DoctorProfile
from app.features.doctors.service import DoctorService
from app.features.notifications.models import NotificationType
from app.features.notifications.service import NotificationService
from app.features.patients.models import PatientProfile
from app.features.patients.service import PatientService
from app.core.blockchain import AnchorService
from app.core.security import generate_connection_code, recover_wallet_address
from app.core.side_effects import PostCommitHooks
from app.shared.models import get_document
from app.shared.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from app.core.logging import logger


class ConnectionService:
    """Access-control ledger between doctors and patients."""

    # =========================================================================
    # Lookups
    # =========================================================================

    @staticmethod
    async def get_active_connection(patient_id: str, doctor_id: str) -> Optional[Connection]:
        """
        The ACTIVE connection between a patient and a doctor profile, if any.

        This is the authorization check for every doctor read of patient data.
        """
        return await Connection.find_one(
            Connection.patient_id == patient_id,
            Connection.doctor_id == doctor_id,
            Connection.status == ConnectionStatus.ACTIVE,
        )

    @staticmethod
    async def doctor_user_has_access(doctor_user_id: str, patient_id: str) -> bool:
        """Whether the doctor owning ``doctor_user_id`` is actively connected to a patient profile."""
        doctor = await DoctorService.find_by_user_id(doctor_user_id)
        if not doctor:
            return False
        return await ConnectionService.get_active_connection(patient_id, str(doctor.id)) is not None

    @staticmethod
    async def _get_connection(connection_id: str, message: str) -> Connection:
        connection = await get_document(Connection, connection_id)
        if not connection:
            raise NotFoundException(message)
        return connection

    @staticmethod
    async def _commit_transition(
        connection: Connection,
        transition: ConnectionTransition,
        **fields,
    ) -> None:
        """
        Write a transition only if the stored status is still the one it was
        validated against.

        Raises:
            ConflictException: If another request changed the status first
        """
        connection.apply(transition)
        for name, value in fields.items():
            setattr(connection, name, value)

        result = await Connection.find(
            Connection.id == connection.id,
            Connection.status == transition.current,
        ).update({"$set": {
            "status": transition.target.value,
            "updated_at": connection.updated_at,
            **fields,
        }})

        if result.matched_count == 0:
            stored = await Connection.get(connection.id)
            if stored is not None:
                ConnectionTransition(stored.status, transition.target)
            raise ConflictException("Connection was changed by another request. Please retry.")

    # =========================================================================
    # Requests
    # =========================================================================

    @staticmethod
    async def _open_request(
        patient: PatientProfile,
        doctor: DoctorProfile,
        connection_code: Optional[str] = None,
    ) -> Connection:
        """
        Create a PENDING record for the pair, or reopen a REVOKED one.

        Raises:
            ConflictException: If the pair is already ACTIVE or PENDING
        """
        patient_id, doctor_id = str(patient.id), str(doctor.id)

        existing = await Connection.find_one(
            Connection.doctor_id == doctor_id,
            Connection.patient_id == patient_id,
        )
        if existing:
            await ConnectionService._commit_transition(
                existing,
                ConnectionTransition(existing.status, ConnectionStatus.PENDING),
                connection_code=connection_code,
            )
            return existing

        connection = Connection(
            doctor_id=doctor_id,
            patient_id=patient_id,
            status=ConnectionStatus.PENDING,
            connection_code=connection_code,
        )
        try:
            await connection.insert()
        except DuplicateKeyError:
            raise ConflictException("Access request already pending.")
        return connection

    @staticmethod
    async def request_access(
        patient_id: str,
        doctor_id: str,
        hooks: Optional[PostCommitHooks] = None,
    ) -> Connection:
        """
        Patient asks a doctor for a connection.

        Raises:
            NotFoundException: If either profile does not exist
            ConflictException: If access is already granted or pending
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        patient = await get_document(PatientProfile, patient_id)
        if not patient:
            raise NotFoundException(f"Patient with ID {patient_id} not found")

        doctor = await get_document(DoctorProfile, doctor_id)
        if not doctor:
            raise NotFoundException(f"Doctor with ID {doctor_id} not found")

        connection = await ConnectionService._open_request(patient, doctor)
        logger.info(f"Connection {connection.id} requested by patient {patient_id} for doctor {doctor_id}")

        hooks.add(
            NotificationService.notify,
            doctor.user_id,
            NotificationType.CONNECTION_REQUEST,
            "New Connection Request",
            "A patient has requested to connect with you.",
            related_id=str(connection.id),
            action_url="/patients",
        )
        await hooks.run()
        return connection

    @staticmethod
    async def request_access_by_wallet(
        doctor_id: str,
        wallet_address: str,
        hooks: Optional[PostCommitHooks] = None,
    ) -> Connection:
        """
        Doctor asks for a connection to the patient owning a wallet.

        A fresh connection code is stored; the patient approves by signing it.

        Raises:
            NotFoundException: If no patient owns the wallet or the doctor is missing
            ConflictException: If access is already granted or pending
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        doctor = await get_document(DoctorProfile, doctor_id)
        if not doctor:
            raise NotFoundException(f"Doctor with ID {doctor_id} not found")

        try:
            patient = await PatientService.get_by_wallet(wallet_address)
        except NotFoundException:
            raise NotFoundException("No patient found with this wallet address")

        connection = await ConnectionService._open_request(
            patient, doctor, connection_code=generate_connection_code()
        )
        logger.info(f"Connection {connection.id} requested by doctor {doctor_id} for wallet {wallet_address}")

        hooks.add(
            NotificationService.notify,
            patient.user_id,
            NotificationType.CONNECTION_REQUEST,
            "Connection Request",
            "A doctor has requested to connect with your wallet address",
            related_id=str(connection.id),
            action_url="/settings",
        )
        await hooks.run()
        return connection

    # =========================================================================
    # Transitions
    # =========================================================================

    @staticmethod
    async def grant_access(
        doctor_id: str,
        patient_id: str,
        caller_user_id: str,
        hooks: Optional[PostCommitHooks] = None,
    ) -> Connection:
        """
        Doctor accepts a pending request.

        Raises:
            NotFoundException: If there is no record for the pair
            UnauthorizedException: If the caller does not own the doctor profile
            ConflictException: If the record is not PENDING
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        connection = await Connection.find_one(
            Connection.doctor_id == doctor_id,
            Connection.patient_id == patient_id,
        )
        if not connection:
            raise NotFoundException("Access request not found.")

        doctor = await get_document(DoctorProfile, doctor_id)
        if not doctor or doctor.user_id != caller_user_id:
            raise UnauthorizedException("You are not authorized to grant this access.")

        await ConnectionService._commit_transition(
            connection, ConnectionTransition(connection.status, ConnectionStatus.ACTIVE)
        )
        logger.info(f"✅ Connection {connection.id} granted by doctor {doctor_id}")

        patient = await get_document(PatientProfile, patient_id)
        if patient:
            hooks.add(
                NotificationService.notify,
                patient.user_id,
                NotificationType.CONNECTION_UPDATE,
                "Connection Approved",
                "Your doctor has accepted your connection request.",
                related_id=str(connection.id),
            )
        await hooks.run()
        return connection

    @staticmethod
    async def revoke_access(
        connection_id: str,
        caller_user_id: str,
        caller_role: Role,
        hooks: Optional[PostCommitHooks] = None,
    ) -> Connection:
        """
        Either party ends a connection.

        Raises:
            NotFoundException: If the record does not exist
            UnauthorizedException: If the caller is not that record's patient or doctor
            ConflictException: If already REVOKED
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        connection = await ConnectionService._get_connection(
            connection_id, "Doctor-Patient connection not found."
        )
        patient = await get_document(PatientProfile, connection.patient_id)
        doctor = await get_document(DoctorProfile, connection.doctor_id)

        is_patient = (
            caller_role in (Role.PATIENT, Role.USER)
            and patient is not None
            and patient.user_id == caller_user_id
        )
        is_doctor = (
            caller_role == Role.DOCTOR
            and doctor is not None
            and doctor.user_id == caller_user_id
        )
        if not is_patient and not is_doctor:
            raise UnauthorizedException("You are not authorized to revoke this access.")

        await ConnectionService._commit_transition(
            connection,
            ConnectionTransition(connection.status, ConnectionStatus.REVOKED),
            connection_code=None,
        )
        logger.info(f"Connection {connection.id} revoked by user {caller_user_id}")

        counterpart = doctor if is_patient else patient
        if counterpart:
            hooks.add(
                NotificationService.notify,
                counterpart.user_id,
                NotificationType.CONNECTION_UPDATE,
                "Connection Revoked",
                "A connection you were part of has been revoked.",
                related_id=str(connection.id),
            )
        await hooks.run()
        return connection

    @staticmethod
    async def _anchor_approval(connection: Connection) -> None:
        tx_hash = await run_in_threadpool(AnchorService.anchor, {
            "action": "connection_approved",
            "connection_id": str(connection.id),
            "doctor_id": connection.doctor_id,
            "patient_id": connection.patient_id,
            "approved_at": connection.updated_at.isoformat(),
            "signature_verified": True,
        })
        if tx_hash:
            connection.anchor_tx_hash = tx_hash
            await connection.save()

    @staticmethod
    async def verify_and_approve_connection(
        connection_id: str,
        signature: str,
        patient_id: str,
        hooks: Optional[PostCommitHooks] = None,
    ) -> Connection:
        """
        Patient approves a wallet-addressed request by signing its code.

        Raises:
            NotFoundException: If the record does not exist
            UnauthorizedException: If the record is not for this patient or
                the signature does not recover to the patient's wallet
            BadRequestException: If the record carries no connection code
            ConflictException: If the record is not PENDING
        """
        hooks = hooks if hooks is not None else PostCommitHooks()

        connection = await ConnectionService._get_connection(connection_id, "Connection request not found")

        if connection.patient_id != patient_id:
            raise UnauthorizedException("This connection request is not for you")

        if not connection.connection_code:
            raise BadRequestException("Connection code is missing")

        patient = await get_document(PatientProfile, patient_id)
        user = await AuthService.get_user_by_id(patient.user_id) if patient else None
        if not user or not user.wallet_address:
            raise UnauthorizedException("No wallet address is registered for this patient")

        if recover_wallet_address(connection.connection_code, signature) != user.wallet_address:
            logger.warning(f"Rejected approval signature for connection {connection_id}")
            raise UnauthorizedException("Invalid signature")

        await ConnectionService._commit_transition(
            connection,
            ConnectionTransition(connection.status, ConnectionStatus.ACTIVE),
            connection_code=None,
        )
        logger.info(f"✅ Connection {connection.id} approved by wallet signature")

        hooks.add(ConnectionService._anchor_approval, connection)
        doctor = await get_document(DoctorProfile, connection.doctor_id)
        if doctor:
            hooks.add(
                NotificationService.notify,
                doctor.user_id,
                NotificationType.CONNECTION_UPDATE,
                "Connection Approved",
                "A patient approved your connection request.",
                related_id=str(connection.id),
            )
        await hooks.run()
        return connection

    # =========================================================================
    # Listings
    # =========================================================================

    @staticmethod
    async def get_connections_for_patient(patient_user_id: str) -> List[Connection]:
        patient = await PatientService.get_by_user_id(patient_user_id)
        return await Connection.find(
            Connection.patient_id == str(patient.id)
        ).sort([("updated_at", -1)]).to_list()

    @staticmethod
    async def get_connections_for_doctor(doctor_user_id: str) -> List[Connection]:
        doctor = await DoctorService.get_by_user_id(doctor_user_id)
        return await Connection.find(
            Connection.doctor_id == str(doctor.id)
        ).sort([("updated_at", -1)]).to_list()

    @staticmethod
    async def get_my_patients(doctor_id: str) -> List[PatientProfile]:
        """Patient profiles with an ACTIVE connection to a doctor profile."""
        connections = await Connection.find(
            Connection.doctor_id == doctor_id,
            Connection.status == ConnectionStatus.ACTIVE,
        ).to_list()

        patients = []
        for connection in connections:
            patient = await get_document(PatientProfile, connection.patient_id)
            if patient:
                patients.append(patient)
        return patients

    @staticmethod
    async def active_patient_ids(doctor_id: str) -> List[str]:
        """Ids of the patient profiles actively connected to a doctor profile."""
        connections = await Connection.find(
            Connection.doctor_id == doctor_id,
            Connection.status == ConnectionStatus.ACTIVE,
        ).to_list()
        return [connection.patient_id for connection in connections]

    @staticmethod
    async def active_doctor_user_ids(patient_id: str) -> List[str]:
        """User ids of every doctor actively connected to a patient profile."""
        connections = await Connection.find(
            Connection.patient_id == patient_id,
            Connection.status == ConnectionStatus.ACTIVE,
        ).to_list()

        user_ids = []
        for connection in connections:
            doctor = await get_document(DoctorProfile, connection.doctor_id)
            if doctor:
                user_ids.append(doctor.user_id)
        return user_ids

    @staticmethod
    async def to_response(connection: Connection, include_parties: bool = False) -> ConnectionResponse:
        """Convert Connection document to ConnectionResponse."""
        doctor = patient = None
        if include_parties:
            doctor_profile = await get_document(DoctorProfile, connection.doctor_id)
            patient_profile = await get_document(PatientProfile, connection.patient_id)
            doctor = await DoctorService.to_response(doctor_profile) if doctor_profile else None
            patient = await PatientService.to_response(patient_profile) if patient_profile else None

        return ConnectionResponse(
            id=str(connection.id),
            doctor_id=connection.doctor_id,
            patient_id=connection.patient_id,
            status=connection.status,
            connection_code=connection.connection_code,
            anchor_tx_hash=connection.anchor_tx_hash,
            doctor=doctor,
            patient=patient,
            created_at=connection.created_at,
            updated_at=connection.updated_at,
        )
