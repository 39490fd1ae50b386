# Connections Feature - Router

from typing import List
from fastapi import APIRouter, Depends, status
from app.features.connections.schemas import (
    RequestByWalletRequest,
    VerifyApproveRequest,
    ConnectionResponse,
    ConnectionListResponse,
)
from app.features.connections.service import ConnectionService
from app.features.doctors.service import DoctorService
from app.features.patients.schemas import PatientResponse
from app.features.patients.service import PatientService
from app.features.auth.dependencies import require_roles
from app.features.auth.models import Role, User
from app.shared.exceptions import UnauthorizedException


router = APIRouter(prefix="/patient-doctors", tags=["Patient-Doctor Connections"])


async def _list_response(connections) -> ConnectionListResponse:
    return ConnectionListResponse(
        connections=[await ConnectionService.to_response(c, include_parties=True) for c in connections],
        total=len(connections),
    )


# =============================================================================
# PATIENT ACTIONS
# =============================================================================

@router.post(
    "/request/doctor/{doctor_id}",
    response_model=ConnectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_doctor_access(
    doctor_id: str,
    current_user: User = Depends(require_roles(Role.PATIENT, Role.USER))
):
    """
    Ask a doctor for access. A previously revoked connection is reopened.
    """
    patient = await PatientService.get_by_user_id(str(current_user.id))
    connection = await ConnectionService.request_access(str(patient.id), doctor_id)
    return await ConnectionService.to_response(connection)


@router.post("/verify-approve", response_model=ConnectionResponse)
async def verify_and_approve_connection(
    request: VerifyApproveRequest,
    current_user: User = Depends(require_roles(Role.PATIENT, Role.USER))
):
    """
    Approve a wallet-addressed request by signing its connection code.
    """
    patient = await PatientService.get_by_user_id(str(current_user.id))
    connection = await ConnectionService.verify_and_approve_connection(
        request.connection_id, request.signature, str(patient.id)
    )
    return await ConnectionService.to_response(connection)


@router.get("/patient/my-connections", response_model=ConnectionListResponse)
async def get_connections_for_patient(
    current_user: User = Depends(require_roles(Role.PATIENT, Role.USER))
):
    connections = await ConnectionService.get_connections_for_patient(str(current_user.id))
    return await _list_response(connections)


# =============================================================================
# DOCTOR ACTIONS
# =============================================================================

@router.patch("/grant/patient/{patient_id}/doctor/{doctor_id}", response_model=ConnectionResponse)
async def grant_doctor_access(
    patient_id: str,
    doctor_id: str,
    current_user: User = Depends(require_roles(Role.DOCTOR))
):
    """
    Accept a pending request addressed to the caller's doctor profile.
    """
    doctor = await DoctorService.find_by_user_id(str(current_user.id))
    if not doctor or str(doctor.id) != doctor_id:
        raise UnauthorizedException("Doctor ID mismatch or doctor profile not found.")

    connection = await ConnectionService.grant_access(doctor_id, patient_id, str(current_user.id))
    return await ConnectionService.to_response(connection)


@router.post(
    "/request-by-wallet",
    response_model=ConnectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_access_by_wallet(
    request: RequestByWalletRequest,
    current_user: User = Depends(require_roles(Role.DOCTOR))
):
    """
    Ask the patient owning a wallet for access; they approve by signature.
    """
    doctor = await DoctorService.get_by_user_id(str(current_user.id))
    connection = await ConnectionService.request_access_by_wallet(
        str(doctor.id), request.patient_wallet_address
    )
    return await ConnectionService.to_response(connection)


@router.get("/doctor/my-connections", response_model=ConnectionListResponse)
async def get_connections_for_doctor(
    current_user: User = Depends(require_roles(Role.DOCTOR))
):
    connections = await ConnectionService.get_connections_for_doctor(str(current_user.id))
    return await _list_response(connections)


@router.get("/doctor/my-patients", response_model=List[PatientResponse])
async def get_my_patients(
    current_user: User = Depends(require_roles(Role.DOCTOR))
):
    """
    Patients with an ACTIVE connection to the caller.
    """
    doctor = await DoctorService.get_by_user_id(str(current_user.id))
    patients = await ConnectionService.get_my_patients(str(doctor.id))
    return [await PatientService.to_response(p) for p in patients]


# =============================================================================
# EITHER PARTY
# =============================================================================

@router.patch("/revoke/{connection_id}", response_model=ConnectionResponse)
async def revoke_doctor_access(
    connection_id: str,
    current_user: User = Depends(require_roles(Role.PATIENT, Role.USER, Role.DOCTOR))
):
    connection = await ConnectionService.revoke_access(
        connection_id, str(current_user.id), current_user.role
    )
    return await ConnectionService.to_response(connection)
