# Health Data Feature - Router

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from app.features.health_data.models import ReadingType
from app.features.health_data.schemas import (
    CreateReadingRequest,
    BatchReadingsRequest,
    ReadingResponse,
    ReadingListResponse,
    SampleDataResponse,
    CreateVitalSignRequest,
    VitalSignResponse,
    VitalSignListResponse,
    LatestVitalsResponse,
)
from app.features.health_data.service import HealthDataService
from app.features.connections.service import ConnectionService
from app.features.doctors.service import DoctorService
from app.features.patients.schemas import PatientResponse
from app.features.patients.service import PatientService
from app.features.auth.dependencies import get_current_user, require_roles
from app.features.auth.models import Role, User
from app.shared.exceptions import NotFoundException


router = APIRouter(prefix="/health-data", tags=["Health Data"])


# =============================================================================
# PUBLIC
# =============================================================================

@router.get("/public", response_model=ReadingListResponse)
async def get_public_sample():
    """
    Synthetic sample readings for unauthenticated demos.
    """
    return HealthDataService.public_sample()


# =============================================================================
# PATIENT READINGS
# =============================================================================

@router.post("", response_model=ReadingResponse, status_code=status.HTTP_201_CREATED)
async def submit_reading(
    request: CreateReadingRequest,
    current_user: User = Depends(get_current_user)
):
    """
    Submit one reading. Abnormal values alert connected doctors.
    """
    reading = await HealthDataService.submit_reading(current_user, request)
    return HealthDataService.reading_to_response(reading)


@router.post("/batch", response_model=List[ReadingResponse], status_code=status.HTTP_201_CREATED)
async def submit_batch(
    request: BatchReadingsRequest,
    current_user: User = Depends(get_current_user)
):
    """
    Submit several readings at once. Either all are stored or none.
    """
    readings = await HealthDataService.submit_batch(current_user, request.readings)
    return [HealthDataService.reading_to_response(r) for r in readings]


@router.get("", response_model=ReadingListResponse)
async def get_my_readings(
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    type: Optional[ReadingType] = None,
    current_user: User = Depends(get_current_user)
):
    """
    The caller's readings, newest first.
    """
    return await HealthDataService.get_own_readings(str(current_user.id), page, limit, type)


@router.post("/sample-data", response_model=SampleDataResponse, status_code=status.HTTP_201_CREATED)
async def create_sample_data(current_user: User = Depends(get_current_user)):
    """
    Store one normal reading of every type for the caller.
    """
    readings = await HealthDataService.create_sample_data(current_user)
    return SampleDataResponse(message="Sample data created successfully", count=len(readings))


# =============================================================================
# DOCTOR VIEWS
# =============================================================================

@router.get("/patients", response_model=List[PatientResponse])
async def get_my_patients(current_user: User = Depends(require_roles(Role.DOCTOR))):
    """
    Patients actively connected to the calling doctor.
    """
    doctor = await DoctorService.get_by_user_id(str(current_user.id))
    patients = await ConnectionService.get_my_patients(str(doctor.id))
    return [await PatientService.to_response(p) for p in patients]


@router.get("/patients/{patient_user_id}", response_model=ReadingListResponse)
async def get_patient_readings(
    patient_user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    type: Optional[ReadingType] = None,
    current_user: User = Depends(require_roles(Role.DOCTOR))
):
    """
    A connected patient's readings, newest first.
    """
    return await HealthDataService.get_patient_readings(
        str(current_user.id), patient_user_id, page, limit, type
    )


# =============================================================================
# LATEST VITALS
# =============================================================================

@router.get("/latest-vitals", response_model=LatestVitalsResponse)
async def get_my_latest_vitals(current_user: User = Depends(get_current_user)):
    return await HealthDataService.get_latest_vitals(str(current_user.id))


@router.get("/latest-vitals/{patient_user_id}", response_model=LatestVitalsResponse)
async def get_latest_vitals(
    patient_user_id: str,
    current_user: User = Depends(get_current_user)
):
    """
    Latest vitals of a patient: themselves, a connected doctor, or an admin.
    """
    if patient_user_id != str(current_user.id):
        patient = await PatientService.find_by_user_id(patient_user_id)
        if patient is None:
            raise NotFoundException("Patient profile not found")
        await HealthDataService.ensure_can_read(current_user, patient)

    return await HealthDataService.get_latest_vitals(patient_user_id)


# =============================================================================
# VITAL SIGNS
# =============================================================================

@router.post("/vital-signs", response_model=VitalSignResponse, status_code=status.HTTP_201_CREATED)
async def record_vital_sign(
    request: CreateVitalSignRequest,
    current_user: User = Depends(require_roles(Role.PATIENT, Role.USER, Role.DOCTOR))
):
    """
    Record a structured vital-sign snapshot.
    """
    vital_sign = await HealthDataService.record_vital_sign(current_user, request)
    return HealthDataService.vital_sign_to_response(vital_sign)


@router.get("/vital-signs/patient/{patient_id}", response_model=VitalSignListResponse)
async def list_vital_signs(
    patient_id: str,
    current_user: User = Depends(get_current_user)
):
    """
    Snapshots of a patient profile, newest first.
    """
    patient = await PatientService.get_by_id(patient_id)
    await HealthDataService.ensure_can_read(current_user, patient)

    vital_signs = await HealthDataService.list_vital_signs(patient_id)
    return VitalSignListResponse(
        vital_signs=[HealthDataService.vital_sign_to_response(v) for v in vital_signs],
        total=len(vital_signs),
    )
