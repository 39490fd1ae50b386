# Patient Profiles Feature

from app.features.patients.models import PatientProfile
from app.features.patients.router import router
from app.features.patients.service import PatientService

__all__ = ["PatientProfile", "router", "PatientService"]
