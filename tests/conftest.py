"""Shared fixtures: an in-memory database and profile factories."""

import os

os.environ.setdefault("MONGODB_TRANSACTIONS", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from app.database import document_models
from app.core.blockchain import AnchorService
from app.features.auth.models import Role, User
from app.features.doctors.models import DoctorProfile, Specialization
from app.features.patients.models import PatientProfile


@pytest.fixture(autouse=True)
async def database():
    client = AsyncMongoMockClient()
    await init_beanie(database=client["test_db"], document_models=document_models())
    yield client
    client.close()


@pytest.fixture(autouse=True)
def no_chain(monkeypatch):
    """Anchoring is disabled unless a test patches it in."""
    monkeypatch.setattr(AnchorService, "anchor", classmethod(lambda cls, payload: None))
    monkeypatch.setattr(AnchorService, "verify", classmethod(lambda cls, tx_hash, payload: False))


@pytest.fixture
def make_user():
    async def _make_user(role: Role = Role.USER, **fields) -> User:
        user = User(role=role, **fields)
        await user.insert()
        return user

    return _make_user


@pytest.fixture
def make_patient(make_user):
    async def _make_patient(name: str = "Pat Patient", **user_fields):
        user = await make_user(Role.PATIENT, name=name, **user_fields)
        profile = PatientProfile(user_id=str(user.id))
        await profile.insert()
        return user, profile

    return _make_patient


@pytest.fixture
def make_doctor(make_user):
    async def _make_doctor(name: str = "Dr. Doc", **user_fields):
        user = await make_user(Role.DOCTOR, name=name, **user_fields)
        profile = DoctorProfile(
            user_id=str(user.id),
            specialization=Specialization.CARDIOLOGY,
            license_number=f"LIC-{user.id}",
        )
        await profile.insert()
        return user, profile

    return _make_doctor


@pytest.fixture
def connect():
    """Open and grant a connection between two profiles."""
    from app.features.connections.service import ConnectionService

    async def _connect(patient, doctor_user, doctor):
        await ConnectionService.request_access(str(patient.id), str(doctor.id))
        return await ConnectionService.grant_access(
            str(doctor.id), str(patient.id), str(doctor_user.id)
        )

    return _connect
