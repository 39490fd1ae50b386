"""Doctor-patient connection lifecycle."""

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from app.core.blockchain import AnchorService
from app.core.side_effects import PostCommitHooks
from app.features.connections.models import Connection
from app.features.connections.service import ConnectionService
from app.features.health_data.models import ReadingType
from app.features.health_data.schemas import CreateReadingRequest
from app.features.health_data.service import HealthDataService
from app.features.connections.state import (
    ConnectionStatus,
    ConnectionTransition,
    can_transition,
)
from app.features.notifications.models import Notification, NotificationType
from app.shared.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
)


def sign(message: str, key) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=key)
    return Web3.to_hex(signed.signature)


# === Transition table ===

def test_allowed_transitions():
    assert can_transition(ConnectionStatus.PENDING, ConnectionStatus.ACTIVE)
    assert can_transition(ConnectionStatus.PENDING, ConnectionStatus.REVOKED)
    assert can_transition(ConnectionStatus.ACTIVE, ConnectionStatus.REVOKED)
    assert can_transition(ConnectionStatus.REVOKED, ConnectionStatus.PENDING)


@pytest.mark.parametrize(
    "current, target, message",
    [
        (ConnectionStatus.ACTIVE, ConnectionStatus.PENDING, "Access already granted."),
        (ConnectionStatus.PENDING, ConnectionStatus.PENDING, "Access request already pending."),
        (ConnectionStatus.REVOKED, ConnectionStatus.REVOKED, "Access already revoked."),
        (ConnectionStatus.REVOKED, ConnectionStatus.ACTIVE, "Request is not in PENDING state (current state: REVOKED)."),
    ],
)
def test_rejected_transitions_raise_conflict(current, target, message):
    with pytest.raises(ConflictException) as exc:
        ConnectionTransition(current, target)
    assert exc.value.detail == message


# === Request / grant / revoke ===

async def test_request_then_grant_activates(make_patient, make_doctor):
    patient_user, patient = await make_patient()
    doctor_user, doctor = await make_doctor()

    connection = await ConnectionService.request_access(str(patient.id), str(doctor.id))
    assert connection.status == ConnectionStatus.PENDING
    assert not await ConnectionService.doctor_user_has_access(str(doctor_user.id), str(patient.id))

    granted = await ConnectionService.grant_access(str(doctor.id), str(patient.id), str(doctor_user.id))
    assert granted.status == ConnectionStatus.ACTIVE
    assert await ConnectionService.doctor_user_has_access(str(doctor_user.id), str(patient.id))

    doctor_inbox = await Notification.find(Notification.user_id == str(doctor_user.id)).to_list()
    patient_inbox = await Notification.find(Notification.user_id == str(patient_user.id)).to_list()
    assert [n.type for n in doctor_inbox] == [NotificationType.CONNECTION_REQUEST]
    assert [n.title for n in patient_inbox] == ["Connection Approved"]


async def test_duplicate_request_conflicts(make_patient, make_doctor):
    _, patient = await make_patient()
    _, doctor = await make_doctor()

    await ConnectionService.request_access(str(patient.id), str(doctor.id))
    with pytest.raises(ConflictException):
        await ConnectionService.request_access(str(patient.id), str(doctor.id))

    assert await Connection.find_all().count() == 1


async def test_request_for_active_pair_conflicts(make_patient, make_doctor, connect):
    _, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    await connect(patient, doctor_user, doctor)

    with pytest.raises(ConflictException) as exc:
        await ConnectionService.request_access(str(patient.id), str(doctor.id))
    assert exc.value.detail == "Access already granted."


async def test_request_with_unknown_doctor_is_not_found(make_patient):
    _, patient = await make_patient()
    with pytest.raises(NotFoundException):
        await ConnectionService.request_access(str(patient.id), "665f1c2e8b3e4a0012345690")


async def test_only_the_doctor_can_grant(make_patient, make_doctor):
    _, patient = await make_patient()
    _, doctor = await make_doctor()
    other_user, _ = await make_doctor(name="Dr. Other")

    await ConnectionService.request_access(str(patient.id), str(doctor.id))
    with pytest.raises(UnauthorizedException):
        await ConnectionService.grant_access(str(doctor.id), str(patient.id), str(other_user.id))


async def test_revoke_then_request_again_reuses_record(make_patient, make_doctor, connect):
    patient_user, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    connection = await connect(patient, doctor_user, doctor)

    revoked = await ConnectionService.revoke_access(
        str(connection.id), str(patient_user.id), patient_user.role
    )
    assert revoked.status == ConnectionStatus.REVOKED
    assert not await ConnectionService.doctor_user_has_access(str(doctor_user.id), str(patient.id))

    with pytest.raises(ConflictException):
        await ConnectionService.revoke_access(str(connection.id), str(patient_user.id), patient_user.role)

    reopened = await ConnectionService.request_access(str(patient.id), str(doctor.id))
    assert reopened.id == connection.id
    assert reopened.status == ConnectionStatus.PENDING


async def test_outsider_cannot_revoke(make_patient, make_doctor, connect):
    _, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    stranger, _ = await make_patient(name="Someone Else")
    connection = await connect(patient, doctor_user, doctor)

    with pytest.raises(UnauthorizedException):
        await ConnectionService.revoke_access(str(connection.id), str(stranger.id), stranger.role)


async def test_revoke_from_a_stale_read_conflicts(make_patient, make_doctor, connect, monkeypatch):
    patient_user, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    connection = await connect(patient, doctor_user, doctor)
    stale = await Connection.get(connection.id)

    await ConnectionService.revoke_access(str(connection.id), str(patient_user.id), patient_user.role)
    await ConnectionService.request_access(str(patient.id), str(doctor.id))

    async def loaded_before_the_change(connection_id, message):
        return stale

    monkeypatch.setattr(ConnectionService, "_get_connection", staticmethod(loaded_before_the_change))
    with pytest.raises(ConflictException):
        await ConnectionService.revoke_access(str(connection.id), str(doctor_user.id), doctor_user.role)

    stored = await Connection.get(connection.id)
    assert stored.status == ConnectionStatus.PENDING


async def test_concurrent_revokes_apply_once(make_patient, make_doctor, connect, monkeypatch):
    patient_user, patient = await make_patient()
    doctor_user, doctor = await make_doctor()
    connection = await connect(patient, doctor_user, doctor)
    first = await Connection.get(connection.id)
    second = await Connection.get(connection.id)
    copies = iter([first, second])

    async def same_snapshot(connection_id, message):
        return next(copies)

    monkeypatch.setattr(ConnectionService, "_get_connection", staticmethod(same_snapshot))
    await ConnectionService.revoke_access(str(connection.id), str(patient_user.id), patient_user.role)
    with pytest.raises(ConflictException) as exc:
        await ConnectionService.revoke_access(str(connection.id), str(doctor_user.id), doctor_user.role)

    assert exc.value.detail == "Access already revoked."
    revoked = await Notification.find(Notification.title == "Connection Revoked").count()
    assert revoked == 1


async def test_my_patients_lists_only_active(make_patient, make_doctor, connect):
    _, connected = await make_patient()
    _, pending = await make_patient(name="Pending Patient")
    doctor_user, doctor = await make_doctor()

    await connect(connected, doctor_user, doctor)
    await ConnectionService.request_access(str(pending.id), str(doctor.id))

    patients = await ConnectionService.get_my_patients(str(doctor.id))
    assert [p.id for p in patients] == [connected.id]


# === Wallet-addressed requests ===

async def test_wallet_request_approved_by_signature(make_patient, make_doctor, monkeypatch):
    account = Account.create()
    _, patient = await make_patient(wallet_address=account.address.lower())
    doctor_user, doctor = await make_doctor()

    anchored = []
    monkeypatch.setattr(
        AnchorService, "anchor", classmethod(lambda cls, payload: anchored.append(payload) or "0xfeed")
    )

    connection = await ConnectionService.request_access_by_wallet(str(doctor.id), account.address)
    assert connection.status == ConnectionStatus.PENDING
    assert connection.connection_code

    signature = sign(connection.connection_code, account.key)
    approved = await ConnectionService.verify_and_approve_connection(
        str(connection.id), signature, str(patient.id)
    )

    assert approved.status == ConnectionStatus.ACTIVE
    assert approved.connection_code is None
    assert approved.anchor_tx_hash == "0xfeed"
    assert anchored[0]["action"] == "connection_approved"
    assert await ConnectionService.doctor_user_has_access(str(doctor_user.id), str(patient.id))


async def test_wallet_approval_rejects_foreign_signature(make_patient, make_doctor):
    owner = Account.create()
    impostor = Account.create()
    _, patient = await make_patient(wallet_address=owner.address.lower())
    _, doctor = await make_doctor()

    connection = await ConnectionService.request_access_by_wallet(str(doctor.id), owner.address)

    with pytest.raises(UnauthorizedException):
        await ConnectionService.verify_and_approve_connection(
            str(connection.id), sign(connection.connection_code, impostor.key), str(patient.id)
        )

    stored = await Connection.get(connection.id)
    assert stored.status == ConnectionStatus.PENDING


async def test_wallet_approval_needs_a_code(make_patient, make_doctor):
    account = Account.create()
    _, patient = await make_patient(wallet_address=account.address.lower())
    _, doctor = await make_doctor()

    connection = await ConnectionService.request_access(str(patient.id), str(doctor.id))
    with pytest.raises(BadRequestException):
        await ConnectionService.verify_and_approve_connection(
            str(connection.id), sign("anything", account.key), str(patient.id)
        )


async def test_wallet_request_for_unknown_wallet(make_doctor):
    _, doctor = await make_doctor()
    with pytest.raises(NotFoundException):
        await ConnectionService.request_access_by_wallet(str(doctor.id), Account.create().address)


async def test_anchor_failure_keeps_approval(make_patient, make_doctor, monkeypatch):
    account = Account.create()
    _, patient = await make_patient(wallet_address=account.address.lower())
    _, doctor = await make_doctor()

    def explode(cls, payload):
        raise RuntimeError("rpc down")

    monkeypatch.setattr(AnchorService, "anchor", classmethod(explode))

    connection = await ConnectionService.request_access_by_wallet(str(doctor.id), account.address)
    hooks = PostCommitHooks()
    approved = await ConnectionService.verify_and_approve_connection(
        str(connection.id), sign(connection.connection_code, account.key), str(patient.id), hooks=hooks
    )

    assert approved.status == ConnectionStatus.ACTIVE
    assert approved.anchor_tx_hash is None
    assert len(hooks.failures) == 1
    assert "rpc down" in hooks.failures[0].error


async def test_wallet_approval_gates_doctor_reads(make_patient, make_doctor):
    account = Account.create()
    patient_user, patient = await make_patient(wallet_address=account.address.lower())
    doctor_user, doctor = await make_doctor()
    other_doctor_user, _ = await make_doctor(name="Dr. Other")

    await HealthDataService.submit_reading(
        patient_user, CreateReadingRequest(type=ReadingType.HEART_RATE, value=72, unit="BPM")
    )

    connection = await ConnectionService.request_access_by_wallet(str(doctor.id), account.address)
    with pytest.raises(ForbiddenException):
        await HealthDataService.get_patient_readings(str(doctor_user.id), str(patient_user.id))

    await ConnectionService.verify_and_approve_connection(
        str(connection.id), sign(connection.connection_code, account.key), str(patient.id)
    )

    readings = await HealthDataService.get_patient_readings(str(doctor_user.id), str(patient_user.id))
    assert [r.value for r in readings.data] == [72]

    with pytest.raises(ForbiddenException):
        await HealthDataService.get_patient_readings(str(other_doctor_user.id), str(patient_user.id))
