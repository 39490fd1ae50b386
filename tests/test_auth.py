"""Wallet login, role onboarding and the identity verifier chain."""

from datetime import datetime, timedelta

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from eth_account import Account
from eth_account.messages import encode_defunct
from jose import jwt
from web3 import Web3

from app.config import settings
from app.core.identity import (
    ClerkTokenVerifier,
    IdentityResolver,
    TokenVerificationError,
    TokenVerifier,
    WalletSessionVerifier,
)
from app.core.security import create_access_token
from app.features.auth.models import Role, User, WalletNonce
from app.features.auth.schemas import RegisterRequest
from app.features.auth.service import AuthService
from app.shared.exceptions import BadRequestException, ConflictException, CredentialsException


def sign(message: str, key) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=key)
    return Web3.to_hex(signed.signature)


# === Wallet login ===

async def test_wallet_login_creates_user_and_session():
    account = Account.create()
    nonce = await AuthService.generate_wallet_nonce(account.address)

    user, token = await AuthService.wallet_login(account.address, sign(nonce.message, account.key), nonce.message)

    assert user.wallet_address == account.address.lower()
    assert user.role == Role.USER

    resolved = await IdentityResolver([WalletSessionVerifier()]).resolve(token)
    assert resolved.id == user.id


async def test_wallet_challenge_cannot_be_reused():
    account = Account.create()
    nonce = await AuthService.generate_wallet_nonce(account.address)
    signature = sign(nonce.message, account.key)

    await AuthService.wallet_login(account.address, signature, nonce.message)
    with pytest.raises(CredentialsException):
        await AuthService.wallet_login(account.address, signature, nonce.message)


async def test_expired_wallet_challenge_is_rejected():
    account = Account.create()
    nonce = await AuthService.generate_wallet_nonce(account.address)
    nonce.expires_at = datetime.utcnow() - timedelta(minutes=1)
    await nonce.save()

    with pytest.raises(CredentialsException):
        await AuthService.wallet_login(account.address, sign(nonce.message, account.key), nonce.message)


async def test_signature_from_another_wallet_is_rejected():
    account = Account.create()
    impostor = Account.create()
    nonce = await AuthService.generate_wallet_nonce(account.address)

    with pytest.raises(CredentialsException):
        await AuthService.wallet_login(account.address, sign(nonce.message, impostor.key), nonce.message)

    stored = await WalletNonce.get(nonce.id)
    assert stored.used is False


async def test_wallet_login_reuses_existing_account(make_user):
    account = Account.create()
    existing = await make_user(Role.PATIENT, wallet_address=account.address.lower())
    nonce = await AuthService.generate_wallet_nonce(account.address)

    user, _ = await AuthService.wallet_login(account.address, sign(nonce.message, account.key), nonce.message)
    assert user.id == existing.id
    assert await User.find_all().count() == 1


# === Registration and roles ===

async def test_register_rejects_duplicate_email():
    await AuthService.register(RegisterRequest(email="jane@example.com", name="Jane"))
    with pytest.raises(ConflictException):
        await AuthService.register(RegisterRequest(email="jane@example.com", name="Other Jane"))


def test_admin_cannot_be_self_assigned():
    with pytest.raises(ValueError):
        RegisterRequest(email="root@example.com", role=Role.ADMIN)


async def test_role_is_chosen_once(make_user):
    user = await make_user(Role.USER)
    await AuthService.update_role(user, Role.DOCTOR)
    assert user.role == Role.DOCTOR

    with pytest.raises(ConflictException):
        await AuthService.update_role(user, Role.PATIENT)
    with pytest.raises(BadRequestException):
        await AuthService.update_role(await make_user(Role.USER), Role.ADMIN)


# === Verifier chain ===

class RejectingVerifier(TokenVerifier):
    name = "rejecting"

    def __init__(self):
        self.seen = []

    def verify(self, token):
        self.seen.append(token)
        raise TokenVerificationError("not mine")


async def test_chain_falls_through_to_next_verifier(make_user):
    user = await make_user(Role.PATIENT)
    first = RejectingVerifier()
    token = create_access_token({"sub": str(user.id), "type": "wallet"})

    resolved = await IdentityResolver([first, WalletSessionVerifier()]).resolve(token)

    assert first.seen == [token]
    assert resolved.id == user.id


async def test_non_wallet_session_token_is_rejected(make_user):
    user = await make_user(Role.PATIENT)
    token = create_access_token({"sub": str(user.id), "type": "refresh"})
    with pytest.raises(CredentialsException):
        await IdentityResolver([WalletSessionVerifier()]).resolve(token)


async def test_inactive_user_is_rejected(make_user):
    user = await make_user(Role.PATIENT, is_active=False)
    token = create_access_token({"sub": str(user.id), "type": "wallet"})
    with pytest.raises(CredentialsException) as exc:
        await IdentityResolver([WalletSessionVerifier()]).resolve(token)
    assert exc.value.detail == "Inactive user"


def test_unconfigured_providers_are_skipped(monkeypatch):
    monkeypatch.setattr(settings, "FIREBASE_PROJECT_ID", None)
    monkeypatch.setattr(settings, "CLERK_JWT_KEY", None)
    assert [v.name for v in IdentityResolver().verifiers] == ["wallet"]


@pytest.fixture
def clerk_token(monkeypatch):
    """Configure a Clerk signing key and return a token factory for it."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    monkeypatch.setattr(settings, "CLERK_JWT_KEY", public_pem)
    monkeypatch.setattr(settings, "CLERK_ISSUER", "https://clerk.example.com")

    def _token(sub: str, **claims) -> str:
        return jwt.encode(
            {
                "sub": sub,
                "iss": "https://clerk.example.com",
                "exp": datetime.utcnow() + timedelta(minutes=5),
                **claims,
            },
            private_pem,
            algorithm="RS256",
        )

    return _token


async def test_clerk_token_links_existing_email(make_user, clerk_token):
    existing = await make_user(Role.DOCTOR, email="doc@example.com")
    token = clerk_token("user_2abc", email="doc@example.com", email_verified=True)

    resolved = await IdentityResolver([ClerkTokenVerifier()]).resolve(token)

    assert resolved.id == existing.id
    assert resolved.clerk_id == "user_2abc"


async def test_clerk_token_with_unverified_email_gets_its_own_account(make_user, clerk_token):
    existing = await make_user(Role.DOCTOR, email="doc@example.com")
    token = clerk_token("user_2abc", email="doc@example.com")

    resolved = await IdentityResolver([ClerkTokenVerifier()]).resolve(token)

    assert resolved.id != existing.id
    assert resolved.email is None
    assert (await User.get(existing.id)).clerk_id is None


async def test_registered_email_cannot_capture_a_clerk_sign_in(clerk_token):
    squatter = Account.create()
    await AuthService.register(
        RegisterRequest(email="victim@example.com", wallet_address=squatter.address, role=Role.PATIENT)
    )
    token = clerk_token("user_victim", email="victim@example.com", email_verified=True)

    resolved = await IdentityResolver([ClerkTokenVerifier()]).resolve(token)

    assert resolved.wallet_address is None
    assert resolved.role == Role.USER
    squatted = await User.find_one(User.wallet_address == squatter.address.lower())
    assert squatted.clerk_id is None


def test_register_does_not_accept_a_clerk_id():
    request = RegisterRequest(email="jane@example.com", clerk_id="user_2abc")
    assert "clerk_id" not in request.model_dump()
