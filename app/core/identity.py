"""
Bearer token resolution.

A request token is offered to an ordered chain of verifiers. The first
verifier that both accepts the token and maps it to an active user wins.
Verifiers whose configuration is missing are skipped.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import requests
from fastapi.concurrency import run_in_threadpool
from jose import JWTError, jwt

from app.config import settings
from app.core.logging import logger
from app.core.security import decode_token
from app.features.auth.models import User
from app.features.auth.service import AuthService
from app.shared.exceptions import CredentialsException


def public_paths() -> frozenset:
    """Paths served without a bearer token."""
    prefix = settings.API_V1_PREFIX.rstrip("/")
    return frozenset(
        {
            "/",
            "/health",
            "/ready",
            f"{prefix}/auth/register",
            f"{prefix}/auth/login",
            f"{prefix}/auth/web3/nonce",
            f"{prefix}/health-data/public",
        }
    )


def is_public_path(path: str) -> bool:
    normalized = path.rstrip("/") or "/"
    return normalized in public_paths()


class TokenVerificationError(Exception):
    """Raised by a verifier that does not accept a token."""


@dataclass
class VerifiedIdentity:
    """Claims extracted from an accepted token."""

    provider: str
    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    claims: Dict = field(default_factory=dict)


class TokenVerifier:
    """Base class for one identity provider."""

    name = "base"

    @property
    def enabled(self) -> bool:
        return True

    def verify(self, token: str) -> VerifiedIdentity:
        raise NotImplementedError

    async def load_user(self, identity: VerifiedIdentity) -> Optional[User]:
        raise NotImplementedError


class FirebaseTokenVerifier(TokenVerifier):
    """Firebase ID tokens signed with Google's rotating x509 certificates."""

    name = "firebase"

    _certs: Dict[str, str] = {}
    _certs_expire_at: float = 0.0

    @property
    def enabled(self) -> bool:
        return bool(settings.FIREBASE_PROJECT_ID)

    @classmethod
    def _public_certs(cls) -> Dict[str, str]:
        now = time.monotonic()
        if cls._certs and now < cls._certs_expire_at:
            return cls._certs

        try:
            response = requests.get(settings.FIREBASE_CERTS_URL, timeout=10)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TokenVerificationError(f"Unable to fetch Firebase certificates: {e}")

        cls._certs = response.json()
        cls._certs_expire_at = now + settings.FIREBASE_CERTS_TTL_SECONDS
        return cls._certs

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise TokenVerificationError(str(e))

        if header.get("alg") != "RS256" or not header.get("kid"):
            raise TokenVerificationError("Not a Firebase ID token")

        cert = self._public_certs().get(header["kid"])
        if cert is None:
            raise TokenVerificationError("Unknown Firebase signing key")

        project_id = settings.FIREBASE_PROJECT_ID
        try:
            claims = jwt.decode(
                token,
                cert,
                algorithms=["RS256"],
                audience=project_id,
                issuer=f"https://securetoken.google.com/{project_id}",
            )
        except JWTError as e:
            raise TokenVerificationError(str(e))

        subject = claims.get("sub") or claims.get("user_id")
        if not subject:
            raise TokenVerificationError("Firebase token has no subject")

        return VerifiedIdentity(
            provider=self.name,
            subject=subject,
            email=claims.get("email"),
            name=claims.get("name"),
            claims=claims,
        )

    async def load_user(self, identity: VerifiedIdentity) -> Optional[User]:
        return await AuthService.find_or_create_firebase_user(
            identity.subject, email=identity.email, name=identity.name
        )


class ClerkTokenVerifier(TokenVerifier):
    """Clerk session tokens verified against the instance's PEM public key."""

    name = "clerk"

    @property
    def enabled(self) -> bool:
        return bool(settings.CLERK_JWT_KEY)

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            claims = jwt.decode(
                token,
                settings.CLERK_JWT_KEY,
                algorithms=["RS256"],
                issuer=settings.CLERK_ISSUER,
                options={"verify_aud": False},
            )
        except JWTError as e:
            raise TokenVerificationError(str(e))

        if not claims.get("sub"):
            raise TokenVerificationError("Clerk token has no subject")

        return VerifiedIdentity(
            provider=self.name,
            subject=claims["sub"],
            email=claims.get("email"),
            name=claims.get("name"),
            claims=claims,
        )

    async def load_user(self, identity: VerifiedIdentity) -> Optional[User]:
        return await AuthService.find_or_create_clerk_user(
            identity.subject,
            email=identity.email,
            name=identity.name,
            email_verified=identity.claims.get("email_verified") is True,
        )


class WalletSessionVerifier(TokenVerifier):
    """Tokens this API issues after a successful wallet login."""

    name = "wallet"

    def verify(self, token: str) -> VerifiedIdentity:
        claims = decode_token(token)
        if claims is None or claims.get("type") != "wallet" or not claims.get("sub"):
            raise TokenVerificationError("Not a wallet session token")

        return VerifiedIdentity(provider=self.name, subject=claims["sub"], claims=claims)

    async def load_user(self, identity: VerifiedIdentity) -> Optional[User]:
        return await AuthService.get_user_by_id(identity.subject)


def default_verifiers() -> List[TokenVerifier]:
    return [FirebaseTokenVerifier(), ClerkTokenVerifier(), WalletSessionVerifier()]


class IdentityResolver:
    """Resolves a bearer token to a user through an ordered verifier chain."""

    def __init__(self, verifiers: Optional[Sequence[TokenVerifier]] = None):
        self._verifiers = list(verifiers) if verifiers is not None else None

    @property
    def verifiers(self) -> List[TokenVerifier]:
        verifiers = self._verifiers if self._verifiers is not None else default_verifiers()
        return [verifier for verifier in verifiers if verifier.enabled]

    async def resolve(self, token: str) -> User:
        """
        Resolve a bearer token.

        Raises:
            CredentialsException: If no verifier maps the token to an active user
        """
        for verifier in self.verifiers:
            try:
                identity = await run_in_threadpool(verifier.verify, token)
            except TokenVerificationError as e:
                logger.debug(f"{verifier.name} verifier rejected token: {e}")
                continue

            user = await verifier.load_user(identity)
            if user is None:
                logger.warning(f"{verifier.name} token for unknown subject {identity.subject}")
                continue
            if not user.is_active:
                raise CredentialsException("Inactive user")
            return user

        raise CredentialsException("Invalid authentication credentials")


identity_resolver = IdentityResolver()
