from datetime import datetime, timedelta
from typing import Optional
from app.features.auth.models import Role, User, WalletNonce
from app.features.auth.schemas import RegisterRequest, UserResponse
from app.shared.models import get_document
from app.config import settings
from app.core.security import (
    create_access_token,
    generate_wallet_login_message,
    normalize_wallet_address,
    recover_wallet_address,
)
from app.shared.exceptions import (
    BadRequestException,
    ConflictException,
    CredentialsException,
    NotFoundException,
)
from app.core.logging import logger


class AuthService:
    """Authentication service for handling auth business logic."""

    @staticmethod
    async def register(register_data: RegisterRequest) -> User:
        """
        Register a new user.

        Raises:
            ConflictException: If the email or wallet is already in use
        """
        wallet_address = (
            normalize_wallet_address(register_data.wallet_address)
            if register_data.wallet_address
            else None
        )

        if register_data.email and await User.find_one(User.email == register_data.email):
            raise ConflictException("Email already in use")

        if wallet_address and await User.find_one(User.wallet_address == wallet_address):
            raise ConflictException("Wallet address already in use")

        user = User(
            email=register_data.email,
            name=register_data.name,
            wallet_address=wallet_address,
            role=register_data.role,
        )
        await user.insert()

        logger.info(f"✅ Registered user {user.id} with role {user.role.value}")
        return user

    @staticmethod
    async def get_user_by_id(user_id: str) -> Optional[User]:
        """Get user by ID."""
        return await get_document(User, user_id)

    @staticmethod
    async def get_user_by_wallet(wallet_address: str) -> Optional[User]:
        """Get user by wallet address (case-insensitive)."""
        return await User.find_one(User.wallet_address == normalize_wallet_address(wallet_address))

    @staticmethod
    def has_sign_in_method(user: User) -> bool:
        return bool(user.clerk_id or user.firebase_uid or user.wallet_address)

    @staticmethod
    async def find_or_create_clerk_user(
        clerk_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
        email_verified: bool = False,
    ) -> User:
        """
        Resolve a Clerk subject to a user, creating one on first sight.

        An existing account with the same email is linked to the Clerk id only
        when Clerk has verified the email and the account has no sign-in
        method of its own. Otherwise the new user is created without the email.
        """
        user = await User.find_one(User.clerk_id == clerk_id)
        if user:
            return user

        if email:
            user = await User.find_one(User.email == email)
            if user and email_verified and not AuthService.has_sign_in_method(user):
                user.clerk_id = clerk_id
                if not user.name and name:
                    user.name = name
                user.update_timestamp()
                await user.save()
                logger.info(f"Linked Clerk account {clerk_id} to user {user.id}")
                return user
            if user:
                logger.warning(f"⚠️ Clerk account {clerk_id} not linked to existing user {user.id} with the same email")
                email = None

        user = User(clerk_id=clerk_id, email=email, name=name, role=Role.USER)
        await user.insert()
        logger.info(f"✅ Created user {user.id} for Clerk account {clerk_id}")
        return user

    @staticmethod
    async def find_or_create_firebase_user(
        uid: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> User:
        """
        Resolve a Firebase subject to a user.

        The subject may be a user id (custom tokens minted for existing
        accounts) or a Firebase uid; unknown subjects create a USER.
        """
        user = await get_document(User, uid)
        if user:
            return user

        user = await User.find_one(User.firebase_uid == uid)
        if user:
            return user

        user = User(firebase_uid=uid, email=email, name=name, role=Role.USER)
        await user.insert()
        logger.info(f"✅ Created user {user.id} for Firebase account {uid}")
        return user

    @staticmethod
    async def generate_wallet_nonce(wallet_address: str) -> WalletNonce:
        """Store a fresh one-time login challenge for a wallet."""
        nonce = WalletNonce(
            wallet_address=normalize_wallet_address(wallet_address),
            message=generate_wallet_login_message(),
            expires_at=datetime.utcnow() + timedelta(minutes=settings.WALLET_NONCE_EXPIRE_MINUTES),
        )
        await nonce.insert()
        return nonce

    @staticmethod
    async def wallet_login(wallet_address: str, signature: str, message: str) -> tuple[User, str]:
        """
        Verify a signed challenge and issue a wallet session token.

        Returns:
            tuple: (user, access_token)

        Raises:
            CredentialsException: If the challenge or signature is invalid
        """
        wallet_address = normalize_wallet_address(wallet_address)

        nonce = await WalletNonce.find_one(
            WalletNonce.wallet_address == wallet_address,
            WalletNonce.message == message,
            WalletNonce.used == False,  # noqa: E712
        )
        if not nonce or nonce.expires_at < datetime.utcnow():
            raise CredentialsException("Invalid or expired login challenge")

        recovered = recover_wallet_address(message, signature)
        if recovered != wallet_address:
            logger.warning(f"Wallet signature mismatch for {wallet_address}")
            raise CredentialsException("Invalid signature")

        nonce.used = True
        nonce.update_timestamp()
        await nonce.save()

        user = await User.find_one(User.wallet_address == wallet_address)
        if not user:
            user = User(wallet_address=wallet_address, role=Role.USER)
            await user.insert()
            logger.info(f"✅ Created user {user.id} for wallet {wallet_address}")

        if not user.is_active:
            raise CredentialsException("Account is inactive")

        access_token = create_access_token(
            data={"sub": str(user.id), "wallet_address": wallet_address, "type": "wallet"}
        )
        return user, access_token

    @staticmethod
    async def update_role(user: User, role: Role) -> User:
        """
        One-time onboarding role selection.

        Raises:
            BadRequestException: If the role is not selectable
            ConflictException: If the user already has a role
        """
        if role not in (Role.PATIENT, Role.DOCTOR):
            raise BadRequestException(f"Invalid role: {role.value}. Must be PATIENT or DOCTOR")

        if user.role != Role.USER:
            raise ConflictException(f"Role already set to {user.role.value}")

        user.role = role
        user.update_timestamp()
        await user.save()

        logger.info(f"User {user.id} selected role {role.value}")
        return user

    @staticmethod
    async def require_user(user_id: str) -> User:
        """Get user by ID or raise NotFound."""
        user = await get_document(User, user_id)
        if not user:
            raise NotFoundException(f"User with ID {user_id} not found")
        return user

    @staticmethod
    def user_to_response(user: User) -> UserResponse:
        """Convert User document to UserResponse."""
        return UserResponse(
            id=str(user.id),
            email=user.email,
            name=user.name,
            wallet_address=user.wallet_address,
            clerk_id=user.clerk_id,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
