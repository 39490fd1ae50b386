from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError as SignatureValidationError
from app.config import settings
import secrets


WALLET_LOGIN_MESSAGE = "Sign this message to authenticate with RPM: {nonce}"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    return encoded_jwt


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        return None


def generate_wallet_login_message() -> str:
    """Generate the one-time challenge a wallet signs to log in."""
    return WALLET_LOGIN_MESSAGE.format(nonce=secrets.token_hex(8))


def generate_connection_code() -> str:
    """Generate the opaque code a patient signs to approve a connection."""
    return secrets.token_hex(16)


def normalize_wallet_address(address: str) -> str:
    """Wallet addresses are stored and compared lowercase."""
    return address.strip().lower()


def recover_wallet_address(message: str, signature: str) -> Optional[str]:
    """
    Recover the address that produced an EIP-191 personal-message signature.

    Returns:
        Lowercase address, or None when the signature is malformed.
    """
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except (ValueError, TypeError, BadSignature, SignatureValidationError):
        return None
    return normalize_wallet_address(recovered)
