from fastapi import APIRouter, Depends, status
from app.features.auth.schemas import (
    RegisterRequest,
    WalletNonceRequest,
    WalletNonceResponse,
    WalletLoginRequest,
    LoginResponse,
    UpdateRoleRequest,
    RoleResponse,
    UserResponse,
)
from app.features.auth.service import AuthService
from app.features.auth.dependencies import get_current_user
from app.features.auth.models import Role, User


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(register_data: RegisterRequest):
    """
    Register a new user.

    - **email**: Optional email address
    - **name**: Optional display name
    - **wallet_address**: Optional Ethereum address
    - **role**: USER, PATIENT or DOCTOR (defaults to USER)
    """
    user = await AuthService.register(register_data)
    return AuthService.user_to_response(user)


@router.post("/web3/nonce", response_model=WalletNonceResponse)
async def generate_wallet_nonce(request: WalletNonceRequest):
    """
    Issue a one-time challenge for wallet sign-in.

    The returned nonce is the exact message the wallet must sign.
    """
    nonce = await AuthService.generate_wallet_nonce(request.wallet_address)
    return WalletNonceResponse(nonce=nonce.message, expires_at=nonce.expires_at)


@router.post("/login", response_model=LoginResponse)
async def login(request: WalletLoginRequest):
    """
    Authenticate with a signed wallet challenge.

    - **wallet_address**: Address that requested the challenge
    - **signature**: Personal-message signature of the challenge
    - **message**: The challenge returned by `/auth/web3/nonce`
    """
    user, access_token = await AuthService.wallet_login(
        request.wallet_address, request.signature, request.message
    )
    return LoginResponse(access_token=access_token, user=AuthService.user_to_response(user))


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """
    Get current authenticated user's information.
    """
    return AuthService.user_to_response(current_user)


@router.get("/me/role", response_model=RoleResponse)
async def get_my_role(current_user: User = Depends(get_current_user)):
    """
    Get current user's role in lowercase.

    Users that have not completed onboarding are reported as patients.
    """
    role = Role.PATIENT if current_user.role == Role.USER else current_user.role
    return RoleResponse(role=role.value.lower())


@router.patch("/me/role", response_model=UserResponse)
async def update_my_role(
    request: UpdateRoleRequest,
    current_user: User = Depends(get_current_user)
):
    """
    Select a role during onboarding (PATIENT or DOCTOR, once).
    """
    user = await AuthService.update_role(current_user, request.role)
    return AuthService.user_to_response(user)
