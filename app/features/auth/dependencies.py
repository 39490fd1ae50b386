from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Callable, Optional
from app.features.auth.models import Role, User
from app.core.identity import identity_resolver, is_public_path
from app.shared.exceptions import CredentialsException, ForbiddenException


# HTTP Bearer security scheme; missing tokens are reported by authenticate_request
security = HTTPBearer(auto_error=False)


async def authenticate_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[User]:
    """
    Application-wide dependency resolving the caller.

    Public paths are let through before any token parsing. Every other path
    needs a bearer token accepted by the identity resolver.

    Raises:
        CredentialsException: If the token is missing or rejected
    """
    if is_public_path(request.url.path):
        return None

    if credentials is None:
        raise CredentialsException("Not authenticated")

    user = await identity_resolver.resolve(credentials.credentials)
    request.state.user = user
    return user


async def get_current_user(
    user: Optional[User] = Depends(authenticate_request),
) -> User:
    """
    Dependency to get current authenticated user.

    Returns:
        User: Current authenticated user

    Raises:
        CredentialsException: If the request is not authenticated
    """
    if user is None:
        raise CredentialsException("Not authenticated")
    return user


def require_roles(*roles: Role) -> Callable:
    """Dependency factory restricting a route to the given roles."""

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            allowed = ", ".join(role.value for role in roles)
            raise ForbiddenException(f"This action requires one of the roles: {allowed}")
        return current_user

    return role_checker
