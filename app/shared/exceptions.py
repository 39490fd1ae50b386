from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base class for API errors rendered as structured error responses."""

    kind: str = "Error"


class CredentialsException(AppException):
    """Exception for missing or invalid credentials."""

    kind = "Unauthenticated"

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class UnauthorizedException(AppException):
    """Exception for an authenticated caller that is not a party to the resource."""

    kind = "Unauthorized"

    def __init__(self, detail: str = "You are not authorized to perform this action"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
        )


class NotFoundException(AppException):
    """Exception for resource not found."""

    kind = "NotFound"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class BadRequestException(AppException):
    """Exception for bad request."""

    kind = "BadRequest"

    def __init__(self, detail: str = "Bad request"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class ConflictException(AppException):
    """Exception for resource conflict."""

    kind = "Conflict"

    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


class ForbiddenException(AppException):
    """Exception for forbidden access."""

    kind = "Forbidden"

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )
