from typing import Optional

from fastapi import HTTPException, Request
from fastapi.params import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from starlette import status

from app.core import security
from app.core.exceptions import AccessDenied
from app.db.database import get_db  # noqa: F401  re-exported for routes and test overrides
from app.schemas.token import Principal

# Tokens are issued by the identity provider, this service only verifies them
http_bearer = HTTPBearer(auto_error=False)

async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Principal:
    """
    Dependency to get the caller from the bearer JWT.
    Raises HTTPException 401 if the token is missing, invalid or expired.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    principal = security.principal_from_token(credentials.credentials)
    if principal is None:
        raise credentials_exception
    return principal

async def get_current_student(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    if not principal.is_student:
        raise AccessDenied("Only students can take exams.")
    return principal

async def get_current_staff(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Faculty or admin."""
    if not principal.is_staff:
        raise AccessDenied("Only faculty or admins can manage exams.")
    return principal

def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
