from datetime import datetime, timedelta, timezone
from typing import Optional, Union, Any
from jose import jwt, JWTError
from pydantic import ValidationError

from app.core.config import settings
from app.schemas.token import TokenPayload, Principal, RoleEnum

ALGORITHM = settings.ALGORITHM
SECRET_KEY = settings.SECRET_KEY
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

def create_access_token(subject: Union[str, Any], role: RoleEnum, expires_delta: Optional[timedelta] = None) -> str:
    """Creates a JWT access token in the shape the identity provider issues."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject), "role": RoleEnum(role).value}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def decode_token(token: str) -> Optional[TokenPayload]:
    """Decodes a JWT token and returns the payload, None when invalid or expired."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        token_data = TokenPayload(**payload)
        if token_data.exp is None or datetime.fromtimestamp(token_data.exp, timezone.utc) < datetime.now(timezone.utc):
            return None
        return token_data
    except (JWTError, ValidationError):
        return None

def principal_from_token(token: str) -> Optional[Principal]:
    """Resolves a bearer token to a Principal, None if it can't be trusted."""
    token_data = decode_token(token)
    if token_data is None or token_data.sub is None or token_data.role is None:
        return None
    try:
        return Principal(id=int(token_data.sub), role=token_data.role)
    except ValueError:
        return None
