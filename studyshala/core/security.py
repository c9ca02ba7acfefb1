from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
import secrets

from studyshala.core.config import settings
from studyshala.core.exceptions import InvalidTokenError, TokenExpiredError


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return encoded_jwt


def create_user_token(user, expires_delta: Optional[timedelta] = None) -> str:
    """Issue an access token carrying the user's identity claims"""
    return create_access_token(
        {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "name": user.full_name,
        },
        expires_delta=expires_delta,
    )


def decode_token(token: str) -> Dict[str, Any]:
    """Decode JWT token, distinguishing expiry from any other failure"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()

    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidTokenError()

    return payload


def generate_state_token() -> str:
    """256-bit URL-safe token for OAuth CSRF state"""
    return secrets.token_urlsafe(32)
