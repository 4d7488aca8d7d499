"""
Caller identity: address normalization and JWT bearer tokens.

Signing and wallet management happen outside the registry; the only thing
the core consumes is the caller address carried in the token subject.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings

security = HTTPBearer()

_NULL_ADDRESS = re.compile(r"0x0+")


def normalize_address(address: Optional[str]) -> str:
    """Canonical form of an identity handle: stripped and lower-cased."""
    if address is None:
        return ""
    return address.strip().lower()


def is_null_address(address: Optional[str]) -> bool:
    """True for the empty identity or any all-zero hex address."""
    normalized = normalize_address(address)
    return not normalized or bool(_NULL_ADDRESS.fullmatch(normalized))


def create_access_token(address: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token whose subject is the caller address."""
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": normalize_address(address), "exp": expire, "iat": now}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate JWT token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_caller_address(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Extract the caller address from the bearer token."""
    payload = decode_token(credentials.credentials)
    address = payload.get("sub")
    if is_null_address(address):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing caller address (sub)",
        )
    return normalize_address(address)
