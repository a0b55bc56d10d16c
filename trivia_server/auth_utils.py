import base64
import binascii
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from passlib.context import CryptContext

from .models import User
from .storage import JsonRepository

passwords = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return passwords.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Check *password* against a stored digest. Damaged or foreign digests never match."""
    if not hashed or passwords.identify(hashed) is None:
        return False
    try:
        return passwords.verify(password, hashed)
    except ValueError:
        return False


def decode_basic_token(token: str) -> Optional[Tuple[str, str]]:
    """Split a base64 ``username:password`` token; ``None`` if malformed."""
    try:
        decoded = base64.b64decode(token, validate=True).decode()
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


async def authenticate(repository: JsonRepository, username: str, password: str) -> Optional[User]:
    user = await repository.get_user_by_username(username)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user

# -----------------------------
# FastAPI dependency helpers
# -----------------------------

security = HTTPBasic()

def get_repository(request: Request) -> JsonRepository:
    return request.app.state.repository

async def get_current_user(
    credentials: HTTPBasicCredentials = Depends(security),
    repository: JsonRepository = Depends(get_repository),
) -> User:
    """Validate HTTP Basic credentials and return the matching *User* record.

    Raises
    ------
    HTTPException
        If the credentials are invalid.
    """
    user = await authenticate(repository, credentials.username, credentials.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return user

__all__ = [
    "passwords",
    "hash_password",
    "verify_password",
    "decode_basic_token",
    "authenticate",
    "security",
    "get_repository",
    "get_current_user",
]
