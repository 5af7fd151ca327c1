import datetime
import hashlib
import hmac
import logging
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from . import crud, models
from .config import settings
from .database import get_db

logger = logging.getLogger("auth")

api_key_header = APIKeyHeader(name="Authorization")

PBKDF2_ITERATIONS = 260_000


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, hashed: str) -> bool:
    try:
        algorithm, iterations, salt, expected = hashed.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def create_access_token(user_id: int, session_id: str) -> str:
    expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": str(user_id), "sid": session_id, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> tuple[int, str]:
    """
    Returns (user_id, session_id) from a token. Raises ValueError if it is not valid.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = int(payload.get("sub"))
        session_id = payload.get("sid")
    except (JWTError, TypeError, ValueError) as e:
        raise ValueError("Invalid token") from e
    if not session_id:
        raise ValueError("Token carries no session")
    return user_id, session_id


def authenticate_token(db: Session, token: str) -> tuple[models.User, models.UserSession] | None:
    """
    Resolves a raw token to its user and live session, or None when the
    token is invalid or its session was revoked (e.g. by a newer login).
    """
    try:
        user_id, session_id = decode_access_token(token)
    except ValueError:
        return None

    db_session = crud.get_session(db, session_id)
    if db_session is None or db_session.user_id != user_id or db_session.revoked_at is not None:
        return None

    user = crud.get_user(db, user_id)
    if user is None:
        return None
    return user, db_session


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Tries to get the user ID from the token.
    If it fails (no token, invalid token), it falls back to the client's IP.
    """
    try:
        scheme, token = request.headers.get("Authorization").split()
        if scheme.lower() == "bearer":
            user_id, _ = decode_access_token(token)
            return str(user_id)
    except (ValueError, AttributeError):
        # If token is invalid, missing, or malformed, limit by IP
        pass
    return request.client.host


def get_current_session(
        token: Annotated[str, Depends(api_key_header)],
        db: Session = Depends(get_db),
) -> tuple[models.User, models.UserSession]:
    """
    Decodes the 'Authorization: Bearer ...' header and checks the session is still live.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        scheme, raw_token = token.split()
    except ValueError:
        raise credentials_exception
    if scheme.lower() != "bearer":
        raise credentials_exception

    resolved = authenticate_token(db, raw_token)
    if resolved is None:
        raise credentials_exception
    return resolved


def get_current_user(
        current: Annotated[tuple[models.User, models.UserSession], Depends(get_current_session)],
) -> models.User:
    return current[0]


def get_current_admin_user(
        user: Annotated[models.User, Depends(get_current_user)],
) -> models.User:
    if user.role != models.UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return user
