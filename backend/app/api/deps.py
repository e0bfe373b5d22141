"""FastAPI dependencies for the API layer."""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_token
from app.database import get_db
from app.models import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the JWT token."""

    return get_user_from_token(token, db)


def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_user_from_token(token: str, db: Session) -> User:
    """Resolve a user from a JWT token or raise an HTTP 401 error.

    Suspended accounts are treated as unknown until they log in again.
    """

    payload = decode_token(token)
    sub = payload.get("sub")
    if sub is None or payload.get("type") != "access":
        raise _credentials_error()

    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise _credentials_error() from None

    user = db.get(User, user_id)
    if user is None or user.is_suspended:
        raise _credentials_error()
    return user
