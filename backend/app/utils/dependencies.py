from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from .error_handlers import get_error_message
from .jwt import decode_access_token

_bearer = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: Session = Depends(get_db),
) -> dict:
    """
    Resolve the bearer token to `{"sub", "role", "email", "name"}`.

    The user row is re-read on every request so role changes and deactivation apply
    immediately instead of waiting for the token to expire.
    """
    if credentials is None or (credentials.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=401, detail=get_error_message("unauthorized"))

    claims = decode_access_token(credentials.credentials)
    if not claims or not claims.get("sub"):
        raise HTTPException(status_code=401, detail=get_error_message("session_expired"))

    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail=get_error_message("session_expired"))

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User profile not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail=get_error_message("account_inactive"))

    return {"sub": int(user.id), "role": user.role, "email": user.email, "name": user.full_name}
