from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from ..database import get_db
from ..models.status import UserRole
from ..models.user import User
from ..utils.dependencies import get_current_user
from ..utils.jwt import create_access_token
from ..utils.roles import admin_only
from ..utils.security import hash_password, verify_password
from ..utils.validation import validate_email, validate_password, validate_role, validate_string_field
from ..utils.error_handlers import get_error_message, handle_database_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _user_public(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "status": user.status,
    }


class SignupRequest(BaseModel):
    email: str
    password: str
    role: str  # HR / Admin / Interviewer
    full_name: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str
    role: str | None = None  # optional role gate (frontend-selected role)


class UserStatusUpdate(BaseModel):
    status: str  # active / inactive


@router.post("/signup")
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    # Validate input
    email = validate_email(payload.email)
    validate_password(payload.password)
    role = validate_role(payload.role)
    full_name = validate_string_field(payload.full_name, "Full name", min_length=1, max_length=255, required=False)

    # Check if email already exists
    try:
        existing = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as e:
        raise handle_database_error(e, "checking existing user")
    if existing:
        raise HTTPException(status_code=400, detail=get_error_message("email_exists"))

    # Hash password
    try:
        hashed = hash_password(payload.password)
    except ValueError:
        raise HTTPException(status_code=400, detail=get_error_message("weak_password"))

    user = User(full_name=full_name, email=email, password=hashed, role=role, status="active")
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "creating user")

    token = create_access_token({"sub": str(user.id), "role": user.role})
    logger.info("User %s signed up as %s", user.id, user.role)

    return {
        "message": "User created successfully",
        "user": _user_public(user),
        "access_token": token,
        "token_type": "bearer",
    }


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    email = validate_email(payload.email)
    if not payload.password:
        raise HTTPException(status_code=400, detail="Password is required")

    try:
        user = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as e:
        raise handle_database_error(e, "login")

    if not user or not verify_password(payload.password, user.password):
        raise HTTPException(status_code=401, detail=get_error_message("invalid_credentials"))

    if not user.is_active:
        raise HTTPException(status_code=403, detail=get_error_message("account_inactive"))

    # Check role match if provided
    if payload.role and user.role != validate_role(payload.role):
        raise HTTPException(
            status_code=403,
            detail="Role mismatch. Please select the correct account type.",
        )

    token = create_access_token({"sub": str(user.id), "role": user.role})

    return {
        "access_token": token,
        "token_type": "bearer",
        "user": _user_public(user),
    }


@router.get("/me")
def me(user=Depends(get_current_user), db: Session = Depends(get_db)):
    row = db.query(User).filter(User.id == int(user["sub"])).first()
    return {"success": True, "user": _user_public(row)}


@router.get("/interviewers")
def list_interviewers(db: Session = Depends(get_db), user=Depends(get_current_user)):
    rows = (
        db.query(User)
        .filter(User.role == UserRole.INTERVIEWER.value, User.status == "active")
        .order_by(User.full_name.asc(), User.id.asc())
        .all()
    )
    return {"success": True, "interviewers": [_user_public(u) for u in rows]}


@router.patch("/users/{user_id}/status")
def set_user_status(
    user_id: int,
    body: UserStatusUpdate,
    db: Session = Depends(get_db),
    user=Depends(admin_only),
):
    status = (body.status or "").strip().lower()
    if status not in {"active", "inactive"}:
        raise HTTPException(status_code=400, detail="Invalid status. Must be one of: active, inactive")
    if int(user_id) == int(user["sub"]) and status == "inactive":
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    target = db.query(User).filter(User.id == int(user_id)).first()
    if not target:
        raise HTTPException(status_code=404, detail=get_error_message("not_found"))

    target.status = status
    try:
        db.add(target)
        db.commit()
        db.refresh(target)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "updating user status")

    logger.info("User %s set to %s by admin %s", target.id, status, user["sub"])
    return {"success": True, "user": _user_public(target)}


@router.post("/logout")
def logout():
    return {"message": "Logged out successfully"}
