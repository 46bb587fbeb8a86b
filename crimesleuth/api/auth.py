import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ..db import get_db
from ..models.user import User, UserRole
from ..schemas.auth import (
    UserRegister,
    UserLogin,
    Token,
    TokenRefresh,
    UserResponse,
    UserDetailsUpdate,
    PasswordUpdate,
    PasswordResetRequest,
    PasswordResetConfirm,
)
from ..schemas.common import Envelope, envelope
from ..core.config import settings
from ..core.errors import AuthenticationError, NotFoundError, ValidationError
from ..core.mailer import send_password_reset
from ..core.policy import Action, authorize
from ..core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    verify_token,
    generate_reset_token,
    hash_reset_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

SELF_REGISTER_ROLES = (UserRole.INVESTIGATOR, UserRole.ANALYST)


def user_id_from_token(payload: dict) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Could not validate credentials")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token of this request to the acting user"""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    payload = verify_token(credentials.credentials, "access")
    user_id = user_id_from_token(payload)

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("User not found")

    return user


def require_action(action: Action):
    """Dependency factory gating a route on a policy action"""
    def action_checker(current_user: User = Depends(get_current_user)) -> User:
        authorize(current_user, action)
        return current_user
    return action_checker


def token_response(user: User) -> dict:
    return envelope(Token(
        access_token=create_access_token(data={"sub": str(user.id)}),
        refresh_token=create_refresh_token(data={"sub": str(user.id)}),
        user=UserResponse.model_validate(user),
    ))


def ensure_email_available(db: Session, email: str, exclude_user_id: Optional[int] = None) -> None:
    query = db.query(User).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ValidationError("Email already registered")


def commit_user(db: Session) -> None:
    """Commit a user write; a concurrent insert of the same email becomes a validation error"""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Email already registered")


@router.post("/register", response_model=Envelope[Token], status_code=status.HTTP_201_CREATED)
def register_user(user_data: UserRegister, db: Session = Depends(get_db)):
    """Register a new account. Elevated roles are granted by an admin."""
    if user_data.role not in SELF_REGISTER_ROLES:
        raise ValidationError(f"Role {user_data.role.value} cannot be self-assigned")
    ensure_email_available(db, user_data.email)

    db_user = User(
        name=user_data.name,
        email=user_data.email,
        role=user_data.role,
        password_hash=get_password_hash(user_data.password)
    )
    db.add(db_user)
    commit_user(db)
    db.refresh(db_user)
    logger.info("User %s registered as %s", db_user.id, db_user.role.value)
    return token_response(db_user)


@router.post("/login", response_model=Envelope[Token])
def login(user_data: UserLogin, db: Session = Depends(get_db)):
    """Login and get access/refresh tokens"""
    user = db.query(User).filter(User.email == user_data.email).first()

    if not user or not verify_password(user_data.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")

    return token_response(user)


@router.post("/refresh", response_model=Envelope[Token])
def refresh_token(token_data: TokenRefresh, db: Session = Depends(get_db)):
    """Refresh access token using refresh token"""
    payload = verify_token(token_data.refresh_token, "refresh")
    user_id = user_id_from_token(payload)

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("User not found")

    return token_response(user)


@router.get("/me", response_model=Envelope[UserResponse])
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return envelope(UserResponse.model_validate(current_user))


@router.put("/updatedetails", response_model=Envelope[UserResponse])
def update_details(
    payload: UserDetailsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and not changes["name"]:
        raise ValidationError("name cannot be empty")
    if changes.get("email"):
        ensure_email_available(db, changes["email"], exclude_user_id=current_user.id)
    elif "email" in changes:
        raise ValidationError("email cannot be empty")

    for field, value in changes.items():
        setattr(current_user, field, value)
    commit_user(db)
    db.refresh(current_user)
    return envelope(UserResponse.model_validate(current_user))


@router.put("/updatepassword", response_model=Envelope[Token])
def update_password(
    payload: PasswordUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not verify_password(payload.current_password, current_user.password_hash):
        raise AuthenticationError("Password is incorrect")

    current_user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    db.refresh(current_user)
    return token_response(current_user)


@router.post("/forgotpassword", response_model=Envelope[str])
def forgot_password(payload: PasswordResetRequest, db: Session = Depends(get_db)):
    """Store a hashed reset token and mail the plain token to the user"""
    user = db.query(User).filter(User.email == payload.email).first()
    if not user:
        raise NotFoundError("No user with that email")

    token, digest = generate_reset_token()
    user.reset_password_token = digest
    user.reset_password_expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.password_reset_expire_minutes
    )
    db.commit()

    err = send_password_reset(user.email, token)
    if err:
        return envelope("Password reset requested, but the email could not be sent")
    return envelope("Password reset email sent")


@router.put("/resetpassword/{reset_token}", response_model=Envelope[Token])
def reset_password(reset_token: str, payload: PasswordResetConfirm, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.reset_password_token == hash_reset_token(reset_token)).first()

    expire = user.reset_password_expire if user else None
    if expire is not None and expire.tzinfo is None:
        expire = expire.replace(tzinfo=timezone.utc)
    if not user or expire is None or expire <= datetime.now(timezone.utc):
        raise ValidationError("Invalid token")

    user.password_hash = get_password_hash(payload.password)
    user.reset_password_token = None
    user.reset_password_expire = None
    db.commit()
    db.refresh(user)
    return token_response(user)
