from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from ..db import get_db
from ..models.user import User
from ..schemas.auth import UserCreate, UserResponse, UserUpdate
from ..schemas.common import Envelope, ListEnvelope, envelope
from ..core.errors import NotFoundError, ValidationError
from ..core.policy import Action
from ..core.security import get_password_hash
from .auth import commit_user, ensure_email_available, require_action

router = APIRouter()


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User not found with id of {user_id}")
    return user


@router.get("/", response_model=ListEnvelope[UserResponse])
def list_users(
    current_user: User = Depends(require_action(Action.VIEW_USERS)),
    db: Session = Depends(get_db)
):
    """List all registered users (supervisor/admin)"""
    users = db.query(User).order_by(User.name.asc()).all()
    return {
        "success": True,
        "count": len(users),
        "data": [UserResponse.model_validate(u) for u in users],
    }


@router.get("/{user_id}", response_model=Envelope[UserResponse])
def get_user(
    user_id: int,
    current_user: User = Depends(require_action(Action.VIEW_USERS)),
    db: Session = Depends(get_db)
):
    return envelope(UserResponse.model_validate(_get_user_or_404(db, user_id)))


@router.post("/", response_model=Envelope[UserResponse], status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    current_user: User = Depends(require_action(Action.MANAGE_USERS)),
    db: Session = Depends(get_db)
):
    """Create a user with any role (admin only)"""
    ensure_email_available(db, user_data.email)
    db_user = User(
        name=user_data.name,
        email=user_data.email,
        role=user_data.role,
        avatar_url=user_data.avatar_url,
        password_hash=get_password_hash(user_data.password)
    )
    db.add(db_user)
    commit_user(db)
    db.refresh(db_user)
    return envelope(UserResponse.model_validate(db_user))


@router.put("/{user_id}", response_model=Envelope[UserResponse])
def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: User = Depends(require_action(Action.MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    """Update name, email, avatar or role (admin only)"""
    user = _get_user_or_404(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    for field in ("name", "email", "role"):
        if field in changes and not changes[field]:
            raise ValidationError(f"{field} cannot be empty")
    if "email" in changes:
        ensure_email_available(db, changes["email"], exclude_user_id=user.id)

    for field, value in changes.items():
        setattr(user, field, value)
    commit_user(db)
    db.refresh(user)
    return envelope(UserResponse.model_validate(user))
