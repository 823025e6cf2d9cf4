from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hilearn.auth.dependencies import require_roles
from hilearn.database import get_db
from hilearn.models.user import STAFF_ROLES, Role, User
from hilearn.routes.common import database_unavailable
from hilearn.schemas import CamelModel, UserResponse

router = APIRouter(tags=['users'])

admin_only = require_roles(Role.ADMIN)


class UpdateRoleRequest(CamelModel):
    role: Role


class UpdateDivisionRequest(CamelModel):
    division_id: int | None


class UpdateSupportAgentRequest(CamelModel):
    is_support_agent: bool


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found.')
    return user


@router.get('', response_model=list[UserResponse])
def list_users(
    current_user: User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    del current_user
    try:
        return db.query(User).order_by(User.name.asc(), User.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{user_id}/role', response_model=UserResponse)
def update_role(
    user_id: int,
    data: UpdateRoleRequest,
    current_user: User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    del current_user
    try:
        user = get_user_or_404(db, user_id)
        user.role = data.role.value
        if user.role not in STAFF_ROLES:
            # Learners cannot field support chats.
            user.is_support_agent = False
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{user_id}/support-agent', response_model=UserResponse)
def update_support_agent(
    user_id: int,
    data: UpdateSupportAgentRequest,
    current_user: User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    del current_user
    try:
        user = get_user_or_404(db, user_id)
        if data.is_support_agent and user.role not in STAFF_ROLES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Only admins and instructors can act as support agents.',
            )
        user.is_support_agent = data.is_support_agent
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{user_id}/division', response_model=UserResponse)
def update_division(
    user_id: int,
    data: UpdateDivisionRequest,
    current_user: User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    del current_user
    try:
        user = get_user_or_404(db, user_id)
        user.division_id = data.division_id
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
