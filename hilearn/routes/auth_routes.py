from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hilearn.auth import jwt_handler
from hilearn.auth.dependencies import get_current_user
from hilearn.auth.passwords import hash_password, verify_password
from hilearn.database import get_db
from hilearn.models.user import Role, User
from hilearn.routes.common import database_unavailable
from hilearn.schemas import CamelModel, UserResponse

router = APIRouter(tags=['auth'])

MIN_PASSWORD_LENGTH = 8


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized or '@' not in normalized:
        raise ValueError('A valid email address is required.')
    return normalized


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
        return value


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return value.strip().lower()


class UpdateProfileRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    avatar: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name cannot be blank.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_email(value)


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = 'bearer'
    user: UserResponse


def issue_token(user: User) -> TokenResponse:
    token = jwt_handler.create_access_token(user_id=user.id, email=user.email, role=user.role)
    return TokenResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post('/register', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    try:
        if db.query(User).filter(User.email == data.email).first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='An account with this email already exists.',
            )

        user = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            role=Role.STUDENT.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='An account with this email already exists.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/login', response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.email == data.email).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid credentials')

    return issue_token(user)


@router.get('/me', response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch('/profile', response_model=UserResponse)
def update_profile(
    data: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = db.get(User, current_user.id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found.')

        if data.email is not None and data.email != user.email:
            taken = db.query(User).filter(User.email == data.email, User.id != user.id).first()
            if taken:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail='An account with this email already exists.',
                )
            user.email = data.email

        if data.name is not None:
            user.name = data.name
        if data.avatar is not None:
            user.avatar = data.avatar.strip() or None

        db.commit()
        db.refresh(user)
        return user
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='An account with this email already exists.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
