from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hilearn.auth.dependencies import get_current_user, require_roles
from hilearn.core import config
from hilearn.database import get_db
from hilearn.models.notification import Notification, NotificationType
from hilearn.models.user import Role, User
from hilearn.routes.common import database_unavailable
from hilearn.schemas import CamelModel, CountResponse, UtcDatetime

router = APIRouter(tags=['notifications'])


class CreateNotificationRequest(CamelModel):
    user_id: int
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    link: str | None = None

    @field_validator('title', 'message')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Title and message are required.')
        return normalized

    @field_validator('link')
    @classmethod
    def validate_link(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class NotificationResponse(CamelModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    link: str | None = None
    read: bool
    created_at: UtcDatetime


class MessageResponse(CamelModel):
    message: str
    count: int | None = None


def create_notification(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    notification_type: NotificationType | str = NotificationType.INFO,
    link: str | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=NotificationType(notification_type).value,
        link=link,
        read=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def get_own_notification_or_404(db: Session, notification_id: int, user_id: int) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Notification not found.')
    return notification


@router.get('', response_model=list[NotificationResponse])
def list_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return db.query(Notification).filter(
            Notification.user_id == current_user.id,
        ).order_by(
            Notification.created_at.desc(),
            Notification.id.desc(),
        ).limit(config.NOTIFICATION_PAGE_SIZE).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/unread-count', response_model=CountResponse)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        count = db.query(Notification).filter(
            Notification.user_id == current_user.id,
            Notification.read.is_(False),
        ).count()
        return CountResponse(count=count)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/read-all', response_model=MessageResponse)
def mark_all_as_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        updated = db.query(Notification).filter(
            Notification.user_id == current_user.id,
            Notification.read.is_(False),
        ).update({Notification.read: True}, synchronize_session=False)
        db.commit()
        return MessageResponse(message='All notifications marked as read', count=updated)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{notification_id}/read', response_model=NotificationResponse)
def mark_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        notification = get_own_notification_or_404(db, notification_id, current_user.id)
        notification.read = True
        db.commit()
        db.refresh(notification)
        return notification
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{notification_id}', response_model=MessageResponse)
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        notification = get_own_notification_or_404(db, notification_id, current_user.id)
        db.delete(notification)
        db.commit()
        return MessageResponse(message='Notification deleted')
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('', response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
def create(
    data: CreateNotificationRequest,
    current_user: User = Depends(require_roles(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    del current_user
    try:
        if db.get(User, data.user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found.')

        return create_notification(
            db,
            user_id=data.user_id,
            title=data.title,
            message=data.message,
            notification_type=data.type,
            link=data.link,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
