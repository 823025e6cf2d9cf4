import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from pydantic import StrictInt, ValidationError, field_validator
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hilearn.auth.dependencies import get_current_user, resolve_user_from_token
from hilearn.chat.manager import ConnectionManager, manager
from hilearn.database import SessionLocal, get_db
from hilearn.models.chat_message import ChatMessage
from hilearn.models.user import STAFF_ROLES, Role, User
from hilearn.routes.common import database_unavailable
from hilearn.schemas import CamelModel, ContactResponse, CountResponse, UserSummary, UtcDatetime

router = APIRouter(tags=['chat'])

logger = logging.getLogger(__name__)

SEND_MESSAGE_EVENT = 'sendMessage'
TYPING_EVENT = 'typing'
NEW_MESSAGE_EVENT = 'newMessage'
ERROR_EVENT = 'error'


class UnknownReceiverError(LookupError):
    pass


class SendMessagePayload(CamelModel):
    receiver_id: StrictInt
    message: str

    @field_validator('receiver_id')
    @classmethod
    def validate_receiver_id(cls, value: int) -> int:
        if value <= 0:
            raise ValueError('Receiver id must be a positive integer.')
        return value

    @field_validator('message')
    @classmethod
    def validate_message(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Message text is required.')
        return normalized


class TypingPayload(CamelModel):
    receiver_id: StrictInt


class ChatMessageResponse(CamelModel):
    id: int
    message: str
    sender_id: int
    receiver_id: int
    created_at: UtcDatetime
    read: bool
    sender: UserSummary


def save_message(db: Session, sender_id: int, receiver_id: int, text: str) -> ChatMessage:
    chat_message = ChatMessage(
        sender_id=sender_id,
        receiver_id=receiver_id,
        message=text,
        read=False,
    )
    db.add(chat_message)
    db.commit()
    db.refresh(chat_message)
    return chat_message


def get_conversation(db: Session, user_id: int, other_user_id: int) -> list[ChatMessage]:
    return db.query(ChatMessage).filter(
        or_(
            (ChatMessage.sender_id == user_id) & (ChatMessage.receiver_id == other_user_id),
            (ChatMessage.sender_id == other_user_id) & (ChatMessage.receiver_id == user_id),
        )
    ).order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).all()


def mark_conversation_read(db: Session, user_id: int, sender_id: int) -> int:
    updated = db.query(ChatMessage).filter(
        ChatMessage.receiver_id == user_id,
        ChatMessage.sender_id == sender_id,
        ChatMessage.read.is_(False),
    ).update({ChatMessage.read: True}, synchronize_session=False)
    db.commit()
    return updated


def count_unread(db: Session, user_id: int) -> int:
    return db.query(ChatMessage).filter(
        ChatMessage.receiver_id == user_id,
        ChatMessage.read.is_(False),
    ).count()


def get_contacts(db: Session, user_id: int) -> list[User]:
    sent_to = select(ChatMessage.receiver_id).where(ChatMessage.sender_id == user_id)
    received_from = select(ChatMessage.sender_id).where(ChatMessage.receiver_id == user_id)

    return db.query(User).filter(
        or_(User.id.in_(sent_to), User.id.in_(received_from)),
        User.id != user_id,
    ).order_by(User.name.asc(), User.id.asc()).all()


def find_support_agent(db: Session) -> User | None:
    agent = db.query(User).filter(
        User.role.in_(STAFF_ROLES),
        User.is_support_agent.is_(True),
    ).order_by(User.id.asc()).first()

    if agent is None:
        agent = db.query(User).filter(User.role == Role.ADMIN.value).order_by(User.id.asc()).first()

    return agent


def serialize_message(chat_message: ChatMessage) -> dict:
    return ChatMessageResponse.model_validate(chat_message).model_dump(by_alias=True, mode='json')


def persist_message(sender_id: int, receiver_id: int, text: str) -> dict:
    db = SessionLocal()
    try:
        if db.get(User, receiver_id) is None:
            raise UnknownReceiverError(receiver_id)
        try:
            chat_message = save_message(db, sender_id, receiver_id, text)
        except SQLAlchemyError:
            db.rollback()
            raise
        return serialize_message(chat_message)
    finally:
        db.close()


@router.get('/messages/{user_id}', response_model=list[ChatMessageResponse])
def get_messages(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return get_conversation(db, current_user.id, user_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/contacts', response_model=list[ContactResponse])
def list_contacts(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return get_contacts(db, current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/support-agent', response_model=UserSummary | None)
def get_support_agent(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    del current_user
    try:
        return find_support_agent(db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/unread', response_model=CountResponse)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return CountResponse(count=count_unread(db, current_user.id))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


# Stays a GET for existing web clients.
@router.get('/read/{user_id}', response_model=CountResponse)
def mark_as_read(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return CountResponse(count=mark_conversation_read(db, current_user.id, user_id))
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


def extract_socket_token(websocket: WebSocket) -> str | None:
    auth_header = websocket.headers.get('authorization')
    if auth_header:
        return auth_header
    return websocket.query_params.get('token')


def describe_validation_error(exc: ValidationError) -> str:
    first_error = exc.errors()[0]
    message = first_error.get('msg', 'Invalid payload.')
    return message.removeprefix('Value error, ')


async def receive_text_frame(websocket: WebSocket) -> str | None:
    """Wait for the next frame. Binary frames come back as None."""
    message = await websocket.receive()
    if message['type'] == 'websocket.disconnect':
        raise WebSocketDisconnect(code=message.get('code', status.WS_1000_NORMAL_CLOSURE))
    return message.get('text')


async def send_socket_error(websocket: WebSocket, event: str, detail: str) -> None:
    logger.warning('Rejected %s frame: %s', event or 'unknown', detail)
    await websocket.send_json({'event': ERROR_EVENT, 'data': {'event': event, 'detail': detail}})


async def handle_send_message(
    websocket: WebSocket,
    sender_id: int,
    data,
    connections: ConnectionManager = manager,
) -> dict | None:
    try:
        payload = SendMessagePayload.model_validate(data)
    except ValidationError as exc:
        await send_socket_error(websocket, SEND_MESSAGE_EVENT, describe_validation_error(exc))
        return None

    if payload.receiver_id == sender_id:
        await send_socket_error(websocket, SEND_MESSAGE_EVENT, 'You cannot send a message to yourself.')
        return None

    try:
        saved_message = await run_in_threadpool(
            persist_message, sender_id, payload.receiver_id, payload.message
        )
    except UnknownReceiverError:
        await send_socket_error(websocket, SEND_MESSAGE_EVENT, 'Receiver not found.')
        return None
    except SQLAlchemyError:
        logger.exception('Failed to save chat message from user %s to user %s', sender_id, payload.receiver_id)
        await send_socket_error(websocket, SEND_MESSAGE_EVENT, 'Message could not be saved.')
        return None

    await connections.emit(payload.receiver_id, NEW_MESSAGE_EVENT, saved_message)
    return saved_message


async def handle_typing(
    websocket: WebSocket,
    sender_id: int,
    data,
    connections: ConnectionManager = manager,
) -> None:
    try:
        payload = TypingPayload.model_validate(data)
    except ValidationError as exc:
        await send_socket_error(websocket, TYPING_EVENT, describe_validation_error(exc))
        return

    if payload.receiver_id != sender_id:
        await connections.emit(payload.receiver_id, TYPING_EVENT, {'senderId': sender_id})


EVENT_HANDLERS = {
    SEND_MESSAGE_EVENT: handle_send_message,
    TYPING_EVENT: handle_typing,
}


async def dispatch_frame(
    websocket: WebSocket,
    user_id: int,
    raw_frame: str,
    connections: ConnectionManager = manager,
) -> None:
    try:
        frame = json.loads(raw_frame)
    except json.JSONDecodeError:
        await send_socket_error(websocket, '', 'Frames must be JSON objects.')
        return

    if not isinstance(frame, dict):
        await send_socket_error(websocket, '', 'Frames must be JSON objects.')
        return

    event = frame.get('event')
    handler = EVENT_HANDLERS.get(event) if isinstance(event, str) else None
    if handler is None:
        await send_socket_error(websocket, str(event or ''), 'Unknown event.')
        return

    await handler(websocket, user_id, frame.get('data') or {}, connections=connections)


@router.websocket('/ws')
async def chat_socket(websocket: WebSocket):
    token = extract_socket_token(websocket)
    user = await run_in_threadpool(resolve_user_from_token, token)
    if user is None:
        logger.warning('Rejected chat socket with missing or invalid token')
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = user.id
    await websocket.accept()
    await manager.join(user_id, websocket)
    logger.info('Chat socket connected for user %s', user_id)

    try:
        while True:
            raw_frame = await receive_text_frame(websocket)
            if raw_frame is None:
                await send_socket_error(websocket, '', 'Frames must be JSON objects.')
                continue
            await dispatch_frame(websocket, user_id, raw_frame, connections=manager)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.leave(user_id, websocket)
        logger.info('Chat socket disconnected for user %s', user_id)
