import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from hilearn.core import config
from hilearn.database import Base, engine, ensure_chat_schema
from hilearn.models import chat_message, notification, user  # noqa: F401
from hilearn.routes import auth_routes, chat_routes, notification_routes, users_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

config.validate_runtime_config()

app = FastAPI(title='HiLearn API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_chat_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'HiLearn API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(chat_routes.router, prefix='/chat')
app.include_router(notification_routes.router, prefix='/notifications')
app.include_router(users_routes.router, prefix='/users')
