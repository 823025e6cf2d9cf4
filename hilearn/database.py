from datetime import datetime, timezone
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from hilearn.core import config


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    connect_args=_connect_args(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_chat_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_chat_schema() -> None:
    global _chat_schema_checked

    if _chat_schema_checked:
        return

    with _schema_lock:
        if _chat_schema_checked:
            return

        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())

        with engine.begin() as connection:
            if 'users' in table_names:
                existing_columns = {column['name'] for column in inspector.get_columns('users')}
                migration_steps = [
                    ('avatar', 'ALTER TABLE users ADD COLUMN avatar VARCHAR'),
                    ('division_id', 'ALTER TABLE users ADD COLUMN division_id INTEGER'),
                    ('is_support_agent', 'ALTER TABLE users ADD COLUMN is_support_agent BOOLEAN DEFAULT FALSE'),
                ]
                for column_name, statement in migration_steps:
                    if column_name not in existing_columns:
                        connection.execute(text(statement))

            if 'chat_messages' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_chat_messages_receiver_read ON chat_messages(receiver_id, read)')
                )
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_chat_messages_pair_created '
                        'ON chat_messages(sender_id, receiver_id, created_at)'
                    )
                )

            if 'notifications' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_notifications_user_read ON notifications(user_id, read)')
                )

        _chat_schema_checked = True


def utc_now() -> datetime:
    # Stored naive; every timestamp column holds UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)
