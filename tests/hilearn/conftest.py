import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from hilearn.auth.passwords import hash_password  # noqa: E402
from hilearn.database import Base  # noqa: E402
from hilearn.models.chat_message import ChatMessage  # noqa: E402
from hilearn.models.notification import Notification  # noqa: E402
from hilearn.models.user import User  # noqa: E402

TABLES = [User.__table__, ChatMessage.__table__, Notification.__table__]


def _add_user(db, name, role='STUDENT', email=None, support_agent=False, password='password123'):
    user = User(
        name=name,
        email=email or f'{name.lower().replace(" ", ".")}@corp.example',
        hashed_password=hash_password(password),
        role=role,
        is_support_agent=support_agent,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def db_session():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def make_user(db_session):
    def _make(name, **kwargs):
        return _add_user(db_session, name, **kwargs)

    return _make


@pytest.fixture
def file_session_factory(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """A file-backed database shared by worker threads, wired into every SessionLocal user."""
    engine = create_engine(
        f'sqlite:///{tmp_path / "chat.db"}',
        connect_args={'check_same_thread': False},
    )
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    monkeypatch.setattr('hilearn.routes.chat_routes.SessionLocal', session_factory)
    monkeypatch.setattr('hilearn.auth.dependencies.SessionLocal', session_factory)
    monkeypatch.setattr('hilearn.database.SessionLocal', session_factory)

    try:
        yield session_factory
    finally:
        engine.dispose()


@pytest.fixture
def file_user(file_session_factory):
    def _make(name, **kwargs):
        db = file_session_factory()
        try:
            return _add_user(db, name, **kwargs)
        finally:
            db.close()

    return _make
