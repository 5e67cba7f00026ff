# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count
from typing import Any

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DMAIL_KEY", "test-dmail-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dmail_service.api.v1.dependencies import get_message_store
from dmail_service.core.security import create_access_token
from dmail_service.db.session import Base
from dmail_service.db.session import get_db as app_get_session
from dmail_service.main import app as fastapi_app
from dmail_service.models import Dmail, DmailFilter, User, UserLevel
from dmail_service.services import Actor, AutobanPolicy, DmailDraft, MessageStore

TEST_DB_URL = "sqlite://"

_USER_COUNTER = count(1)


class RecordingDispatcher:
    """Notification dispatcher that remembers what it was asked to deliver."""

    def __init__(self) -> None:
        self.notified: list[Dmail] = []

    def notify(self, dmail: Dmail) -> None:
        self.notified.append(dmail)


class KeywordSpamClassifier:
    """Flags drafts whose body mentions the keyword."""

    def __init__(self, keyword: str = "casino") -> None:
        self.keyword = keyword
        self.calls: list[DmailDraft] = []

    def classify(self, draft: DmailDraft) -> bool:
        self.calls.append(draft)
        return self.keyword in draft.body.lower()


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with sensible defaults."""

    def _make_user(
        name: str | None = None,
        *,
        level: int = UserLevel.MEMBER,
        email: str | None = None,
        receive_email_notifications: bool = False,
        filter_words: str | None = None,
    ) -> User:
        user = User(
            name=name or f"user_{next(_USER_COUNTER)}",
            level=int(level),
            email=email,
            receive_email_notifications=receive_email_notifications,
        )
        if filter_words is not None:
            user.dmail_filter = DmailFilter(words=filter_words)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice", email="alice@example.com", receive_email_notifications=True)


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob", email="bob@example.com", receive_email_notifications=True)


@pytest.fixture()
def moderator(make_user: Callable[..., User]) -> User:
    return make_user("mod_user", level=UserLevel.MODERATOR)


@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture()
def spam_classifier() -> KeywordSpamClassifier:
    return KeywordSpamClassifier()


@pytest.fixture()
def store(
    db_session: Session,
    dispatcher: RecordingDispatcher,
    spam_classifier: KeywordSpamClassifier,
) -> MessageStore:
    """Message store with a small autoban threshold for quick scenarios."""
    return MessageStore(
        db_session,
        spam_classifier=spam_classifier,
        notifier=dispatcher,
        autoban=AutobanPolicy(db_session, threshold=3),
    )


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def api_store(app: FastAPI, store: MessageStore) -> Iterator[MessageStore]:
    """Route API requests through the test message store."""
    app.dependency_overrides[get_message_store] = lambda: store
    try:
        yield store
    finally:
        app.dependency_overrides.pop(get_message_store, None)


@pytest.fixture()
def client(app: FastAPI, api_store: MessageStore) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a helper building authorization headers for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _auth_headers


@pytest.fixture()
def send(store: MessageStore) -> Callable[..., Any]:
    """Shortcut composing a dmail from one user to another."""

    def _send(sender: User, recipient: User, title: str = "Hi", body: str = "hello") -> Any:
        return store.compose(
            Actor.from_user(sender),
            title=title,
            body=body,
            to_id=recipient.id,
        )

    return _send