"""Shared fixtures: in-memory SQLite database, API client, auth helpers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before anything imports app.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["APP_CLIENT_KEY"] = "test-app-key"
os.environ["QR_SHARED_SECRET"] = "test-qr-secret"
os.environ["OTP_DEBUG"] = "false"
os.environ["SMS_PROVIDER"] = "log"

import time

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.database import Base, SessionLocal, create_tables, engine
from app.models.tag import Tag
from app.utils.clock import utcnow

APP_HEADERS = {"X-App-Key": "test-app-key"}
ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}


@pytest.fixture
def db():
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from app.main import app
    return TestClient(app)


def make_token(user_id: str, secret: str = None) -> str:
    now = int(time.time())
    return jwt.encode(
        {"sub": user_id, "iat": now, "exp": now + 600},
        secret or settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def make_blank_tag(db, code: str = "TAG-AB12CD34") -> Tag:
    tag = Tag(code=code, status="created", created_at=utcnow())
    db.add(tag)
    db.commit()
    db.refresh(tag)
    return tag


def file_sessionmaker(path):
    """
    Session factory on a SQLite file shared by several threads.
    Writers queue on the busy timeout instead of failing a lock upgrade.
    """
    file_engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(file_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(file_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    create_tables(bind=file_engine)
    return file_engine, sessionmaker(bind=file_engine, autoflush=False)
