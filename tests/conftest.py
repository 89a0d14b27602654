import os
from typing import Generator
import aiosmtplib
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_KEY"] = ""
os.environ["FRONTEND_URL"] = "http://localhost:5173"

from lookup_api import crud  # noqa: E402
from lookup_api.auth import hash_password  # noqa: E402
from lookup_api.config import get_settings  # noqa: E402
from lookup_api.db import Base, enable_sqlite_foreign_keys  # noqa: E402
from lookup_api.deps import get_capabilities, get_db, get_mailer, get_mirror  # noqa: E402
from lookup_api.mailer import Mailer, SendResult  # noqa: E402
from lookup_api.main import app  # noqa: E402
from lookup_api.mirror import MirrorError  # noqa: E402
from lookup_api.schema import SchemaCapabilities  # noqa: E402


class RecordingMailer(Mailer):
    """Renders real templates but keeps messages in memory instead of SMTP."""

    def __init__(self):
        super().__init__(get_settings())
        self.outbox = []
        self.fail = False

    async def send(self, to, subject, html):
        if self.fail:
            return SendResult(success=False, error="SMTP relay unavailable")
        self.outbox.append({"to": to, "subject": subject, "html": html})
        return SendResult(success=True)


class RefusingFastMail:
    """FastMail stand-in whose relay rejects every recipient."""

    async def send_message(self, message):
        raise aiosmtplib.SMTPRecipientsRefused(
            [aiosmtplib.SMTPRecipientRefused(550, "5.1.1 mailbox unavailable", str(r)) for r in message.recipients]
        )


class RecordingMirror:
    table = "users_login"

    def __init__(self):
        self.records = {}
        self.forgotten = []
        self.fail = False

    def push(self, record):
        if self.fail:
            raise MirrorError("mirror unreachable")
        self.records[record["id"]] = record
        return record

    def forget(self, account_id):
        if self.fail:
            raise MirrorError("mirror unreachable")
        self.forgotten.append(account_id)
        self.records.pop(account_id, None)


@pytest.fixture(scope="function")
def engine():
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Generator:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def caps(engine):
    return SchemaCapabilities.detect(engine)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def mirror():
    return RecordingMirror()


@pytest.fixture(scope="function")
def client(db_session, caps, mailer, mirror):
    # Override dependencies to use the same session and in-memory fakes
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_capabilities] = lambda: caps
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_mirror] = lambda: mirror
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_account(db_session):
    def _make(email="user@example.com", password="secret1", full_name="Test User", **fields):
        fields.setdefault("is_verified", True)
        return crud.create_account(
            db_session,
            full_name=full_name,
            email=email,
            password=hash_password(password),
            **fields,
        )
    return _make


@pytest.fixture
def admin(make_account):
    return make_account(email="admin@example.com", password="adminpass", full_name="Site Admin", is_admin=True)


@pytest.fixture
def refusing_mailer(client):
    # A real Mailer, so the SMTP error travels through Mailer.send
    m = Mailer(get_settings())
    m._client = RefusingFastMail()
    app.dependency_overrides[get_mailer] = lambda: m
    return m
