import os

# Settings are read at import time; pin the test environment first.
os.environ["ENV"] = "test"
os.environ["TEST_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("CALLBACK_SIGNING_SECRET", "test-signing-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from handoff.config import Settings  # noqa: E402
from handoff.db import Base, get_db  # noqa: E402
from handoff import models  # noqa: E402,F401
from tests.fixtures.conversations_fixtures import AUTH_TOKEN  # noqa: E402

pytest_plugins = [
    "tests.fixtures.conversations_fixtures",
    "tests.fixtures.handoff_event_fixtures",
]

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db():
    """Database session; every table is emptied after the test."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture(scope="function")
def settings():
    return Settings(
        twilio_account_sid="AC00000000000000000000000000000000",
        twilio_auth_token=AUTH_TOKEN,
        domain_name="handoff.example.com",
        callback_signing_secret="test-signing-secret",
        assistant_sid="aia_asst_default",
        studio_flow_sid="FW00000000000000000000000000000000",
        identified_services=["billing", "support"],
        identified_areas=["sales", "operations"],
        notification_from="+15550000000",
    )


@pytest.fixture
def client(db, settings, fake_conversations, fake_assistant, fake_notifications):
    """App client with the database, settings and collaborators overridden."""
    from handoff.main import create_app
    from handoff.routers.utils.dependencies import (
        get_app_settings,
        get_assistant_adapter,
        get_conversations_adapter,
        get_notification_adapter,
    )

    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_conversations_adapter] = lambda: fake_conversations
    app.dependency_overrides[get_assistant_adapter] = lambda: fake_assistant
    app.dependency_overrides[get_notification_adapter] = lambda: fake_notifications
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
