"""Pytest configuration and fixtures."""

import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from api.chat import get_chat_service
from api.plaid import get_bank_link_service
from services.bank_link_service import BankLinkService
from services.chat_service import ChatService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import checking_account, credit_account  # noqa: F401
from tests.fixtures.mocks import FakeLoop, MockLLMClient, MockPlaidClient


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mock_plaid_client")
def mock_plaid_client_fixture():
    """Create a mock Plaid client with sample accounts under one Item."""
    return MockPlaidClient()


@pytest.fixture(name="mock_llm_client")
def mock_llm_client_fixture():
    """Create an LLM client with no API key, so chat uses the fallback pool."""
    return MockLLMClient(configured=False)


@pytest.fixture(name="client")
def client_fixture(db, mock_plaid_client, mock_llm_client):
    """Create a test client with the test database and mocked upstreams."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_get_bank_link_service():
        return BankLinkService(plaid_client=mock_plaid_client)

    def override_get_chat_service():
        return ChatService(llm=mock_llm_client, rng=random.Random(0))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_bank_link_service] = override_get_bank_link_service
    app.dependency_overrides[get_chat_service] = override_get_chat_service
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="loop")
def loop_fixture():
    """A manually advanced timer loop."""
    return FakeLoop()
