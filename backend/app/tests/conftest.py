"""
Shared fixtures: in-memory SQLite database, scripted language model,
and an authenticated API client.
"""
import os

# Settings are read at import time; configure before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret"
os.environ["JWT_AUDIENCE"] = ""

from datetime import datetime, timedelta
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import settings
from app.core.exceptions import UpstreamError
from app.core.utils import utcnow
from app.db.base import Base
from app.db.session import get_db, get_session_factory, init_db
from app.main import app
from app.models.entry import JournalEntry
from app.services.llm_client import Completion, get_llm_client

HAPPY_SENTIMENT = '{"score": 0.8, "magnitude": 0.7, "primaryEmotion": "happy", "confidence": 0.9}'
SAD_SENTIMENT = '{"score": -0.6, "magnitude": 0.5, "primaryEmotion": "sad", "confidence": 0.8}'
DAILY_SUMMARY = (
    '{"summary": "You spent a bright day at the beach with friends.", '
    '"keyThemes": ["friendship", "nature"], "overallMood": "joyful", '
    '"insights": ["Time outdoors lifts your mood."], "entryCount": 1}'
)


class FakeLLMClient:
    """Scripted stand-in for LanguageModelClient.

    `responses` are consumed in order: strings become completions, exceptions
    are raised. Once exhausted, `default` is used (or UpstreamError raised).
    """

    def __init__(self, responses=None, default=None, available=True, model="gpt-4o-mini"):
        self.responses = list(responses or [])
        self.default = default
        self.available = available
        self.model = model
        self.calls = []

    def is_available(self):
        return self.available

    async def complete(self, messages, model=None, temperature=0.3, max_tokens=500):
        self.calls.append(messages)
        if self.responses:
            item = self.responses.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise UpstreamError("no scripted response")
        if isinstance(item, Exception):
            raise item
        return Completion(text=item, model=self.model, prompt_tokens=40, completion_tokens=20)


class StepClock:
    """Deterministic clock advanced by hand."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 2, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def client(session_factory, fake_llm):
    """API client wired to the test database and the scripted model."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user_id="user-1", expires_in=timedelta(hours=1)):
    """Bearer header signed like the auth provider's tokens."""
    claims = {"sub": user_id, "exp": utcnow() + expires_in}
    token = jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


def make_entry(db, user_id, content, mood=None, created_at=None):
    entry = JournalEntry(user_id=user_id, content=content, mood=mood)
    if created_at is not None:
        entry.created_at = created_at
        entry.updated_at = created_at
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry
