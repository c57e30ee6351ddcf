"""
Pytest configuration and fixtures for ShareBoard API tests.
"""
import os

# Must be set before the app modules read their settings
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.limiter import limiter
from app.main import app
from app.models.comment import Comment
from app.models.post import Post
from app.routes.posts import get_media_resolver
from app.store import RecordStore
from app.worker.media_resolver import MediaResolver

# Disable rate limiting for tests
limiter.enabled = False

# Use in-memory SQLite for tests with shared connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Global session for sharing across requests
_test_session = None

ADMIN_TOKEN = "test-admin-token"
SOURCE = "https://grok.com/imagine/post/{}"

UUID_A = "22460adb-aa2b-421f-8b7a-ba3cba8703af"
UUID_B = "caccd806-fa48-4c66-9882-deb292e34d77"
UUID_C = "cbe61ae4-d8ec-407f-b838-84944685ce38"


def get_test_db():
    """Get the shared test database session."""
    global _test_session
    try:
        yield _test_session
    finally:
        pass


class FakeProbe:
    """Probe that answers from a fixed set of reachable urls and records calls."""

    def __init__(self, reachable=None):
        self.reachable = set(reachable or [])
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        return url in self.reachable


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    global _test_session

    Base.metadata.create_all(bind=engine)

    _test_session = TestingSessionLocal()

    app.dependency_overrides[get_db] = get_test_db

    yield _test_session

    # Cleanup
    app.dependency_overrides.clear()
    _test_session.close()
    _test_session = None

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def store(db):
    """Record store bound to the test session."""
    return RecordStore(db)


@pytest.fixture(scope="function")
def probe():
    """A probe with nothing reachable; tests add urls to ``probe.reachable``."""
    return FakeProbe()


@pytest.fixture(scope="function")
def resolver(probe):
    """Media resolver that never touches the network."""
    return MediaResolver(probe=probe)


@pytest.fixture(scope="function")
def client(db, resolver):
    """Create a test client."""
    app.dependency_overrides[get_media_resolver] = lambda: resolver
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}


@pytest.fixture(scope="function")
def make_post(db):
    """Insert a post directly; keyword arguments override the defaults."""
    counter = {"n": 0}

    def _make(id=UUID_A, url=None, **fields):
        counter["n"] += 1
        values = {
            "id": id,
            "url": url or SOURCE.format(id),
            "prompt": f"prompt {counter['n']}",
            "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=counter["n"]),
        }
        values.update(fields)
        post = Post(**values)
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    return _make


@pytest.fixture(scope="function")
def make_comment(db):
    """Insert a comment and keep the post's comment_count in step."""

    def _make(post_id, content="nice", author_ref="client_x", **fields):
        comment = Comment(post_id=post_id, content=content, author_ref=author_ref, **fields)
        db.add(comment)
        post = db.get(Post, post_id)
        post.comment_count = (post.comment_count or 0) + 1
        db.commit()
        db.refresh(comment)
        return comment

    return _make
