import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app import auth, crud, models, schemas
from backend.app.database import Base, get_db, make_engine
from backend.app.inference import get_classifier
from backend.app.main import app


class FakeClassifier:
    """Keyword classifier that records every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, text):
        self.calls.append(text)
        lowered = text.lower()
        if "great" in lowered or "excellent" in lowered:
            return 0.9, "positive"
        if "bad" in lowered or "disappointed" in lowered:
            return 0.1, "negative"
        return 0.5, "neutral"


@pytest.fixture()
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def classifier():
    return FakeClassifier()


@pytest.fixture()
def client(session_factory, classifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_classifier] = lambda: classifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, name, role=models.Role.user, password="secret-pass"):
    user_in = schemas.UserCreate(name=name, email=f"{name.lower()}@example.com", password=password)
    return crud.create_user(db, user_in, role=role)


def principal_for(user):
    return auth.Principal(id=user.id, role=user.role)


def auth_headers(user):
    return {"Authorization": f"Bearer {auth.create_token_for_user(user)}"}


@pytest.fixture()
def alice(db):
    return make_user(db, "Alice")


@pytest.fixture()
def bob(db):
    return make_user(db, "Bob")


@pytest.fixture()
def carol(db):
    return make_user(db, "Carol")


@pytest.fixture()
def admin(db):
    return make_user(db, "Admin", role=models.Role.admin)
