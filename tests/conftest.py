"""
Test fixtures for the Growth App backend.

Provides db, client, account and profile fixtures over a file-based SQLite
database. The language model is replaced by FakeGenerativeClient, injected
through FastAPI's dependency overrides.
"""

import os
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

_DB_DIR = tempfile.mkdtemp(prefix="growth-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["SCHEDULER_ENABLED"] = "0"

import bcrypt
import pytest
from fastapi.testclient import TestClient

# main seeds the demo roster on import; fresh_tables wipes it before each test
import main
import models  # noqa: F401
from auth import create_account
from content import ANALYSIS_SCHEMA, MISSION_SCHEMA, QUESTION_SCHEMA
from database import Base, SessionLocal, engine
from genai_client import GenerationError
from models import Role
from profiles import ensure_profiles


class FakeGenerativeClient:
    """Stands in for GenerativeClient; answers are set per test"""

    def __init__(self):
        self.text = "참 잘했어요! 내일은 한 문장 더 써 볼까요?"
        self.missions = []
        self.questions = []
        self.analysis = {}
        self.fail = False
        self.prompts = []

    def generate_text(self, prompt):
        self.prompts.append(prompt)
        if self.fail:
            raise GenerationError("model unavailable")
        return self.text

    def generate_structured(self, prompt, schema):
        self.prompts.append(prompt)
        if self.fail:
            raise GenerationError("model unavailable")
        if schema is MISSION_SCHEMA:
            return self.missions
        if schema is QUESTION_SCHEMA:
            return self.questions
        if schema is ANALYSIS_SCHEMA:
            return self.analysis
        raise AssertionError("unexpected schema")


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cheap hashing rounds so account fixtures stay fast"""
    original = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, "gensalt", lambda rounds=4, prefix=b"2b": original(rounds=4, prefix=prefix))


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_genai():
    return FakeGenerativeClient()


@pytest.fixture
def make_student(db):
    """Creates a student account and logs it in once (profile + mirror)"""
    def _make(name="학생1", code="1111"):
        account = create_account(db, name, code, Role.student)
        db.commit()
        ensure_profiles(db, account)
        return account.user_id
    return _make


@pytest.fixture
def student(make_student):
    return make_student()


@pytest.fixture
def client(fake_genai):
    main.app.dependency_overrides[main.get_genai_client] = lambda: fake_genai
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def accounts(db):
    """학생1 / 1111, 학생2 / 2222 (never logged in), 교사 / 5555"""
    create_account(db, "학생1", "1111", Role.student)
    create_account(db, "학생2", "2222", Role.student)
    create_account(db, "교사", "5555", Role.teacher)
    db.commit()


def login(client, display_name, code):
    response = client.post("/auth/login", json={"display_name": display_name, "code": code})
    assert response.status_code == 200, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user_id"]


@pytest.fixture
def student_auth(client, accounts):
    return login(client, "학생1", "1111")


@pytest.fixture
def teacher_auth(client, accounts):
    return login(client, "교사", "5555")


@pytest.fixture
def login_as(client):
    """login_as("학생1", "1111") → (headers, user_id)"""
    return lambda display_name, code: login(client, display_name, code)
