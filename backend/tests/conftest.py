import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AI_RATE_LIMIT", "1000/minute")
os.environ.setdefault("OLLAMA_URL", "http://ollama.test:11434")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fintrack.database.db_service import DatabaseService
from fintrack.database.models import Base
from fintrack.database.postgres_db import get_db
from fintrack.models.schemas import CategorySuggestion, ColumnMapping, ColumnMappingResult
from fintrack.services.llm_classifier import ClassificationError, get_classifier_service


class FakeClassifier:
    """Stands in for the Ollama-backed service and records every call."""

    def __init__(self, column_mappings=None, suggestions=None, fail_mapping=False):
        # column_mappings: list of (csv header, transaction field)
        # suggestions: label -> (suggested category, confidence); other labels fail
        self.column_mappings = column_mappings or []
        self.suggestions = suggestions or {}
        self.fail_mapping = fail_mapping
        self.map_calls = []
        self.categorize_calls = []

    def map_columns(self, csv_sample):
        self.map_calls.append(csv_sample)
        if self.fail_mapping:
            raise ClassificationError("LLM service is not available")
        return ColumnMappingResult(
            column_mappings=[
                ColumnMapping(csv_header=header, transaction_field=field)
                for header, field in self.column_mappings
            ]
        )

    def categorize(self, label, available_categories):
        self.categorize_calls.append((label, list(available_categories)))
        if label not in self.suggestions:
            raise ClassificationError("LLM request timed out")
        suggested, confidence = self.suggestions[label]
        return CategorySuggestion(suggested_category=suggested, confidence=confidence)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def db(session):
    return DatabaseService(session)


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def client(session, classifier):
    from fintrack.main import app

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_classifier_service] = lambda: classifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def account(db, session):
    created = db.insert("accounts", {
        "name": "Everyday Chequing",
        "account_type": "debit",
        "balance": 1200.0,
        "currency": "USD",
    })
    session.commit()
    return created
