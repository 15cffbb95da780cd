"""
Shared pytest fixtures for the screening backend tests
"""
import io
import os
import tempfile

# app.config reads the environment at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="screening-uploads-")
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_SERVICE_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.annotation import AnnotationSet, make_shape
from app.database import Base, get_db
from app.main import app
from app.services.storage import LocalStorage, get_storage


@pytest.fixture
def db_session():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def storage(tmp_path):
    """Local storage rooted in a temporary directory"""
    return LocalStorage(tmp_path / "objects")


@pytest.fixture
def base_image():
    """A plain white RGB photo"""
    return Image.new("RGB", (200, 150), "white")


@pytest.fixture
def png_bytes(base_image):
    buffer = io.BytesIO()
    base_image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def rectangle():
    return make_shape("rectangle", x=20, y=30, width=60, height=40, color="#ff0000", stroke_width=2)


@pytest.fixture
def annotation_set(rectangle):
    arrow = make_shape("arrow", start_x=10, start_y=10, end_x=100, end_y=80, color="#0000ff", stroke_width=2)
    return AnnotationSet(annotations=(rectangle, arrow))


@pytest.fixture
def patient():
    return {
        "patient_name": "Jane Doe",
        "patient_id_number": "P123",
        "email": "jane@example.com",
        "note": "Sensitive upper left molar",
    }


@pytest.fixture
def client(db_session, storage):
    """TestClient wired to the test database and storage"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
