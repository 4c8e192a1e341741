import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from datetime import datetime, timedelta
from types import SimpleNamespace
import os

# Set testing environment before the app is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

from app.main import app
from app.core.database import get_db, get_redis, Base
from app.core.security import UserRole, create_access_token
from app.models.appointment import Appointment, AppointmentStatus
from app.models.department import Department
from app.models.doctor import Doctor
from app.models.user import User

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

# Every day 09:00-12:00, so any future date has slots
ALL_WEEK = {
    day: ["09:00", "12:00"]
    for day in ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
}

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    get_redis().flushall()
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client():
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def seeded(db_session):
    """Two departments, two doctors, a patient, another patient and an admin."""
    patient = User(email="patient@example.com", full_name="Pat Patient", role=UserRole.PATIENT)
    other = User(email="other@example.com", full_name="Olive Other", role=UserRole.PATIENT)
    admin = User(email="admin@example.com", full_name="Ada Admin", role=UserRole.ADMIN)
    heart_doc = User(email="house@example.com", full_name="Gregory House", role=UserRole.DOCTOR)
    brain_doc = User(email="strange@example.com", full_name="Dr. Stephen Strange", role=UserRole.DOCTOR)
    db_session.add_all([patient, other, admin, heart_doc, brain_doc])

    cardiology = Department(name="Cardiology", description="Heart care")
    neurology = Department(name="Neurology", description="Brain and nerves")
    closed = Department(name="Closed Wing", is_active=False)
    db_session.add_all([cardiology, neurology, closed])
    db_session.flush()

    cardiologist = Doctor(
        user_id=heart_doc.id,
        department_id=cardiology.id,
        specialization="Cardiologist",
        experience_years=12,
        availability=ALL_WEEK
    )
    neurologist = Doctor(
        user_id=brain_doc.id,
        department_id=neurology.id,
        specialization="Neurosurgeon",
        availability=ALL_WEEK
    )
    db_session.add_all([cardiologist, neurologist])
    db_session.commit()

    return SimpleNamespace(
        patient_id=patient.id,
        other_id=other.id,
        admin_id=admin.id,
        doctor_user_id=heart_doc.id,
        cardiology_id=cardiology.id,
        neurology_id=neurology.id,
        closed_id=closed.id,
        cardiologist_id=cardiologist.id,
        neurologist_id=neurologist.id,
    )

def make_token(user_id, role=UserRole.PATIENT, email=None):
    return create_access_token({
        "sub": user_id,
        "email": email or f"user{user_id}@example.com",
        "role": role.value
    })

def auth_headers(user_id, role=UserRole.PATIENT):
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}

def tomorrow_at(hhmm: str) -> str:
    day = (datetime.utcnow() + timedelta(days=1)).date()
    return f"{day.isoformat()}T{hhmm}:00Z"

def book(db, patient_id, doctor_id, start_time, status=AppointmentStatus.SCHEDULED):
    start = datetime.strptime(start_time, "%Y-%m-%dT%H:%M:%SZ")
    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        start_time=start,
        end_time=start + timedelta(minutes=30),
        status=status,
        reason="Checkup"
    )
    db.add(appointment)
    db.commit()
    return appointment.id
