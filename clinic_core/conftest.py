# clinic_core/conftest.py
import pytest
from rest_framework.test import APIClient

from clinic_core.common.wiring import configure
from clinic_core.iam.models import Account
from clinic_core.iam.roles import Role

PASSWORD = "Pass@12345"


@pytest.fixture(autouse=True)
def fresh_services():
    """Each test gets its own service graph (and clock)."""
    services = configure()
    yield services
    configure()


def make_account(email, role=Role.PATIENT, password=PASSWORD, **extra):
    return Account.objects.create_user(email=email, password=password, role=role, **extra)


def client_for(account):
    c = APIClient()
    c.force_authenticate(user=account)
    return c


def make_patient(services, *, email="patient@example.com", national_id="12345678909", **values):
    record = services.patients.create(
        email=email,
        password=PASSWORD,
        values={"full_name": "Maria Souza", "national_id": national_id, "phone": "11987654321", **values},
        actor_id=None,
    )
    from clinic_core.patients.models import Patient

    return Patient.objects.get(id=record.id)


def make_professional(services, *, email="doctor@example.com", national_id="98765432100", position="physician", **values):
    record = services.professionals.create(
        email=email,
        password=PASSWORD,
        values={
            "full_name": "Dr. Carlos Lima",
            "national_id": national_id,
            "license_number": values.pop("license_number", f"CRM-{national_id[-4:]}"),
            "specialty": "cardiology",
            "position": position,
            "working_hours": {"mon": "08:00-12:00"},
            **values,
        },
        actor_id=None,
    )
    from clinic_core.professionals.models import Professional

    return Professional.objects.get(id=record.id)


@pytest.fixture
def admin(db):
    return Account.objects.create_superuser(email="admin@example.com", password=PASSWORD)


@pytest.fixture
def receptionist(db):
    return make_account("front@example.com", Role.RECEPTIONIST)


@pytest.fixture
def patient(db, fresh_services):
    return make_patient(fresh_services)


@pytest.fixture
def other_patient(db, fresh_services):
    return make_patient(fresh_services, email="other@example.com", national_id="11122233396")


@pytest.fixture
def physician(db, fresh_services):
    return make_professional(fresh_services)


@pytest.fixture
def other_physician(db, fresh_services):
    return make_professional(fresh_services, email="other.doctor@example.com", national_id="55566677788")


@pytest.fixture
def nurse(db, fresh_services):
    return make_professional(fresh_services, email="nurse@example.com", national_id="44455566677", position="nurse")


@pytest.fixture
def api_client(admin):
    return client_for(admin)
