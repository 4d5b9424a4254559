import os
import tempfile

os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="medstore-uploads-"))
os.environ.setdefault("ENVIRONMENT", "test")

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import create_document, get_db, to_object_id
from main import app
from providers import (
    IdentityProvider,
    IdentityVerificationError,
    LocalImageStore,
    SMSSender,
    get_identity_provider,
    get_image_store,
    get_sms_sender,
)
from schemas import Admin, GeoPoint, Medicine, Store, User
from security import create_access_token, create_admin_token, hash_password


class FakeSMSSender(SMSSender):
    def __init__(self):
        self.sent = []
        self.succeed = True

    def send_code(self, phone, code):
        self.sent.append((phone, code))
        return self.succeed


class FakeIdentityProvider(IdentityProvider):
    """Accepts tokens of the form ``valid:<phone>``."""

    def verify_identity_token(self, token):
        if not token.startswith("valid:"):
            raise IdentityVerificationError("bad token")
        return token[len("valid:"):]


@pytest.fixture
def mongo():
    return mongomock.MongoClient()["medstore_test"]


@pytest.fixture
def sms():
    return FakeSMSSender()


@pytest.fixture
def client(mongo, sms, tmp_path):
    app.dependency_overrides[get_db] = lambda: mongo
    app.dependency_overrides[get_sms_sender] = lambda: sms
    app.dependency_overrides[get_identity_provider] = lambda: FakeIdentityProvider()
    app.dependency_overrides[get_image_store] = lambda: LocalImageStore(str(tmp_path))
    yield TestClient(app)
    app.dependency_overrides.clear()


# ----------------------- Data helpers -----------------------
def make_user(mongo, mobile="9876543210"):
    user_id = create_document(mongo, "user", User(mobile_number=mobile))
    return mongo["user"].find_one({"_id": to_object_id(user_id)})


def make_admin(mongo, email="admin@store.com", password="secret123", role="superadmin"):
    admin_id = create_document(mongo, "admin", Admin(email=email, password_hash=hash_password(password), role=role))
    return mongo["admin"].find_one({"_id": to_object_id(admin_id)})


def make_store(mongo, name="Central Pharmacy", latitude=12.9716, longitude=77.5946, is_active=True):
    store = Store(
        name=name,
        address="1 MG Road",
        location=GeoPoint.from_lat_lng(latitude, longitude),
        contact_number="9000000000",
        is_active=is_active,
    )
    return create_document(mongo, "store", store)


def make_medicine(mongo, name="Paracetamol", price=50, quantity=5, store=None, category="Pharmacy", is_active=True):
    medicine = Medicine(
        name=name,
        description=f"{name} tablets",
        price=price,
        quantity=quantity,
        store=store,
        category=category,
        is_active=is_active,
    )
    return create_document(mongo, "medicine", medicine)


@pytest.fixture
def user(mongo):
    return make_user(mongo)


@pytest.fixture
def user_headers(user):
    return {"Authorization": f"Bearer {create_access_token(str(user['_id']))}"}


@pytest.fixture
def admin(mongo):
    return make_admin(mongo)


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_admin_token(str(admin['_id']), admin['role'])}"}
