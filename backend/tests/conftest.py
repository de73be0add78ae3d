import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from storefront.core.config import Settings
from storefront.core.database import Database
from storefront.core.security import CredentialStore
from storefront.main import create_app
from storefront.services.product_service import product_service
from storefront.services.user_service import user_service

TEST_SECRET = "test-secret-key"
# bcrypt's minimum work factor keeps the suite fast
TEST_BCRYPT_ROUNDS = 4

# Seeds users directly; bcrypt hashes verify under any store
test_credentials = CredentialStore(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'storefront.db'}",
        SECRET_KEY=TEST_SECRET,
        BCRYPT_ROUNDS=TEST_BCRYPT_ROUNDS,
    )


@pytest.fixture
def database(settings):
    """A migrated database for service-level tests"""
    db = Database(settings.DATABASE_URL)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # Entering the context runs the lifespan, which creates the tables
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def app_db(app, client):
    """Session on the app's own database, for seeding API tests"""
    session = app.state.database.session()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username="ana", password="Secret1!", is_admin=False, **fields):
    fields.setdefault("email", f"{username}@x.com")
    return user_service.create_user(
        db, test_credentials, username=username, password=password, is_admin=is_admin, **fields)


def make_product(db, name="Mug", price=Decimal("9.99")):
    return product_service.create_product(
        db,
        name=name,
        description=f"A {name.lower()}",
        price=price,
        photo_url=f"https://img.example.com/{name.lower()}.png",
    )


def login(client, username="ana", password="Secret1!") -> dict:
    """Log in and return the Authorization header for the token"""
    response = client.post(
        "/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
