"""
Pytest configuration and fixtures for the API tests.

Every test runs against its own SQLite file so state never leaks between
tests; the app's get_db dependency is pointed at that database.
"""
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from main import app
from shared.db import Base, get_db
from shared.auth import get_password_hash
from services.identity.models.users import User, UserRole

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin123"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """A session for reading or seeding the database directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_user(session_factory, username, password, role=UserRole.USER, name=None):
    async with session_factory() as session:
        user = User(
            username=username,
            hashed_password=get_password_hash(password),
            name=name or username.title(),
            role=role
        )
        session.add(user)
        await session.commit()
        return user


async def login(client, username, password):
    """Log in and return the bearer token."""
    response = await client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]["access_token"]


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_user(session_factory):
    return await create_user(session_factory, ADMIN_USERNAME, ADMIN_PASSWORD, role=UserRole.ADMIN,
                             name="System Administrator")


@pytest.fixture
async def auth_client(client, admin_user):
    """Client logged in as the default administrator."""
    token = await login(client, ADMIN_USERNAME, ADMIN_PASSWORD)
    client.headers["Authorization"] = f"Bearer {token}"
    return client


# --- Factories ---

@pytest.fixture
def make_subject(auth_client):
    async def _make(name="English", education_stage="ELEMENTARY", category="Core"):
        response = await auth_client.post("/subjects", json={
            "name": name,
            "category": category,
            "education_stage": education_stage,
        })
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _make


@pytest.fixture
def make_material(auth_client, make_subject):
    async def _make(title="English Learner's Material", grade_level=3, quantity=100, subject_id=None):
        if subject_id is None:
            subject_id = (await make_subject(name=f"Subject for {title}"))["id"]
        response = await auth_client.post("/materials", json={
            "title": title,
            "grade_level": grade_level,
            "quantity": quantity,
            "source": "DepEd Central",
            "subject_id": subject_id,
        })
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _make


@pytest.fixture
def make_school(auth_client):
    async def _make(schoolname="Compostela Central Elementary School", municipality="Compostela",
                    schooltype="ELEMENTARY", congressional_district=1, zone="Urban"):
        response = await auth_client.post("/schools", json={
            "schoolname": schoolname,
            "schooltype": schooltype,
            "municipality": municipality,
            "congressional_district": congressional_district,
            "zone": zone,
        })
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _make


@pytest.fixture
def make_issuance(auth_client):
    async def _make(material_id, school_id, quantity, remarks=None):
        response = await auth_client.post("/issuances", json={
            "material_id": material_id,
            "school_id": school_id,
            "quantity": quantity,
            "remarks": remarks,
        })
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _make


@pytest.fixture
def material_quantity(auth_client):
    async def _get(material_id):
        response = await auth_client.get(f"/materials/{material_id}")
        assert response.status_code == 200, response.text
        return response.json()["data"]["quantity"]
    return _get
