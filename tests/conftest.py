import os
from typing import Callable, Generator, NamedTuple

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("BOOTSTRAP_SYSADMIN", "false")
os.environ.setdefault("UPLOAD_DIR", "test_uploads")

from lostfound.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from lostfound.auth import create_access_token, get_password_hash  # noqa: E402
from lostfound.database import Base, SessionLocal, engine  # noqa: E402
from lostfound.main import app  # noqa: E402
from lostfound.models import RoleEnum, User  # noqa: E402

DEFAULT_PASSWORD = "secret123"


class Account(NamedTuple):
    id: int
    username: str
    password: str
    headers: dict


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


def bearer(user_id: int, username: str, role: RoleEnum) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, username, role)}"}


@pytest.fixture()
def make_account() -> Callable[..., Account]:
    """Insert a user directly and return its id plus ready-made auth headers."""

    def _make(username: str, role: RoleEnum = RoleEnum.RESIDENT, password: str = DEFAULT_PASSWORD, **extra) -> Account:
        session = SessionLocal()
        try:
            user = User(
                username=username,
                email=f"{username}@example.com",
                hashed_password=get_password_hash(password),
                role=role,
                **{"is_enabled": True, "is_locked": False, **extra},
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            return Account(user.id, user.username, password, bearer(user.id, user.username, user.role))
        finally:
            session.close()

    return _make


@pytest.fixture()
def resident(make_account) -> Account:
    return make_account("alice")


@pytest.fixture()
def other_resident(make_account) -> Account:
    return make_account("bob")


@pytest.fixture()
def admin(make_account) -> Account:
    return make_account("manager", RoleEnum.ADMIN)


@pytest.fixture()
def sysadmin(make_account) -> Account:
    return make_account("root", RoleEnum.SYSADMIN)


ITEM_PAYLOAD = {
    "title": "Blue Umbrella",
    "description": "Found near the east gate",
    "eventDate": "2024-05-01T10:00:00",
    "location": "East gate",
    "category": "umbrella",
    "images": ["/uploads/general/umbrella.jpg"],
    "contactInfo": "555-0100",
}


@pytest.fixture()
def create_item(client) -> Callable[..., dict]:
    def _create(account: Account, kind: str = "found", **overrides) -> dict:
        payload = {**ITEM_PAYLOAD, **overrides}
        response = client.post(f"/{kind}-items", json=payload, headers=account.headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create
