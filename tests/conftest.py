"""Pytest configuration and fixtures."""

from datetime import timedelta
from typing import Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.clock import utcnow
from app.infrastructure.telephony.ringcentral_client import TOKEN_PATH, RingCentralClient
from app.persistence.database import Base
from app.persistence.models import *  # noqa: F401, F403
from app.persistence.models.contact import Contact
from app.persistence.models.deal import Deal, DealStage
from app.persistence.models.telephony_identity import TelephonyIdentity
from app.persistence.models.user import User


class FakeRingCentral:
    """In-memory RingCentral platform backed by httpx.MockTransport.

    Responses are queued per (method, path); the last queued response is
    reused once the queue is down to one entry.
    """

    server_url = "https://platform.test"

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Any]] = {}
        self.transport = httpx.MockTransport(self._handle)

    def add(self, method: str, path: str, *responses: Any) -> None:
        self._routes.setdefault((method, path), []).extend(responses)

    def add_token_response(self, access_token: str = "new-access", expires_in: int = 3600, **extra: Any) -> None:
        body = {
            "access_token": access_token,
            "refresh_token": f"{access_token}-refresh",
            "expires_in": expires_in,
            "refresh_token_expires_in": 604800,
            "token_type": "bearer",
            **extra,
        }
        self.add("POST", TOKEN_PATH, httpx.Response(200, json=body))

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def client_factory(self, **kwargs: Any) -> RingCentralClient:
        return RingCentralClient(
            server_url=self.server_url,
            client_id="test-client-id",
            client_secret="test-client-secret",
            redirect_uri="https://app.test/api/v1/telephony/callback",
            transport=self.transport,
            **kwargs,
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "not found"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
async def db_session():
    """Create a test database session."""
    # Use in-memory SQLite for testing
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def fake_provider() -> FakeRingCentral:
    return FakeRingCentral()


@pytest.fixture
async def user(db_session) -> User:
    user = User(email="agent@example.com", is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def make_identity(db_session, user):
    """Store a telephony identity for the test user."""

    async def _make(expires_in: timedelta = timedelta(hours=1), **kwargs: Any) -> TelephonyIdentity:
        identity = TelephonyIdentity(
            user_id=kwargs.pop("user_id", user.id),
            access_token=kwargs.pop("access_token", "old-access"),
            refresh_token=kwargs.pop("refresh_token", "old-refresh"),
            token_expires_at=utcnow() + expires_in,
            **kwargs,
        )
        db_session.add(identity)
        await db_session.commit()
        await db_session.refresh(identity)
        return identity

    return _make


@pytest.fixture
async def stages(db_session) -> dict[str, DealStage]:
    names = ["Lead", "Negotiation", "Won", "Lost"]
    result = {}
    for position, name in enumerate(names):
        stage = DealStage(name=name, position=position)
        db_session.add(stage)
        result[name] = stage
    await db_session.commit()
    return result


@pytest.fixture
def make_contact(db_session):
    async def _make(phone: str | None, **kwargs: Any) -> Contact:
        contact = Contact(phone=phone, first_name=kwargs.pop("first_name", "Pat"), **kwargs)
        db_session.add(contact)
        await db_session.commit()
        await db_session.refresh(contact)
        return contact

    return _make


@pytest.fixture
def make_deal(db_session):
    async def _make(contact: Contact, stage: DealStage | None, title: str, **kwargs: Any) -> Deal:
        deal = Deal(
            title=title,
            contact_id=contact.id,
            stage_id=stage.id if stage else None,
            **kwargs,
        )
        db_session.add(deal)
        await db_session.commit()
        await db_session.refresh(deal)
        return deal

    return _make


@pytest.fixture
async def api_client(db_session, user, fake_provider):
    """Create a test API client authenticated as ``user``."""
    from app.api.deps import get_current_user, get_telephony_client_factory
    from app.main import app
    from app.persistence.database import get_db

    async def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_telephony_client_factory] = lambda: fake_provider.client_factory

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
