"""Global test fixtures and shared test infrastructure.

Provides:
- Environment variable defaults (must be set before any app import)
- FakeResult / FakeAsyncSession for unit tests that only need canned rows
- A file-backed SQLite database per test plus a synchronous ``Seeder``
- ``FakePandaDocClient`` recording provider calls
- Identity helpers issuing HS256 bearer tokens
- Shared pytest fixtures for dependency overrides
"""

from __future__ import annotations

import os

# Environment defaults must be set before importing the app, which triggers
# pydantic Settings validation on import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("JWT_AUDIENCE", "authenticated")
os.environ.setdefault("BACKOFFICE_ALLOWED_EMAILS", "")

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from factoring.api import deps
from factoring.core.settings import settings
from factoring.db.base import Base
from factoring.db.session import get_db
from factoring.main import app
from factoring.models import (
    AuditLog,
    Company,
    Document,
    FundingRequest,
    Membership,
    Offer,
    Profile,
)
from factoring.services.lifecycle import LifecyclePolicy
from factoring.services.pandadoc import Envelope
from factoring.services.side_effects import SideEffects


# ---------------------------------------------------------------------------
# Sentinel
# ---------------------------------------------------------------------------

_UNSET = object()


# ---------------------------------------------------------------------------
# FakeResult / FakeAsyncSession mimic the SQLAlchemy interfaces
# ---------------------------------------------------------------------------


class FakeScalarResult:
    """Mimics the object returned by ``Result.scalars()``."""

    def __init__(self, items: list | None = None) -> None:
        self._items = list(items or [])

    def all(self) -> list:
        return list(self._items)

    def first(self):
        return self._items[0] if self._items else None


class FakeResult:
    """Mimics ``sqlalchemy.engine.Result`` for a single canned answer."""

    def __init__(
        self,
        *,
        scalar: Any = _UNSET,
        rows: list | None = None,
        items: list | None = None,
        rowcount: int = 0,
    ) -> None:
        self._scalar = scalar
        self._rows = rows or []
        self._items = items or []
        self.rowcount = rowcount

    def scalar_one_or_none(self):
        if self._scalar is _UNSET:
            return None
        return self._scalar

    def scalars(self) -> FakeScalarResult:
        return FakeScalarResult(self._items)

    def first(self):
        if self._rows:
            return self._rows[0]
        return None

    def all(self) -> list:
        return list(self._rows)


class FakeAsyncSession:
    """Fake ``AsyncSession`` implementing the methods production code calls."""

    def __init__(self) -> None:
        self.added: list[Any] = []
        self.commits = 0
        self.statements: list[Any] = []
        self._execute_handlers: list[Callable] = []
        self._default_result = FakeResult()
        self.fail_with: Exception | None = None

    def on_execute(self, handler: Callable) -> FakeAsyncSession:
        """Register a handler: ``handler(stmt) -> FakeResult | None``."""
        self._execute_handlers.append(handler)
        return self

    async def execute(self, stmt, *args, **kwargs):
        if self.fail_with is not None:
            raise self.fail_with
        self.statements.append(stmt)
        for handler in self._execute_handlers:
            result = handler(stmt)
            if result is not None:
                return result
        return self._default_result

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    def add_all(self, objs: list[Any]) -> None:
        self.added.extend(objs)

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> FakeAsyncSession:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


def entity_handler(entity_class: type, result: FakeResult) -> Callable:
    """Return *result* when the select targets *entity_class*."""

    def _handler(stmt):
        descriptions = getattr(stmt, "column_descriptions", None)
        if descriptions and descriptions[0].get("entity") is entity_class:
            return result
        return None

    return _handler


# ---------------------------------------------------------------------------
# SQLite-backed database
# ---------------------------------------------------------------------------


class Seeder:
    """Synchronous writer for arranging rows before the code under test runs."""

    def __init__(self, sync_engine) -> None:
        self.engine = sync_engine

    def _save(self, obj: Any) -> Any:
        with Session(self.engine, expire_on_commit=False) as session:
            session.add(obj)
            session.commit()
            session.refresh(obj)
        return obj

    def company(self, **overrides: Any) -> Company:
        defaults: dict[str, Any] = dict(id=uuid4(), name="Acme Receivables SAS", tax_id="900123456")
        defaults.update(overrides)
        return self._save(Company(**defaults))

    def profile(self, *, user_id: UUID, email: str | None, is_staff: bool = False) -> Profile:
        return self._save(Profile(user_id=user_id, email=email, full_name="Test User", is_staff=is_staff))

    def membership(
        self, *, company_id: UUID, user_id: UUID, role: str = "OPERATOR", status: str = "ACTIVE"
    ) -> Membership:
        return self._save(
            Membership(id=uuid4(), company_id=company_id, user_id=user_id, role=role, status=status)
        )

    def request(self, *, company_id: UUID, **overrides: Any) -> FundingRequest:
        defaults: dict[str, Any] = dict(
            id=uuid4(),
            company_id=company_id,
            requested_amount=Decimal("10000000.00"),
            currency="COP",
            status="review",
            version=1,
        )
        defaults.update(overrides)
        return self._save(FundingRequest(**defaults))

    def document(self, *, company_id: UUID, request_id: UUID, **overrides: Any) -> Document:
        defaults: dict[str, Any] = dict(
            id=uuid4(),
            company_id=company_id,
            request_id=request_id,
            type="MASTER_AGREEMENT",
            status="created",
            provider="PANDADOC",
            provider_envelope_id="env-existing",
        )
        defaults.update(overrides)
        return self._save(Document(**defaults))

    def offer(self, *, company_id: UUID, request_id: UUID, **overrides: Any) -> Offer:
        defaults: dict[str, Any] = dict(
            id=uuid4(),
            company_id=company_id,
            request_id=request_id,
            status="offered",
            annual_rate=Decimal("24"),
            advance_pct=Decimal("85"),
            operation_days=90,
            gross_amount=Decimal("10000000.00"),
            advance_amount=Decimal("8500000.00"),
            discount_amount=Decimal("503013.70"),
            processing_fee=Decimal("50000.00"),
            wire_fee=Decimal("5000.00"),
            net_amount=Decimal("7941986.30"),
            valid_until=datetime.now(timezone.utc) + timedelta(days=7),
        )
        defaults.update(overrides)
        return self._save(Offer(**defaults))

    # -- reads --

    def get(self, model: type, pk: Any) -> Any:
        with Session(self.engine, expire_on_commit=False) as session:
            return session.get(model, pk)

    def audit_logs(self, **filters: Any) -> list[AuditLog]:
        with Session(self.engine, expire_on_commit=False) as session:
            stmt = select(AuditLog).filter_by(**filters)
            return list(session.execute(stmt).scalars().all())

    def all(self, model: type, **filters: Any) -> list[Any]:
        with Session(self.engine, expire_on_commit=False) as session:
            return list(session.execute(select(model).filter_by(**filters)).scalars().all())


@pytest.fixture
def db_file(tmp_path):
    return tmp_path / "factoring-test.db"


@pytest.fixture
def seeder(db_file) -> Seeder:
    sync_engine = create_engine(f"sqlite:///{db_file}", poolclass=NullPool)
    Base.metadata.create_all(sync_engine)
    yield Seeder(sync_engine)
    sync_engine.dispose()


@pytest.fixture
def session_factory(db_file, seeder):
    async_engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", poolclass=NullPool)
    return async_sessionmaker(async_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def effects(session_factory) -> SideEffects:
    return SideEffects(session_factory=session_factory)


@pytest.fixture(autouse=True)
def storage_root(monkeypatch, tmp_path):
    """Point local storage at a per-test directory."""
    root = tmp_path / "uploads"
    monkeypatch.setattr(settings, "storage_provider", "local")
    monkeypatch.setattr(settings, "local_upload_dir", str(root))
    return root


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@dataclass
class Actor:
    identity: deps.IdentityContext

    @property
    def user_id(self) -> UUID:
        return self.identity.user_id

    @property
    def headers(self) -> dict[str, str]:
        return auth_headers(self.identity)


def make_token(user_id: UUID, email: str | None = None, **claims: Any) -> str:
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    if email:
        payload["email"] = email
    payload.update(claims)
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def auth_headers(identity: deps.IdentityContext, **extra: str) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {make_token(identity.user_id, identity.email)}"}
    headers.update(extra)
    return headers


@dataclass
class World:
    """One company with a staff user, an owner, an operator and an outsider."""

    company: Company
    staff: Actor
    owner: Actor
    operator: Actor
    outsider: Actor

    @property
    def company_id(self) -> UUID:
        return self.company.id


@pytest.fixture
def world(seeder) -> World:
    company = seeder.company()
    staff = Actor(deps.IdentityContext(user_id=uuid4(), email="ops@factoring.test"))
    owner = Actor(deps.IdentityContext(user_id=uuid4(), email="owner@acme.test"))
    operator = Actor(deps.IdentityContext(user_id=uuid4(), email="operator@acme.test"))
    outsider = Actor(deps.IdentityContext(user_id=uuid4(), email="someone@else.test"))

    seeder.profile(user_id=staff.user_id, email=staff.identity.email, is_staff=True)
    seeder.profile(user_id=owner.user_id, email=owner.identity.email)
    seeder.profile(user_id=operator.user_id, email=operator.identity.email)
    seeder.profile(user_id=outsider.user_id, email=outsider.identity.email)
    seeder.membership(company_id=company.id, user_id=owner.user_id, role="OWNER")
    seeder.membership(company_id=company.id, user_id=operator.user_id, role="OPERATOR")
    return World(company=company, staff=staff, owner=owner, operator=operator, outsider=outsider)


# ---------------------------------------------------------------------------
# PandaDoc fake
# ---------------------------------------------------------------------------


class FakePandaDocClient:
    """Records calls; set ``error`` to make the next provider call fail."""

    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []
        self.sent: list[str] = []
        self.sessions: list[tuple[str, str]] = []
        self.downloads: list[str] = []
        self.error: Exception | None = None
        self.envelope_id = "env-" + uuid4().hex[:12]
        self.pdf = b"%PDF-1.7\n% signed contract\n"

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    async def create_document(self, *, name, template_id, recipients, tokens=None, metadata=None):
        self._maybe_fail()
        self.created.append(
            {
                "name": name,
                "template_id": template_id,
                "recipients": recipients,
                "tokens": tokens,
                "metadata": metadata,
            }
        )
        return Envelope(envelope_id=self.envelope_id, status="document.draft", name=name)

    async def send_document(self, envelope_id, *, subject, message):
        self._maybe_fail()
        self.sent.append(envelope_id)

    async def create_recipient_session(self, envelope_id, *, recipient_email, lifetime_seconds=900):
        self._maybe_fail()
        self.sessions.append((envelope_id, recipient_email))
        return f"https://app.pandadoc.com/s/session-{envelope_id}"

    async def download_document(self, envelope_id):
        self._maybe_fail()
        self.downloads.append(envelope_id)
        return self.pdf


@pytest.fixture
def pandadoc() -> FakePandaDocClient:
    return FakePandaDocClient()


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def policy() -> dict[str, LifecyclePolicy]:
    """Mutable holder so a test can swap the lifecycle policy before calling the API."""
    return {"value": LifecyclePolicy.from_settings(settings)}


@pytest.fixture
def override_deps(session_factory, pandadoc, policy):
    """Standard dependency overrides: db, side effects, PandaDoc client, lifecycle policy."""

    async def _get_db():
        async with session_factory() as session:
            yield session

    def _get_side_effects():
        return SideEffects(session_factory=session_factory)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[deps.get_side_effects] = _get_side_effects
    app.dependency_overrides[deps.get_pandadoc_client] = lambda: pandadoc
    app.dependency_overrides[deps.get_lifecycle_policy] = lambda: policy["value"]

    yield

    app.dependency_overrides.clear()


@pytest.fixture
def client(override_deps) -> TestClient:
    return TestClient(app)
