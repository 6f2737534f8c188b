"""Pytest configuration and shared fixtures for Nova tests."""

from __future__ import annotations

import asyncio
import os
import uuid
from dataclasses import dataclass

# Settings are read at import time; provide the required values first.
os.environ.setdefault("AUTH_SECRET_KEY", "test-session-secret")
os.environ.setdefault("INVITE_SECRET_KEY", "test-invite-secret")
os.environ.setdefault("APP_BASE_URL", "http://nova.test")
os.environ.setdefault("AUTORAG_CHUNK_DELAY_SECONDS", "0")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from nova.api.answer_provider import AnswerContext, AnswerProviderError  # noqa: E402
from nova.api.blob_store import generate_key  # noqa: E402
from nova.api.utils import create_access_token  # noqa: E402
from nova.database.config.config import settings  # noqa: E402
from nova.database.config.connection_engine import (  # noqa: E402
    SessionLocal,
    bind_engine,
    create_tables,
    dispose_engine,
    metadata,
)
from nova.database.entities.group import Group, GroupMember  # noqa: E402
from nova.database.entities.organization import Organization, OrganizationMember, OrganizationRole  # noqa: E402
from nova.database.entities.user import User  # noqa: E402


# ----------------------------------------------------------------------
# Fakes
# ----------------------------------------------------------------------
class FakeAnswerProvider:
    """
    Yields a fixed list of fragments.

    `fail_after` raises ``AnswerProviderError`` once that many fragments were
    yielded (0 fails before the first). When `hold` is set the stream waits
    on it after the first fragment, so tests can disconnect mid-answer.
    """

    def __init__(self, fragments=("Hello", " there"), fail_after=None, hold: asyncio.Event | None = None):
        self.fragments = list(fragments)
        self.fail_after = fail_after
        self.hold = hold
        self.contexts: list[AnswerContext] = []
        self.yielded = 0
        self.stream_closed = False
        self.closed = False

    async def stream_answer(self, context: AnswerContext):
        self.contexts.append(context)
        try:
            for index, fragment in enumerate(self.fragments):
                if self.fail_after is not None and index == self.fail_after:
                    raise AnswerProviderError("provider failed")
                yield fragment
                self.yielded += 1
                if self.hold is not None:
                    await self.hold.wait()
                await asyncio.sleep(0)
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise AnswerProviderError("provider failed")
        finally:
            self.stream_closed = True

    async def aclose(self) -> None:
        self.closed = True


class FakeBlobStore:
    """In-memory object store with the BlobStore interface."""

    def __init__(self) -> None:
        self.objects: dict[str, dict] = {}
        self.fail_deletes = False

    def generate_key(self, organization_id: str, filename: str) -> str:
        return generate_key(organization_id, filename)

    def upload(self, key, body, content_type, metadata=None):
        self.objects[key] = {"body": body, "content_type": content_type, "metadata": metadata or {}}
        return key

    def download_url(self, key, expires=3600):
        return f"https://blobs.test/{key}?expires={expires}"

    def delete(self, key):
        if self.fail_deletes:
            raise RuntimeError("storage unavailable")
        self.objects.pop(key, None)

    def exists(self, key):
        return key in self.objects


class FakeRagClient:
    """Stands in for the AutoRAG client during document sync."""

    def __init__(self, default_rag_id: str | None = "rag-default", job_id: str = "job-1", fail: bool = False):
        self.default_rag_id = default_rag_id
        self.job_id = job_id
        self.fail = fail
        self.sync_calls = 0
        self.closed = False

    async def sync_documents(self, rag_id=None):
        self.sync_calls += 1
        if self.fail:
            raise AnswerProviderError("Cloudflare AutoRAG API error (500): boom", status_code=500)
        return self.job_id

    async def aclose(self) -> None:
        self.closed = True


# ----------------------------------------------------------------------
# Database
# ----------------------------------------------------------------------
@pytest.fixture
def engine():
    """In-memory SQLite database bound to the session factory."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    bind_engine(engine)
    create_tables(engine)
    yield engine
    metadata.drop_all(engine)
    dispose_engine(engine)


def persist(*entities):
    """Insert entities in one transaction."""
    session = SessionLocal()
    try:
        session.add_all(entities)
        session.commit()
    finally:
        session.close()
    return entities


@dataclass
class World:
    """
    One organization with two groups.

    - admin: organization admin, member of `group` and `other_group`
    - member: organization member, member of `group`
    - outsider: onboarded, no memberships
    """

    admin: User
    member: User
    outsider: User
    organization: Organization
    group: Group
    other_group: Group


@pytest.fixture
def world(engine) -> World:
    admin = User(external_id="auth0|admin", email="admin@acme.test", name="Ada Admin")
    member = User(external_id="auth0|member", email="member@acme.test", name="Max Member")
    outsider = User(external_id="auth0|outsider", email="out@elsewhere.test", name="Olive Outsider")
    organization = Organization(name="Acme", description="Acme organization")
    group = Group(organization_id=organization.id, name="Legal", rag_instance_id="rag-legal")
    other_group = Group(organization_id=organization.id, name="Finance")
    persist(admin, member, outsider, organization, group, other_group)
    persist(
        OrganizationMember(user_id=admin.id, organization_id=organization.id, role=OrganizationRole.admin),
        OrganizationMember(user_id=member.id, organization_id=organization.id, role=OrganizationRole.member),
        GroupMember(user_id=admin.id, group_id=group.id),
        GroupMember(user_id=admin.id, group_id=other_group.id),
        GroupMember(user_id=member.id, group_id=group.id),
    )
    return World(admin, member, outsider, organization, group, other_group)


# ----------------------------------------------------------------------
# Application
# ----------------------------------------------------------------------
@pytest.fixture
def answer_provider() -> FakeAnswerProvider:
    return FakeAnswerProvider()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def rag_client() -> FakeRagClient:
    return FakeRagClient()


@pytest.fixture
def app(engine, answer_provider, blob_store, rag_client):
    from nova.main import create_app

    return create_app(
        settings=settings,
        engine=engine,
        answer_provider=answer_provider,
        blob_store=blob_store,
        rag_client=rag_client,
    )


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


def session_token(external_id: str, email: str, email_verified: bool = True, name: str | None = None) -> str:
    return create_access_token(
        {"sub": external_id, "email": email, "email_verified": email_verified, "name": name}
    )


def auth_headers(user: User | None = None, **claims) -> dict:
    """Bearer header for `user`, or for an identity described by `claims`."""
    if user is not None:
        claims = {"external_id": user.external_id, "email": user.email, "name": user.name, **claims}
    claims.setdefault("external_id", f"auth0|{uuid.uuid4().hex[:12]}")
    claims.setdefault("email", "someone@new.test")
    return {"Authorization": f"Bearer {session_token(**claims)}"}
