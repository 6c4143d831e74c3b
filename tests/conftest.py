from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from channel_router.core.config import ChannelType
from channel_router.security.cipher import CredentialCipher
from channel_router.storage import database
from channel_router.storage import models  # noqa: F401
from channel_router.storage.database import Base
from channel_router.storage.providers import create_provider, set_credential


@pytest.fixture(autouse=True)
def in_memory_db(monkeypatch):
    """Swap the session factory for an isolated in-memory database."""

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    Base.metadata.create_all(engine)
    monkeypatch.setattr(database, "SessionLocal", TestingSession)

    yield engine

    engine.dispose()


@pytest.fixture(scope="session")
def cipher() -> CredentialCipher:
    return CredentialCipher("test-secret")


@pytest.fixture
def provider_factory(cipher):
    """Create providers, optionally with an encrypted credential."""

    def factory(
        name: str = "vendor",
        channel_type: ChannelType = ChannelType.SPEECH_SYNTHESIS,
        *,
        credentials: dict | None = None,
        **kwargs,
    ):
        provider = create_provider(name, channel_type, **kwargs)
        if credentials is not None:
            ciphertext, iv = cipher.encrypt(credentials)
            set_credential(provider.id, ciphertext, iv)
        return provider

    return factory
