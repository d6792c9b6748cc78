import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CLEANUP_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import dataclasses
from collections.abc import Generator
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from staffhub.core.metrics import reset_metrics
from staffhub.core.security import PinHasher
from staffhub.core.settings import Settings
from staffhub.db import models  # noqa: F401
from staffhub.db.base import Base
from staffhub.services.auth import AuthService
from staffhub.services.roblox import LookupResult, LookupStatus, RobloxClient, RobloxProfile
from staffhub.services.staff import StaffService
from staffhub.services.verification import VerificationService


class FixedClock:
    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 3, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeRobloxClient(RobloxClient):
    """Roblox client backed by an in-memory profile table."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.profiles: dict[str, RobloxProfile] = {}
        self.available = True
        self.avatar_url: str | None = "https://tr.rbxcdn.com/headshot.png"

    def add_profile(
        self,
        name: str,
        user_id: int,
        *,
        description: str = "",
        is_banned: bool = False,
        display_name: str | None = None,
    ) -> RobloxProfile:
        profile = RobloxProfile(
            id=user_id,
            name=name,
            display_name=display_name or name,
            description=description,
            is_banned=is_banned,
        )
        self.profiles[name.lower()] = profile
        return profile

    def set_description(self, name: str, description: str) -> None:
        key = name.lower()
        self.profiles[key] = dataclasses.replace(self.profiles[key], description=description)

    async def lookup_username(self, username: str) -> LookupResult:
        if not self.available:
            return LookupResult(LookupStatus.TRANSIENT_FAILURE)
        profile = self.profiles.get(username.lower())
        if profile is None:
            return LookupResult(LookupStatus.NOT_FOUND)
        return LookupResult(LookupStatus.OK, profile)

    async def lookup_user_id(self, user_id: int) -> LookupResult:
        if not self.available:
            return LookupResult(LookupStatus.TRANSIENT_FAILURE)
        for profile in self.profiles.values():
            if profile.id == user_id:
                return LookupResult(LookupStatus.OK, profile)
        return LookupResult(LookupStatus.NOT_FOUND)

    async def fetch_avatar(self, user_id: int, size: str = "150x150") -> str | None:
        return self.avatar_url if self.available else None


@pytest.fixture(autouse=True)
def clean_metrics() -> Generator[None, None, None]:
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def settings() -> Settings:
    return Settings(bcrypt_rounds=4, cleanup_enabled=False)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def roblox(settings: Settings) -> FakeRobloxClient:
    client = FakeRobloxClient(settings)
    client.add_profile("TestUser", 1001, display_name="Test User")
    return client


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def pin_hasher(settings: Settings) -> PinHasher:
    return PinHasher(settings.bcrypt_rounds)


@pytest.fixture()
def staff_service(db_session, roblox, settings, pin_hasher, clock) -> StaffService:
    return StaffService(db_session, roblox, settings=settings, pin_hasher=pin_hasher, clock=clock)


@pytest.fixture()
def verification_service(db_session, roblox, staff_service, settings, clock) -> VerificationService:
    return VerificationService(db_session, roblox, staff_service, settings=settings, clock=clock)


@pytest.fixture()
def auth_service(db_session, staff_service, settings, clock) -> AuthService:
    return AuthService(db_session, staff_service, settings=settings, clock=clock)
