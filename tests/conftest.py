"""Shared fixtures for the API test suite.

Required environment variables are set before anything imports
``kerala_riders``, whose config module reads them at import time.
"""

import os

os.environ.setdefault("SUPABASE_URL", "https://identity.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-key")
os.environ.setdefault("STRAVA_CLIENT_ID", "12345")
os.environ.setdefault("STRAVA_CLIENT_SECRET", "strava-secret")
os.environ.setdefault("STRAVA_REDIRECT_URI", "http://testserver/api/auth/strava/connect")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("SITE_URL", "http://frontend.test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import timedelta  # noqa: E402
from typing import Any, Dict, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from kerala_riders.api.deps import get_identity  # noqa: E402
from kerala_riders.app import app  # noqa: E402
from kerala_riders.core import get_session, utcnow  # noqa: E402
from kerala_riders.models import Event, User  # noqa: E402
from kerala_riders.services.identity import (  # noqa: E402
    AuthSession,
    AuthUser,
    IdentityClient,
    IdentityError,
    SignUpResult,
)


class FakeIdentity:
    """In-memory stand-in for ``IdentityClient``."""

    def __init__(self):
        self.users_by_token: Dict[str, AuthUser] = {}
        self.passwords: Dict[str, str] = {}
        self.errors: Dict[str, IdentityError] = {}
        self.calls: list = []
        self.oauth_codes: Dict[str, str] = {}

    def add_user(
        self,
        token: str,
        user_id: str,
        email: str,
        metadata: Optional[Dict[str, Any]] = None,
        password: Optional[str] = None,
    ) -> AuthUser:
        user = AuthUser(
            id=user_id,
            email=email,
            user_metadata=dict(metadata or {}),
            app_metadata={"providers": ["email"]},
            created_at="2024-01-01T00:00:00Z",
            updated_at="2024-01-02T00:00:00Z",
        )
        self.users_by_token[token] = user
        if password:
            self.passwords[email] = password
        return user

    def fail(self, method: str, message: str, status_code: int = 400) -> None:
        self.errors[method] = IdentityError(message, status_code)

    def _check(self, method: str, *args) -> None:
        self.calls.append((method, args))
        if method in self.errors:
            raise self.errors[method]

    def _token_for(self, email: str) -> Optional[str]:
        for token, user in self.users_by_token.items():
            if user.email == email:
                return token
        return None

    def _session(self, token: str) -> AuthSession:
        return AuthSession(
            access_token=token,
            refresh_token=f"refresh-{token}",
            expires_at=1_900_000_000,
            user=self.users_by_token[token],
        )

    async def get_user(self, access_token):
        self._check("get_user", access_token)
        user = self.users_by_token.get(access_token)
        if not user:
            raise IdentityError("invalid JWT", 401)
        return user

    async def update_user(self, access_token, data):
        self._check("update_user", access_token, data)
        user = self.users_by_token[access_token]
        user.user_metadata.update(data)
        return user

    async def sign_up(self, email, password, data=None):
        self._check("sign_up", email)
        user = AuthUser(id=f"new-{email}", email=email, user_metadata=dict(data or {}))
        return SignUpResult(user=user, session=None)

    async def sign_in_with_password(self, email, password):
        self._check("sign_in_with_password", email)
        token = self._token_for(email)
        if not token or self.passwords.get(email) != password:
            raise IdentityError("Invalid login credentials", 400)
        return self._session(token)

    async def verify_otp(self, email, token, type="email"):
        self._check("verify_otp", email, token)
        access = self._token_for(email)
        if not access:
            raise IdentityError("Invalid token", 400)
        return self._session(access)

    async def resend(self, email, type="signup"):
        self._check("resend", email)

    async def reset_password_for_email(self, email, redirect_to):
        self._check("reset_password_for_email", email, redirect_to)

    async def sign_out(self, access_token):
        self._check("sign_out", access_token)

    async def exchange_code_for_session(self, auth_code, code_verifier):
        self._check("exchange_code_for_session", auth_code, code_verifier)
        token = self.oauth_codes.get(auth_code)
        if not token:
            raise IdentityError("invalid flow state, no valid flow state found", 404)
        return self._session(token)

    def authorize_url(self, provider, redirect_to, code_challenge, query_params=None):
        return IdentityClient("https://identity.test", "anon-key").authorize_url(
            provider, redirect_to, code_challenge, query_params
        )

    async def admin_get_user(self, user_id):
        self._check("admin_get_user", user_id)
        for user in self.users_by_token.values():
            if user.id == user_id:
                return user
        raise IdentityError("User not found", 404)

    async def admin_update_user(self, user_id, user_metadata):
        self._check("admin_update_user", user_id, user_metadata)
        user = await self.admin_get_user(user_id)
        user.user_metadata = dict(user_metadata)
        return user


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def client(session, identity):
    def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_identity] = lambda: identity
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def alice(identity):
    identity.add_user("token-alice", "auth-alice", "alice@example.com", {"krid": "KR001", "full_name": "Alice"}, password="secret1")
    return {"Authorization": "Bearer token-alice"}


@pytest.fixture
def bob(identity):
    identity.add_user("token-bob", "auth-bob", "bob@example.com", {"krid": "KR002", "full_name": "Bob"})
    return {"Authorization": "Bearer token-bob"}


@pytest.fixture
def carol(identity):
    identity.add_user("token-carol", "auth-carol", "carol@example.com", {"krid": "KR003", "full_name": "Carol"})
    return {"Authorization": "Bearer token-carol"}


def make_user(session: Session, krid: str, email: Optional[str] = None) -> User:
    user = User(krid=krid, email=email or f"{krid.lower()}@example.com", name=krid)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_event(session: Session, created_by: str, **overrides) -> Event:
    data = dict(
        title="Sunday Ride",
        date=utcnow() + timedelta(days=7),
        location="Kochi Marine Drive",
        category="cycling",
        created_by=created_by,
    )
    data.update(overrides)
    event = Event(**data)
    session.add(event)
    session.commit()
    session.refresh(event)
    return event
