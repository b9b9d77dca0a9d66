"""
Identity backend client.

Thin async wrapper over the Supabase GoTrue REST API.  It owns sign-up,
password and OTP sign-in, OAuth (PKCE) code exchange, user metadata updates
and the admin lookups used by the Strava redirect callback.  Failures are
raised as ``IdentityError`` carrying the provider's own message so routes can
translate them with ``friendly_message``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Raised when the identity backend rejects a request."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class AuthUser:
    id: str
    email: Optional[str]
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    app_metadata: Dict[str, Any] = field(default_factory=dict)
    email_confirmed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AuthUser":
        return cls(
            id=str(payload["id"]),
            email=payload.get("email"),
            user_metadata=dict(payload.get("user_metadata") or {}),
            app_metadata=dict(payload.get("app_metadata") or {}),
            email_confirmed_at=payload.get("email_confirmed_at"),
            created_at=payload.get("created_at"),
            updated_at=payload.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "user_metadata": self.user_metadata,
            "email_confirmed_at": self.email_confirmed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: Optional[int]
    user: Optional[AuthUser] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AuthSession":
        user = payload.get("user")
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or "",
            expires_at=payload.get("expires_at"),
            user=AuthUser.from_payload(user) if user else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }


@dataclass
class SignUpResult:
    user: Optional[AuthUser]
    session: Optional[AuthSession]


def friendly_message(message: str, table: Iterable[Tuple[str, str]]) -> str:
    """Map a provider error onto a user-facing message by substring match."""

    for needle, replacement in table:
        if needle in message:
            return replacement
    return message


SIGNIN_MESSAGES: List[Tuple[str, str]] = [
    ("Invalid login credentials", "Invalid email or password"),
    ("Email not confirmed", "Please confirm your email address before signing in"),
]

OTP_MESSAGES: List[Tuple[str, str]] = [
    ("Token has expired", "OTP token has expired. Please request a new one."),
    ("Invalid token", "Invalid OTP token. Please check and try again."),
]

RESEND_MESSAGES: List[Tuple[str, str]] = [
    ("For security purposes", "Please wait before requesting another OTP"),
    ("User not found", "No account found with this email address"),
    ("Email rate limit exceeded", "Too many emails sent. Please wait before requesting another OTP"),
]

RESET_MESSAGES: List[Tuple[str, str]] = [
    ("For security purposes", "Please wait before requesting another password reset"),
    ("User not found", "No account found with this email address"),
    ("Email rate limit exceeded", "Too many emails sent. Please wait before requesting another reset"),
]


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Identity backend error ({response.status_code})"
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"Identity backend error ({response.status_code})"


class IdentityClient:
    """Async client for the GoTrue REST endpoints under ``/auth/v1``."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        service_role_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20,
    ):
        self.base_url = f"{url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self._transport = transport
        self._timeout = timeout

    def _headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {bearer or self.anon_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        request_headers = self._headers(bearer)
        if headers:
            request_headers.update(headers)
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    params=params,
                    json=json,
                    headers=request_headers,
                )
            except httpx.HTTPError as exc:
                logger.error("Identity backend unreachable: %s %s: %s", method, path, exc)
                raise IdentityError("Authentication service unavailable", 503) from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.info("Identity backend rejected %s %s: %s", method, path, message)
            raise IdentityError(message, response.status_code)
        if not response.content:
            return {}
        return response.json()

    # Sign-up / sign-in ----------------------------------------------------

    async def sign_up(
        self, email: str, password: str, data: Optional[Dict[str, Any]] = None
    ) -> SignUpResult:
        body = await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": data or {}},
        )
        if body.get("access_token"):
            session = AuthSession.from_payload(body)
            return SignUpResult(user=session.user, session=session)
        # Confirmation pending: the backend answers with the bare user.
        user = AuthUser.from_payload(body) if body.get("id") else None
        return SignUpResult(user=user, session=None)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        body = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return AuthSession.from_payload(body)

    async def verify_otp(self, email: str, token: str, type: str = "email") -> AuthSession:
        body = await self._request(
            "POST", "/verify", json={"type": type, "email": email, "token": token}
        )
        return AuthSession.from_payload(body)

    async def resend(self, email: str, type: str = "signup") -> None:
        await self._request("POST", "/resend", json={"type": type, "email": email})

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        await self._request(
            "POST",
            "/recover",
            params={"redirect_to": redirect_to},
            json={"email": email},
        )

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", bearer=access_token)

    # OAuth ----------------------------------------------------------------

    def authorize_url(
        self,
        provider: str,
        redirect_to: str,
        code_challenge: str,
        query_params: Optional[Dict[str, str]] = None,
    ) -> str:
        params: Dict[str, str] = {
            "provider": provider,
            "redirect_to": redirect_to,
            "code_challenge": code_challenge,
            "code_challenge_method": "s256",
        }
        params.update(query_params or {})
        return f"{self.base_url}/authorize?{urlencode(params)}"

    async def exchange_code_for_session(
        self, auth_code: str, code_verifier: str
    ) -> AuthSession:
        body = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier},
        )
        return AuthSession.from_payload(body)

    # Current user ---------------------------------------------------------

    async def get_user(self, access_token: str) -> AuthUser:
        body = await self._request("GET", "/user", bearer=access_token)
        return AuthUser.from_payload(body)

    async def update_user(self, access_token: str, data: Dict[str, Any]) -> AuthUser:
        body = await self._request(
            "PUT", "/user", bearer=access_token, json={"data": data}
        )
        return AuthUser.from_payload(body)

    # Admin ----------------------------------------------------------------

    def _service_key(self) -> str:
        if not self.service_role_key:
            raise IdentityError("Service role key not configured", 500)
        return self.service_role_key

    async def admin_get_user(self, user_id: str) -> AuthUser:
        key = self._service_key()
        body = await self._request(
            "GET", f"/admin/users/{user_id}", bearer=key, headers={"apikey": key}
        )
        return AuthUser.from_payload(body)

    async def admin_update_user(
        self, user_id: str, user_metadata: Dict[str, Any]
    ) -> AuthUser:
        key = self._service_key()
        body = await self._request(
            "PUT",
            f"/admin/users/{user_id}",
            bearer=key,
            headers={"apikey": key},
            json={"user_metadata": user_metadata},
        )
        return AuthUser.from_payload(body)


__all__ = [
    "AuthSession",
    "AuthUser",
    "IdentityClient",
    "IdentityError",
    "OTP_MESSAGES",
    "RESEND_MESSAGES",
    "RESET_MESSAGES",
    "SIGNIN_MESSAGES",
    "SignUpResult",
    "friendly_message",
]
