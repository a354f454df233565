# src/tasklist_sync/backends/firebase_auth.py

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ..core.errors import (
    AuthFailed,
    NotAuthenticated,
    SessionReloadFailed,
    TaskListError,
    VerificationEmailFailed,
)

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600.0
# Refresh this long before the id token expires.
REFRESH_MARGIN_SECONDS = 60.0


def _seconds(raw: Any, default: float) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


@dataclass(slots=True)
class _User:
    user_id: str
    email: str
    id_token: str
    refresh_token: str
    expires_at: float
    verified: bool = False


def _error_message(resp: httpx.Response, default: str) -> str:
    """
    Identity Toolkit errors look like {"error": {"code": 400, "message": "EMAIL_EXISTS"}}.
    The code string is passed through unchanged.
    """
    try:
        body = resp.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return default


class FirebaseAuthSession:
    """
    AuthSession on the Identity Toolkit REST API (email + password accounts).

    The session lives in memory only: restarting the process means logging in again.
    Id tokens last about an hour; they are exchanged for new ones through the
    secure-token endpoint shortly before they expire, or on demand when the
    database rejects one. fresh_id_token() is the token provider for the
    database adapter.
    """

    def __init__(
        self,
        api_key: str,
        *,
        database_url: str = "",
        client: httpx.AsyncClient | None = None,
        base_url: str = IDENTITY_TOOLKIT_URL,
        token_url: str = SECURE_TOKEN_URL,
        timeout_seconds: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not api_key or not api_key.strip():
            raise RuntimeError("Firebase API key is not set. Set TASKLIST_FIREBASE_API_KEY in your .env.")
        self._api_key = api_key.strip()
        self._base = base_url.rstrip("/")
        self._token_url = token_url
        self._database_url = database_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=5.0),
        )
        self._clock = clock
        self._refresh_lock = asyncio.Lock()
        self._user: _User | None = None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---- helpers ----

    async def _post(
        self,
        url: str,
        error_cls: type[TaskListError],
        default_error: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.post(url, params={"key": self._api_key}, **kwargs)
        except httpx.HTTPError as e:
            raise error_cls(str(e) or default_error) from e

        if resp.is_error:
            raise error_cls(_error_message(resp, default_error))
        try:
            body = resp.json()
        except ValueError:
            raise error_cls(default_error) from None
        return body if isinstance(body, dict) else {}

    async def _call(
        self,
        endpoint: str,
        payload: dict[str, Any],
        error_cls: type[TaskListError],
        default_error: str,
    ) -> dict[str, Any]:
        return await self._post(f"{self._base}/accounts:{endpoint}", error_cls, default_error, json=payload)

    def _expires_at(self, raw: Any) -> float:
        return self._clock() + _seconds(raw, DEFAULT_TOKEN_LIFETIME_SECONDS)

    def _sign_in(self, body: dict[str, Any], fallback_email: str) -> _User:
        user_id = str(body.get("localId") or "")
        token = str(body.get("idToken") or "")
        if not user_id or not token:
            raise AuthFailed("Malformed response from identity service")
        return _User(
            user_id=user_id,
            email=str(body.get("email") or fallback_email),
            id_token=token,
            refresh_token=str(body.get("refreshToken") or ""),
            expires_at=self._expires_at(body.get("expiresIn")),
        )

    async def _refresh(self, user: _User, error_cls: type[TaskListError]) -> None:
        if not user.refresh_token:
            raise error_cls("Session expired, please log in again")
        # The secure-token endpoint answers in snake_case, unlike Identity Toolkit.
        body = await self._post(
            self._token_url,
            error_cls,
            "Failed to refresh session",
            data={"grant_type": "refresh_token", "refresh_token": user.refresh_token},
        )
        token = str(body.get("id_token") or "")
        if not token:
            raise error_cls("Failed to refresh session")
        user.id_token = token
        user.refresh_token = str(body.get("refresh_token") or user.refresh_token)
        user.expires_at = self._expires_at(body.get("expires_in"))
        logger.debug("Id token refreshed user=%s", user.user_id)

    async def _token_for(
        self,
        user: _User,
        error_cls: type[TaskListError],
        *,
        force: bool = False,
    ) -> str:
        async with self._refresh_lock:
            if self._user is not user:
                raise NotAuthenticated()
            if force or self._clock() >= user.expires_at - REFRESH_MARGIN_SECONDS:
                await self._refresh(user, error_cls)
            return user.id_token

    async def _save_username(self, user: _User, username: str) -> None:
        if not self._database_url:
            return
        url = f"{self._database_url}/users/{quote(user.user_id, safe='')}/username.json"
        try:
            resp = await self._client.put(url, params={"auth": user.id_token}, json=username)
        except httpx.HTTPError as e:
            raise AuthFailed(str(e) or "Failed to save username") from e
        if resp.is_error:
            raise AuthFailed(_error_message(resp, "Failed to save username"))
        logger.debug("Username saved to database")

    # ---- tokens ----

    def id_token(self) -> str:
        """Current id token as last issued (may be close to expiry)."""
        return self._user.id_token if self._user is not None else ""

    async def fresh_id_token(self, force_refresh: bool = False) -> str:
        """Id token valid for at least REFRESH_MARGIN_SECONDS; "" when nobody is signed in."""
        user = self._user
        if user is None:
            return ""
        return await self._token_for(user, AuthFailed, force=force_refresh)

    # ---- AuthSession ----

    def is_logged_in(self) -> bool:
        return self._user is not None

    def is_verified(self) -> bool:
        return self._user is not None and self._user.verified

    def current_email(self) -> str:
        return self._user.email if self._user is not None else ""

    def current_user_id(self) -> str:
        return self._user.user_id if self._user is not None else ""

    async def register(self, email: str, password: str, username: str) -> str:
        body = await self._call(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
            AuthFailed,
            "Registration failed",
        )
        user = self._sign_in(body, email)
        self._user = user
        logger.info("User registered successfully: %s", user.user_id)
        await self._save_username(user, username)
        return user.user_id

    async def login(self, email: str, password: str) -> str:
        body = await self._call(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
            AuthFailed,
            "Login failed",
        )
        user = self._sign_in(body, email)
        self._user = user
        logger.info("User logged in successfully: %s", user.user_id)
        return user.user_id

    def logout(self) -> None:
        self._user = None
        logger.info("User logged out")

    async def send_verification_email(self) -> None:
        user = self._user
        if user is None:
            raise VerificationEmailFailed("No user is currently signed in")
        if user.verified:
            logger.debug("Email already verified")
            return
        await self._call(
            "sendOobCode",
            {"requestType": "VERIFY_EMAIL", "idToken": await self._token_for(user, VerificationEmailFailed)},
            VerificationEmailFailed,
            "Failed to send verification email",
        )

    async def reload_session(self) -> None:
        user = self._user
        if user is None:
            raise SessionReloadFailed("User not logged in")
        body = await self._call(
            "lookup",
            {"idToken": await self._token_for(user, SessionReloadFailed)},
            SessionReloadFailed,
            "Failed to reload user",
        )
        users = body.get("users")
        if not isinstance(users, list) or not users or not isinstance(users[0], dict):
            raise SessionReloadFailed("Failed to reload user")
        info = users[0]
        user.verified = bool(info.get("emailVerified", False))
        if info.get("email"):
            user.email = str(info["email"])
        logger.debug("Email verified status: %s", user.verified)
