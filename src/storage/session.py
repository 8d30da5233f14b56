"""Operator session handling against the backend's auth endpoints.

``SessionClient`` signs operators in and out and publishes session changes
to subscribers.  Subscribers register a handler with ``on_auth_state_change``
and get back a ``Subscription`` they unsubscribe on teardown.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing_extensions import TypedDict

import httpx

from src.config import get_settings
from src.storage.client import DEFAULT_TIMEOUT_SECONDS, StorageClient

logger = logging.getLogger(__name__)


class AuthEvent(StrEnum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


class SessionUser(TypedDict):
    id: str
    email: str | None


class Session(TypedDict):
    access_token: str
    refresh_token: str | None
    expires_at: datetime | None
    user: SessionUser


AuthHandler = Callable[[AuthEvent, Session | None], None]


class SessionError(Exception):
    """Sign-in, sign-up or user lookup was rejected or could not be completed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class Subscription:
    """Handle returned by ``SessionClient.on_auth_state_change``."""

    def __init__(self, owner: "SessionClient", handler: AuthHandler) -> None:
        self._owner = owner
        self.handler = handler

    @property
    def active(self) -> bool:
        return self in self._owner._subscriptions  # noqa: SLF001

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self.active:
            self._owner._subscriptions.remove(self)  # noqa: SLF001


def _parse_user(raw: object) -> SessionUser:
    if not isinstance(raw, dict):
        return SessionUser(id="", email=None)
    email = raw.get("email")
    return SessionUser(id=str(raw.get("id", "")), email=email if isinstance(email, str) else None)


def _parse_session(body: dict[str, object]) -> Session:
    expires_at: datetime | None = None
    raw_expires = body.get("expires_at")
    if isinstance(raw_expires, int | float):
        expires_at = datetime.fromtimestamp(raw_expires, UTC)
    refresh = body.get("refresh_token")
    return Session(
        access_token=str(body["access_token"]),
        refresh_token=refresh if isinstance(refresh, str) else None,
        expires_at=expires_at,
        user=_parse_user(body.get("user")),
    )


class SessionClient:
    """Issues and tracks one operator session."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._session: Session | None = None
        self._subscriptions: list[Subscription] = []

    @classmethod
    def from_settings(cls) -> "SessionClient":
        settings = get_settings()
        return cls(settings.supabase_url, settings.supabase_anon_key, timeout=settings.storage_timeout_seconds)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def on_auth_state_change(self, handler: AuthHandler) -> Subscription:
        """Register ``handler`` for signed-in / signed-out events."""
        subscription = Subscription(self, handler)
        self._subscriptions.append(subscription)
        return subscription

    def _emit(self, event: AuthEvent, session: Session | None) -> None:
        for subscription in list(self._subscriptions):
            try:
                subscription.handler(event, session)
            except Exception:
                logger.exception("Auth state handler failed for %s", event)

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    def get_session(self) -> Session | None:
        """Return the current session, or None when signed out."""
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def storage(self) -> StorageClient:
        """Return a storage client scoped to the current session."""
        token = self._session["access_token"] if self._session else None
        return StorageClient(
            self.base_url,
            self._api_key,
            access_token=token,
            timeout=self._timeout,
            transport=self._transport,
        )

    # ------------------------------------------------------------------
    # Auth endpoints
    # ------------------------------------------------------------------

    async def _post(
        self,
        path: str,
        payload: dict[str, object],
        token: str | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, object]:
        headers = {"apikey": self._api_key, "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/auth/v1/{path}", params=params, json=payload, headers=headers
                )
                _ = resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            msg = _auth_error_message(exc.response)
            raise SessionError(msg, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            msg = f"Auth request failed: {exc}"
            raise SessionError(msg) from exc
        if not resp.content:
            return {}
        try:
            body: object = resp.json()
        except ValueError:
            logger.debug("Auth endpoint %s returned a non-JSON body", path)
            return {}
        return body if isinstance(body, dict) else {}

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        """Exchange email + password for a session and emit ``signed_in``."""
        body = await self._post(
            "token", {"email": email, "password": password}, params={"grant_type": "password"}
        )
        if "access_token" not in body:
            msg = "Sign-in response did not contain an access token"
            raise SessionError(msg)
        session = _parse_session(body)
        self._session = session
        logger.info("Signed in as %s", session["user"]["email"] or session["user"]["id"])
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str) -> Session | None:
        """Create an operator account.

        Returns the new session when the backend signs the operator in straight
        away, or None when email confirmation is still pending.
        """
        body = await self._post("signup", {"email": email, "password": password})
        if "access_token" not in body:
            logger.info("Sign-up for %s pending confirmation", email)
            return None
        session = _parse_session(body)
        self._session = session
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_in_operator(self) -> Session:
        """Sign in with the pre-provisioned operator identity from settings."""
        settings = get_settings()
        if not (settings.operator_email and settings.operator_password):
            msg = "Operator identity not configured (OPERATOR_EMAIL / OPERATOR_PASSWORD are empty)"
            raise SessionError(msg)
        return await self.sign_in_with_password(settings.operator_email, settings.operator_password)

    async def get_user(self) -> SessionUser | None:
        """Look up the user behind the current session token."""
        if self._session is None:
            return None
        headers = {"apikey": self._api_key, "Authorization": f"Bearer {self._session['access_token']}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}/auth/v1/user", headers=headers)
                _ = resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            msg = _auth_error_message(exc.response)
            raise SessionError(msg, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            msg = f"User lookup failed: {exc}"
            raise SessionError(msg) from exc
        try:
            body: object = resp.json()
        except ValueError as exc:
            msg = "User lookup returned invalid JSON"
            raise SessionError(msg, status_code=resp.status_code) from exc
        return _parse_user(body)

    async def sign_out(self) -> None:
        """Revoke the session (best-effort) and emit ``signed_out``."""
        session = self._session
        if session is None:
            return
        try:
            _ = await self._post("logout", {}, token=session["access_token"])
        except SessionError as exc:
            logger.warning("Remote sign-out failed, clearing local session anyway: %s", exc)
        self._session = None
        self._emit(AuthEvent.SIGNED_OUT, None)


def _auth_error_message(resp: httpx.Response) -> str:
    try:
        body: object = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {resp.status_code}"
