import logging
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Dict, Optional, Protocol

import requests
from flask import current_app, jsonify, redirect, request

from errors import GateServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    id: str
    email: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Session:
    """Opaque proof of an authenticated identity. The gate only checks presence."""

    access_token: str
    user: User


class IdentityService(Protocol):
    def get_session(self, access_token: Optional[str]) -> Optional[Session]: ...

    def get_user(self, access_token: Optional[str]) -> Optional[User]: ...


class HttpIdentityService:
    """
    Client for a Supabase-style identity API.

    The access token is verified on every call by asking the service for the
    user it belongs to. Nothing is cached between requests.
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 5.0,
                 http=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        # requests.get per call; no Session is shared between request threads.
        self.http = http or requests

    def get_user(self, access_token: Optional[str]) -> Optional[User]:
        if not access_token:
            return None

        headers = {"Authorization": f"Bearer {access_token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            response = self.http.get(
                f"{self.base_url}/auth/v1/user",
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GateServiceError(f"identity service unreachable: {exc}") from exc

        if response.status_code in (401, 403):
            return None
        if response.status_code != 200:
            raise GateServiceError(f"identity service returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GateServiceError("identity service returned invalid JSON") from exc
        if not isinstance(data, dict) or not data.get("id"):
            raise GateServiceError("identity service returned no user id")

        metadata = data.get("user_metadata") or {}
        if not isinstance(metadata, dict):
            raise GateServiceError("identity service returned malformed user_metadata")

        return User(
            id=str(data["id"]),
            email=data.get("email"),
            metadata=dict(metadata),
        )

    def get_session(self, access_token: Optional[str]) -> Optional[Session]:
        user = self.get_user(access_token)
        if user is None:
            return None
        return Session(access_token=access_token, user=user)


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    location: Optional[str] = None

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, location: str) -> "GateDecision":
        return cls(allowed=False, location=location)


class SessionGate:
    """
    Anti-entry gate: callers that already hold a session are sent away.

    Used on the login boundary so signed-in users land on the dashboard instead
    of the login form. When the identity service fails, fail_mode decides:
    "open" renders the wrapped content, "closed" redirects.
    """

    def __init__(self, identity: IdentityService, redirect_to: str = "/dashboard",
                 fail_mode: str = "open"):
        if fail_mode not in ("open", "closed"):
            raise ValueError(f"fail_mode must be 'open' or 'closed', got {fail_mode!r}")
        self.identity = identity
        self.redirect_to = redirect_to
        self.fail_mode = fail_mode

    def check(self, access_token: Optional[str]) -> GateDecision:
        try:
            session = self.identity.get_session(access_token)
        except GateServiceError as exc:
            logger.warning("Session lookup failed, failing %s: %s", self.fail_mode, exc)
            if self.fail_mode == "closed":
                return GateDecision.deny(self.redirect_to)
            return GateDecision.allow()

        if session is not None:
            return GateDecision.deny(self.redirect_to)
        return GateDecision.allow()


def _access_token() -> Optional[str]:
    return request.cookies.get(current_app.config["SESSION_COOKIE"])


def anti_entry_gate(view):
    """Redirect away from the view when the request already carries a session."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        gate: SessionGate = current_app.extensions["session_gate"]
        decision = gate.check(_access_token())
        if not decision.allowed:
            return redirect(decision.location, code=302)
        return view(*args, **kwargs)

    return wrapper


def login_required(view):
    """Resolve the current user or send the caller to the login page."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        identity: IdentityService = current_app.extensions["identity"]
        try:
            user = identity.get_user(_access_token())
        except GateServiceError as exc:
            logger.warning("User lookup failed: %s", exc)
            return jsonify({"error": "identity service unavailable"}), 503
        if user is None:
            return redirect("/login", code=302)
        return view(user, *args, **kwargs)

    return wrapper
