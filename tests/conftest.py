"""
Pytest config.

The modules live at the repo root, so pin the root on sys.path for runs that do
not install the project first.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from errors import GateServiceError  # noqa: E402
from session_gate import Session, User  # noqa: E402
from settings import Settings  # noqa: E402


class FakeIdentityService:
    """Identity service double keyed by access token."""

    def __init__(self, users: Optional[dict] = None, fail: bool = False):
        self.users = users or {}
        self.fail = fail

    def get_user(self, access_token):
        if self.fail:
            raise GateServiceError("identity service down")
        return self.users.get(access_token)

    def get_session(self, access_token):
        user = self.get_user(access_token)
        if user is None:
            return None
        return Session(access_token=access_token, user=user)


@pytest.fixture
def alice() -> User:
    return User(id="u-1", email="alice@example.com")


@pytest.fixture
def identity(alice) -> FakeIdentityService:
    return FakeIdentityService({"good-token": alice})


@pytest.fixture
def settings() -> Settings:
    return Settings(identity_url="http://identity.test", session_cookie="sb-access-token")


@pytest.fixture
def client(settings, identity):
    from app import create_app

    app = create_app(settings, identity=identity)
    app.config["TESTING"] = True
    return app.test_client()
