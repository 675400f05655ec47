"""Email/password sessions against Firebase Authentication."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

import requests

from galleryboard.platforms.base import BackendError, ConnectivityError, Identity
from galleryboard.security import SecretNotFoundError, SecretProvider
from galleryboard.utils.file_helper import write_private_text
from galleryboard.utils.logging import get_logger

from .api import json_body, send

LOGGER = get_logger(__name__)


class AuthError(BackendError):
    """Sign-in or token refresh was rejected."""


@dataclass(slots=True)
class FirebaseSession:
    """Cached sign-in state."""

    uid: str
    email: str | None
    id_token: str
    refresh_token: str
    expires_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "id_token": self.id_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FirebaseSession":
        return cls(
            uid=str(data["uid"]),
            email=data.get("email") or None,
            id_token=str(data["id_token"]),
            refresh_token=str(data["refresh_token"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


class FirebaseAuthSession:
    """Authentication provider backed by the Identity Toolkit REST API.

    The session is cached on disk so that every CLI invocation after
    ``login`` sees the same identity. ID tokens are refreshed five minutes
    before they expire.
    """

    _SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
    _REFRESH_URL = "https://securetoken.googleapis.com/v1/token"
    _REFRESH_MARGIN = timedelta(minutes=5)

    def __init__(
        self,
        *,
        token_cache_path: Path,
        secrets: SecretProvider,
        http: requests.Session | None = None,
        timeout: float = 30.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._token_cache_path = token_cache_path
        self._secrets = secrets
        self._http = http or requests.Session()
        self._timeout = timeout
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def api_key(self) -> str:
        try:
            return self._secrets.get_secret("firebase.api_key")
        except SecretNotFoundError as exc:
            raise RuntimeError(
                "Missing Firebase API key; set GALLERYBOARD_FIREBASE_API_KEY "
                "or firebase.api_key in the config"
            ) from exc

    def sign_in(self, email: str, password: str) -> Identity:
        """Exchange credentials for a session and cache it."""
        response = self._auth_call(
            lambda: self._http.post(
                self._SIGN_IN_URL,
                params={"key": self.api_key()},
                json={"email": email, "password": password, "returnSecureToken": True},
                timeout=self._timeout,
            ),
            "Sign-in failed",
        )
        data = json_body(response, "Failed to parse sign-in response")
        session = FirebaseSession(
            uid=data["localId"],
            email=data.get("email") or email,
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            expires_at=self._expiry(data.get("expiresIn")),
        )
        self.store_session(session)
        LOGGER.info("Signed in", extra={"event": "auth.sign_in", "uid": session.uid})
        return Identity(uid=session.uid, email=session.email)

    def current_identity(self) -> Identity | None:
        session = self.load_session()
        if session is None:
            return None
        return Identity(uid=session.uid, email=session.email)

    def sign_out(self) -> None:
        path = self._token_cache_path
        if path.exists():
            path.unlink()
        LOGGER.info("Signed out", extra={"event": "auth.sign_out"})

    def id_token(self, *, force_refresh: bool = False) -> str | None:
        """Return a valid ID token, or ``None`` when nobody is signed in."""
        session = self.load_session()
        if session is None:
            return None
        if force_refresh or self._is_expired(session):
            session = self._refresh(session)
        return session.id_token

    def load_session(self) -> Optional[FirebaseSession]:
        path = self._token_cache_path
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return FirebaseSession.from_dict(payload)
        except (OSError, json.JSONDecodeError, KeyError, ValueError, TypeError):
            LOGGER.warning("Ignoring unreadable session cache %s", path)
            return None

    def store_session(self, session: FirebaseSession) -> None:
        write_private_text(self._token_cache_path, json.dumps(session.to_dict()))

    def _refresh(self, session: FirebaseSession) -> FirebaseSession:
        response = self._auth_call(
            lambda: self._http.post(
                self._REFRESH_URL,
                params={"key": self.api_key()},
                data={"grant_type": "refresh_token", "refresh_token": session.refresh_token},
                timeout=self._timeout,
            ),
            "Token refresh failed",
        )
        data = json_body(response, "Failed to parse token refresh response")
        refreshed = FirebaseSession(
            uid=str(data.get("user_id") or session.uid),
            email=session.email,
            id_token=data["id_token"],
            refresh_token=data.get("refresh_token") or session.refresh_token,
            expires_at=self._expiry(data.get("expires_in")),
        )
        self.store_session(refreshed)
        LOGGER.debug("Refreshed ID token", extra={"event": "auth.refresh", "uid": refreshed.uid})
        return refreshed

    def _auth_call(
        self, call: Callable[[], requests.Response], message: str
    ) -> requests.Response:
        try:
            return send(call, message)
        except ConnectivityError:
            raise
        except BackendError as exc:
            reason = str(exc.details.get("message") or exc.code)
            raise AuthError(
                message, code=reason.split(":")[0].strip().lower(), details=exc.details
            ) from exc

    def _expiry(self, expires_in: Any) -> datetime:
        try:
            seconds = int(expires_in)
        except (TypeError, ValueError):
            seconds = 3600
        return self._clock() + timedelta(seconds=seconds)

    def _is_expired(self, session: FirebaseSession) -> bool:
        return session.expires_at <= self._clock() + self._REFRESH_MARGIN
