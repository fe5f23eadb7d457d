"""
Auth module — username/password accounts backed by the backend's auth service.

Usernames map onto synthetic emails (`<username>@chat.local`); the username
also travels in the user metadata so it shows up as a claim on the identity.
"""

import logging
from typing import Any, Optional

from groupchat.errors import GroupChatError, Unauthorized, ValidationError
from groupchat.models.session import Identity, Session
from groupchat.transport.http import HttpClient

logger = logging.getLogger(__name__)

EMAIL_DOMAIN = "chat.local"
MIN_USERNAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 6


def username_to_email(username: str) -> str:
    return f"{username}@{EMAIL_DOMAIN}"


def validate_username(username: str) -> str:
    username = username.strip()
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
    return username


def validate_credentials(username: str, password: str) -> str:
    username = validate_username(username)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return username


def _identity_from_user(user: dict[str, Any]) -> Identity:
    return Identity(
        user_id=str(user["id"]),
        email=user.get("email"),
        claims=user.get("user_metadata") or {},
    )


class Auth:
    def __init__(self, http: HttpClient):
        self._http = http
        self._session: Optional[Session] = None

    @property
    def current(self) -> Optional[Identity]:
        """The locally held identity, or None. No network call."""
        return self._session.identity if self._session else None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def require(self) -> Identity:
        identity = self.current
        if identity is None:
            raise Unauthorized("No active session. Sign in first.")
        return identity

    def _set_session(self, result: dict[str, Any]) -> Session:
        session = Session(
            access_token=result["access_token"],
            refresh_token=result.get("refresh_token"),
            expires_in=result.get("expires_in"),
            identity=_identity_from_user(result["user"]),
        )
        self._session = session
        self._http.set_token(session.access_token)
        return session

    def restore(self, access_token: str, user_id: str, refresh_token: Optional[str] = None,
                email: Optional[str] = None, claims: Optional[dict[str, Any]] = None) -> Session:
        """Adopt a previously saved session without contacting the server."""
        self._session = Session(
            access_token=access_token,
            refresh_token=refresh_token,
            identity=Identity(user_id=user_id, email=email, claims=claims or {}),
        )
        self._http.set_token(access_token)
        return self._session

    async def sign_up(self, username: str, password: str) -> Session:
        """Create the auth account, then the matching profiles row."""
        username = validate_credentials(username, password)
        result = await self._http.post(
            "/auth/v1/signup",
            {"email": username_to_email(username), "password": password, "data": {"username": username}},
            authenticated=False,
        )
        if not result or not result.get("access_token"):
            # Projects with email confirmation enabled return a bare user here
            raise GroupChatError("signup_incomplete", "Account created but no session was issued")
        session = self._set_session(result)
        await self._http.post(
            "/rest/v1/profiles",
            {"id": session.identity.user_id, "username": username},
            headers={"Prefer": "return=minimal"},
        )
        logger.info("Signed up %s", username)
        return session

    async def sign_in(self, username: str, password: str) -> Session:
        username = validate_credentials(username, password)
        result = await self._http.post(
            "/auth/v1/token",
            {"email": username_to_email(username), "password": password},
            params={"grant_type": "password"},
            authenticated=False,
        )
        return self._set_session(result)

    async def refresh(self) -> Session:
        if not self._session or not self._session.refresh_token:
            raise Unauthorized("No refresh token available")
        result = await self._http.post(
            "/auth/v1/token",
            {"refresh_token": self._session.refresh_token},
            params={"grant_type": "refresh_token"},
            authenticated=False,
        )
        return self._set_session(result)

    async def get_user(self) -> Optional[Identity]:
        """Ask the server who the current token belongs to. None when signed out or expired."""
        if not self._session:
            return None
        try:
            user = await self._http.get("/auth/v1/user")
        except Unauthorized:
            return None
        return _identity_from_user(user)

    async def sign_out(self) -> None:
        if self._session:
            try:
                await self._http.post("/auth/v1/logout")
            except Unauthorized:
                pass  # token already invalid server-side
        self._session = None
        self._http.set_token(None)
