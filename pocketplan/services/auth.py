# pocketplan/services/auth.py
#
# Authentication session state.
#
#   LOGGED_OUT -> AUTHENTICATING -> LOGGED_IN | LOGGED_OUT (error)
#
# Email/password logins only reach LOGGED_IN once the account's email is
# verified; the check happens after the credentials were accepted, and an
# unverified account is signed straight back out. Registration never logs
# the user in. Google sign-in skips the verification gate.
#
# The identity provider itself sits behind IdentityBackend. The in-memory
# implementation below hashes passwords with passlib and "sends" e-mails by
# recording them in an outbox (and logging them).

from __future__ import annotations

import secrets
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from passlib.context import CryptContext

from pocketplan.logging_setup import get_logger
from pocketplan.services.errors import (
    EmailInUseError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    ValidationError,
)

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

DEFAULT_EMAIL = "user@pocketplan.app"

DEFAULT_SESSION_TTL = 12 * 60 * 60
DEFAULT_MAX_SESSIONS = 10_000


class SessionState(str, Enum):
    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    LOGGED_IN = "logged_in"


@dataclass(frozen=True)
class IdentityUser:
    """An account as the identity provider reports it."""

    uid: str
    email: str
    display_name: str | None = None
    photo_url: str | None = None
    email_verified: bool = False


@dataclass(frozen=True)
class UserProfile:
    """The signed-in user as the rest of the app sees it."""

    id: str
    name: str
    email: str
    photo_url: str | None = None

    @classmethod
    def from_identity(cls, user: IdentityUser, fallback_email: str | None = None) -> "UserProfile":
        email = user.email or fallback_email or DEFAULT_EMAIL
        return cls(
            id=user.uid,
            name=user.display_name or user.email or "User",
            email=email,
            photo_url=user.photo_url or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email, "photoURL": self.photo_url}


@dataclass(frozen=True)
class RegistrationResult:
    needs_verification: bool = True


@dataclass(frozen=True)
class OutboxMessage:
    kind: str  # "verify" or "reset"
    email: str
    token: str


# -------------------------------------------------------------------
# Identity backend interface
# -------------------------------------------------------------------

AuthListener = Callable[[Optional[IdentityUser]], None]


class IdentityBackend(ABC):
    """
    One client's view of the identity provider.

    Tracks the currently signed-in account and notifies watchers whenever
    it changes.
    """

    @abstractmethod
    def sign_in(self, email: str, password: str) -> IdentityUser:
        """Raises InvalidCredentialsError."""

    @abstractmethod
    def sign_up(self, email: str, password: str) -> IdentityUser:
        """Creates and signs in a new account. Raises EmailInUseError."""

    @abstractmethod
    def sign_in_with_google(self, profile: Mapping[str, Any]) -> IdentityUser:
        ...

    @abstractmethod
    def sign_out(self) -> None:
        ...

    @abstractmethod
    def current_user(self) -> IdentityUser | None:
        ...

    @abstractmethod
    def update_profile(self, user: IdentityUser, display_name: str | None = None,
                       photo_url: str | None = None) -> IdentityUser:
        ...

    @abstractmethod
    def update_password(self, user: IdentityUser, password: str) -> None:
        ...

    @abstractmethod
    def send_verification_email(self, user: IdentityUser) -> None:
        ...

    @abstractmethod
    def send_password_reset(self, email: str) -> None:
        ...

    @abstractmethod
    def watch(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener; returns the function that unregisters it."""


# -------------------------------------------------------------------
# In-memory identity provider
# -------------------------------------------------------------------

@dataclass
class _Account:
    user: IdentityUser
    password_hash: str | None


@dataclass
class AccountDirectory:
    """Accounts and sent e-mails shared by every in-memory backend client."""

    accounts: dict[str, _Account] = field(default_factory=dict)
    outbox: list[OutboxMessage] = field(default_factory=list)
    _tokens: dict[str, tuple[str, str]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def find(self, email: str) -> _Account | None:
        return self.accounts.get((email or "").strip().lower())

    def store(self, account: _Account) -> None:
        self.accounts[account.user.email.lower()] = account

    def send(self, kind: str, email: str) -> OutboxMessage:
        message = OutboxMessage(kind=kind, email=email, token=secrets.token_urlsafe(16))
        with self._lock:
            self._tokens[message.token] = (kind, email.lower())
            self.outbox.append(message)
        logger.info("Sent %s e-mail to %s", kind, email)
        return message

    def last_message(self, email: str, kind: str) -> OutboxMessage | None:
        for message in reversed(self.outbox):
            if message.email.lower() == email.lower() and message.kind == kind:
                return message
        return None

    def verify_email(self, token: str) -> IdentityUser:
        with self._lock:
            entry = self._tokens.pop(token, None)
        if entry is None or entry[0] != "verify":
            raise ValidationError("Invalid or expired verification link.")
        account = self.find(entry[1])
        if account is None:
            raise ValidationError("Invalid or expired verification link.")
        account.user = replace(account.user, email_verified=True)
        logger.info("Email verified for %s", account.user.email)
        return account.user


class InMemoryIdentityBackend(IdentityBackend):
    def __init__(self, directory: AccountDirectory) -> None:
        self.directory = directory
        self._current: IdentityUser | None = None
        self._listeners: list[AuthListener] = []

    def _set_current(self, user: IdentityUser | None) -> None:
        self._current = user
        for listener in list(self._listeners):
            listener(user)

    def sign_in(self, email: str, password: str) -> IdentityUser:
        account = self.directory.find(email)
        if account is None or not account.password_hash or not pwd_context.verify(password or "", account.password_hash):
            raise InvalidCredentialsError("Invalid email or password.")
        self._set_current(account.user)
        return account.user

    def sign_up(self, email: str, password: str) -> IdentityUser:
        if self.directory.find(email) is not None:
            raise EmailInUseError("Email already in use. Please sign in or use a different email.")
        user = IdentityUser(uid=secrets.token_hex(14), email=email.strip())
        self.directory.store(_Account(user=user, password_hash=pwd_context.hash(password)))
        self._set_current(user)
        return user

    def sign_in_with_google(self, profile: Mapping[str, Any]) -> IdentityUser:
        email = (profile.get("email") or "").strip()
        if not email:
            raise InvalidCredentialsError("Google sign-in did not return an email address.")
        account = self.directory.find(email)
        if account is None:
            user = IdentityUser(
                uid=secrets.token_hex(14),
                email=email,
                display_name=profile.get("name") or None,
                photo_url=profile.get("photo_url") or profile.get("photoURL") or None,
                email_verified=True,
            )
            account = _Account(user=user, password_hash=None)
            self.directory.store(account)
        self._set_current(account.user)
        return account.user

    def sign_out(self) -> None:
        if self._current is not None:
            self._set_current(None)

    def current_user(self) -> IdentityUser | None:
        return self._current

    def _account_for(self, user: IdentityUser) -> _Account:
        account = self.directory.find(user.email)
        if account is None:
            raise NotAuthenticatedError("Account no longer exists.")
        return account

    def update_profile(self, user: IdentityUser, display_name: str | None = None,
                       photo_url: str | None = None) -> IdentityUser:
        account = self._account_for(user)
        account.user = replace(account.user, display_name=display_name, photo_url=photo_url)
        if self._current is not None and self._current.uid == account.user.uid:
            self._current = account.user
        return account.user

    def update_password(self, user: IdentityUser, password: str) -> None:
        self._account_for(user).password_hash = pwd_context.hash(password)

    def send_verification_email(self, user: IdentityUser) -> None:
        self.directory.send("verify", user.email)

    def send_password_reset(self, email: str) -> None:
        # Unknown addresses are accepted silently so the endpoint cannot be
        # used to probe which e-mails are registered.
        if self.directory.find(email) is not None:
            self.directory.send("reset", email)

    def watch(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


# -------------------------------------------------------------------
# Session state machine
# -------------------------------------------------------------------

class AuthSession:
    """
    Login state of one client.

    Call init() to start following the backend's auth state and teardown()
    when the client goes away.
    """

    def __init__(self, backend: IdentityBackend) -> None:
        self.backend = backend
        self.state = SessionState.LOGGED_OUT
        self.user: UserProfile | None = None
        self.error: str | None = None
        self.needs_verification = False
        self._identity: IdentityUser | None = None
        self._unsubscribe: Callable[[], None] | None = None

    # ---- Lifecycle ----

    def init(self) -> "AuthSession":
        if self._unsubscribe is None:
            self._unsubscribe = self.backend.watch(self._on_auth_state_changed)
        return self

    def teardown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.backend.sign_out()
        self._set_logged_out()

    @property
    def is_logged_in(self) -> bool:
        return self.state is SessionState.LOGGED_IN

    def _set_logged_out(self, error: str | None = None) -> None:
        self.state = SessionState.LOGGED_OUT
        self.user = None
        self._identity = None
        self.error = error

    def _set_logged_in(self, identity: IdentityUser, fallback_email: str | None = None) -> None:
        self.state = SessionState.LOGGED_IN
        self._identity = identity
        self.user = UserProfile.from_identity(identity, fallback_email)
        self.error = None
        self.needs_verification = False

    def _on_auth_state_changed(self, identity: IdentityUser | None) -> None:
        if identity is not None and not identity.email_verified:
            self.backend.sign_out()
            if self.state is not SessionState.AUTHENTICATING:
                self._set_logged_out(self.error)
            return
        if identity is None:
            if self.state is SessionState.LOGGED_IN:
                self._set_logged_out()
            return
        if self.state is not SessionState.AUTHENTICATING:
            self._set_logged_in(identity)

    # ---- Transitions ----

    def login(self, email: str, password: str) -> UserProfile:
        self.state = SessionState.AUTHENTICATING
        self.error = None
        try:
            identity = self.backend.sign_in(email, password)
        except Exception as e:
            self._set_logged_out(str(e))
            logger.info("Login failed for %s: %s", email, e)
            raise

        if not identity.email_verified:
            self.backend.sign_out()
            message = "Email not verified. Please check your inbox."
            self._set_logged_out(message)
            self.needs_verification = True
            logger.info("Login rejected for %s: email not verified", email)
            raise EmailNotVerifiedError(message)

        self._set_logged_in(identity, fallback_email=email)
        logger.info("User %s logged in", self.user.id)
        return self.user

    def register(self, name: str, email: str, password: str,
                 confirm: str | None = None) -> RegistrationResult:
        if not name or not email or not password or (confirm is not None and not confirm):
            raise ValidationError("Please fill in all fields.")
        if confirm is not None and password != confirm:
            raise ValidationError("Password and confirmation do not match.")

        self.state = SessionState.AUTHENTICATING
        self.error = None
        try:
            identity = self.backend.sign_up(email, password)
            identity = self.backend.update_profile(identity, display_name=name)
            self.backend.send_verification_email(identity)
        except Exception as e:
            self.backend.sign_out()
            self._set_logged_out(str(e))
            raise

        self.backend.sign_out()
        self._set_logged_out()
        self.needs_verification = True
        logger.info("Registered %s; verification pending", email)
        return RegistrationResult(needs_verification=True)

    def google_login(self, profile: Mapping[str, Any]) -> UserProfile:
        self.state = SessionState.AUTHENTICATING
        self.error = None
        try:
            identity = self.backend.sign_in_with_google(profile)
        except Exception as e:
            self._set_logged_out(str(e))
            raise
        self._set_logged_in(identity)
        logger.info("User %s logged in with Google", self.user.id)
        return self.user

    def logout(self) -> None:
        self.backend.sign_out()
        self._set_logged_out()

    def reset_password(self, email: str) -> None:
        if not email:
            raise ValidationError("Email is required")
        self.backend.send_password_reset(email)

    def resend_verification(self, email: str, password: str) -> None:
        if not email or not password:
            raise ValidationError("Email and password are required")
        state, user, identity = self.state, self.user, self._identity
        self.state = SessionState.AUTHENTICATING
        try:
            account = self.backend.sign_in(email, password)
            self.backend.send_verification_email(account)
            self.backend.sign_out()
        finally:
            self.state, self.user, self._identity = state, user, identity

    def update_profile(
        self,
        name: str | None = None,
        email: str | None = None,
        photo_url: str | None = None,
        password: str | None = None,
        confirm: str | None = None,
    ) -> UserProfile:
        if not self.is_logged_in or self.user is None or self._identity is None:
            raise NotAuthenticatedError("You need to sign in first.")
        if (password or confirm) and password != confirm:
            raise ValidationError("Password and confirmation do not match.")

        next_user = UserProfile(
            id=self.user.id,
            name=name or self.user.name,
            email=email or self.user.email,
            photo_url=photo_url or self.user.photo_url,
        )
        self._identity = self.backend.update_profile(
            self._identity, display_name=next_user.name, photo_url=next_user.photo_url
        )
        if password:
            self.backend.update_password(self._identity, password)
        self.user = next_user
        return next_user


# -------------------------------------------------------------------
# Token registry for the HTTP layer
# -------------------------------------------------------------------

class SessionRegistry:
    """
    Maps bearer tokens to logged-in AuthSessions.

    Tokens expire `ttl_seconds` after they were issued. At most
    `max_sessions` tokens are kept; issuing one more drops the oldest.
    """

    def __init__(
        self,
        directory: AccountDirectory | None = None,
        ttl_seconds: float = DEFAULT_SESSION_TTL,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.directory = directory or AccountDirectory()
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        # token -> (session, expires_at); insertion order is issue order
        self._sessions: dict[str, tuple[AuthSession, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def _prune(self, now: float) -> list[AuthSession]:
        """Drop expired tokens and, above the cap, the oldest ones. Caller holds the lock."""
        dropped = []
        for token, (session, expires_at) in list(self._sessions.items()):
            if expires_at <= now:
                del self._sessions[token]
                dropped.append(session)
        while self._sessions and len(self._sessions) >= self.max_sessions:
            oldest = next(iter(self._sessions))
            dropped.append(self._sessions.pop(oldest)[0])
        return dropped

    def new_session(self) -> AuthSession:
        return AuthSession(InMemoryIdentityBackend(self.directory)).init()

    def issue(self, session: AuthSession) -> str:
        if not session.is_logged_in:
            raise NotAuthenticatedError("Session is not logged in")
        token = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            dropped = self._prune(now)
            self._sessions[token] = (session, now + self.ttl_seconds)
        for old in dropped:
            old.teardown()
        if dropped:
            logger.info("Dropped %d expired or surplus sessions", len(dropped))
        return token

    def get(self, token: str | None) -> AuthSession | None:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is not None and entry[1] <= self._clock():
                del self._sessions[token]
                entry[0].teardown()
                return None
        if entry is None or not entry[0].is_logged_in:
            return None
        return entry[0]

    def revoke(self, token: str) -> None:
        with self._lock:
            entry = self._sessions.pop(token, None)
        if entry is not None:
            entry[0].teardown()
