import pytest

from pocketplan.services.auth import (
    AuthSession,
    InMemoryIdentityBackend,
    SessionRegistry,
    SessionState,
)
from pocketplan.services.errors import (
    EmailInUseError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    ValidationError,
)

EMAIL = "ana@example.com"
PASSWORD = "s3cret-pass"


@pytest.fixture
def session(directory):
    auth = AuthSession(InMemoryIdentityBackend(directory)).init()
    yield auth
    auth.teardown()


def register_and_verify(session, directory, email=EMAIL, password=PASSWORD):
    session.register("Ana", email, password, password)
    directory.verify_email(directory.last_message(email, "verify").token)


def test_register_never_logs_in(session, directory):
    result = session.register("Ana", EMAIL, PASSWORD, PASSWORD)
    assert result.needs_verification
    assert session.state is SessionState.LOGGED_OUT
    assert session.user is None
    assert session.backend.current_user() is None
    assert directory.last_message(EMAIL, "verify") is not None


def test_unverified_login_is_rejected(session):
    session.register("Ana", EMAIL, PASSWORD, PASSWORD)
    with pytest.raises(EmailNotVerifiedError):
        session.login(EMAIL, PASSWORD)
    assert session.state is SessionState.LOGGED_OUT
    assert session.needs_verification
    assert session.error == "Email not verified. Please check your inbox."
    assert session.backend.current_user() is None


def test_login_after_verification(session, directory):
    register_and_verify(session, directory)
    user = session.login(EMAIL, PASSWORD)
    assert session.state is SessionState.LOGGED_IN
    assert user.name == "Ana"
    assert user.email == EMAIL
    assert not session.needs_verification


def test_wrong_password(session, directory):
    register_and_verify(session, directory)
    with pytest.raises(InvalidCredentialsError):
        session.login(EMAIL, "nope")
    assert session.state is SessionState.LOGGED_OUT
    assert session.error == "Invalid email or password."


def test_duplicate_registration(session):
    session.register("Ana", EMAIL, PASSWORD, PASSWORD)
    with pytest.raises(EmailInUseError):
        session.register("Ana again", EMAIL.upper(), PASSWORD, PASSWORD)
    assert session.state is SessionState.LOGGED_OUT


@pytest.mark.parametrize(
    "args, message",
    [
        (("", EMAIL, PASSWORD, PASSWORD), "Please fill in all fields."),
        (("Ana", EMAIL, PASSWORD, ""), "Please fill in all fields."),
        (("Ana", EMAIL, PASSWORD, "other"), "Password and confirmation do not match."),
    ],
)
def test_register_validation(session, args, message):
    with pytest.raises(ValidationError, match=message):
        session.register(*args)


def test_verification_token_is_single_use(session, directory):
    session.register("Ana", EMAIL, PASSWORD, PASSWORD)
    token = directory.last_message(EMAIL, "verify").token
    directory.verify_email(token)
    with pytest.raises(ValidationError):
        directory.verify_email(token)


def test_google_login_skips_verification(session):
    user = session.google_login({"email": "g@example.com", "name": "Gina", "photoURL": "http://img"})
    assert session.is_logged_in
    assert user.name == "Gina"
    assert user.to_dict()["photoURL"] == "http://img"


def test_google_login_requires_email(session):
    with pytest.raises(InvalidCredentialsError):
        session.google_login({"name": "No Mail"})
    assert session.state is SessionState.LOGGED_OUT


def test_logout(session, directory):
    register_and_verify(session, directory)
    session.login(EMAIL, PASSWORD)
    session.logout()
    assert session.state is SessionState.LOGGED_OUT
    assert session.user is None


def test_reset_password(session, directory):
    with pytest.raises(ValidationError, match="Email is required"):
        session.reset_password("")
    session.reset_password("unknown@example.com")
    assert directory.outbox == []

    session.register("Ana", EMAIL, PASSWORD, PASSWORD)
    session.reset_password(EMAIL)
    assert directory.last_message(EMAIL, "reset") is not None


def test_resend_verification_keeps_state(session, directory):
    session.register("Ana", EMAIL, PASSWORD, PASSWORD)
    with pytest.raises(ValidationError):
        session.resend_verification(EMAIL, "")

    session.resend_verification(EMAIL, PASSWORD)
    assert len([m for m in directory.outbox if m.kind == "verify"]) == 2
    assert session.state is SessionState.LOGGED_OUT
    assert session.backend.current_user() is None


def test_update_profile_requires_login(session):
    with pytest.raises(NotAuthenticatedError, match="You need to sign in first."):
        session.update_profile(name="X")


def test_update_profile(session, directory):
    register_and_verify(session, directory)
    session.login(EMAIL, PASSWORD)

    user = session.update_profile(name="Ana Maria", photo_url="http://me")
    assert user.name == "Ana Maria"
    assert user.photo_url == "http://me"
    assert directory.find(EMAIL).user.display_name == "Ana Maria"

    with pytest.raises(ValidationError):
        session.update_profile(password="new-pass", confirm="other")

    session.update_profile(password="new-pass", confirm="new-pass")
    session.logout()
    with pytest.raises(InvalidCredentialsError):
        session.login(EMAIL, PASSWORD)
    assert session.login(EMAIL, "new-pass").name == "Ana Maria"


def test_watcher_follows_backend_sign_out(session):
    session.google_login({"email": "g@example.com"})
    session.backend.sign_out()
    assert session.state is SessionState.LOGGED_OUT


def test_watcher_picks_up_verified_sign_in(session, directory):
    register_and_verify(session, directory)
    session.backend.sign_in(EMAIL, PASSWORD)
    assert session.is_logged_in
    assert session.user.email == EMAIL


def test_teardown_stops_watching(session):
    session.teardown()
    session.backend.sign_in_with_google({"email": "g@example.com"})
    assert session.state is SessionState.LOGGED_OUT


# ---- registry ---------------------------------------------------------------------


def test_registry_issue_get_revoke(registry):
    session = registry.new_session()
    with pytest.raises(NotAuthenticatedError):
        registry.issue(session)

    session.google_login({"email": "g@example.com"})
    token = registry.issue(session)
    assert registry.get(token) is session
    assert registry.get("bogus") is None
    assert registry.get(None) is None

    registry.revoke(token)
    assert registry.get(token) is None
    assert session.state is SessionState.LOGGED_OUT


def test_registry_sessions_share_accounts():
    registry = SessionRegistry()
    first = registry.new_session()
    first.register("Ana", EMAIL, PASSWORD, PASSWORD)
    registry.directory.verify_email(registry.directory.last_message(EMAIL, "verify").token)

    second = registry.new_session()
    assert second.login(EMAIL, PASSWORD).email == EMAIL
    assert first.state is SessionState.LOGGED_OUT


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


def logged_in(registry, email):
    session = registry.new_session()
    session.google_login({"email": email})
    return session


def test_registry_tokens_expire():
    clock = FakeClock()
    registry = SessionRegistry(ttl_seconds=60, clock=clock)
    session = logged_in(registry, "g@example.com")
    token = registry.issue(session)

    clock.now += 59
    assert registry.get(token) is session

    clock.now += 1
    assert registry.get(token) is None
    assert len(registry) == 0
    assert session.state is SessionState.LOGGED_OUT


def test_registry_drops_expired_tokens_when_issuing():
    clock = FakeClock()
    registry = SessionRegistry(ttl_seconds=60, clock=clock)
    for i in range(5):
        registry.issue(logged_in(registry, f"user{i}@example.com"))

    clock.now += 61
    registry.issue(logged_in(registry, "late@example.com"))
    assert len(registry) == 1


def test_registry_caps_the_number_of_sessions():
    registry = SessionRegistry(max_sessions=2, clock=FakeClock())
    first = logged_in(registry, "a@example.com")
    first_token = registry.issue(first)
    second_token = registry.issue(logged_in(registry, "b@example.com"))
    third_token = registry.issue(logged_in(registry, "c@example.com"))

    assert len(registry) == 2
    assert registry.get(first_token) is None
    assert first.state is SessionState.LOGGED_OUT
    assert registry.get(second_token) is not None
    assert registry.get(third_token) is not None
