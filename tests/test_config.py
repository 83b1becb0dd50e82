from pocketplan.config import load_settings


def test_session_ttl_from_environment(monkeypatch):
    monkeypatch.setenv("POCKETPLAN_SESSION_TTL_SECONDS", "900")
    assert load_settings().session_ttl_seconds == 900


def test_session_ttl_defaults_to_twelve_hours(monkeypatch):
    monkeypatch.delenv("POCKETPLAN_SESSION_TTL_SECONDS", raising=False)
    assert load_settings().session_ttl_seconds == 12 * 60 * 60

    monkeypatch.setenv("POCKETPLAN_SESSION_TTL_SECONDS", "soon")
    assert load_settings().session_ttl_seconds == 12 * 60 * 60


def test_environment_pinned_for_tests():
    settings = load_settings()
    assert settings.demo_mode
    assert settings.is_sqlite
    assert settings.locale == "en"
