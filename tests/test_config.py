import pytest

from studio_bot.config import load_settings

REQUIRED = {"WHATSAPP_VERIFY_TOKEN": "verify-me", "API_KEY": "secret-key"}
OPTIONAL = (
    "WHATSAPP_TOKEN",
    "WHATSAPP_PHONE_NUMBER_ID",
    "WHATSAPP_APP_SECRET",
    "DATABASE_PATH",
    "SEND_MAX_ATTEMPTS",
    "INSTRUCTOR_TEMPLATE_NAME",
)


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in OPTIONAL:
        # setenv first so values loaded from an env file are undone afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    return tmp_path / "missing.env"


def test_defaults(env):
    settings = load_settings(str(env))

    assert settings.verify_token == "verify-me"
    assert settings.timezone == "Europe/Warsaw"
    assert settings.send_max_attempts == 3
    assert not settings.whatsapp_configured


def test_whatsapp_credentials(env, monkeypatch):
    monkeypatch.setenv("WHATSAPP_TOKEN", "token")
    monkeypatch.setenv("WHATSAPP_PHONE_NUMBER_ID", "123")
    monkeypatch.setenv("SEND_MAX_ATTEMPTS", "5")

    settings = load_settings(str(env))

    assert settings.whatsapp_configured
    assert settings.send_max_attempts == 5


def test_env_file_is_read(env, monkeypatch, tmp_path):
    env_file = tmp_path / "studio.env"
    env_file.write_text("DATABASE_PATH=/tmp/from-file.db\n")

    settings = load_settings(str(env_file))

    assert str(settings.database_path) == "/tmp/from-file.db"


@pytest.mark.parametrize("missing", sorted(REQUIRED))
def test_required_values(env, monkeypatch, missing):
    monkeypatch.delenv(missing)

    with pytest.raises(RuntimeError):
        load_settings(str(env))
