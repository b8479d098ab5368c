import pytest

from draftflow import config
from draftflow.config import Settings, get_settings

ENV_VARS = [
    "FEISHU_APP_ID", "FEISHU_APP_SECRET", "FEISHU_BASE_URL", "FEISHU_DOC_BASE_URL",
    "DEEPSEEK_API_KEY", "DEEPSEEK_BASE_URL", "DEEPSEEK_MODEL",
    "COMPLETION_TIMEOUT_SECONDS", "TRANSITION_TIMEOUT_SECONDS", "SESSION_IDLE_TTL_SECONDS",
    "LOG_LEVEL", "LOG_FORMAT", "BOT_PORT",
    "COMPLETION_BACKEND", "CHAT_MODEL", "CHAT_MODEL_PROVIDER",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda: False)
    return monkeypatch


def test_defaults(clean_env):
    assert get_settings() == Settings()
    assert Settings().transition_timeout_seconds == 150.0
    assert Settings().bot_port == 3000


def test_values_come_from_environment(clean_env):
    clean_env.setenv("FEISHU_APP_ID", " cli_a ")
    clean_env.setenv("DEEPSEEK_API_KEY", "sk-1")
    clean_env.setenv("TRANSITION_TIMEOUT_SECONDS", "30")
    clean_env.setenv("BOT_PORT", "8080")
    clean_env.setenv("LOG_FORMAT", "console")

    settings = get_settings()

    assert settings.feishu_app_id == "cli_a"
    assert settings.deepseek_api_key == "sk-1"
    assert settings.transition_timeout_seconds == 30.0
    assert settings.bot_port == 8080
    assert settings.log_format == "console"


def test_chat_model_backend_settings(clean_env):
    clean_env.setenv("COMPLETION_BACKEND", " Chat_Model ")
    clean_env.setenv("CHAT_MODEL", "gpt-4o-mini")
    clean_env.setenv("CHAT_MODEL_PROVIDER", "openai")

    settings = get_settings()

    assert settings.completion_backend == "chat_model"
    assert settings.chat_model == "gpt-4o-mini"
    assert settings.chat_model_provider == "openai"


def test_blank_numbers_fall_back_to_defaults(clean_env):
    clean_env.setenv("COMPLETION_TIMEOUT_SECONDS", "  ")

    assert get_settings().completion_timeout_seconds == 90.0


def test_invalid_numbers_are_rejected(clean_env):
    clean_env.setenv("SESSION_IDLE_TTL_SECONDS", "an hour")

    with pytest.raises(ValueError, match="SESSION_IDLE_TTL_SECONDS"):
        get_settings()
