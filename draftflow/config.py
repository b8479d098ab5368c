from dataclasses import dataclass
import os

from dotenv import load_dotenv


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass(frozen=True)
class Settings:
    feishu_app_id: str = ""
    feishu_app_secret: str = ""
    feishu_base_url: str = "https://open.feishu.cn"
    feishu_doc_base_url: str = "https://feishu.cn"
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"
    completion_backend: str = "deepseek"
    chat_model: str = ""
    chat_model_provider: str = ""
    completion_timeout_seconds: float = 90.0
    transition_timeout_seconds: float = 150.0
    session_idle_ttl_seconds: float = 3600.0
    log_level: str = "INFO"
    log_format: str = "json"
    bot_port: int = 3000


def get_settings() -> Settings:
    """Settings from the environment, after loading a .env file if present"""

    load_dotenv()
    return Settings(
        feishu_app_id=os.getenv("FEISHU_APP_ID", "").strip(),
        feishu_app_secret=os.getenv("FEISHU_APP_SECRET", "").strip(),
        feishu_base_url=os.getenv("FEISHU_BASE_URL", "https://open.feishu.cn").strip(),
        feishu_doc_base_url=os.getenv("FEISHU_DOC_BASE_URL", "https://feishu.cn").strip(),
        deepseek_api_key=os.getenv("DEEPSEEK_API_KEY", "").strip(),
        deepseek_base_url=os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com").strip(),
        deepseek_model=os.getenv("DEEPSEEK_MODEL", "deepseek-chat").strip(),
        completion_backend=os.getenv("COMPLETION_BACKEND", "deepseek").strip().lower(),
        chat_model=os.getenv("CHAT_MODEL", "").strip(),
        chat_model_provider=os.getenv("CHAT_MODEL_PROVIDER", "").strip(),
        completion_timeout_seconds=_env_float("COMPLETION_TIMEOUT_SECONDS", 90.0),
        transition_timeout_seconds=_env_float("TRANSITION_TIMEOUT_SECONDS", 150.0),
        session_idle_ttl_seconds=_env_float("SESSION_IDLE_TTL_SECONDS", 3600.0),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip(),
        log_format=os.getenv("LOG_FORMAT", "json").strip(),
        bot_port=int(_env_float("BOT_PORT", 3000)),
    )
