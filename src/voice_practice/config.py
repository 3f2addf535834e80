"""Runtime configuration for voice practice sessions."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="VOICE_PRACTICE_", env_file=".env", extra="ignore")

    app_name: str = "voice-practice"
    log_level: str = "INFO"
    backend_url: str = Field(
        default="http://127.0.0.1:8000",
        description="Base URL of the tutoring backend serving /api/chat and /api/speech/analyze.",
    )
    api_token: SecretStr | None = Field(default=None, description="Bearer credential attached to backend calls.")
    user_id: str | None = None
    request_timeout_seconds: float = 30.0
    recording_cap_seconds: float = 20.0
    typed_word_limit: int = 30
    speech_rate: float = 0.9
    speech_volume: float = 1.0
    speech_max_chars: int = 500
    celebration_threshold: int = 80
    voice_enabled: bool = True
    telemetry_enabled: bool = True


settings = Settings()
