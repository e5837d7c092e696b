"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./comms.db"

    # Twilio
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    twilio_api_base: str = "https://api.twilio.com/2010-04-01"
    validate_twilio_signature: bool = False

    # Public base URL used for Twilio callback URLs (e.g. behind a proxy)
    base_url: Optional[str] = None

    # Call flow
    business_name: str = "Frederick Wraps and Graphics"
    say_voice: str = "alice"
    dial_timeout_seconds: int = 25
    voicemail_max_length_seconds: int = 120
    ringing_stale_after_minutes: int = 30

    # Inbox
    message_window: int = 500
    timezone: str = "America/New_York"

    # Optional Whisper fallback for voicemail transcription
    openai_api_key: Optional[str] = None

    # Optional YAML file with team phones to seed an empty table
    team_phones_file: Optional[str] = None

    # Realtime
    realtime_queue_size: int = 256

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
