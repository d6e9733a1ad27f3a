from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Page sizes sent with `load`, `load-messages` and `join`
    CONVERSATIONS_PAGE_SIZE: int = 20
    MESSAGES_PAGE_SIZE: int = 50
    JOIN_MESSAGES_SIZE: int = 5

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="CHATSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
