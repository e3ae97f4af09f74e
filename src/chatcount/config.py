from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORPUS_URL = (
    "https://raw.githubusercontent.com/ryanmcdermott/trump-speeches/master/speeches.txt"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    discord_bot_token: str = Field(min_length=1, description="Discord bot token")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    command_prefix: str = Field(
        default="!",
        min_length=1,
        description="Prefix marking a message as a command (never counted)",
    )

    display_limit: int = Field(
        default=5,
        ge=1,
        le=25,
        description="Maximum number of entries shown in a ranked list",
    )

    discord_max_message_length: int = Field(
        default=2000,
        ge=500,
        le=2000,
        description="Maximum Discord message length (Discord limit is 2000)",
    )

    history_batch_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Messages requested per history page (Discord limit is 100)",
    )

    history_max_attempts: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Attempts per history page before a channel is abandoned",
    )

    history_retry_wait_seconds: float = Field(
        default=1.0,
        ge=0,
        le=60.0,
        description="Base delay for exponential back-off between history page retries",
    )

    corpus_url: str | None = Field(
        default=DEFAULT_CORPUS_URL,
        description="Line-oriented text corpus ingested at startup (empty to disable)",
    )

    corpus_group_name: str = Field(
        default="trump",
        min_length=1,
        description="Synthetic author name the corpus lines are counted under",
    )

    corpus_header_pattern: str = Field(
        default=r"^SPEECH \d+",
        description="Regex for corpus header lines that are skipped",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        ge=5.0,
        le=120.0,
        description="Timeout for HTTP requests in seconds",
    )

    @field_validator("corpus_url")
    @classmethod
    def validate_corpus_url(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("Corpus URL must be an http(s) URL")
        return v

    @field_validator("corpus_group_name")
    @classmethod
    def validate_corpus_group_name(cls, v: str) -> str:
        if v == "all":
            raise ValueError("Corpus group name cannot be the aggregate group 'all'")
        return v

    def __repr__(self) -> str:
        return (
            f"Settings("
            f"discord_bot_token='*****', "
            f"command_prefix={self.command_prefix!r}, "
            f"display_limit={self.display_limit}, "
            f"corpus_url={self.corpus_url!r}, "
            f"log_level={self.log_level!r}"
            f")"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
