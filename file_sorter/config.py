"""Application settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tunables loaded from FILE_SORTER_* environment variables."""

    # Worker pool sizing
    max_workers: int = 10
    small_input_threshold: int = 20  # Below this many files use small_worker_count
    small_worker_count: int = 2

    # Mover retry policy
    rename_attempts: int = 3
    rename_backoff_seconds: float = 0.1

    # Log delivery
    log_queue_size: int = 1000
    log_batch_size: int = 200
    log_flush_interval: float = 0.1
    log_history_chars: int = 200 * 1024
    result_log_batch_size: int = 50

    preferences_path: Path = Path("~/.config/file-sorter/preferences.json")

    model_config = SettingsConfigDict(
        env_prefix="FILE_SORTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unrelated keys in .env
    )


# Global settings instance
settings = Settings()
