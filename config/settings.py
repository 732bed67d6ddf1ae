"""
Settings Configuration
Pydantic-based configuration for the ingestion pipeline
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class NewsApiSettings(BaseSettings):
    """News search API configuration"""
    api_key: Optional[str] = Field(default=None, description="Primary NewsAPI key")
    api_key_backup: Optional[str] = Field(default=None, description="First backup key")
    api_key_backup_2: Optional[str] = Field(default=None, description="Second backup key")
    base_url: str = Field(default="https://newsapi.org/v2/everything", description="Search endpoint")
    language: str = Field(default="pt", description="Language filter")
    sort_by: str = Field(default="publishedAt", description="Sort order")
    page_size: int = Field(default=100, description="Results per request (API max 100)")
    lookback_days: int = Field(default=7, description="Query window in days")
    request_timeout: float = Field(default=15.0, description="Request timeout (seconds)")

    class Config:
        env_prefix = "NEWS_API_"

    def api_keys(self) -> List[str]:
        """Configured keys in registration order, blanks and repeats dropped."""
        keys: List[str] = []
        for key in (self.api_key, self.api_key_backup, self.api_key_backup_2):
            value = str(key or "").strip()
            if value and value not in keys:
                keys.append(value)
        return keys


class FetchSettings(BaseSettings):
    """Fetch orchestration configuration"""
    batch_size: int = Field(default=5, description="Subjects fetched concurrently per batch")
    batch_delay: float = Field(default=1.0, description="Delay between batches (seconds)")
    max_retries: int = Field(default=3, description="Retries per subject")
    retry_delay: float = Field(default=5.0, description="Delay before retrying transient errors (seconds)")
    per_subject_limit: int = Field(default=3, description="Articles kept per subject per run")
    insert_batch_size: int = Field(default=100, description="Articles per store insert")
    run_timeout: Optional[float] = Field(default=None, description="Overall fetch deadline (seconds)")

    class Config:
        env_prefix = "FETCH_"


class KeyHealthSettings(BaseSettings):
    """API key health tracking configuration"""
    health_check_interval: float = Field(default=300.0, description="Min seconds between health checks")
    max_consecutive_failures: int = Field(default=3, description="Failures before a key is invalidated")
    rate_limit_cooldown: float = Field(default=3600.0, description="Cooldown after a rate limit (seconds)")
    validation_timeout: float = Field(default=10.0, description="Validation request timeout (seconds)")

    class Config:
        env_prefix = "KEYS_"


class ScoringSettings(BaseSettings):
    """Content scoring configuration"""
    batch_threshold: int = Field(default=15, description="Minimum score for scheduled ingestion")
    live_threshold: int = Field(default=30, description="Minimum score for live search")
    profile_path: Optional[str] = Field(default=None, description="JSON keyword profile (default: pt-BR)")

    class Config:
        env_prefix = "SCORING_"


class MixingSettings(BaseSettings):
    """Diversity mixing configuration"""
    enabled: bool = Field(default=True, description="Apply the diversity mixer")
    max_consecutive: int = Field(default=2, description="Max adjacent articles per subject")

    class Config:
        env_prefix = "MIXING_"


class SchedulerSettings(BaseSettings):
    """Scheduler configuration"""
    run_at: str = Field(default="06:00", description="Daily run time (HH:MM, local)")
    tz: str = Field(default="America/Sao_Paulo", description="Scheduler timezone")
    fetch_interval_hours: float = Field(default=24.0, description="Hours until the next run is due")
    poll_interval: float = Field(default=60.0, description="Scheduler poll interval (seconds)")
    health_check_interval: float = Field(default=3600.0, description="Forced key check interval (seconds)")

    class Config:
        env_prefix = "SCHEDULER_"


class LogSettings(BaseSettings):
    """Logging configuration"""
    level: str = Field(default="INFO", description="Log level")
    file: Optional[str] = Field(default=None, description="Log file name under ./logs")
    use_rich: bool = Field(default=True, description="Use rich console output")

    class Config:
        env_prefix = "LOG_"


class Settings(BaseSettings):
    """Root settings - aggregates all groups"""

    news_api: NewsApiSettings = Field(default_factory=NewsApiSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    keys: KeyHealthSettings = Field(default_factory=KeyHealthSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    mixing: MixingSettings = Field(default_factory=MixingSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings, reading the given .env file into the environment first"""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            news_api=NewsApiSettings(),
            fetch=FetchSettings(),
            keys=KeyHealthSettings(),
            scoring=ScoringSettings(),
            mixing=MixingSettings(),
            scheduler=SchedulerSettings(),
            log=LogSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings"""
    return Settings.load_from_env_file()
