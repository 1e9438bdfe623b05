"""Process settings (environment and .env)."""

import logging
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # API
    cmc_api_key: str = Field(default="", alias="CMC_API_KEY")
    cmc_base_url: str = Field(default="https://pro-api.coinmarketcap.com", alias="CMC_BASE_URL")
    http_timeout: float = Field(default=10.0, alias="HTTP_TIMEOUT")

    # Persistence
    config_path: str = Field(default="config.json", alias="CONFIG_PATH")

    # Refresh
    refresh_interval: Optional[int] = Field(default=None, alias="REFRESH_INTERVAL")  # Overrides config file
    min_refresh_interval: int = 5

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="crypto_tracker.log", alias="LOG_FILE")

    def resolve_api_key(self, file_key: str) -> str:
        """Environment key wins over the one stored in the config file."""
        return self.cmc_api_key.strip() or (file_key or "").strip()

    def resolve_interval(self, file_interval: int) -> int:
        interval = self.refresh_interval if self.refresh_interval else file_interval
        if interval < self.min_refresh_interval:
            logger.warning(
                "[CONFIG] Refresh interval %ss below minimum, using %ss",
                interval, self.min_refresh_interval,
            )
            return self.min_refresh_interval
        return interval


settings = Settings()
