from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    # Application
    APP_NAME: str = Field(default="calindex")
    APP_VERSION: str = Field(default="0.1.0")

    # Environment
    ENV: str = Field(default="development")

    # Logging
    LOG_LEVEL: Optional[str] = Field(
        default=None,
        description="Minimum log level; inferred from ENV when unset",
    )
    LOG_TO_FILE: bool = Field(default=False, description="Also write logs to LOG_DIR")
    LOG_DIR: str = Field(default="logs")

    # Loader
    MAX_FILE_SIZE_MB: int = Field(default=50, description="Largest export file accepted by the loader")
    OBJECT_FILE_PATTERN: str = Field(default="*.txt", description="Glob used when loading a directory")
    FILE_ENCODINGS: list[str] = Field(
        default=["utf-8-sig", "utf-8", "cp1252", "cp850"],
        description="Encodings tried in order when decoding an export file",
    )

    # Query
    DEFAULT_PAGE_LIMIT: int = Field(default=20, description="Page size when a query gives no limit")
    MAX_PAGE_LIMIT: int = Field(default=500, description="Largest page size a query may request")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CALINDEX_",
        case_sensitive=True,
        extra="ignore",
    )

    def get_max_file_size(self) -> int:
        """Return the loader size limit in bytes."""
        return self.MAX_FILE_SIZE_MB * 1024 * 1024


settings = Settings()
