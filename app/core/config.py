from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # Pagination fallbacks for GET /{table}
    DEFAULT_LIMIT: int = 5
    DEFAULT_OFFSET: int = 0

    # Seconds; unset means a statement may run as long as the database lets it
    QUERY_TIMEOUT: Optional[float] = None

    LOG_LEVEL: str = "INFO"

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create a single instance of the settings to use everywhere
settings = Settings()
