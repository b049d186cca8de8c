from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    BOOKING_API_BASE_URL: str | None = None
    BOOKING_API_TOKEN: str | None = None
    BOOKING_API_TIMEOUT_SECONDS: float = 10.0

    RESOURCE_FETCH_TIMEOUT_SECONDS: float = 15.0
    SUBMISSION_TIMEOUT_SECONDS: float = 20.0

    MAX_ACTIVE_SESSIONS: int = 1000
    SHOW_TECHNICAL_ERROR_DETAILS: bool = False

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"


settings = Settings()
