from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    DEBUG: bool = True
    ALLOWED_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Database – SQLite for local development
    DATABASE_URL: str = "sqlite+aiosqlite:///./crewtime.db"
    # SQL statement logging, independent of DEBUG
    DATABASE_ECHO: bool = False

    # Security (tokens are issued by the auth service, only verified here)
    SECRET_KEY: str = "dev_secret_key_change_in_production_min_32_chars!!"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Timesheet display
    # IANA zone for rendering full timestamps, e.g. "America/Chicago".
    # Empty keeps each timestamp in its own offset.
    DISPLAY_TIMEZONE: str = ""

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
