from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_prefix="APP_",
    )

    SECRET_KEY: str
    WORKERS: int = 1
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    CORS_ORIGINS: list[str] | str = "*"
    APP_VERSION: str = "1.0"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 5
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_STATEMENT_TIMEOUT_MS: int = 15000
    SQL_LOG_FILE: str | None = None

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    AUDIT_LOG_RETENTION_DAYS: int = 90

    SES_REGION: str = "ap-south-1"
    SES_ACCESS_KEY: str | None = None
    SES_SECRET_KEY: str | None = None
    EMAIL_SENDER: str = "no-reply@volunteersync.org"
    EMAIL_SENDER_NAME: str = "VolunteerSync"

    DISCORD_ERROR_WEBHOOK: str | None = None

    @property
    def cors_origins(self) -> list[str]:
        if isinstance(self.CORS_ORIGINS, str):
            return [
                origin.strip()
                for origin in self.CORS_ORIGINS.split(",")
                if origin.strip()
            ]
        return self.CORS_ORIGINS

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = AppConfig()
