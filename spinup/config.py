from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://spinup:spinup_dev@db:5432/spinup"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # Security
    SECRET_KEY: str = "dev-secret-key-not-for-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ALLOWED_ORIGINS: str = "*"

    # Trello
    TRELLO_API_KEY: str = "mock_trello_key"
    TRELLO_API_SECRET: str = "mock_trello_secret"
    TRELLO_APP_NAME: str = "SpinUp"
    TRELLO_SCOPE: str = "read,write"
    TRELLO_TIMEOUT_SECONDS: float = 10.0
    TRELLO_DONE_KEYWORDS: list[str] = ["done", "complete", "finished"]
    TRELLO_SYNC_RETRY_LIMIT: int = 5
    TRELLO_SYNC_RETRY_COUNTDOWN: int = 60

    # App
    APP_ENV: str = "development"
    APP_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
