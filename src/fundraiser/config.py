from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://app:devpassword@db:5432/fundraiser"
    REDIS_URL: str = "redis://redis:6379/0"

    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_TIMEOUT_SECONDS: int = 30
    STRIPE_MAX_NETWORK_RETRIES: int = 2
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    DONATION_CURRENCY: str = "eur"

    CORS_ALLOW_ORIGINS: list[str] = ["*"]

    APP_ENV: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
