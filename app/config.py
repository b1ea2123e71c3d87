import argparse
import os

from pydantic_settings import BaseSettings, SettingsConfigDict


# Check if --env is provided in command line arguments
def get_env_file():
    # In container environments, APP_ENV is typically set in the container config
    app_env = os.environ.get("APP_ENV")

    # If APP_ENV is set, we're likely in a containerized environment
    # In this case, we should prioritize environment variables already set in the container
    if app_env:
        return None  # Let Pydantic use environment variables directly

    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--env",
        type=str,
        choices=["dev", "docker", "prod", "local", "rc"],
        default="local",
        help="Specify the environment to use (dev, prod, local, docker default=local).",
    )

    # Parse only known args to avoid conflicts with other arguments
    try:
        args, _ = parser.parse_known_args()
        env_file = f".{args.env}.env"

        if os.path.exists(env_file):
            return env_file
    except SystemExit:
        # argparse exits on unknown choices; fall back to the default file
        pass

    return ".env" if os.path.exists(".env") else None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=get_env_file(), extra="ignore")

    APP_NAME: str = "Content Automation API"
    APP_ENV: str = "local"
    WORKERS_COUNT: int = 1
    HOST: str = "localhost"
    PORT: int = 8900
    RELOAD: bool = True
    API_PREFIX: str = "/api/v1"

    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "content_automation"
    DATABASE_USER: str = "postgres"
    DATABASE_PASSWORD: str = "postgres"
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    LOG_LEVEL: str = "DEBUG"

    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    SESSION_COOKIE_NAME: str = "session"

    # Scheduler invocation: bearer secret or trusted-origin header
    CRON_SECRET: str = ""
    CRON_TRUSTED_HEADER: str = "x-vercel-cron"
    CRON_TRUSTED_HEADER_VALUE: str = "1"
    SWEEP_BATCH_LIMIT: int = 10

    # Ledger defaults for newly created balances
    DEFAULT_CREDIT_GRANT: int = 1000
    DEFAULT_BONUS_GRANT: int = 500

    GRAPH_API_VERSION: str = "v24.0"
    INSTAGRAM_APP_ID: str = ""
    INSTAGRAM_APP_SECRET: str = ""
    INSTAGRAM_REDIRECT_URI: str = ""
    INSTAGRAM_MOCK_PUBLISH: bool = False
    MEDIA_POLL_INTERVAL_SECONDS: float = 10.0
    MEDIA_POLL_MAX_ATTEMPTS: int = 30
    GRAPH_HTTP_TIMEOUT_SECONDS: float = 60.0

    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_DEFAULT_REGION: str = "us-east-1"
    AWS_S3_BUCKET_NAME: str = ""
    S3_ENDPOINT_URL: str = ""
    S3_PUBLIC_BASE_URL: str = ""

    @property
    def DB_URL(self) -> str:
        return f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"

    @property
    def DB_SYNC_URL(self) -> str:
        return f"postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() in ("prod", "production")


settings = Settings()
