import argparse
import os

import uvicorn
from dotenv import load_dotenv

from app.logger.logger import logger

ENV_CHOICES = ["dev", "docker", "prod", "local", "rc"]


def load_environment(env: str) -> None:
    env_file = ".env" if env == "local" else f".{env}.env"

    if os.path.exists(env_file):
        logger.debug(f"Loading environment variables from {env_file}")
        load_dotenv(env_file, override=True)
    elif os.path.exists(".env"):
        logger.debug(f"Environment file {env_file} not found, falling back to .env")
        load_dotenv(".env", override=True)
    else:
        logger.debug("No environment files found. Using system environment variables.")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Start the content automation API server."
    )
    parser.add_argument(
        "--env",
        type=str,
        choices=ENV_CHOICES,
        default="local",
        help="Environment to load (dev, docker, prod, local, rc; default=local).",
    )
    args = parser.parse_args()

    load_environment(args.env)

    # imported late so the settings pick up the env file loaded above
    from app.config import settings

    logger.debug(f"Starting server on {settings.HOST}:{settings.PORT}")
    uvicorn.run(
        "app.app:get_app",
        workers=settings.WORKERS_COUNT,
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.RELOAD,
        factory=True,
    )


if __name__ == "__main__":
    main()
