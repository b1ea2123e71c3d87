import argparse
import os

from dotenv import load_dotenv

# Containers set APP_ENV and provide their own environment
if not os.environ.get("APP_ENV"):
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--env",
        type=str,
        choices=["dev", "docker", "prod", "local", "rc"],
        default="local",
    )
    try:
        # gunicorn's own arguments are left alone
        args, _ = parser.parse_known_args()
        env_file = f".{args.env}.env"
    except SystemExit:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file, override=True)
    elif os.path.exists(".env"):
        load_dotenv(".env", override=True)

workers = int(os.getenv("WORKERS_COUNT", 2))
threads = int(os.getenv("WORKERS_PER_CORE", 2))

PORT = os.getenv("PORT", 8900)

bind = f"0.0.0.0:{PORT}"
worker_class = "uvicorn.workers.UvicornWorker"
wsgi_app = "app.app:get_app()"

# video publishing polls Instagram for several minutes per item
timeout = 600
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = "info"

preload_app = False
