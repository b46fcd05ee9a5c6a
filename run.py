import logging

import uvicorn

import config
from utils.config_validator import validate_or_exit
from utils.logging_config import setup_logging

# Initialize centralized logging configuration
setup_logging()

# Validate critical configuration before the app starts taking requests
validate_or_exit(config)

# SQL statements are far too noisy for the service log
for logger_name in ['aiosqlite', 'sqlalchemy', 'sqlalchemy.engine', 'sqlalchemy.pool', 'sqlalchemy.orm']:
    logging.getLogger(logger_name).setLevel(logging.WARNING)

from app import app  # noqa: E402


def main() -> None:
    logging.info(f"🚀 Starting shop backend on {config.WEBAPP_HOST}:{config.WEBAPP_PORT} "
                 f"({config.RUNTIME_ENVIRONMENT.value})")
    uvicorn.run(app, host=config.WEBAPP_HOST, port=config.WEBAPP_PORT)


if __name__ == '__main__':
    main()
