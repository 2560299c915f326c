import logging
from eventlane import config

handlers = [logging.StreamHandler()]
if config.LOG_FILE:
    handlers.append(logging.FileHandler(config.LOG_FILE))

logging.basicConfig(
    format="%(filename)s - %(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=handlers,
)
if config.LOG_LEVEL:
    logging.getLogger().setLevel(config.LOG_LEVEL.upper())
elif config.ENV == "production":
    logging.getLogger().setLevel(logging.INFO)
else:
    logging.getLogger().setLevel(logging.DEBUG)

# SQL echo is far too chatty at DEBUG
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(filename: str) -> logging.Logger:
    return logging.getLogger(filename)
