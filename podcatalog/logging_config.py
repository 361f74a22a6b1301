import logging, logging.config

def setup_logging(level: str = "INFO", sql_echo: bool = False):
    level = level.upper()
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                        "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "loggers": {
            # Alembic reports each applied revision at INFO
            "alembic": {"level": level, "handlers": ["console"], "propagate": False},
            "sqlalchemy.engine": {"level": ("INFO" if sql_echo else "WARNING")},
            "httpx": {"level": "WARNING"},
        },
        "root": {"level": level, "handlers": ["console"]},
    })
