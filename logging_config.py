import logging
import logging.config
from typing import Any, Dict

from config import settings

LOGGING_CONFIG: Dict[str, Any] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
            'stream': 'ext://sys.stdout',
        },
    },
    'loggers': {
        'tortoise': {
            'level': 'WARNING',
        },
        'uvicorn.access': {
            'level': 'INFO',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': settings.LOG_LEVEL,
    },
}


def setup_logging() -> None:
    """在应用启动时调用一次"""
    logging.config.dictConfig(LOGGING_CONFIG)
