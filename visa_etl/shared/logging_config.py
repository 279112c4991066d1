"""
Logging configuration.

Four log streams:
1. run_lifecycle/  - crawl run start/stop/summary (event driven)
2. crawl_process/  - per-URL fetch, classification and load outcomes (event driven)
3. error/          - errors logged directly by the infrastructure layer
4. performance/    - fetch timings logged directly by the infrastructure layer

File names follow {date}_{log type}.log, e.g. 2026-10-17_crawl_process.log
"""

import logging
import logging.config
import logging.handlers
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

LOGGER_NAMES = {
    'run_lifecycle': 'domain.run_lifecycle',
    'crawl_process': 'domain.crawl_process',
    'error': 'infrastructure.error',
    'performance': 'infrastructure.perf',
}


def setup_logging(log_dir: Optional[Union[str, Path]] = None, level: str = 'INFO') -> None:
    """
    Configure every logger. Call once at process start-up.

    Parameters:
        log_dir: root directory for the JSON log files; None keeps console output only
        level: console / root level
    """
    handlers = {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
            'level': level,
        }
    }
    file_handlers = {}

    if log_dir is not None:
        log_root_dir = Path(log_dir)
        today = datetime.now().strftime('%Y-%m-%d')
        backups = {'run_lifecycle': 30, 'crawl_process': 30, 'error': 30, 'performance': 7}

        for log_type, backup_count in backups.items():
            type_dir = log_root_dir / log_type
            type_dir.mkdir(parents=True, exist_ok=True)
            handler_name = f'{log_type}_file'
            handlers[handler_name] = {
                'class': 'logging.handlers.TimedRotatingFileHandler',
                'filename': str(type_dir / f'{today}_{log_type}.log'),
                'when': 'MIDNIGHT',
                'interval': 1,
                'backupCount': backup_count,
                'encoding': 'utf-8',
                'formatter': 'json',
            }
            file_handlers[log_type] = handler_name

    def _handlers_for(log_type: str, console: bool = True) -> list:
        names = [file_handlers[log_type]] if log_type in file_handlers else []
        if console:
            names.append('console')
        return names

    logging_config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'json': {
                '()': 'pythonjsonlogger.json.JsonFormatter',
                'format': '%(asctime)s %(name)s %(levelname)s %(message)s',
                'timestamp': True,
            },
            'simple': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
        },
        'handlers': handlers,
        'loggers': {
            LOGGER_NAMES['run_lifecycle']: {
                'handlers': _handlers_for('run_lifecycle'),
                'level': 'INFO',
                'propagate': False,
            },
            LOGGER_NAMES['crawl_process']: {
                'handlers': _handlers_for('crawl_process'),
                'level': 'DEBUG',
                'propagate': False,
            },
            LOGGER_NAMES['error']: {
                'handlers': _handlers_for('error'),
                'level': 'WARNING',
                'propagate': False,
            },
            # performance numbers only go to the file
            LOGGER_NAMES['performance']: {
                'handlers': _handlers_for('performance', console=False),
                'level': 'INFO',
                'propagate': False,
            },
        },
        'root': {
            'level': level,
            'handlers': ['console'],
        },
    }

    logging.config.dictConfig(logging_config)
    _setup_custom_namer()

    get_run_lifecycle_logger().info(
        "Logging initialised",
        extra={'log_root_dir': str(log_dir) if log_dir is not None else None},
    )


def _setup_custom_namer() -> None:
    """
    Rename rotated files to keep the date prefix:
    2026-10-17_crawl_process.log.2026-10-16 -> 2026-10-16_crawl_process.log
    """

    def custom_namer(default_name: str) -> str:
        path = Path(default_name)
        parts = path.name.split('.')
        if len(parts) == 3 and parts[1] == 'log':
            log_type = parts[0].split('_', 1)[1]
            return str(path.parent / f"{parts[2]}_{log_type}.log")
        return default_name

    for logger_name in LOGGER_NAMES.values():
        for handler in logging.getLogger(logger_name).handlers:
            if isinstance(handler, logging.handlers.TimedRotatingFileHandler):
                handler.namer = custom_namer


def get_run_lifecycle_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAMES['run_lifecycle'])


def get_crawl_process_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAMES['crawl_process'])


def get_error_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAMES['error'])


def get_performance_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAMES['performance'])
