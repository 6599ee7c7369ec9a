import logging.config
from pathlib import Path
from typing import Any

import structlog

from flowflex.core.configs import app_config

# Loggers named after the component packages; children (runtime.worker, ...) inherit their handlers
COMPONENT_LOGGERS = ('main', 'runtime', 'workflows', 'activities', 'temporal', 'api')

# Processors shared by structlog loggers and foreign (stdlib) records
SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt='iso'),
]


def resolve_log_dir() -> Path:
    """LOG_DIR if configured, otherwise `logs/` next to pyproject.toml."""
    if app_config.LOG_DIR:
        return Path(app_config.LOG_DIR)

    root = Path(__file__).resolve()
    while root.parent != root:
        if (root / 'pyproject.toml').exists():
            break
        root = root.parent
    return root / 'logs'


def build_logging_config(log_dir: Path) -> dict[str, Any]:
    """dictConfig for the configured handlers and format.

    Both formatters render through structlog, so stdlib records from
    `logging.getLogger('runtime.worker')` carry the bound invocation context.
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if app_config.LOG_FORMAT == 'json'
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'structured': {
                '()': structlog.stdlib.ProcessorFormatter,
                'foreign_pre_chain': SHARED_PROCESSORS,
                'processors': [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.dict_tracebacks,
                    renderer,
                ],
            },
        },
        'handlers': {
            'stream': {
                'formatter': 'structured',
                'class': 'logging.StreamHandler',
                'stream': 'ext://sys.stderr',
            },
            'file': {
                'formatter': 'structured',
                'class': 'logging.handlers.TimedRotatingFileHandler',
                'filename': str(log_dir / 'flowflex.log'),
                'when': 'midnight',
                'utc': True,
                'delay': True,
                'backupCount': 7,
            },
        },
        'loggers': {
            name: {'handlers': app_config.LOG_HANDLERS, 'level': app_config.LOG_LEVEL, 'propagate': False}
            for name in COMPONENT_LOGGERS
        },
    }


def configure_logging() -> None:
    log_dir = resolve_log_dir()
    if 'file' in app_config.LOG_HANDLERS:
        log_dir.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(log_dir))
    structlog.configure(
        processors=[
            *SHARED_PROCESSORS,
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            ),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging()

logger = structlog.get_logger('main')
