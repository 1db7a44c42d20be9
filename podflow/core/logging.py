# podflow/core/logging.py
import logging
import sys
from datetime import datetime

_default_level: int = logging.INFO

_RESET = '\033[0m'
_TIME = '\033[94m'
_TEXT = '\033[97m'

# Width of the bracketed component column; fits '[dispatcher]' and '[readiness]'.
_COMPONENT_WIDTH = 14
_LEVEL_WIDTH = 10


def _paint(color: str, text: str) -> str:
    return f'{color}{text}{_RESET}'


class ColoredFormatter(logging.Formatter):
    """One line per record: time, component, level, message.

    The component is the last segment of the logger name, so
    `podflow.readiness` renders as `[readiness]`.
    """

    LEVEL_COLORS = {
        'DEBUG': '\033[90m',
        'INFO': '\033[92m',
        'WARNING': '\033[93m',
        'ERROR': '\033[91m',
        'CRITICAL': '\033[1;91m',
    }

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        component = record.name.rsplit('.', 1)[-1]
        level_color = self.LEVEL_COLORS.get(record.levelname, _TEXT)

        line = ' '.join((
            _paint(_TIME, f'[{stamp}]'),
            _paint(_TEXT, f'[{component}]'.ljust(_COMPONENT_WIDTH))
            + _paint(level_color, f'[{record.levelname}]'.ljust(_LEVEL_WIDTH))
            + _paint(_TEXT, record.getMessage()),
        ))
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def set_default_level(level: int) -> None:
    """Set the level given to podflow loggers created from now on."""
    global _default_level
    _default_level = level


def get_logger(component_name: str) -> logging.Logger:
    """Return the `podflow.<component_name>` logger, writing to stdout."""
    logger = logging.getLogger(f'podflow.{component_name}')
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    handler.setLevel(_default_level)
    logger.addHandler(handler)
    logger.setLevel(_default_level)
    # Records stop at this logger's handler
    logger.propagate = False
    return logger


def setup_logging(loglevel: str) -> int:
    """Apply a textual level to every podflow logger, existing and future.

    Returns the numeric level that was applied.
    """
    level = getattr(logging, loglevel.upper(), logging.INFO)
    set_default_level(level)

    for name in logging.Logger.manager.loggerDict:
        if isinstance(name, str) and name.startswith('podflow.'):
            lgr = logging.getLogger(name)
            lgr.setLevel(level)
            for handler in lgr.handlers:
                handler.setLevel(level)

    return level
