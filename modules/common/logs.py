import logging


_pylog = logging.getLogger("lanplay")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class _Log:
    def human(self, level: str, message: str, **fields):
        levelno = _LEVELS.get(level.lower(), logging.INFO)
        _pylog.log(levelno, message, extra=fields)


log = _Log()
