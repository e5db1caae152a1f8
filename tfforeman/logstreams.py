"""Configure the log output of the provider.

All modules log via `logging.getLogger("tfforeman")` and pass structured
context as a single dict argument, eg

    logit.error("cannot decode response", {"component": "foreman", "url": url})

The formatter below merges that dict into a single JSON line per record.

"""

import json
import logging
import sys
from datetime import UTC, datetime

# Log levels of the original provider and their `logging` equivalent. TRACE
# sits below DEBUG.
TRACE = 5
LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

logging.addLevelName(TRACE, "TRACE")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        # Structured context arrives as the one and only dict argument.
        context = record.args if isinstance(record.args, dict) else {}

        data = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update({str(k): v for k, v in context.items()})
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def setup(level: str, logfile: str = "-", name: str = "tfforeman") -> logging.Logger:
    """Configure the `name` logger and return it.

    `level` is one of TRACE, DEBUG, INFO, WARNING, ERROR or NONE. The log goes
    to stderr if `logfile` is "-" and is appended to `logfile` otherwise.

    """
    logger = logging.getLogger(name)

    # Remove the handlers of previous calls.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = level.upper()
    if level == "NONE":
        logger.addHandler(logging.NullHandler())
        logger.propagate = False
        logger.disabled = True
        return logger
    logger.disabled = False

    if logfile == "-":
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.FileHandler(logfile, mode="a")
    handler.setFormatter(JsonFormatter())

    logger.addHandler(handler)
    logger.propagate = False

    if level not in LEVELS:
        logger.setLevel(logging.INFO)
        logger.warning("invalid log level", {"level": level, "fallback": "INFO"})
    else:
        logger.setLevel(LEVELS[level])
    return logger
