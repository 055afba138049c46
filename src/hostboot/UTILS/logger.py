"""
Logging setup shared by every hostboot component.
"""
import logging
import sys

ROOT_LOGGER = "hostboot"
VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}


def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger below the hostboot root logger.

    :param name: Usually the module ``__name__``.
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(verbosity: int = 0) -> logging.Logger:
    """
    Attaches a single stdout handler to the hostboot root logger.

    Calling this more than once only adjusts the level, so repeated CLI
    invocations in one process do not print every message twice.

    :param verbosity: 0 for warnings, 1 for info, 2 or more for debug.
    :return: The root hostboot logger.
    """
    log = logging.getLogger(ROOT_LOGGER)
    log.setLevel(VERBOSITY_LEVELS.get(min(verbosity, 2), logging.WARNING))

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)-7s %(message)s"))
        log.addHandler(handler)
    log.propagate = False
    return log
