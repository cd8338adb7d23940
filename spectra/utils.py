import functools
import logging
import traceback

from spectra.config import Config


def format_args(*args) -> str:
    return " ".join(str(arg) for arg in args)


def formatf(fmt: str, *args) -> str:
    if not args:
        return fmt
    try:
        return fmt % args
    except (TypeError, ValueError):
        # Logging must not raise on a malformed format string
        return format_args(fmt, *args)


def dont_throw(func):
    """
    A decorator that wraps the passed in function and logs exceptions instead of throwing them.
    """
    logger = logging.getLogger(func.__module__)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.debug(
                "Spectra failed to record telemetry in %s, error: %s",
                func.__name__,
                traceback.format_exc(),
            )
            if Config.exception_logger:
                Config.exception_logger(e)

    return wrapper
