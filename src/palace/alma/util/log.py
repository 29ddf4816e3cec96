import functools
import logging
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager


@contextmanager
def elapsed_time_logging(
    *,
    log_method: Callable[[str], None],
    message_prefix: str | None = None,
    skip_start: bool = False,
) -> Generator[None, None, None]:
    """Log how long the body of the `with` block took.

    :param log_method: Called with each message, e.g. `self.log.info`.
    :param message_prefix: Put in front of every message.
    :param skip_start: Only log when the block finishes.
    """
    prefix = f"{message_prefix}: " if message_prefix else ""
    if not skip_start:
        log_method(f"{prefix}Starting...")
    start = time.perf_counter()
    outcome = "Completed"
    try:
        yield
    except Exception as e:
        outcome = f"Failed (raised {e.__class__.__name__})"
        raise
    finally:
        elapsed = time.perf_counter() - start
        log_method(f"{prefix}{outcome}. (elapsed time: {elapsed:0.4f} seconds)")


def logger_for_cls(cls: type[object]) -> logging.Logger:
    return logging.getLogger(f"{cls.__module__}.{cls.__name__}")


class LoggerMixin:
    """Gives a class a logger named `<module>.<class>`."""

    @classmethod
    @functools.cache
    def logger(cls) -> logging.Logger:
        return logger_for_cls(cls)

    @property
    def log(self) -> logging.Logger:
        return self.logger()


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """e.g. `pluralize(2, "holding")` -> "2 holdings"."""
    if plural is None:
        plural = singular + "s"
    return f"{count} {singular if count == 1 else plural}"
