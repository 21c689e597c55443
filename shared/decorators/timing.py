import time
import functools
import logging


def time_execution(func):
    """
    Decorator to measure execution time of a function.
    Logs the elapsed time at debug level under the function's module logger.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logging.getLogger(func.__module__).debug(f"⏱️ {func.__qualname__} took {elapsed_ms:.2f} ms")

    return wrapper
