# shared/decorators/error_handling.py
import functools
import logging
import asyncio
from typing import Any, Callable, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

def handle_errors(
    default_return: Any = None,
    log_errors: bool = True,
    reraise: bool = False,
    ignored_exceptions: Optional[Sequence[type]] = None,
    passthrough_exceptions: Optional[Sequence[type]] = None,
    custom_handler: Optional[Callable] = None
):
    """
    Decorator để xử lý lỗi tự động

    Args:
        default_return: Giá trị trả về mặc định khi có lỗi
        log_errors: Có ghi log lỗi không
        reraise: Có raise lại exception không
        ignored_exceptions: Exception bỏ qua (chỉ log debug)
        passthrough_exceptions: Exception luôn được raise lại nguyên vẹn
        custom_handler: Handler tùy chỉnh cho lỗi
    """
    passthrough = tuple(passthrough_exceptions or ())

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if passthrough and isinstance(e, passthrough):
                    raise
                return _handle_exception(
                    e, func.__name__, default_return, log_errors, reraise,
                    ignored_exceptions, custom_handler
                )

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if passthrough and isinstance(e, passthrough):
                    raise
                return _handle_exception(
                    e, func.__name__, default_return, log_errors, reraise,
                    ignored_exceptions, custom_handler
                )

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator

def _handle_exception(
    exception: Exception,
    func_name: str,
    default_return: Any,
    log_errors: bool,
    reraise: bool,
    ignored_exceptions: Optional[Sequence[type]],
    custom_handler: Optional[Callable]
) -> Any:
    """Internal exception handling logic"""

    if ignored_exceptions and isinstance(exception, tuple(ignored_exceptions)):
        if log_errors:
            logger.debug(f"🔇 Ignored exception in {func_name}: {exception}")
        return default_return

    if custom_handler:
        try:
            return custom_handler(exception, func_name)
        except Exception as handler_error:
            logger.error(f"💥 Custom error handler failed: {handler_error}")

    if log_errors:
        logger.error(f"❌ Error in {func_name}: {type(exception).__name__}: {exception}", exc_info=True)

    if reraise:
        raise exception

    return default_return

# Specialized error handlers

def handle_network_errors(default_return: Any = None, timeout: float = 30.0):
    """Decorator cho network/HTTP errors của model REST API"""

    def custom_handler(exception, func_name):
        if isinstance(exception, httpx.TimeoutException):
            logger.warning(f"⏰ Network timeout in {func_name} (>{timeout}s)")
        elif isinstance(exception, httpx.ConnectError):
            logger.warning(f"🔌 Connection error in {func_name}")
        elif isinstance(exception, httpx.HTTPStatusError):
            logger.warning(f"🌐 HTTP {exception.response.status_code} in {func_name}")
        elif isinstance(exception, (httpx.NetworkError, ConnectionError, TimeoutError)):
            logger.warning(f"📡 Network issue in {func_name}: {exception}")
        else:
            logger.error(f"❌ Error in {func_name}: {exception}")

        return default_return

    return handle_errors(
        default_return=default_return,
        log_errors=True,
        reraise=False,
        custom_handler=custom_handler
    )
